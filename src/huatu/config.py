"""Application configuration builder."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .db.db_init import init_db

DEFAULT_API_BASE_URL = "http://localhost:1314"


@dataclass(slots=True, frozen=True)
class RequestConfig:
    """Per-call options understood by the retrying request client."""

    timeout_ms: int = 30_000
    retry_count: int = 3
    retry_delay_ms: int = 1_000
    show_user_error: bool = True

    def __post_init__(self) -> None:
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        if self.retry_count < 0:
            raise ValueError("retry_count must not be negative")
        if self.retry_delay_ms < 0:
            raise ValueError("retry_delay_ms must not be negative")


@dataclass(slots=True, frozen=True)
class PollConfig:
    """Cadence and budget of the polling loop."""

    interval_ms: int = 5_000
    max_ticks: int = 90
    request: RequestConfig = field(
        default_factory=lambda: RequestConfig(retry_delay_ms=5_000, show_user_error=False)
    )

    def __post_init__(self) -> None:
        if self.interval_ms < 0:
            raise ValueError("interval_ms must not be negative")
        if self.max_ticks < 1:
            raise ValueError("max_ticks must be at least 1")


@dataclass(slots=True, frozen=True)
class CredentialPolicy:
    """Local format check applied to credentials before any request."""

    prefix: str = "jjdd-"
    min_length: int = 15


@dataclass(slots=True)
class AppConfig:
    api_base_url: str
    request: RequestConfig
    poll: PollConfig
    credential_policy: CredentialPolicy
    database_url: str
    engine: Engine
    session_factory: sessionmaker[Session]


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def load_config() -> AppConfig:
    """Load configuration from environment (SQLite by default)."""
    api_base_url = os.getenv("HUATU_API_BASE_URL", DEFAULT_API_BASE_URL).rstrip("/")

    request = RequestConfig(
        timeout_ms=_env_int("HUATU_REQUEST_TIMEOUT_MS", 30_000),
        retry_count=_env_int("HUATU_RETRY_COUNT", 3),
        retry_delay_ms=_env_int("HUATU_RETRY_DELAY_MS", 1_000),
    )
    poll = PollConfig(
        interval_ms=_env_int("HUATU_POLL_INTERVAL_MS", 5_000),
        max_ticks=_env_int("HUATU_MAX_POLL_TICKS", 90),
        request=RequestConfig(
            timeout_ms=request.timeout_ms,
            retry_count=request.retry_count,
            retry_delay_ms=_env_int("HUATU_POLL_RETRY_DELAY_MS", 5_000),
            show_user_error=False,
        ),
    )
    credential_policy = CredentialPolicy(
        prefix=os.getenv("HUATU_CREDENTIAL_PREFIX", "jjdd-"),
        min_length=_env_int("HUATU_CREDENTIAL_MIN_LENGTH", 15),
    )

    database_url = os.getenv("DATABASE_URL", "sqlite:///huatu.db")
    engine = create_engine(database_url, future=True)
    session_factory: sessionmaker[Session] = sessionmaker(bind=engine, expire_on_commit=False)

    init_db(engine)

    return AppConfig(
        api_base_url=api_base_url,
        request=request,
        poll=poll,
        credential_policy=credential_policy,
        database_url=database_url,
        engine=engine,
        session_factory=session_factory,
    )
