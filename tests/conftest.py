from __future__ import annotations

import asyncio
import inspect
import json
from collections import defaultdict
from typing import Any, Callable

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.huatu.config import AppConfig, CredentialPolicy, PollConfig, RequestConfig
from src.huatu.db import init_db
from src.huatu.exceptions import DatabaseOperationError
from src.huatu.infrastructure.settings_repository import SettingsRepository
from src.huatu.notifications import NotificationLevel

CREDENTIAL = "jjdd-test-credential-0001"
BASE_URL = "http://huatu.test"


def valid_params(**overrides: Any) -> dict[str, Any]:
    params: dict[str, Any] = {
        "sdModel": "611437926598361807",
        "prompt": "a lighthouse at dusk",
        "negativePrompt": "blurry",
        "width": 768,
        "height": 1024,
        "count": 1,
        "steps": 25,
        "cfgScale": 7,
        "seed": -1,
        "jjddApiKey": CREDENTIAL,
    }
    params.update(overrides)
    return params


class FakeClock:
    """Monotonic clock advanced only by the test doubles."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSleep:
    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.clock.advance(seconds)
        await asyncio.sleep(0)


class BrokenRepository:
    """Settings repository whose storage is permanently unavailable."""

    def get(self, key: str) -> str | None:
        raise DatabaseOperationError("settings: database operation failed")

    def set(self, key: str, value: str) -> None:
        raise DatabaseOperationError("settings: database operation failed")

    def delete(self, key: str) -> None:
        raise DatabaseOperationError("settings: database operation failed")


class RecordingNotifier:
    def __init__(self) -> None:
        self.messages: list[tuple[str, NotificationLevel]] = []

    def notify(
        self,
        message: str,
        *,
        level: NotificationLevel = NotificationLevel.INFO,
        duration_ms: int = 3000,
    ) -> None:
        self.messages.append((message, level))

    def levels(self) -> list[NotificationLevel]:
        return [level for _, level in self.messages]


Reply = dict[str, Any] | httpx.Response | Exception | Callable[[httpx.Request], Any]


class FakeBackend:
    """Scripted huatu backend served through ``httpx.MockTransport``.

    Replies queued for a path are consumed in order; the last one is
    repeated once the queue runs dry.
    """

    def __init__(self, clock: FakeClock | None = None, latency: float = 0.0) -> None:
        self.clock = clock
        self.latency = latency
        self.requests: list[tuple[str, dict[str, Any], float | None]] = []
        self._replies: dict[str, list[Reply]] = defaultdict(list)

    def queue(self, path: str, *replies: Reply) -> None:
        self._replies[path].extend(replies)

    def calls(self, path: str) -> list[dict[str, Any]]:
        return [body for request_path, body, _ in self.requests if request_path == path]

    def call_times(self, path: str) -> list[float | None]:
        return [at for request_path, _, at in self.requests if request_path == path]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content) if request.content else {}
        self.requests.append((path, body, self.clock() if self.clock else None))
        if self.clock is not None and self.latency:
            self.clock.advance(self.latency)

        replies = self._replies.get(path)
        if not replies:
            return httpx.Response(404, text=f"no reply scripted for {path}")
        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if callable(reply) and not isinstance(reply, httpx.Response):
            reply = reply(request)
            if inspect.isawaitable(reply):
                reply = await reply
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json=reply)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    init_db(engine)
    return engine


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, expire_on_commit=False)


@pytest.fixture
def settings_repo(session_factory) -> SettingsRepository:
    return SettingsRepository(session_factory)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_sleep(clock: FakeClock) -> FakeSleep:
    return FakeSleep(clock)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def backend(clock: FakeClock) -> FakeBackend:
    return FakeBackend(clock=clock)


@pytest.fixture
def app_config(db_engine, session_factory) -> AppConfig:
    return AppConfig(
        api_base_url=BASE_URL,
        request=RequestConfig(timeout_ms=2_000, retry_count=1, retry_delay_ms=100),
        poll=PollConfig(
            interval_ms=5_000,
            max_ticks=6,
            request=RequestConfig(
                timeout_ms=2_000,
                retry_count=2,
                retry_delay_ms=5_000,
                show_user_error=False,
            ),
        ),
        credential_policy=CredentialPolicy(),
        database_url="sqlite://",
        engine=db_engine,
        session_factory=session_factory,
    )
