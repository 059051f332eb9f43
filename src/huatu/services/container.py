"""Service composition helpers."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx

from ..config import AppConfig, RequestConfig
from ..infrastructure.settings_repository import SettingsRepository
from ..notifications import LoggingNotifier, Notifier
from ..providers.http_client import RequestRegistry, RetryingRequestClient
from ..providers.huatu_api import HuatuApi
from .cancellation import CancellationChannel, CancellationService, CredentialStore
from .generation import GenerationEngine
from .polling import PollingLoop
from .submission import JobSubmitter


def build_engine(
    config: AppConfig,
    *,
    http: httpx.AsyncClient | None = None,
    notifier: Notifier | None = None,
    clock: Callable[[], float] | None = None,
    sleep: Callable[[float], Any] | None = None,
) -> GenerationEngine:
    """Wire the engine and its collaborators from ``config``."""

    notifier = notifier if notifier is not None else LoggingNotifier()
    registry = RequestRegistry()
    client = RetryingRequestClient(
        config.api_base_url,
        http=http,
        registry=registry,
        notifier=notifier,
        default_config=config.request,
        sleep=sleep,
    )
    api = HuatuApi(
        client=client,
        submit_config=RequestConfig(
            timeout_ms=config.request.timeout_ms,
            retry_count=config.request.retry_count,
            retry_delay_ms=config.request.retry_delay_ms,
            show_user_error=False,
        ),
        poll_config=config.poll.request,
        cancel_config=RequestConfig(
            timeout_ms=config.request.timeout_ms,
            retry_count=config.request.retry_count,
            retry_delay_ms=config.request.retry_delay_ms,
            show_user_error=False,
        ),
    )

    repository = SettingsRepository(config.session_factory)
    channel = CancellationChannel(repository)
    credentials = CredentialStore(repository)
    cancellation = CancellationService(
        channel=channel,
        credentials=credentials,
        api=api,
        registry=registry,
        notifier=notifier,
        policy=config.credential_policy,
    )

    return GenerationEngine(
        api=api,
        submitter=JobSubmitter(api, channel, config.credential_policy),
        poller=PollingLoop(api, channel, config.poll, clock=clock, sleep=sleep),
        channel=channel,
        cancellation=cancellation,
        credentials=credentials,
        notifier=notifier,
        policy=config.credential_policy,
    )


__all__ = ["build_engine"]
