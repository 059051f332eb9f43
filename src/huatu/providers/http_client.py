"""Retrying JSON-over-HTTP client used for every backend call."""

from __future__ import annotations

import asyncio
import inspect
import itertools
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from ..config import RequestConfig
from ..exceptions import (
    ConnectivityError,
    RequestAbortedError,
    RequestError,
    RequestTimeoutError,
    SerializationError,
)
from ..notifications import LoggingNotifier, NotificationLevel, Notifier
from .abort import AbortSignal, run_with_timeout

logger = logging.getLogger(__name__)

_BODY_PREVIEW_LIMIT = 500


@dataclass(slots=True)
class _RegistryEntry:
    signal: AbortSignal
    job_id: str | None


class RequestRegistry:
    """In-flight requests keyed by request id, each with its abort signal.

    Entries may be tagged with the job they belong to, which lets a cancel
    sever every request of that job at once.
    """

    def __init__(self) -> None:
        self._entries: dict[str, _RegistryEntry] = {}
        self._counter = itertools.count(1)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._entries

    def register(self, endpoint: str, *, job_id: str | None = None) -> tuple[str, AbortSignal]:
        request_id = f"{endpoint}-{next(self._counter)}"
        signal = AbortSignal()
        self._entries[request_id] = _RegistryEntry(signal=signal, job_id=job_id)
        return request_id, signal

    def discard(self, request_id: str) -> None:
        self._entries.pop(request_id, None)

    def cancel(self, request_id: str, reason: str = "request canceled") -> bool:
        entry = self._entries.pop(request_id, None)
        if entry is None:
            return False
        entry.signal.abort(reason)
        return True

    def abort_job(self, job_id: str, reason: str = "job canceled") -> int:
        """Abort and drop every entry tagged with ``job_id``."""

        matched = [rid for rid, entry in self._entries.items() if entry.job_id == job_id]
        for request_id in matched:
            self.cancel(request_id, reason)
        return len(matched)

    def abort_all(self, reason: str = "all requests canceled") -> int:
        request_ids = list(self._entries)
        for request_id in request_ids:
            self.cancel(request_id, reason)
        return len(request_ids)


def serialize_body(body: Any) -> bytes | None:
    """Encode a request body as UTF-8 JSON, keeping non-ASCII keys intact."""

    if body is None:
        return None
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    try:
        return json.dumps(body, ensure_ascii=False, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"failed to serialize request body: {exc}") from exc


class RetryingRequestClient:
    """Issue one logical request, retrying transient failures with a fixed delay.

    Explicit aborts are never retried. Every request is tracked in the
    :class:`RequestRegistry` until it settles, whatever the outcome.
    """

    def __init__(
        self,
        base_url: str,
        *,
        http: httpx.AsyncClient | None = None,
        registry: RequestRegistry | None = None,
        notifier: Notifier | None = None,
        default_config: RequestConfig | None = None,
        sleep: Callable[[float], Any] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._owns_http = http is None
        self._http = http if http is not None else httpx.AsyncClient(timeout=None)
        # An empty registry is falsy, so it must be compared against None.
        self.registry = registry if registry is not None else RequestRegistry()
        self._notifier: Notifier = notifier if notifier is not None else LoggingNotifier()
        self._default_config = default_config if default_config is not None else RequestConfig()
        self._sleep = self._wrap_sleep(sleep)
        self._log = logger

    @staticmethod
    def _wrap_sleep(
        sleep: Callable[[float], Any] | None,
    ) -> Callable[[float], Awaitable[None]]:
        if sleep is None:
            return asyncio.sleep

        async def _async_sleep(seconds: float) -> None:
            result = sleep(seconds)
            if inspect.isawaitable(result):
                await result

        return _async_sleep

    async def aclose(self) -> None:
        """Abort every in-flight request, then close the owned HTTP client."""

        aborted = self.registry.abort_all("client closed")
        if aborted:
            self._log.info("huatu.request.aborted_on_close count=%s", aborted)
        if self._owns_http:
            await self._http.aclose()

    async def _backoff(self, seconds: float, signal: AbortSignal) -> None:
        """Sleep between retries, returning early when ``signal`` fires."""

        sleeper = asyncio.ensure_future(self._sleep(seconds))
        waiter = asyncio.ensure_future(signal.wait())
        try:
            done, _ = await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
            if sleeper in done:
                sleeper.result()
        finally:
            sleeper.cancel()
            waiter.cancel()

    def _url(self, endpoint: str) -> str:
        normalized = endpoint if endpoint.startswith("/") else f"/{endpoint}"
        return f"{self._base_url}{normalized}"

    async def request(
        self,
        endpoint: str,
        *,
        body: Mapping[str, Any] | str | bytes | None = None,
        method: str = "POST",
        config: RequestConfig | None = None,
        job_id: str | None = None,
    ) -> dict[str, Any]:
        """Send ``body`` to ``endpoint`` and return the decoded JSON object."""

        cfg = config or self._default_config
        content = serialize_body(body)
        url = self._url(endpoint)
        headers = {"Accept": "application/json"}
        if content is not None:
            headers["Content-Type"] = "application/json"

        request_id, signal = self.registry.register(endpoint, job_id=job_id)
        retries = 0
        try:
            while True:
                try:
                    return await run_with_timeout(
                        lambda: self._send(method, url, content, headers),
                        cfg.timeout_ms,
                        signal,
                        label=endpoint,
                    )
                except RequestAbortedError:
                    raise
                except RequestError as exc:
                    if retries >= cfg.retry_count:
                        raise
                    retries += 1
                    self._log.warning(
                        "huatu.request.retry endpoint=%s attempt=%s/%s error=%s",
                        endpoint,
                        retries,
                        cfg.retry_count,
                        exc,
                        extra={"request_id": request_id, "job_id": job_id},
                    )
                    await self._backoff(cfg.retry_delay_ms / 1000, signal)
                    if signal.aborted:
                        raise RequestAbortedError(f"{endpoint} aborted: {signal.reason}") from exc
        except RequestError as exc:
            self._log.error(
                "huatu.request.failed endpoint=%s error=%s",
                endpoint,
                exc,
                extra={"request_id": request_id, "job_id": job_id, "status_code": exc.status_code},
            )
            if cfg.show_user_error and not isinstance(exc, RequestAbortedError):
                self._notifier.notify(
                    f"API request failed: {exc}",
                    level=NotificationLevel.ERROR,
                    duration_ms=3000,
                )
            raise
        finally:
            self.registry.discard(request_id)

    async def _send(
        self,
        method: str,
        url: str,
        content: bytes | None,
        headers: dict[str, str],
    ) -> dict[str, Any]:
        try:
            response = await self._http.request(method, url, content=content, headers=headers)
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(f"request to {url} timed out: {exc}") from exc
        except httpx.NetworkError as exc:
            raise ConnectivityError(f"network error calling {url}: {exc}") from exc
        except httpx.HTTPError as exc:
            raise RequestError(f"transport error calling {url}: {exc}") from exc

        if not response.is_success:
            text = response.text or "No error details"
            raise RequestError(
                f"HTTP error! status: {response.status_code}, details: {text[:_BODY_PREVIEW_LIMIT]}",
                status_code=response.status_code,
                body=text,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise RequestError(
                f"invalid JSON from {url}",
                status_code=response.status_code,
                body=response.text,
            ) from exc
        if not isinstance(data, dict):
            raise RequestError(
                f"unexpected JSON payload from {url}",
                status_code=response.status_code,
                body=response.text,
            )
        return data


__all__ = ["RequestRegistry", "RetryingRequestClient", "serialize_body"]
