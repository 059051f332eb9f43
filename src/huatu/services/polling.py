"""Fixed-cadence polling of a submitted job until it reaches a terminal state."""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from ..config import PollConfig
from ..domain.models import JobHandle, PollOutcome, PollStatus
from ..exceptions import (
    ConnectivityError,
    JobFailedError,
    PollTimeoutError,
    RequestAbortedError,
    RequestError,
)
from ..providers.huatu_api import HuatuApi
from ..providers.status import is_cancel_like, parse_job_result
from .cancellation import CancellationChannel
from .progress import ProgressReporter

logger = structlog.get_logger(__name__)

DETAILED_TICKS = 3
DETAILED_EVERY = 5
# Poll progress saturates at 100% once 80% of the tick budget is used.
PROGRESS_SATURATION = 0.8


def poll_percent(ticks: int, max_ticks: int) -> float:
    return min(100.0, ticks / (max_ticks * PROGRESS_SATURATION) * 100)


class PollingLoop:
    """State machine ``Polling -> {Success, Failure, Canceled, TimedOut}``.

    Each tick first consults the cancellation channel, then issues one
    ``/jobResult`` request. Ticks start ``interval_ms`` apart regardless of
    how long the request took, as long as it took less than the interval.
    The clock and sleep primitives are injectable for tests.
    """

    def __init__(
        self,
        api: HuatuApi,
        channel: CancellationChannel,
        config: PollConfig | None = None,
        *,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], Any] | None = None,
    ) -> None:
        self._api = api
        self._channel = channel
        self._config = config or PollConfig()
        self._clock = clock or time.monotonic
        self._sleep = self._wrap_sleep(sleep)

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

    async def run(
        self,
        handle: JobHandle,
        credential: str,
        progress: ProgressReporter | None = None,
    ) -> PollOutcome:
        """Poll ``handle`` until success or cancellation.

        Raises :class:`JobFailedError` when the backend reports failure,
        :class:`PollTimeoutError` once the tick budget is spent and
        :class:`ConnectivityError` when the backend is unreachable.
        """

        reporter = progress or ProgressReporter()
        job_id = handle.job_id
        max_ticks = self._config.max_ticks
        interval = self._config.interval_ms / 1000
        ticks = 0

        while True:
            started = self._clock()
            if not self._channel.is_current_job(job_id):
                logger.info("huatu.poll.superseded", job_id=job_id, ticks=ticks)
                return PollOutcome(status=PollStatus.CANCELED)

            outcome = await self._tick(job_id, credential, ticks)
            if outcome is not None and outcome.is_terminal:
                return self._finish(job_id, outcome)

            ticks += 1
            reporter.report(
                poll_percent(ticks, max_ticks),
                f"generating... ({ticks}/{max_ticks})",
            )
            if ticks >= max_ticks:
                logger.error("huatu.poll.timeout", job_id=job_id, ticks=ticks)
                raise PollTimeoutError(
                    f"job {job_id} did not finish after {ticks} polls"
                )

            elapsed = self._clock() - started
            await self._sleep(max(0.0, interval - elapsed))

    async def _tick(self, job_id: str, credential: str, ticks: int) -> PollOutcome | None:
        log = logger.info if ticks < DETAILED_TICKS or ticks % DETAILED_EVERY == 0 else logger.debug
        try:
            payload = await self._api.fetch_job_result(job_id, credential)
        except ConnectivityError:
            logger.error("huatu.poll.unreachable", job_id=job_id, tick=ticks)
            raise
        except RequestError as exc:
            if isinstance(exc, RequestAbortedError) or is_cancel_like(str(exc)):
                logger.info("huatu.poll.aborted", job_id=job_id, tick=ticks, reason=str(exc))
                return PollOutcome(status=PollStatus.CANCELED)
            logger.warning("huatu.poll.tick_failed", job_id=job_id, tick=ticks, error=str(exc))
            return None

        # A cancel issued while the request was in flight wins over its answer.
        if not self._channel.is_current_job(job_id):
            logger.info("huatu.poll.superseded", job_id=job_id, ticks=ticks)
            return PollOutcome(status=PollStatus.CANCELED)

        outcome = parse_job_result(payload)
        log("huatu.poll.tick", job_id=job_id, tick=ticks, status=outcome.raw_status)
        return outcome

    def _finish(self, job_id: str, outcome: PollOutcome) -> PollOutcome:
        self._channel.clear(job_id)
        if outcome.status is PollStatus.FAILURE:
            logger.error("huatu.poll.failed", job_id=job_id, task=outcome.task)
            raise JobFailedError(outcome.task or job_id)
        if outcome.status.is_canceled:
            logger.info("huatu.poll.canceled", job_id=job_id, status=outcome.raw_status)
            return PollOutcome(status=PollStatus.CANCELED, task=outcome.task, raw_status=outcome.raw_status)
        logger.info("huatu.poll.success", job_id=job_id, images=len(outcome.images))
        return outcome


__all__ = ["PollingLoop", "poll_percent"]
