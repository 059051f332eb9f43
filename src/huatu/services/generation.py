"""Generation engine facade: submit, poll, cancel."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from ..config import CredentialPolicy
from ..domain.models import CredentialCheck, GenerationRequest, GenerationResult, StaminaInfo
from ..exceptions import EngineError
from ..notifications import NotificationLevel, Notifier
from ..providers.huatu_api import HuatuApi
from .cancellation import CancellationChannel, CancellationService, CredentialStore
from .polling import PollingLoop
from .progress import ProgressCallback, ProgressReporter, ProgressTracker
from .submission import JobSubmitter
from .validators import build_generation_request, check_credential, validate_credential

logger = structlog.get_logger(__name__)

# Poll progress (0..100) is squeezed into the 15..95 band of the overall bar.
POLL_PROGRESS_OFFSET = 15
POLL_PROGRESS_SCALE = 0.8


class GenerationEngine:
    """Entry point used by the HTTP layer and by embedding hosts.

    ``generate`` walks through validation, submission and polling while
    reporting progress stages; ``cancel_active`` may be called from anywhere
    and reaches the running poll through the cancellation channel.
    """

    def __init__(
        self,
        *,
        api: HuatuApi,
        submitter: JobSubmitter,
        poller: PollingLoop,
        channel: CancellationChannel,
        cancellation: CancellationService,
        credentials: CredentialStore,
        notifier: Notifier,
        policy: CredentialPolicy,
        tracker: ProgressTracker | None = None,
    ) -> None:
        self.api = api
        self.channel = channel
        self.tracker = tracker if tracker is not None else ProgressTracker()
        self._submitter = submitter
        self._poller = poller
        self._cancellation = cancellation
        self._credentials = credentials
        self._notifier = notifier
        self._policy = policy

    def _progress_callback(self, on_progress: ProgressCallback | None) -> ProgressCallback:
        def _emit(percent: float, message: str) -> None:
            self.tracker(percent, message)
            if on_progress is not None:
                on_progress(percent, message)

        return _emit

    async def generate(
        self,
        params: Mapping[str, Any] | GenerationRequest,
        extra_text: str = "",
        on_progress: ProgressCallback | None = None,
    ) -> GenerationResult:
        """Run one generation job to completion.

        Returns a canceled result when the job is canceled; every other
        failure is reported as progress ``-1``, notified and re-raised.
        """

        reporter = ProgressReporter(self._progress_callback(on_progress))
        job_id: str | None = None
        try:
            reporter.report(0, "validating parameters...")
            request = build_generation_request(params)
            reporter.report(5, "preparing request...")
            reporter.report(10, "sending generation request...")
            handle = await self._submitter.submit(request, extra_text)
            job_id = handle.job_id
            self._credentials.save(request.credential)
            reporter.report(POLL_PROGRESS_OFFSET, "generating image...")
            with structlog.contextvars.bound_contextvars(job_id=job_id):
                outcome = await self._poller.run(
                    handle,
                    request.credential,
                    reporter.scaled(POLL_PROGRESS_OFFSET, POLL_PROGRESS_SCALE),
                )
        except EngineError as exc:
            logger.error(
                "huatu.generate.failed",
                job_id=job_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            reporter.error(str(exc))
            self._notifier.notify(f"generation failed: {exc}", level=NotificationLevel.ERROR)
            raise

        if outcome.status.is_canceled:
            reporter.report(100, "generation canceled")
            self._notifier.notify("generation canceled", level=NotificationLevel.CANCELED)
            return GenerationResult.canceled_result(job_id)

        reporter.report(100, "generation complete")
        logger.info("huatu.generate.completed", job_id=job_id, images=len(outcome.images))
        return GenerationResult(
            success=True,
            images=list(outcome.images),
            stamina=outcome.stamina,
            job_id=job_id,
            task=outcome.task,
            message="generation complete",
        )

    async def cancel_active(self) -> str:
        return await self._cancellation.cancel_active()

    def current_job(self) -> str | None:
        return self.channel.current_job()

    async def get_stamina(self, credential: str | None = None) -> StaminaInfo:
        """Fetch stamina for ``credential`` or, when omitted, the stored one."""

        key = validate_credential(credential or self._credentials.load(), self._policy)
        return await self.api.get_stamina(key)

    async def test_credential(self, params: Mapping[str, Any] | GenerationRequest) -> CredentialCheck:
        request = build_generation_request(params)
        problem = check_credential(request.credential, self._policy)
        if problem is not None:
            return CredentialCheck(valid=False, message=problem)
        return await self.api.test_credential(request)

    async def aclose(self) -> None:
        await self.api.client.aclose()


__all__ = ["GenerationEngine"]
