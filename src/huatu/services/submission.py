"""Job submission: validate, create the backend job and record it as active."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

import structlog

from ..config import CredentialPolicy
from ..domain.models import GenerationRequest, JobHandle
from ..exceptions import RepositoryError
from ..providers.huatu_api import HuatuApi
from .cancellation import CancellationChannel
from .validators import validate_for_submission

logger = structlog.get_logger(__name__)


class JobSubmitter:
    def __init__(
        self,
        api: HuatuApi,
        channel: CancellationChannel,
        policy: CredentialPolicy | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._api = api
        self._channel = channel
        self._policy = policy or CredentialPolicy()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def submit(self, request: GenerationRequest, extra_text: str = "") -> JobHandle:
        """Submit ``request`` and make the new job the channel's active job.

        Validation happens before any network call. A failure to persist the
        job id does not fail the submission; the channel keeps it in memory.
        """

        validate_for_submission(request, self._policy)
        job_id = await self._api.create_job(request, extra_text)
        handle = JobHandle(job_id=job_id, submitted_at=self._clock())

        try:
            self._channel.record_job(job_id)
        except RepositoryError as exc:
            logger.warning(
                "huatu.submit.channel_degraded",
                job_id=job_id,
                error=str(exc),
            )

        logger.info("huatu.submit.accepted", job_id=job_id)
        return handle


__all__ = ["JobSubmitter"]
