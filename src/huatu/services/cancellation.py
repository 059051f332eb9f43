"""Cancellation channel and the caller-triggered cancel action.

The channel is a single durable slot holding the id of the job that is
currently active. Polling loops compare their own job id against it on every
tick, which is how a cancel issued from anywhere (even after a restart) reaches
a poll that holds no reference to the canceller. Writes are last-write-wins:
starting a second job silently supersedes the first one in the slot.
"""

from __future__ import annotations

import logging

from ..config import CredentialPolicy
from ..exceptions import RepositoryError, RequestError
from ..infrastructure.settings_repository import SettingsRepository
from ..notifications import NotificationLevel, Notifier
from ..providers.http_client import RequestRegistry
from ..providers.huatu_api import HuatuApi
from .validators import check_credential

logger = logging.getLogger(__name__)

LAST_JOB_KEY = "last_job_id"
CREDENTIAL_KEY = "api_key"

CANCEL_IN_PROGRESS = "cancel already in progress, please wait"
NOTHING_TO_CANCEL = "no running generation task found"
TASK_CANCELED = "generation task canceled"
CANCEL_REJECTED = "failed to cancel task, it may have finished or does not exist"


class CancellationChannel:
    """Durable single-slot record of the active job id.

    An in-memory mirror is kept alongside the durable slot. When storage
    becomes unavailable the channel switches to the mirror, so cancellation
    keeps working for as long as this process lives.
    """

    def __init__(
        self,
        repository: SettingsRepository | None,
        *,
        key: str = LAST_JOB_KEY,
        log: logging.Logger | None = None,
    ) -> None:
        self._repository = repository
        self._key = key
        self._memory: str | None = None
        self._degraded = repository is None
        self._log = log or logger

    @property
    def degraded(self) -> bool:
        return self._degraded

    def record_job(self, job_id: str) -> None:
        """Make ``job_id`` the active job.

        The in-memory slot is always updated; a failing durable write is
        re-raised as :class:`RepositoryError` after switching to degraded mode.
        """

        if not job_id:
            raise ValueError("job_id must be a non-empty string")
        self._memory = job_id
        if self._repository is None:
            return
        try:
            self._repository.set(self._key, job_id)
        except RepositoryError:
            self._degraded = True
            raise
        self._degraded = False

    def current_job(self) -> str | None:
        if self._degraded or self._repository is None:
            return self._memory
        try:
            return self._repository.get(self._key)
        except RepositoryError as exc:
            self._log.warning(
                "huatu.channel.read_failed; using in-memory slot",
                extra={"error": str(exc)},
            )
            self._degraded = True
            return self._memory

    def is_current_job(self, job_id: str) -> bool:
        return self.current_job() == job_id

    def clear(self, job_id: str | None = None) -> bool:
        """Empty the slot.

        With ``job_id`` the slot is only cleared while it still holds that
        job, so a finishing poll never wipes a newer submission.
        """

        if job_id is not None and self.current_job() != job_id:
            return False
        self._memory = None
        if self._repository is None:
            return True
        try:
            self._repository.delete(self._key)
        except RepositoryError as exc:
            self._log.warning(
                "huatu.channel.clear_failed; slot cleared in memory only",
                extra={"error": str(exc)},
            )
            self._degraded = True
            return True
        self._degraded = False
        return True


class CredentialStore:
    """Durable copy of the last credential used for a submission."""

    def __init__(
        self,
        repository: SettingsRepository | None,
        *,
        key: str = CREDENTIAL_KEY,
        log: logging.Logger | None = None,
    ) -> None:
        self._repository = repository
        self._key = key
        self._memory: str | None = None
        self._log = log or logger

    def save(self, credential: str) -> None:
        self._memory = credential
        if self._repository is None:
            return
        try:
            self._repository.set(self._key, credential)
        except RepositoryError as exc:
            self._log.warning("huatu.credential.save_failed", extra={"error": str(exc)})

    def load(self) -> str | None:
        if self._repository is None:
            return self._memory
        try:
            stored = self._repository.get(self._key)
        except RepositoryError as exc:
            self._log.warning("huatu.credential.load_failed", extra={"error": str(exc)})
            return self._memory
        return stored if stored is not None else self._memory


class CancellationService:
    """Cancels whatever job the channel currently tracks."""

    def __init__(
        self,
        *,
        channel: CancellationChannel,
        credentials: CredentialStore,
        api: HuatuApi,
        registry: RequestRegistry,
        notifier: Notifier,
        policy: CredentialPolicy,
    ) -> None:
        self._channel = channel
        self._credentials = credentials
        self._api = api
        self._registry = registry
        self._notifier = notifier
        self._policy = policy
        self._in_progress = False

    async def cancel_active(self) -> str:
        """Cancel the active job; always returns a human-readable outcome."""

        if self._in_progress:
            self._notifier.notify(CANCEL_IN_PROGRESS, level=NotificationLevel.INFO, duration_ms=2000)
            return CANCEL_IN_PROGRESS

        self._in_progress = True
        try:
            return await self._cancel_active()
        finally:
            self._in_progress = False

    async def _cancel_active(self) -> str:
        credential = self._credentials.load()
        problem = check_credential(credential, self._policy)
        if problem is not None or credential is None:
            message = problem or "credential is not set"
            self._notifier.notify(message, level=NotificationLevel.ERROR)
            return message

        job_id = self._channel.current_job()
        if not job_id:
            self._notifier.notify(NOTHING_TO_CANCEL, level=NotificationLevel.INFO)
            return NOTHING_TO_CANCEL

        self._notifier.notify("trying to cancel generation task...", duration_ms=2000)
        try:
            confirmed = await self._api.cancel_task(job_id, credential)
        except RequestError as exc:
            message = f"error while canceling task: {exc}"
            logger.error("huatu.cancel.error", extra={"job_id": job_id, "error": str(exc)})
            self._notifier.notify(message, level=NotificationLevel.ERROR)
            return message

        if not confirmed:
            logger.warning("huatu.cancel.rejected", extra={"job_id": job_id})
            self._notifier.notify(CANCEL_REJECTED, level=NotificationLevel.ERROR)
            return CANCEL_REJECTED

        self._channel.clear(job_id)
        aborted = self._registry.abort_job(job_id)
        logger.info(
            "huatu.cancel.confirmed",
            extra={"job_id": job_id, "aborted_requests": aborted},
        )
        self._notifier.notify(TASK_CANCELED, level=NotificationLevel.CANCELED)
        return TASK_CANCELED


__all__ = [
    "CANCEL_IN_PROGRESS",
    "CANCEL_REJECTED",
    "CancellationChannel",
    "CancellationService",
    "CredentialStore",
    "NOTHING_TO_CANCEL",
    "TASK_CANCELED",
]
