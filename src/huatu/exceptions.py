"""Error taxonomy for the generation engine and its storage layer."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from sqlalchemy import exc as sa_exc

__all__ = [
    "AppError",
    "EngineError",
    "ValidationError",
    "SerializationError",
    "RequestError",
    "RequestTimeoutError",
    "RequestAbortedError",
    "ConnectivityError",
    "JobFailedError",
    "PollTimeoutError",
    "RepositoryError",
    "DatabaseOperationError",
    "handle_sqlalchemy_errors",
]


class AppError(Exception):
    """Base class for application specific errors."""


class EngineError(AppError):
    """Base class for failures of the submit/poll/cancel engine."""


class ValidationError(EngineError):
    """Raised when a precondition fails before any network call."""


class SerializationError(EngineError):
    """Raised when a request body cannot be encoded."""


class RequestError(EngineError):
    """Raised for non-2xx responses or transport failures after retries."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RequestTimeoutError(RequestError, TimeoutError):
    """Raised when a single request exceeds its deadline."""


class RequestAbortedError(RequestError):
    """Raised when a request was aborted by an explicit cancel."""


class ConnectivityError(RequestError):
    """Raised when the backend cannot be reached at all."""


class JobFailedError(EngineError):
    """Raised when the backend reports the job as failed."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"generation task failed: {task_id}")
        self.task_id = task_id


class PollTimeoutError(EngineError, TimeoutError):
    """Raised when polling exhausts its tick budget without a terminal status."""


class RepositoryError(AppError):
    """Base class for persistence layer failures."""


class DatabaseOperationError(RepositoryError):
    """Raised for unexpected database errors."""


@dataclass(slots=True)
class _EntityContext:
    """Internal helper describing the entity for error messages."""

    entity: str | None = None

    def format(self, message: str) -> str:
        if self.entity:
            return f"{self.entity}: {message}"
        return message


@contextmanager
def handle_sqlalchemy_errors(*, entity: str | None = None) -> Iterator[None]:
    """Translate SQLAlchemy errors into repository errors."""

    context = _EntityContext(entity)
    try:
        yield
    except sa_exc.SQLAlchemyError as exc:
        raise DatabaseOperationError(context.format("database operation failed")) from exc
