"""Reusable error primitives for API exception handling."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from fastapi import Request, status
from fastapi.responses import JSONResponse

from ..exceptions import (
    EngineError,
    JobFailedError,
    PollTimeoutError,
    RequestError,
    RequestTimeoutError,
    ValidationError,
)


@dataclass(slots=True)
class ApiError(Exception):
    """Structured application-level error for HTTP handlers."""

    status_code: int
    code: str
    message: str
    headers: Mapping[str, str] | None = None

    def to_response(self) -> JSONResponse:
        """Materialise the error into a ``JSONResponse`` instance."""

        return JSONResponse(
            status_code=self.status_code,
            content={"error": {"code": self.code, "message": self.message}},
            headers=dict(self.headers or {}),
        )


async def api_error_handler(_: Request, exc: ApiError) -> JSONResponse:
    """Convert :class:`ApiError` exceptions into JSON payloads."""

    return exc.to_response()


def engine_error_to_api(exc: EngineError) -> ApiError:
    """Map an engine failure onto the HTTP status that best describes it."""

    if isinstance(exc, ValidationError):
        return ApiError(422, "validation_failed", str(exc))
    if isinstance(exc, JobFailedError):
        return ApiError(status.HTTP_502_BAD_GATEWAY, "job_failed", str(exc))
    if isinstance(exc, (PollTimeoutError, RequestTimeoutError)):
        return ApiError(status.HTTP_504_GATEWAY_TIMEOUT, "timeout", str(exc))
    if isinstance(exc, RequestError):
        return ApiError(status.HTTP_502_BAD_GATEWAY, "backend_error", str(exc))
    return ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "engine_error", str(exc))


async def engine_error_handler(_: Request, exc: EngineError) -> JSONResponse:
    return engine_error_to_api(exc).to_response()


__all__ = ["ApiError", "api_error_handler", "engine_error_handler", "engine_error_to_api"]
