"""Local precondition checks run before anything touches the network."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..config import CredentialPolicy
from ..domain.models import GenerationRequest
from ..exceptions import ValidationError


def check_credential(credential: str | None, policy: CredentialPolicy) -> str | None:
    """Return a human-readable problem with ``credential`` or ``None``."""

    if not credential or not credential.strip():
        return "credential is not set"
    if not credential.startswith(policy.prefix) or len(credential) < policy.min_length:
        return "credential format is invalid"
    return None


def validate_credential(credential: str | None, policy: CredentialPolicy) -> str:
    problem = check_credential(credential, policy)
    if problem is not None or credential is None:
        raise ValidationError(problem or "credential is not set")
    return credential


def validate_for_submission(request: GenerationRequest, policy: CredentialPolicy) -> None:
    """Ensure credential and model id are present before a submission."""

    validate_credential(request.credential, policy)
    if not request.model:
        raise ValidationError("model id is required")


def _format_pydantic_errors(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)


def build_generation_request(params: Mapping[str, Any] | GenerationRequest) -> GenerationRequest:
    """Parse raw UI parameters, turning range violations into :class:`ValidationError`."""

    if isinstance(params, GenerationRequest):
        return params
    try:
        return GenerationRequest.model_validate(dict(params))
    except PydanticValidationError as exc:
        raise ValidationError(_format_pydantic_errors(exc)) from exc


__all__ = [
    "build_generation_request",
    "check_credential",
    "validate_credential",
    "validate_for_submission",
]
