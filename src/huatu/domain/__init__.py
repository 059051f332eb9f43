"""Domain value objects of the generation engine."""

from .models import (
    CredentialCheck,
    GenerationRequest,
    GenerationResult,
    JobHandle,
    LoraEntry,
    PollOutcome,
    PollStatus,
    ProgressSnapshot,
    StaminaInfo,
    UpscaleSettings,
    normalize_model_reference,
)

__all__ = [
    "CredentialCheck",
    "GenerationRequest",
    "GenerationResult",
    "JobHandle",
    "LoraEntry",
    "PollOutcome",
    "PollStatus",
    "ProgressSnapshot",
    "StaminaInfo",
    "UpscaleSettings",
    "normalize_model_reference",
]
