"""Domain models shared by the submission, polling and cancellation layers.

``GenerationRequest`` is the normalised parameter object a caller hands to the
engine. Its numeric ranges are enforced when the model is built, so by the time
a request reaches the submission layer only the credential and the model id
remain to be checked. The remaining types are small value objects describing a
submitted job, a single poll decision and the final result handed back to the
caller.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

_MODEL_ID = re.compile(r"^\d+$")
_TENSOR_ART_URL = re.compile(r"^(?:https?://)?tensor\.art/models/(\d+)(?:/[^/?#]*)?", re.IGNORECASE)
_NUMERIC_NOISE = re.compile(r"[^\d.\-]")


def normalize_model_reference(value: str) -> str:
    """Return the numeric model id for a raw id or a ``tensor.art`` link."""

    trimmed = value.strip()
    if not trimmed or _MODEL_ID.match(trimmed):
        return trimmed
    match = _TENSOR_ART_URL.match(trimmed)
    if match:
        return match.group(1)
    raise ValueError("expected a numeric model id or a tensor.art model link")


class LoraEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: str
    weight: float = Field(default=0.8, ge=0, le=2)

    @field_validator("model", mode="before")
    @classmethod
    def _normalize_model(cls, value: Any) -> str:
        return normalize_model_reference(str(value))

    @field_validator("weight", mode="before")
    @classmethod
    def _parse_weight(cls, value: Any) -> Any:
        if value is None or value == "":
            return 0.8
        if isinstance(value, str):
            cleaned = _NUMERIC_NOISE.sub("", value)
            return float(cleaned) if cleaned else 0.8
        return value


class UpscaleSettings(BaseModel):
    """Second-pass (hires fix) block; only sent when ``enabled``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    enabled: bool = False
    model: str = "4x-UltraSharp"
    resize_x: int = Field(default=1024, ge=256, le=4096, validation_alias=AliasChoices("resize_x", "resizeX"))
    resize_y: int = Field(default=1024, ge=256, le=4096, validation_alias=AliasChoices("resize_y", "resizeY"))
    steps: int = Field(default=20, ge=1, le=60)
    denoising_strength: float = Field(
        default=0.3,
        ge=0,
        le=1,
        validation_alias=AliasChoices("denoising_strength", "denoisingStrength"),
    )


class GenerationRequest(BaseModel):
    """Normalised generation parameters.

    Field names follow the engine's vocabulary; the camelCase and legacy keys
    used by the settings UI are accepted as aliases.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    model: str = Field(default="", validation_alias=AliasChoices("model", "sdModel"))
    prompt: str = ""
    negative_prompt: str = Field(
        default="", validation_alias=AliasChoices("negative_prompt", "negativePrompt")
    )
    width: int = Field(default=512, ge=256, le=2300)
    height: int = Field(default=512, ge=256, le=3200)
    count: int = Field(default=1, ge=1, le=4)
    steps: int = Field(default=20, ge=10, le=60)
    cfg_scale: float = Field(default=7.0, ge=1, le=30, validation_alias=AliasChoices("cfg_scale", "cfgScale"))
    seed: int = Field(default=-1, ge=-1)
    sampler: str = "Euler"
    vae: str = Field(default="ae.sft", validation_alias=AliasChoices("vae", "sdVae"))
    clip_skip: int = Field(default=1, ge=1, le=12, validation_alias=AliasChoices("clip_skip", "clipSkip"))
    loras: tuple[LoraEntry, ...] = ()
    upscaler: UpscaleSettings | None = None
    credential: str = Field(
        default="",
        repr=False,
        validation_alias=AliasChoices("credential", "jjddApiKey", "api_key"),
    )

    @field_validator("loras", mode="before")
    @classmethod
    def _drop_empty_loras(cls, value: Any) -> Any:
        if value is None:
            return ()
        entries = []
        for entry in value:
            if isinstance(entry, LoraEntry):
                entries.append(entry)
                continue
            if not isinstance(entry, dict):
                continue
            model = entry.get("model")
            if model is None or str(model).strip() == "":
                continue
            entries.append(entry)
        return tuple(entries)


@dataclass(slots=True, frozen=True)
class JobHandle:
    """Identifier of a submitted job; created once per submission."""

    job_id: str
    submitted_at: datetime


@dataclass(slots=True, frozen=True)
class StaminaInfo:
    """Usage counters reported by the backend."""

    used: int = 0
    consumed: int = 0
    total: int | None = None
    last_update: str | None = None


class PollStatus(str, Enum):
    """Closed set of decoded backend statuses."""

    SUCCESS = "success"
    FAILURE = "failure"
    CANCELED = "canceled"
    PENDING = "pending"
    CANCEL_LIKE = "cancel_like"

    @property
    def is_terminal(self) -> bool:
        return self is not PollStatus.PENDING

    @property
    def is_canceled(self) -> bool:
        return self in (PollStatus.CANCELED, PollStatus.CANCEL_LIKE)


@dataclass(slots=True, frozen=True)
class PollOutcome:
    """Decision taken for a single tick."""

    status: PollStatus
    images: tuple[Any, ...] = ()
    stamina: StaminaInfo | None = None
    task: str | None = None
    raw_status: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


@dataclass(slots=True, frozen=True)
class ProgressSnapshot:
    """Transient progress report; ``percent`` is -1 on error."""

    percent: float
    message: str


@dataclass(slots=True)
class GenerationResult:
    """Value returned to callers of :meth:`GenerationEngine.generate`."""

    success: bool
    canceled: bool = False
    images: list[Any] = field(default_factory=list)
    stamina: StaminaInfo | None = None
    job_id: str | None = None
    task: str | None = None
    message: str = ""

    @classmethod
    def canceled_result(cls, job_id: str | None, message: str = "task canceled") -> "GenerationResult":
        return cls(success=False, canceled=True, job_id=job_id, message=message)

    def as_dict(self) -> dict[str, Any]:
        if self.canceled:
            return {
                "success": False,
                "canceled": True,
                "message": self.message,
                "jobId": self.job_id,
            }
        usage = None
        if self.stamina is not None:
            usage = {"used": self.stamina.used, "consumed": self.stamina.consumed}
        return {
            "success": self.success,
            "data": list(self.images),
            "usage": usage,
            "task": self.task,
            "jobId": self.job_id,
        }


@dataclass(slots=True, frozen=True)
class CredentialCheck:
    """Outcome of the ``/test_api_key`` probe."""

    valid: bool
    message: str
    consume_stamina: int = 0
    used_stamina: int = 0
    total_stamina: int = 10_000
    request_id: str = ""
