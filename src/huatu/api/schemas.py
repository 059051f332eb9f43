"""Pydantic schemas for the generation API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class GenerateRequestModel(BaseModel):
    params: dict[str, Any] = Field(default_factory=dict)
    extra_text: str = ""


class CancelResponseModel(BaseModel):
    message: str


class ProgressResponseModel(BaseModel):
    percent: float
    message: str


class CurrentJobResponseModel(BaseModel):
    job_id: str | None = None


class StaminaResponseModel(BaseModel):
    used: int
    total: int | None = None
    last_update: str | None = None


class CredentialTestResponseModel(BaseModel):
    valid: bool
    message: str
    consume_stamina: int = 0
    used_stamina: int = 0
    total_stamina: int = 10_000
    request_id: str = ""
