"""Routes exposing generation, cancellation and progress to a host UI."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends, Header, Request

from ..services.generation import GenerationEngine
from .schemas import (
    CancelResponseModel,
    CredentialTestResponseModel,
    CurrentJobResponseModel,
    GenerateRequestModel,
    ProgressResponseModel,
    StaminaResponseModel,
)

router = APIRouter(prefix="/api", tags=["generation"])


def get_engine(request: Request) -> GenerationEngine:
    try:
        return request.app.state.engine  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("GenerationEngine is not configured") from exc


@router.post("/generate")
async def generate(
    payload: GenerateRequestModel,
    engine: GenerationEngine = Depends(get_engine),
) -> dict[str, Any]:
    result = await engine.generate(payload.params, payload.extra_text)
    return result.as_dict()


@router.post("/cancel", response_model=CancelResponseModel)
async def cancel(engine: GenerationEngine = Depends(get_engine)) -> CancelResponseModel:
    return CancelResponseModel(message=await engine.cancel_active())


@router.get("/progress", response_model=ProgressResponseModel)
def read_progress(engine: GenerationEngine = Depends(get_engine)) -> ProgressResponseModel:
    snapshot = engine.tracker.latest
    return ProgressResponseModel(percent=snapshot.percent, message=snapshot.message)


@router.get("/jobs/current", response_model=CurrentJobResponseModel)
def read_current_job(engine: GenerationEngine = Depends(get_engine)) -> CurrentJobResponseModel:
    return CurrentJobResponseModel(job_id=engine.current_job())


@router.get("/stamina", response_model=StaminaResponseModel)
async def read_stamina(
    credential: str | None = Header(default=None, alias="X-Huatu-Credential"),
    engine: GenerationEngine = Depends(get_engine),
) -> StaminaResponseModel:
    info = await engine.get_stamina(credential)
    return StaminaResponseModel(used=info.used, total=info.total, last_update=info.last_update)


@router.post("/credential/test", response_model=CredentialTestResponseModel)
async def test_credential(
    payload: GenerateRequestModel,
    engine: GenerationEngine = Depends(get_engine),
) -> CredentialTestResponseModel:
    check = await engine.test_credential(payload.params)
    return CredentialTestResponseModel(**asdict(check))
