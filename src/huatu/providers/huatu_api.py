"""Wire-level driver for the huatu image-generation backend."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..config import RequestConfig
from ..domain.models import CredentialCheck, GenerationRequest, StaminaInfo
from ..exceptions import RequestError
from .http_client import RetryingRequestClient

logger = logging.getLogger(__name__)

GENERATE_ENDPOINT = "/generate"
JOB_RESULT_ENDPOINT = "/jobResult"
CANCEL_TASK_ENDPOINT = "/cancelTask"
GET_STAMINA_ENDPOINT = "/get_stamina"
TEST_API_KEY_ENDPOINT = "/test_api_key"

CREDENTIAL_FIELD = "jjddApiKey"
POSITIVE_PROMPT_FIELD = "正提示词"
NEGATIVE_PROMPT_FIELD = "负提示词"


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def build_generate_payload(request: GenerationRequest, extra_text: str = "") -> dict[str, Any]:
    """Translate a normalised request into the backend's ``/generate`` body."""

    prompt = f"{request.prompt}, {extra_text}" if extra_text else request.prompt
    payload: dict[str, Any] = {
        CREDENTIAL_FIELD: request.credential,
        "seed": request.seed,
        "count": request.count,
        "width": request.width,
        "height": request.height,
        POSITIVE_PROMPT_FIELD: prompt,
        NEGATIVE_PROMPT_FIELD: request.negative_prompt,
        "sdModel": request.model,
        "sdVae": request.vae,
        "sampler": request.sampler,
        "steps": request.steps,
        "cfgScale": request.cfg_scale,
        "clipSkip": request.clip_skip,
    }

    for index, lora in enumerate(request.loras, start=1):
        payload[f"loraModel{index}"] = lora.model
        payload[f"weight{index}"] = lora.weight

    upscaler = request.upscaler
    if upscaler is not None and upscaler.enabled:
        payload["upscaler-switch"] = True
        payload["hrUpscaler"] = upscaler.model
        payload["hrResizeX"] = upscaler.resize_x
        payload["hrResizeY"] = upscaler.resize_y
        payload["hrSecondPassSteps"] = upscaler.steps
        payload["denoisingStrength"] = upscaler.denoising_strength

    return payload


@dataclass(slots=True)
class HuatuApi:
    """Thin typed facade over the backend endpoints.

    Local validation lives in the service layer; this class only shapes
    payloads and interprets responses.
    """

    client: RetryingRequestClient
    # Failures of these call sites are reported by the engine, not the client.
    submit_config: RequestConfig = field(
        default_factory=lambda: RequestConfig(show_user_error=False)
    )
    poll_config: RequestConfig = field(
        default_factory=lambda: RequestConfig(retry_delay_ms=5_000, show_user_error=False)
    )
    cancel_config: RequestConfig = field(
        default_factory=lambda: RequestConfig(show_user_error=False)
    )
    log: logging.Logger = field(default_factory=lambda: logger)

    async def create_job(self, request: GenerationRequest, extra_text: str = "") -> str:
        """POST ``/generate`` and return the backend job id."""

        payload = build_generate_payload(request, extra_text)
        self.log.info(
            "huatu.generate.request model=%s size=%sx%s count=%s loras=%s upscale=%s",
            request.model,
            request.width,
            request.height,
            request.count,
            len(request.loras),
            bool(request.upscaler and request.upscaler.enabled),
        )
        body = await self.client.request(GENERATE_ENDPOINT, body=payload, config=self.submit_config)
        if body.get("error"):
            raise RequestError(f"generate rejected: {body['error']}")
        job_id = body.get("job_id")
        if not job_id:
            raise RequestError(f"backend did not return job_id: {body}")
        return str(job_id)

    async def fetch_job_result(self, job_id: str, credential: str) -> dict[str, Any]:
        """POST ``/jobResult``; the request is tagged with ``job_id`` in the registry."""

        body = await self.client.request(
            JOB_RESULT_ENDPOINT,
            body={"job_id": job_id, CREDENTIAL_FIELD: credential},
            config=self.poll_config,
            job_id=job_id,
        )
        if body.get("error"):
            raise RequestError(str(body["error"]))
        return body

    async def cancel_task(self, job_id: str, credential: str) -> bool:
        body = await self.client.request(
            CANCEL_TASK_ENDPOINT,
            body={"job_id": job_id, CREDENTIAL_FIELD: credential},
            config=self.cancel_config,
        )
        return body.get("success") is True

    async def get_stamina(self, credential: str) -> StaminaInfo:
        body = await self.client.request(
            GET_STAMINA_ENDPOINT,
            body={CREDENTIAL_FIELD: credential},
            config=RequestConfig(retry_count=2, show_user_error=False),
        )
        if body.get("error"):
            raise RequestError(str(body["error"]))
        if not body.get("success"):
            raise RequestError(str(body.get("message") or "failed to fetch stamina"))
        return StaminaInfo(
            used=_to_int(body.get("已用体力")),
            total=_to_int(body.get("总体力"), 10_000),
            last_update=body.get("last_update_time") or None,
        )

    async def test_credential(self, request: GenerationRequest) -> CredentialCheck:
        """Probe ``/test_api_key`` with the real drawing parameters."""

        try:
            body = await self.client.request(
                TEST_API_KEY_ENDPOINT,
                body=build_generate_payload(request),
                config=RequestConfig(retry_count=1, show_user_error=False),
            )
        except RequestError as exc:
            self.log.warning("huatu.credential.test_failed error=%s", exc)
            return CredentialCheck(valid=False, message=str(exc))

        if body.get("error"):
            return CredentialCheck(valid=False, message=str(body["error"]))
        if not body.get("success"):
            return CredentialCheck(valid=False, message=str(body.get("message") or "credential test failed"))

        consume = _to_int(body.get("消耗体力"))
        return CredentialCheck(
            valid=True,
            message=f"credential is valid, estimated stamina cost: {consume}",
            consume_stamina=consume,
            used_stamina=_to_int(body.get("已用体力")),
            total_stamina=_to_int(body.get("总体力"), 10_000),
            request_id=str(body.get("请求ID") or ""),
        )


__all__ = [
    "CANCEL_TASK_ENDPOINT",
    "GENERATE_ENDPOINT",
    "GET_STAMINA_ENDPOINT",
    "HuatuApi",
    "JOB_RESULT_ENDPOINT",
    "TEST_API_KEY_ENDPOINT",
    "build_generate_payload",
]
