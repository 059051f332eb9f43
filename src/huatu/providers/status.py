"""Decoding of ``/jobResult`` payloads into poll outcomes."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..domain.models import PollOutcome, PollStatus, StaminaInfo

logger = logging.getLogger(__name__)

STATUS_FIELDS = ("状态", "status")
TASK_FIELD = "任务"
USED_STAMINA_FIELD = "已用体力"
CONSUMED_STAMINA_FIELD = "消耗体力"

SUCCESS_STATUSES = frozenset({"SUCCESS"})
FAILURE_STATUSES = frozenset({"FAILED"})
CANCELED_STATUSES = frozenset({"CANCELED", "CANCELLED"})
PENDING_STATUSES = frozenset({"WAITING", "PROCESSING", "PENDING"})

# Compatibility shim: the backend vocabulary for cancellation is not fixed, so
# anything mentioning one of these markers is treated as canceled.
CANCEL_MARKERS = ("CANCEL", "取消")


def is_cancel_like(text: str) -> bool:
    upper = text.upper()
    return any(marker in upper for marker in CANCEL_MARKERS)


def decode_status(raw: str | None) -> PollStatus:
    """Map a backend status string onto the closed :class:`PollStatus` set."""

    if raw is None:
        return PollStatus.PENDING
    status = str(raw).strip().upper()
    if not status:
        return PollStatus.PENDING
    if status in SUCCESS_STATUSES:
        return PollStatus.SUCCESS
    if status in FAILURE_STATUSES:
        return PollStatus.FAILURE
    if status in CANCELED_STATUSES:
        return PollStatus.CANCELED
    if status in PENDING_STATUSES:
        return PollStatus.PENDING
    if is_cancel_like(status):
        return PollStatus.CANCEL_LIKE
    logger.warning("huatu.status.unknown status=%s", status)
    return PollStatus.PENDING


def _to_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def read_status_field(payload: Mapping[str, Any]) -> str | None:
    for key in STATUS_FIELDS:
        value = payload.get(key)
        if value is not None:
            return str(value)
    return None


def parse_job_result(payload: Mapping[str, Any]) -> PollOutcome:
    """Build a :class:`PollOutcome` from a decoded ``/jobResult`` body."""

    raw_status = read_status_field(payload)
    status = decode_status(raw_status)
    task = payload.get(TASK_FIELD)
    task_id = str(task) if task is not None else None
    if status is PollStatus.SUCCESS:
        images = payload.get("images") or []
        return PollOutcome(
            status=status,
            images=tuple(images),
            stamina=StaminaInfo(
                used=_to_int(payload.get(USED_STAMINA_FIELD)),
                consumed=_to_int(payload.get(CONSUMED_STAMINA_FIELD)),
            ),
            task=task_id,
            raw_status=raw_status,
        )
    return PollOutcome(status=status, task=task_id, raw_status=raw_status)


__all__ = [
    "CANCEL_MARKERS",
    "decode_status",
    "is_cancel_like",
    "parse_job_result",
    "read_status_field",
]
