from __future__ import annotations

import pytest

from src.huatu.domain.models import PollStatus
from src.huatu.providers.status import decode_status, parse_job_result


@pytest.mark.parametrize("raw", ["SUCCESS", "success", "Success", " success "])
def test_success_is_case_insensitive(raw: str) -> None:
    assert decode_status(raw) is PollStatus.SUCCESS


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("FAILED", PollStatus.FAILURE),
        ("canceled", PollStatus.CANCELED),
        ("CANCELLED", PollStatus.CANCELED),
        ("WAITING", PollStatus.PENDING),
        ("processing", PollStatus.PENDING),
        ("USER_CANCEL_REQUESTED", PollStatus.CANCEL_LIKE),
        ("任务已取消", PollStatus.CANCEL_LIKE),
        ("QUEUED_SOMEWHERE", PollStatus.PENDING),
        ("", PollStatus.PENDING),
        (None, PollStatus.PENDING),
    ],
)
def test_decode_status(raw, expected) -> None:
    assert decode_status(raw) is expected


def test_parse_success_payload_extracts_images_and_stamina() -> None:
    outcome = parse_job_result(
        {
            "状态": "SUCCESS",
            "任务": "task-7",
            "images": ["https://img/1.png"],
            "已用体力": "120",
            "消耗体力": 8,
        }
    )

    assert outcome.status is PollStatus.SUCCESS
    assert outcome.images == ("https://img/1.png",)
    assert outcome.stamina is not None
    assert (outcome.stamina.used, outcome.stamina.consumed) == (120, 8)
    assert outcome.task == "task-7"


def test_parse_falls_back_to_status_field() -> None:
    outcome = parse_job_result({"status": "failed", "任务": "t"})

    assert outcome.status is PollStatus.FAILURE
    assert outcome.images == ()
