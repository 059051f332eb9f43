from __future__ import annotations

import asyncio

import httpx
import pytest

from src.huatu.exceptions import JobFailedError, PollTimeoutError, RequestError, ValidationError
from src.huatu.notifications import NotificationLevel
from src.huatu.services.cancellation import NOTHING_TO_CANCEL, TASK_CANCELED
from src.huatu.services.container import build_engine
from tests.conftest import CREDENTIAL, valid_params

WAITING = {"状态": "WAITING"}


def _engine(app_config, backend, notifier, clock, sleep):
    return build_engine(app_config, http=backend.client(), notifier=notifier, clock=clock, sleep=sleep)


@pytest.mark.asyncio
async def test_successful_generation(app_config, backend, notifier, clock, fake_sleep) -> None:
    backend.queue("/generate", {"job_id": "abc"})
    backend.queue(
        "/jobResult",
        WAITING,
        WAITING,
        WAITING,
        {"状态": "SUCCESS", "images": ["https://cdn/img.png"], "已用体力": 40, "消耗体力": 4, "任务": "t-1"},
    )
    engine = _engine(app_config, backend, notifier, clock, fake_sleep)
    progress: list[tuple[float, str]] = []

    result = await engine.generate(valid_params(), on_progress=lambda p, m: progress.append((p, m)))

    payload = result.as_dict()
    assert payload["success"] is True
    assert payload["data"] == ["https://cdn/img.png"]
    assert payload["usage"] == {"used": 40, "consumed": 4}
    assert payload["jobId"] == "abc"
    assert engine.current_job() is None
    assert len(backend.calls("/jobResult")) == 4

    percents = [p for p, _ in progress]
    assert percents[:4] == [0, 5, 10, 15]
    assert percents[-1] == 100
    assert all(15 < p < 95 for p in percents[4:-1])
    assert percents == sorted(percents)
    assert engine.tracker.latest.percent == 100


@pytest.mark.asyncio
async def test_cancel_during_polling(app_config, backend, notifier, clock) -> None:
    backend.queue("/generate", {"job_id": "abc"})
    backend.queue("/jobResult", WAITING)
    backend.queue("/cancelTask", {"success": True})
    cancel_messages: list[str] = []

    async def cancelling_sleep(seconds: float) -> None:
        clock.advance(seconds)
        if not cancel_messages:
            cancel_messages.append(await engine.cancel_active())

    engine = _engine(app_config, backend, notifier, clock, cancelling_sleep)

    result = await engine.generate(valid_params())

    assert cancel_messages == [TASK_CANCELED]
    assert result.as_dict() == {
        "success": False,
        "canceled": True,
        "message": "task canceled",
        "jobId": "abc",
    }
    assert len(backend.calls("/jobResult")) == 1
    assert backend.calls("/cancelTask") == [{"job_id": "abc", "jjddApiKey": CREDENTIAL}]
    assert NotificationLevel.CANCELED in notifier.levels()
    assert NotificationLevel.ERROR not in notifier.levels()
    assert await engine.cancel_active() == NOTHING_TO_CANCEL


@pytest.mark.asyncio
async def test_every_poll_timing_out_exhausts_budget(app_config, backend, notifier, clock, fake_sleep) -> None:
    backend.queue("/generate", {"job_id": "abc"})
    backend.queue("/jobResult", httpx.ReadTimeout("timed out"))
    engine = _engine(app_config, backend, notifier, clock, fake_sleep)
    progress: list[float] = []

    with pytest.raises(PollTimeoutError):
        await engine.generate(valid_params(), on_progress=lambda p, _: progress.append(p))

    per_tick = app_config.poll.request.retry_count + 1
    assert len(backend.calls("/jobResult")) == app_config.poll.max_ticks * per_tick
    assert progress[-1] == -1
    assert notifier.levels()[-1] is NotificationLevel.ERROR
    assert engine.current_job() == "abc"


@pytest.mark.asyncio
async def test_missing_credential_makes_no_network_calls(app_config, backend, notifier, clock, fake_sleep) -> None:
    engine = _engine(app_config, backend, notifier, clock, fake_sleep)

    with pytest.raises(ValidationError):
        await engine.generate(valid_params(jjddApiKey=""))

    assert backend.requests == []
    assert engine.tracker.latest.percent == -1


@pytest.mark.asyncio
async def test_backend_failure_is_raised_and_slot_cleared(app_config, backend, notifier, clock, fake_sleep) -> None:
    backend.queue("/generate", {"job_id": "abc"})
    backend.queue("/jobResult", WAITING, {"状态": "FAILED", "任务": "t-2"})
    engine = _engine(app_config, backend, notifier, clock, fake_sleep)

    with pytest.raises(JobFailedError, match="t-2"):
        await engine.generate(valid_params())

    assert engine.current_job() is None
    assert notifier.messages[-1] == ("generation failed: generation task failed: t-2", NotificationLevel.ERROR)


@pytest.mark.asyncio
async def test_persisted_job_can_be_canceled_by_a_fresh_engine(
    app_config, settings_repo, backend, notifier, clock, fake_sleep
) -> None:
    settings_repo.set("last_job_id", "left-over")
    settings_repo.set("api_key", CREDENTIAL)
    backend.queue("/cancelTask", {"success": True})
    engine = _engine(app_config, backend, notifier, clock, fake_sleep)

    assert engine.current_job() == "left-over"
    assert await engine.cancel_active() == TASK_CANCELED
    assert settings_repo.get("last_job_id") is None


@pytest.mark.asyncio
async def test_confirmed_cancel_severs_in_flight_poll(app_config, backend, notifier, clock, fake_sleep) -> None:
    poll_started = asyncio.Event()

    async def hold_open(request: httpx.Request) -> httpx.Response:
        poll_started.set()
        await asyncio.Event().wait()
        return httpx.Response(200, json=WAITING)

    backend.queue("/generate", {"job_id": "abc"})
    backend.queue("/jobResult", hold_open)
    backend.queue("/cancelTask", {"success": True})
    engine = _engine(app_config, backend, notifier, clock, fake_sleep)

    task = asyncio.create_task(engine.generate(valid_params()))
    await poll_started.wait()

    assert await engine.cancel_active() == TASK_CANCELED
    result = await asyncio.wait_for(task, timeout=1)

    assert result.canceled is True
    assert len(engine.api.client.registry) == 0
    assert len(backend.calls("/jobResult")) == 1
    assert engine.current_job() is None


@pytest.mark.asyncio
async def test_submit_failure_notifies_once(app_config, backend, notifier, clock, fake_sleep) -> None:
    backend.queue("/generate", httpx.Response(500, text="down"))
    engine = _engine(app_config, backend, notifier, clock, fake_sleep)

    with pytest.raises(RequestError):
        await engine.generate(valid_params())

    assert notifier.levels().count(NotificationLevel.ERROR) == 1
