from __future__ import annotations

from src.huatu.services.progress import ProgressReporter, ProgressTracker


def test_callback_errors_are_swallowed() -> None:
    def explode(percent: float, message: str) -> None:
        raise RuntimeError("ui went away")

    ProgressReporter(explode).report(10, "sending")


def test_scaled_reporter_maps_range_but_keeps_error_marker() -> None:
    seen: list[float] = []
    reporter = ProgressReporter(lambda percent, _: seen.append(percent)).scaled(15, 0.8)

    reporter.report(0, "start")
    reporter.report(100, "end")
    reporter.error("boom")

    assert seen == [15, 95, -1]


def test_tracker_keeps_latest_snapshot() -> None:
    tracker = ProgressTracker()

    assert tracker.latest.message == "idle"
    tracker(40, "generating")
    assert (tracker.latest.percent, tracker.latest.message) == (40, "generating")
