"""Progress reporting helpers."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from ..domain.models import ProgressSnapshot

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], Any]

ERROR_PERCENT = -1


class ProgressReporter:
    """Wrap a caller-supplied ``(percent, message)`` callback.

    Exceptions raised by the callback never reach the engine. An optional
    ``offset``/``scale`` pair maps a sub-stage's 0..100 range onto a slice of
    the overall progress bar; the error value ``-1`` is passed through as is.
    """

    def __init__(
        self,
        callback: ProgressCallback | None = None,
        *,
        offset: float = 0.0,
        scale: float = 1.0,
        log: logging.Logger | None = None,
    ) -> None:
        self._callback = callback
        self._offset = offset
        self._scale = scale
        self._log = log or logger

    def scaled(self, offset: float, scale: float) -> "ProgressReporter":
        return ProgressReporter(self._callback, offset=offset, scale=scale, log=self._log)

    def _map(self, percent: float) -> float:
        if percent == ERROR_PERCENT:
            return ERROR_PERCENT
        return self._offset + percent * self._scale

    def report(self, percent: float, message: str) -> None:
        if self._callback is None:
            return
        try:
            self._callback(self._map(percent), message)
        except Exception:  # noqa: BLE001 - callback errors must not break polling
            self._log.debug("huatu.progress.callback_failed", exc_info=True)

    def error(self, message: str) -> None:
        self.report(ERROR_PERCENT, message)


class ProgressTracker:
    """Keeps the latest snapshot so it can be served to pollers of the HTTP API."""

    def __init__(self) -> None:
        self._latest = ProgressSnapshot(percent=0, message="idle")

    @property
    def latest(self) -> ProgressSnapshot:
        return self._latest

    def __call__(self, percent: float, message: str) -> None:
        self._latest = ProgressSnapshot(percent=percent, message=message)


__all__ = ["ERROR_PERCENT", "ProgressCallback", "ProgressReporter", "ProgressTracker"]
