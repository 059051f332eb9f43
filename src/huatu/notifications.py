"""User-facing transient notifications.

The engine never talks to a UI directly. Whoever embeds it passes a
:class:`Notifier`; the default implementation only writes to the log.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)


class NotificationLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"
    CANCELED = "canceled"


class Notifier(Protocol):
    """Sink for transient, dismissible messages."""

    def notify(
        self,
        message: str,
        *,
        level: NotificationLevel = NotificationLevel.INFO,
        duration_ms: int = 3000,
    ) -> None:
        ...


class LoggingNotifier:
    """Notifier that only records messages in the application log."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def notify(
        self,
        message: str,
        *,
        level: NotificationLevel = NotificationLevel.INFO,
        duration_ms: int = 3000,
    ) -> None:
        log_level = logging.WARNING if level is NotificationLevel.ERROR else logging.INFO
        self._log.log(
            log_level,
            "huatu.notify %s",
            message,
            extra={"notification_level": level.value, "duration_ms": duration_ms},
        )


__all__ = ["LoggingNotifier", "NotificationLevel", "Notifier"]
