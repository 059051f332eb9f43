"""Infrastructure adapters backing the engine's durable state."""

from __future__ import annotations

from .settings_repository import SettingsRepository

__all__ = ["SettingsRepository"]
