"""Database models and utilities for the durable settings slot."""

from .db_init import init_db
from .db_models import Base, SettingModel

__all__ = ["Base", "SettingModel", "init_db"]
