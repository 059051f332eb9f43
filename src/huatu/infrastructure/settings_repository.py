"""Repository responsible for reading and writing persisted key/value settings."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import Session, sessionmaker

from ..db.db_models import SettingModel
from ..exceptions import handle_sqlalchemy_errors


class SettingsRepository:
    """Gateway to the ``settings`` table.

    Each key holds a single string value; writing a key replaces whatever was
    stored before, so the table behaves as a set of last-write-wins slots.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get(self, key: str) -> str | None:
        """Return the stored value or ``None`` when the key is absent."""

        with handle_sqlalchemy_errors(entity="settings"):
            with self._session_factory() as session:
                record = session.get(SettingModel, key)
                return record.value if record is not None else None

    def set(self, key: str, value: str) -> None:
        """Insert or overwrite ``key``."""

        with handle_sqlalchemy_errors(entity="settings"):
            with self._session_factory() as session:
                record = session.get(SettingModel, key)
                if record is None:
                    session.add(SettingModel(key=key, value=value, updated_at=datetime.now(timezone.utc)))
                else:
                    record.value = value
                    record.updated_at = datetime.now(timezone.utc)
                session.commit()

    def delete(self, key: str) -> None:
        """Remove ``key``; deleting a missing key is a no-op."""

        with handle_sqlalchemy_errors(entity="settings"):
            with self._session_factory() as session:
                record = session.get(SettingModel, key)
                if record is not None:
                    session.delete(record)
                    session.commit()
