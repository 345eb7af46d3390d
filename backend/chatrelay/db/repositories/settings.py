"""Repository helpers for stored provider API keys."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from chatrelay.core.time import utcnow
from chatrelay.db import models
from chatrelay.providers.metadata import SUPPORTED_PROVIDERS


def api_key_setting(provider_id: str) -> str:
    return f"api_key_{provider_id}"


class SettingsRepository(ABC):
    """Persistent store of API keys, one optional key per provider."""

    @abstractmethod
    def get_api_key(self, provider_id: str) -> str | None: ...

    @abstractmethod
    def set_api_key(self, provider_id: str, key: str) -> None: ...

    @abstractmethod
    def delete_api_key(self, provider_id: str) -> None:
        """Remove a stored key; removing an absent key is a no-op."""

    def get_all_api_keys(self) -> dict[str, str | None]:
        return {provider_id: self.get_api_key(provider_id) for provider_id in SUPPORTED_PROVIDERS}


def get_setting(db: Session, key: str) -> models.Setting | None:
    return db.execute(select(models.Setting).where(models.Setting.key == key)).scalar_one_or_none()


def upsert_setting(db: Session, key: str, value: str) -> models.Setting:
    """Insert or overwrite a setting."""
    setting = get_setting(db, key)
    if setting is None:
        setting = models.Setting(key=key, value=value, updated_at=utcnow())
        db.add(setting)
    else:
        setting.value = value
        setting.updated_at = utcnow()
    db.commit()
    return setting


def delete_setting(db: Session, key: str) -> bool:
    setting = get_setting(db, key)
    if setting is None:
        return False
    db.delete(setting)
    db.commit()
    return True


class SqlSettingsRepository(SettingsRepository):
    """SettingsRepository over the ``settings`` table; one session per call."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def get_api_key(self, provider_id: str) -> str | None:
        with self._session_factory() as db:
            setting = get_setting(db, api_key_setting(provider_id))
            return setting.value if setting is not None else None

    def set_api_key(self, provider_id: str, key: str) -> None:
        with self._session_factory() as db:
            upsert_setting(db, api_key_setting(provider_id), key)

    def delete_api_key(self, provider_id: str) -> None:
        with self._session_factory() as db:
            delete_setting(db, api_key_setting(provider_id))


class InMemorySettingsRepository(SettingsRepository):
    def __init__(self, keys: dict[str, str] | None = None):
        self._lock = threading.Lock()
        self._keys: dict[str, str] = dict(keys or {})

    def get_api_key(self, provider_id: str) -> str | None:
        with self._lock:
            return self._keys.get(provider_id)

    def set_api_key(self, provider_id: str, key: str) -> None:
        with self._lock:
            self._keys[provider_id] = key

    def delete_api_key(self, provider_id: str) -> None:
        with self._lock:
            self._keys.pop(provider_id, None)
