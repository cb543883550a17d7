"""Сессия, PIN-коды и запомненный пользователь."""

from __future__ import annotations

import dataclasses
import hmac
import logging
from typing import Any, Optional

from database.db import LocalStorage
from database.models import LastIdentity, PinRecord, User

from .stores import PersistentStore


logger = logging.getLogger(__name__)

SESSION_KEY = "zinco_session"
PIN_KEY = "zinco_user_pins"
LAST_IDENTITY_KEY = "zinco_last_user"


class SessionStore(PersistentStore[Optional[User]]):
    """Текущий вошедший пользователь. ``authenticated`` истинно тогда и только тогда, когда есть user."""

    key = SESSION_KEY

    def default(self) -> Optional[User]:
        return None

    def decode(self, data: Any) -> Optional[User]:
        if not data.get("authenticated") or not data.get("user"):
            return None
        return User.from_dict(data["user"])

    def encode(self, value: User) -> dict:
        return {"authenticated": True, "user": value.to_dict()}


class PinVault(PersistentStore[list]):
    """PIN-коды по номерам телефонов, не более одного на номер."""

    key = PIN_KEY

    def default(self) -> list:
        return []

    def decode(self, data: Any) -> list:
        records: dict[str, PinRecord] = {}
        for entry in data:
            record = PinRecord.from_dict(entry)
            records[record.phone] = record
        return list(records.values())

    def encode(self, value: list) -> list:
        return [record.to_dict() for record in value]

    def get_pin(self, phone: str) -> Optional[str]:
        for record in self.value:
            if record.phone == phone:
                return record.pin
        return None

    def has_pin(self, phone: str) -> bool:
        return self.get_pin(phone) is not None

    def verify_pin(self, phone: str, candidate: str) -> bool:
        stored = self.get_pin(phone)
        if stored is None or candidate is None:
            return False
        return hmac.compare_digest(stored.encode(), candidate.encode())

    async def save_pin(self, phone: str, pin: str) -> None:
        records = [dataclasses.replace(record) for record in self.value]
        for record in records:
            if record.phone == phone:
                record.pin = pin
                break
        else:
            records.append(PinRecord(phone=phone, pin=pin))
        await self.save(records)


class LastIdentityCache(PersistentStore[Optional[LastIdentity]]):
    """Кого показать на экране ввода PIN. Переживает выход из аккаунта."""

    key = LAST_IDENTITY_KEY

    def default(self) -> Optional[LastIdentity]:
        return None

    def decode(self, data: Any) -> Optional[LastIdentity]:
        if data is None:
            return None
        return LastIdentity.from_dict(data)

    def encode(self, value: LastIdentity) -> dict:
        return value.to_dict()

    async def remember(self, user: User) -> None:
        await self.save(LastIdentity.from_user(user))

    async def clear(self) -> None:
        await self.save(None)


class AuthStore:
    """Операции входа/выхода поверх трёх хранилищ."""

    def __init__(self, storage: LocalStorage) -> None:
        self.session = SessionStore(storage)
        self.pins = PinVault(storage)
        self.last_identity_cache = LastIdentityCache(storage)

    @property
    def _stores(self) -> tuple:
        return (self.session, self.pins, self.last_identity_cache)

    def hydrate(self, items: dict[str, str]) -> None:
        for store in self._stores:
            store.hydrate(items.get(store.key))

    @property
    def is_loaded(self) -> bool:
        return all(store.is_loaded for store in self._stores)

    @property
    def user(self) -> Optional[User]:
        return self.session.value

    @property
    def is_authenticated(self) -> bool:
        return self.session.value is not None

    @property
    def last_identity(self) -> Optional[LastIdentity]:
        return self.last_identity_cache.value

    async def login(self, user: User) -> None:
        await self.session.save(user)
        await self.last_identity_cache.remember(user)
        logger.info("Вход пользователя %s", user.id)

    async def logout(self) -> None:
        await self.session.save(None)

    async def update_profile(self, **changes: Any) -> Optional[User]:
        """Частично обновить профиль. Без активной сессии ничего не делает."""
        current = self.session.value
        if current is None:
            return None
        updated = dataclasses.replace(current, **changes)
        await self.session.save(updated)
        await self.last_identity_cache.remember(updated)
        return updated

    def has_pin(self, phone: str) -> bool:
        return self.pins.has_pin(phone)

    def get_pin(self, phone: str) -> Optional[str]:
        return self.pins.get_pin(phone)

    def verify_pin(self, phone: str, candidate: str) -> bool:
        return self.pins.verify_pin(phone, candidate)

    async def save_pin(self, phone: str, pin: str) -> None:
        await self.pins.save_pin(phone, pin)

    async def clear_last_identity(self) -> None:
        await self.last_identity_cache.clear()
