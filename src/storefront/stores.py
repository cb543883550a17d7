"""Базовый класс для состояний, сохраняемых в локальном хранилище."""

from __future__ import annotations

import json
import logging
from typing import Any, Generic, Optional, TypeVar

from database.db import LocalStorage


logger = logging.getLogger(__name__)

T = TypeVar("T")


class StoreNotLoadedError(RuntimeError):
    """Состояние прочитано до завершения загрузки из хранилища."""


class PersistentStore(Generic[T]):
    """
    Значение, загружаемое один раз при старте и перезаписываемое целиком при каждом изменении.

    Подклассы задают ``key`` и умеют кодировать/декодировать значение в JSON-совместимый вид.
    Запись в хранилище всегда идёт до обновления значения в памяти, поэтому при ошибке
    записи память не расходится с диском.
    """

    key: str = ""

    def __init__(self, storage: LocalStorage) -> None:
        self._storage = storage
        self._value: T = self.default()
        self._loaded = False

    def default(self) -> T:
        raise NotImplementedError

    def decode(self, data: Any) -> T:
        raise NotImplementedError

    def encode(self, value: T) -> Any:
        raise NotImplementedError

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def hydrate(self, raw: Optional[str]) -> None:
        """Принять сырое значение из хранилища. Битые данные заменяются значением по умолчанию."""
        value = self.default()
        if raw is not None:
            try:
                value = self.decode(json.loads(raw))
            except (ValueError, TypeError, KeyError, AttributeError) as exc:
                logger.warning("Повреждённые данные по ключу %s, используется значение по умолчанию: %s", self.key, exc)
                value = self.default()
        self._value = value
        self._loaded = True

    def _require_loaded(self) -> None:
        if not self._loaded:
            raise StoreNotLoadedError(f"{type(self).__name__} is still loading")

    @property
    def value(self) -> T:
        self._require_loaded()
        return self._value

    async def save(self, value: T) -> None:
        """Записать значение целиком; ``None`` удаляет ключ."""
        self._require_loaded()
        if value is None:
            await self._storage.remove_item(self.key)
        else:
            await self._storage.set_item(self.key, json.dumps(self.encode(value), ensure_ascii=False))
        self._value = value
