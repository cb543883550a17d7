"""Состояние приложения, общее для всех экранов."""

from __future__ import annotations

from typing import Optional

from database.db import LocalStorage, PathLike

from .auth import AuthStore
from .cart import CartStore


class AppState:
    """
    Сессия, PIN-коды, запомненный пользователь и корзина.

    Создаётся один раз и передаётся потребителям явно. До завершения ``load()``
    ``is_loading`` истинно, а чтение любого хранилища бросает ``StoreNotLoadedError``.
    """

    def __init__(self, storage: LocalStorage) -> None:
        self.storage = storage
        self.auth = AuthStore(storage)
        self.cart = CartStore(storage)

    @property
    def is_loading(self) -> bool:
        return not (self.auth.is_loaded and self.cart.is_loaded)

    async def load(self) -> None:
        await self.storage.init()
        items = await self.storage.load_all()
        self.auth.hydrate(items)
        self.cart.hydrate(items.get(self.cart.key))

    @classmethod
    async def open(cls, db_path: Optional[PathLike] = None) -> "AppState":
        state = cls(LocalStorage(db_path))
        await state.load()
        return state
