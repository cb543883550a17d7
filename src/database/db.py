"""Работа с базой данных SQLite."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

import aiosqlite

from .models import Order, OrderItem


ENV_VAR_DB_PATH = "STOREFRONT_DB_PATH"
DB_PATH = Path(__file__).resolve().parents[2] / "data" / "storefront.db"

PathLike = Union[str, Path]


def resolve_db_path(db_path: Optional[PathLike] = None) -> Path:
    """Путь к базе: явный, из STOREFRONT_DB_PATH или по умолчанию."""
    return Path(db_path or os.getenv(ENV_VAR_DB_PATH) or DB_PATH)


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


async def init_db(db_path: Optional[PathLike] = None) -> None:
    """Инициализировать базу данных."""
    path = resolve_db_path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    async with aiosqlite.connect(path) as db:
        # Локальное хранилище: ключ -> JSON
        await db.execute("""
            CREATE TABLE IF NOT EXISTS storage (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        # Таблица заказов
        await db.execute("""
            CREATE TABLE IF NOT EXISTS orders (
                order_id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                account_phone TEXT NOT NULL,
                user_name TEXT NOT NULL,
                user_phone TEXT NOT NULL,
                items_json TEXT NOT NULL,
                total_amount REAL NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending',
                payment TEXT NOT NULL DEFAULT 'cod',
                delivery_address TEXT,
                notes TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT
            )
        """)

        await db.execute("CREATE INDEX IF NOT EXISTS idx_orders_account_phone ON orders (account_phone)")

        await db.commit()


class LocalStorage:
    """
    Долговременное хранилище «ключ -> строка» поверх SQLite.

    Значения непрозрачны: сериализацией занимаются сами хранилища состояния.
    """

    def __init__(self, db_path: Optional[PathLike] = None) -> None:
        self.db_path = resolve_db_path(db_path)

    async def init(self) -> None:
        await init_db(self.db_path)

    async def load_all(self) -> dict[str, str]:
        """Прочитать все ключи разом (загрузка при старте)."""
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute("SELECT key, value FROM storage") as cursor:
                rows = await cursor.fetchall()
        return {key: value for key, value in rows}

    async def get_item(self, key: str) -> Optional[str]:
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute("SELECT value FROM storage WHERE key = ?", (key,)) as cursor:
                row = await cursor.fetchone()
        return row[0] if row else None

    async def set_item(self, key: str, value: str) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """INSERT INTO storage (key, value, updated_at) VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at""",
                (key, value, _utcnow()),
            )
            await db.commit()

    async def remove_item(self, key: str) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DELETE FROM storage WHERE key = ?", (key,))
            await db.commit()


async def create_order(order: Order, db_path: Optional[PathLike] = None) -> Order:
    """Сохранить оформленный заказ."""
    async with aiosqlite.connect(resolve_db_path(db_path)) as db:
        now = _utcnow()
        await db.execute(
            """INSERT INTO orders
               (order_id, user_id, account_phone, user_name, user_phone, items_json, total_amount,
                status, payment, delivery_address, notes, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                order.id,
                order.user_id,
                order.account_phone,
                order.user_name,
                order.user_phone,
                json.dumps([item.to_dict() for item in order.items], ensure_ascii=False),
                order.total_amount,
                order.status,
                order.payment,
                order.delivery_address,
                order.notes,
                now,
                now,
            ),
        )
        await db.commit()
        order.created_at = datetime.fromisoformat(now)
        order.updated_at = order.created_at
        return order


async def list_orders(account_phone: str, db_path: Optional[PathLike] = None) -> list[Order]:
    """Заказы по номеру телефона из сессии, новые первыми."""
    async with aiosqlite.connect(resolve_db_path(db_path)) as db:
        db.row_factory = aiosqlite.Row
        async with db.execute(
            "SELECT * FROM orders WHERE account_phone = ? ORDER BY created_at DESC",
            (account_phone,),
        ) as cursor:
            rows = await cursor.fetchall()

    return [
        Order(
            id=row["order_id"],
            user_id=row["user_id"],
            account_phone=row["account_phone"],
            user_name=row["user_name"],
            user_phone=row["user_phone"],
            items=[OrderItem.from_dict(item) for item in json.loads(row["items_json"])],
            total_amount=row["total_amount"],
            status=row["status"],
            payment=row["payment"],
            delivery_address=row["delivery_address"],
            notes=row["notes"],
            created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
            updated_at=datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None,
        )
        for row in rows
    ]
