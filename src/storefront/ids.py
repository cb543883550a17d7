"""Генерация идентификаторов."""

from __future__ import annotations

import uuid


def generate_uuid() -> str:
    """Случайный UUID v4 в виде 8-4-4-4-12 (нижний регистр)."""
    return str(uuid.uuid4())


def generate_order_id() -> str:
    """Короткий номер заказа для показа покупателю."""
    return str(uuid.uuid4())[:8].upper()
