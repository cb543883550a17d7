"""Корзина покупателя."""

from __future__ import annotations

import logging
from typing import Any

from database.models import CartItem, Product

from .stores import PersistentStore


logger = logging.getLogger(__name__)

CART_KEY = "zinco_cart"


class CartStore(PersistentStore[list]):
    """
    Позиции корзины, уникальные по id товара.

    Итоги (количество и сумма) не хранятся, а считаются при каждом обращении.
    Ограничение по остатку на складе проверяет интерфейс, а не корзина.
    """

    key = CART_KEY

    def default(self) -> list:
        return []

    def decode(self, data: Any) -> list:
        merged: dict[str, CartItem] = {}
        for entry in data:
            try:
                item = CartItem.from_dict(entry)
            except (ValueError, TypeError, KeyError) as exc:
                logger.warning("Пропущена повреждённая позиция корзины: %s", exc)
                continue
            if item.product.id in merged:
                merged[item.product.id].quantity += item.quantity
            else:
                merged[item.product.id] = item
        return list(merged.values())

    def encode(self, value: list) -> list:
        return [item.to_dict() for item in value]

    @property
    def items(self) -> list[CartItem]:
        return [CartItem(product=item.product, quantity=item.quantity) for item in self.value]

    def quantity_of(self, product_id: str) -> int:
        for item in self.value:
            if item.product.id == product_id:
                return item.quantity
        return 0

    def total_items(self) -> int:
        return sum(item.quantity for item in self.value)

    def total_price(self) -> float:
        return sum(item.subtotal for item in self.value)

    async def add(self, product: Product, quantity: int = 1) -> None:
        if quantity < 1:
            raise ValueError(f"quantity must be positive, got {quantity}")

        items = self.items
        for item in items:
            if item.product.id == product.id:
                item.quantity += quantity
                break
        else:
            items.append(CartItem(product=product, quantity=quantity))
        await self.save(items)

    async def remove(self, product_id: str) -> None:
        items = [item for item in self.items if item.product.id != product_id]
        await self.save(items)

    async def set_quantity(self, product_id: str, quantity: int) -> None:
        """Задать количество. ``quantity <= 0`` удаляет позицию; отсутствующий товар не добавляется."""
        if quantity <= 0:
            await self.remove(product_id)
            return

        items = self.items
        for item in items:
            if item.product.id == product_id:
                item.quantity = quantity
                break
        await self.save(items)

    async def clear(self) -> None:
        await self.save([])
