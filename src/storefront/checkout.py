"""Оформление заказа: данные доставки и очистка корзины. Оплаты здесь нет."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from database.db import create_order
from database.models import Order, OrderItem

from .ids import generate_order_id
from .state import AppState


logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("cod", "bank")


class CheckoutError(Exception):
    """Заказ нельзя оформить в текущем состоянии."""


@dataclass(frozen=True)
class ShippingInfo:
    name: str
    phone: str
    address: str
    note: Optional[str] = None
    payment: str = "cod"

    def validate(self) -> None:
        missing = [field for field in ("name", "phone", "address") if not (getattr(self, field) or "").strip()]
        if missing:
            raise CheckoutError(f"Missing shipping fields: {', '.join(missing)}")
        if self.payment not in PAYMENT_METHODS:
            raise CheckoutError(f"Unknown payment method: {self.payment}")


async def place_order(state: AppState, shipping: ShippingInfo) -> Order:
    """Сохранить заказ из текущей корзины и очистить корзину."""

    user = state.auth.user
    if user is None:
        raise CheckoutError("Please log in before checking out")

    items = state.cart.items
    if not items:
        raise CheckoutError("Your cart is empty")

    shipping.validate()

    order = Order(
        id=generate_order_id(),
        user_id=user.id,
        account_phone=user.phone,
        user_name=shipping.name.strip(),
        user_phone=shipping.phone.strip(),
        items=[OrderItem.from_cart_item(item) for item in items],
        total_amount=state.cart.total_price(),
        payment=shipping.payment,
        delivery_address=shipping.address.strip(),
        notes=shipping.note,
    )
    await create_order(order, state.storage.db_path)
    await state.cart.clear()

    logger.info("Заказ %s оформлен: %s позиций на сумму %.2f", order.id, len(order.items), order.total_amount)
    return order
