"""Модели данных витрины."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class User:
    """Учётная запись, созданная после подтверждения OTP."""

    id: str
    phone: str
    name: str
    email: Optional[str] = None
    profile_picture: Optional[str] = None
    address: Optional[str] = None
    is_admin: bool = False
    created_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        return cls(
            id=data["id"],
            phone=data["phone"],
            name=data["name"],
            email=data.get("email"),
            profile_picture=data.get("profilePicture"),
            address=data.get("address"),
            is_admin=bool(data.get("isAdmin", False)),
            created_at=data.get("createdAt"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "phone": self.phone,
            "name": self.name,
            "email": self.email,
            "profilePicture": self.profile_picture,
            "address": self.address,
            "isAdmin": self.is_admin,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class LastIdentity:
    """Последний вошедший пользователь (для экрана ввода PIN после выхода)."""

    phone: str
    name: str
    image: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "LastIdentity":
        return cls(phone=user.phone, name=user.name, image=user.profile_picture)

    @classmethod
    def from_dict(cls, data: dict) -> "LastIdentity":
        return cls(phone=data["phone"], name=data["name"], image=data.get("image"))

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PinRecord:
    """PIN, привязанный к номеру телефона."""

    phone: str
    pin: str

    @classmethod
    def from_dict(cls, data: dict) -> "PinRecord":
        return cls(phone=data["phone"], pin=str(data["pin"]))

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Product:
    """Товар каталога. Корзина читает только id, price и stock."""

    id: str
    name: str
    price: float
    description: str = ""
    image_url: Optional[str] = None
    stock: int = 0
    category: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Product":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            price=float(data["price"]),
            description=data.get("description") or "",
            image_url=data.get("imageUrl") or data.get("image"),
            stock=int(data.get("stock") or 0),
            category=data.get("category"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "description": self.description,
            "imageUrl": self.image_url,
            "stock": self.stock,
            "category": self.category,
        }


@dataclass
class CartItem:
    """Элемент корзины."""

    product: Product
    quantity: int = 1

    @property
    def subtotal(self) -> float:
        return self.product.price * self.quantity

    @classmethod
    def from_dict(cls, data: dict) -> "CartItem":
        quantity = int(data["quantity"])
        if quantity <= 0:
            raise ValueError(f"quantity must be positive, got {quantity}")
        return cls(product=Product.from_dict(data["product"]), quantity=quantity)

    def to_dict(self) -> dict:
        return {"product": self.product.to_dict(), "quantity": self.quantity}


@dataclass
class OrderItem:
    """Позиция заказа (снимок товара на момент оформления)."""

    product_id: str
    product_name: str
    quantity: int
    price: float

    @classmethod
    def from_cart_item(cls, item: CartItem) -> "OrderItem":
        return cls(
            product_id=item.product.id,
            product_name=item.product.name,
            quantity=item.quantity,
            price=item.product.price,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "OrderItem":
        return cls(
            product_id=data["productId"],
            product_name=data["productName"],
            quantity=int(data["quantity"]),
            price=float(data["price"]),
        )

    def to_dict(self) -> dict:
        return {
            "productId": self.product_id,
            "productName": self.product_name,
            "quantity": self.quantity,
            "price": self.price,
        }


@dataclass
class Order:
    """Модель заказа."""

    id: str
    user_id: str
    account_phone: str  # номер из сессии, по нему ищется история заказов
    user_name: str
    user_phone: str
    items: list[OrderItem] = field(default_factory=list)
    total_amount: float = 0.0
    status: str = "pending"  # pending, confirmed, shipped, delivered, cancelled
    payment: str = "cod"  # cod, bank
    delivery_address: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "accountPhone": self.account_phone,
            "userName": self.user_name,
            "userPhone": self.user_phone,
            "items": [item.to_dict() for item in self.items],
            "totalAmount": self.total_amount,
            "status": self.status,
            "payment": self.payment,
            "deliveryAddress": self.delivery_address,
            "notes": self.notes,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
