"""FastAPI приложение витрины: вход по OTP/PIN, корзина и оформление заказа."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from database import list_orders
from database.db import PathLike
from database.models import Product
from deesms import OTPClient
from storefront import AppState, AuthFlow, CheckoutError, FlowResult, ShippingInfo, place_order
from storefront.logging_setup import setup_logging


ROOT_DIR = Path(__file__).resolve().parents[2]

# Загружаем переменные окружения
load_dotenv(ROOT_DIR / ".env")

logger = logging.getLogger(__name__)


class PhoneIn(BaseModel):
    phone: str
    lang: Optional[str] = None


class CodeIn(BaseModel):
    code: str


class PinIn(BaseModel):
    pin: str


class AccountSwitchIn(BaseModel):
    forget: bool = False


class ProfileIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    profile_picture: Optional[str] = None
    address: Optional[str] = None


class CartItemIn(BaseModel):
    product: dict
    quantity: int = Field(1, ge=1)


class QuantityIn(BaseModel):
    quantity: int


class ShippingIn(BaseModel):
    name: str
    phone: str
    address: str
    note: Optional[str] = None
    payment: str = "cod"


def _store(request: Request) -> AppState:
    return request.app.state.store


def _flow(request: Request) -> AuthFlow:
    return request.app.state.flow


def _flow_response(result: FlowResult) -> JSONResponse:
    return JSONResponse(result.to_dict(), status_code=200 if result.ok else 400)


def _cart_payload(store: AppState) -> dict:
    return {
        "items": [item.to_dict() for item in store.cart.items],
        "totalItems": store.cart.total_items(),
        "totalPrice": store.cart.total_price(),
    }


def _session_payload(store: AppState, flow: AuthFlow) -> dict:
    if store.is_loading:
        return {"loading": True}

    user = store.auth.user
    last_identity = store.auth.last_identity
    return {
        "loading": False,
        "authenticated": store.auth.is_authenticated,
        "user": user.to_dict() if user else None,
        "lastIdentity": last_identity.to_dict() if last_identity else None,
        "state": flow.state.value,
        "pinStep": flow.pin_step.value,
        "pinAttempts": flow.pin_attempts,
        "lockedOut": flow.locked_out,
        "canResend": flow.can_resend,
        "resendIn": flow.resend_countdown.remaining,
        "ref": flow.challenge.ref if flow.challenge else None,
        "error": flow.error,
    }


def create_app(
    *,
    db_path: Optional[PathLike] = None,
    otp_client: Optional[OTPClient] = None,
) -> FastAPI:
    """Собрать приложение. Хранилище загружается при старте, до обработки запросов."""

    app = FastAPI(title="Zinco Storefront")

    @app.on_event("startup")
    async def startup():
        """Инициализация при запуске."""
        setup_logging()
        app.state.store = await AppState.open(db_path)
        app.state.flow = AuthFlow(app.state.store.auth, otp_client or OTPClient.from_env())
        logger.info("Хранилище загружено: %s", app.state.store.storage.db_path)

    @app.on_event("shutdown")
    async def shutdown():
        app.state.flow.close()

    @app.get("/health")
    async def health():
        return JSONResponse({"status": "ok"})

    @app.get("/api/session")
    async def get_session(request: Request):
        return JSONResponse(_session_payload(_store(request), _flow(request)))

    @app.post("/api/auth/otp/request")
    async def request_otp(request: Request, body: PhoneIn):
        return _flow_response(await _flow(request).request_otp(body.phone, lang=body.lang))

    @app.post("/api/auth/otp/resend")
    async def resend_otp(request: Request):
        return _flow_response(await _flow(request).resend_otp())

    @app.post("/api/auth/otp/verify")
    async def verify_otp(request: Request, body: CodeIn):
        return _flow_response(await _flow(request).verify_otp(body.code))

    @app.post("/api/auth/pin/start")
    async def start_pin_entry(request: Request):
        return _flow_response(_flow(request).start_pin_entry())

    @app.post("/api/auth/pin")
    async def submit_pin(request: Request, body: PinIn):
        """Набранный PIN: шаг «задать», «подтвердить» или «ввести» — по текущему состоянию."""
        return _flow_response(await _flow(request).submit_pin(body.pin))

    @app.post("/api/auth/pin/skip")
    async def skip_pin(request: Request):
        return _flow_response(await _flow(request).skip_pin_setup())

    @app.post("/api/auth/switch-account")
    async def switch_account(request: Request, body: AccountSwitchIn):
        return _flow_response(await _flow(request).use_different_account(forget=body.forget))

    @app.post("/api/auth/logout")
    async def logout(request: Request):
        return _flow_response(await _flow(request).logout())

    @app.patch("/api/profile")
    async def update_profile(request: Request, body: ProfileIn):
        user = await _store(request).auth.update_profile(**body.model_dump(exclude_none=True))
        if user is None:
            return JSONResponse({"error": "Not authenticated"}, status_code=401)
        return JSONResponse({"success": True, "user": user.to_dict()})

    @app.get("/api/cart")
    async def get_cart(request: Request):
        return JSONResponse(_cart_payload(_store(request)))

    @app.post("/api/cart/items")
    async def add_to_cart(request: Request, body: CartItemIn):
        store = _store(request)
        try:
            product = Product.from_dict(body.product)
        except (KeyError, TypeError, ValueError) as exc:
            return JSONResponse({"error": f"Invalid product: {exc}"}, status_code=400)
        await store.cart.add(product, body.quantity)
        return JSONResponse(_cart_payload(store))

    @app.put("/api/cart/items/{product_id}")
    async def set_quantity(request: Request, product_id: str, body: QuantityIn):
        store = _store(request)
        await store.cart.set_quantity(product_id, body.quantity)
        return JSONResponse(_cart_payload(store))

    @app.delete("/api/cart/items/{product_id}")
    async def remove_from_cart(request: Request, product_id: str):
        store = _store(request)
        await store.cart.remove(product_id)
        return JSONResponse(_cart_payload(store))

    @app.delete("/api/cart")
    async def clear_cart(request: Request):
        store = _store(request)
        await store.cart.clear()
        return JSONResponse(_cart_payload(store))

    @app.post("/api/checkout")
    async def checkout(request: Request, body: ShippingIn):
        """Оформить заказ (без оплаты): сохранить его и очистить корзину."""
        try:
            order = await place_order(_store(request), ShippingInfo(**body.model_dump()))
        except CheckoutError as exc:
            return JSONResponse({"error": str(exc)}, status_code=409)
        return JSONResponse({
            "success": True,
            "order_id": order.id,
            "status": order.status,
            "total": order.total_amount,
            "order": order.to_dict(),
        })

    @app.get("/api/orders")
    async def get_orders(request: Request):
        store = _store(request)
        user = store.auth.user
        if user is None:
            return JSONResponse({"error": "Not authenticated"}, status_code=401)
        orders = await list_orders(user.phone, store.storage.db_path)
        return JSONResponse({"success": True, "data": [order.to_dict() for order in orders]})

    return app


app = create_app()
