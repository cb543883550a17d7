"""Ядро витрины: сессия, PIN, корзина и сценарии входа."""

from .auth import AuthStore, LastIdentityCache, PinVault, SessionStore
from .cart import CartStore
from .checkout import CheckoutError, ShippingInfo, place_order
from .flows import AuthFlow, AuthState, FlowResult, PinStep
from .ids import generate_order_id, generate_uuid
from .pinpad import DigitPad
from .state import AppState
from .stores import PersistentStore, StoreNotLoadedError
from .timers import Countdown

__all__ = [
    "AppState",
    "AuthFlow",
    "AuthState",
    "AuthStore",
    "CartStore",
    "CheckoutError",
    "Countdown",
    "DigitPad",
    "FlowResult",
    "LastIdentityCache",
    "PersistentStore",
    "PinStep",
    "PinVault",
    "SessionStore",
    "ShippingInfo",
    "StoreNotLoadedError",
    "generate_order_id",
    "generate_uuid",
    "place_order",
]
