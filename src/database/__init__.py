"""Модуль работы с базой данных."""

from . import db
from .db import LocalStorage, create_order, init_db, list_orders

__all__ = ["db", "LocalStorage", "create_order", "init_db", "list_orders"]
