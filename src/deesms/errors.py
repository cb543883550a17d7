"""Исключения интеграции с OTP-провайдером DeeSMS."""

from __future__ import annotations

from typing import Optional


class OTPServiceError(Exception):
    """Базовое исключение для ошибок при работе с OTP."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class MissingInputError(OTPServiceError):
    """Не передано обязательное поле: телефон, код или токен."""


class InvalidPhoneFormatError(OTPServiceError):
    """Строка не похожа на номер телефона."""


class OTPNetworkError(OTPServiceError):
    """Провайдер не ответил (ошибка транспорта)."""


class OTPProviderError(OTPServiceError):
    """Провайдер ответил, но сообщил об ошибке."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        payload: Optional[dict] = None,
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.payload = payload or {}
