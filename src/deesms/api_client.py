"""Асинхронный клиент OTP API DeeSMS."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from dotenv import load_dotenv

from .errors import MissingInputError, OTPNetworkError, OTPProviderError
from .phone import normalize_phone


API_BASE_URL = "https://apicall.deesmsx.com/v1"
DEFAULT_SENDER = "NANO-ZINCO"
DEFAULT_LANG = "th"

ENV_VAR_API_URL = "OTP_API_URL"
ENV_VAR_API_KEY = "OTP_API_KEY"
ENV_VAR_SECRET_KEY = "OTP_SECRET_KEY"
ENV_VAR_SENDER = "OTP_SENDER_NAME"
ENV_VAR_TIMEOUT = "OTP_TIMEOUT"

# Провайдер сообщает об успехе по-разному: status "success"/"200", code "0"/"200" (или числом)
SUCCESS_STATUSES = frozenset({"success", "200"})
SUCCESS_CODES = frozenset({"0", "200"})

load_dotenv()

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OTPRequest:
    """Запрос на отправку OTP."""

    to: str
    lang: Optional[str] = None
    sender: Optional[str] = None
    show_ref: bool = True


@dataclass(frozen=True)
class VerifyRequest:
    """Запрос на проверку OTP."""

    token: str
    pin: str


@dataclass(frozen=True)
class OTPTicket:
    """Успешно отправленный OTP: токен продолжения и код-референс для пользователя."""

    token: str
    ref: Optional[str] = None
    message: Optional[str] = None
    code: Optional[str] = None
    status: str = "success"

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "token": self.token,
            "ref": self.ref,
            "message": self.message,
            "code": self.code,
        }


@dataclass(frozen=True)
class OTPVerification:
    """Результат успешной проверки OTP."""

    message: Optional[str] = None
    code: Optional[str] = None
    status: str = "success"


@dataclass(frozen=True)
class SMSReceipt:
    """Ответ провайдера на отправку произвольного SMS."""

    message: Optional[str] = None
    code: Optional[str] = None
    status: str = "success"


@dataclass(frozen=True)
class ProviderStatus:
    """Нормализованный признак успеха ответа провайдера."""

    success: bool
    message: Optional[str] = None
    code: Optional[str] = None


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def provider_message(payload: dict) -> Optional[str]:
    """Текст сообщения провайдера, в каком бы поле он ни пришёл."""
    return payload.get("msg") or payload.get("message") or payload.get("detail") or None


def parse_provider_status(payload: dict) -> ProviderStatus:
    """
    Свести все варианты ответа провайдера к одному признаку успеха.

    Остальной код не должен сравнивать ``status``/``code`` напрямую.
    """
    status = _as_text(payload.get("status"))
    code = _as_text(payload.get("code"))
    success = (status is not None and status.lower() in SUCCESS_STATUSES) or code in SUCCESS_CODES
    return ProviderStatus(success=success, message=provider_message(payload), code=code)


def _mask_phone(phone: str) -> str:
    if len(phone) <= 4:
        return "*" * len(phone)
    return "*" * (len(phone) - 4) + phone[-4:]


class OTPClient:
    """Клиент для обращения к OTP API DeeSMS."""

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        *,
        base_url: str = API_BASE_URL,
        sender: str = DEFAULT_SENDER,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._secret_key = secret_key
        self._base_url = base_url.rstrip("/")
        self._sender = sender
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_env(
        cls,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "OTPClient":
        """Создать клиента, считав настройки из .env / переменных окружения."""

        return cls(
            api_key=os.getenv(ENV_VAR_API_KEY, ""),
            secret_key=os.getenv(ENV_VAR_SECRET_KEY, ""),
            base_url=os.getenv(ENV_VAR_API_URL) or API_BASE_URL,
            sender=os.getenv(ENV_VAR_SENDER) or DEFAULT_SENDER,
            timeout=float(os.getenv(ENV_VAR_TIMEOUT) or 10.0),
            transport=transport,
        )

    @property
    def sender(self) -> str:
        return self._sender

    def _credentials(self) -> dict:
        return {"secretKey": self._secret_key, "apiKey": self._api_key}

    async def _post(self, path: str, body: dict) -> tuple[int, dict]:
        """Базовый метод выполнения POST-запроса к API. Повторов нет."""

        url = f"{self._base_url}{path}"
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(url, json={**self._credentials(), **body}, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Ошибка сети при запросе %s: %s", url, exc)
            raise OTPNetworkError(f"Network error while calling {url}: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise OTPProviderError(
                f"Unexpected response from OTP provider (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from exc

        if not isinstance(payload, dict):
            raise OTPProviderError(
                f"Unexpected response from OTP provider (HTTP {response.status_code})",
                status_code=response.status_code,
            )

        return response.status_code, payload

    async def send_sms(self, to: str, msg: str, *, sender: Optional[str] = None) -> SMSReceipt:
        """Отправить произвольное SMS."""

        phone = normalize_phone(to)
        status_code, payload = await self._post(
            "/SMSWebService",
            {"to": phone, "sender": sender or self._sender, "msg": msg},
        )

        result = parse_provider_status(payload)
        if not result.success:
            raise OTPProviderError(
                result.message or "Failed to send SMS",
                status_code=status_code,
                payload=payload,
            )
        return SMSReceipt(message=result.message, code=result.code)

    async def request_otp(self, request: OTPRequest) -> OTPTicket:
        """
        Запросить OTP для номера.

        Returns:
            Токен продолжения (нужен для проверки) и ref, который видит пользователь.

        Raises:
            MissingInputError, InvalidPhoneFormatError: номер не прошёл нормализацию.
            OTPNetworkError: провайдер не ответил.
            OTPProviderError: провайдер вернул ошибку.
        """
        phone = normalize_phone(request.to)
        status_code, payload = await self._post(
            "/otp/request",
            {
                "to": phone,
                "sender": request.sender or self._sender,
                "lang": request.lang or DEFAULT_LANG,
                "isShowRef": "1" if request.show_ref else "0",
            },
        )

        result = parse_provider_status(payload)
        if not result.success:
            message = result.message or f"API Error: {payload.get('status') or payload.get('code')}"
            logger.info("Провайдер отказал в OTP для %s: %s", _mask_phone(phone), message)
            raise OTPProviderError(message, status_code=status_code, payload=payload)

        nested = payload.get("result") if isinstance(payload.get("result"), dict) else {}
        token = nested.get("token") or payload.get("token")
        ref = nested.get("ref") or payload.get("ref") or payload.get("ref_code")

        if not token:
            raise OTPProviderError("Failed to send OTP", status_code=status_code, payload=payload)

        logger.info("OTP отправлен на %s (ref=%s)", _mask_phone(phone), ref)
        return OTPTicket(token=token, ref=_as_text(ref), message=result.message, code=result.code)

    async def verify_otp(self, request: VerifyRequest) -> OTPVerification:
        """Проверить введённый пользователем код по токену из ``request_otp``."""

        if not request.token or not request.pin:
            raise MissingInputError("OTP code and token are required")

        status_code, payload = await self._post(
            "/otp/verify",
            {"token": request.token, "pin": request.pin},
        )

        result = parse_provider_status(payload)
        if not result.success:
            message = result.message or "Invalid OTP code"
            logger.info("OTP не подтверждён: %s", message)
            raise OTPProviderError(message, status_code=status_code, payload=payload)

        return OTPVerification(message=result.message, code=result.code)
