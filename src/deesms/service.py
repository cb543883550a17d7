"""Тонкий слой с «удобными» сигнатурами поверх OTPClient."""

from __future__ import annotations

from typing import Optional, Union

from .api_client import OTPClient, OTPRequest, OTPTicket, OTPVerification, VerifyRequest
from .errors import MissingInputError


async def request_otp(
    client: OTPClient,
    phone_or_request: Union[str, OTPRequest, None],
    *,
    lang: Optional[str] = None,
) -> OTPTicket:
    """Запросить OTP по голому номеру или по готовому ``OTPRequest``."""

    if isinstance(phone_or_request, OTPRequest):
        request = phone_or_request
    else:
        request = OTPRequest(to=phone_or_request, lang=lang)
    return await client.request_otp(request)


async def verify_otp(
    client: OTPClient,
    phone_or_request: Union[str, VerifyRequest, None],
    code: Optional[str] = None,
    token: Optional[str] = None,
) -> OTPVerification:
    """Проверить OTP: ``verify_otp(client, VerifyRequest(...))`` или ``verify_otp(client, phone, code, token)``."""

    if isinstance(phone_or_request, VerifyRequest):
        return await client.verify_otp(phone_or_request)

    if not phone_or_request:
        raise MissingInputError("Phone number is required")
    if not code or not token:
        raise MissingInputError("OTP code and token are required")
    return await client.verify_otp(VerifyRequest(token=token, pin=code))
