"""Пакет интеграции с SMS/OTP-провайдером DeeSMS."""

from .api_client import (
    OTPClient,
    OTPRequest,
    OTPTicket,
    OTPVerification,
    ProviderStatus,
    SMSReceipt,
    VerifyRequest,
    parse_provider_status,
)
from .errors import (
    InvalidPhoneFormatError,
    MissingInputError,
    OTPNetworkError,
    OTPProviderError,
    OTPServiceError,
)
from .phone import normalize_phone
from .service import request_otp, verify_otp

__all__ = [
    "InvalidPhoneFormatError",
    "MissingInputError",
    "OTPClient",
    "OTPNetworkError",
    "OTPProviderError",
    "OTPRequest",
    "OTPServiceError",
    "OTPTicket",
    "OTPVerification",
    "ProviderStatus",
    "SMSReceipt",
    "VerifyRequest",
    "normalize_phone",
    "parse_provider_status",
    "request_otp",
    "verify_otp",
]
