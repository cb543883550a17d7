"""Приведение телефонных номеров к международному формату."""

from __future__ import annotations

import re
from typing import Optional

from .errors import InvalidPhoneFormatError, MissingInputError


COUNTRY_CODE = "66"
TRUNK_PREFIX = "0"

# 66 + минимум 8 цифр национального номера (городской 0X-XXX-XXXX)
MIN_CANONICAL_LENGTH = 10
# E.164
MAX_CANONICAL_LENGTH = 15

_NON_DIGITS = re.compile(r"\D")
_ALLOWED_PUNCTUATION = re.compile(r"^[\d\s\-\.\(\)\+]+$")


def normalize_phone(raw: Optional[str]) -> str:
    """
    Привести номер, введённый пользователем, к виду 66XXXXXXXXX.

    Пробелы, дефисы, скобки и плюс допускаются и выбрасываются.
    Буквы и прочие символы считаются ошибкой формата, а не мусором,
    который можно молча вырезать.

    Raises:
        MissingInputError: номер пустой или не передан.
        InvalidPhoneFormatError: номер не похож на мобильный/городской.
    """
    if not raw:
        raise MissingInputError("Phone number is required")

    if not _ALLOWED_PUNCTUATION.match(raw):
        raise InvalidPhoneFormatError("Invalid phone number format")

    cleaned = _NON_DIGITS.sub("", raw)

    if cleaned.startswith(TRUNK_PREFIX):
        cleaned = COUNTRY_CODE + cleaned[len(TRUNK_PREFIX):]
    elif not cleaned.startswith(COUNTRY_CODE):
        cleaned = COUNTRY_CODE + cleaned

    if not MIN_CANONICAL_LENGTH <= len(cleaned) <= MAX_CANONICAL_LENGTH:
        raise InvalidPhoneFormatError("Invalid phone number format")

    return cleaned
