"""Сценарии входа: запрос и проверка OTP, создание и ввод PIN."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from database.models import User
from deesms import (
    InvalidPhoneFormatError,
    MissingInputError,
    OTPClient,
    OTPNetworkError,
    OTPRequest,
    OTPServiceError,
    VerifyRequest,
    normalize_phone,
)

from .auth import AuthStore
from .ids import generate_uuid
from .pinpad import DigitPad
from .timers import Countdown


logger = logging.getLogger(__name__)

OTP_LENGTH = 6
PIN_LENGTH = 6
RESEND_COOLDOWN = 60
MAX_PIN_ATTEMPTS = 3
LOCKOUT_DELAY = 1.5

MSG_ENTER_ALL_DIGITS = "Please enter all 6 digits"
MSG_PIN_MISMATCH = "PINs do not match. Please try again."
MSG_PIN_INCORRECT = "Incorrect PIN. Please try again."
MSG_LOCKED_OUT = "Too many attempts. Redirecting to login..."
MSG_NO_PHONE = "Phone number not found"
MSG_NO_USER_PHONE = "User phone not found"


class AuthState(str, Enum):
    ANONYMOUS = "anonymous"
    OTP_REQUESTED = "otp_requested"
    OTP_VERIFIED = "otp_verified"
    PIN_SETUP_PENDING = "pin_setup_pending"
    PIN_ENTRY_PENDING = "pin_entry_pending"
    AUTHENTICATED = "authenticated"


class PinStep(str, Enum):
    SET = "set"
    CONFIRM = "confirm"


@dataclass(frozen=True)
class FlowResult:
    """Итог шага сценария. Отказ провайдера или неверный PIN — это результат, а не исключение."""

    status: str
    state: AuthState
    message: Optional[str] = None
    reason: Optional[str] = None
    ref: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "state": self.state.value,
            "message": self.message,
            "reason": self.reason,
            "ref": self.ref,
        }


@dataclass(frozen=True)
class OTPChallenge:
    """Данные отправленного OTP, живут только до конца сценария."""

    phone: str
    token: str
    ref: Optional[str] = None


def _reason_for(exc: OTPServiceError) -> str:
    if isinstance(exc, MissingInputError):
        return "missing_input"
    if isinstance(exc, InvalidPhoneFormatError):
        return "invalid_format"
    if isinstance(exc, OTPNetworkError):
        return "network"
    return "provider"


class AuthFlow:
    """
    Конечный автомат входа.

    ANONYMOUS -> OTP_REQUESTED -> OTP_VERIFIED -> PIN_SETUP_PENDING | PIN_ENTRY_PENDING -> AUTHENTICATED

    Таймеры (повторная отправка, задержка после блокировки) принадлежат сценарию
    и отменяются в ``close()``; удобнее всего использовать сценарий как ``async with``.
    """

    def __init__(
        self,
        auth: AuthStore,
        client: OTPClient,
        *,
        lang: Optional[str] = None,
        resend_cooldown: int = RESEND_COOLDOWN,
        tick_interval: float = 1.0,
        max_pin_attempts: int = MAX_PIN_ATTEMPTS,
        lockout_delay: float = LOCKOUT_DELAY,
    ) -> None:
        self._auth = auth
        self._client = client
        self._lang = lang
        self.max_pin_attempts = max_pin_attempts

        self.state = AuthState.AUTHENTICATED if auth.is_loaded and auth.is_authenticated else AuthState.ANONYMOUS
        self.challenge: Optional[OTPChallenge] = None
        self.error: Optional[str] = None

        self.otp_pad = DigitPad(OTP_LENGTH)
        self.pin_pad = DigitPad(PIN_LENGTH)
        self.confirm_pad = DigitPad(PIN_LENGTH)
        self.pin_step = PinStep.SET
        self.pin_attempts = 0
        self.locked_out = False

        self.resend_countdown = Countdown(resend_cooldown, interval=tick_interval)
        self.lockout_countdown = Countdown(1, interval=lockout_delay, on_finish=self._finish_lockout)

    async def __aenter__(self) -> "AuthFlow":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.resend_countdown.cancel()
        self.lockout_countdown.cancel()

    # --- результаты ---

    def _success(self, message: Optional[str] = None, *, ref: Optional[str] = None) -> FlowResult:
        self.error = None
        return FlowResult(status="success", state=self.state, message=message, ref=ref)

    def _fail(self, reason: str, message: str) -> FlowResult:
        self.error = message
        return FlowResult(status="error", state=self.state, message=message, reason=reason)

    def _expect(self, *states: AuthState) -> Optional[FlowResult]:
        if self.state in states:
            return None
        return self._fail("invalid_state", f"Not allowed while {self.state.value}")

    # --- OTP ---

    @property
    def can_resend(self) -> bool:
        return self.state == AuthState.OTP_REQUESTED and self.resend_countdown.finished

    @property
    def pin_phone(self) -> Optional[str]:
        """Номер, по которому проверяется PIN: из сессии, иначе из запомненного пользователя."""
        if self._auth.user is not None:
            return self._auth.user.phone
        if self._auth.last_identity is not None:
            return self._auth.last_identity.phone
        return None

    async def request_otp(self, phone: str, *, lang: Optional[str] = None) -> FlowResult:
        rejected = self._expect(AuthState.ANONYMOUS, AuthState.OTP_REQUESTED)
        if rejected:
            return rejected
        if self.state == AuthState.OTP_REQUESTED and not self.resend_countdown.finished:
            return self._cooldown_failure()

        try:
            ticket = await self._client.request_otp(OTPRequest(to=phone, lang=lang or self._lang))
        except OTPServiceError as exc:
            return self._fail(_reason_for(exc), exc.message)

        self.challenge = OTPChallenge(phone=normalize_phone(phone), token=ticket.token, ref=ticket.ref)
        self.state = AuthState.OTP_REQUESTED
        self.otp_pad.clear()
        self._restart_resend_countdown()
        return self._success(ticket.message, ref=ticket.ref)

    async def resend_otp(self) -> FlowResult:
        rejected = self._expect(AuthState.OTP_REQUESTED)
        if rejected:
            return rejected
        if not self.resend_countdown.finished:
            return self._cooldown_failure()

        try:
            ticket = await self._client.request_otp(OTPRequest(to=self.challenge.phone, lang=self._lang))
        except OTPServiceError as exc:
            return self._fail(_reason_for(exc), exc.message)

        self.challenge = dataclasses.replace(self.challenge, token=ticket.token, ref=ticket.ref)
        self.otp_pad.clear()
        self._restart_resend_countdown()
        return self._success(ticket.message, ref=ticket.ref)

    def _cooldown_failure(self) -> FlowResult:
        return self._fail(
            "resend_not_allowed",
            f"Please wait {self.resend_countdown.remaining} seconds before requesting a new code",
        )

    def _restart_resend_countdown(self) -> None:
        self.resend_countdown.reset()
        self.resend_countdown.start()

    async def verify_otp(self, code: Optional[str] = None) -> FlowResult:
        """Проверить код из ``otp_pad`` (или переданный явно) и войти."""
        rejected = self._expect(AuthState.OTP_REQUESTED)
        if rejected:
            return rejected

        code = self.otp_pad.code if code is None else code
        if len(code) != OTP_LENGTH or not all(ch in "0123456789" for ch in code):
            return self._fail("missing_input", MSG_ENTER_ALL_DIGITS)

        try:
            await self._client.verify_otp(VerifyRequest(token=self.challenge.token, pin=code))
        except OTPServiceError as exc:
            return self._fail(_reason_for(exc), exc.message)

        phone = self.challenge.phone
        self.state = AuthState.OTP_VERIFIED
        self.resend_countdown.cancel()
        self.challenge = None
        self.otp_pad.clear()

        await self._auth.login(
            User(
                id=generate_uuid(),
                phone=phone,
                name=f"User {phone[-4:]}",
                created_at=datetime.now(timezone.utc).isoformat(),
            )
        )

        if self._auth.has_pin(phone):
            self._begin_pin_entry()
        else:
            self._begin_pin_setup()
        return self._success()

    # --- PIN ---

    def _begin_pin_setup(self) -> None:
        self.state = AuthState.PIN_SETUP_PENDING
        self.pin_step = PinStep.SET
        self.pin_pad.clear()
        self.confirm_pad.clear()

    def _begin_pin_entry(self) -> None:
        self.state = AuthState.PIN_ENTRY_PENDING
        self.pin_attempts = 0
        self.locked_out = False
        self.pin_pad.clear()

    def start_pin_entry(self) -> FlowResult:
        """Вход по PIN для вернувшегося пользователя, без OTP."""
        rejected = self._expect(AuthState.ANONYMOUS)
        if rejected:
            return rejected
        if self.pin_phone is None:
            return self._fail("no_identity", MSG_NO_PHONE)
        self._begin_pin_entry()
        return self._success()

    async def enter_pin_digit(self, index: int, value: str) -> Optional[FlowResult]:
        """
        Ввод одной цифры PIN. Возвращает ``None``, пока код не набран полностью.
        """
        rejected = self._expect(AuthState.PIN_SETUP_PENDING, AuthState.PIN_ENTRY_PENDING)
        if rejected:
            return rejected

        if self.state == AuthState.PIN_SETUP_PENDING:
            pad = self.pin_pad if self.pin_step == PinStep.SET else self.confirm_pad
            code = pad.enter(index, value)
            if code is None:
                return None
            return await self._complete_setup_step(code)

        if self.locked_out:
            return self._fail("locked_out", MSG_LOCKED_OUT)
        code = self.pin_pad.enter(index, value)
        if code is None:
            return None
        return await self._check_pin(code)

    async def submit_pin(self, pin: str) -> FlowResult:
        """Ввести PIN целиком (для клиентов без поячеечного ввода)."""
        rejected = self._expect(AuthState.PIN_SETUP_PENDING, AuthState.PIN_ENTRY_PENDING)
        if rejected:
            return rejected

        if self.state == AuthState.PIN_SETUP_PENDING:
            pad = self.pin_pad if self.pin_step == PinStep.SET else self.confirm_pad
            code = pad.fill(pin or "")
            if code is None:
                return self._fail("missing_input", MSG_ENTER_ALL_DIGITS)
            return await self._complete_setup_step(code)

        if self.locked_out:
            return self._fail("locked_out", MSG_LOCKED_OUT)
        code = self.pin_pad.fill(pin or "")
        if code is None:
            return self._fail("missing_input", MSG_ENTER_ALL_DIGITS)
        return await self._check_pin(code)

    async def _complete_setup_step(self, code: str) -> FlowResult:
        if self.pin_step == PinStep.SET:
            self.pin_step = PinStep.CONFIRM
            self.confirm_pad.clear()
            return self._success()

        if self.pin_pad.code != code:
            self._begin_pin_setup()
            return self._fail("pin_mismatch", MSG_PIN_MISMATCH)

        user = self._auth.user
        if user is None:
            return self._fail("no_identity", MSG_NO_USER_PHONE)

        await self._auth.save_pin(user.phone, code)
        self.state = AuthState.AUTHENTICATED
        self.pin_pad.clear()
        self.confirm_pad.clear()
        return self._success()

    async def _check_pin(self, code: str) -> FlowResult:
        phone = self.pin_phone
        if phone is None:
            return self._fail("no_identity", MSG_NO_PHONE)

        if self._auth.verify_pin(phone, code):
            if not self._auth.is_authenticated:
                await self._restore_session()
            self.state = AuthState.AUTHENTICATED
            self.pin_attempts = 0
            self.pin_pad.clear()
            return self._success()

        self.pin_attempts += 1
        self.pin_pad.clear()

        if self.pin_attempts >= self.max_pin_attempts:
            self.locked_out = True
            logger.warning("PIN заблокирован после %s неудачных попыток", self.pin_attempts)
            self.lockout_countdown.reset()
            self.lockout_countdown.start()
            return self._fail("locked_out", f"{MSG_PIN_INCORRECT} {MSG_LOCKED_OUT}")

        return self._fail("pin_incorrect", MSG_PIN_INCORRECT)

    async def _restore_session(self) -> None:
        last = self._auth.last_identity
        await self._auth.login(
            User(
                id=generate_uuid(),
                phone=last.phone,
                name=last.name,
                profile_picture=last.image,
                created_at=datetime.now(timezone.utc).isoformat(),
            )
        )

    async def _finish_lockout(self) -> None:
        await self._return_to_login()

    async def skip_pin_setup(self) -> FlowResult:
        rejected = self._expect(AuthState.PIN_SETUP_PENDING)
        if rejected:
            return rejected
        self.state = AuthState.AUTHENTICATED
        self.pin_pad.clear()
        self.confirm_pad.clear()
        return self._success()

    # --- выход ---

    async def use_different_account(self, *, forget: bool = False) -> FlowResult:
        """
        Уйти с ввода PIN на вход по OTP. Запомненный пользователь сохраняется,
        если явно не попросили ``forget``.
        """
        if forget:
            await self._auth.clear_last_identity()
        await self._return_to_login()
        return self._success()

    async def logout(self) -> FlowResult:
        await self._return_to_login()
        return self._success()

    async def _return_to_login(self) -> None:
        if self._auth.is_authenticated:
            await self._auth.logout()
        self.close()
        self.state = AuthState.ANONYMOUS
        self.challenge = None
        self.otp_pad.clear()
        self.pin_pad.clear()
        self.confirm_pad.clear()
        self.pin_step = PinStep.SET
        self.pin_attempts = 0
        self.locked_out = False
