"""Тесты сценариев входа по OTP и PIN."""

import asyncio

import httpx
import pytest

from database.models import User
from storefront import AppState, AuthFlow, AuthState, PinStep


PHONE = "0812345678"
CANONICAL = "66812345678"
OTP_REQUEST_OK = {"code": "0", "result": {"token": "token-1", "ref": "REF1"}, "message": "OTP sent successfully"}
OTP_VERIFY_OK = {"code": "0", "status": "success"}


async def make_flow(db_path, provider, **kwargs):
    state = await AppState.open(db_path)
    kwargs.setdefault("tick_interval", 0.01)
    kwargs.setdefault("lockout_delay", 0.01)
    return state, AuthFlow(state.auth, provider.client(), **kwargs)


async def verified_flow(db_path, provider, **kwargs):
    state, flow = await make_flow(db_path, provider, **kwargs)
    provider.queue("/otp/request", OTP_REQUEST_OK)
    provider.queue("/otp/verify", OTP_VERIFY_OK)
    await flow.request_otp(PHONE)
    result = await flow.verify_otp("123456")
    assert result.ok
    return state, flow


async def type_pin(flow, pin):
    result = None
    for index, digit in enumerate(pin):
        result = await flow.enter_pin_digit(index, digit)
    return result


class TestOTPStage:
    @pytest.mark.asyncio
    async def test_request_otp(self, db_path, provider):
        _, flow = await make_flow(db_path, provider, resend_cooldown=60)
        provider.queue("/otp/request", OTP_REQUEST_OK)

        async with flow:
            result = await flow.request_otp(PHONE)

            assert result.ok
            assert result.ref == "REF1"
            assert flow.state == AuthState.OTP_REQUESTED
            assert flow.challenge.phone == CANONICAL
            assert flow.challenge.token == "token-1"
            assert flow.resend_countdown.running
            assert not flow.can_resend

        assert not flow.resend_countdown.running

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "phone, reason, message",
        [
            ("", "missing_input", "Phone number is required"),
            ("08123abc78", "invalid_format", "Invalid phone number format"),
        ],
    )
    async def test_request_otp_bad_phone(self, db_path, provider, phone, reason, message):
        _, flow = await make_flow(db_path, provider)

        result = await flow.request_otp(phone)

        assert not result.ok
        assert (result.reason, result.message) == (reason, message)
        assert flow.state == AuthState.ANONYMOUS
        assert flow.error == message

    @pytest.mark.asyncio
    async def test_request_otp_provider_error(self, db_path, provider):
        _, flow = await make_flow(db_path, provider)
        provider.queue("/otp/request", {"code": "1", "message": "Invalid phone number"})

        result = await flow.request_otp(PHONE)

        assert (result.status, result.reason, result.message) == ("error", "provider", "Invalid phone number")
        assert flow.state == AuthState.ANONYMOUS

    @pytest.mark.asyncio
    async def test_request_otp_network_error(self, db_path, provider):
        _, flow = await make_flow(db_path, provider)
        provider.queue("/otp/request", httpx.ConnectError("down"))

        result = await flow.request_otp(PHONE)

        assert result.reason == "network"
        assert flow.state == AuthState.ANONYMOUS

    @pytest.mark.asyncio
    async def test_resend_waits_for_cooldown(self, db_path, provider):
        _, flow = await make_flow(db_path, provider, resend_cooldown=3, tick_interval=60)
        provider.queue("/otp/request", OTP_REQUEST_OK)
        provider.queue("/otp/request", {"code": "0", "result": {"token": "token-2", "ref": "REF2"}})

        async with flow:
            await flow.request_otp(PHONE)
            early = await flow.resend_otp()

            assert early.reason == "resend_not_allowed"
            assert "3 seconds" in early.message

            for _ in range(3):
                await flow.resend_countdown.tick()
            assert flow.can_resend

            flow.otp_pad.fill("111111")
            result = await flow.resend_otp()

            assert result.ok
            assert flow.challenge.token == "token-2"
            assert flow.challenge.ref == "REF2"
            assert flow.otp_pad.code == ""
            assert flow.resend_countdown.remaining == 3
            assert not flow.can_resend

        assert len(provider.bodies("/otp/request")) == 2

    @pytest.mark.asyncio
    async def test_repeat_request_respects_cooldown(self, db_path, provider):
        _, flow = await make_flow(db_path, provider, resend_cooldown=2, tick_interval=60)
        provider.queue("/otp/request", OTP_REQUEST_OK)
        provider.queue("/otp/request", {"code": "0", "result": {"token": "token-2", "ref": "REF2"}})

        async with flow:
            await flow.request_otp(PHONE)
            early = await flow.request_otp(PHONE)

            assert early.reason == "resend_not_allowed"
            assert flow.challenge.token == "token-1"
            assert len(provider.bodies("/otp/request")) == 1

            for _ in range(2):
                await flow.resend_countdown.tick()
            result = await flow.request_otp(PHONE)

            assert result.ok
            assert flow.challenge.token == "token-2"

    @pytest.mark.asyncio
    async def test_cooldown_elapses_on_its_own(self, db_path, provider):
        _, flow = await make_flow(db_path, provider, resend_cooldown=2, tick_interval=0.01)
        provider.queue("/otp/request", OTP_REQUEST_OK)

        async with flow:
            await flow.request_otp(PHONE)
            for _ in range(100):
                if flow.can_resend:
                    break
                await asyncio.sleep(0.01)

            assert flow.can_resend

    @pytest.mark.asyncio
    async def test_verify_requires_all_digits(self, db_path, provider):
        _, flow = await make_flow(db_path, provider)
        provider.queue("/otp/request", OTP_REQUEST_OK)

        async with flow:
            await flow.request_otp(PHONE)
            result = await flow.verify_otp("123")

        assert result.message == "Please enter all 6 digits"
        assert provider.bodies("/otp/verify") == []

    @pytest.mark.asyncio
    async def test_verify_rejected(self, db_path, provider):
        state, flow = await make_flow(db_path, provider)
        provider.queue("/otp/request", OTP_REQUEST_OK)
        provider.queue("/otp/verify", {"code": "1", "message": "Invalid OTP code"})

        async with flow:
            await flow.request_otp(PHONE)
            result = await flow.verify_otp("999999")

        assert (result.reason, result.message) == ("provider", "Invalid OTP code")
        assert flow.state == AuthState.OTP_REQUESTED
        assert not state.auth.is_authenticated

    @pytest.mark.asyncio
    async def test_verify_logs_in_and_goes_to_pin_setup(self, db_path, provider):
        provider.queue("/otp/request", OTP_REQUEST_OK)
        provider.queue("/otp/verify", OTP_VERIFY_OK)
        state, flow = await make_flow(db_path, provider)

        async with flow:
            await flow.request_otp(PHONE)
            for index, digit in enumerate("123456"):
                flow.otp_pad.enter(index, digit)
            result = await flow.verify_otp()

        assert result.ok
        assert flow.state == AuthState.PIN_SETUP_PENDING
        assert flow.challenge is None
        assert not flow.resend_countdown.running
        user = state.auth.user
        assert user.phone == CANONICAL
        assert user.name == "User 5678"
        assert len(user.id) == 36
        assert user.created_at
        assert state.auth.last_identity.phone == CANONICAL
        assert provider.bodies("/otp/verify")[0]["token"] == "token-1"

    @pytest.mark.asyncio
    async def test_verify_goes_to_pin_entry_when_pin_exists(self, db_path, provider):
        state = await AppState.open(db_path)
        await state.auth.save_pin(CANONICAL, "123456")

        _, flow = await verified_flow(db_path, provider)

        assert flow.state == AuthState.PIN_ENTRY_PENDING
        flow.close()


class TestPinSetup:
    @pytest.mark.asyncio
    async def test_set_and_confirm(self, db_path, provider):
        state, flow = await verified_flow(db_path, provider)

        assert await type_pin(flow, "12345") is None
        first = await flow.enter_pin_digit(5, "6")
        assert first.ok
        assert flow.pin_step == PinStep.CONFIRM

        result = await type_pin(flow, "123456")

        assert result.ok
        assert flow.state == AuthState.AUTHENTICATED
        assert state.auth.verify_pin(CANONICAL, "123456")
        assert (await AppState.open(db_path)).auth.verify_pin(CANONICAL, "123456")

    @pytest.mark.asyncio
    async def test_mismatch_restarts(self, db_path, provider):
        state, flow = await verified_flow(db_path, provider)

        await type_pin(flow, "123456")
        result = await type_pin(flow, "654321")

        assert (result.reason, result.message) == ("pin_mismatch", "PINs do not match. Please try again.")
        assert flow.state == AuthState.PIN_SETUP_PENDING
        assert flow.pin_step == PinStep.SET
        assert flow.pin_pad.code == "" and flow.confirm_pad.code == ""
        assert not state.auth.has_pin(CANONICAL)

    @pytest.mark.asyncio
    async def test_submit_whole_pin(self, db_path, provider):
        state, flow = await verified_flow(db_path, provider)

        assert (await flow.submit_pin("12")).reason == "missing_input"
        assert (await flow.submit_pin("111111")).ok
        assert (await flow.submit_pin("111111")).ok

        assert flow.state == AuthState.AUTHENTICATED
        assert state.auth.verify_pin(CANONICAL, "111111")

    @pytest.mark.asyncio
    async def test_skip(self, db_path, provider):
        state, flow = await verified_flow(db_path, provider)

        result = await flow.skip_pin_setup()

        assert result.ok
        assert flow.state == AuthState.AUTHENTICATED
        assert state.auth.is_authenticated
        assert not state.auth.has_pin(CANONICAL)


class TestPinEntry:
    async def returning_user(self, db_path, provider, **kwargs):
        state = await AppState.open(db_path)
        await state.auth.login(User(id="u-1", phone=CANONICAL, name="Somchai", profile_picture="/s.png"))
        await state.auth.save_pin(CANONICAL, "123456")
        await state.auth.logout()
        return await make_flow(db_path, provider, **kwargs)

    @pytest.mark.asyncio
    async def test_correct_pin_after_logout_restores_session(self, db_path, provider):
        state, flow = await self.returning_user(db_path, provider)

        assert flow.state == AuthState.ANONYMOUS
        assert flow.start_pin_entry().ok
        assert flow.pin_phone == CANONICAL

        result = await type_pin(flow, "123456")

        assert result.ok
        assert flow.state == AuthState.AUTHENTICATED
        assert state.auth.is_authenticated
        assert state.auth.user.phone == CANONICAL
        assert state.auth.user.name == "Somchai"
        assert state.auth.user.profile_picture == "/s.png"

    @pytest.mark.asyncio
    async def test_start_without_identity(self, db_path, provider):
        _, flow = await make_flow(db_path, provider)

        result = flow.start_pin_entry()

        assert (result.reason, result.message) == ("no_identity", "Phone number not found")
        assert flow.state == AuthState.ANONYMOUS

    @pytest.mark.asyncio
    async def test_wrong_pin_counts_attempts(self, db_path, provider):
        _, flow = await self.returning_user(db_path, provider)
        flow.start_pin_entry()

        result = await type_pin(flow, "000000")

        assert (result.reason, result.message) == ("pin_incorrect", "Incorrect PIN. Please try again.")
        assert flow.pin_attempts == 1
        assert flow.pin_pad.code == ""
        assert flow.pin_pad.focus == 0
        assert flow.state == AuthState.PIN_ENTRY_PENDING

    @pytest.mark.asyncio
    async def test_three_failures_lock_out_and_return_to_login(self, db_path, provider):
        state, flow = await self.returning_user(db_path, provider, lockout_delay=60)
        flow.start_pin_entry()

        async with flow:
            await type_pin(flow, "000000")
            await type_pin(flow, "000000")
            result = await type_pin(flow, "000000")

            assert result.reason == "locked_out"
            assert "Too many attempts. Redirecting to login..." in result.message
            assert flow.locked_out
            assert flow.lockout_countdown.running
            assert (await flow.enter_pin_digit(0, "1")).reason == "locked_out"

            await flow.lockout_countdown.tick()

        assert flow.state == AuthState.ANONYMOUS
        assert flow.pin_attempts == 0
        assert not flow.locked_out
        assert state.auth.last_identity.phone == CANONICAL

    @pytest.mark.asyncio
    async def test_lockout_delay_elapses_on_its_own(self, db_path, provider):
        _, flow = await self.returning_user(db_path, provider, lockout_delay=0.01)
        flow.start_pin_entry()

        async with flow:
            for _ in range(3):
                await flow.submit_pin("000000")
            for _ in range(100):
                if flow.state == AuthState.ANONYMOUS:
                    break
                await asyncio.sleep(0.01)

        assert flow.state == AuthState.ANONYMOUS

    @pytest.mark.asyncio
    async def test_lockout_after_otp_clears_session(self, db_path, provider):
        state = await AppState.open(db_path)
        await state.auth.save_pin(CANONICAL, "123456")
        state, flow = await verified_flow(db_path, provider, lockout_delay=60)

        async with flow:
            for _ in range(3):
                await flow.submit_pin("999999")
            await flow.lockout_countdown.tick()

        assert flow.state == AuthState.ANONYMOUS
        assert not state.auth.is_authenticated

    @pytest.mark.asyncio
    async def test_different_account_keeps_last_identity(self, db_path, provider):
        state, flow = await self.returning_user(db_path, provider)
        flow.start_pin_entry()

        result = await flow.use_different_account()

        assert result.ok
        assert flow.state == AuthState.ANONYMOUS
        assert state.auth.last_identity.phone == CANONICAL

    @pytest.mark.asyncio
    async def test_different_account_can_forget(self, db_path, provider):
        state, flow = await self.returning_user(db_path, provider)
        flow.start_pin_entry()

        await flow.use_different_account(forget=True)

        assert state.auth.last_identity is None
        assert state.auth.has_pin(CANONICAL)


class TestSessionLifecycle:
    @pytest.mark.asyncio
    async def test_restored_session_starts_authenticated(self, db_path, provider):
        state = await AppState.open(db_path)
        await state.auth.login(User(id="u-1", phone=CANONICAL, name="Somchai"))

        _, flow = await make_flow(db_path, provider)

        assert flow.state == AuthState.AUTHENTICATED

    @pytest.mark.asyncio
    async def test_logout(self, db_path, provider):
        state, flow = await verified_flow(db_path, provider)
        await flow.skip_pin_setup()

        await flow.logout()

        assert flow.state == AuthState.ANONYMOUS
        assert not state.auth.is_authenticated
        assert state.auth.last_identity.phone == CANONICAL

    @pytest.mark.asyncio
    async def test_actions_in_wrong_state(self, db_path, provider):
        _, flow = await make_flow(db_path, provider)

        assert (await flow.verify_otp("123456")).reason == "invalid_state"
        assert (await flow.resend_otp()).reason == "invalid_state"
        assert (await flow.submit_pin("123456")).reason == "invalid_state"
        assert (await flow.skip_pin_setup()).reason == "invalid_state"
