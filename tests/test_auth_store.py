"""Тесты сессии, PIN-кодов и запомненного пользователя."""

import json

import pytest

from database.db import LocalStorage
from database.models import LastIdentity, User
from storefront import AppState, StoreNotLoadedError
from storefront.auth import LAST_IDENTITY_KEY, PIN_KEY, SESSION_KEY


PHONE = "66812345678"


def make_user(**overrides) -> User:
    data = dict(id="u-1", phone=PHONE, name="User 5678", profile_picture="/me.png")
    data.update(overrides)
    return User(**data)


async def reopen(db_path) -> AppState:
    return await AppState.open(db_path)


class TestLoading:
    def test_reads_before_load_raise(self, db_path):
        state = AppState(LocalStorage(db_path))

        assert state.is_loading
        with pytest.raises(StoreNotLoadedError):
            state.auth.is_authenticated
        with pytest.raises(StoreNotLoadedError):
            state.cart.total_items()

    @pytest.mark.asyncio
    async def test_empty_storage_loads_defaults(self, db_path):
        state = await reopen(db_path)

        assert not state.is_loading
        assert not state.auth.is_authenticated
        assert state.auth.user is None
        assert state.auth.last_identity is None
        assert state.cart.items == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", [SESSION_KEY, PIN_KEY, LAST_IDENTITY_KEY, "zinco_cart"])
    async def test_corrupted_key_falls_back_alone(self, db_path, product, key):
        state = await reopen(db_path)
        await state.auth.login(make_user())
        await state.auth.save_pin(PHONE, "123456")
        await state.cart.add(product, 2)
        await state.storage.set_item(key, "invalid-json")

        state = await reopen(db_path)

        if key == SESSION_KEY:
            assert state.auth.user is None
        else:
            assert state.auth.user == make_user()
        if key == PIN_KEY:
            assert state.auth.pins.value == []
        else:
            assert state.auth.verify_pin(PHONE, "123456")
        if key == LAST_IDENTITY_KEY:
            assert state.auth.last_identity is None
        else:
            assert state.auth.last_identity.phone == PHONE
        if key == "zinco_cart":
            assert state.cart.items == []
        else:
            assert state.cart.quantity_of(product.id) == 2

    @pytest.mark.asyncio
    async def test_wrong_shape_falls_back_to_default(self, db_path):
        storage = LocalStorage(db_path)
        await storage.init()
        await storage.set_item(SESSION_KEY, json.dumps({"authenticated": True, "user": {"name": "no id"}}))
        await storage.set_item(PIN_KEY, json.dumps({"phone": PHONE}))
        await storage.set_item("zinco_cart", json.dumps([{"product": {"id": "1"}, "quantity": 1}]))

        state = await reopen(db_path)

        assert state.auth.user is None
        assert state.auth.pins.value == []
        assert state.cart.items == []


class TestSession:
    @pytest.mark.asyncio
    async def test_login_sets_session_and_last_identity(self, db_path):
        state = await reopen(db_path)
        user = make_user()

        await state.auth.login(user)

        assert state.auth.is_authenticated
        assert state.auth.user == user
        assert state.auth.last_identity == LastIdentity(phone=PHONE, name="User 5678", image="/me.png")

    @pytest.mark.asyncio
    async def test_logout_keeps_last_identity_and_pins(self, db_path):
        state = await reopen(db_path)
        await state.auth.login(make_user())
        await state.auth.save_pin(PHONE, "123456")

        await state.auth.logout()

        assert not state.auth.is_authenticated
        assert state.auth.user is None
        assert state.auth.last_identity == LastIdentity(phone=PHONE, name="User 5678", image="/me.png")
        assert state.auth.has_pin(PHONE)

    @pytest.mark.asyncio
    async def test_session_survives_reload(self, db_path):
        state = await reopen(db_path)
        await state.auth.login(make_user(email="a@b.c"))

        reloaded = await reopen(db_path)

        assert reloaded.auth.is_authenticated
        assert reloaded.auth.user == make_user(email="a@b.c")

    @pytest.mark.asyncio
    async def test_logout_survives_reload(self, db_path):
        state = await reopen(db_path)
        await state.auth.login(make_user())
        await state.auth.logout()

        reloaded = await reopen(db_path)

        assert not reloaded.auth.is_authenticated
        assert reloaded.auth.last_identity is not None

    @pytest.mark.asyncio
    async def test_update_profile_merges_fields(self, db_path):
        state = await reopen(db_path)
        await state.auth.login(make_user())

        updated = await state.auth.update_profile(name="Somchai", address="Bangkok")

        assert updated.name == "Somchai"
        assert updated.address == "Bangkok"
        assert updated.profile_picture == "/me.png"
        assert state.auth.last_identity.name == "Somchai"
        assert (await reopen(db_path)).auth.user.name == "Somchai"

    @pytest.mark.asyncio
    async def test_update_profile_without_session_is_noop(self, db_path):
        state = await reopen(db_path)

        assert await state.auth.update_profile(name="Nobody") is None
        assert state.auth.user is None
        assert state.auth.last_identity is None

    @pytest.mark.asyncio
    async def test_clear_last_identity(self, db_path):
        state = await reopen(db_path)
        await state.auth.login(make_user())

        await state.auth.clear_last_identity()

        assert state.auth.last_identity is None
        assert state.auth.is_authenticated
        assert (await reopen(db_path)).auth.last_identity is None


class TestPinVault:
    @pytest.mark.asyncio
    async def test_save_and_verify(self, db_path):
        state = await reopen(db_path)

        await state.auth.save_pin(PHONE, "123456")

        assert state.auth.has_pin(PHONE)
        assert state.auth.get_pin(PHONE) == "123456"
        assert state.auth.verify_pin(PHONE, "123456")
        assert not state.auth.verify_pin(PHONE, "999999")

    @pytest.mark.asyncio
    async def test_resave_overwrites(self, db_path):
        state = await reopen(db_path)
        await state.auth.save_pin(PHONE, "123456")
        await state.auth.save_pin("66899999999", "000000")

        await state.auth.save_pin(PHONE, "654321")

        assert not state.auth.verify_pin(PHONE, "123456")
        assert state.auth.verify_pin(PHONE, "654321")
        assert len(state.auth.pins.value) == 2

        reloaded = await reopen(db_path)
        assert reloaded.auth.verify_pin(PHONE, "654321")
        assert reloaded.auth.verify_pin("66899999999", "000000")

    @pytest.mark.asyncio
    async def test_unknown_phone(self, db_path):
        state = await reopen(db_path)

        assert not state.auth.has_pin(PHONE)
        assert state.auth.get_pin(PHONE) is None
        assert not state.auth.verify_pin(PHONE, "123456")

    @pytest.mark.asyncio
    async def test_format_agnostic(self, db_path):
        state = await reopen(db_path)

        await state.auth.save_pin(PHONE, "12")

        assert state.auth.verify_pin(PHONE, "12")
