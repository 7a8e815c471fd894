"""Tests for the composition root."""

import asyncio
from datetime import UTC, datetime

import pytest

from storefront.api import get_api, set_api
from storefront.api.fake_adapter import FakeStoreApi
from storefront.api.http_adapter import HttpStoreApi
from storefront.api.retry import RetryPolicy
from storefront.app import Storefront
from storefront.checkout.orchestrator import CheckoutState
from storefront.config import Settings
from storefront.errors import ServerError
from storefront.payment.methods import CardPayment
from storefront.storage import JsonFileStorage, MemoryStorage

NEXT_YEAR = datetime.now(UTC).year % 100 + 1
CARD = CardPayment(number="4111111111111111", holder_name="Jane Doe", expiry=f"12/{NEXT_YEAR:02d}", cvv="123")
ADDRESS = {"address": "1 Main St", "city": "Springfield", "state": "IL", "zip_code": "62701"}


@pytest.fixture
def shop(fake_api):
    return Storefront(MemoryStorage(), fake_api, retry_policy=RetryPolicy(jitter=0))


class TestCheckoutLifecycle:
    def test_confirmed_checkout_clears_cart(self, shop, user, mug):
        async def scenario():
            shop.session.sign_in(user, "tok")
            shop.cart.add(mug, quantity=2)
            checkout = shop.checkout()
            checkout.update_shipping(**ADDRESS)
            await checkout.submit_order()
            await checkout.submit_payment(CARD)
            await shop.sync.flush()
            return checkout

        checkout = asyncio.run(scenario())

        assert checkout.state is CheckoutState.CONFIRMED
        assert shop.cart.items == ()
        assert shop.storage.read_json("cart") == []
        assert shop.api.cart_items == []

    def test_failed_checkout_keeps_cart(self, shop, fake_api, user, mug):
        fake_api.fail_next("submit_payment", ServerError(status_code=500))
        shop.session.sign_in(user, "tok")
        shop.cart.add(mug)

        checkout = shop.checkout()
        checkout.update_shipping(**ADDRESS)
        asyncio.run(checkout.submit_order())
        asyncio.run(checkout.submit_payment(CARD))

        assert checkout.state is CheckoutState.FAILED
        assert len(shop.cart.items) == 1

        retry = shop.resume_checkout(checkout.failure.order)
        assert asyncio.run(retry.submit_payment(CARD)) is CheckoutState.CONFIRMED
        assert shop.cart.items == ()

    def test_on_transition_callback(self, shop, user, mug):
        seen = []
        shop.session.sign_in(user, "tok")
        shop.cart.add(mug)
        checkout = shop.checkout(on_transition=lambda event: seen.append(event.state))
        asyncio.run(checkout.submit_order())
        assert seen == [CheckoutState.VALIDATING, CheckoutState.SHIPPING]

    def test_aclose_stops_sync(self, shop, user, mug):
        asyncio.run(shop.aclose())
        shop.session.sign_in(user, "tok")
        shop.cart.add(mug)
        assert not shop.sync.has_pending


class TestFromSettings:
    def test_fake_adapter_and_memory_storage_by_default(self):
        shop = Storefront.from_settings(Settings())
        assert isinstance(shop.api, FakeStoreApi)
        assert isinstance(shop.storage, MemoryStorage)

    def test_http_adapter_reads_token_from_session(self, tmp_path, user):
        settings = Settings(api_adapter="http", storage_path=str(tmp_path / "s.json"), retry_attempts=5)
        shop = Storefront.from_settings(settings)

        assert isinstance(shop.api, HttpStoreApi)
        assert isinstance(shop.storage, JsonFileStorage)
        assert shop.retry_policy.max_attempts == 5

        shop.session.sign_in(user, "tok-9")
        assert shop.api._headers()["Authorization"] == "Bearer tok-9"
        asyncio.run(shop.aclose())

    def test_cart_survives_restart(self, tmp_path, mug):
        settings = Settings(storage_path=str(tmp_path / "s.json"))
        Storefront.from_settings(settings).cart.add(mug, quantity=3)
        assert Storefront.from_settings(settings).cart.items[0].quantity == 3


class TestApiFactory:
    def test_get_api_builds_from_environment(self, monkeypatch):
        monkeypatch.delenv("STOREFRONT_API_ADAPTER", raising=False)
        assert isinstance(get_api(), FakeStoreApi)
        assert get_api() is get_api()

    def test_set_api_overrides(self, fake_api):
        set_api(fake_api)
        assert get_api() is fake_api
