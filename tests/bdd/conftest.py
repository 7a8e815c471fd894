"""Shared BDD fixtures and step definitions for the storefront core."""

from datetime import date

import pytest
from pytest_bdd import given, parsers

from storefront.api.retry import RetryPolicy
from storefront.cart.store import CartStore, Product
from storefront.payment.submitter import PaymentSubmitter


@pytest.fixture
def cart(storage):
    return CartStore(storage)


@pytest.fixture
def submitter(session, fake_api, no_sleep):
    return PaymentSubmitter(
        session,
        api=fake_api,
        retry_policy=RetryPolicy(jitter=0),
        clock=lambda: date(2025, 6, 15),
        sleep=no_sleep,
    )


@pytest.fixture
def context():
    """Mutable scratch space shared between steps of one scenario."""
    return {}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("an empty cart")
def empty_cart(cart):
    assert cart.items == ()


@given("a signed-in shopper")
def signed_in_shopper(signed_in):
    assert signed_in.is_authenticated


@given(parsers.cfparse('a cart with {quantity:d} of product "{product_id}" priced {price:f}'))
def cart_with_product(cart, quantity, product_id, price):
    cart.add(Product(product_id=product_id, name=f"Product {product_id}", price=price), quantity=quantity)
