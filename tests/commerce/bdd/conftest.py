"""Shared BDD fixtures and step definitions for the commerce domain."""

import pytest
from commerce.cart.cart import Cart
from commerce.cart.items import AddToCart
from commerce.cart.management import OpenCart
from protean import current_domain
from pytest_bdd import given, parsers, then


@pytest.fixture()
def error():
    """Container for captured domain errors."""
    return {"exc": None}


def load_cart(cart_id):
    return current_domain.repository_for(Cart).get(cart_id)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a cart for customer "{customer_id}"'), target_fixture="cart_id")
def _(customer_id, catalogue, notifier):
    return current_domain.process(OpenCart(customer_id=customer_id), asynchronous=False)


@given(parsers.cfparse('{quantity:d} of "{variant_id}" are in the cart'))
def _(cart_id, quantity, variant_id):
    current_domain.process(
        AddToCart(cart_id=cart_id, variant_id=variant_id, quantity=quantity),
        asynchronous=False,
    )


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.re(r"the cart has (?P<count>\d+) lines?"), converters={"count": int})
def _(cart_id, count):
    assert len(load_cart(cart_id).items) == count


@then("the cart is empty")
def _(cart_id):
    assert len(load_cart(cart_id).items) == 0
