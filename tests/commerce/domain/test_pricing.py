"""Tests for store pricing: discounts, shipping, tax and bounded calls."""

import threading
import time
from datetime import UTC, datetime

import pytest
from commerce.checkout.pricing import (
    DiscountCode,
    DiscountType,
    StorePricingPolicy,
    call_with_timeout,
    get_pricing_policy,
    quote,
    reset_pricing_policy,
)
from commerce.exceptions import PricingUnavailable
from protean.exceptions import ValidationError


@pytest.fixture()
def policy():
    return StorePricingPolicy(shipping_rate=5.99, free_shipping_threshold=50.0, tax_rate=8.0)


class TestDiscounts:
    def test_no_code_means_no_discount(self, policy):
        discount = policy.discount_for(None, 40.0)
        assert discount.amount == 0
        assert discount.free_shipping is False

    def test_percentage_code(self, policy):
        assert policy.discount_for("WELCOME10", 40.0).amount == 4.0

    def test_codes_are_case_insensitive(self, policy):
        assert policy.discount_for("welcome10", 40.0).amount == 4.0

    def test_fixed_amount_requires_minimum_order(self, policy):
        with pytest.raises(ValidationError) as exc:
            policy.discount_for("SAVE20", 99.0)
        assert "discount_code" in exc.value.messages
        assert policy.discount_for("SAVE20", 120.0).amount == 20.0

    def test_fixed_amount_never_exceeds_subtotal(self):
        policy = StorePricingPolicy(discount_codes=[DiscountCode("BIG", DiscountType.FIXED_AMOUNT, 50.0)])
        assert policy.discount_for("BIG", 30.0).amount == 30.0

    def test_free_shipping_code(self, policy):
        discount = policy.discount_for("FREESHIP", 60.0)
        assert discount.free_shipping is True
        assert discount.amount == 0

    def test_unknown_code(self, policy):
        with pytest.raises(ValidationError) as exc:
            policy.discount_for("NOPE", 40.0)
        assert exc.value.messages["discount_code"] == ["Invalid discount code"]

    def test_inactive_code(self):
        policy = StorePricingPolicy(discount_codes=[DiscountCode("OLD", DiscountType.PERCENTAGE, 10, active=False)])
        with pytest.raises(ValidationError):
            policy.discount_for("OLD", 40.0)


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


def _policy_with(*codes):
    return StorePricingPolicy(discount_codes=codes, clock=lambda: NOW)


class TestDiscountRules:
    def test_code_before_its_window_is_rejected(self):
        soon = DiscountCode("SOON", DiscountType.PERCENTAGE, 10, starts_at=datetime(2026, 11, 1, tzinfo=UTC))
        policy = _policy_with(soon)
        with pytest.raises(ValidationError) as exc:
            policy.discount_for("SOON", 40.0)
        assert exc.value.messages["discount_code"] == ["Discount code is not yet active"]

    def test_code_after_its_window_is_rejected(self):
        summer = DiscountCode("SUMMER", DiscountType.PERCENTAGE, 10, ends_at=datetime(2026, 9, 1, tzinfo=UTC))
        policy = _policy_with(summer)
        with pytest.raises(ValidationError) as exc:
            policy.discount_for("SUMMER", 40.0)
        assert exc.value.messages["discount_code"] == ["Discount code has expired"]

    def test_code_inside_its_window_applies(self):
        code = DiscountCode(
            "FALL",
            DiscountType.PERCENTAGE,
            10,
            starts_at=datetime(2026, 10, 1, tzinfo=UTC),
            ends_at=datetime(2026, 10, 31, tzinfo=UTC),
        )
        assert _policy_with(code).discount_for("FALL", 40.0).amount == 4.0

    def test_usage_limit(self):
        policy = _policy_with(DiscountCode("ONCE", DiscountType.PERCENTAGE, 10, max_uses=1))
        assert policy.discount_for("ONCE", 40.0).amount == 4.0

        policy.record_use("once")

        assert policy.uses_of("ONCE") == 1
        with pytest.raises(ValidationError) as exc:
            policy.discount_for("ONCE", 40.0)
        assert exc.value.messages["discount_code"] == ["Discount code has reached its usage limit"]

    def test_recording_an_unknown_code_is_ignored(self):
        policy = _policy_with()
        policy.record_use("NOPE")
        assert policy.uses_of("NOPE") == 0


class TestShippingAndTax:
    def test_flat_rate_below_threshold(self, policy):
        assert policy.shipping_for(40.0, None) == 5.99

    def test_free_at_threshold(self, policy):
        assert policy.shipping_for(50.0, None) == 0.0

    def test_free_shipping_discount(self, policy):
        assert policy.shipping_for(10.0, None, free_shipping=True) == 0.0

    def test_tax_is_a_percentage(self, policy):
        assert policy.tax_for(36.0, None) == 2.88

    def test_policy_from_env(self, monkeypatch):
        monkeypatch.setenv("STORE_SHIPPING_RATE", "9.99")
        monkeypatch.setenv("STORE_FREE_SHIPPING_THRESHOLD", "75")
        monkeypatch.setenv("STORE_TAX_RATE", "8.5")
        reset_pricing_policy()
        policy = get_pricing_policy()
        assert policy.shipping_rate == 9.99
        assert policy.free_shipping_threshold == 75.0
        assert policy.tax_rate == 8.5


class TestQuote:
    def test_quote_combines_components(self, policy):
        totals = quote(40.0, None, "WELCOME10", policy=policy)
        assert totals.subtotal == 40.0
        assert totals.discount == 4.0
        assert totals.shipping_cost == 5.99
        assert totals.tax == 2.88
        assert totals.total == 44.87

    def test_tax_applies_after_discount(self, policy):
        totals = quote(100.0, None, "SAVE20", policy=policy)
        assert totals.tax == 6.4
        assert totals.shipping_cost == 0.0
        assert totals.total == 86.4


class _SlowPolicy(StorePricingPolicy):
    def tax_for(self, taxable_amount, address):
        time.sleep(0.5)
        return super().tax_for(taxable_amount, address)


class _BrokenPolicy(StorePricingPolicy):
    def shipping_for(self, subtotal, address, free_shipping=False):
        raise ConnectionError("rate service unreachable")


class TestBoundedCalls:
    def test_timeout_raises_pricing_unavailable(self):
        with pytest.raises(PricingUnavailable) as exc:
            quote(40.0, None, policy=_SlowPolicy(), timeout=0.05)
        assert exc.value.component == "tax"
        assert "pricing" in exc.value.messages

    def test_collaborator_failure_raises_pricing_unavailable(self):
        with pytest.raises(PricingUnavailable) as exc:
            quote(40.0, None, policy=_BrokenPolicy())
        assert exc.value.component == "shipping"

    def test_rule_violations_pass_through(self, policy):
        with pytest.raises(ValidationError) as exc:
            call_with_timeout("discount", policy.discount_for, "NOPE", 10.0)
        assert not isinstance(exc.value, PricingUnavailable)


class _HangingPolicy(StorePricingPolicy):
    def __init__(self, release):
        super().__init__()
        self.release = release

    def tax_for(self, taxable_amount, address):
        self.release.wait()
        return super().tax_for(taxable_amount, address)


class TestHungCalls:
    def test_hung_calls_do_not_starve_later_quotes(self):
        release = threading.Event()
        try:
            for _ in range(5):
                with pytest.raises(PricingUnavailable):
                    quote(40.0, None, policy=_HangingPolicy(release), timeout=0.05)

            totals = quote(40.0, None, policy=StorePricingPolicy(), timeout=1.0)
        finally:
            release.set()

        assert totals.total == 49.19
