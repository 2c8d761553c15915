"""Discount, shipping and tax pricing for checkout.

Pricing is an external collaborator behind the ``PricingPolicy`` port. The
default ``StorePricingPolicy`` applies a flat shipping rate waived above a
free-shipping threshold, a percentage tax on the discounted subtotal, and a
table of discount codes. A code may carry a validity window and a usage limit;
uses are counted once an order that applied the code has been stored.

Every policy call made during checkout is bounded by a timeout; a slow or
failing collaborator surfaces as ``PricingUnavailable`` instead of hanging the
request. Rule violations such as an unknown discount code propagate unchanged.
"""

import os
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

import structlog
from protean.exceptions import ValidationError

from commerce.exceptions import PricingUnavailable
from commerce.order.order import OrderTotals

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 2.0


class DiscountType(Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"
    FREE_SHIPPING = "FREE_SHIPPING"


@dataclass(frozen=True)
class DiscountCode:
    code: str
    type: DiscountType
    value: float = 0.0
    min_order_amount: float | None = None
    active: bool = True
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    max_uses: int | None = None


@dataclass(frozen=True)
class Discount:
    amount: float = 0.0
    free_shipping: bool = False
    code: str | None = None


NO_DISCOUNT = Discount()

DEFAULT_DISCOUNT_CODES = (
    DiscountCode("WELCOME10", DiscountType.PERCENTAGE, 10.0),
    DiscountCode("SAVE20", DiscountType.FIXED_AMOUNT, 20.0, min_order_amount=100.0),
    DiscountCode("FREESHIP", DiscountType.FREE_SHIPPING, min_order_amount=50.0),
)


class PricingPolicy(ABC):
    """Port for the discount, shipping and tax collaborator."""

    @abstractmethod
    def discount_for(self, code: str | None, subtotal: float) -> Discount:
        """Resolve a discount code. A missing code yields ``NO_DISCOUNT``."""

    @abstractmethod
    def shipping_for(self, subtotal: float, address, free_shipping: bool = False) -> float:
        """Shipping cost for an order of ``subtotal`` sent to ``address``."""

    @abstractmethod
    def tax_for(self, taxable_amount: float, address) -> float:
        """Tax due on ``taxable_amount``."""

    @abstractmethod
    def record_use(self, code: str) -> None:
        """Count one use of a discount code by a placed order."""


class StorePricingPolicy(PricingPolicy):
    def __init__(
        self,
        shipping_rate: float = 5.99,
        free_shipping_threshold: float | None = 50.0,
        tax_rate: float = 8.0,
        discount_codes=DEFAULT_DISCOUNT_CODES,
        clock=None,
    ):
        self.shipping_rate = shipping_rate
        self.free_shipping_threshold = free_shipping_threshold
        self.tax_rate = tax_rate
        self.discount_codes = {dc.code.upper(): dc for dc in discount_codes}
        self.clock = clock or (lambda: datetime.now(UTC))
        self._uses = {}
        self._uses_lock = threading.Lock()

    @classmethod
    def from_env(cls):
        threshold = os.getenv("STORE_FREE_SHIPPING_THRESHOLD", "50.0")
        return cls(
            shipping_rate=float(os.getenv("STORE_SHIPPING_RATE", "5.99")),
            free_shipping_threshold=float(threshold) if threshold else None,
            tax_rate=float(os.getenv("STORE_TAX_RATE", "8.0")),
        )

    def discount_for(self, code, subtotal):
        if not code:
            return NO_DISCOUNT

        discount_code = self.discount_codes.get(code.strip().upper())
        if discount_code is None:
            raise ValidationError({"discount_code": ["Invalid discount code"]})
        if not discount_code.active:
            raise ValidationError({"discount_code": ["Discount code is no longer active"]})
        now = self.clock()
        if discount_code.starts_at is not None and discount_code.starts_at > now:
            raise ValidationError({"discount_code": ["Discount code is not yet active"]})
        if discount_code.ends_at is not None and discount_code.ends_at < now:
            raise ValidationError({"discount_code": ["Discount code has expired"]})
        if discount_code.max_uses is not None and self.uses_of(discount_code.code) >= discount_code.max_uses:
            raise ValidationError({"discount_code": ["Discount code has reached its usage limit"]})
        if discount_code.min_order_amount is not None and subtotal < discount_code.min_order_amount:
            raise ValidationError(
                {"discount_code": [f"Minimum order amount of {discount_code.min_order_amount:.2f} required"]}
            )

        if discount_code.type == DiscountType.PERCENTAGE:
            return Discount(amount=round(subtotal * discount_code.value / 100, 2), code=discount_code.code)
        if discount_code.type == DiscountType.FIXED_AMOUNT:
            return Discount(amount=min(discount_code.value, subtotal), code=discount_code.code)
        return Discount(free_shipping=True, code=discount_code.code)

    def shipping_for(self, subtotal, address, free_shipping=False):
        if free_shipping:
            return 0.0
        if self.free_shipping_threshold is not None and subtotal >= self.free_shipping_threshold:
            return 0.0
        return self.shipping_rate

    def tax_for(self, taxable_amount, address):
        return round(max(taxable_amount, 0.0) * self.tax_rate / 100, 2)

    def uses_of(self, code):
        return self._uses.get(code.strip().upper(), 0)

    def record_use(self, code):
        key = code.strip().upper()
        if key not in self.discount_codes:
            return
        with self._uses_lock:
            self._uses[key] = self._uses.get(key, 0) + 1


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------
_policy: PricingPolicy | None = None


def get_pricing_policy() -> PricingPolicy:
    global _policy
    if _policy is None:
        _policy = StorePricingPolicy.from_env()
    return _policy


def set_pricing_policy(policy: PricingPolicy) -> None:
    """Override the pricing policy (for testing)."""
    global _policy
    _policy = policy


def reset_pricing_policy() -> None:
    global _policy
    _policy = None


# ---------------------------------------------------------------------------
# Bounded calls
# ---------------------------------------------------------------------------
def pricing_timeout() -> float:
    return float(os.getenv("PRICING_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))


def call_with_timeout(component, fn, *args, timeout=None):
    """Run a pricing call, converting timeouts and failures to ``PricingUnavailable``.

    Each call gets its own worker thread. A call that hangs past the timeout
    is abandoned and keeps only its own thread, so later checkouts are not
    queued behind it.
    """
    timeout = pricing_timeout() if timeout is None else timeout
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"pricing-{component}")
    future = executor.submit(fn, *args)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        logger.warning("Pricing call timed out", component=component, timeout=timeout)
        raise PricingUnavailable(component, f"timed out after {timeout}s") from None
    except ValidationError:
        raise
    except Exception as exc:
        logger.error("Pricing call failed", component=component, error=str(exc))
        raise PricingUnavailable(component, str(exc)) from exc
    finally:
        executor.shutdown(wait=False)


def quote(subtotal, address, discount_code=None, policy=None, timeout=None) -> OrderTotals:
    """Price a checkout: discount, then shipping and tax, then the total."""
    policy = policy or get_pricing_policy()

    discount = call_with_timeout("discount", policy.discount_for, discount_code, subtotal, timeout=timeout)
    shipping_cost = call_with_timeout(
        "shipping", policy.shipping_for, subtotal, address, discount.free_shipping, timeout=timeout
    )
    tax = call_with_timeout("tax", policy.tax_for, subtotal - discount.amount, address, timeout=timeout)

    return OrderTotals.compute(
        subtotal=subtotal,
        discount=discount.amount,
        shipping_cost=shipping_cost,
        tax=tax,
    )
