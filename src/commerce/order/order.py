"""Order aggregate — the immutable record of an approved checkout.

An order is created once, in Pending state, by the checkout handler. From
then on only its lifecycle status and the shipment, cancellation and refund
metadata change; line items, totals and the masked payment are frozen at
purchase time and never recomputed.
"""

import json
import re
from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from commerce.domain import commerce
from commerce.order.events import OrderCancelled, OrderPlaced, OrderRefunded, OrderShipped, OrderStatusChanged
from commerce.order.lifecycle import OrderStatus, assert_can_transition

_MONEY_TOLERANCE = 0.005


def detect_card_brand(card_number):
    digits = re.sub(r"\D", "", card_number or "")
    if digits.startswith("4"):
        return "Visa"
    if re.match(r"^5[1-5]", digits):
        return "Mastercard"
    if re.match(r"^3[47]", digits):
        return "Amex"
    if re.match(r"^6(?:011|5)", digits):
        return "Discover"
    return "Unknown"


def mask_card_number(card_number):
    """Redact every digit but the last four, e.g. ``************1111``."""
    digits = re.sub(r"\D", "", card_number or "")
    return "*" * max(len(digits) - 4, 0) + digits[-4:]


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@commerce.value_object(part_of="Order")
class ShippingAddress:
    """Where the order ships, captured at checkout and never updated."""

    first_name = String(required=True, max_length=100)
    last_name = String(required=True, max_length=100)
    line1 = String(required=True, max_length=255)
    line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)
    phone = String(max_length=30)


@commerce.value_object(part_of="Order")
class OrderTotals:
    """Money summary of an order.

    ``total`` always equals ``subtotal - discount + shipping_cost + tax``.
    """

    subtotal = Float(required=True, min_value=0.0)
    discount = Float(default=0.0, min_value=0.0)
    shipping_cost = Float(default=0.0, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    total = Float(required=True)
    currency = String(max_length=3, default="USD")

    @classmethod
    def compute(cls, subtotal, discount=0.0, shipping_cost=0.0, tax=0.0, currency="USD"):
        # Sum the rounded parts so the stored fields always add up to the total
        subtotal, discount, shipping_cost, tax = (round(v, 2) for v in (subtotal, discount, shipping_cost, tax))
        return cls(
            subtotal=subtotal,
            discount=discount,
            shipping_cost=shipping_cost,
            tax=tax,
            total=round(subtotal - discount + shipping_cost + tax, 2),
            currency=currency,
        )

    @invariant.post
    def total_matches_components(self):
        expected = self.subtotal - (self.discount or 0.0) + (self.shipping_cost or 0.0) + (self.tax or 0.0)
        if abs(self.total - expected) > _MONEY_TOLERANCE:
            raise ValidationError({"total": ["Total must equal subtotal - discount + shipping_cost + tax"]})


@commerce.value_object(part_of="Order")
class MaskedPayment:
    """Payment details safe to store. The CVV is never kept."""

    masked_card_number = String(required=True, max_length=19)
    last4 = String(required=True, max_length=4)
    brand = String(max_length=20)
    expiry_month = Integer(min_value=1, max_value=12)
    expiry_year = Integer()
    cardholder_name = String(max_length=255)
    cvv = String(default="***", max_length=3)

    @classmethod
    def from_card(cls, card_number, expiry_month=None, expiry_year=None, cardholder_name=None):
        digits = re.sub(r"\D", "", card_number or "")
        return cls(
            masked_card_number=mask_card_number(digits),
            last4=digits[-4:],
            brand=detect_card_brand(digits),
            expiry_month=expiry_month,
            expiry_year=expiry_year,
            cardholder_name=cardholder_name,
            cvv="***",
        )


@commerce.value_object(part_of="Order")
class Fulfillment:
    """Shipment details recorded when the order ships."""

    carrier = String(max_length=100)
    tracking_number = String(max_length=255)
    tracking_url = String(max_length=1024)
    estimated_delivery = String(max_length=10)  # ISO date string
    shipped_at = DateTime()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@commerce.entity(part_of="Order")
class OrderLine:
    """A frozen copy of a purchased variant, price and quantity."""

    variant_id = Identifier(required=True)
    title = String(required=True, max_length=255)
    options = Text()  # JSON: chosen options, e.g. {"size": "M"}
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)

    @property
    def line_total(self):
        return round(self.unit_price * self.quantity, 2)

    @property
    def chosen_options(self):
        return json.loads(self.options) if self.options else {}


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@commerce.aggregate
class Order:
    order_number = String(required=True, max_length=50, unique=True)
    customer_ref = String(required=True, max_length=255)
    email = String(max_length=254)
    items = HasMany(OrderLine)
    totals = ValueObject(OrderTotals)
    payment = ValueObject(MaskedPayment)
    transaction_status = String(max_length=20)
    transaction_reference = String(max_length=255)
    shipping_address = ValueObject(ShippingAddress)
    fulfillment = ValueObject(Fulfillment)
    discount_code = String(max_length=100)
    customer_notes = Text()
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    idempotency_key = String(max_length=255)
    cancellation_reason = String(max_length=500)
    cancelled_at = DateTime()
    refund_amount = Float()
    refunded_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        customer_ref,
        lines,
        totals,
        payment,
        transaction_status,
        transaction_reference=None,
        shipping_address=None,
        email=None,
        discount_code=None,
        customer_notes=None,
        idempotency_key=None,
    ):
        """Create a Pending order from an approved checkout.

        Args:
            order_number: Unique human-readable order number.
            customer_ref: Owner reference (customer id or ``guest:<session>``).
            lines: List of dicts with variant_id, title, options, unit_price
                and quantity.
            totals: An ``OrderTotals`` value object.
            payment: A ``MaskedPayment`` value object.
        """
        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            customer_ref=customer_ref,
            email=email,
            totals=totals,
            payment=payment,
            transaction_status=transaction_status,
            transaction_reference=transaction_reference,
            shipping_address=shipping_address,
            discount_code=discount_code,
            customer_notes=customer_notes,
            status=OrderStatus.PENDING.value,
            idempotency_key=idempotency_key,
            created_at=now,
            updated_at=now,
        )
        for line in lines:
            order.add_items(
                OrderLine(
                    variant_id=line["variant_id"],
                    title=line["title"],
                    options=json.dumps(line.get("options") or {}, sort_keys=True),
                    unit_price=line["unit_price"],
                    quantity=line["quantity"],
                )
            )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                customer_ref=customer_ref,
                item_count=sum(line["quantity"] for line in lines),
                total=totals.total,
                currency=totals.currency,
                transaction_reference=transaction_reference,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Lifecycle transitions
    # -------------------------------------------------------------------
    def _move_to(self, target, now):
        previous = OrderStatus(self.status)
        assert_can_transition(previous, target)

        self.status = target.value
        self.updated_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                from_status=previous.value,
                to_status=target.value,
                changed_at=now,
            )
        )
        return previous

    def transition_to(self, target, reason=None, amount=None, tracking=None):
        """Move the order to ``target``, enforcing the transition table.

        ``tracking`` is only used when shipping: a dict with any of carrier,
        tracking_number, tracking_url and estimated_delivery.
        """
        target = target if isinstance(target, OrderStatus) else OrderStatus(target)
        if target == OrderStatus.CANCELLED:
            return self.cancel(reason)
        if target == OrderStatus.REFUNDED:
            return self.refund(amount)
        if target == OrderStatus.SHIPPED:
            return self.ship(**(tracking or {}))
        self._move_to(target, datetime.now(UTC))

    def confirm(self):
        self.transition_to(OrderStatus.CONFIRMED)

    def mark_processing(self):
        self.transition_to(OrderStatus.PROCESSING)

    def ship(self, carrier=None, tracking_number=None, tracking_url=None, estimated_delivery=None):
        now = datetime.now(UTC)
        self._move_to(OrderStatus.SHIPPED, now)
        self.fulfillment = Fulfillment(
            carrier=carrier,
            tracking_number=tracking_number,
            tracking_url=tracking_url,
            estimated_delivery=estimated_delivery,
            shipped_at=now,
        )

        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                order_number=self.order_number,
                carrier=carrier,
                tracking_number=tracking_number,
                tracking_url=tracking_url,
                estimated_delivery=estimated_delivery,
                shipped_at=now,
            )
        )

    def deliver(self):
        self.transition_to(OrderStatus.DELIVERED)

    def cancel(self, reason=None):
        now = datetime.now(UTC)
        previous = self._move_to(OrderStatus.CANCELLED, now)
        self.cancellation_reason = reason
        self.cancelled_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=previous.value,
                reason=reason,
                cancelled_at=now,
            )
        )

    def refund(self, amount=None):
        """Record a refund. Defaults to the full order total."""
        if amount is None:
            amount = self.totals.total
        if amount <= 0 or amount - self.totals.total > _MONEY_TOLERANCE:
            raise ValidationError({"amount": [f"Refund amount must be between 0 and {self.totals.total}"]})

        now = datetime.now(UTC)
        previous = self._move_to(OrderStatus.REFUNDED, now)
        self.refund_amount = round(amount, 2)
        self.refunded_at = now

        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=previous.value,
                amount=self.refund_amount,
                refunded_at=now,
            )
        )
