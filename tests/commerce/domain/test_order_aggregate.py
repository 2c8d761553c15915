"""Tests for the Order aggregate: placement, totals and lifecycle methods."""

import pytest
from commerce.exceptions import InvalidStatusTransition
from commerce.order.events import OrderCancelled, OrderPlaced, OrderRefunded, OrderShipped, OrderStatusChanged
from commerce.order.lifecycle import OrderStatus
from commerce.order.order import MaskedPayment, Order, OrderTotals, detect_card_brand, mask_card_number
from protean.exceptions import ValidationError


def _place(**overrides):
    defaults = {
        "order_number": "ORD-20261019-0A1B2C3D",
        "customer_ref": "cust-001",
        "lines": [
            {
                "variant_id": "var-tee",
                "title": "Black Tee / M",
                "options": {"size": "M"},
                "unit_price": 20.0,
                "quantity": 2,
            },
            {"variant_id": "var-mug", "title": "Enamel Mug", "unit_price": 12.5, "quantity": 1},
        ],
        "totals": OrderTotals.compute(subtotal=52.5, discount=5.25, shipping_cost=0.0, tax=3.78),
        "payment": MaskedPayment.from_card("4111 1111 1111 1111", 12, 2031, "Ada Lovelace"),
        "transaction_status": "approved",
        "transaction_reference": "sim_txn_abc",
        "email": "ada@example.com",
    }
    defaults.update(overrides)
    order = Order.place(**defaults)
    return order


def _money(order):
    t = order.totals
    return (t.subtotal, t.discount, t.shipping_cost, t.tax, t.total)


class TestOrderTotals:
    def test_compute_derives_total(self):
        totals = OrderTotals.compute(subtotal=40.0, discount=4.0, shipping_cost=5.99, tax=2.88)
        assert totals.total == 44.87

    def test_inconsistent_total_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            OrderTotals(subtotal=40.0, discount=0.0, shipping_cost=5.0, tax=1.0, total=100.0)
        assert "total" in exc.value.messages

    def test_total_is_the_sum_of_rounded_parts(self):
        totals = OrderTotals.compute(subtotal=10.004, shipping_cost=0.004, tax=0.004)
        assert (totals.subtotal, totals.shipping_cost, totals.tax) == (10.0, 0.0, 0.0)
        assert totals.total == 10.0
        assert totals.total == round(totals.subtotal - totals.discount + totals.shipping_cost + totals.tax, 2)


class TestPaymentMasking:
    def test_mask_keeps_last_four(self):
        assert mask_card_number("4111 1111 1111 1234") == "************1234"

    def test_masked_payment_never_stores_cvv(self):
        payment = MaskedPayment.from_card("4111111111111111", 12, 2031, "Ada Lovelace")
        assert payment.cvv == "***"
        assert payment.last4 == "1111"
        assert "4111111111111111" not in payment.masked_card_number

    @pytest.mark.parametrize(
        "card_number, brand",
        [
            ("4111111111111111", "Visa"),
            ("5500000000000004", "Mastercard"),
            ("340000000000009", "Amex"),
            ("6011000000000004", "Discover"),
            ("9999000000000001", "Unknown"),
        ],
    )
    def test_brand_detection(self, card_number, brand):
        assert detect_card_brand(card_number) == brand


class TestOrderPlacement:
    def test_placed_order_is_pending(self):
        order = _place()
        assert order.status == OrderStatus.PENDING.value
        assert order.order_number == "ORD-20261019-0A1B2C3D"
        assert len(order.items) == 2

    def test_lines_are_frozen_copies(self):
        order = _place()
        tee = next(line for line in order.items if str(line.variant_id) == "var-tee")
        assert tee.unit_price == 20.0
        assert tee.chosen_options == {"size": "M"}
        assert tee.line_total == 40.0

    def test_total_matches_components(self):
        order = _place()
        t = order.totals
        assert t.total == pytest.approx(t.subtotal - t.discount + t.shipping_cost + t.tax)

    def test_placement_raises_order_placed(self):
        order = _place()
        event = order._events[-1]
        assert isinstance(event, OrderPlaced)
        assert event.item_count == 3
        assert event.total == order.totals.total


class TestLifecycleMethods:
    def test_full_fulfillment_path(self):
        order = _place()
        order.confirm()
        order.mark_processing()
        order.ship()
        order.deliver()
        assert order.status == OrderStatus.DELIVERED.value
        changes = [e for e in order._events if isinstance(e, OrderStatusChanged)]
        assert [c.to_status for c in changes] == ["Confirmed", "Processing", "Shipped", "Delivered"]

    def test_ship_records_tracking(self):
        order = _place()
        order.confirm()
        order.ship(
            carrier="UPS",
            tracking_number="1Z999AA10123456784",
            tracking_url="https://track.example.com/1Z999AA10123456784",
            estimated_delivery="2026-10-25",
        )

        assert order.status == OrderStatus.SHIPPED.value
        assert order.fulfillment.carrier == "UPS"
        assert order.fulfillment.tracking_number == "1Z999AA10123456784"
        assert order.fulfillment.estimated_delivery == "2026-10-25"
        assert order.fulfillment.shipped_at is not None
        shipped = [e for e in order._events if isinstance(e, OrderShipped)]
        assert len(shipped) == 1
        assert shipped[0].carrier == "UPS"

    def test_ship_without_tracking_still_records_shipment_time(self):
        order = _place()
        order.transition_to(OrderStatus.SHIPPED)
        assert order.fulfillment.carrier is None
        assert order.fulfillment.shipped_at is not None

    def test_status_changes_never_touch_money(self):
        order = _place()
        before = _money(order)
        order.confirm()
        order.mark_processing()
        order.ship()
        order.deliver()
        assert _money(order) == before

    def test_delivered_cannot_go_back_to_processing(self):
        order = _place()
        order.transition_to(OrderStatus.DELIVERED)
        with pytest.raises(InvalidStatusTransition):
            order.transition_to(OrderStatus.PROCESSING)
        assert order.status == OrderStatus.DELIVERED.value

    def test_cancel_records_reason(self):
        order = _place()
        order.confirm()
        order.cancel("Customer changed their mind")
        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancellation_reason == "Customer changed their mind"
        assert order.cancelled_at is not None
        assert isinstance(order._events[-1], OrderCancelled)

    def test_cancelled_order_cannot_be_refunded(self):
        order = _place()
        order.cancel()
        with pytest.raises(InvalidStatusTransition):
            order.refund()

    def test_refund_defaults_to_full_total(self):
        order = _place()
        before = _money(order)
        order.ship()
        order.refund()
        assert order.status == OrderStatus.REFUNDED.value
        assert order.refund_amount == order.totals.total
        assert _money(order) == before
        assert isinstance(order._events[-1], OrderRefunded)

    @pytest.mark.parametrize("amount", [0, -5, 1000])
    def test_refund_amount_must_fit_total(self, amount):
        order = _place()
        with pytest.raises(ValidationError) as exc:
            order.refund(amount)
        assert "amount" in exc.value.messages
        assert order.status == OrderStatus.PENDING.value

    def test_transition_to_cancelled_delegates_to_cancel(self):
        order = _place()
        order.transition_to("Cancelled", reason="Fraud check")
        assert order.cancellation_reason == "Fraud check"
