"""Application tests for admin order commands and order lookups."""

import json

import pytest
from commerce.checkout.placement import PlaceOrder
from commerce.exceptions import InvalidStatusTransition
from commerce.order.administration import AdvanceOrderStatus, CancelOrder, RefundOrder
from commerce.order.lifecycle import OrderStatus
from commerce.order.lookup import find_by_order_number, orders_by_status, orders_for_customer
from commerce.order.order import Order
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError


@pytest.fixture()
def placed_order(catalogue, notifier, checkout_payload):
    def _place(customer_id="cust-001"):
        command = PlaceOrder(customer_id=customer_id, checkout=json.dumps(checkout_payload()))
        order_id = current_domain.process(command, asynchronous=False)
        return current_domain.repository_for(Order).get(order_id)

    return _place


def _advance(order_number, status):
    return current_domain.process(AdvanceOrderStatus(order_number=order_number, status=status), asynchronous=False)


class TestAdvanceOrderStatus:
    def test_walks_the_fulfillment_path(self, placed_order):
        order = placed_order()
        for status in ("Confirmed", "Processing", "Shipped", "Delivered"):
            assert _advance(order.order_number, status) == status
        assert find_by_order_number(order.order_number).status == OrderStatus.DELIVERED.value

    def test_total_is_unchanged_by_transitions(self, placed_order):
        order = placed_order()
        for status in ("Confirmed", "Processing", "Shipped"):
            _advance(order.order_number, status)
        assert find_by_order_number(order.order_number).totals.total == order.totals.total

    def test_backward_transition_is_rejected(self, placed_order):
        order = placed_order()
        _advance(order.order_number, "Delivered")
        with pytest.raises(InvalidStatusTransition):
            _advance(order.order_number, "Processing")
        assert find_by_order_number(order.order_number).status == OrderStatus.DELIVERED.value

    def test_unknown_status_is_rejected(self, placed_order):
        order = placed_order()
        with pytest.raises(ValidationError) as exc:
            _advance(order.order_number, "Teleported")
        assert "status" in exc.value.messages

    def test_unknown_order_is_not_found(self):
        with pytest.raises(ObjectNotFoundError):
            _advance("ORD-20261019-DEADBEEF", "Confirmed")

    def test_shipping_stores_tracking(self, placed_order):
        order = placed_order()
        command = AdvanceOrderStatus(
            order_number=order.order_number,
            status="Shipped",
            carrier="UPS",
            tracking_number="1Z999AA10123456784",
            estimated_delivery="2026-10-25",
        )
        current_domain.process(command, asynchronous=False)

        stored = find_by_order_number(order.order_number)
        assert stored.status == OrderStatus.SHIPPED.value
        assert stored.fulfillment.carrier == "UPS"
        assert stored.fulfillment.tracking_number == "1Z999AA10123456784"
        assert stored.fulfillment.estimated_delivery == "2026-10-25"


class TestCancelAndRefund:
    def test_cancel_from_confirmed(self, placed_order):
        order = placed_order()
        _advance(order.order_number, "Confirmed")

        status = current_domain.process(
            CancelOrder(order_number=order.order_number, reason="Out of delivery area"),
            asynchronous=False,
        )

        stored = find_by_order_number(order.order_number)
        assert status == "Cancelled"
        assert stored.cancellation_reason == "Out of delivery area"

    def test_cancelled_order_is_final(self, placed_order):
        order = placed_order()
        current_domain.process(CancelOrder(order_number=order.order_number), asynchronous=False)
        with pytest.raises(InvalidStatusTransition):
            _advance(order.order_number, "Confirmed")

    def test_partial_refund(self, placed_order):
        order = placed_order()
        current_domain.process(RefundOrder(order_number=order.order_number, amount=10.0), asynchronous=False)
        stored = find_by_order_number(order.order_number)
        assert stored.status == OrderStatus.REFUNDED.value
        assert stored.refund_amount == 10.0


class TestLookups:
    def test_find_by_order_number_missing(self):
        with pytest.raises(ObjectNotFoundError):
            find_by_order_number("ORD-20261019-00000000")

    def test_orders_for_customer_newest_first(self, placed_order):
        first = placed_order()
        second = placed_order()
        placed_order(customer_id="cust-002")

        history = orders_for_customer("cust-001")

        assert [o.order_number for o in history] == [second.order_number, first.order_number]

    def test_orders_by_status(self, placed_order):
        shipped = placed_order()
        placed_order()
        _advance(shipped.order_number, "Shipped")

        assert [o.order_number for o in orders_by_status("Shipped")] == [shipped.order_number]
        assert len(orders_by_status(OrderStatus.PENDING)) == 1
        assert len(orders_by_status()) == 2
