"""Order administration — commands and handler.

Staff move orders along the lifecycle from the admin console. Every command is
keyed by order number; the aggregate enforces the transition table.
"""

import structlog
from protean import handle
from protean.fields import Float, String
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.order.lookup import find_by_order_number, parse_status
from commerce.order.order import Order

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Order")
class AdvanceOrderStatus:
    """Move an order along its lifecycle.

    Shipment tracking fields are recorded when the target status is Shipped.
    """

    order_number = String(required=True, max_length=50)
    status = String(required=True, max_length=20)
    reason = String(max_length=500)
    carrier = String(max_length=100)
    tracking_number = String(max_length=255)
    tracking_url = String(max_length=1024)
    estimated_delivery = String(max_length=10)


@commerce.command(part_of="Order")
class CancelOrder:
    order_number = String(required=True, max_length=50)
    reason = String(max_length=500)


@commerce.command(part_of="Order")
class RefundOrder:
    """Refund an order. Without an amount the whole total is refunded."""

    order_number = String(required=True, max_length=50)
    amount = Float()


@commerce.command_handler(part_of=Order)
class OrderAdministrationHandler:
    @handle(AdvanceOrderStatus)
    def advance_status(self, command):
        order = find_by_order_number(command.order_number)
        previous = order.status
        tracking = {
            "carrier": command.carrier,
            "tracking_number": command.tracking_number,
            "tracking_url": command.tracking_url,
            "estimated_delivery": command.estimated_delivery,
        }
        order.transition_to(parse_status(command.status), reason=command.reason, tracking=tracking)
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order status changed",
            order_number=order.order_number,
            from_status=previous,
            to_status=order.status,
        )
        return order.status

    @handle(CancelOrder)
    def cancel_order(self, command):
        order = find_by_order_number(command.order_number)
        order.cancel(command.reason)
        current_domain.repository_for(Order).add(order)

        logger.info("Order cancelled", order_number=order.order_number, reason=command.reason)
        return order.status

    @handle(RefundOrder)
    def refund_order(self, command):
        order = find_by_order_number(command.order_number)
        order.refund(command.amount)
        current_domain.repository_for(Order).add(order)

        logger.info("Order refunded", order_number=order.order_number, amount=order.refund_amount)
        return order.status
