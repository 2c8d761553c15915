"""Domain events for the Order aggregate.

Orders are persisted as current state; these events record each change for
downstream consumers such as the notification channel and the admin console.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String

from commerce.domain import commerce


@commerce.event(part_of="Order")
class OrderPlaced:
    """An approved checkout produced a new order in Pending state."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_ref = String(required=True)
    item_count = Integer(required=True)
    total = Float(required=True)
    currency = String(default="USD")
    transaction_reference = String()
    placed_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderStatusChanged:
    """The order moved along its lifecycle."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    changed_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderShipped:
    """The order left the warehouse, with carrier tracking when known."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    carrier = String()
    tracking_number = String()
    tracking_url = String()
    estimated_delivery = String()
    shipped_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    reason = String()
    cancelled_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderRefunded:
    """A refund was recorded against the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    amount = Float(required=True)
    refunded_at = DateTime(required=True)
