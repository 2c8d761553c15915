"""Order queries for customer history and the admin console."""

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from commerce.order.lifecycle import OrderStatus
from commerce.order.order import Order


def parse_status(status):
    if isinstance(status, OrderStatus):
        return status
    try:
        return OrderStatus(status)
    except ValueError:
        raise ValidationError({"status": [f"Unknown order status: {status}"]}) from None


def _newest_first(orders):
    return sorted(orders, key=lambda o: o.created_at, reverse=True)


def order_number_exists(order_number) -> bool:
    repo = current_domain.repository_for(Order)
    return bool(repo._dao.query.filter(order_number=order_number).all().items)


def find_by_order_number(order_number):
    repo = current_domain.repository_for(Order)
    matches = repo._dao.query.filter(order_number=order_number).all().items
    if not matches:
        raise ObjectNotFoundError({"_entity": [f"Order {order_number} does not exist"]})
    return repo.get(matches[0].id)


def find_by_idempotency_key(idempotency_key, customer_ref):
    """Return the order ``customer_ref`` placed under ``idempotency_key``, or None.

    Keys are scoped to their owner; another owner reusing a key is a new checkout.
    """
    if not idempotency_key:
        return None
    repo = current_domain.repository_for(Order)
    matches = (
        repo._dao.query.filter(idempotency_key=idempotency_key, customer_ref=str(customer_ref)).all().items
    )
    return repo.get(matches[0].id) if matches else None


def orders_for_customer(customer_ref):
    repo = current_domain.repository_for(Order)
    matches = repo._dao.query.filter(customer_ref=str(customer_ref)).all().items
    return [repo.get(o.id) for o in _newest_first(matches)]


def orders_by_status(status=None):
    """Orders for the admin console, newest first, optionally by status."""
    repo = current_domain.repository_for(Order)
    if status is None:
        matches = repo._dao.query.all().items
    else:
        status = parse_status(status)
        matches = repo._dao.query.filter(status=status.value).all().items
    return [repo.get(o.id) for o in _newest_first(matches)]
