"""Order lifecycle — status enumeration and transition table.

    PENDING → CONFIRMED → PROCESSING → SHIPPED → DELIVERED
    CANCELLED, REFUNDED (from any non-terminal state)

The linear path only moves forward. Admin tooling may skip ahead, but never
back. DELIVERED, CANCELLED and REFUNDED are terminal.
"""

from enum import Enum

from commerce.exceptions import InvalidStatusTransition


class OrderStatus(Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


FULFILLMENT_PATH = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)

TERMINAL_STATES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED})


def _build_transitions():
    transitions = {}
    for position, status in enumerate(FULFILLMENT_PATH):
        if status in TERMINAL_STATES:
            transitions[status] = frozenset()
            continue
        forward = set(FULFILLMENT_PATH[position + 1 :])
        transitions[status] = frozenset(forward | {OrderStatus.CANCELLED, OrderStatus.REFUNDED})
    transitions[OrderStatus.CANCELLED] = frozenset()
    transitions[OrderStatus.REFUNDED] = frozenset()
    return transitions


VALID_TRANSITIONS = _build_transitions()


def _as_status(status):
    return status if isinstance(status, OrderStatus) else OrderStatus(status)


def is_terminal(status) -> bool:
    return _as_status(status) in TERMINAL_STATES


def can_transition(current, target) -> bool:
    return _as_status(target) in VALID_TRANSITIONS[_as_status(current)]


def assert_can_transition(current, target) -> None:
    current, target = _as_status(current), _as_status(target)
    if target not in VALID_TRANSITIONS[current]:
        raise InvalidStatusTransition(current, target)


def ordinal(status) -> int | None:
    """Position of ``status`` on the fulfillment path, 0 to 4.

    Cancelled and refunded orders carry no position.
    """
    status = _as_status(status)
    if status in FULFILLMENT_PATH:
        return FULFILLMENT_PATH.index(status)
    return None


def progress(status) -> list[dict]:
    """Step list for an order progress indicator.

    Every step on the fulfillment path is reported as ``complete``,
    ``current`` or ``upcoming``. Cancelled and refunded orders report every
    step as ``void``.
    """
    position = ordinal(status)

    steps = []
    for index, step in enumerate(FULFILLMENT_PATH):
        if position is None:
            state = "void"
        elif index < position:
            state = "complete"
        elif index == position:
            state = "complete" if step in TERMINAL_STATES else "current"
        else:
            state = "upcoming"
        steps.append({"status": step.value, "position": index, "state": state})
    return steps
