"""Order number generation.

Order numbers read ``ORD-<YYYYMMDD>-<8 uppercase hex>``: the UTC date of
placement followed by 32 random bits from ``secrets``. A candidate that is
already taken is regenerated, so numbers stay unique even on a collision.
"""

import re
import secrets
from datetime import UTC, datetime

import structlog
from protean.exceptions import ValidationError

logger = structlog.get_logger(__name__)

ORDER_NUMBER_PATTERN = re.compile(r"^ORD-\d{8}-[0-9A-F]{8}$")
MAX_ATTEMPTS = 5


def generate_order_number(now=None):
    now = now or datetime.now(UTC)
    return f"ORD-{now:%Y%m%d}-{secrets.token_hex(4).upper()}"


def allocate_order_number(is_taken, now=None, max_attempts=MAX_ATTEMPTS):
    """Return an order number for which ``is_taken(number)`` is False."""
    for attempt in range(1, max_attempts + 1):
        candidate = generate_order_number(now)
        if not is_taken(candidate):
            return candidate
        logger.warning("Order number collision, regenerating", order_number=candidate, attempt=attempt)

    raise ValidationError({"order_number": ["Could not allocate a unique order number"]})
