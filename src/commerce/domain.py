"""Commerce bounded context — Shopping Cart, Checkout and Orders.

Handles the cart-to-order pipeline: the shopping cart aggregate (CQRS),
the checkout transaction that turns a cart into an order, and the order
status lifecycle observed by order history and the admin console.
"""

import structlog
from protean.domain import Domain

commerce = Domain(name="commerce")

logger = structlog.get_logger(__name__)
