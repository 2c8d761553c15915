"""Read-side helpers for carts."""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from commerce.cart.cart import Cart, CartStatus
from commerce.catalogue import get_catalogue

logger = structlog.get_logger(__name__)


def find_active_cart(customer_id=None, session_id=None):
    """Return the owner's Active cart, or None.

    A customer id takes precedence; a session id alone finds a guest cart.
    """
    repo = current_domain.repository_for(Cart)
    if customer_id:
        matches = repo._dao.query.filter(customer_id=str(customer_id), status=CartStatus.ACTIVE.value).all().items
    elif session_id:
        matches = [
            cart
            for cart in repo._dao.query.filter(session_id=session_id, status=CartStatus.ACTIVE.value).all().items
            if not cart.customer_id
        ]
    else:
        return None

    if not matches:
        return None
    # Reload through the repository so that the line items are attached
    return repo.get(matches[0].id)


def cart_summary(cart, catalogue=None):
    """Render a cart with subtotal, item count and read-time stock checks.

    A line whose variant is no longer in the catalogue is shown with nothing
    available, so the customer can still see and remove it.
    """
    catalogue = catalogue or get_catalogue()

    lines = []
    for item in cart.items:
        try:
            available = catalogue.get_variant(item.variant_id).inventory_qty
        except ObjectNotFoundError:
            logger.warning(
                "Cart line refers to an unknown variant",
                cart_id=str(cart.id),
                variant_id=str(item.variant_id),
            )
            available = 0
        lines.append(
            {
                "item_id": str(item.id),
                "variant_id": str(item.variant_id),
                "title": item.title,
                "unit_price": item.unit_price,
                "image_url": item.image_url,
                "quantity": item.quantity,
                "line_total": item.line_total,
                "available": available,
                "exceeds_stock": item.quantity > available,
            }
        )

    return {
        "cart_id": str(cart.id),
        "customer_id": str(cart.customer_id) if cart.customer_id else None,
        "session_id": cart.session_id,
        "items": lines,
        "item_count": cart.item_count,
        "subtotal": cart.subtotal,
        "updated_at": cart.updated_at,
    }
