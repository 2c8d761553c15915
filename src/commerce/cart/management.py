"""Cart management — commands and handler.

Handles opening the owner's cart and merging a guest cart into a customer's
cart at login.

Opening a cart is a find-then-create. ``open_cart`` and ``merge_guest_cart``
hold a per-owner lock across the whole command, commit included, so
concurrent first requests from one owner still end up with a single Active
cart. The lock is process-local, like the in-memory catalogue's.
"""

import threading
from collections import defaultdict
from contextlib import contextmanager

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from commerce.cart.cart import Cart
from commerce.cart.queries import find_active_cart
from commerce.catalogue import get_catalogue
from commerce.domain import commerce

logger = structlog.get_logger(__name__)

_owner_locks = defaultdict(threading.Lock)
_owner_locks_guard = threading.Lock()


@commerce.command(part_of="Cart")
class OpenCart:
    """Return the owner's Active cart, creating it on first use."""

    customer_id = Identifier()  # Optional for guest carts
    session_id = String(max_length=255)


@commerce.command(part_of="Cart")
class MergeGuestCart:
    """Merge a guest session's cart into a registered customer's cart."""

    customer_id = Identifier(required=True)
    session_id = String(required=True, max_length=255)


def _available_stock(variant_ids):
    catalogue = get_catalogue()
    stock = {}
    for variant_id in variant_ids:
        try:
            stock[variant_id] = catalogue.get_variant(variant_id).inventory_qty
        except ObjectNotFoundError:
            logger.warning("Dropping unknown variant during cart merge", variant_id=variant_id)
            stock[variant_id] = 0
    return stock


@commerce.command_handler(part_of=Cart)
class ManageCartHandler:
    @handle(OpenCart)
    def open_cart(self, command):
        existing = find_active_cart(command.customer_id, command.session_id)
        if existing is not None:
            return str(existing.id)

        if command.customer_id:
            cart = Cart.create(customer_id=command.customer_id)
        else:
            cart = Cart.create(session_id=command.session_id)
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)

    @handle(MergeGuestCart)
    def merge_guest_cart(self, command):
        repo = current_domain.repository_for(Cart)

        customer_cart = find_active_cart(customer_id=command.customer_id)
        if customer_cart is None:
            customer_cart = Cart.create(customer_id=command.customer_id)

        guest_cart = find_active_cart(session_id=command.session_id)
        if guest_cart is None:
            repo.add(customer_cart)
            return str(customer_cart.id)

        variant_ids = {str(i.variant_id) for i in guest_cart.items} | {str(i.variant_id) for i in customer_cart.items}
        customer_cart.absorb(guest_cart, _available_stock(variant_ids))
        guest_cart.discard(merged_into=customer_cart.id)

        repo.add(customer_cart)
        repo.add(guest_cart)

        logger.info(
            "Guest cart merged",
            cart_id=str(customer_cart.id),
            guest_cart_id=str(guest_cart.id),
            item_count=customer_cart.item_count,
        )
        return str(customer_cart.id)


# ---------------------------------------------------------------------------
# Serialized entry points
# ---------------------------------------------------------------------------
@contextmanager
def owner_lock(customer_id=None, session_id=None):
    """Serialize cart creation for one owner; a customer id takes precedence."""
    key = f"customer:{customer_id}" if customer_id else f"session:{session_id}"
    with _owner_locks_guard:
        lock = _owner_locks[key]
    with lock:
        yield


def open_cart(customer_id=None, session_id=None):
    """Return the id of the owner's Active cart, creating it on first use."""
    with owner_lock(customer_id, session_id):
        command = OpenCart(customer_id=customer_id, session_id=session_id)
        return current_domain.process(command, asynchronous=False)


def merge_guest_cart(customer_id, session_id):
    """Merge the guest session's cart into the customer's cart, returning its id."""
    with owner_lock(customer_id=customer_id):
        command = MergeGuestCart(customer_id=customer_id, session_id=session_id)
        return current_domain.process(command, asynchronous=False)
