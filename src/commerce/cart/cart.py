"""Cart aggregate (CQRS) — the customer's mutable pre-purchase selection.

A cart belongs to either an authenticated customer or a guest session, and
each owner has exactly one Active cart. Lines are keyed by variant: adding a
variant that is already present increments its quantity instead of adding a
second line. Each line keeps a denormalized snapshot (title, unit price,
image) taken from the catalogue when the line was created.

Inventory is owned by the catalogue, so every mutating method receives the
variant's currently available quantity from its caller and refuses to exceed it.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from commerce.cart.events import (
    CartCleared,
    CartDiscarded,
    CartItemAdded,
    CartItemQuantitySet,
    CartItemRemoved,
    CartsMerged,
)
from commerce.domain import commerce
from commerce.exceptions import InvalidQuantity, OutOfStock


class CartStatus(Enum):
    ACTIVE = "Active"
    MERGED = "Merged"


def merge_quantities(guest_lines, user_lines, stock):
    """Combine two carts' quantities per variant, capped at available stock.

    Symmetric in its first two arguments: swapping guest and user yields the
    same quantities. Variants whose capped quantity is zero are dropped.

    Args:
        guest_lines: Mapping of variant_id to quantity.
        user_lines: Mapping of variant_id to quantity.
        stock: Mapping of variant_id to available inventory.
    """
    merged = {}
    for variant_id in set(guest_lines) | set(user_lines):
        total = guest_lines.get(variant_id, 0) + user_lines.get(variant_id, 0)
        capped = min(total, stock.get(variant_id, 0))
        if capped > 0:
            merged[variant_id] = capped
    return merged


@commerce.entity(part_of="Cart")
class CartItem:
    variant_id = Identifier(required=True)
    title = String(required=True, max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    image_url = String(max_length=1024)
    quantity = Integer(required=True, min_value=1)
    added_at = DateTime()

    @property
    def line_total(self):
        return round(self.unit_price * self.quantity, 2)


@commerce.aggregate
class Cart:
    customer_id = Identifier()  # Nullable for guest carts
    session_id = String(max_length=255)  # For guest cart identification
    items = HasMany(CartItem)
    status = String(choices=CartStatus, default=CartStatus.ACTIVE.value)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, customer_id=None, session_id=None):
        if not customer_id and not session_id:
            raise ValidationError({"owner": ["A cart needs a customer id or a session id"]})

        now = datetime.now(UTC)
        return cls(
            customer_id=customer_id,
            session_id=session_id,
            status=CartStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    @property
    def subtotal(self):
        return round(sum(item.unit_price * item.quantity for item in self.items), 2)

    @property
    def item_count(self):
        return sum(item.quantity for item in self.items)

    def line_for_variant(self, variant_id):
        return next((i for i in self.items if str(i.variant_id) == str(variant_id)), None)

    def line(self, item_id):
        return next((i for i in self.items if str(i.id) == str(item_id)), None)

    def _assert_active(self, action):
        if CartStatus(self.status) != CartStatus.ACTIVE:
            raise ValidationError({"status": [f"Cannot {action} a {self.status.lower()} cart"]})

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, variant, quantity, available):
        """Add ``quantity`` of a variant, incrementing an existing line.

        Args:
            variant: Catalogue snapshot with variant_id, title, price, image_url.
            quantity: Units to add, at least 1.
            available: Inventory available for the variant right now.
        """
        self._assert_active("add items to")
        if quantity is None or quantity < 1:
            raise InvalidQuantity(quantity)

        existing = self.line_for_variant(variant.variant_id)
        new_quantity = quantity + (existing.quantity if existing else 0)
        if new_quantity > available:
            raise OutOfStock(variant.variant_id, new_quantity, available)

        now = datetime.now(UTC)
        if existing:
            existing.quantity = new_quantity
            item_id = str(existing.id)
        else:
            item = CartItem(
                variant_id=variant.variant_id,
                title=variant.title,
                unit_price=variant.price,
                image_url=variant.image_url,
                quantity=quantity,
                added_at=now,
            )
            self.add_items(item)
            item_id = str(item.id)

        self.updated_at = now

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=item_id,
                variant_id=str(variant.variant_id),
                quantity_added=quantity,
                new_quantity=new_quantity,
            )
        )

    def set_item_quantity(self, item_id, quantity, available=None):
        """Set a line to an absolute quantity. Zero removes the line.

        Repeating the call with the same quantity leaves the cart unchanged,
        so clients may retry it freely.
        """
        self._assert_active("update")
        if quantity is None or quantity < 0:
            raise InvalidQuantity(quantity)

        if quantity == 0:
            self.remove_item(item_id)
            return

        item = self.line(item_id)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in cart"]})

        if available is not None and quantity > available:
            raise OutOfStock(item.variant_id, quantity, available)

        previous_quantity = item.quantity
        if previous_quantity == quantity:
            return

        item.quantity = quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartItemQuantitySet(
                cart_id=str(self.id),
                item_id=str(item_id),
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )

    def remove_item(self, item_id):
        """Remove a line. Removing an absent line is a no-op."""
        self._assert_active("remove items from")

        item = self.line(item_id)
        if item is None:
            return

        self.remove_items(item)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartItemRemoved(
                cart_id=str(self.id),
                item_id=str(item_id),
                variant_id=str(item.variant_id),
            )
        )

    # -------------------------------------------------------------------
    # Cart merging (guest → authenticated)
    # -------------------------------------------------------------------
    def absorb(self, guest_cart, stock):
        """Merge a guest cart's lines into this cart.

        Quantities of shared variants are summed; every resulting line is
        capped at the variant's available stock.

        Args:
            guest_cart: The guest Cart being merged in.
            stock: Mapping of variant_id to available inventory for every
                variant present in either cart.
        """
        self._assert_active("merge into")

        guest_lines = {str(i.variant_id): i for i in guest_cart.items}
        merged = merge_quantities(
            {variant_id: item.quantity for variant_id, item in guest_lines.items()},
            {str(i.variant_id): i.quantity for i in self.items},
            stock,
        )

        now = datetime.now(UTC)
        for item in list(self.items):
            if str(item.variant_id) not in merged:
                self.remove_items(item)

        for variant_id, quantity in merged.items():
            existing = self.line_for_variant(variant_id)
            if existing:
                existing.quantity = quantity
            else:
                source = guest_lines[variant_id]
                self.add_items(
                    CartItem(
                        variant_id=variant_id,
                        title=source.title,
                        unit_price=source.unit_price,
                        image_url=source.image_url,
                        quantity=quantity,
                        added_at=now,
                    )
                )

        self.updated_at = now

        self.raise_(
            CartsMerged(
                cart_id=str(self.id),
                source_cart_id=str(guest_cart.id),
                items_merged_count=len(guest_lines),
            )
        )

    def discard(self, merged_into):
        """Retire a guest cart after its lines were merged elsewhere."""
        self._assert_active("discard")

        for item in list(self.items):
            self.remove_items(item)
        self.status = CartStatus.MERGED.value
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartDiscarded(
                cart_id=str(self.id),
                merged_into=str(merged_into),
            )
        )

    # -------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------
    def clear(self, order_number=None):
        """Empty the cart once an order has been placed from it."""
        for item in list(self.items):
            self.remove_items(item)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartCleared(
                cart_id=str(self.id),
                order_number=order_number,
            )
        )
