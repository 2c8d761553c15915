"""Domain events for the Cart aggregate."""

from protean.fields import Identifier, Integer, String

from commerce.domain import commerce


@commerce.event(part_of="Cart")
class CartItemAdded:
    """A variant was added to the cart, or its quantity incremented."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    quantity_added = Integer(required=True)
    new_quantity = Integer(required=True)


@commerce.event(part_of="Cart")
class CartItemQuantitySet:
    """A cart line's quantity was set to an absolute value."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@commerce.event(part_of="Cart")
class CartItemRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    variant_id = Identifier(required=True)


@commerce.event(part_of="Cart")
class CartsMerged:
    """A guest cart's lines were merged into a customer's cart at login."""

    __version__ = 1

    cart_id = Identifier(required=True)
    source_cart_id = Identifier()
    items_merged_count = Integer(required=True)


@commerce.event(part_of="Cart")
class CartDiscarded:
    """A guest cart was emptied and retired after being merged."""

    __version__ = 1

    cart_id = Identifier(required=True)
    merged_into = Identifier(required=True)


@commerce.event(part_of="Cart")
class CartCleared:
    """All lines were removed after an order was placed from the cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    order_number = String(max_length=50)
