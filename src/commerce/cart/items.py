"""Cart item management — commands and handler.

Every handler reloads the cart and the variant right before writing, so an
increment is always applied to the latest stored quantity.
"""

from protean import handle
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from commerce.cart.cart import Cart
from commerce.catalogue import get_catalogue
from commerce.domain import commerce


@commerce.command(part_of="Cart")
class AddToCart:
    cart_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    quantity = Integer(required=True)


@commerce.command(part_of="Cart")
class UpdateCartItemQuantity:
    """Set a cart line to an absolute quantity; 0 removes the line."""

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True)


@commerce.command(part_of="Cart")
class RemoveFromCart:
    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)


@commerce.command_handler(part_of=Cart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        variant = get_catalogue().get_variant(command.variant_id)
        cart.add_item(variant, command.quantity, available=variant.inventory_qty)
        repo.add(cart)
        return str(cart.id)

    @handle(UpdateCartItemQuantity)
    def update_item_quantity(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)

        available = None
        item = cart.line(command.item_id)
        if item is not None and command.quantity:
            available = get_catalogue().get_variant(item.variant_id).inventory_qty

        cart.set_item_quantity(command.item_id, command.quantity, available=available)
        repo.add(cart)
        return str(cart.id)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.remove_item(command.item_id)
        repo.add(cart)
        return str(cart.id)
