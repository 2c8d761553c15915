"""Checkout — turning a cart into an order.

``PlaceOrderHandler`` runs the checkout steps in a fixed order:

0. An ``idempotency_key`` that already produced an order for the same owner
   returns that order.
1. Every selection line is re-checked against live inventory.
2. The subtotal is summed from the prices captured at checkout time.
3. The discount code is resolved through the pricing policy.
4. Shipping and tax are priced, each call bounded by a timeout.
5. The payment is authorized through the gateway.
6. On approval, inventory is reserved line by line, the order is stored in
   Pending state, a use of its discount code is counted, the cart is
   cleared, and a notification is sent.
7. On a declined or errored payment nothing is stored and no inventory is
   touched; the customer is notified and the failure is raised.

Nothing changes before step 6, so a client may abandon a checkout at any time
up to payment approval.
"""

import json
from uuid import uuid4

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from commerce.cart.cart import Cart
from commerce.cart.queries import find_active_cart
from commerce.catalogue import get_catalogue
from commerce.checkout.pricing import get_pricing_policy, quote
from commerce.checkout.validation import validate_checkout
from commerce.domain import commerce
from commerce.exceptions import InsufficientInventory, InventoryConflict, PaymentDeclined, PaymentError
from commerce.notification import dispatch
from commerce.order.lookup import find_by_idempotency_key, order_number_exists
from commerce.order.numbering import allocate_order_number
from commerce.order.order import MaskedPayment, Order, ShippingAddress
from commerce.payment import get_gateway
from commerce.payment.port import TransactionStatus
from commerce.shared.identity import Identity

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Order")
class PlaceOrder:
    """Check out a cart.

    ``checkout`` is the raw checkout payload as JSON. When it carries no
    ``product_selection`` the lines of the owner's cart are used.
    """

    cart_id = Identifier()
    customer_id = Identifier()
    session_id = String(max_length=255)
    checkout = Text(required=True)


def selection_from_cart(cart):
    """Build a product selection from the cart's line snapshots."""
    return [
        {
            "variant_id": str(item.variant_id),
            "options": {},
            "quantity": item.quantity,
            "unit_price": item.unit_price,
        }
        for item in cart.items
    ]


def order_summary(order):
    """Notification payload for a stored order."""
    return {
        "order_number": order.order_number,
        "email": order.email,
        "customer_ref": order.customer_ref,
        "transaction_status": order.transaction_status,
        "status": order.status,
        "total": order.totals.total,
        "currency": order.totals.currency,
        "items": [{"title": line.title, "quantity": line.quantity} for line in order.items],
    }


def preview_checkout(cart, discount_code=None):
    """Price the cart without placing an order.

    An unusable discount code does not fail the preview; its message is
    returned in ``discount_error`` and no discount is applied.
    """
    if not cart.items:
        raise ValidationError({"cart": ["Cart is empty"]})

    discount_error = None
    try:
        totals = quote(cart.subtotal, None, discount_code)
    except ValidationError as exc:
        if "discount_code" not in exc.messages:
            raise
        discount_error = exc.messages["discount_code"][0]
        totals = quote(cart.subtotal, None)

    policy = get_pricing_policy()
    return {
        "item_count": cart.item_count,
        "subtotal": totals.subtotal,
        "discount": totals.discount,
        "discount_error": discount_error,
        "shipping_cost": totals.shipping_cost,
        "free_shipping_threshold": getattr(policy, "free_shipping_threshold", None),
        "tax": totals.tax,
        "total": totals.total,
        "currency": totals.currency,
    }


def _check_inventory(catalogue, selection):
    """Return the catalogue snapshot for each line, failing on short stock."""
    snapshots = {}
    for line in selection:
        variant = catalogue.get_variant(line.variant_id)
        if line.quantity > variant.inventory_qty:
            raise InsufficientInventory(line.variant_id, line.quantity, variant.inventory_qty)
        snapshots[line.variant_id] = variant
    return snapshots


def _reserve_inventory(catalogue, selection):
    """Reserve every line, or none of them."""
    reserved = []
    for line in selection:
        if not catalogue.reserve(line.variant_id, line.quantity):
            _release(catalogue, reserved)
            raise InventoryConflict(line.variant_id, line.quantity)
        reserved.append((line.variant_id, line.quantity))
    return reserved


def _release(catalogue, reserved):
    for variant_id, quantity in reserved:
        catalogue.release(variant_id, quantity)


@commerce.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        identity = Identity(customer_id=command.customer_id, session_id=command.session_id)
        if not identity.customer_id and not identity.session_id:
            raise ValidationError({"owner": ["Checkout needs a customer id or a session id"]})

        cart_repo = current_domain.repository_for(Cart)
        if command.cart_id:
            cart = cart_repo.get(command.cart_id)
        else:
            cart = find_active_cart(identity.customer_id, identity.session_id)

        payload = json.loads(command.checkout)
        if cart is not None and isinstance(payload, dict) and not payload.get("product_selection"):
            payload["product_selection"] = selection_from_cart(cart)
        checkout = validate_checkout(payload)

        existing = find_by_idempotency_key(checkout.idempotency_key, identity.owner_ref)
        if existing is not None:
            logger.info(
                "Duplicate checkout, returning existing order",
                order_number=existing.order_number,
                idempotency_key=checkout.idempotency_key,
            )
            return str(existing.id)

        catalogue = get_catalogue()
        snapshots = _check_inventory(catalogue, checkout.product_selection)

        totals = quote(checkout.subtotal, checkout.shipping_address, checkout.discount_code)

        idempotency_key = checkout.idempotency_key or str(uuid4())
        payment = checkout.payment
        result = get_gateway().authorize(payment.card_number, totals.total, totals.currency, idempotency_key)

        if not result.approved:
            logger.warning(
                "Checkout payment not approved",
                customer_ref=identity.owner_ref,
                transaction_status=result.status.value,
                reason=result.failure_reason,
            )
            dispatch(
                {
                    "order_number": None,
                    "email": checkout.email,
                    "customer_ref": identity.owner_ref,
                    "transaction_status": result.status.value,
                    "total": totals.total,
                    "currency": totals.currency,
                },
                result.status.value,
            )
            failure = PaymentDeclined if result.status == TransactionStatus.DECLINED else PaymentError
            raise failure(result.status.value, result.failure_reason)

        reserved = _reserve_inventory(catalogue, checkout.product_selection)
        try:
            order = Order.place(
                order_number=allocate_order_number(order_number_exists),
                customer_ref=identity.owner_ref,
                lines=[
                    {
                        "variant_id": line.variant_id,
                        "title": snapshots[line.variant_id].title,
                        "options": line.options,
                        "unit_price": line.unit_price,
                        "quantity": line.quantity,
                    }
                    for line in checkout.product_selection
                ],
                totals=totals,
                payment=MaskedPayment.from_card(
                    payment.card_number,
                    expiry_month=payment.expiry_month,
                    expiry_year=payment.expiry_year,
                    cardholder_name=payment.cardholder_name,
                ),
                transaction_status=result.status.value,
                transaction_reference=result.reference,
                shipping_address=ShippingAddress(**checkout.shipping_address.model_dump()),
                email=checkout.email,
                discount_code=checkout.discount_code,
                customer_notes=checkout.customer_notes,
                idempotency_key=checkout.idempotency_key,
            )
            current_domain.repository_for(Order).add(order)
        except Exception:
            _release(catalogue, reserved)
            raise

        if order.discount_code:
            get_pricing_policy().record_use(order.discount_code)

        if cart is not None:
            cart.clear(order.order_number)
            cart_repo.add(cart)

        logger.info(
            "Order placed",
            order_number=order.order_number,
            customer_ref=order.customer_ref,
            total=order.totals.total,
        )
        dispatch(order_summary(order), result.status.value)
        return str(order.id)
