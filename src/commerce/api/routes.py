"""FastAPI routes for the storefront — carts, checkout and orders."""

import json
import os

from fastapi import APIRouter, Body, Depends, Header, HTTPException
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from commerce.api.schemas import (
    AddCartItemRequest,
    CancelOrderRequest,
    CartResponse,
    CheckoutResponse,
    MergeCartRequest,
    OrderResponse,
    OrderSummaryResponse,
    PreviewRequest,
    PreviewResponse,
    ProgressResponse,
    RefundOrderRequest,
    SeedVariantRequest,
    SetCartItemQuantityRequest,
    StatusResponse,
    UpdateOrderStatusRequest,
)
from commerce.cart.cart import Cart
from commerce.cart.items import AddToCart, RemoveFromCart, UpdateCartItemQuantity
from commerce.cart.management import merge_guest_cart as merge_carts
from commerce.cart.management import open_cart
from commerce.cart.queries import cart_summary, find_active_cart
from commerce.catalogue import get_catalogue
from commerce.catalogue.memory_adapter import InMemoryCatalogue
from commerce.checkout.placement import PlaceOrder, preview_checkout
from commerce.order.administration import AdvanceOrderStatus, CancelOrder, RefundOrder
from commerce.order.lifecycle import ordinal, progress
from commerce.order.lookup import find_by_order_number, orders_by_status, orders_for_customer
from commerce.order.order import Order
from commerce.shared.identity import Identity


def current_identity(
    x_customer_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
) -> Identity:
    """Identity resolved upstream and forwarded in request headers."""
    if not x_customer_id and not x_session_id:
        raise ValidationError({"identity": ["X-Customer-Id or X-Session-Id header is required"]})
    return Identity(customer_id=x_customer_id, session_id=x_session_id)


def _open_cart(identity: Identity) -> str:
    return open_cart(customer_id=identity.customer_id, session_id=identity.session_id)


def _cart_response(cart_id: str) -> CartResponse:
    cart = current_domain.repository_for(Cart).get(cart_id)
    return CartResponse(**cart_summary(cart))


def _order_response(order) -> OrderResponse:
    payment = order.payment
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        customer_ref=order.customer_ref,
        email=order.email,
        status=order.status,
        transaction_status=order.transaction_status,
        items=[
            {
                "variant_id": str(line.variant_id),
                "title": line.title,
                "options": line.chosen_options,
                "unit_price": line.unit_price,
                "quantity": line.quantity,
                "line_total": line.line_total,
            }
            for line in order.items
        ],
        totals={
            "subtotal": order.totals.subtotal,
            "discount": order.totals.discount,
            "shipping_cost": order.totals.shipping_cost,
            "tax": order.totals.tax,
            "total": order.totals.total,
            "currency": order.totals.currency,
        },
        payment=(
            {
                "masked_card_number": payment.masked_card_number,
                "last4": payment.last4,
                "brand": payment.brand,
                "expiry_month": payment.expiry_month,
                "expiry_year": payment.expiry_year,
                "cardholder_name": payment.cardholder_name,
            }
            if payment
            else None
        ),
        shipping_address=order.shipping_address.to_dict() if order.shipping_address else None,
        fulfillment=(
            {
                "carrier": order.fulfillment.carrier,
                "tracking_number": order.fulfillment.tracking_number,
                "tracking_url": order.fulfillment.tracking_url,
                "estimated_delivery": order.fulfillment.estimated_delivery,
                "shipped_at": order.fulfillment.shipped_at,
            }
            if order.fulfillment
            else None
        ),
        discount_code=order.discount_code,
        customer_notes=order.customer_notes,
        cancellation_reason=order.cancellation_reason,
        cancelled_at=order.cancelled_at,
        refund_amount=order.refund_amount,
        refunded_at=order.refunded_at,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def _order_summary(order) -> OrderSummaryResponse:
    return OrderSummaryResponse(
        order_number=order.order_number,
        status=order.status,
        item_count=sum(line.quantity for line in order.items),
        total=order.totals.total,
        created_at=order.created_at,
    )


def _owned_order(order_number: str, identity: Identity):
    """Load an order, hiding orders that belong to someone else."""
    order = find_by_order_number(order_number)
    if order.customer_ref != identity.owner_ref:
        raise ObjectNotFoundError({"_entity": [f"Order {order_number} does not exist"]})
    return order


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.get("/current", response_model=CartResponse)
async def get_current_cart(identity: Identity = Depends(current_identity)) -> CartResponse:
    return _cart_response(_open_cart(identity))


@cart_router.post("/current/items", response_model=CartResponse)
async def add_cart_item(body: AddCartItemRequest, identity: Identity = Depends(current_identity)) -> CartResponse:
    cart_id = _open_cart(identity)
    command = AddToCart(
        cart_id=cart_id,
        variant_id=body.variant_id,
        quantity=body.quantity,
    )
    current_domain.process(command, asynchronous=False)
    return _cart_response(cart_id)


@cart_router.put("/current/items/{item_id}", response_model=CartResponse)
async def set_cart_item_quantity(
    item_id: str, body: SetCartItemQuantityRequest, identity: Identity = Depends(current_identity)
) -> CartResponse:
    cart_id = _open_cart(identity)
    command = UpdateCartItemQuantity(
        cart_id=cart_id,
        item_id=item_id,
        quantity=body.quantity,
    )
    current_domain.process(command, asynchronous=False)
    return _cart_response(cart_id)


@cart_router.delete("/current/items/{item_id}", response_model=CartResponse)
async def remove_cart_item(item_id: str, identity: Identity = Depends(current_identity)) -> CartResponse:
    cart_id = _open_cart(identity)
    command = RemoveFromCart(cart_id=cart_id, item_id=item_id)
    current_domain.process(command, asynchronous=False)
    return _cart_response(cart_id)


@cart_router.post("/merge", response_model=CartResponse)
async def merge_guest_cart(body: MergeCartRequest, identity: Identity = Depends(current_identity)) -> CartResponse:
    """Merge the guest session's cart into the signed-in customer's cart."""
    session_id = body.session_id or identity.session_id
    if not identity.customer_id or not session_id:
        raise ValidationError({"identity": ["Merging needs a customer id and a guest session id"]})

    return _cart_response(merge_carts(identity.customer_id, session_id))


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("", status_code=201, response_model=CheckoutResponse)
async def checkout(body: dict = Body(...), identity: Identity = Depends(current_identity)) -> CheckoutResponse:
    """Place an order from the checkout form.

    Without a ``product_selection`` in the body the caller's cart is checked out.
    """
    command = PlaceOrder(
        customer_id=identity.customer_id,
        session_id=identity.session_id,
        checkout=json.dumps(body),
    )
    order_id = current_domain.process(command, asynchronous=False)
    order = current_domain.repository_for(Order).get(order_id)
    return CheckoutResponse(
        order_number=order.order_number,
        transaction_status=order.transaction_status,
        total=order.totals.total,
    )


@checkout_router.post("/preview", response_model=PreviewResponse)
async def preview(body: PreviewRequest, identity: Identity = Depends(current_identity)) -> PreviewResponse:
    cart = find_active_cart(identity.customer_id, identity.session_id)
    if cart is None:
        raise ValidationError({"cart": ["Cart is empty"]})
    return PreviewResponse(**preview_checkout(cart, body.discount_code))


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("", response_model=list[OrderSummaryResponse])
async def order_history(identity: Identity = Depends(current_identity)) -> list[OrderSummaryResponse]:
    return [_order_summary(order) for order in orders_for_customer(identity.owner_ref)]


@order_router.get("/{order_number}", response_model=OrderResponse)
async def get_order(order_number: str, identity: Identity = Depends(current_identity)) -> OrderResponse:
    return _order_response(_owned_order(order_number, identity))


@order_router.get("/{order_number}/progress", response_model=ProgressResponse)
async def get_order_progress(order_number: str, identity: Identity = Depends(current_identity)) -> ProgressResponse:
    order = _owned_order(order_number, identity)
    return ProgressResponse(
        order_number=order.order_number,
        status=order.status,
        position=ordinal(order.status),
        steps=progress(order.status),
    )


# ---------------------------------------------------------------------------
# Admin Router
# ---------------------------------------------------------------------------
admin_router = APIRouter(prefix="/admin", tags=["admin"])


@admin_router.get("/orders", response_model=list[OrderSummaryResponse])
async def list_orders(status: str | None = None) -> list[OrderSummaryResponse]:
    return [_order_summary(order) for order in orders_by_status(status)]


@admin_router.get("/orders/{order_number}", response_model=OrderResponse)
async def get_order_admin(order_number: str) -> OrderResponse:
    return _order_response(find_by_order_number(order_number))


@admin_router.put("/orders/{order_number}/status", response_model=StatusResponse)
async def update_order_status(order_number: str, body: UpdateOrderStatusRequest) -> StatusResponse:
    command = AdvanceOrderStatus(order_number=order_number, **body.model_dump())
    new_status = current_domain.process(command, asynchronous=False)
    return StatusResponse(status=new_status)


@admin_router.post("/orders/{order_number}/cancel", response_model=StatusResponse)
async def cancel_order(order_number: str, body: CancelOrderRequest) -> StatusResponse:
    command = CancelOrder(order_number=order_number, reason=body.reason)
    new_status = current_domain.process(command, asynchronous=False)
    return StatusResponse(status=new_status)


@admin_router.post("/orders/{order_number}/refund", response_model=StatusResponse)
async def refund_order(order_number: str, body: RefundOrderRequest) -> StatusResponse:
    command = RefundOrder(order_number=order_number, amount=body.amount)
    new_status = current_domain.process(command, asynchronous=False)
    return StatusResponse(status=new_status)


@admin_router.post("/catalogue/variants", status_code=201, response_model=StatusResponse)
async def seed_variant(body: SeedVariantRequest) -> StatusResponse:
    """Seed a variant into the in-memory catalogue (non-production only).

    The catalogue is owned by another service; this exists for manual API
    testing against the in-memory adapter.
    """
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Catalogue seeding not available in production")

    catalogue = get_catalogue()
    if not isinstance(catalogue, InMemoryCatalogue):
        raise HTTPException(status_code=400, detail="Catalogue seeding only available for InMemoryCatalogue")

    catalogue.add_variant(**body.model_dump())
    return StatusResponse(status="seeded")
