"""Pydantic request/response schemas for the storefront API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands. The checkout body is deliberately not modelled
here: it is passed through to ``validate_checkout`` so that every violated
field is reported in one response.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class StatusResponse(BaseModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddCartItemRequest(BaseModel):
    variant_id: str
    quantity: int = 1


class SetCartItemQuantityRequest(BaseModel):
    quantity: int


class MergeCartRequest(BaseModel):
    session_id: str | None = None


class CartLineResponse(BaseModel):
    item_id: str
    variant_id: str
    title: str
    unit_price: float
    image_url: str | None = None
    quantity: int
    line_total: float
    available: int
    exceeds_stock: bool


class CartResponse(BaseModel):
    cart_id: str
    customer_id: str | None = None
    session_id: str | None = None
    items: list[CartLineResponse]
    item_count: int
    subtotal: float
    updated_at: datetime | None = None


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class CheckoutResponse(BaseModel):
    order_number: str
    transaction_status: str
    total: float


class PreviewRequest(BaseModel):
    discount_code: str | None = None


class PreviewResponse(BaseModel):
    item_count: int
    subtotal: float
    discount: float
    discount_error: str | None = None
    shipping_cost: float
    free_shipping_threshold: float | None = None
    tax: float
    total: float
    currency: str


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OrderLineResponse(BaseModel):
    variant_id: str
    title: str
    options: dict[str, str] = Field(default_factory=dict)
    unit_price: float
    quantity: int
    line_total: float


class TotalsResponse(BaseModel):
    subtotal: float
    discount: float
    shipping_cost: float
    tax: float
    total: float
    currency: str


class PaymentResponse(BaseModel):
    masked_card_number: str
    last4: str
    brand: str | None = None
    expiry_month: int | None = None
    expiry_year: int | None = None
    cardholder_name: str | None = None
    cvv: str = "***"


class FulfillmentResponse(BaseModel):
    carrier: str | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None
    estimated_delivery: str | None = None
    shipped_at: datetime | None = None


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    customer_ref: str
    email: str | None = None
    status: str
    transaction_status: str | None = None
    items: list[OrderLineResponse]
    totals: TotalsResponse
    payment: PaymentResponse | None = None
    shipping_address: dict | None = None
    fulfillment: FulfillmentResponse | None = None
    discount_code: str | None = None
    customer_notes: str | None = None
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
    refund_amount: float | None = None
    refunded_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrderSummaryResponse(BaseModel):
    order_number: str
    status: str
    item_count: int
    total: float
    created_at: datetime | None = None


class ProgressStep(BaseModel):
    status: str
    position: int
    state: str


class ProgressResponse(BaseModel):
    order_number: str
    status: str
    position: int | None = None
    steps: list[ProgressStep]


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------
class UpdateOrderStatusRequest(BaseModel):
    status: str
    reason: str | None = None
    carrier: str | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None
    estimated_delivery: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [{"status": "Shipped", "carrier": "UPS", "tracking_number": "1Z999AA10123456784"}]
        }
    }


class CancelOrderRequest(BaseModel):
    reason: str | None = None


class RefundOrderRequest(BaseModel):
    amount: float | None = None


class SeedVariantRequest(BaseModel):
    variant_id: str
    title: str
    price: float = Field(ge=0)
    inventory_qty: int = Field(ge=0)
    image_url: str | None = None
