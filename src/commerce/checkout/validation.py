"""Checkout input validation.

``validate_checkout`` turns a raw checkout payload into a typed
``CheckoutInput`` or raises ``CheckoutValidationError`` listing every
violated field, keyed by dotted path (``payment.card_number``,
``product_selection.0.quantity``) so that a form can show all errors at once.

Validation is pure: no catalogue, inventory or payment lookups happen here.
"""

import re
from datetime import UTC, date, datetime
from typing import Annotated, Any

from pydantic import BaseModel, EmailStr, Field, StringConstraints, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

from commerce.exceptions import CheckoutValidationError

NonEmpty = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

_SEPARATORS = re.compile(r"[\s-]")


class ShippingDetails(BaseModel):
    first_name: NonEmpty
    last_name: NonEmpty
    line1: NonEmpty
    line2: str | None = None
    city: NonEmpty
    state: NonEmpty
    postal_code: NonEmpty
    country: NonEmpty = "US"
    phone: str | None = None


class PaymentDetails(BaseModel):
    card_number: str
    expiry_month: int = Field(ge=1, le=12)
    expiry_year: int
    cvv: str
    cardholder_name: NonEmpty

    @field_validator("card_number", mode="before")
    @classmethod
    def card_number_digits(cls, value):
        digits = _SEPARATORS.sub("", str(value or ""))
        if not digits.isdigit() or not 12 <= len(digits) <= 19:
            raise ValueError("Card number must be 12 to 19 digits")
        return digits

    @field_validator("cvv", mode="before")
    @classmethod
    def cvv_digits(cls, value):
        value = str(value or "").strip()
        if not re.fullmatch(r"\d{3,4}", value):
            raise ValueError("CVV must be 3 or 4 digits")
        return value

    @field_validator("expiry_year")
    @classmethod
    def expiry_not_past(cls, year, info: ValidationInfo):
        if year < 100:
            year += 2000

        month = info.data.get("expiry_month")
        if month is None:
            # Month already failed validation; report the year on its own
            return year

        today = (info.context or {}).get("today") or datetime.now(UTC).date()
        if (year, month) < (today.year, today.month):
            raise ValueError("Card has expired")
        return year


class SelectionLine(BaseModel):
    variant_id: NonEmpty
    options: dict[str, str] = Field(default_factory=dict)
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0)


class CheckoutInput(BaseModel):
    email: EmailStr
    phone: str | None = None
    shipping_address: ShippingDetails
    payment: PaymentDetails
    product_selection: list[SelectionLine] = Field(min_length=1)
    discount_code: str | None = None
    customer_notes: str | None = Field(default=None, max_length=2000)
    idempotency_key: str | None = Field(default=None, max_length=255)

    @property
    def subtotal(self) -> float:
        return round(sum(line.unit_price * line.quantity for line in self.product_selection), 2)


def _error_messages(exc: PydanticValidationError) -> dict[str, list[str]]:
    messages: dict[str, list[str]] = {}
    for error in exc.errors():
        path = ".".join(str(part) for part in error["loc"]) or "checkout"
        message = error["msg"].removeprefix("Value error, ")
        messages.setdefault(path, []).append(message)
    return messages


def validate_checkout(payload: Any, today: date | None = None) -> CheckoutInput:
    """Validate a raw checkout payload.

    Args:
        payload: A mapping as decoded from the request body.
        today: Reference date for the card-expiry check; defaults to the
            current UTC date.

    Raises:
        CheckoutValidationError: with every violated field path in ``messages``.
    """
    try:
        return CheckoutInput.model_validate(payload, context={"today": today})
    except PydanticValidationError as exc:
        raise CheckoutValidationError(_error_messages(exc)) from exc
