"""Domain errors raised by the cart-to-order pipeline.

Every error is a Protean ``ValidationError`` so that it carries a ``messages``
dict keyed by the offending field, which the storefront uses to redraw forms.
Subclasses add the structured detail callers need to recover.
"""

from protean.exceptions import ValidationError


class CheckoutValidationError(ValidationError):
    """Checkout input is malformed. ``messages`` lists every violated field."""


class InvalidQuantity(ValidationError):
    def __init__(self, quantity, field="quantity"):
        self.quantity = quantity
        super().__init__({field: [f"Invalid quantity: {quantity}"]})


class OutOfStock(ValidationError):
    """A cart line would exceed the variant's available inventory."""

    def __init__(self, variant_id, requested, available):
        self.variant_id = str(variant_id)
        self.requested = requested
        self.available = available
        super().__init__(
            {"quantity": [f"Only {available} of variant {variant_id} available, {requested} requested"]}
        )


class InsufficientInventory(ValidationError):
    """A checkout line exceeds live stock for the named variant."""

    def __init__(self, variant_id, requested, available=None):
        self.variant_id = str(variant_id)
        self.requested = requested
        self.available = available
        detail = f"Insufficient inventory for variant {variant_id}: {requested} requested"
        if available is not None:
            detail += f", {available} available"
        super().__init__({"product_selection": [detail]})


class InventoryConflict(InsufficientInventory):
    """Stock ran out between inventory validation and reservation."""


class PaymentFailure(ValidationError):
    """Base for non-approved transaction outcomes.

    The customer-facing message stays generic; ``reason`` and
    ``transaction_status`` keep the classified outcome for support tooling.
    """

    customer_message = "We could not process your payment. Please try different payment details."

    def __init__(self, transaction_status, reason):
        self.transaction_status = transaction_status
        self.reason = reason
        super().__init__({"payment": [self.customer_message]})


class PaymentDeclined(PaymentFailure):
    pass


class PaymentError(PaymentFailure):
    pass


class PricingUnavailable(ValidationError):
    """Discount, shipping or tax lookup timed out or failed. Safe to retry."""

    def __init__(self, component, reason):
        self.component = component
        self.reason = reason
        super().__init__({"pricing": [f"{component} is temporarily unavailable, please retry"]})


class InvalidStatusTransition(ValidationError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__({"status": [f"Cannot transition from {current.value} to {target.value}"]})
