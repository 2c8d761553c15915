"""HTTP mapping for domain errors.

Protean's handlers map ``ValidationError`` to 400 and ``ObjectNotFoundError``
to 404. The storefront errors below are ``ValidationError`` subclasses that
need a more specific status; Starlette resolves handlers by the exception's
MRO, so the most specific registration wins.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from commerce.exceptions import (
    CheckoutValidationError,
    InsufficientInventory,
    InvalidQuantity,
    InvalidStatusTransition,
    OutOfStock,
    PaymentFailure,
    PricingUnavailable,
)

logger = structlog.get_logger(__name__)

STATUS_BY_ERROR = {
    CheckoutValidationError: 400,
    InvalidQuantity: 400,
    OutOfStock: 409,
    InsufficientInventory: 409,  # Includes InventoryConflict
    InvalidStatusTransition: 409,
    PaymentFailure: 402,
    PricingUnavailable: 503,
}


def _error_body(exc):
    body = {"error": exc.messages}
    if isinstance(exc, (OutOfStock, InsufficientInventory)):
        body["variant_id"] = exc.variant_id
    if isinstance(exc, PaymentFailure):
        # The classified reason stays in the logs; clients only get the status
        body["transaction_status"] = exc.transaction_status
    if isinstance(exc, PricingUnavailable):
        body["retryable"] = True
    return body


def _handler_for(status_code):
    async def handle_domain_error(request: Request, exc):
        if isinstance(exc, PaymentFailure):
            logger.warning(
                "Checkout payment failed",
                path=request.url.path,
                transaction_status=exc.transaction_status,
                reason=exc.reason,
            )
        return JSONResponse(status_code=status_code, content=_error_body(exc))

    return handle_domain_error


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    for exc_class, status_code in STATUS_BY_ERROR.items():
        app.add_exception_handler(exc_class, _handler_for(status_code))
