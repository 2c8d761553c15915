"""Storefront commerce FastAPI application.

Serves the cart, checkout and order APIs, processing commands synchronously
via HTTP. Each request is wrapped in the commerce domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
from commerce.domain import commerce  # noqa: E402
from commerce.utils.logging import add_context, clear_context, configure_logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

configure_logging()
commerce.init()

_DOMAIN_ROUTE_PREFIXES = ("/carts", "/checkout", "/orders", "/admin")


def _resolve_domain(path: str):
    """Return the domain for the given request path, or None."""
    if path.startswith(_DOMAIN_ROUTE_PREFIXES):
        return commerce
    return None


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Storefront Commerce API",
    description="Cart, checkout and order lifecycle",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the Protean domain context for each request."""
    domain = _resolve_domain(request.url.path)
    if domain is not None:
        clear_context()
        add_context(
            path=request.url.path,
            method=request.method,
            customer_id=request.headers.get("x-customer-id"),
        )
        with domain.domain_context():
            response = await call_next(request)
        return response
    # No domain match, pass through (health check, docs)
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from commerce.api import (  # noqa: E402
    admin_router,
    cart_router,
    checkout_router,
    order_router,
    register_error_handlers,
)

app.include_router(cart_router)
app.include_router(checkout_router)
app.include_router(order_router)
app.include_router(admin_router)
register_error_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domains": {
                "commerce": {"name": commerce.name},
            },
        }
    )
