import pytest
from commerce.api import admin_router, cart_router, checkout_router, order_router, register_error_handlers
from fastapi import FastAPI
from fastapi.testclient import TestClient


@pytest.fixture()
def client(catalogue, notifier):
    app = FastAPI()
    app.include_router(cart_router)
    app.include_router(checkout_router)
    app.include_router(order_router)
    app.include_router(admin_router)
    register_error_handlers(app)
    return TestClient(app)
