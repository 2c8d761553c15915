"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations. The
simulated gateway is the default and the only adapter shipped.
"""

import os

from commerce.payment.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway. Defaults to SimulatedGateway."""
    global _current_gateway
    if _current_gateway is None:
        adapter = os.environ.get("PAYMENT_GATEWAY", "simulated")
        if adapter == "simulated":
            from commerce.payment.simulator import SimulatedGateway

            _current_gateway = SimulatedGateway()
        else:
            raise ValueError(f"Unknown payment gateway: {adapter}")
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    global _current_gateway
    _current_gateway = None
