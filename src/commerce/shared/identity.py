"""Caller identity supplied by the authentication collaborator.

Authentication lives outside this service. Upstream middleware resolves the
caller to an optional customer id and an optional guest session id; carts and
orders are owned by whichever of the two is present, customer id first.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    customer_id: str | None = None
    session_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.customer_id)

    @property
    def owner_ref(self) -> str:
        """Stable reference for the owner of carts and orders."""
        if self.customer_id:
            return str(self.customer_id)
        if self.session_id:
            return f"guest:{self.session_id}"
        raise ValueError("Identity has neither a customer id nor a session id")
