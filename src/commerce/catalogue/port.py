"""Catalogue port (abstract interface).

The product catalogue is owned by another service. The cart and the order
factory only read variant snapshots from it and, on an approved checkout,
reserve inventory. Reservation is a single conditional decrement so that two
concurrent checkouts can never oversell a variant.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class VariantSnapshot:
    """Point-in-time view of a purchasable variant."""

    variant_id: str
    title: str
    price: float
    inventory_qty: int
    image_url: str | None = None


class CataloguePort(ABC):
    @abstractmethod
    def get_variant(self, variant_id: str) -> VariantSnapshot:
        """Return the variant, or raise ``ObjectNotFoundError`` when unknown."""
        ...

    @abstractmethod
    def reserve(self, variant_id: str, quantity: int) -> bool:
        """Decrement inventory by ``quantity`` only if at least that much is left.

        Returns False, leaving inventory untouched, when stock is short.
        """
        ...

    @abstractmethod
    def release(self, variant_id: str, quantity: int) -> None:
        """Return previously reserved stock."""
        ...
