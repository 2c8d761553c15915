"""In-memory catalogue adapter for development and testing."""

import threading

from protean.exceptions import ObjectNotFoundError

from commerce.catalogue.port import CataloguePort, VariantSnapshot


class InMemoryCatalogue(CataloguePort):
    """Catalogue held in a dict, with a lock serializing inventory writes."""

    def __init__(self) -> None:
        self._variants: dict[str, VariantSnapshot] = {}
        self._lock = threading.Lock()

    def add_variant(
        self,
        variant_id: str,
        title: str,
        price: float,
        inventory_qty: int,
        image_url: str | None = None,
    ) -> VariantSnapshot:
        variant = VariantSnapshot(
            variant_id=str(variant_id),
            title=title,
            price=price,
            inventory_qty=inventory_qty,
            image_url=image_url,
        )
        with self._lock:
            self._variants[variant.variant_id] = variant
        return variant

    def get_variant(self, variant_id: str) -> VariantSnapshot:
        variant = self._variants.get(str(variant_id))
        if variant is None:
            raise ObjectNotFoundError({"variant_id": [f"Variant {variant_id} not found"]})
        return variant

    def reserve(self, variant_id: str, quantity: int) -> bool:
        with self._lock:
            variant = self.get_variant(variant_id)
            if variant.inventory_qty < quantity:
                return False
            self._replace(variant, variant.inventory_qty - quantity)
            return True

    def release(self, variant_id: str, quantity: int) -> None:
        with self._lock:
            variant = self.get_variant(variant_id)
            self._replace(variant, variant.inventory_qty + quantity)

    def _replace(self, variant: VariantSnapshot, inventory_qty: int) -> None:
        self._variants[variant.variant_id] = VariantSnapshot(
            variant_id=variant.variant_id,
            title=variant.title,
            price=variant.price,
            inventory_qty=inventory_qty,
            image_url=variant.image_url,
        )

    def reset(self) -> None:
        """Drop all variants (useful between tests)."""
        with self._lock:
            self._variants.clear()
