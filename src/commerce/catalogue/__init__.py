"""Catalogue adapter registry.

Provides get_catalogue() / set_catalogue() to swap implementations. The
in-memory adapter is the default; select another through the
CATALOGUE_ADAPTER environment variable.
"""

import os

from commerce.catalogue.port import CataloguePort

_current_catalogue: CataloguePort | None = None


def get_catalogue() -> CataloguePort:
    global _current_catalogue
    if _current_catalogue is None:
        adapter = os.environ.get("CATALOGUE_ADAPTER", "memory")
        if adapter == "memory":
            from commerce.catalogue.memory_adapter import InMemoryCatalogue

            _current_catalogue = InMemoryCatalogue()
        else:
            raise ValueError(f"Unknown catalogue adapter: {adapter}")
    return _current_catalogue


def set_catalogue(catalogue: CataloguePort) -> None:
    """Override the active catalogue (useful for tests)."""
    global _current_catalogue
    _current_catalogue = catalogue


def reset_catalogue() -> None:
    global _current_catalogue
    _current_catalogue = None
