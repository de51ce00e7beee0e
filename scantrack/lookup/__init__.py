"""Product lookup base class, errors, and factory."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from ..models import ProductCandidate

if TYPE_CHECKING:
    from ..config import AppConfig


class ProductLookupError(RuntimeError):
    """The upstream product service could not be queried."""


class ProductNotFoundError(LookupError):
    """The upstream product service returned no products."""


class ProductLookup(ABC):
    """Abstract base for barcode / keyword product search."""

    @abstractmethod
    def search(self, query: str) -> list[ProductCandidate]:
        """Search products by barcode (all digits) or free text.

        Raises:
            ValueError: If *query* is empty.
            ProductNotFoundError: If nothing matched.
            ProductLookupError: If the upstream request failed.
        """
        ...


def create_lookup(config: AppConfig) -> ProductLookup:
    """Create the product lookup client configured in *config*."""
    from .openfoodfacts import OpenFoodFactsLookup

    return OpenFoodFactsLookup(
        product_url=config.lookup.product_url,
        search_url=config.lookup.search_url,
        page_size=config.lookup.page_size,
        timeout=config.lookup.timeout,
    )


__all__ = [
    "ProductLookup",
    "ProductLookupError",
    "ProductNotFoundError",
    "create_lookup",
]
