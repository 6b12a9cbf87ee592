"""Catalog lookup ports used to corroborate OCR values.

The engine only depends on the abstract ports. Database-backed adapters live
outside this package; the in-memory implementations serve tests and local
worker runs. Implementations must be safe to share across concurrently
processed documents.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T")


class HistoricalResult(BaseModel):
    """Previously validated product line for a business."""

    business_name: str
    description: str
    product_code: str | None = None
    sale_value: float | None = None
    value_ibua_and_others: float | None = None
    packaging_type: str | None = None
    packaging_unit: float | None = None
    packs_sold: float | None = None


class ProductCode(BaseModel):
    product_code: str


class ExcludedProduct(BaseModel):
    description: str
    company_id: int | None = None


class Product(BaseModel):
    """Master product record of a company."""

    description: str
    company_id: int
    product_code: str | None = None
    packaging_type: str | None = None
    packaging_unit: float | None = None


class HistoricalResultCatalog(ABC):
    """Exact-match lookups over previously validated results."""

    @abstractmethod
    async def find_by_description_and_business_name(
        self, business_name: str, description: str
    ) -> HistoricalResult | None:
        """Find a result whose normalized description matches exactly."""

    @abstractmethod
    async def find_product_by_code(self, code: str) -> ProductCode | None:
        """Find a known product code (exact match)."""


class ExcludedProductCatalog(ABC):
    @abstractmethod
    async def find_excluded_by_fuzzy_description(
        self, description: str, company_id: int
    ) -> ExcludedProduct | None:
        """Find an excluded product within a bounded edit distance."""


class ProductCatalog(ABC):
    @abstractmethod
    async def find_product_by_fuzzy_description(
        self, description: str, company_id: int
    ) -> Product | None:
        """Find a company product within a bounded edit distance."""

    @abstractmethod
    async def find_product_by_code(self, code: str, company_id: int) -> Product | None:
        """Find a company product by exact code."""


@dataclass(frozen=True)
class CatalogPorts:
    """Bundle of catalog ports handed to every document."""

    historical: HistoricalResultCatalog
    excluded: ExcludedProductCatalog
    products: ProductCatalog


def normalize_description(text: str | None) -> str:
    return " ".join((text or "").upper().split())


def edit_distance(source: str, target: str) -> int:
    """Edit distance between two strings.

    Each block that differs in the difflib alignment costs its longer side, so
    substitutions count once and insertions or deletions count per character.
    """
    matcher = SequenceMatcher(None, source, target, autojunk=False)
    return sum(
        max(i2 - i1, j2 - j1)
        for tag, i1, i2, j1, j2 in matcher.get_opcodes()
        if tag != "equal"
    )


def _closest(
    description: str, candidates: Iterable[tuple[str, T]], max_distance: int
) -> T | None:
    """Return the candidate value with the smallest distance within the bound."""
    wanted = normalize_description(description)
    best = None
    best_distance = max_distance + 1
    for candidate_description, value in candidates:
        distance = edit_distance(wanted, normalize_description(candidate_description))
        if distance < best_distance:
            best, best_distance = value, distance
    return best


class InMemoryHistoricalResultCatalog(HistoricalResultCatalog):
    def __init__(
        self,
        results: Iterable[HistoricalResult] = (),
        product_codes: Iterable[str] = (),
    ) -> None:
        self._results = {
            (normalize_description(r.business_name), normalize_description(r.description)): r
            for r in results
        }
        self._codes = set(product_codes)

    async def find_by_description_and_business_name(
        self, business_name: str, description: str
    ) -> HistoricalResult | None:
        key = (normalize_description(business_name), normalize_description(description))
        return self._results.get(key)

    async def find_product_by_code(self, code: str) -> ProductCode | None:
        return ProductCode(product_code=code) if code in self._codes else None


class InMemoryExcludedProductCatalog(ExcludedProductCatalog):
    def __init__(self, products: Iterable[ExcludedProduct] = (), max_distance: int = 3) -> None:
        self._products = list(products)
        self.max_distance = max_distance

    async def find_excluded_by_fuzzy_description(
        self, description: str, company_id: int
    ) -> ExcludedProduct | None:
        scoped = (
            (p.description, p)
            for p in self._products
            if p.company_id is None or p.company_id == company_id
        )
        return _closest(description, scoped, self.max_distance)


class InMemoryProductCatalog(ProductCatalog):
    def __init__(self, products: Iterable[Product] = (), max_distance: int = 3) -> None:
        self._products = list(products)
        self.max_distance = max_distance

    async def find_product_by_fuzzy_description(
        self, description: str, company_id: int
    ) -> Product | None:
        scoped = ((p.description, p) for p in self._products if p.company_id == company_id)
        return _closest(description, scoped, self.max_distance)

    async def find_product_by_code(self, code: str, company_id: int) -> Product | None:
        for product in self._products:
            if product.company_id == company_id and product.product_code == code:
                return product
        return None


def in_memory_catalogs(max_distance: int = 3) -> CatalogPorts:
    """Empty in-memory catalogs (no corroboration, nothing excluded)."""
    logger.info("Using in-memory catalogs")
    return CatalogPorts(
        historical=InMemoryHistoricalResultCatalog(),
        excluded=InMemoryExcludedProductCatalog(max_distance=max_distance),
        products=InMemoryProductCatalog(max_distance=max_distance),
    )
