"""Catalog item repository interface."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Iterable, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.catalog.models import CatalogItem


class ICatalogItemRepository(IRepository["CatalogItem"]):
    """Repository contract for merchant catalog items."""

    @abstractmethod
    def get_by_sku(self, merchant_id: str, sku: str) -> Optional[CatalogItem]:
        """Retrieve an item by SKU within one merchant's catalog."""

    @abstractmethod
    def lock_many(self, ids: Iterable) -> List[CatalogItem]:
        """Lock the given items (SELECT FOR UPDATE) in primary-key order."""
