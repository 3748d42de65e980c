"""Django ORM implementation of the catalog item repository.

Missing or malformed IDs resolve to ``None``; the service layer decides how
to report a missing item.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction

from modules.catalog.models import CatalogItem
from modules.catalog.repositories.interfaces import ICatalogItemRepository

logger = structlog.get_logger(__name__)


class CatalogItemDjangoRepository(ICatalogItemRepository):
    """Concrete catalog item repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[CatalogItem]:
        try:
            return CatalogItem.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[CatalogItem]:
        """List live catalog items with optional ORM look-ups.

        Examples of valid filters::

            {"merchant_id": "..."}
            {"is_available": True}
        """
        queryset = CatalogItem.objects.alive()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    @transaction.atomic
    def save(self, entity: CatalogItem) -> CatalogItem:
        entity.save()
        logger.info("catalog_item.saved", catalog_item_id=str(entity.id), sku=entity.sku)
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        """Soft-delete an item; order lines keep pointing at it."""
        item = self.get_by_id(id)
        if not item:
            return False
        item.delete()
        logger.info("catalog_item.soft_deleted", catalog_item_id=str(id))
        return True

    def get_by_sku(self, merchant_id: str, sku: str) -> Optional[CatalogItem]:
        return (
            CatalogItem.objects.alive()
            .filter(merchant_id=merchant_id, sku=sku.strip().upper())
            .first()
        )

    def lock_many(self, ids: Iterable) -> List[CatalogItem]:
        # Locks are taken in PK order so two reservations touching the same
        # items cannot deadlock.
        return list(
            CatalogItem.objects.select_for_update()
            .filter(id__in=list(ids))
            .order_by("pk")
        )
