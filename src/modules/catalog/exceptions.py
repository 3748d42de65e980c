"""Catalog and stock domain exceptions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence
from uuid import UUID


@dataclass(frozen=True)
class ItemShortage:
    """One catalog item that cannot cover the ordered quantity."""

    catalog_item_id: UUID
    sku: str
    name: str
    requested: int
    available: int

    def describe(self) -> str:
        return f"{self.sku} ({self.name}): requested {self.requested}, available {self.available}"

    def to_dict(self) -> dict:
        return {
            "catalog_item_id": str(self.catalog_item_id),
            "sku": self.sku,
            "name": self.name,
            "requested": self.requested,
            "available": self.available,
        }


class CatalogItemNotFound(Exception):
    """A catalog item referenced by an order does not exist or was removed."""


class CatalogItemUnavailable(Exception):
    """A catalog item is switched off or belongs to another merchant."""


class InsufficientStock(Exception):
    """Not enough stock to reserve the order; carries every short item.

    The transition that triggered the reservation is rolled back as a whole.
    """

    def __init__(self, shortages: Sequence[ItemShortage]):
        self.shortages: List[ItemShortage] = list(shortages)
        details = "; ".join(s.describe() for s in self.shortages)
        super().__init__(f"Insufficient stock: {details}.")
