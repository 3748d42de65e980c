"""Catalog repositories package."""

from modules.catalog.repositories.django_repository import CatalogItemDjangoRepository
from modules.catalog.repositories.interfaces import ICatalogItemRepository

__all__ = ["CatalogItemDjangoRepository", "ICatalogItemRepository"]
