"""Base repository contract.

Domain-specific interfaces (orders, parties, catalog) extend
``IRepository[T]``; services receive implementations through their
constructors and never query the ORM themselves.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    """CRUD every aggregate repository provides.

    ``get_by_id`` returns ``None`` for unknown or malformed IDs instead of
    raising, so callers translate absence into their own ``*NotFound``.
    """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[T]:
        ...

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[T]:
        """Entities matching ORM look-ups in *filters*."""

    @abstractmethod
    def save(self, entity: T) -> T:
        ...

    @abstractmethod
    def delete(self, id: str) -> bool:
        """Retire or refuse; financial records are never removed."""
