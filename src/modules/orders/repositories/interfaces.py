"""Order repository interface.

Extends ``IRepository[Order]`` with what the Order aggregate needs: atomic
creation with items, locked reads, the status audit trail and
idempotency-key look-up.

The service layer depends exclusively on this contract.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import DriverRelease, Order, OrderStatusHistory


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The aggregate includes OrderItem children, OrderStatusHistory records
    and DriverRelease audit rows.  Mutations must be atomic.
    """

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its items atomically.

        ``data`` must include ``customer_id``, ``merchant_id`` and ``items``
        (list of dicts with ``catalog_item_id``, ``quantity``,
        ``unit_price``); fee fields, ``idempotency_key`` and ``notes`` are
        optional.
        """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with prefetched items and status history."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE)."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders with optional filters."""

    @abstractmethod
    def add_history(
        self,
        order_id: UUID,
        old_status: Optional[str],
        new_status: str,
        actor_role: str,
        actor_id: str = "",
        notes: str = "",
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""

    @abstractmethod
    def add_driver_release(
        self,
        order_id: UUID,
        driver_id: UUID,
        previous_status: str,
        reason: str = "",
    ) -> DriverRelease:
        """Record a driver abandoning an order."""

    @abstractmethod
    def has_active_order(self, driver_id: UUID) -> bool:
        """Whether the driver holds an order in an active driver state."""

    @abstractmethod
    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        """Retrieve an order by its idempotency key."""
