"""Stock reservation ledger.

Holds catalog stock for an order while it is being worked on and hands it
back when the order is cancelled.  Both operations expect to run inside the
caller's transaction, with the order row already locked; they open a
savepoint of their own so a failure leaves nothing half-applied.

Rules enforced:
- At most one reservation cycle per order: an existing reservation (active
  or released) makes ``reserve`` a no-op success.
- All-or-nothing: if any item is short, nothing is decremented and every
  short item is reported.
- Catalog rows are locked sorted by primary key.
- ``release`` restores exactly the reserved quantities, once.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List
from uuid import UUID

import structlog
from django.db import transaction
from django.utils import timezone

from modules.catalog.exceptions import ItemShortage
from modules.catalog.models import (
    ReservationStatus,
    StockReservation,
    StockReservationLine,
)

if TYPE_CHECKING:
    from modules.catalog.repositories.interfaces import ICatalogItemRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReservationResult:
    ok: bool
    shortages: List[ItemShortage] = field(default_factory=list)


class StockLedgerService:
    """Reserve and release catalog stock for orders."""

    def __init__(self, catalog_repository: ICatalogItemRepository) -> None:
        self._catalog_repo = catalog_repository

    @transaction.atomic
    def reserve(self, order_id: UUID) -> ReservationResult:
        """Decrement stock for every item of the order.

        Returns ``ReservationResult(ok=False, shortages=[...])`` without
        touching any row when at least one item is short.
        """
        from modules.orders.models import OrderItem

        log = logger.bind(order_id=str(order_id))

        if StockReservation.objects.filter(order_id=order_id).exists():
            log.info("stock.reserve_skipped", reason="already_reserved")
            return ReservationResult(ok=True)

        requested: Dict[UUID, int] = OrderedDict()
        for catalog_item_id, quantity in OrderItem.objects.filter(
            order_id=order_id
        ).values_list("catalog_item_id", "quantity"):
            requested[catalog_item_id] = requested.get(catalog_item_id, 0) + quantity

        items = self._catalog_repo.lock_many(requested.keys())

        shortages = [
            ItemShortage(
                catalog_item_id=item.id,
                sku=item.sku,
                name=item.name,
                requested=requested[item.id],
                available=item.stock_quantity,
            )
            for item in items
            if item.stock_quantity < requested[item.id]
        ]
        locked_ids = {item.id for item in items}
        for missing_id in requested.keys() - locked_ids:
            shortages.append(
                ItemShortage(
                    catalog_item_id=missing_id,
                    sku="",
                    name="",
                    requested=requested[missing_id],
                    available=0,
                )
            )
        if shortages:
            log.warning(
                "stock.reserve_rejected",
                shortages=[s.to_dict() for s in shortages],
            )
            return ReservationResult(ok=False, shortages=shortages)

        reservation = StockReservation.objects.create(order_id=order_id)
        for item in items:
            quantity = requested[item.id]
            item.stock_quantity -= quantity
            item.save(update_fields=["stock_quantity"])
            StockReservationLine.objects.create(
                reservation=reservation,
                catalog_item=item,
                quantity=quantity,
            )
            log.info(
                "stock.item_reserved",
                catalog_item_id=str(item.id),
                quantity=quantity,
                remaining=item.stock_quantity,
            )

        log.info("stock.reserved", line_count=len(items))
        return ReservationResult(ok=True)

    @transaction.atomic
    def release(self, order_id: UUID) -> bool:
        """Give back the order's active reservation.

        Returns ``False`` when there is nothing to release (never reserved,
        or already released).
        """
        log = logger.bind(order_id=str(order_id))

        reservation = (
            StockReservation.objects.select_for_update()
            .filter(order_id=order_id, status=ReservationStatus.ACTIVE)
            .first()
        )
        if reservation is None:
            log.info("stock.release_skipped", reason="no_active_reservation")
            return False

        quantities = {
            line.catalog_item_id: line.quantity for line in reservation.lines.all()
        }
        for item in self._catalog_repo.lock_many(quantities.keys()):
            item.stock_quantity += quantities[item.id]
            item.save(update_fields=["stock_quantity"])
            log.info(
                "stock.item_released",
                catalog_item_id=str(item.id),
                quantity=quantities[item.id],
                restored_stock=item.stock_quantity,
            )

        reservation.status = ReservationStatus.RELEASED
        reservation.released_at = timezone.now()
        reservation.save(update_fields=["status", "released_at"])

        log.info("stock.released", line_count=len(quantities))
        return True
