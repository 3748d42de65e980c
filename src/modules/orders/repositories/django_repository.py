"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.  Writes are
wrapped in ``transaction.atomic()`` so the aggregate and its outbox events
are persisted together.

Concurrency control on status changes uses ``select_for_update()`` on the
order row.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction

from modules.core.models import OutboxEvent
from modules.orders.constants import ACTIVE_DRIVER_STATES
from modules.orders.models import DriverRelease, Order, OrderItem, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

_FEE_FIELDS = (
    "delivery_fee",
    "calculated_delivery_fee",
    "service_fee",
    "tax_amount",
    "driver_earning_amount",
    "delivery_distance_km",
)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        order = Order(
            customer_id=data["customer_id"],
            merchant_id=data["merchant_id"],
            idempotency_key=data.get("idempotency_key"),
            notes=data.get("notes", ""),
        )
        for name in _FEE_FIELDS:
            if data.get(name) is not None:
                setattr(order, name, data[name])
        order.save()

        product_total = Decimal("0.00")
        items = data.get("items", [])
        for item_data in items:
            item = OrderItem(
                order=order,
                catalog_item_id=item_data["catalog_item_id"],
                quantity=item_data["quantity"],
                unit_price=item_data["unit_price"],
            )
            item.save()
            product_total += item.subtotal

        order.product_total = product_total
        order.customer_total = (
            product_total + order.delivery_fee + order.service_fee + order.tax_amount
        )
        merchant_amount = data.get("merchant_amount")
        order.merchant_amount = (
            merchant_amount if merchant_amount is not None else product_total
        )
        order.save(update_fields=["product_total", "customer_total", "merchant_amount"])

        logger.info("order.created", order_id=str(order.id), item_count=len(items))
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with eager-loaded relations.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return (
                Order.objects.select_related("customer", "merchant", "driver")
                .prefetch_related("items__catalog_item", "status_history")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        """Lock the order row.

        Only the order row itself is locked; related rows are read lazily so
        the lock set stays predictable.  Returns ``None`` for non-existent or
        invalid IDs.
        """
        try:
            return Order.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders with optional filters.

        Supported filter keys include ``status``, ``status__in``,
        ``merchant_id``, ``driver_id`` and ``customer_id``.
        """
        queryset = Order.objects.select_related(
            "customer", "merchant", "driver"
        ).prefetch_related("items__catalog_item", "status_history")
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    # ------------------------------------------------------------------
    # Save / Delete (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist an order and flush its domain events into the outbox."""
        entity.save()

        events = entity.domain_events
        for event in events:
            OutboxEvent.objects.create(
                event_type=event.event_name,
                aggregate_id=str(event.aggregate_id),
                payload=_serialize_event_payload(event),
                topic="orders",
            )
        entity.clear_domain_events()

        logger.info("order.saved", order_id=str(entity.id), event_count=len(events))
        return entity

    def delete(self, id: str) -> bool:
        """Orders are financial records and are never deleted."""
        raise NotImplementedError("Orders cannot be deleted; cancel them instead.")

    # ------------------------------------------------------------------
    # Order-specific queries
    # ------------------------------------------------------------------

    @transaction.atomic
    def add_history(
        self,
        order_id: UUID,
        old_status: Optional[str],
        new_status: str,
        actor_role: str,
        actor_id: str = "",
        notes: str = "",
    ) -> OrderStatusHistory:
        history = OrderStatusHistory.objects.create(
            order_id=order_id,
            old_status=old_status,
            new_status=new_status,
            actor_role=actor_role,
            actor_id=str(actor_id or ""),
            notes=notes,
        )
        logger.info(
            "order.history_added",
            order_id=str(order_id),
            old_status=old_status,
            new_status=new_status,
            actor_role=actor_role,
        )
        return history

    @transaction.atomic
    def add_driver_release(
        self,
        order_id: UUID,
        driver_id: UUID,
        previous_status: str,
        reason: str = "",
    ) -> DriverRelease:
        return DriverRelease.objects.create(
            order_id=order_id,
            driver_id=driver_id,
            previous_status=previous_status,
            reason=reason,
        )

    def has_active_order(self, driver_id: UUID) -> bool:
        return Order.objects.filter(
            driver_id=driver_id, status__in=ACTIVE_DRIVER_STATES
        ).exists()

    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        return (
            Order.objects.select_related("customer", "merchant", "driver")
            .prefetch_related("items__catalog_item", "status_history")
            .filter(idempotency_key=key)
            .first()
        )


def _serialize_event_payload(event: Any) -> Dict[str, Any]:
    data = asdict(event)
    normalized = _normalize_for_json(data)
    return json.loads(json.dumps(normalized))


def _normalize_for_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, list):
        return [_normalize_for_json(item) for item in value]
    if isinstance(value, dict):
        return {key: _normalize_for_json(val) for key, val in value.items()}
    return value
