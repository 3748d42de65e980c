"""Event handlers for Orders domain events."""

from __future__ import annotations

import structlog

from modules.orders.events import (
    DriverReleased,
    OrderCancelled,
    OrderClaimed,
    OrderDelivered,
    OrderPlaced,
    OrderStatusChanged,
)
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class OrderPlacedHandler(IEventHandler[OrderPlaced]):
    def handle(self, event: OrderPlaced) -> None:
        logger.info(
            "order.event.placed",
            order_id=str(event.aggregate_id),
            merchant_id=event.merchant_id,
        )


class OrderStatusChangedHandler(IEventHandler[OrderStatusChanged]):
    def handle(self, event: OrderStatusChanged) -> None:
        logger.info(
            "order.event.status_changed",
            order_id=str(event.aggregate_id),
            old_status=event.old_status,
            new_status=event.new_status,
            actor_role=event.actor_role,
        )


class OrderClaimedHandler(IEventHandler[OrderClaimed]):
    def handle(self, event: OrderClaimed) -> None:
        logger.info(
            "order.event.claimed",
            order_id=str(event.aggregate_id),
            driver_id=event.driver_id,
        )


class OrderCancelledHandler(IEventHandler[OrderCancelled]):
    def handle(self, event: OrderCancelled) -> None:
        logger.info(
            "order.event.cancelled",
            order_id=str(event.aggregate_id),
            previous_status=event.previous_status,
            stock_released=event.stock_released,
        )


class OrderDeliveredHandler(IEventHandler[OrderDelivered]):
    def handle(self, event: OrderDelivered) -> None:
        logger.info(
            "order.event.delivered",
            order_id=str(event.aggregate_id),
            driver_id=event.driver_id,
            net_amount=event.net_amount,
        )


class DriverReleasedHandler(IEventHandler[DriverReleased]):
    def handle(self, event: DriverReleased) -> None:
        logger.info(
            "order.event.driver_released",
            order_id=str(event.aggregate_id),
            driver_id=event.driver_id,
            previous_status=event.previous_status,
        )


order_placed_handler = OrderPlacedHandler()
order_status_changed_handler = OrderStatusChangedHandler()
order_claimed_handler = OrderClaimedHandler()
order_cancelled_handler = OrderCancelledHandler()
order_delivered_handler = OrderDeliveredHandler()
driver_released_handler = DriverReleasedHandler()
