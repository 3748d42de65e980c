"""Unit tests for order cancellation.

Covers:
- Cancelling before any reservation leaves stock untouched.
- Cancelling a worked order restores exactly the reserved quantities.
- Cancellation clears the driver and is terminal.
- Who may cancel.
"""

from __future__ import annotations

import pytest

from modules.catalog.models import ReservationStatus, StockReservation
from modules.core.models import OutboxEvent
from modules.orders.constants import ActorRole, OrderStatus
from modules.orders.exceptions import InvalidTransition
from modules.orders.state_machine import Actor

pytestmark = pytest.mark.unit


@pytest.fixture()
def pending_order(place_order, item_a, item_b):
    return place_order([(item_a, 3), (item_b, 2)])


class TestCancelPending:
    def test_cancel_pending_order(self, pending_order, order_service, customer_actor, policy):
        order = order_service.cancel_order(
            pending_order.id, OrderStatus.PENDING, customer_actor, policy=policy
        )
        assert order.status == OrderStatus.CANCELLED
        assert order.is_terminal

    def test_stock_untouched_when_nothing_was_reserved(
        self, pending_order, order_service, customer_actor, policy, item_a, item_b
    ):
        order_service.cancel_order(
            pending_order.id, OrderStatus.PENDING, customer_actor, policy=policy
        )
        item_a.refresh_from_db()
        item_b.refresh_from_db()
        assert item_a.stock_quantity == 10
        assert item_b.stock_quantity == 5
        assert not StockReservation.objects.filter(order_id=pending_order.id).exists()

    def test_cancel_event_reports_no_release(
        self, pending_order, order_service, customer_actor, policy
    ):
        order_service.cancel_order(
            pending_order.id, OrderStatus.PENDING, customer_actor, policy=policy
        )
        event = OutboxEvent.objects.get(
            aggregate_id=str(pending_order.id), event_type="OrderCancelled"
        )
        assert event.payload["previous_status"] == OrderStatus.PENDING
        assert event.payload["stock_released"] is False

    def test_default_note_recorded(self, pending_order, order_service, customer_actor, policy):
        order = order_service.cancel_order(
            pending_order.id, OrderStatus.PENDING, customer_actor, policy=policy
        )
        last = order.status_history.order_by("created_at", "id").last()
        assert last.new_status == OrderStatus.CANCELLED
        assert last.notes == "Order cancelled"
        assert last.actor_role == ActorRole.CUSTOMER


class TestCancelWorkedOrder:
    def test_cancel_preparing_restores_stock(
        self, pending_order, advance, order_service, merchant_actor, policy, item_a, item_b
    ):
        order = advance(pending_order, OrderStatus.ACCEPTED, OrderStatus.PREPARING)
        item_a.refresh_from_db()
        assert item_a.stock_quantity == 7

        order_service.cancel_order(
            order.id, OrderStatus.PREPARING, merchant_actor, notes="Out of gas", policy=policy
        )

        item_a.refresh_from_db()
        item_b.refresh_from_db()
        assert item_a.stock_quantity == 10
        assert item_b.stock_quantity == 5
        reservation = StockReservation.objects.get(order_id=order.id)
        assert reservation.status == ReservationStatus.RELEASED
        assert reservation.released_at is not None

    def test_cancel_event_reports_release(
        self, pending_order, advance, order_service, merchant_actor, policy
    ):
        order = advance(pending_order, OrderStatus.ACCEPTED)
        order_service.cancel_order(order.id, OrderStatus.ACCEPTED, merchant_actor, policy=policy)
        event = OutboxEvent.objects.get(
            aggregate_id=str(order.id), event_type="OrderCancelled"
        )
        assert event.payload["stock_released"] is True

    def test_cancel_clears_driver(
        self, pending_order, claim_service, driver, order_service, policy
    ):
        claim_service.try_claim(pending_order.id, driver.id, policy=policy)

        order = order_service.cancel_order(
            pending_order.id, OrderStatus.ACCEPTED, Actor(role=ActorRole.ADMIN), policy=policy
        )

        assert order.driver_id is None
        assert order.status == OrderStatus.CANCELLED

    def test_system_may_cancel(self, pending_order, advance, order_service, policy):
        order = advance(pending_order, OrderStatus.ACCEPTED, OrderStatus.PREPARING, OrderStatus.READY)
        order = order_service.cancel_order(
            order.id, OrderStatus.READY, Actor.system(), policy=policy
        )
        assert order.status == OrderStatus.CANCELLED


class TestCancelRejected:
    def test_cannot_cancel_twice(
        self, pending_order, order_service, customer_actor, policy, item_a
    ):
        order_service.cancel_order(
            pending_order.id, OrderStatus.PENDING, customer_actor, policy=policy
        )
        with pytest.raises(InvalidTransition):
            order_service.cancel_order(
                pending_order.id, OrderStatus.CANCELLED, customer_actor, policy=policy
            )
        item_a.refresh_from_db()
        assert item_a.stock_quantity == 10

    def test_driver_cannot_cancel(
        self, pending_order, claim_service, driver, order_service, policy
    ):
        claim_service.try_claim(pending_order.id, driver.id, policy=policy)
        with pytest.raises(InvalidTransition):
            order_service.cancel_order(
                pending_order.id,
                OrderStatus.ACCEPTED,
                Actor(role=ActorRole.DRIVER, id=driver.id),
                policy=policy,
            )

    def test_cannot_cancel_delivered_order(
        self, pending_order, claim_service, driver, advance, order_service, policy
    ):
        order = claim_service.try_claim(pending_order.id, driver.id, policy=policy).order
        driver_actor = Actor(role=ActorRole.DRIVER, id=driver.id)
        order = advance(order, OrderStatus.PREPARING, OrderStatus.READY)
        order = advance(
            order,
            OrderStatus.PICKED_UP,
            OrderStatus.ON_THE_WAY,
            OrderStatus.DELIVERED,
            actor=driver_actor,
        )

        with pytest.raises(InvalidTransition):
            order_service.cancel_order(
                order.id, OrderStatus.DELIVERED, Actor(role=ActorRole.ADMIN), policy=policy
            )
        order.refresh_from_db()
        assert order.status == OrderStatus.DELIVERED
        assert order.driver_id == driver.id
