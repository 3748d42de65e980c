"""Unit tests for the driver acceptance gate.

Covers:
- Accepting a pending order and an unassigned ready order.
- Rejections: order gone, driver busy, wallet below minimum.
- Unknown or inactive drivers.
- ``precheck`` mirrors the driver checks without claiming.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from modules.accounts.models import Driver
from modules.core.models import OutboxEvent
from modules.dispatch.exceptions import DriverNotFound
from modules.earnings.policy import PlatformPolicy
from modules.orders.constants import ActorRole, OrderStatus
from modules.orders.exceptions import OrderNotFound
from modules.orders.models import OrderStatusHistory
from modules.orders.state_machine import Actor

pytestmark = pytest.mark.unit


@pytest.fixture()
def pending_order(place_order, item_a):
    return place_order([(item_a, 1)])


@pytest.fixture()
def strict_policy():
    return PlatformPolicy(min_wallet_balance=Decimal("50.00"))


class TestClaimAccepted:
    def test_claim_pending_order(self, claim_service, pending_order, driver, policy, item_a):
        result = claim_service.try_claim(pending_order.id, driver.id, policy=policy)

        assert result.accepted
        assert result.reason == ""
        assert result.order.status == OrderStatus.ACCEPTED
        assert result.order.driver_id == driver.id
        item_a.refresh_from_db()
        assert item_a.stock_quantity == 9

    def test_claim_records_driver_in_history(self, claim_service, pending_order, driver, policy):
        claim_service.try_claim(pending_order.id, driver.id, policy=policy)

        last = OrderStatusHistory.objects.filter(order_id=pending_order.id).order_by(
            "created_at", "id"
        ).last()
        assert last.new_status == OrderStatus.ACCEPTED
        assert last.actor_role == ActorRole.DRIVER
        assert last.actor_id == str(driver.id)
        assert last.notes == "Claimed by driver"

    def test_claim_writes_claimed_event(self, claim_service, pending_order, driver, policy):
        claim_service.try_claim(pending_order.id, driver.id, policy=policy)
        event = OutboxEvent.objects.get(
            aggregate_id=str(pending_order.id), event_type="OrderClaimed"
        )
        assert event.payload["driver_id"] == str(driver.id)

    def test_claim_unassigned_ready_order_picks_it_up(
        self, claim_service, pending_order, driver, policy, advance
    ):
        ready = advance(
            pending_order, OrderStatus.ACCEPTED, OrderStatus.PREPARING, OrderStatus.READY
        )
        assert ready.is_claimable

        result = claim_service.try_claim(ready.id, driver.id, policy=policy)

        assert result.accepted
        assert result.order.status == OrderStatus.PICKED_UP
        assert result.order.driver_id == driver.id

    def test_balance_equal_to_minimum_is_enough(
        self, claim_service, pending_order, make_driver, strict_policy
    ):
        driver = make_driver(balance=Decimal("50.00"))
        assert claim_service.try_claim(pending_order.id, driver.id, policy=strict_policy).accepted

    def test_delivered_order_frees_the_driver(
        self, claim_service, place_order, item_a, driver, policy, advance
    ):
        first = claim_service.try_claim(
            place_order([(item_a, 1)]).id, driver.id, policy=policy
        ).order
        first = advance(first, OrderStatus.PREPARING, OrderStatus.READY)
        advance(
            first,
            OrderStatus.PICKED_UP,
            OrderStatus.ON_THE_WAY,
            OrderStatus.DELIVERED,
            actor=Actor(role=ActorRole.DRIVER, id=driver.id),
        )

        second = place_order([(item_a, 1)])
        assert claim_service.try_claim(second.id, driver.id, policy=policy).accepted


class TestClaimRejected:
    def test_second_claim_sees_order_unavailable(
        self, claim_service, pending_order, driver, make_driver, policy
    ):
        claim_service.try_claim(pending_order.id, driver.id, policy=policy)
        other = make_driver(name="Late Driver")

        result = claim_service.try_claim(pending_order.id, other.id, policy=policy)

        assert not result.accepted
        assert result.code == "order_unavailable"
        assert result.reason == "order no longer available"
        assert result.order is None
        pending_order.refresh_from_db()
        assert pending_order.driver_id == driver.id

    def test_cancelled_order_is_unavailable(
        self, claim_service, pending_order, driver, order_service, customer_actor, policy
    ):
        order_service.cancel_order(
            pending_order.id, OrderStatus.PENDING, customer_actor, policy=policy
        )
        result = claim_service.try_claim(pending_order.id, driver.id, policy=policy)
        assert result.code == "order_unavailable"

    def test_assigned_ready_order_is_unavailable(
        self, claim_service, pending_order, driver, make_driver, policy, advance
    ):
        order = claim_service.try_claim(pending_order.id, driver.id, policy=policy).order
        advance(order, OrderStatus.PREPARING, OrderStatus.READY)

        result = claim_service.try_claim(order.id, make_driver().id, policy=policy)
        assert result.code == "order_unavailable"

    def test_driver_with_active_order_is_refused(
        self, claim_service, place_order, item_a, driver, policy
    ):
        first = place_order([(item_a, 1)])
        second = place_order([(item_a, 1)])
        claim_service.try_claim(first.id, driver.id, policy=policy)

        result = claim_service.try_claim(second.id, driver.id, policy=policy)

        assert not result.accepted
        assert result.code == "driver_busy"
        assert result.reason == "driver already has an active order"
        second.refresh_from_db()
        assert second.status == OrderStatus.PENDING
        assert second.driver_id is None

    def test_wallet_below_minimum_is_refused(
        self, claim_service, pending_order, make_driver, strict_policy, item_a
    ):
        driver = make_driver(balance=Decimal("30.00"))

        result = claim_service.try_claim(pending_order.id, driver.id, policy=strict_policy)

        assert not result.accepted
        assert result.code == "insufficient_wallet_balance"
        assert "30.00" in result.reason
        assert "50.00" in result.reason
        assert "short by 20.00" in result.reason
        item_a.refresh_from_db()
        assert item_a.stock_quantity == 10

    def test_driver_without_wallet_reads_zero_balance(
        self, claim_service, pending_order, strict_policy
    ):
        driver = Driver.objects.create(name="No Wallet", is_online=True)
        result = claim_service.try_claim(pending_order.id, driver.id, policy=strict_policy)
        assert result.code == "insufficient_wallet_balance"

    def test_rejection_writes_nothing(self, claim_service, pending_order, make_driver, strict_policy):
        before = OutboxEvent.objects.count()
        claim_service.try_claim(
            pending_order.id, make_driver(balance=Decimal("0")).id, policy=strict_policy
        )
        assert OutboxEvent.objects.count() == before


class TestClaimErrors:
    def test_unknown_order(self, claim_service, driver, policy):
        with pytest.raises(OrderNotFound):
            claim_service.try_claim(uuid4(), driver.id, policy=policy)

    def test_unknown_driver(self, claim_service, pending_order, policy):
        with pytest.raises(DriverNotFound):
            claim_service.try_claim(pending_order.id, uuid4(), policy=policy)

    def test_inactive_driver(self, claim_service, pending_order, make_driver, policy):
        driver = make_driver(is_active=False)
        with pytest.raises(DriverNotFound):
            claim_service.try_claim(pending_order.id, driver.id, policy=policy)
        pending_order.refresh_from_db()
        assert pending_order.driver_id is None


class TestPrecheck:
    def test_eligible_driver(self, claim_service, driver, policy):
        assert claim_service.precheck(driver.id, policy=policy).accepted

    def test_busy_driver(self, claim_service, pending_order, driver, policy):
        claim_service.try_claim(pending_order.id, driver.id, policy=policy)
        result = claim_service.precheck(driver.id, policy=policy)
        assert result.code == "driver_busy"

    def test_poor_driver(self, claim_service, make_driver, strict_policy):
        result = claim_service.precheck(make_driver(balance=Decimal("1.00")).id, policy=strict_policy)
        assert result.code == "insufficient_wallet_balance"
