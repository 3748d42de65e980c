"""Concurrent claim integration tests.

Proves that the acceptance gate serialises simultaneous claims on the
order row lock:

- 8 drivers claim the same pending order at once: exactly one wins, every
  other driver is told the order is no longer available, and stock is
  reserved once.
- One driver claims two different orders at once: only one is accepted.
- Two merchants' requests to accept the same order race: one commits,
  the other sees a stale state.

Uses ``TransactionTestCase`` so each thread sees committed data through its
own database connection.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

from django.db import connections
from django.test import TransactionTestCase

from modules.accounts.models import Customer, Driver, Merchant, Wallet
from modules.catalog.models import CatalogItem, StockReservation
from modules.core.exceptions import Busy
from modules.earnings.policy import PlatformPolicy
from modules.orders.constants import ActorRole, OrderStatus
from modules.orders.dtos import PlaceOrderDTO, PlaceOrderItemDTO
from modules.orders.exceptions import StaleState
from modules.orders.factories import build_claim_service, build_order_service
from modules.orders.models import Order
from modules.orders.state_machine import Actor

logger = logging.getLogger(__name__)

NUM_DRIVERS = 8
INITIAL_STOCK = 20
MAX_ATTEMPTS = 5
POLICY = PlatformPolicy()


def _retry_busy(call):
    """Run *call*, backing off while the ledger is busy."""
    for attempt in range(MAX_ATTEMPTS):
        try:
            return call()
        except Busy as exc:
            logger.warning("attempt %d busy, retrying", attempt)
            time.sleep(exc.retry_after / 10)
    return call()


class ClaimRaceTestCase(TransactionTestCase):
    def setUp(self):
        self.customer = Customer.objects.create(name="Race Customer")
        self.merchant = Merchant.objects.create(name="Race Merchant")
        self.item = CatalogItem.objects.create(
            merchant=self.merchant,
            sku="RACE-1",
            name="Race Meal",
            price=Decimal("30.00"),
            stock_quantity=INITIAL_STOCK,
        )
        self.drivers = []
        for i in range(NUM_DRIVERS):
            driver = Driver.objects.create(name=f"Driver {i}", is_online=True)
            Wallet.objects.create(driver=driver, balance=Decimal("100.00"))
            self.drivers.append(driver)

    def _place_order(self) -> Order:
        dto = PlaceOrderDTO(
            customer_id=self.customer.id,
            merchant_id=self.merchant.id,
            items=[PlaceOrderItemDTO(catalog_item_id=self.item.id, quantity=2)],
        )
        return build_order_service().place_order(dto, policy=POLICY)

    def _claim_in_thread(self, order_id, driver_id):
        try:
            return _retry_busy(
                lambda: build_claim_service().try_claim(order_id, driver_id, policy=POLICY)
            )
        finally:
            connections.close_all()


class TestSameOrderClaimRace(ClaimRaceTestCase):
    def test_exactly_one_driver_wins(self):
        order = self._place_order()

        with ThreadPoolExecutor(max_workers=NUM_DRIVERS) as pool:
            results = list(
                pool.map(
                    lambda driver: self._claim_in_thread(order.id, driver.id),
                    self.drivers,
                )
            )

        winners = [r for r in results if r.accepted]
        losers = [r for r in results if not r.accepted]
        self.assertEqual(len(winners), 1)
        self.assertEqual(len(losers), NUM_DRIVERS - 1)
        for result in losers:
            self.assertEqual(result.code, "order_unavailable")
            self.assertEqual(result.reason, "order no longer available")

        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.ACCEPTED)
        self.assertEqual(order.driver_id, winners[0].order.driver_id)

        self.item.refresh_from_db()
        self.assertEqual(self.item.stock_quantity, INITIAL_STOCK - 2)
        self.assertEqual(StockReservation.objects.filter(order_id=order.id).count(), 1)

    def test_exactly_one_driver_wins_ready_order(self):
        order = self._place_order()
        service = build_order_service()
        merchant = Actor(role=ActorRole.MERCHANT, id=self.merchant.id)
        for expected, target in (
            (OrderStatus.PENDING, OrderStatus.ACCEPTED),
            (OrderStatus.ACCEPTED, OrderStatus.PREPARING),
            (OrderStatus.PREPARING, OrderStatus.READY),
        ):
            service.transition(order.id, expected, target, merchant, policy=POLICY)

        with ThreadPoolExecutor(max_workers=NUM_DRIVERS) as pool:
            results = list(
                pool.map(
                    lambda driver: self._claim_in_thread(order.id, driver.id),
                    self.drivers,
                )
            )

        self.assertEqual(sum(r.accepted for r in results), 1)
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.PICKED_UP)
        self.assertIsNotNone(order.driver_id)


class TestSameDriverClaimRace(ClaimRaceTestCase):
    def test_driver_gets_only_one_of_two_orders(self):
        orders = [self._place_order(), self._place_order()]
        driver = self.drivers[0]

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(
                pool.map(lambda order: self._claim_in_thread(order.id, driver.id), orders)
            )

        self.assertEqual(sum(r.accepted for r in results), 1)
        rejected = next(r for r in results if not r.accepted)
        self.assertEqual(rejected.code, "driver_busy")
        self.assertEqual(Order.objects.filter(driver_id=driver.id).count(), 1)


class TestTransitionRace(ClaimRaceTestCase):
    def _accept_in_thread(self, order_id):
        merchant = Actor(role=ActorRole.MERCHANT, id=self.merchant.id)
        try:
            _retry_busy(
                lambda: build_order_service().transition(
                    order_id,
                    OrderStatus.PENDING,
                    OrderStatus.ACCEPTED,
                    merchant,
                    policy=POLICY,
                )
            )
            return "accepted"
        except StaleState:
            return "stale"
        finally:
            connections.close_all()

    def test_duplicate_accept_commits_once(self):
        order = self._place_order()

        with ThreadPoolExecutor(max_workers=4) as pool:
            outcomes = list(pool.map(self._accept_in_thread, [order.id] * 4))

        self.assertEqual(outcomes.count("accepted"), 1)
        self.assertEqual(outcomes.count("stale"), 3)
        self.item.refresh_from_db()
        self.assertEqual(self.item.stock_quantity, INITIAL_STOCK - 2)
        self.assertEqual(
            order.status_history.filter(new_status=OrderStatus.ACCEPTED).count(), 1
        )
