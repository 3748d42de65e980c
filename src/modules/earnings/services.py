"""Earnings settlement and driver earnings statistics.

Settlement turns a delivered order into exactly one ``DriverEarning``:

1. Gross: the order's recorded ``driver_earning_amount`` when positive,
   otherwise the largest of ``delivery_fee``, ``calculated_delivery_fee``
   (the distance fee quoted at placement) and the distance fee at the
   current per-km rate (every started km).  The quote is a floor: a rate
   cut after placement never lowers the driver's gross below it.
2. Commission: the policy's fixed amount when set, otherwise
   ``gross * commission_rate`` rounded half-up to cents.
3. Net: ``max(gross - commission, 0)``.  A non-positive net on a positive
   gross is clamped to gross (commission recorded as zero) and logged as
   ``earnings.net_clamped``.

A second settlement of the same order returns the first record unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import structlog
from django.db import IntegrityError, transaction
from django.utils import timezone

from modules.accounts.exceptions import DriverNotFound
from modules.core.locking import locked_atomic
from modules.earnings.aggregation import EarningsSummary, daily_breakdown, summarize_earnings
from modules.earnings.fees import distance_fee, haversine_km, to_cents
from modules.earnings.models import DriverEarning
from modules.earnings.policy import PlatformPolicy
from modules.orders.constants import OrderStatus
from modules.orders.exceptions import OrderNotFound, OrderNotSettleable

if TYPE_CHECKING:
    from modules.accounts.repositories.interfaces import IDriverRepository
    from modules.accounts.services import LocationService
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class Settlement:
    gross: Decimal
    commission: Decimal
    net: Decimal
    clamped: bool = False


def compute_net(gross: Decimal, commission: Decimal) -> Settlement:
    """Apply the net floor to a gross/commission pair."""
    gross = to_cents(max(gross, ZERO))
    commission = to_cents(max(commission, ZERO))
    net = max(gross - commission, ZERO)
    if net <= 0 and gross > 0:
        return Settlement(gross=gross, commission=ZERO, net=gross, clamped=True)
    return Settlement(gross=gross, commission=min(commission, gross), net=net)


class SettlementService:
    """Creates the single earning record of a delivered order."""

    def __init__(
        self,
        order_repository: IOrderRepository,
        location_service: LocationService,
    ) -> None:
        self._order_repo = order_repository
        self._locations = location_service

    def settle(self, order_id, policy: Optional[PlatformPolicy] = None) -> DriverEarning:
        """Settle a delivered order outside a transition.

        Raises:
            OrderNotFound: order does not exist.
            OrderNotSettleable: order is not delivered or has no driver.
            Busy: the order lock was not acquired in time.
        """
        policy = policy or PlatformPolicy.load()
        with locked_atomic():
            order = self._order_repo.get_for_update(str(order_id))
            if order is None:
                raise OrderNotFound(f"Order {order_id} not found.")
            if order.status != OrderStatus.DELIVERED or order.driver_id is None:
                logger.warning(
                    "earnings.not_settleable",
                    order_id=str(order_id),
                    status=order.status,
                    driver_id=str(order.driver_id) if order.driver_id else None,
                )
                raise OrderNotSettleable(
                    f"Order {order_id} is '{order.status}' and cannot be settled."
                )
            return self.settle_locked(order, policy)

    def settle_locked(self, order: Order, policy: PlatformPolicy) -> DriverEarning:
        """Settle an order whose row the caller already holds locked."""
        log = logger.bind(order_id=str(order.id), driver_id=str(order.driver_id))

        existing = DriverEarning.objects.filter(order_id=order.id).first()
        if existing is not None:
            log.info("earnings.already_settled", earning_id=str(existing.id))
            return existing

        gross = self.compute_gross(order, policy)
        if policy.commission_amount is not None:
            commission = policy.commission_amount
        else:
            commission = gross * policy.commission_rate
        result = compute_net(gross, commission)
        if result.clamped:
            log.warning(
                "earnings.net_clamped",
                gross=str(result.gross),
                commission=str(to_cents(commission)),
            )

        try:
            with transaction.atomic():
                earning = DriverEarning.objects.create(
                    order_id=order.id,
                    driver_id=order.driver_id,
                    gross_amount=result.gross,
                    commission_amount=result.commission,
                    net_amount=result.net,
                    earned_at=timezone.now(),
                )
        except IntegrityError:
            winner = DriverEarning.objects.filter(order_id=order.id).first()
            if winner is None:
                raise
            log.info("earnings.settled_concurrently", earning_id=str(winner.id))
            return winner

        log.info(
            "earnings.settled",
            earning_id=str(earning.id),
            gross=str(earning.gross_amount),
            commission=str(earning.commission_amount),
            net=str(earning.net_amount),
        )
        return earning

    def compute_gross(self, order: Order, policy: PlatformPolicy) -> Decimal:
        recorded = order.driver_earning_amount
        if recorded is not None and recorded > 0:
            return to_cents(recorded)

        fee_by_distance = distance_fee(self.distance_km(order), policy.per_km_rate)
        return max(
            order.delivery_fee or ZERO,
            order.calculated_delivery_fee or ZERO,
            fee_by_distance,
        )

    def distance_km(self, order: Order) -> Optional[Decimal]:
        """Recorded delivery distance, else merchant-to-driver distance."""
        if order.delivery_distance_km is not None:
            return Decimal(order.delivery_distance_km)
        if order.driver_id is None:
            return None
        origin = self._locations.get_merchant_location(order.merchant_id)
        destination = self._locations.get_driver_location(order.driver_id)
        if origin is None or destination is None:
            return None
        try:
            return Decimal(str(round(haversine_km(origin, destination), 3)))
        except (TypeError, ValueError) as exc:
            logger.warning(
                "earnings.distance_failed", order_id=str(order.id), error=str(exc)
            )
            return None


class EarningsService:
    """Read side: a driver's earnings statistics."""

    def __init__(self, driver_repository: IDriverRepository) -> None:
        self._driver_repo = driver_repository

    def summary_for_driver(
        self, driver_id, now: Optional[datetime] = None
    ) -> EarningsSummary:
        """Time-bucketed totals plus the last seven days.

        Raises:
            DriverNotFound: driver does not exist.
        """
        driver = self._driver_repo.get_by_id(str(driver_id))
        if driver is None:
            raise DriverNotFound(f"Driver {driver_id} not found.")
        now = now or timezone.now()
        earnings = list(DriverEarning.objects.filter(driver_id=driver.id))
        summary = summarize_earnings(earnings, now)
        return summary.with_daily(daily_breakdown(earnings, now))
