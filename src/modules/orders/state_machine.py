"""Order state machine.

Validates status changes against ``TRANSITIONS`` and applies their side
effects on an order row the caller has already locked:

- leaving ``pending`` into a working status reserves stock (a shortage
  raises ``InsufficientStock`` and the caller's transaction rolls back);
- entering ``cancelled`` releases any active reservation and unassigns the
  driver;
- entering ``delivered`` settles the driver's earning.

The machine never opens its own top-level transaction; callers wrap each
use case in ``locked_atomic()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional
from uuid import UUID

import structlog
from django.db import transaction
from kombu.exceptions import OperationalError as BrokerError

from modules.catalog.exceptions import InsufficientStock
from modules.orders.constants import (
    CLAIM_TARGETS,
    RELEASABLE_STATES,
    TRANSITIONS,
    WORKING_STATES,
    ActorRole,
    OrderStatus,
)
from modules.orders.events import (
    DriverReleased,
    OrderCancelled,
    OrderClaimed,
    OrderDelivered,
    OrderStatusChanged,
)
from modules.orders.exceptions import InvalidTransition

if TYPE_CHECKING:
    from modules.catalog.services import StockLedgerService
    from modules.earnings.policy import PlatformPolicy
    from modules.earnings.services import SettlementService
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Actor:
    """Who is asking for a status change."""

    role: str
    id: Optional[str] = None

    @classmethod
    def system(cls) -> Actor:
        return cls(role=ActorRole.SYSTEM)

    def __post_init__(self) -> None:
        if self.role not in ActorRole.values:
            raise ValueError(f"Unknown actor role '{self.role}'.")
        if self.id is not None:
            object.__setattr__(self, "id", _canonical_id(self.id))


def _canonical_id(value) -> str:
    """Lowercase hyphenated form for UUIDs, so party checks compare equal."""
    try:
        return str(UUID(str(value)))
    except ValueError:
        return str(value)


class OrderStateMachine:
    def __init__(
        self,
        order_repository: IOrderRepository,
        stock_ledger: StockLedgerService,
        settlement_service: SettlementService,
    ) -> None:
        self._order_repo = order_repository
        self._stock = stock_ledger
        self._settlement = settlement_service

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def authorize(self, order: Order, target: str, actor: Actor) -> None:
        """Check that *actor* may move *order* to *target*.

        Raises:
            InvalidTransition: unreachable target, wrong role, or an actor
                acting on an order that is not theirs.
        """
        allowed = TRANSITIONS.get(order.status, {})
        if target not in allowed:
            raise InvalidTransition(
                f"Cannot transition from '{order.status}' to '{target}'."
            )
        if actor.role not in allowed[target]:
            raise InvalidTransition(
                f"A {actor.role} cannot move an order from '{order.status}' to '{target}'."
            )
        owner = {
            ActorRole.MERCHANT: order.merchant_id,
            ActorRole.CUSTOMER: order.customer_id,
            ActorRole.DRIVER: order.driver_id,
        }
        if actor.role in owner and (
            owner[actor.role] is None or str(owner[actor.role]) != actor.id
        ):
            raise InvalidTransition(
                f"This {actor.role} is not a party to order {order.id}."
            )

    # ------------------------------------------------------------------
    # Commands (order row locked by the caller)
    # ------------------------------------------------------------------

    def apply(
        self,
        order: Order,
        target: str,
        actor: Actor,
        policy: PlatformPolicy,
        notes: str = "",
    ) -> Order:
        self.authorize(order, target, actor)
        return self._commit(order, target, actor, policy, notes)

    def claim(
        self,
        order: Order,
        driver_id,
        policy: PlatformPolicy,
        notes: str = "",
    ) -> Order:
        """Assign a driver to a claimable order and move it on.

        ``pending`` goes to ``accepted``, an unassigned ``ready`` order to
        ``picked_up``.  Gate preconditions are the caller's concern.
        """
        if not order.is_claimable:
            raise InvalidTransition(f"Order {order.id} is not claimable.")
        target = CLAIM_TARGETS[order.status]
        order.driver_id = driver_id
        order.add_domain_event(
            OrderClaimed(aggregate_id=order.id, driver_id=str(driver_id))
        )
        actor = Actor(role=ActorRole.DRIVER, id=driver_id)
        return self._commit(order, target, actor, policy, notes or "Claimed by driver")

    def release_driver(self, order: Order, actor: Actor, reason: str = "") -> Order:
        """Unassign the driver without cancelling the order.

        A ``picked_up`` order goes back to ``ready``; other statuses stay.
        Stock stays reserved.
        """
        assigned = order.driver_id is not None and str(order.driver_id) == actor.id
        if actor.role != ActorRole.DRIVER or not assigned:
            raise InvalidTransition(
                f"Only the assigned driver can release order {order.id}."
            )
        if order.status not in RELEASABLE_STATES:
            raise InvalidTransition(
                f"Order {order.id} cannot be released from '{order.status}'."
            )

        old_status = order.status
        new_status = OrderStatus.READY if old_status == OrderStatus.PICKED_UP else old_status
        driver_id = order.driver_id

        order.driver_id = None
        order.status = new_status
        order.add_domain_event(
            DriverReleased(
                aggregate_id=order.id,
                driver_id=str(driver_id),
                previous_status=old_status,
            )
        )
        if new_status != old_status:
            order.add_domain_event(
                OrderStatusChanged(
                    aggregate_id=order.id,
                    old_status=old_status,
                    new_status=new_status,
                    actor_role=actor.role,
                )
            )
        self._order_repo.save(order)
        self._order_repo.add_driver_release(order.id, driver_id, old_status, reason)
        self._order_repo.add_history(
            order_id=order.id,
            old_status=old_status,
            new_status=new_status,
            actor_role=actor.role,
            actor_id=actor.id,
            notes=reason or "Released by driver",
        )
        logger.info(
            "order.driver_released",
            order_id=str(order.id),
            driver_id=str(driver_id),
            old_status=old_status,
            new_status=new_status,
        )
        self._notify_if_claimable(order)
        return order

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _commit(
        self,
        order: Order,
        target: str,
        actor: Actor,
        policy: PlatformPolicy,
        notes: str,
    ) -> Order:
        old_status = order.status
        log = logger.bind(
            order_id=str(order.id),
            current_status=old_status,
            new_status=target,
            actor_role=actor.role,
        )

        if old_status == OrderStatus.PENDING and target in WORKING_STATES:
            result = self._stock.reserve(order.id)
            if not result.ok:
                log.warning("order.reservation_failed", shortage_count=len(result.shortages))
                raise InsufficientStock(result.shortages)

        if target == OrderStatus.CANCELLED:
            released = self._stock.release(order.id)
            order.driver_id = None
            order.add_domain_event(
                OrderCancelled(
                    aggregate_id=order.id,
                    previous_status=old_status,
                    stock_released=released,
                )
            )

        if target == OrderStatus.DELIVERED:
            earning = self._settlement.settle_locked(order, policy)
            order.add_domain_event(
                OrderDelivered(
                    aggregate_id=order.id,
                    driver_id=str(order.driver_id),
                    net_amount=str(earning.net_amount),
                )
            )

        order.status = target
        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id,
                old_status=old_status,
                new_status=target,
                actor_role=actor.role,
            )
        )
        self._order_repo.save(order)
        self._order_repo.add_history(
            order_id=order.id,
            old_status=old_status,
            new_status=target,
            actor_role=actor.role,
            actor_id=actor.id or "",
            notes=notes,
        )

        log.info("order.status_updated")
        self._notify_if_claimable(order)
        return order

    def _notify_if_claimable(self, order: Order) -> None:
        if order.is_claimable:
            queue_driver_notification(order.id)


def queue_driver_notification(order_id) -> None:
    """Tell drivers about a claimable order once the transaction commits.

    The broadcast is advisory: a broker outage is logged and never turns the
    committed write into an error.
    """
    from modules.dispatch.tasks import notify_drivers

    def _send() -> None:
        try:
            notify_drivers.delay(str(order_id))
        except BrokerError as exc:
            logger.warning("dispatch.notify_failed", order_id=str(order_id), error=str(exc))

    transaction.on_commit(_send, robust=True)
