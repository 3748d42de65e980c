"""Driver acceptance gate.

``try_claim`` is the only way a driver gets assigned to an order.  Within
one locked unit it checks, in order:

1. the order is still claimable (``pending``, or ``ready`` with nobody
   assigned);
2. the driver exists and is active;
3. the driver holds no other active order;
4. the driver's wallet balance meets the platform minimum;

then assigns the driver and moves the order on through the state machine.
Concurrent claims on one order serialise on its row lock: the first to
commit wins and every later one sees the order as no longer available.

``precheck`` runs steps 3 and 4 without locks.  It is a hint for clients
and is never relied on by ``try_claim``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Optional
from uuid import UUID

import structlog

from modules.core.locking import locked_atomic
from modules.dispatch.exceptions import (
    AlreadyHasActiveOrder,
    ClaimRejected,
    DriverNotFound,
    InsufficientWalletBalance,
    OrderNoLongerAvailable,
)
from modules.earnings.policy import PlatformPolicy
from modules.orders.constants import ActorRole
from modules.orders.exceptions import OrderNotFound, StaleState
from modules.orders.state_machine import Actor

if TYPE_CHECKING:
    from modules.accounts.repositories.interfaces import IDriverRepository
    from modules.accounts.services import WalletService
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.orders.state_machine import OrderStateMachine

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ClaimResult:
    accepted: bool
    reason: str = ""
    code: str = ""
    order: Optional[Order] = None

    @classmethod
    def rejected(cls, exc: ClaimRejected) -> ClaimResult:
        return cls(accepted=False, reason=str(exc), code=exc.code)


class ClaimService:
    def __init__(
        self,
        order_repository: IOrderRepository,
        driver_repository: IDriverRepository,
        wallet_service: WalletService,
        state_machine: OrderStateMachine,
    ) -> None:
        self._order_repo = order_repository
        self._driver_repo = driver_repository
        self._wallets = wallet_service
        self._state_machine = state_machine

    def try_claim(
        self, order_id: UUID, driver_id: UUID, policy: Optional[PlatformPolicy] = None
    ) -> ClaimResult:
        """Attempt to assign *driver_id* to *order_id*.

        Returns a rejected ``ClaimResult`` for expected refusals.

        Raises:
            OrderNotFound: order does not exist.
            DriverNotFound: driver does not exist or is inactive.
            InsufficientStock: claiming a pending order failed to reserve.
            Busy: a row lock was not acquired in time.
        """
        policy = policy or PlatformPolicy.load()
        log = logger.bind(order_id=str(order_id), driver_id=str(driver_id))
        try:
            with locked_atomic():
                order = self._order_repo.get_for_update(str(order_id))
                if order is None:
                    raise OrderNotFound(f"Order {order_id} not found.")
                if not order.is_claimable:
                    raise OrderNoLongerAvailable()

                driver = self._driver_repo.get_for_update(str(driver_id))
                if driver is None or not driver.is_active:
                    raise DriverNotFound(f"Driver {driver_id} not found.")

                self._check_driver(driver.id, policy)
                self._state_machine.claim(order, driver.id, policy)
        except ClaimRejected as exc:
            log.warning("dispatch.claim_rejected", code=exc.code, reason=str(exc))
            return ClaimResult.rejected(exc)

        log.info("dispatch.claim_accepted")
        return ClaimResult(accepted=True, order=self._order_repo.get_by_id(str(order_id)))

    def release_order(
        self,
        order_id: UUID,
        driver_id: UUID,
        reason: str = "",
        expected_status: Optional[str] = None,
    ) -> Order:
        """Let the assigned driver walk away from an order.

        Raises:
            OrderNotFound: order does not exist.
            StaleState: the order moved on from *expected_status*.
            InvalidTransition: not the assigned driver, or too late to
                release.
            Busy: the order lock was not acquired in time.
        """
        with locked_atomic():
            order = self._order_repo.get_for_update(str(order_id))
            if order is None:
                raise OrderNotFound(f"Order {order_id} not found.")
            if expected_status is not None and order.status != expected_status:
                raise StaleState(order_id, expected_status, order.status)
            self._state_machine.release_driver(
                order, Actor(role=ActorRole.DRIVER, id=driver_id), reason
            )
        return self._order_repo.get_by_id(str(order_id))

    def precheck(
        self, driver_id: UUID, policy: Optional[PlatformPolicy] = None
    ) -> ClaimResult:
        """Unlocked best-effort version of the driver checks."""
        policy = policy or PlatformPolicy.load()
        try:
            self._check_driver(driver_id, policy)
        except ClaimRejected as exc:
            return ClaimResult.rejected(exc)
        return ClaimResult(accepted=True)

    def _check_driver(self, driver_id, policy: PlatformPolicy) -> None:
        if self._order_repo.has_active_order(driver_id):
            raise AlreadyHasActiveOrder()

        balance = self._wallets.get_balance(driver_id)
        if balance < policy.min_wallet_balance:
            shortfall: Decimal = policy.min_wallet_balance - balance
            raise InsufficientWalletBalance(
                f"insufficient wallet balance: {balance} below minimum "
                f"{policy.min_wallet_balance} (short by {shortfall})"
            )
