"""Read-side boundary services for account data.

These are the lookups the order core consumes from collaborators it does
not own: party locations (distance fallback fee) and wallet balances (claim
precondition).  Missing data is reported as ``None`` / zero, never raised.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Optional, Tuple

import structlog

from modules.accounts.models import Wallet

if TYPE_CHECKING:
    from modules.accounts.repositories.interfaces import (
        IDriverRepository,
        IMerchantRepository,
    )

logger = structlog.get_logger(__name__)

Coordinates = Tuple[float, float]


class LocationService:
    """``GetDriverLocation`` / ``GetMerchantLocation`` boundary."""

    def __init__(
        self,
        driver_repository: IDriverRepository,
        merchant_repository: IMerchantRepository,
    ) -> None:
        self._driver_repo = driver_repository
        self._merchant_repo = merchant_repository

    def get_driver_location(self, driver_id) -> Optional[Coordinates]:
        driver = self._driver_repo.get_by_id(str(driver_id))
        if driver is None or driver.location is None:
            logger.info("location.driver_unavailable", driver_id=str(driver_id))
            return None
        return driver.location

    def get_merchant_location(self, merchant_id) -> Optional[Coordinates]:
        merchant = self._merchant_repo.get_by_id(str(merchant_id))
        if merchant is None or merchant.location is None:
            logger.info("location.merchant_unavailable", merchant_id=str(merchant_id))
            return None
        return merchant.location


class WalletService:
    """``GetWalletBalance`` boundary.  Read-only from the order core."""

    def get_balance(self, driver_id) -> Decimal:
        """Current balance of the driver's wallet; no wallet reads as zero."""
        balance = (
            Wallet.objects.filter(driver_id=driver_id)
            .values_list("balance", flat=True)
            .first()
        )
        return balance if balance is not None else Decimal("0.00")
