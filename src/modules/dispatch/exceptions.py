"""Driver acceptance gate exceptions.

``ClaimRejected`` subclasses are expected outcomes of a contested claim:
the gate converts them into a rejected ``ClaimResult``.  Everything else
propagates.
"""

from __future__ import annotations

from modules.accounts.exceptions import DriverNotFound

__all__ = [
    "AlreadyHasActiveOrder",
    "ClaimRejected",
    "DriverNotFound",
    "InsufficientWalletBalance",
    "OrderNoLongerAvailable",
]


class ClaimRejected(Exception):
    """A claim was refused; the order is left untouched."""

    code = "claim_rejected"
    reason = "claim rejected"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.reason)


class OrderNoLongerAvailable(ClaimRejected):
    code = "order_unavailable"
    reason = "order no longer available"


class AlreadyHasActiveOrder(ClaimRejected):
    code = "driver_busy"
    reason = "driver already has an active order"


class InsufficientWalletBalance(ClaimRejected):
    code = "insufficient_wallet_balance"
    reason = "insufficient wallet balance"
