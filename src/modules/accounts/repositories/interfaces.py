"""Account repository interfaces.

Parties are never deleted while orders reference them; ``delete`` on these
repositories deactivates the party instead.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.accounts.models import Customer, Driver, Merchant


class ICustomerRepository(IRepository["Customer"]):
    """Repository contract for customers."""


class IMerchantRepository(IRepository["Merchant"]):
    """Repository contract for merchants."""


class IDriverRepository(IRepository["Driver"]):
    """Repository contract for drivers."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Driver]:
        """Retrieve a driver with a row-level lock (SELECT FOR UPDATE)."""

    @abstractmethod
    def list_dispatchable(self, exclude_busy: bool = True) -> List[Driver]:
        """Online, active drivers; optionally only those without an active order."""
