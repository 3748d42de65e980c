"""Django ORM implementations of the account repositories."""

from __future__ import annotations

from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

import structlog
from django.core.exceptions import ValidationError
from django.db import models, transaction

from modules.accounts.models import Customer, Driver, Merchant
from modules.accounts.repositories.interfaces import (
    ICustomerRepository,
    IDriverRepository,
    IMerchantRepository,
)

logger = structlog.get_logger(__name__)

P = TypeVar("P", bound=models.Model)


class _PartyDjangoRepository(Generic[P]):
    """Shared CRUD for parties; ``delete`` deactivates."""

    model: Type[P]

    def get_by_id(self, id: str) -> Optional[P]:
        """Return ``None`` for non-existent or malformed IDs."""
        try:
            return self.model.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[P]:
        queryset = self.model.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    @transaction.atomic
    def save(self, entity: P) -> P:
        entity.save()
        logger.info(
            "party.saved",
            party_type=self.model._meta.model_name,
            party_id=str(entity.pk),
        )
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        entity = self.get_by_id(id)
        if not entity:
            return False
        entity.is_active = False
        entity.save(update_fields=["is_active", "updated_at"])
        logger.info(
            "party.deactivated",
            party_type=self.model._meta.model_name,
            party_id=str(id),
        )
        return True


class CustomerDjangoRepository(_PartyDjangoRepository[Customer], ICustomerRepository):
    model = Customer


class MerchantDjangoRepository(_PartyDjangoRepository[Merchant], IMerchantRepository):
    model = Merchant


class DriverDjangoRepository(_PartyDjangoRepository[Driver], IDriverRepository):
    model = Driver

    def get_for_update(self, id: str) -> Optional[Driver]:
        try:
            return Driver.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list_dispatchable(self, exclude_busy: bool = True) -> List[Driver]:
        from modules.orders.constants import ACTIVE_DRIVER_STATES

        queryset = Driver.objects.filter(is_active=True, is_online=True)
        if exclude_busy:
            queryset = queryset.exclude(orders__status__in=ACTIVE_DRIVER_STATES)
        return list(queryset.distinct())
