"""Marketplace parties (customers, merchants, drivers) and wallets.

Business rules implemented:
- Inactive customers/merchants cannot place orders (enforced at service layer).
- Inactive drivers cannot claim orders (enforced by the acceptance gate).
- A wallet belongs to exactly one driver **or** one merchant (check constraint).
- Phone numbers are normalised to ``+`` and digits on save and masked in
  ``__str__``.
"""

from __future__ import annotations

import re
from decimal import Decimal

import structlog
from django.core.exceptions import ValidationError
from django.db import models

from modules.core.models import BaseModel

logger = structlog.get_logger(__name__)


class Party(BaseModel):
    """Abstract base for every marketplace participant."""

    name = models.CharField(max_length=255)
    phone = models.CharField(max_length=20, blank=True, default="")
    is_active = models.BooleanField(default=True)

    class Meta:
        abstract = True

    @staticmethod
    def _sanitize_phone(value: str) -> str:
        """Keep a leading ``+`` and digits only."""
        value = value.strip()
        prefix = "+" if value.startswith("+") else ""
        return prefix + re.sub(r"\D", "", value)

    def save(self, *args, **kwargs) -> None:
        if self.phone:
            self.phone = self._sanitize_phone(self.phone)
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        suffix = self.phone[-4:] if self.phone else "????"
        return f"{self.name} (***{suffix})"


class LocatedParty(Party):
    """Party with an optional geographic position."""

    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)

    class Meta:
        abstract = True

    def clean(self) -> None:
        super().clean()
        if (self.latitude is None) != (self.longitude is None):
            raise ValidationError("Latitude and longitude must be set together.")
        if self.latitude is not None and not (-90 <= self.latitude <= 90):
            raise ValidationError({"latitude": "Latitude must be within [-90, 90]."})
        if self.longitude is not None and not (-180 <= self.longitude <= 180):
            raise ValidationError({"longitude": "Longitude must be within [-180, 180]."})

    @property
    def location(self) -> tuple[float, float] | None:
        if self.latitude is None or self.longitude is None:
            return None
        return float(self.latitude), float(self.longitude)


class Customer(Party):
    class Meta:
        db_table = "customers"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["is_active"], name="customers_active_idx"),
        ]


class Merchant(LocatedParty):
    """Store that owns catalog items and prepares orders."""

    address = models.TextField(blank=True, default="")

    class Meta:
        db_table = "merchants"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["is_active"], name="merchants_active_idx"),
        ]


class Driver(LocatedParty):
    """Courier; ``latitude``/``longitude`` hold the last reported position."""

    is_online = models.BooleanField(default=False)
    location_updated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "drivers"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["is_active", "is_online"], name="drivers_available_idx"),
        ]


class Wallet(BaseModel):
    """Balance held by a driver or a merchant.

    The balance is credited and debited by collaborators outside the order
    core (top-ups, ad spend); the acceptance gate only reads it.
    """

    driver = models.OneToOneField(
        "accounts.Driver",
        on_delete=models.CASCADE,
        related_name="wallet",
        null=True,
        blank=True,
    )
    merchant = models.OneToOneField(
        "accounts.Merchant",
        on_delete=models.CASCADE,
        related_name="wallet",
        null=True,
        blank=True,
    )
    balance = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="EGP")

    class Meta:
        db_table = "wallets"
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(driver__isnull=False, merchant__isnull=True)
                    | models.Q(driver__isnull=True, merchant__isnull=False)
                ),
                name="wallets_single_owner",
            ),
        ]

    def __str__(self) -> str:
        return f"Wallet {self.balance} {self.currency}"
