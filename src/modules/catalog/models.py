"""Catalog items and the stock reservation ledger.

Business rules implemented:
- SKU unique per merchant, normalised to uppercase.
- Price must be greater than zero.
- Stock quantity cannot be negative (check constraint, last line of
  defence behind the row-locked reservation logic).
- One reservation per order (unique ``order``); a released reservation is
  never re-activated, so an order is reserved and released at most once.
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel, SoftDeleteModel

logger = structlog.get_logger(__name__)


class CatalogItem(SoftDeleteModel):
    """Sellable item in a merchant's catalog."""

    merchant = models.ForeignKey(
        "accounts.Merchant",
        on_delete=models.PROTECT,
        related_name="catalog_items",
    )
    sku = models.CharField(max_length=64)
    name = models.CharField(max_length=255)
    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    stock_quantity = models.PositiveIntegerField(default=0)
    is_available = models.BooleanField(default=True)

    class Meta:
        db_table = "catalog_items"
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["merchant", "sku"],
                name="catalog_items_merchant_sku_uniq",
            ),
            models.CheckConstraint(
                condition=models.Q(price__gt=0),
                name="catalog_items_price_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(stock_quantity__gte=0),
                name="catalog_items_stock_non_negative",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        if self.sku:
            self.sku = self.sku.strip().upper()
        if self.price is not None and self.price <= 0:
            raise ValidationError({"price": "Price must be greater than zero."})

    def save(self, *args, **kwargs) -> None:
        if self.sku:
            self.sku = self.sku.strip().upper()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.sku} - {self.name}"


class ReservationStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    RELEASED = "released", "Released"


class StockReservation(BaseModel):
    """Hold on catalog stock for one order."""

    order = models.OneToOneField(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="stock_reservation",
    )
    status = models.CharField(
        max_length=10,
        choices=ReservationStatus.choices,
        default=ReservationStatus.ACTIVE,
    )
    released_at = models.DateTimeField(null=True, blank=True, default=None)

    class Meta:
        db_table = "stock_reservations"
        indexes = [
            models.Index(fields=["status"], name="stock_res_status_idx"),
        ]

    @property
    def is_active(self) -> bool:
        return self.status == ReservationStatus.ACTIVE

    def __str__(self) -> str:
        return f"Reservation {self.order_id} [{self.status}]"


class StockReservationLine(BaseModel):
    """Quantity held for one catalog item under a reservation."""

    reservation = models.ForeignKey(
        "catalog.StockReservation",
        on_delete=models.CASCADE,
        related_name="lines",
    )
    catalog_item = models.ForeignKey(
        "catalog.CatalogItem",
        on_delete=models.PROTECT,
        related_name="reservation_lines",
    )
    quantity = models.PositiveIntegerField()

    class Meta:
        db_table = "stock_reservation_lines"
        constraints = [
            models.UniqueConstraint(
                fields=["reservation", "catalog_item"],
                name="stock_res_lines_item_uniq",
            ),
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="stock_res_lines_qty_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.catalog_item_id} x{self.quantity}"
