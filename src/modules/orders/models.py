"""Order, OrderItem, OrderStatusHistory and DriverRelease models.

Business rules implemented:
- ``driver`` is set only while the order is in a claimed status: a pending
  or cancelled order never carries a driver (check constraint + ``clean``).
- Money columns are non-negative (check constraints).
- Each committed status change generates a history record with the actor.
- Idempotency via ``idempotency_key`` unique constraint.
- Order number auto-generated as human-readable identifier.
- Party FKs use PROTECT to preserve financial history.
- OrderItem snapshots the catalog price at placement (``unit_price``);
  ``subtotal`` is always ``quantity * unit_price``.
"""

from __future__ import annotations

import secrets
from decimal import Decimal
from typing import Any

import structlog
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.orders.constants import (
    CLAIM_TARGETS,
    CLAIMED_STATES,
    ORDER_NUMBER_MAX_RETRIES,
    TERMINAL_STATES,
    TRANSITIONS,
    ActorRole,
    OrderStatus,
)
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)

MONEY_FIELDS = (
    "product_total",
    "delivery_fee",
    "calculated_delivery_fee",
    "service_fee",
    "tax_amount",
    "customer_total",
    "merchant_amount",
)


def _money(**kwargs: Any) -> models.DecimalField:
    return models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
        **kwargs,
    )


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root.

    ``order_number`` is a human-readable identifier auto-generated on first
    save (format: ``ORD-YYYYMMDD-XXXXXX``).  The UUIDv7 ``id`` is used for
    all internal references and API lookups.

    ``driver_earning_amount`` is an earning recorded upstream (e.g. agreed
    with the merchant); when positive it takes precedence over any fee
    derivation at settlement.
    """

    order_number = models.CharField(max_length=20, unique=True, editable=False)
    customer = models.ForeignKey(
        "accounts.Customer",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    merchant = models.ForeignKey(
        "accounts.Merchant",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    driver = models.ForeignKey(
        "accounts.Driver",
        on_delete=models.PROTECT,
        related_name="orders",
        null=True,
        blank=True,
    )
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    product_total = _money()
    delivery_fee = _money()
    calculated_delivery_fee = _money()  # distance fee quoted at placement
    service_fee = _money()
    tax_amount = _money()
    customer_total = _money()
    merchant_amount = _money()
    driver_earning_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
    )
    delivery_distance_km = models.DecimalField(
        max_digits=8,
        decimal_places=3,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0"))],
    )
    notes = models.TextField(blank=True, default="")
    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["driver", "status"], name="orders_driver_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(driver__isnull=True)
                | models.Q(status__in=sorted(CLAIMED_STATES)),
                name="orders_driver_only_when_claimed",
            ),
        ] + [
            models.CheckConstraint(
                condition=models.Q(**{f"{name}__gte": 0}),
                name=f"orders_{name}_non_negative",
            )
            for name in MONEY_FIELDS
        ]

    # ------------------------------------------------------------------
    # State machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    @property
    def is_claimable(self) -> bool:
        """``pending``, or ``ready`` with nobody assigned."""
        return self.status in CLAIM_TARGETS and self.driver_id is None

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in TRANSITIONS.get(self.status, {})

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def clean(self) -> None:
        super().clean()
        if self.driver_id is not None and self.status not in CLAIMED_STATES:
            raise ValidationError(
                {"driver": f"An order in status '{self.status}' cannot have a driver."}
            )

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_number() -> str:
        """Generate a human-readable order number: ``ORD-YYYYMMDD-XXXXXX``."""
        now = timezone.now()
        suffix = secrets.token_hex(3).upper()
        return f"ORD-{now:%Y%m%d}-{suffix}"

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_number:
            for _ in range(ORDER_NUMBER_MAX_RETRIES):
                candidate = self.generate_order_number()
                if not Order.objects.filter(order_number=candidate).exists():
                    self.order_number = candidate
                    break
            else:
                raise RuntimeError(
                    f"Failed to generate unique order_number after "
                    f"{ORDER_NUMBER_MAX_RETRIES} attempts"
                )
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(BaseModel):
    """Line item linking an Order to a catalog item.

    Created together with the order and never mutated afterwards.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    catalog_item = models.ForeignKey(
        "catalog.CatalogItem",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    quantity = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, editable=False)

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        if self.quantity is not None and self.quantity < 1:
            raise ValidationError({"quantity": "Quantity must be at least 1."})

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.unit_price:
            unit_price = getattr(self.catalog_item, "price", None)
            if unit_price is None:
                raise ValidationError({"unit_price": "Item price is required."})
            self.unit_price = unit_price
        self.subtotal = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.catalog_item_id} x{self.quantity} ({self.subtotal})"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for order status changes.

    Inherits ``BaseModel`` only: audit records are never edited or deleted.
    ``old_status`` is ``None`` for the placement record.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status = models.CharField(max_length=20, choices=OrderStatus.choices)
    actor_role = models.CharField(
        max_length=20,
        choices=ActorRole.choices,
        default=ActorRole.SYSTEM,
    )
    actor_id = models.CharField(max_length=64, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["order", "created_at"], name="osh_order_created_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} : {self.old_status} -> {self.new_status}"


class DriverRelease(BaseModel):
    """A driver walking away from an order they had claimed."""

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="driver_releases",
    )
    driver = models.ForeignKey(
        "accounts.Driver",
        on_delete=models.PROTECT,
        related_name="releases",
    )
    previous_status = models.CharField(max_length=20, choices=OrderStatus.choices)
    reason = models.TextField(blank=True, default="")

    class Meta:
        db_table = "driver_releases"
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.driver_id} released {self.order_id} from {self.previous_status}"
