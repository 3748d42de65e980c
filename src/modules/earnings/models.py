"""Driver earning records.

Exactly one earning per delivered order (unique ``order``).  Amounts are
non-negative and ``net_amount`` never exceeds ``gross_amount``.
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models

from modules.core.models import BaseModel


class DriverEarning(BaseModel):
    order = models.OneToOneField(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="earning",
    )
    driver = models.ForeignKey(
        "accounts.Driver",
        on_delete=models.PROTECT,
        related_name="earnings",
    )
    gross_amount = models.DecimalField(max_digits=12, decimal_places=2)
    commission_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    net_amount = models.DecimalField(max_digits=12, decimal_places=2)
    earned_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "driver_earnings"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["driver", "earned_at"], name="earnings_driver_earned_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(gross_amount__gte=0),
                name="earnings_gross_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(commission_amount__gte=0),
                name="earnings_commission_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(net_amount__gte=0),
                name="earnings_net_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(net_amount__lte=models.F("gross_amount")),
                name="earnings_net_not_above_gross",
            ),
        ]

    @property
    def effective_at(self):
        """When the earning counts for statistics."""
        return self.earned_at or self.created_at

    def __str__(self) -> str:
        return f"{self.order_id}: net {self.net_amount} (gross {self.gross_amount})"
