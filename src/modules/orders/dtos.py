"""Order DTOs for the service layer.

Framework-agnostic data transfer objects using Pydantic v2.  These are the
contracts between the API layer (DRF serializers) and the service layer.
DTOs are immutable (``frozen=True``).

- ``PlaceOrderItemDTO``: one line of a placement request.
- ``PlaceOrderDTO``: order placement (nested items, fees, distance).
- ``TransitionDTO``: a status change request with its optimistic guard.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from modules.orders.constants import ActorRole, OrderStatus


class PlaceOrderItemDTO(BaseModel):
    """A single order line.  ``unit_price`` is resolved from the catalog."""

    model_config = ConfigDict(frozen=True)

    catalog_item_id: UUID
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class PlaceOrderDTO(BaseModel):
    """Immutable DTO for order placement.

    Validates:
    - ``items`` must contain at least one item, without duplicates.
    - Fee fields are non-negative.
    """

    model_config = ConfigDict(frozen=True)

    customer_id: UUID
    merchant_id: UUID
    items: List[PlaceOrderItemDTO]
    delivery_fee: Decimal = Field(default=Decimal("0.00"), ge=0)
    service_fee: Decimal = Field(default=Decimal("0.00"), ge=0)
    tax_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    merchant_amount: Optional[Decimal] = Field(default=None, ge=0)
    driver_earning_amount: Optional[Decimal] = Field(default=None, ge=0)
    delivery_distance_km: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = ""
    idempotency_key: Optional[str] = None

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[PlaceOrderItemDTO]
    ) -> List[PlaceOrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @model_validator(mode="after")
    def no_duplicate_items(self):
        """Prevent the same catalog item appearing twice in one order."""
        ids = [item.catalog_item_id for item in self.items]
        if len(ids) != len(set(ids)):
            raise ValueError("Duplicate catalog items are not allowed in the same order.")
        return self


class TransitionDTO(BaseModel):
    """A status change request.

    ``expected_status`` is the status the caller last saw; the change is
    refused if the order has moved on since.
    """

    model_config = ConfigDict(frozen=True)

    expected_status: OrderStatus
    status: OrderStatus
    actor_role: ActorRole
    actor_id: Optional[UUID] = None
    notes: str = ""
