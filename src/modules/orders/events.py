"""Domain events for the Orders bounded context.

Extra fields carry defaults so events can be rebuilt from outbox payloads.
"""

from __future__ import annotations

from dataclasses import dataclass

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderPlaced(DomainEvent):
    """Raised when a customer places an order."""

    merchant_id: str = ""
    customer_id: str = ""


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised on every committed status transition."""

    old_status: str = ""
    new_status: str = ""
    actor_role: str = ""


@dataclass(frozen=True)
class OrderClaimed(DomainEvent):
    """Raised when a driver wins the claim on an order."""

    driver_id: str = ""


@dataclass(frozen=True)
class OrderCancelled(DomainEvent):
    """Raised when an order is cancelled."""

    previous_status: str = ""
    stock_released: bool = False


@dataclass(frozen=True)
class OrderDelivered(DomainEvent):
    """Raised when an order is delivered and settled."""

    driver_id: str = ""
    net_amount: str = ""


@dataclass(frozen=True)
class DriverReleased(DomainEvent):
    """Raised when the assigned driver abandons an order."""

    driver_id: str = ""
    previous_status: str = ""
