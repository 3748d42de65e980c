"""Order domain constants.

Status choices, actor roles and the transition table of the order state
machine.  Every other module derives its status sets from here.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    PREPARING = "preparing", "Preparing"
    READY = "ready", "Ready for pickup"
    PICKED_UP = "picked_up", "Picked up"
    ON_THE_WAY = "on_the_way", "On the way"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"


class ActorRole(models.TextChoices):
    MERCHANT = "merchant", "Merchant"
    DRIVER = "driver", "Driver"
    CUSTOMER = "customer", "Customer"
    ADMIN = "admin", "Admin"
    SYSTEM = "system", "System"


CANCEL_ACTORS: frozenset[str] = frozenset(
    {ActorRole.MERCHANT, ActorRole.CUSTOMER, ActorRole.ADMIN, ActorRole.SYSTEM}
)

# from -> {to: roles allowed to perform it}
TRANSITIONS: dict[str, dict[str, frozenset[str]]] = {
    OrderStatus.PENDING: {
        OrderStatus.ACCEPTED: frozenset({ActorRole.MERCHANT}),
        OrderStatus.CANCELLED: CANCEL_ACTORS,
    },
    OrderStatus.ACCEPTED: {
        OrderStatus.PREPARING: frozenset({ActorRole.MERCHANT}),
        OrderStatus.CANCELLED: CANCEL_ACTORS,
    },
    OrderStatus.PREPARING: {
        OrderStatus.READY: frozenset({ActorRole.MERCHANT}),
        OrderStatus.CANCELLED: CANCEL_ACTORS,
    },
    OrderStatus.READY: {
        OrderStatus.PICKED_UP: frozenset({ActorRole.DRIVER}),
        OrderStatus.CANCELLED: CANCEL_ACTORS,
    },
    OrderStatus.PICKED_UP: {
        OrderStatus.ON_THE_WAY: frozenset({ActorRole.DRIVER}),
        OrderStatus.CANCELLED: CANCEL_ACTORS,
    },
    OrderStatus.ON_THE_WAY: {
        OrderStatus.DELIVERED: frozenset({ActorRole.DRIVER, ActorRole.SYSTEM}),
        OrderStatus.CANCELLED: CANCEL_ACTORS,
    },
    OrderStatus.DELIVERED: {},
    OrderStatus.CANCELLED: {},
}

# Status a claim moves an order into, keyed by the status it is claimed from.
CLAIM_TARGETS: dict[str, str] = {
    OrderStatus.PENDING: OrderStatus.ACCEPTED,
    OrderStatus.READY: OrderStatus.PICKED_UP,
}

CLAIMABLE_STATES: frozenset[str] = frozenset(CLAIM_TARGETS)

CLAIMED_STATES: frozenset[str] = frozenset(
    {
        OrderStatus.ACCEPTED,
        OrderStatus.PREPARING,
        OrderStatus.READY,
        OrderStatus.PICKED_UP,
        OrderStatus.ON_THE_WAY,
        OrderStatus.DELIVERED,
    }
)

ACTIVE_DRIVER_STATES: frozenset[str] = CLAIMED_STATES - {OrderStatus.DELIVERED}

# Statuses in which stock is held for the order.
WORKING_STATES: frozenset[str] = ACTIVE_DRIVER_STATES

TERMINAL_STATES: frozenset[str] = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
)

# Statuses an assigned driver may walk away from.
RELEASABLE_STATES: frozenset[str] = frozenset(
    {
        OrderStatus.ACCEPTED,
        OrderStatus.PREPARING,
        OrderStatus.READY,
        OrderStatus.PICKED_UP,
    }
)

ORDER_NUMBER_MAX_RETRIES = 5
