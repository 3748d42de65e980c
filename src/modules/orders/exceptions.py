"""Order domain exceptions.

Raised by the service layer when a lifecycle rule is violated.  The API
layer (views) catches these and translates them into HTTP responses.
"""

from __future__ import annotations


class OrderNotFound(Exception):
    """The requested order does not exist."""


class InvalidTransition(Exception):
    """The target status is unreachable from the current one, or the actor
    may not perform the move."""


class StaleState(Exception):
    """The order is no longer in the status the caller based its request on."""

    def __init__(self, order_id, expected: str, actual: str):
        self.order_id = order_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Order {order_id} is '{actual}', expected '{expected}'."
        )


class OrderNotSettleable(Exception):
    """Settlement was requested for an order that is not delivered or has
    no driver."""


class CustomerNotFound(Exception):
    """The customer referenced by the order does not exist."""


class InactiveCustomer(Exception):
    """The customer is inactive and cannot place orders."""


class MerchantNotFound(Exception):
    """The merchant referenced by the order does not exist."""


class InactiveMerchant(Exception):
    """The merchant is inactive and cannot receive orders."""


class DeliveryOutOfRange(Exception):
    """The delivery distance exceeds the platform's maximum."""
