"""Order service layer (use cases).

Orchestrates order placement and every status change.  Each command is one
atomic unit: the order row is locked, the request's expected status is
checked, and the state machine applies the change with its side effects
(stock, settlement) before anything commits.

Rules enforced:
- Customer and merchant must exist and be active at placement.
- Ordered items must belong to the merchant and be available.
- A status change based on a stale read is refused (``StaleState``).
- Transitions are validated against the actor table (``InvalidTransition``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.db import transaction

from modules.catalog.exceptions import CatalogItemNotFound, CatalogItemUnavailable
from modules.core.locking import locked_atomic
from modules.earnings.fees import can_deliver, distance_fee
from modules.earnings.policy import PlatformPolicy
from modules.orders.constants import ActorRole, OrderStatus
from modules.orders.events import OrderPlaced
from modules.orders.exceptions import (
    CustomerNotFound,
    DeliveryOutOfRange,
    InactiveCustomer,
    InactiveMerchant,
    MerchantNotFound,
    OrderNotFound,
    StaleState,
)
from modules.orders.state_machine import Actor, queue_driver_notification

if TYPE_CHECKING:
    from modules.accounts.repositories.interfaces import (
        ICustomerRepository,
        IMerchantRepository,
    )
    from modules.catalog.repositories.interfaces import ICatalogItemRepository
    from modules.orders.dtos import PlaceOrderDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.orders.state_machine import OrderStateMachine

logger = structlog.get_logger(__name__)


class OrderService:
    """Application service for Order use cases.

    Receives repositories and the state machine via constructor injection.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        customer_repository: ICustomerRepository,
        merchant_repository: IMerchantRepository,
        catalog_repository: ICatalogItemRepository,
        state_machine: OrderStateMachine,
    ) -> None:
        self._order_repo = order_repository
        self._customer_repo = customer_repository
        self._merchant_repo = merchant_repository
        self._catalog_repo = catalog_repository
        self._state_machine = state_machine

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def place_order(
        self, dto: PlaceOrderDTO, policy: Optional[PlatformPolicy] = None
    ) -> Order:
        """Create a pending order.

        Prices are snapshotted from the catalog.  Stock is not touched: it
        is reserved when the order first leaves ``pending``.

        Raises:
            CustomerNotFound / InactiveCustomer
            MerchantNotFound / InactiveMerchant
            CatalogItemNotFound: an item does not exist or was removed.
            CatalogItemUnavailable: an item is switched off or belongs to
                another merchant.
            DeliveryOutOfRange: distance above the platform maximum.
        """
        log = logger.bind(
            customer_id=str(dto.customer_id), merchant_id=str(dto.merchant_id)
        )
        log.info("order.placement_started")

        if dto.idempotency_key:
            existing = self._order_repo.get_by_idempotency_key(dto.idempotency_key)
            if existing:
                log.info(
                    "order.idempotency_hit",
                    order_id=str(existing.id),
                    key=dto.idempotency_key,
                )
                return existing

        customer = self._customer_repo.get_by_id(str(dto.customer_id))
        if not customer:
            raise CustomerNotFound(f"Customer {dto.customer_id} not found.")
        if not customer.is_active:
            raise InactiveCustomer(f"Customer {dto.customer_id} is inactive.")

        merchant = self._merchant_repo.get_by_id(str(dto.merchant_id))
        if not merchant:
            raise MerchantNotFound(f"Merchant {dto.merchant_id} not found.")
        if not merchant.is_active:
            raise InactiveMerchant(f"Merchant {dto.merchant_id} is inactive.")

        policy = policy or PlatformPolicy.load()
        calculated_fee = None
        if dto.delivery_distance_km is not None:
            if not can_deliver(dto.delivery_distance_km, policy.max_delivery_distance_km):
                raise DeliveryOutOfRange(
                    f"Delivery distance {dto.delivery_distance_km} km exceeds "
                    f"the maximum of {policy.max_delivery_distance_km} km."
                )
            # Quote at today's rate; settlement keeps it as a floor.
            calculated_fee = distance_fee(dto.delivery_distance_km, policy.per_km_rate)

        lines = []
        for item_dto in dto.items:
            item = self._catalog_repo.get_by_id(str(item_dto.catalog_item_id))
            if not item:
                raise CatalogItemNotFound(
                    f"Catalog item {item_dto.catalog_item_id} not found."
                )
            if item.merchant_id != merchant.id or not item.is_available:
                raise CatalogItemUnavailable(
                    f"Catalog item {item.sku} is not available from this merchant."
                )
            lines.append(
                {
                    "catalog_item_id": item.id,
                    "quantity": item_dto.quantity,
                    "unit_price": item.price,
                }
            )

        order = self._order_repo.create(
            {
                "customer_id": customer.id,
                "merchant_id": merchant.id,
                "items": lines,
                "delivery_fee": dto.delivery_fee,
                "calculated_delivery_fee": calculated_fee,
                "service_fee": dto.service_fee,
                "tax_amount": dto.tax_amount,
                "merchant_amount": dto.merchant_amount,
                "driver_earning_amount": dto.driver_earning_amount,
                "delivery_distance_km": dto.delivery_distance_km,
                "notes": dto.notes or "",
                "idempotency_key": dto.idempotency_key,
            }
        )
        order.add_domain_event(
            OrderPlaced(
                aggregate_id=order.id,
                merchant_id=str(merchant.id),
                customer_id=str(customer.id),
            )
        )
        self._order_repo.save(order)
        self._order_repo.add_history(
            order_id=order.id,
            old_status=None,
            new_status=OrderStatus.PENDING,
            actor_role=ActorRole.CUSTOMER,
            actor_id=str(customer.id),
            notes="Order placed",
        )

        log.info("order.placed", order_id=str(order.id))
        queue_driver_notification(order.id)
        return self._order_repo.get_by_id(str(order.id)) or order

    def transition(
        self,
        order_id: UUID,
        expected_status: str,
        target_status: str,
        actor: Actor,
        notes: str = "",
        policy: Optional[PlatformPolicy] = None,
    ) -> Order:
        """Move an order from *expected_status* to *target_status*.

        Raises:
            OrderNotFound: order does not exist.
            StaleState: the order is no longer in *expected_status*.
            InvalidTransition: unreachable target or actor without rights.
            InsufficientStock: reservation failed; nothing was changed.
            Busy: the order lock was not acquired in time.
        """
        policy = policy or PlatformPolicy.load()
        with locked_atomic():
            order = self._order_repo.get_for_update(str(order_id))
            if not order:
                raise OrderNotFound(f"Order {order_id} not found.")

            if order.status != expected_status:
                logger.warning(
                    "order.stale_state",
                    order_id=str(order_id),
                    expected_status=expected_status,
                    current_status=order.status,
                )
                raise StaleState(order_id, expected_status, order.status)

            self._state_machine.apply(order, target_status, actor, policy, notes)

        return self._order_repo.get_by_id(str(order_id))

    def cancel_order(
        self,
        order_id: UUID,
        expected_status: str,
        actor: Actor,
        notes: str = "",
        policy: Optional[PlatformPolicy] = None,
    ) -> Order:
        """Cancel an order, releasing any reserved stock."""
        return self.transition(
            order_id,
            expected_status,
            OrderStatus.CANCELLED,
            actor,
            notes=notes or "Order cancelled",
            policy=policy,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def list_orders(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        return self._order_repo.list(filters)
