"""Order API views.

Exposes the order core over HTTP using a DRF ViewSet.  Domain exceptions
are caught and translated into HTTP status codes; the view never swallows
generic exceptions.
"""

from __future__ import annotations

from uuid import UUID

import structlog
from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as DTOValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.accounts.exceptions import DriverNotFound
from modules.catalog.exceptions import (
    CatalogItemNotFound,
    CatalogItemUnavailable,
    InsufficientStock,
)
from modules.core.exceptions import Busy
from modules.core.pagination import StandardResultsSetPagination
from modules.orders.dtos import PlaceOrderDTO, PlaceOrderItemDTO, TransitionDTO
from modules.orders.exceptions import (
    CustomerNotFound,
    DeliveryOutOfRange,
    InactiveCustomer,
    InactiveMerchant,
    InvalidTransition,
    MerchantNotFound,
    OrderNotFound,
    StaleState,
)
from modules.orders.factories import build_claim_service, build_order_service
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.serializers import (
    CancelSerializer,
    ClaimSerializer,
    OrderListSerializer,
    OrderSerializer,
    PlaceOrderSerializer,
    ReleaseSerializer,
    TransitionSerializer,
)
from modules.orders.state_machine import Actor

logger = structlog.get_logger(__name__)


def _detail(message: str, http_status: int, **extra) -> Response:
    return Response({"detail": message, **extra}, status=http_status)


def _parse_order_id(pk: str | None) -> UUID | None:
    try:
        return UUID(str(pk))
    except ValueError:
        return None


def _invalid_id_response() -> Response:
    return _detail("Invalid order ID format.", status.HTTP_400_BAD_REQUEST)


def _busy_response(exc: Busy) -> Response:
    response = _detail(str(exc), status.HTTP_503_SERVICE_UNAVAILABLE)
    response["Retry-After"] = str(exc.retry_after)
    return response


def _lifecycle_error_response(exc: Exception) -> Response:
    """Translate an order lifecycle exception into a response."""
    if isinstance(exc, (OrderNotFound, DriverNotFound)):
        return _detail(str(exc), status.HTTP_404_NOT_FOUND)
    if isinstance(exc, StaleState):
        return _detail(
            str(exc),
            status.HTTP_409_CONFLICT,
            expected_status=exc.expected,
            current_status=exc.actual,
        )
    if isinstance(exc, InsufficientStock):
        return _detail(
            str(exc),
            status.HTTP_409_CONFLICT,
            shortages=[s.to_dict() for s in exc.shortages],
        )
    if isinstance(exc, Busy):
        return _busy_response(exc)
    return _detail(str(exc), status.HTTP_400_BAD_REQUEST)


LIFECYCLE_ERRORS = (
    OrderNotFound,
    DriverNotFound,
    StaleState,
    InvalidTransition,
    InsufficientStock,
    Busy,
)


class OrderViewSet(GenericViewSet):
    """ViewSet for order operations.

    Does **not** extend ``ModelViewSet``: writes go through the service
    layer, which owns locking and transactions.
    """

    queryset = Order.objects.all()
    filterset_class = OrderFilter
    search_fields = ["order_number", "customer__name", "merchant__name"]
    ordering_fields = ["created_at", "customer_total", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_order_service()
        self._claims = build_claim_service()

    def get_throttles(self) -> list[BaseThrottle]:
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve"}:
            throttle_scope = "order_listing"
        elif self.action in {"claim", "release"}:
            throttle_scope = "order_claims"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    # ------------------------------------------------------------------
    # Place
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Supports idempotency via the ``Idempotency-Key`` header.
        """
        serializer = PlaceOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            dto = PlaceOrderDTO(
                customer_id=data["customer_id"],
                merchant_id=data["merchant_id"],
                items=[
                    PlaceOrderItemDTO(
                        catalog_item_id=item["catalog_item_id"],
                        quantity=item["quantity"],
                    )
                    for item in data["items"]
                ],
                delivery_fee=data["delivery_fee"],
                service_fee=data["service_fee"],
                tax_amount=data["tax_amount"],
                delivery_distance_km=data.get("delivery_distance_km"),
                notes=data.get("notes", ""),
                idempotency_key=request.headers.get("Idempotency-Key"),
            )
        except DTOValidationError as exc:
            return _detail(
                "Invalid order.",
                status.HTTP_400_BAD_REQUEST,
                errors=[e["msg"] for e in exc.errors()],
            )

        try:
            order = self._service.place_order(dto)
        except (CustomerNotFound, MerchantNotFound, CatalogItemNotFound) as exc:
            return _detail(str(exc), status.HTTP_404_NOT_FOUND)
        except (
            InactiveCustomer,
            InactiveMerchant,
            CatalogItemUnavailable,
            DeliveryOutOfRange,
        ) as exc:
            return _detail(str(exc), status.HTTP_400_BAD_REQUEST)

        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Filtering (status, parties, date range, total range) is handled by
        ``OrderFilter``; results are paginated.
        """
        queryset = self.filter_queryset(
            self.get_queryset().select_related("customer", "merchant", "driver")
        )
        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        try:
            order = self._service.get_order(pk)
        except OrderNotFound:
            return _detail("Order not found.", status.HTTP_404_NOT_FOUND)
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Lifecycle actions
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def transition(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/transition/"""
        order_id = _parse_order_id(pk)
        if order_id is None:
            return _invalid_id_response()

        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = TransitionDTO(**serializer.validated_data)

        try:
            order = self._service.transition(
                order_id=order_id,
                expected_status=dto.expected_status,
                target_status=dto.status,
                actor=Actor(role=dto.actor_role, id=dto.actor_id),
                notes=dto.notes,
            )
        except LIFECYCLE_ERRORS as exc:
            return _lifecycle_error_response(exc)
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/cancel/

        Cancels the order and releases any reserved stock.
        """
        order_id = _parse_order_id(pk)
        if order_id is None:
            return _invalid_id_response()

        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            order = self._service.cancel_order(
                order_id=order_id,
                expected_status=data["expected_status"],
                actor=Actor(role=data["actor_role"], id=data["actor_id"]),
                notes=data["notes"],
            )
        except LIFECYCLE_ERRORS as exc:
            return _lifecycle_error_response(exc)
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["post"])
    def claim(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/claim/

        409 with ``code`` and ``reason`` when the claim is refused.
        """
        order_id = _parse_order_id(pk)
        if order_id is None:
            return _invalid_id_response()

        serializer = ClaimSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = self._claims.try_claim(
                order_id=order_id,
                driver_id=serializer.validated_data["driver_id"],
            )
        except LIFECYCLE_ERRORS as exc:
            return _lifecycle_error_response(exc)
        if not result.accepted:
            return Response(
                {"accepted": False, "code": result.code, "reason": result.reason},
                status=status.HTTP_409_CONFLICT,
            )
        return Response({"accepted": True, "order": OrderSerializer(result.order).data})

    @action(detail=True, methods=["post"])
    def release(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/release/

        The assigned driver gives the order back without cancelling it.
        """
        order_id = _parse_order_id(pk)
        if order_id is None:
            return _invalid_id_response()

        serializer = ReleaseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            order = self._claims.release_order(
                order_id=order_id,
                driver_id=data["driver_id"],
                reason=data["reason"],
                expected_status=data["expected_status"],
            )
        except LIFECYCLE_ERRORS as exc:
            return _lifecycle_error_response(exc)
        return Response(OrderSerializer(order).data)
