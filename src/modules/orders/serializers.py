"""Order DRF serializers for API input/output.

Serializers live at the interface layer.  Business logic lives in the
service layer, which receives Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from modules.orders.constants import ActorRole, OrderStatus
from modules.orders.models import Order, OrderItem, OrderStatusHistory

# ---------------------------------------------------------------------------
# Input serializers
# ---------------------------------------------------------------------------


class PlaceOrderItemSerializer(serializers.Serializer):
    catalog_item_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)


class PlaceOrderSerializer(serializers.Serializer):
    """Validates the order placement payload."""

    customer_id = serializers.UUIDField()
    merchant_id = serializers.UUIDField()
    items = PlaceOrderItemSerializer(many=True, allow_empty=False)
    delivery_fee = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0"),
        required=False,
        default=Decimal("0.00"),
    )
    service_fee = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0"),
        required=False,
        default=Decimal("0.00"),
    )
    tax_amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0"),
        required=False,
        default=Decimal("0.00"),
    )
    delivery_distance_km = serializers.DecimalField(
        max_digits=8,
        decimal_places=3,
        min_value=Decimal("0"),
        required=False,
        allow_null=True,
    )
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class TransitionSerializer(serializers.Serializer):
    expected_status = serializers.ChoiceField(choices=OrderStatus.choices)
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    actor_role = serializers.ChoiceField(choices=ActorRole.choices)
    actor_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class CancelSerializer(serializers.Serializer):
    expected_status = serializers.ChoiceField(choices=OrderStatus.choices)
    actor_role = serializers.ChoiceField(choices=ActorRole.choices)
    actor_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class ClaimSerializer(serializers.Serializer):
    driver_id = serializers.UUIDField()


class ReleaseSerializer(serializers.Serializer):
    driver_id = serializers.UUIDField()
    reason = serializers.CharField(required=False, default="", allow_blank=True)
    expected_status = serializers.ChoiceField(
        choices=OrderStatus.choices, required=False, allow_null=True, default=None
    )


# ---------------------------------------------------------------------------
# Output serializers (read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    """Order line with the catalog item it points at."""

    sku = serializers.CharField(source="catalog_item.sku", read_only=True)
    name = serializers.CharField(source="catalog_item.name", read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "catalog_item_id",
            "sku",
            "name",
            "quantity",
            "unit_price",
            "subtotal",
        ]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = [
            "id",
            "old_status",
            "new_status",
            "actor_role",
            "actor_id",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for orders with nested items and history."""

    items = OrderItemSerializer(many=True, read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_id",
            "merchant_id",
            "driver_id",
            "status",
            "product_total",
            "delivery_fee",
            "calculated_delivery_fee",
            "service_fee",
            "tax_amount",
            "customer_total",
            "merchant_amount",
            "delivery_distance_km",
            "notes",
            "created_at",
            "updated_at",
            "items",
            "status_history",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order lists (no nested relations)."""

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_id",
            "merchant_id",
            "driver_id",
            "status",
            "customer_total",
            "created_at",
        ]
        read_only_fields = fields
