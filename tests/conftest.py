from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from modules.accounts.models import Customer, Driver, Merchant, Wallet
from modules.catalog.models import CatalogItem
from modules.earnings.policy import PlatformPolicy
from modules.orders.constants import ActorRole
from modules.orders.dtos import PlaceOrderDTO, PlaceOrderItemDTO
from modules.orders.factories import (
    build_claim_service,
    build_order_service,
    build_settlement_service,
)
from modules.orders.state_machine import Actor


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def auth_client():
    """APIClient with a force-authenticated Django user."""
    client = APIClient()
    user = get_user_model().objects.create_user(
        username="dispatcher", password="testpass123"
    )
    client.force_authenticate(user=user)
    return client


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Marketplace parties
# ---------------------------------------------------------------------------


@pytest.fixture()
def customer():
    return Customer.objects.create(name="Test Customer", phone="+201000000001")


@pytest.fixture()
def merchant():
    return Merchant.objects.create(
        name="Test Merchant",
        phone="+201100000001",
        latitude=Decimal("30.044420"),
        longitude=Decimal("31.235712"),
    )


@pytest.fixture()
def make_driver():
    def _make(name="Driver", balance=Decimal("100.00"), **kwargs):
        kwargs.setdefault("is_online", True)
        driver = Driver.objects.create(name=name, **kwargs)
        Wallet.objects.create(driver=driver, balance=balance)
        return driver

    return _make


@pytest.fixture()
def driver(make_driver):
    return make_driver(name="Test Driver")


@pytest.fixture()
def make_item(merchant):
    def _make(sku, stock=10, price=Decimal("20.00"), owner=None):
        return CatalogItem.objects.create(
            merchant=owner or merchant,
            sku=sku,
            name=f"Item {sku}",
            price=price,
            stock_quantity=stock,
        )

    return _make


@pytest.fixture()
def item_a(make_item):
    return make_item("ITEM-A", stock=10, price=Decimal("20.00"))


@pytest.fixture()
def item_b(make_item):
    return make_item("ITEM-B", stock=5, price=Decimal("7.50"))


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture()
def policy():
    return PlatformPolicy(
        per_km_rate=Decimal("5.00"),
        commission_rate=Decimal("0.20"),
        min_wallet_balance=Decimal("0.00"),
    )


@pytest.fixture()
def order_service():
    return build_order_service()


@pytest.fixture()
def claim_service():
    return build_claim_service()


@pytest.fixture()
def settlement_service():
    return build_settlement_service()


@pytest.fixture()
def place_order(order_service, customer, merchant, policy):
    def _place(lines, **fields):
        dto = PlaceOrderDTO(
            customer_id=customer.id,
            merchant_id=merchant.id,
            items=[
                PlaceOrderItemDTO(catalog_item_id=item.id, quantity=quantity)
                for item, quantity in lines
            ],
            **fields,
        )
        return order_service.place_order(dto, policy=policy)

    return _place


@pytest.fixture()
def merchant_actor(merchant):
    return Actor(role=ActorRole.MERCHANT, id=merchant.id)


@pytest.fixture()
def customer_actor(customer):
    return Actor(role=ActorRole.CUSTOMER, id=customer.id)


@pytest.fixture()
def advance(order_service, merchant_actor, policy):
    """Walk an order forward through merchant-owned steps."""

    def _advance(order, *targets, actor=None):
        for target in targets:
            order = order_service.transition(
                order.id, order.status, target, actor or merchant_actor, policy=policy
            )
        return order

    return _advance
