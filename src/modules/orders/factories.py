"""Wiring of the order core services with their Django repositories."""

from __future__ import annotations

from modules.accounts.repositories.django_repository import (
    CustomerDjangoRepository,
    DriverDjangoRepository,
    MerchantDjangoRepository,
)
from modules.accounts.services import LocationService, WalletService
from modules.catalog.repositories.django_repository import CatalogItemDjangoRepository
from modules.catalog.services import StockLedgerService
from modules.dispatch.services import ClaimService
from modules.earnings.services import EarningsService, SettlementService
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.orders.state_machine import OrderStateMachine


def build_settlement_service() -> SettlementService:
    return SettlementService(
        order_repository=OrderDjangoRepository(),
        location_service=LocationService(
            driver_repository=DriverDjangoRepository(),
            merchant_repository=MerchantDjangoRepository(),
        ),
    )


def build_state_machine() -> OrderStateMachine:
    return OrderStateMachine(
        order_repository=OrderDjangoRepository(),
        stock_ledger=StockLedgerService(CatalogItemDjangoRepository()),
        settlement_service=build_settlement_service(),
    )


def build_order_service() -> OrderService:
    return OrderService(
        order_repository=OrderDjangoRepository(),
        customer_repository=CustomerDjangoRepository(),
        merchant_repository=MerchantDjangoRepository(),
        catalog_repository=CatalogItemDjangoRepository(),
        state_machine=build_state_machine(),
    )


def build_claim_service() -> ClaimService:
    return ClaimService(
        order_repository=OrderDjangoRepository(),
        driver_repository=DriverDjangoRepository(),
        wallet_service=WalletService(),
        state_machine=build_state_machine(),
    )


def build_earnings_service() -> EarningsService:
    return EarningsService(driver_repository=DriverDjangoRepository())
