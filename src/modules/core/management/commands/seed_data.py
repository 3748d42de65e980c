from __future__ import annotations

import random
from decimal import Decimal
from typing import Iterable

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from modules.accounts.models import Customer, Driver, Merchant, Wallet
from modules.catalog.models import CatalogItem
from modules.core.models import PlatformSetting
from modules.orders.constants import ActorRole, OrderStatus
from modules.orders.models import Order, OrderItem, OrderStatusHistory

# Downtown Cairo, used as the centre for generated coordinates.
CENTER = (Decimal("30.044420"), Decimal("31.235712"))


def _near(center: tuple[Decimal, Decimal], spread: float = 0.03) -> tuple[Decimal, Decimal]:
    lat = center[0] + Decimal(str(round(random.uniform(-spread, spread), 6)))
    lon = center[1] + Decimal(str(round(random.uniform(-spread, spread), 6)))
    return lat, lon


class Command(BaseCommand):
    help = "Seed database with realistic development data."

    @transaction.atomic
    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        users_created = self._seed_users()
        self._seed_settings()
        customers = self._seed_customers()
        merchants = self._seed_merchants()
        drivers = self._seed_drivers()
        items = self._seed_catalog(merchants)
        orders_created = self._seed_orders(customers, merchants, items)

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={users_created}, "
                f"customers={len(customers)}, "
                f"merchants={len(merchants)}, "
                f"drivers={len(drivers)}, "
                f"catalog_items={len(items)}, "
                f"orders={orders_created}"
            )
        )

    def _seed_users(self) -> int:
        User = get_user_model()
        created = 0
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")
            created += 1
        if not User.objects.filter(username="dispatcher").exists():
            User.objects.create_user("dispatcher", password="dispatcher123", is_staff=True)
            created += 1
        return created

    def _seed_settings(self) -> None:
        defaults = {
            "per_km_rate": ("5.00", "Delivery fee per started kilometre"),
            "commission_rate": ("0.20", "Platform share of the driver gross"),
            "min_wallet_balance": ("0.00", "Minimum wallet balance to accept orders"),
        }
        for key, (value, description) in defaults.items():
            PlatformSetting.objects.get_or_create(
                key=key, defaults={"value": value, "description": description}
            )

    def _seed_customers(self) -> list[Customer]:
        self.stdout.write("Creating customers...")
        names = ["Ahmed Hassan", "Mona Adel", "Omar Khaled", "Sara Nabil", "Youssef Samir"]
        customers = []
        for index, name in enumerate(names):
            customer, _ = Customer.objects.get_or_create(
                name=name, defaults={"phone": f"+2010000000{index}"}
            )
            customers.append(customer)
        self.stdout.write(self.style.SUCCESS("Creating customers... Done!"))
        return customers

    def _seed_merchants(self) -> list[Merchant]:
        self.stdout.write("Creating merchants...")
        names = ["Koshary El Tahrir", "Zooba", "Abou El Sid", "Gad"]
        merchants = []
        for index, name in enumerate(names):
            lat, lon = _near(CENTER)
            merchant, created = Merchant.objects.get_or_create(
                name=name,
                defaults={
                    "phone": f"+2011000000{index}",
                    "latitude": lat,
                    "longitude": lon,
                },
            )
            if created:
                Wallet.objects.create(merchant=merchant)
            merchants.append(merchant)
        self.stdout.write(self.style.SUCCESS("Creating merchants... Done!"))
        return merchants

    def _seed_drivers(self) -> list[Driver]:
        self.stdout.write("Creating drivers...")
        names = ["Karim Fathy", "Hany Mostafa", "Tarek Salah", "Walid Magdy", "Nour Ali"]
        drivers = []
        for index, name in enumerate(names):
            lat, lon = _near(CENTER, spread=0.05)
            driver, created = Driver.objects.get_or_create(
                name=name,
                defaults={
                    "phone": f"+2012000000{index}",
                    "latitude": lat,
                    "longitude": lon,
                    "is_online": index % 2 == 0,
                },
            )
            if created:
                Wallet.objects.create(
                    driver=driver, balance=Decimal(random.randint(0, 300))
                )
            drivers.append(driver)
        self.stdout.write(self.style.SUCCESS("Creating drivers... Done!"))
        return drivers

    def _seed_catalog(self, merchants: Iterable[Merchant]) -> list[CatalogItem]:
        self.stdout.write("Creating catalog items...")
        menu = [
            ("KOS-S", "Koshary small", Decimal("35.00")),
            ("KOS-L", "Koshary large", Decimal("55.00")),
            ("FUL-1", "Ful sandwich", Decimal("15.00")),
            ("TAM-1", "Taameya sandwich", Decimal("12.00")),
            ("HAW-1", "Hawawshi", Decimal("70.00")),
            ("MOL-1", "Molokhia plate", Decimal("90.00")),
        ]
        items = []
        for merchant in merchants:
            for sku, name, price in menu:
                item, _ = CatalogItem.objects.get_or_create(
                    merchant=merchant,
                    sku=sku,
                    defaults={
                        "name": name,
                        "price": price,
                        "stock_quantity": random.randint(20, 100),
                    },
                )
                items.append(item)
        self.stdout.write(self.style.SUCCESS("Creating catalog items... Done!"))
        return items

    def _seed_orders(
        self,
        customers: list[Customer],
        merchants: list[Merchant],
        items: list[CatalogItem],
    ) -> int:
        """Pending orders only; the lifecycle is driven through the API."""
        self.stdout.write("Creating orders...")
        if not customers or not merchants or not items:
            self.stdout.write(self.style.WARNING("Skipping orders (missing parties/items)."))
            return 0

        orders_created = 0
        for i in range(20):
            merchant = random.choice(merchants)
            merchant_items = [item for item in items if item.merchant_id == merchant.id]
            order, created = Order.objects.get_or_create(
                customer=random.choice(customers),
                merchant=merchant,
                notes=f"Seed order {i + 1}",
                defaults={
                    "delivery_fee": Decimal(random.choice([10, 15, 20])),
                    "delivery_distance_km": Decimal(str(round(random.uniform(0.5, 8), 2))),
                },
            )
            if not created:
                continue

            product_total = Decimal("0.00")
            for item in random.sample(merchant_items, k=random.randint(1, 3)):
                line = OrderItem.objects.create(
                    order=order,
                    catalog_item=item,
                    quantity=random.randint(1, 3),
                    unit_price=item.price,
                )
                product_total += line.subtotal

            Order.objects.filter(id=order.id).update(
                product_total=product_total,
                merchant_amount=product_total,
                customer_total=product_total + order.delivery_fee,
            )
            OrderStatusHistory.objects.create(
                order=order,
                old_status=None,
                new_status=OrderStatus.PENDING,
                actor_role=ActorRole.SYSTEM,
                notes="Seeded",
            )
            orders_created += 1

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return orders_created
