"""Unit tests for driver earnings statistics."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest
from django.utils import timezone

from modules.accounts.exceptions import DriverNotFound
from modules.accounts.repositories.django_repository import DriverDjangoRepository
from modules.earnings.aggregation import daily_breakdown, summarize_earnings
from modules.earnings.models import DriverEarning
from modules.earnings.services import EarningsService
from modules.orders.constants import OrderStatus
from modules.orders.models import Order

pytestmark = pytest.mark.unit


def local(*args) -> datetime:
    return timezone.make_aware(datetime(*args), timezone.get_current_timezone())


def earning(amount, at=None, created=None):
    return SimpleNamespace(
        net_amount=Decimal(amount), earned_at=at, created_at=created or at
    )


NOW = local(2026, 3, 15, 12, 0)


class TestSummarize:
    def test_buckets(self):
        earnings = [
            earning("10.00", local(2026, 3, 15, 9, 0)),
            earning("5.00", local(2026, 3, 14, 23, 30)),
            earning("7.00", local(2026, 3, 3, 8, 0)),
            earning("3.00", local(2026, 2, 28, 8, 0)),
        ]

        summary = summarize_earnings(earnings, NOW)

        assert (summary.today.total, summary.today.count) == (Decimal("10.00"), 1)
        assert (summary.week.total, summary.week.count) == (Decimal("15.00"), 2)
        assert (summary.month.total, summary.month.count) == (Decimal("22.00"), 3)
        assert (summary.all_time.total, summary.all_time.count) == (Decimal("25.00"), 4)

    def test_future_earning_counts_only_all_time(self):
        summary = summarize_earnings([earning("100.00", NOW + timedelta(hours=1))], NOW)
        assert summary.today.count == 0
        assert summary.week.count == 0
        assert summary.month.count == 0
        assert summary.all_time.total == Decimal("100.00")

    def test_falls_back_to_created_at(self):
        summary = summarize_earnings(
            [earning("4.00", at=None, created=local(2026, 3, 15, 8, 0))], NOW
        )
        assert summary.today.total == Decimal("4.00")

    def test_day_starts_at_local_midnight(self):
        earnings = [
            earning("1.00", local(2026, 3, 15, 0, 0)),
            earning("2.00", local(2026, 3, 14, 23, 59, 59)),
        ]
        assert summarize_earnings(earnings, NOW).today.total == Decimal("1.00")

    def test_week_is_rolling_seven_days(self):
        earnings = [
            earning("1.00", NOW - timedelta(days=7)),
            earning("2.00", NOW - timedelta(days=7, seconds=1)),
        ]
        assert summarize_earnings(earnings, NOW).week.total == Decimal("1.00")

    def test_rolling_week_can_exceed_month_early_in_month(self):
        now = local(2026, 3, 2, 12, 0)
        earnings = [earning("9.00", local(2026, 2, 27, 12, 0))]
        summary = summarize_earnings(earnings, now)
        assert summary.week.total == Decimal("9.00")
        assert summary.month.total == Decimal("0.00")

    def test_nested_buckets_without_future_entries(self):
        earnings = [
            earning(str(n), local(2026, 3, 15, 11, 0) - timedelta(days=n)) for n in range(40)
        ]
        summary = summarize_earnings(earnings, NOW)
        assert summary.today.total <= summary.week.total <= summary.all_time.total
        assert summary.today.total <= summary.month.total <= summary.all_time.total

    def test_empty(self):
        summary = summarize_earnings([], NOW)
        assert summary.all_time.total == Decimal("0.00")
        assert summary.all_time.count == 0


class TestDailyBreakdown:
    def test_seven_days_oldest_first_with_zeros(self):
        earnings = [
            earning("10.00", local(2026, 3, 15, 9, 0)),
            earning("2.50", local(2026, 3, 15, 10, 0)),
            earning("5.00", local(2026, 3, 12, 9, 0)),
            earning("8.00", local(2026, 3, 1, 9, 0)),
        ]

        daily = daily_breakdown(earnings, NOW)

        assert [d.day for d in daily] == [date(2026, 3, day) for day in range(9, 16)]
        by_day = {d.day: (d.total, d.count) for d in daily}
        assert by_day[date(2026, 3, 15)] == (Decimal("12.50"), 2)
        assert by_day[date(2026, 3, 12)] == (Decimal("5.00"), 1)
        assert by_day[date(2026, 3, 10)] == (Decimal("0.00"), 0)

    def test_future_entries_skipped(self):
        daily = daily_breakdown([earning("3.00", NOW + timedelta(minutes=5))], NOW)
        assert sum(d.count for d in daily) == 0

    def test_custom_window(self):
        assert len(daily_breakdown([], NOW, days=30)) == 30


class TestEarningsService:
    def test_summary_for_driver(self, customer, merchant, driver, make_driver):
        other = make_driver(name="Other")
        for owner, amount in ((driver, "20.00"), (driver, "12.00"), (other, "99.00")):
            order = Order.objects.create(
                customer=customer,
                merchant=merchant,
                driver=owner,
                status=OrderStatus.DELIVERED,
            )
            DriverEarning.objects.create(
                order=order,
                driver=owner,
                gross_amount=Decimal(amount),
                net_amount=Decimal(amount),
                earned_at=NOW - timedelta(hours=1),
            )

        summary = EarningsService(DriverDjangoRepository()).summary_for_driver(
            driver.id, now=NOW
        )

        assert summary.today.total == Decimal("32.00")
        assert summary.all_time.count == 2
        assert len(summary.daily) == 7
        assert summary.daily[-1].total == Decimal("32.00")

    def test_unknown_driver(self):
        with pytest.raises(DriverNotFound):
            EarningsService(DriverDjangoRepository()).summary_for_driver(uuid4())
