"""Time-bucketed driver earnings statistics.

Buckets are computed independently over the same list:

- ``today``: the local calendar day of ``now`` (``TIME_ZONE``);
- ``week``: the rolling seven days ending at ``now``;
- ``month``: the local calendar month of ``now``;
- ``all_time``: everything.

An earning counts at ``earned_at``, or ``created_at`` when it has none.
Earnings dated after ``now`` only count towards ``all_time``.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, List

from django.utils import timezone
from pydantic import BaseModel, ConfigDict


class EarningsBucket(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: Decimal = Decimal("0.00")
    count: int = 0

    def add(self, amount: Decimal) -> EarningsBucket:
        return EarningsBucket(total=self.total + amount, count=self.count + 1)


class DailyTotal(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: date
    total: Decimal = Decimal("0.00")
    count: int = 0


class EarningsSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    today: EarningsBucket = EarningsBucket()
    week: EarningsBucket = EarningsBucket()
    month: EarningsBucket = EarningsBucket()
    all_time: EarningsBucket = EarningsBucket()
    daily: List[DailyTotal] = []

    def with_daily(self, daily: List[DailyTotal]) -> EarningsSummary:
        return self.model_copy(update={"daily": daily})


def _effective_at(earning) -> datetime:
    return earning.earned_at or earning.created_at


def summarize_earnings(earnings: Iterable, now: datetime) -> EarningsSummary:
    local_now = timezone.localtime(now)
    day_start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    month_start = day_start.replace(day=1)
    week_start = now - timedelta(days=7)

    today = week = month = all_time = EarningsBucket()
    for earning in earnings:
        amount = earning.net_amount
        at = _effective_at(earning)
        all_time = all_time.add(amount)
        if at > now:
            continue
        if at >= day_start:
            today = today.add(amount)
        if at >= week_start:
            week = week.add(amount)
        if at >= month_start:
            month = month.add(amount)

    return EarningsSummary(today=today, week=week, month=month, all_time=all_time)


def daily_breakdown(earnings: Iterable, now: datetime, days: int = 7) -> List[DailyTotal]:
    """Per local day totals for the last ``days`` days, oldest first.

    Days without earnings are present with a zero total.
    """
    last_day = timezone.localdate(now)
    first_day = last_day - timedelta(days=days - 1)
    totals = {first_day + timedelta(days=offset): [Decimal("0.00"), 0] for offset in range(days)}
    for earning in earnings:
        at = _effective_at(earning)
        if at > now:
            continue
        day = timezone.localdate(at)
        if day in totals:
            totals[day][0] += earning.net_amount
            totals[day][1] += 1
    return [DailyTotal(day=day, total=total, count=count) for day, (total, count) in totals.items()]
