# products/services/expiry.py

"""
======================================================
PATH: products/services/expiry.py
======================================================
EXPIRY RISK CLASSIFIER

Pure function over a catalog snapshot:
    classify_expiry(products, today) -> ExpiryReport

Tiers (first match wins, upper bound inclusive):
- days_remaining <= 30  -> CRITICAL   (already-expired stock lands here too)
- 31..60                -> WARNING
- 61..90                -> WATCH
- > 90                  -> GOOD

Rules:
- Only batches with quantity > 0 are classified.
- "today" is a calendar date; datetimes are reduced to their (local) date.
- value_at_risk = quantity * cost_price.
- Stats: ALL plus CRITICAL / WARNING / WATCH buckets. GOOD only counts in ALL.
- Items are sorted by days_remaining ascending (stable).
- No DB access, no side effects: same input, same output.
"""

from __future__ import annotations

import calendar as _calendar
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Union

from django.db import models
from django.utils import timezone

from products.services.catalog import ProductSnapshot

CRITICAL_MAX_DAYS = 30
WARNING_MAX_DAYS = 60
WATCH_MAX_DAYS = 90


class ExpiryTier(models.TextChoices):
    CRITICAL = "CRITICAL", "Critical"
    WARNING = "WARNING", "Warning"
    WATCH = "WATCH", "Watch"
    GOOD = "GOOD", "Good"


# Higher = more urgent
TIER_RANK = {
    ExpiryTier.CRITICAL: 3,
    ExpiryTier.WARNING: 2,
    ExpiryTier.WATCH: 1,
    ExpiryTier.GOOD: 0,
}

ALL_BUCKET = "ALL"
STATS_BUCKETS = (ALL_BUCKET, ExpiryTier.CRITICAL, ExpiryTier.WARNING, ExpiryTier.WATCH)


def normalize_today(today: Union[date, datetime]) -> date:
    if isinstance(today, datetime):
        if timezone.is_aware(today):
            return timezone.localtime(today).date()
        return today.date()
    return today


def days_between(today: date, expiry_date: date) -> int:
    return (expiry_date - today).days


def classify_days(days_remaining: int) -> str:
    if days_remaining <= CRITICAL_MAX_DAYS:
        return ExpiryTier.CRITICAL
    if days_remaining <= WARNING_MAX_DAYS:
        return ExpiryTier.WARNING
    if days_remaining <= WATCH_MAX_DAYS:
        return ExpiryTier.WATCH
    return ExpiryTier.GOOD


@dataclass(frozen=True)
class ExpiryItem:
    product_id: str
    product_name: str
    sku: str
    gtin: str
    category: str
    unit: str
    batch_id: str
    batch_number: str
    expiry_date: date
    quantity: int
    cost_price: Decimal
    days_remaining: int
    status: str
    value_at_risk: Decimal

    @property
    def id(self) -> str:
        return f"{self.product_id}-{self.batch_id}"

    @property
    def tier_rank(self) -> int:
        return TIER_RANK[self.status]

    @property
    def is_expired(self) -> bool:
        return self.days_remaining < 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "sku": self.sku,
            "gtin": self.gtin,
            "category": self.category,
            "unit": self.unit,
            "batch_id": self.batch_id,
            "batch_number": self.batch_number,
            "expiry_date": self.expiry_date.isoformat(),
            "quantity": self.quantity,
            "cost_price": str(self.cost_price),
            "days_remaining": self.days_remaining,
            "status": str(self.status),
            "value_at_risk": str(self.value_at_risk),
        }


@dataclass(frozen=True)
class TierStats:
    count: int = 0
    value: Decimal = Decimal("0")

    def add(self, item: ExpiryItem) -> "TierStats":
        return TierStats(count=self.count + 1, value=self.value + item.value_at_risk)

    def to_dict(self) -> dict:
        return {"count": self.count, "value": str(self.value)}


@dataclass(frozen=True)
class ExpiryReport:
    today: date
    items: tuple[ExpiryItem, ...]
    stats: dict = field(default_factory=dict)

    def for_tier(self, tier: str) -> list[ExpiryItem]:
        tier = (tier or ALL_BUCKET).upper()
        if tier == ALL_BUCKET:
            return list(self.items)
        return [i for i in self.items if i.status == tier]

    def on_date(self, day: date) -> list[ExpiryItem]:
        return [i for i in self.items if i.expiry_date == day]

    def calendar(self, year: int, month: int) -> "OrderedDict[date, list[ExpiryItem]]":
        """
        Expiry dates falling in one month, each mapped to its items.
        Dates with nothing expiring are omitted.
        """
        last_day = _calendar.monthrange(year, month)[1]
        first, last = date(year, month, 1), date(year, month, last_day)

        days: "OrderedDict[date, list[ExpiryItem]]" = OrderedDict()
        for item in sorted(self.items, key=lambda i: i.expiry_date):
            if first <= item.expiry_date <= last:
                days.setdefault(item.expiry_date, []).append(item)
        return days

    def to_dict(self, tier: str = ALL_BUCKET) -> dict:
        return {
            "today": self.today.isoformat(),
            "stats": {key: self.stats[key].to_dict() for key in STATS_BUCKETS},
            "items": [i.to_dict() for i in self.for_tier(tier)],
        }


def classify_expiry(products: Iterable[ProductSnapshot], today: Union[date, datetime]) -> ExpiryReport:
    today = normalize_today(today)

    items = []
    for product in products:
        for batch in product.batches:
            if batch.quantity <= 0:
                continue

            days = days_between(today, batch.expiry_date)
            cost = Decimal(batch.cost_price or 0)
            items.append(
                ExpiryItem(
                    product_id=product.id,
                    product_name=product.name_en,
                    sku=product.sku,
                    gtin=product.gtin or "",
                    category=product.category,
                    unit=product.unit,
                    batch_id=batch.id,
                    batch_number=batch.batch_number,
                    expiry_date=batch.expiry_date,
                    quantity=batch.quantity,
                    cost_price=cost,
                    days_remaining=days,
                    status=classify_days(days),
                    value_at_risk=Decimal(batch.quantity) * cost,
                )
            )

    items.sort(key=lambda i: i.days_remaining)

    stats = {key: TierStats() for key in STATS_BUCKETS}
    for item in items:
        stats[ALL_BUCKET] = stats[ALL_BUCKET].add(item)
        if item.status in stats:
            stats[item.status] = stats[item.status].add(item)

    return ExpiryReport(today=today, items=tuple(items), stats=stats)
