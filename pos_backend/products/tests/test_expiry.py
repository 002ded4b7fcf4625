# products/tests/test_expiry.py

from datetime import date, datetime
from decimal import Decimal

from django.test import SimpleTestCase

from products.services.catalog import BatchSnapshot, ProductSnapshot
from products.services.expiry import (
    ALL_BUCKET,
    ExpiryTier,
    classify_days,
    classify_expiry,
)


def _product(pid="p1", batches=()):
    return ProductSnapshot(
        id=pid,
        sku=f"SKU-{pid}",
        name_en=f"Product {pid}",
        batches=tuple(
            BatchSnapshot(
                id=f"{pid}-b{i}",
                batch_number=bn,
                expiry_date=expiry,
                quantity=qty,
                cost_price=Decimal(cost),
            )
            for i, (bn, expiry, qty, cost) in enumerate(batches)
        ),
    )


class ExpiryClassifierTests(SimpleTestCase):
    """
    Pure classifier: no database, same input -> same output.
    """

    def test_batch_inside_thirty_days_is_critical(self):
        report = classify_expiry(
            [_product(batches=[("LOT-1", date(2024, 3, 20), 10, "100")])],
            date(2024, 3, 1),
        )

        self.assertEqual(len(report.items), 1)
        item = report.items[0]
        self.assertEqual(item.days_remaining, 19)
        self.assertEqual(item.status, ExpiryTier.CRITICAL)
        self.assertEqual(item.value_at_risk, Decimal("1000"))
        self.assertEqual(report.stats[ExpiryTier.CRITICAL].count, 1)
        self.assertEqual(report.stats[ExpiryTier.CRITICAL].value, Decimal("1000"))
        self.assertEqual(report.stats[ALL_BUCKET].count, 1)
        self.assertEqual(report.stats[ALL_BUCKET].value, Decimal("1000"))

    def test_expired_batch_is_still_critical(self):
        report = classify_expiry(
            [_product(batches=[("LOT-1", date(2024, 3, 20), 10, "100")])],
            date(2024, 4, 1),
        )

        item = report.items[0]
        self.assertEqual(item.days_remaining, -12)
        self.assertTrue(item.is_expired)
        self.assertEqual(item.status, ExpiryTier.CRITICAL)

    def test_tier_boundaries_are_inclusive_on_upper_bound(self):
        cases = {
            -400: ExpiryTier.CRITICAL,
            0: ExpiryTier.CRITICAL,
            30: ExpiryTier.CRITICAL,
            31: ExpiryTier.WARNING,
            60: ExpiryTier.WARNING,
            61: ExpiryTier.WATCH,
            90: ExpiryTier.WATCH,
            91: ExpiryTier.GOOD,
            1000: ExpiryTier.GOOD,
        }
        for days, tier in cases.items():
            with self.subTest(days=days):
                self.assertEqual(classify_days(days), tier)

    def test_zero_quantity_batches_are_excluded(self):
        report = classify_expiry(
            [
                _product(
                    batches=[
                        ("EMPTY", date(2024, 3, 5), 0, "50"),
                        ("LIVE", date(2024, 3, 5), 2, "50"),
                    ]
                )
            ],
            date(2024, 3, 1),
        )

        self.assertEqual([i.batch_number for i in report.items], ["LIVE"])

    def test_stats_buckets_and_good_only_in_all(self):
        today = date(2024, 1, 1)
        report = classify_expiry(
            [
                _product(
                    "p1",
                    batches=[
                        ("C", date(2024, 1, 10), 1, "10"),
                        ("W", date(2024, 2, 15), 2, "10"),
                    ],
                ),
                _product(
                    "p2",
                    batches=[
                        ("T", date(2024, 3, 20), 3, "10"),
                        ("G", date(2024, 12, 31), 4, "10"),
                    ],
                ),
            ],
            today,
        )

        self.assertEqual(report.stats[ALL_BUCKET].count, 4)
        self.assertEqual(report.stats[ALL_BUCKET].value, Decimal("100"))
        self.assertEqual(report.stats[ExpiryTier.CRITICAL].value, Decimal("10"))
        self.assertEqual(report.stats[ExpiryTier.WARNING].value, Decimal("20"))
        self.assertEqual(report.stats[ExpiryTier.WATCH].value, Decimal("30"))
        self.assertNotIn(ExpiryTier.GOOD, report.stats)

    def test_items_sorted_most_urgent_first_and_monotonic(self):
        report = classify_expiry(
            [
                _product(
                    batches=[
                        ("LATE", date(2025, 1, 1), 1, "1"),
                        ("EXPIRED", date(2023, 12, 1), 1, "1"),
                        ("SOON", date(2024, 1, 20), 1, "1"),
                        ("MID", date(2024, 3, 1), 1, "1"),
                    ]
                )
            ],
            date(2024, 1, 1),
        )

        self.assertEqual([i.batch_number for i in report.items], ["EXPIRED", "SOON", "MID", "LATE"])
        for a, b in zip(report.items, report.items[1:]):
            self.assertLessEqual(a.days_remaining, b.days_remaining)
            self.assertGreaterEqual(a.tier_rank, b.tier_rank)

    def test_classifier_is_pure(self):
        products = [
            _product("p1", batches=[("A", date(2024, 2, 1), 5, "2.50"), ("B", date(2024, 2, 1), 1, "9")]),
            _product("p2", batches=[("C", date(2024, 5, 1), 7, "1.10")]),
        ]
        first = classify_expiry(products, date(2024, 1, 15))
        second = classify_expiry(products, date(2024, 1, 15))

        self.assertEqual(first, second)
        self.assertEqual(first.to_dict(), second.to_dict())

    def test_datetime_today_is_reduced_to_date(self):
        products = [_product(batches=[("A", date(2024, 3, 20), 1, "1")])]
        at_noon = classify_expiry(products, datetime(2024, 3, 1, 23, 59))
        at_midnight = classify_expiry(products, date(2024, 3, 1))

        self.assertEqual(at_noon.items[0].days_remaining, at_midnight.items[0].days_remaining)

    def test_for_tier_and_to_dict(self):
        report = classify_expiry(
            [
                _product(
                    batches=[
                        ("C", date(2024, 1, 10), 1, "10"),
                        ("G", date(2024, 12, 31), 4, "10"),
                    ]
                )
            ],
            date(2024, 1, 1),
        )

        self.assertEqual(len(report.for_tier("all")), 2)
        self.assertEqual([i.batch_number for i in report.for_tier("critical")], ["C"])

        data = report.to_dict(ExpiryTier.CRITICAL)
        self.assertEqual(data["today"], "2024-01-01")
        self.assertEqual(len(data["items"]), 1)
        self.assertEqual(data["items"][0]["status"], "CRITICAL")
        self.assertEqual(data["stats"]["ALL"]["count"], 2)
        self.assertEqual(data["items"][0]["id"], "p1-p1-b0")

    def test_calendar_groups_items_by_expiry_date(self):
        report = classify_expiry(
            [
                _product(
                    "p1",
                    batches=[
                        ("A", date(2024, 2, 10), 1, "1"),
                        ("B", date(2024, 2, 10), 2, "1"),
                        ("C", date(2024, 3, 1), 3, "1"),
                    ],
                ),
                _product("p2", batches=[("D", date(2024, 2, 29), 4, "1")]),
            ],
            date(2024, 1, 1),
        )

        days = report.calendar(2024, 2)
        self.assertEqual(list(days), [date(2024, 2, 10), date(2024, 2, 29)])
        self.assertEqual([i.batch_number for i in days[date(2024, 2, 10)]], ["A", "B"])
        self.assertEqual([i.batch_number for i in report.on_date(date(2024, 3, 1))], ["C"])
