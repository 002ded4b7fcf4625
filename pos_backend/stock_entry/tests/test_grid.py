# stock_entry/tests/test_grid.py

from datetime import date, datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

from django.test import SimpleTestCase

from products.services.catalog import BatchSnapshot, ProductSnapshot
from stock_entry.services.exceptions import GridRowNotFound
from stock_entry.services.grid import (
    FOCUS_PRODUCT_NAME,
    FOCUS_QUANTITY,
    SCANNER_PROCESSING,
    SCANNER_READY,
    ScanEvent,
    StockEntryGrid,
)

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=dt_timezone.utc)


def catalog():
    return [
        ProductSnapshot(
            id="11111111-1111-1111-1111-111111111111",
            sku="PCM-500",
            gtin="8850000000011",
            name_en="Paracetamol 500mg",
            category="Analgesics",
            unit="BOX",
            price=Decimal("1500.00"),
            location="A-1",
            batches=(
                BatchSnapshot(
                    id="b1",
                    batch_number="LOT-1",
                    expiry_date=date(2025, 1, 1),
                    quantity=20,
                    cost_price=Decimal("900.00"),
                ),
            ),
        ),
        ProductSnapshot(id="22222222-2222-2222-2222-222222222222", sku="ORS-1", name_en="ORS Sachet"),
    ]


class ScanCoalescingTests(SimpleTestCase):
    def test_same_identity_twice_then_new_identity(self):
        grid = StockEntryGrid()

        grid.handle_scan(ScanEvent(gtin="X"), [], now=NOW)
        grid.handle_scan(ScanEvent(gtin="X"), [], now=NOW)
        self.assertEqual(len(grid), 1)
        self.assertEqual(grid.rows[0].quantity, 2)

        outcome = grid.handle_scan(ScanEvent(gtin="Y"), [], now=NOW)

        self.assertTrue(outcome.created)
        self.assertEqual([r.gtin for r in grid.rows], ["Y", "X"])
        self.assertEqual(grid.rows[0].quantity, 1)
        self.assertEqual(grid.rows[1].quantity, 2)

    def test_n_scans_make_one_row_with_quantity_n(self):
        grid = StockEntryGrid()
        for _ in range(7):
            grid.handle_scan(ScanEvent(gtin="8850000000011"), catalog(), now=NOW)

        self.assertEqual(len(grid), 1)
        self.assertEqual(grid.rows[0].quantity, 7)

    def test_duplicate_scan_highlights_and_keeps_position(self):
        grid = StockEntryGrid()
        grid.handle_scan(ScanEvent(gtin="X"), [], now=NOW)
        grid.handle_scan(ScanEvent(gtin="Y"), [], now=NOW)

        outcome = grid.handle_scan(ScanEvent(gtin="X"), [], now=NOW)

        self.assertFalse(outcome.created)
        self.assertEqual(outcome.focus_field, FOCUS_QUANTITY)
        self.assertEqual([r.gtin for r in grid.rows], ["Y", "X"])
        self.assertTrue(grid.rows[1].is_highlighted)
        self.assertFalse(grid.rows[0].is_highlighted)

    def test_known_product_is_prefilled_and_focuses_quantity(self):
        grid = StockEntryGrid()
        outcome = grid.handle_scan(ScanEvent(gtin="8850000000011"), catalog(), now=NOW)

        row = outcome.row
        self.assertTrue(outcome.known_product)
        self.assertEqual(outcome.focus_field, FOCUS_QUANTITY)
        self.assertFalse(row.is_new)
        self.assertEqual(row.product_name, "Paracetamol 500mg")
        self.assertEqual(row.category, "Analgesics")
        self.assertEqual(row.unit, "BOX")
        self.assertEqual(row.cost_price, Decimal("900.00"))
        self.assertEqual(row.selling_price, Decimal("1500.00"))
        self.assertEqual(row.location, "A-1")
        self.assertEqual(row.batch_number, "")

    def test_scan_batch_and_expiry_win_over_catalog(self):
        grid = StockEntryGrid()
        event = ScanEvent(gtin="8850000000011", batch_number="LOT-9", expiry_date=date(2026, 2, 1))

        row = grid.handle_scan(event, catalog(), now=NOW).row

        self.assertEqual(row.batch_number, "LOT-9")
        self.assertEqual(row.expiry_date, date(2026, 2, 1))

    def test_catalog_lookup_falls_back_to_sku(self):
        grid = StockEntryGrid()
        outcome = grid.handle_scan(ScanEvent(raw_data="ORS-1"), catalog(), now=NOW)

        self.assertTrue(outcome.known_product)
        self.assertEqual(outcome.row.product_name, "ORS Sachet")
        self.assertEqual(outcome.row.gtin, "ORS-1")

    def test_unknown_identity_leaves_fields_blank(self):
        grid = StockEntryGrid()
        outcome = grid.handle_scan(ScanEvent(gtin="999"), catalog(), now=NOW)

        self.assertFalse(outcome.known_product)
        self.assertEqual(outcome.focus_field, FOCUS_PRODUCT_NAME)
        self.assertTrue(outcome.row.is_new)
        self.assertEqual(outcome.row.product_name, "")
        self.assertTrue(outcome.row.is_blank)

    def test_serial_number_is_used_without_gtin(self):
        grid = StockEntryGrid()
        grid.handle_scan(ScanEvent(serial_number="SN-1", raw_data="raw"), [], now=NOW)
        grid.handle_scan(ScanEvent(serial_number="SN-1", raw_data="raw"), [], now=NOW)

        self.assertEqual(len(grid), 1)
        self.assertEqual(grid.rows[0].gtin, "SN-1")
        self.assertEqual(grid.rows[0].quantity, 2)

    def test_scanner_status_window(self):
        grid = StockEntryGrid()
        self.assertEqual(grid.scanner_status(NOW), SCANNER_READY)

        grid.handle_scan(ScanEvent(gtin="X"), [], now=NOW)

        self.assertEqual(grid.scanner_status(NOW + timedelta(milliseconds=100)), SCANNER_PROCESSING)
        self.assertEqual(grid.scanner_status(NOW + timedelta(seconds=1)), SCANNER_READY)


class GridEditTests(SimpleTestCase):
    def test_manual_row_is_prepended(self):
        grid = StockEntryGrid()
        grid.handle_scan(ScanEvent(gtin="X"), [], now=NOW)

        row = grid.add_row(product_name="Manual item", quantity="4", cost_price="2.50")

        self.assertIs(grid.rows[0], row)
        self.assertEqual(row.quantity, 4)
        self.assertEqual(row.cost_price, Decimal("2.50"))

    def test_update_row_is_last_write_wins(self):
        grid = StockEntryGrid()
        row = grid.handle_scan(ScanEvent(gtin="X"), [], now=NOW).row

        grid.update_row(row.id, quantity=10, product_name="First")
        grid.update_row(row.id, product_name="Second", expiry_date="2025-01-31")

        self.assertEqual(row.quantity, 10)
        self.assertEqual(row.product_name, "Second")
        self.assertEqual(row.expiry_date, date(2025, 1, 31))

    def test_update_rejects_unknown_field(self):
        grid = StockEntryGrid()
        row = grid.add_row()
        with self.assertRaises(ValueError):
            grid.update_row(row.id, is_new=False)

    def test_delete_and_missing_row(self):
        grid = StockEntryGrid()
        row = grid.add_row(product_name="A")

        grid.delete_row(row.id)

        self.assertEqual(len(grid), 0)
        with self.assertRaises(GridRowNotFound):
            grid.delete_row(row.id)

    def test_totals(self):
        grid = StockEntryGrid()
        grid.add_row(product_name="A", quantity=2, cost_price="10")
        grid.add_row(product_name="B", quantity=3, cost_price="1.50")

        self.assertEqual(grid.total_units, 5)
        self.assertEqual(grid.total_value, Decimal("24.50"))

    def test_dict_round_trip_keeps_rows_and_order(self):
        grid = StockEntryGrid()
        grid.handle_scan(ScanEvent(gtin="8850000000011", expiry_date=date(2026, 2, 1)), catalog(), now=NOW)
        grid.add_row(product_name="Manual", quantity=3)

        restored = StockEntryGrid.from_dict(grid.to_dict(now=NOW))

        self.assertEqual(restored.session_id, grid.session_id)
        self.assertEqual(restored.last_scan_at, NOW)
        self.assertEqual([r.id for r in restored.rows], [r.id for r in grid.rows])
        self.assertEqual(restored.rows[1].expiry_date, date(2026, 2, 1))
        self.assertEqual(restored.rows[1].cost_price, Decimal("900.00"))
