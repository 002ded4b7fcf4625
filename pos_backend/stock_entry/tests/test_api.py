# stock_entry/tests/test_api.py

from unittest import mock

from django.core.cache import cache
from django.test import TestCase
from rest_framework.test import APIClient

from products.services.exceptions import TransientStockError
from products.services.stock_mutations import receive_stock
from products.tests.utils import make_branch, make_product, make_user
from stock_entry.services.grid import ScanEvent
from stock_entry.services.sessions import load_session, save_session, session_lock

SESSIONS_URL = "/api/stock-entry/sessions/"


class StockEntryApiTests(TestCase):
    def setUp(self):
        cache.clear()
        self.branch = make_branch()
        self.user = make_user("pharmacist", branch=self.branch)
        self.product = make_product(sku="PCM-500", gtin="8850000000011", branch=self.branch, category="Analgesics")
        self.client = APIClient()
        self.client.force_authenticate(self.user)

    def _open(self):
        res = self.client.post(SESSIONS_URL, {}, format="json")
        self.assertEqual(res.status_code, 201, res.data)
        return res.data["session_id"]

    def _scan(self, session_id, **payload):
        return self.client.post(f"{SESSIONS_URL}{session_id}/scan/", payload, format="json")

    def test_open_and_retrieve_session(self):
        session_id = self._open()

        res = self.client.get(f"{SESSIONS_URL}{session_id}/")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["rows"], [])
        self.assertEqual(res.data["scanner_status"], "ready")

    def test_unknown_session_is_404(self):
        res = self.client.get(f"{SESSIONS_URL}deadbeef/")
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.data["code"], "not_found")

    def test_sessions_are_private_to_their_user(self):
        session_id = self._open()
        other = make_user("admin", email="other@example.com")
        self.client.force_authenticate(other)

        res = self.client.get(f"{SESSIONS_URL}{session_id}/")

        self.assertEqual(res.status_code, 404)

    def test_scan_coalesces_duplicates(self):
        session_id = self._open()

        first = self._scan(session_id, gtin="8850000000011", batchNumber="LOT-7")
        second = self._scan(session_id, gtin="8850000000011")

        self.assertEqual(first.status_code, 200, first.data)
        self.assertTrue(first.data["created"])
        self.assertTrue(first.data["known_product"])
        self.assertEqual(first.data["row"]["product_name"], "Paracetamol 500mg")
        self.assertEqual(first.data["row"]["batch_number"], "LOT-7")

        self.assertFalse(second.data["created"])
        self.assertEqual(second.data["focus_field"], "quantity")
        rows = second.data["grid"]["rows"]
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["quantity"], 2)
        self.assertTrue(rows[0]["is_highlighted"])

    def test_scan_without_identity_is_400(self):
        session_id = self._open()
        res = self._scan(session_id, batch_number="LOT-1")
        self.assertEqual(res.status_code, 400)

    def test_row_insert_edit_delete(self):
        session_id = self._open()

        created = self.client.post(
            f"{SESSIONS_URL}{session_id}/rows/",
            {"product_name": "Manual", "quantity": 3},
            format="json",
        )
        self.assertEqual(created.status_code, 201, created.data)
        row_id = created.data["row"]["id"]

        patched = self.client.patch(
            f"{SESSIONS_URL}{session_id}/rows/{row_id}/",
            {"quantity": 8, "cost_price": "1.25"},
            format="json",
        )
        self.assertEqual(patched.status_code, 200, patched.data)
        self.assertEqual(patched.data["row"]["quantity"], 8)
        self.assertEqual(patched.data["grid"]["total_value"], "10.00")

        deleted = self.client.delete(f"{SESSIONS_URL}{session_id}/rows/{row_id}/")
        self.assertEqual(deleted.status_code, 204)

        missing = self.client.delete(f"{SESSIONS_URL}{session_id}/rows/{row_id}/")
        self.assertEqual(missing.status_code, 404)

    def test_commit_receives_stock_and_clears_grid(self):
        session_id = self._open()
        self._scan(session_id, gtin="8850000000011", batchNumber="LOT-7", expiryDate="2026-01-31")
        self._scan(session_id, gtin="8850000000011")

        res = self.client.post(f"{SESSIONS_URL}{session_id}/commit/", {}, format="json")

        self.assertEqual(res.status_code, 200, res.data)
        self.assertTrue(res.data["ok"])
        self.assertEqual(res.data["applied"], 1)
        self.assertEqual(res.data["grid"]["rows"], [])
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_level, 2)
        self.assertEqual(self.product.batches.get().batch_number, "LOT-7")

    def test_commit_failure_keeps_rows(self):
        session_id = self._open()
        self._scan(session_id, gtin="8850000000011")

        with mock.patch(
            "stock_entry.services.commit.default_receive",
            side_effect=TransientStockError("Stock service temporarily unavailable"),
        ):
            with self.assertLogs("stock_entry.services.commit", level="WARNING"):
                res = self.client.post(f"{SESSIONS_URL}{session_id}/commit/", {}, format="json")

        self.assertEqual(res.status_code, 503)
        self.assertEqual(res.data["code"], "partial_failure")
        self.assertEqual(len(res.data["grid"]["rows"]), 1)

        again = self.client.get(f"{SESSIONS_URL}{session_id}/")
        self.assertEqual(len(again.data["rows"]), 1)

    def test_scan_during_commit_is_kept(self):
        session_id = self._open()
        self._scan(session_id, gtin="8850000000011", batchNumber="LOT-7")

        def scan_then_receive(**kwargs):
            with session_lock(self.user, session_id):
                grid = load_session(self.user, session_id)
                grid.handle_scan(ScanEvent(gtin="8859999999999"), [])
                save_session(self.user, grid)
            return receive_stock(**kwargs)

        with mock.patch("stock_entry.services.commit.default_receive", side_effect=scan_then_receive):
            res = self.client.post(f"{SESSIONS_URL}{session_id}/commit/", {}, format="json")

        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["applied"], 1)
        self.assertEqual([r["gtin"] for r in res.data["grid"]["rows"]], ["8859999999999"])

        again = self.client.get(f"{SESSIONS_URL}{session_id}/")
        self.assertEqual([r["gtin"] for r in again.data["rows"]], ["8859999999999"])
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_level, 1)

    def test_second_commit_of_same_session_is_rejected(self):
        session_id = self._open()
        self._scan(session_id, gtin="8850000000011")

        with session_lock(self.user, session_id, scope="commit", wait=0):
            res = self.client.post(f"{SESSIONS_URL}{session_id}/commit/", {}, format="json")

        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.data["code"], "session_busy")
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_level, 0)
        self.assertEqual(len(self.client.get(f"{SESSIONS_URL}{session_id}/").data["rows"]), 1)

    def test_discard_session(self):
        session_id = self._open()

        res = self.client.delete(f"{SESSIONS_URL}{session_id}/")

        self.assertEqual(res.status_code, 204)
        self.assertEqual(self.client.get(f"{SESSIONS_URL}{session_id}/").status_code, 404)

    def test_cashier_cannot_open_session(self):
        cashier = make_user("cashier", email="cashier@example.com", branch=self.branch)
        self.client.force_authenticate(cashier)

        res = self.client.post(SESSIONS_URL, {}, format="json")

        self.assertEqual(res.status_code, 403)

    def test_anonymous_is_401(self):
        res = APIClient().post(SESSIONS_URL, {}, format="json")
        self.assertEqual(res.status_code, 401)
