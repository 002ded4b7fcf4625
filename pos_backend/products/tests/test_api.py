# products/tests/test_api.py

from datetime import date
from decimal import Decimal

from django.test import TestCase
from rest_framework.test import APIClient

from products.models import Product, StockBatch, StockMovement
from products.services.stock_mutations import receive_stock
from products.tests.utils import make_branch, make_product, make_user

PRODUCTS_URL = "/api/products/products/"
BATCHES_URL = "/api/products/stock-batches/"
EXPIRY_URL = "/api/products/expiry/"


class ProductApiTests(TestCase):
    def setUp(self):
        self.branch = make_branch()
        self.admin = make_user("admin")
        self.client = APIClient()
        self.client.force_authenticate(self.admin)

    def test_create_product(self):
        res = self.client.post(
            PRODUCTS_URL,
            {
                "name_en": "Amoxicillin 500mg",
                "gtin": "8850000000011",
                "price": "1200.00",
                "branch": str(self.branch.pk),
            },
            format="json",
        )

        self.assertEqual(res.status_code, 201, res.data)
        self.assertEqual(res.data["sku"], "8850000000011")
        self.assertEqual(res.data["stock_level"], 0)
        self.assertEqual(res.data["stock_status"], "OUT_OF_STOCK")
        self.assertEqual(str(res.data["branch"]), str(self.branch.pk))

    def test_duplicate_gtin_is_conflict(self):
        make_product(sku="A-1", gtin="111")
        res = self.client.post(PRODUCTS_URL, {"name_en": "Other", "gtin": "111"}, format="json")

        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.data["code"], "duplicate_gtin")

    def test_stock_level_is_read_only(self):
        product = make_product()
        res = self.client.patch(f"{PRODUCTS_URL}{product.pk}/", {"stock_level": 500, "price": "5.00"}, format="json")

        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["stock_level"], 0)
        self.assertEqual(res.data["price"], "5.00")

    def test_receive_action_creates_batch(self):
        product = make_product()
        res = self.client.post(
            f"{PRODUCTS_URL}{product.pk}/receive/",
            {"batch_number": "LOT-202401", "quantity": 150, "expiry_date": "2025-06-01", "cost_price": "600"},
            format="json",
        )

        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["product"]["stock_level"], 150)
        self.assertEqual(res.data["batch"]["batch_number"], "LOT-202401")
        self.assertEqual(res.data["batch"]["quantity"], 150)
        self.assertEqual(res.data["batch"]["cost_price"], "600.00")
        self.assertEqual(len(res.data["product"]["batches"]), 1)
        self.assertIsNotNone(res.data["movement_id"])

    def test_receive_rejects_zero_quantity(self):
        product = make_product()
        res = self.client.post(f"{PRODUCTS_URL}{product.pk}/receive/", {"quantity": 0}, format="json")
        self.assertEqual(res.status_code, 400)

    def test_consume_clamps_at_zero(self):
        product = make_product()
        receive_stock(product_id=product.pk, batch_number="LOT-1", quantity=3)

        res = self.client.post(
            f"{PRODUCTS_URL}{product.pk}/consume/",
            {"batch_number": "LOT-1", "quantity": 5},
            format="json",
        )

        self.assertEqual(res.status_code, 200, res.data)
        self.assertTrue(res.data["clamped"])
        self.assertEqual(res.data["applied_quantity"], 3)
        self.assertEqual(res.data["product"]["stock_level"], 0)

    def test_write_off_above_on_hand_is_rejected(self):
        product = make_product()
        receive_stock(product_id=product.pk, batch_number="LOT-1", quantity=50)

        res = self.client.post(
            f"{PRODUCTS_URL}{product.pk}/write-off/",
            {"batch_number": "LOT-1", "quantity": 10000, "reason": "RETURN"},
            format="json",
        )

        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["code"], "invalid_quantity")
        self.assertEqual(StockBatch.objects.get(product=product).quantity, 50)

    def test_write_off_unknown_batch_is_404(self):
        product = make_product()
        res = self.client.post(
            f"{PRODUCTS_URL}{product.pk}/write-off/",
            {"batch_number": "NOPE", "quantity": 1},
            format="json",
        )
        self.assertEqual(res.status_code, 404)

    def test_delete_refused_while_stock_on_hand(self):
        product = make_product()
        receive_stock(product_id=product.pk, quantity=1)

        res = self.client.delete(f"{PRODUCTS_URL}{product.pk}/")
        self.assertEqual(res.status_code, 409)
        self.assertTrue(Product.objects.filter(pk=product.pk).exists())

    def test_delete_empty_product(self):
        product = make_product()
        res = self.client.delete(f"{PRODUCTS_URL}{product.pk}/")
        self.assertEqual(res.status_code, 204)

    def test_list_search_and_branch_filter(self):
        other = make_branch(name="Second", code="SEC")
        make_product(sku="P-1", name="Paracetamol", branch=self.branch)
        make_product(sku="V-1", name="Vitamin C", branch=other)

        res = self.client.get(PRODUCTS_URL, {"branch_id": str(self.branch.pk)})
        self.assertEqual([p["sku"] for p in res.data], ["P-1"])

        res = self.client.get(PRODUCTS_URL, {"q": "vita"})
        self.assertEqual([p["sku"] for p in res.data], ["V-1"])

    def test_low_stock_alerts(self):
        low = make_product(sku="LOW", min_stock_level=10)
        high = make_product(sku="HIGH", min_stock_level=10)
        receive_stock(product_id=low.pk, quantity=2)
        receive_stock(product_id=high.pk, quantity=50)

        res = self.client.get(f"{PRODUCTS_URL}alerts/low-stock/")
        self.assertEqual(res.status_code, 200)
        self.assertEqual([p["sku"] for p in res.data["results"]], ["LOW"])

        res = self.client.get(f"{PRODUCTS_URL}alerts/low-stock/", {"threshold": "60"})
        self.assertEqual(res.data["count"], 2)

        res = self.client.get(f"{PRODUCTS_URL}alerts/low-stock/", {"threshold": "-1"})
        self.assertEqual(res.status_code, 400)


class StockBatchApiTests(TestCase):
    def setUp(self):
        self.admin = make_user("admin")
        self.product = make_product()
        self.client = APIClient()
        self.client.force_authenticate(self.admin)

    def test_create_is_receive_and_increments(self):
        payload = {"productId": str(self.product.pk), "batch_number": "LOT-1", "quantity": 5, "cost_price": "2.00"}

        first = self.client.post(BATCHES_URL, payload, format="json")
        second = self.client.post(BATCHES_URL, payload, format="json")

        self.assertEqual(first.status_code, 201, first.data)
        self.assertTrue(first.data["created"])
        self.assertFalse(second.data["created"])
        self.assertEqual(second.data["quantity"], 10)
        self.assertEqual(second.data["stock_level"], 10)
        self.assertEqual(StockBatch.objects.filter(product=self.product).count(), 1)

    def test_create_requires_product(self):
        res = self.client.post(BATCHES_URL, {"quantity": 5}, format="json")
        self.assertEqual(res.status_code, 400)

    def test_patch_details_and_quantity(self):
        batch = receive_stock(product_id=self.product.pk, batch_number="LOT-1", quantity=10).batch

        res = self.client.patch(
            f"{BATCHES_URL}{batch.pk}/",
            {"batch_number": "LOT-1A", "expiry_date": "2027-02-01", "quantity": 7, "note": "shelf count"},
            format="json",
        )

        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["batch_number"], "LOT-1A")
        self.assertEqual(res.data["quantity"], 7)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_level, 7)
        adjustment = StockMovement.objects.get(reason=StockMovement.Reason.ADJUSTMENT)
        self.assertEqual(adjustment.quantity_applied, 3)
        self.assertEqual(adjustment.note, "shelf count")

    def test_patch_rename_conflict(self):
        batch = receive_stock(product_id=self.product.pk, batch_number="LOT-1", quantity=1).batch
        receive_stock(product_id=self.product.pk, batch_number="LOT-2", quantity=1)

        res = self.client.patch(f"{BATCHES_URL}{batch.pk}/", {"batch_number": "LOT-2"}, format="json")
        self.assertEqual(res.status_code, 409)

    def test_put_and_delete_are_refused(self):
        batch = receive_stock(product_id=self.product.pk, quantity=1).batch

        self.assertEqual(self.client.put(f"{BATCHES_URL}{batch.pk}/", {}, format="json").status_code, 405)
        self.assertEqual(self.client.delete(f"{BATCHES_URL}{batch.pk}/").status_code, 405)
        self.assertTrue(StockBatch.objects.filter(pk=batch.pk).exists())

    def test_list_filter_by_product(self):
        other = make_product(sku="OTHER", name="Other")
        receive_stock(product_id=self.product.pk, quantity=1)
        receive_stock(product_id=other.pk, quantity=1)

        res = self.client.get(BATCHES_URL, {"product": str(other.pk)})
        self.assertEqual(res.status_code, 200)
        self.assertEqual([b["product_name"] for b in res.data], ["Other"])

    def test_movement_report(self):
        receive_stock(product_id=self.product.pk, batch_number="LOT-1", quantity=5)
        receive_stock(product_id=self.product.pk, batch_number="LOT-1", quantity=2)

        res = self.client.get(f"{BATCHES_URL}movements/report/", {"reason": "receipt"})
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["count"], 2)

        res = self.client.get(f"{BATCHES_URL}movements/report/", {"date_from": "yesterday"})
        self.assertEqual(res.status_code, 400)


class ExpiryApiTests(TestCase):
    def setUp(self):
        self.admin = make_user("admin")
        self.product = make_product()
        receive_stock(
            product_id=self.product.pk,
            batch_number="LOT-1",
            quantity=10,
            expiry_date=date(2024, 3, 20),
            cost_price=Decimal("100.00"),
        )
        receive_stock(
            product_id=self.product.pk,
            batch_number="LOT-2",
            quantity=5,
            expiry_date=date(2024, 12, 1),
            cost_price=Decimal("10.00"),
        )
        self.client = APIClient()
        self.client.force_authenticate(self.admin)

    def test_report_with_stats(self):
        res = self.client.get(EXPIRY_URL, {"today": "2024-03-01"})

        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["stats"]["CRITICAL"], {"count": 1, "value": "1000.00"})
        self.assertEqual(res.data["stats"]["ALL"]["count"], 2)
        self.assertEqual([i["batch_number"] for i in res.data["items"]], ["LOT-1", "LOT-2"])
        self.assertEqual(res.data["items"][0]["days_remaining"], 19)

    def test_report_tier_filter(self):
        res = self.client.get(EXPIRY_URL, {"today": "2024-03-01", "tier": "critical"})
        self.assertEqual([i["batch_number"] for i in res.data["items"]], ["LOT-1"])

        res = self.client.get(EXPIRY_URL, {"tier": "SOMETIME"})
        self.assertEqual(res.status_code, 400)

    def test_calendar(self):
        res = self.client.get(f"{EXPIRY_URL}calendar/", {"month": "2024-03", "today": "2024-03-01"})

        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["month"], "2024-03")
        self.assertEqual(len(res.data["days"]), 1)
        self.assertEqual(res.data["days"][0]["date"], "2024-03-20")
        self.assertEqual(res.data["days"][0]["count"], 1)

    def test_vendor_return(self):
        res = self.client.post(
            f"{EXPIRY_URL}returns/",
            {"product_id": str(self.product.pk), "batch_number": "LOT-1", "quantity": 4},
            format="json",
        )

        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["quantity"], 4)
        self.assertEqual(res.data["refund_preview"], "400.00")
        self.assertEqual(res.data["batch"]["quantity"], 6)
        self.assertEqual(res.data["stock_level"], 11)

    def test_vendor_return_above_on_hand_is_rejected(self):
        res = self.client.post(
            f"{EXPIRY_URL}returns/",
            {"product_id": str(self.product.pk), "batch_number": "LOT-2", "quantity": 10000},
            format="json",
        )

        self.assertEqual(res.status_code, 400, res.data)
        self.assertEqual(res.data["code"], "invalid_quantity")
        self.assertEqual(StockBatch.objects.get(batch_number="LOT-2").quantity, 5)
        self.assertFalse(StockMovement.objects.filter(reason=StockMovement.Reason.RETURN).exists())

    def test_vendor_return_defaults_to_full_batch(self):
        res = self.client.post(
            f"{EXPIRY_URL}returns/",
            {"product_id": str(self.product.pk), "batch_number": "LOT-2"},
            format="json",
        )

        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["quantity"], 5)
        self.assertEqual(res.data["batch"]["quantity"], 0)

    def test_vendor_return_zero_quantity(self):
        res = self.client.post(
            f"{EXPIRY_URL}returns/",
            {"product_id": str(self.product.pk), "batch_number": "LOT-1", "quantity": 0},
            format="json",
        )

        self.assertEqual(res.status_code, 400)
        self.assertEqual(StockBatch.objects.get(batch_number="LOT-1").quantity, 10)

    def test_vendor_return_unknown_batch(self):
        res = self.client.post(
            f"{EXPIRY_URL}returns/",
            {"product_id": str(self.product.pk), "batch_number": "LOT-9"},
            format="json",
        )
        self.assertEqual(res.status_code, 404)
