# products/tests/test_vendor_returns.py

from datetime import date
from decimal import Decimal

from django.test import TestCase

from products.models import StockBatch, StockMovement
from products.services.catalog import get_product_snapshot
from products.services.exceptions import InvalidQuantity, TransientStockError, WorkflowStateError
from products.services.expiry import ExpiryTier, classify_expiry
from products.services.stock_mutations import receive_stock
from products.services.vendor_returns import ReturnState, ReturnToVendorWorkflow
from products.tests.utils import make_product


class ReturnToVendorWorkflowTests(TestCase):
    def setUp(self):
        self.product = make_product()
        receive_stock(
            product_id=self.product.pk,
            batch_number="LOT-1",
            quantity=50,
            expiry_date=date(2024, 3, 20),
            cost_price=Decimal("4.00"),
        )
        report = classify_expiry([get_product_snapshot(self.product.pk)], date(2024, 3, 1))
        self.item = report.items[0]

    def _batch(self):
        return StockBatch.objects.get(product=self.product, batch_number="LOT-1")

    def test_flagged_item_is_critical(self):
        self.assertEqual(self.item.status, ExpiryTier.CRITICAL)

    def test_select_defaults_to_full_on_hand(self):
        workflow = ReturnToVendorWorkflow()
        workflow.select(self.item)

        self.assertEqual(workflow.state, ReturnState.ITEM_SELECTED)
        self.assertEqual(workflow.quantity, 50)
        self.assertEqual(workflow.refund_preview, Decimal("200.00"))

    def test_quantity_above_on_hand_clamps_down(self):
        workflow = ReturnToVendorWorkflow()
        workflow.select(self.item)

        self.assertEqual(workflow.enter_quantity(10000), 50)
        self.assertEqual(workflow.state, ReturnState.QUANTITY_ENTERED)

    def test_zero_quantity_is_kept_but_blocks_submit(self):
        workflow = ReturnToVendorWorkflow()
        workflow.select(self.item)
        self.assertEqual(workflow.enter_quantity("0"), 0)

        with self.assertRaises(InvalidQuantity):
            workflow.submit()

        self.assertEqual(workflow.state, ReturnState.QUANTITY_ENTERED)
        self.assertEqual(self._batch().quantity, 50)

    def test_submit_writes_return_and_closes(self):
        workflow = ReturnToVendorWorkflow()
        workflow.select(self.item)
        workflow.enter_quantity(20)

        result = workflow.submit()

        self.assertEqual(workflow.state, ReturnState.CLOSED)
        self.assertIsNone(workflow.item)
        self.assertFalse(workflow.is_open)
        self.assertIs(workflow.last_result, result)
        self.assertEqual(self._batch().quantity, 30)
        self.assertEqual(result.movement.reason, StockMovement.Reason.RETURN)

    def test_failed_submit_returns_to_quantity_entered(self):
        def failing_submit(**kwargs):
            raise TransientStockError("database unavailable")

        workflow = ReturnToVendorWorkflow(submit_fn=failing_submit)
        workflow.select(self.item)
        workflow.enter_quantity(5)

        with self.assertRaises(TransientStockError):
            workflow.submit()

        self.assertEqual(workflow.state, ReturnState.QUANTITY_ENTERED)
        self.assertEqual(workflow.quantity, 5)
        self.assertEqual(self._batch().quantity, 50)

    def test_cancel_refused_while_submitting(self):
        workflow = ReturnToVendorWorkflow()
        workflow.select(self.item)
        workflow.state = ReturnState.SUBMITTING

        with self.assertRaises(WorkflowStateError):
            workflow.cancel()

    def test_cancel_clears_selection(self):
        workflow = ReturnToVendorWorkflow()
        workflow.select(self.item)
        workflow.cancel()

        self.assertEqual(workflow.state, ReturnState.CLOSED)
        self.assertEqual(workflow.quantity, 0)

    def test_enter_quantity_requires_selection(self):
        with self.assertRaises(WorkflowStateError):
            ReturnToVendorWorkflow().enter_quantity(3)

    def test_unexpected_submit_error_returns_to_quantity_entered(self):
        def broken_submit(**kwargs):
            raise RuntimeError("unexpected")

        workflow = ReturnToVendorWorkflow(submit_fn=broken_submit)
        workflow.select(self.item)
        workflow.enter_quantity(5)

        with self.assertRaises(RuntimeError):
            workflow.submit()

        self.assertEqual(workflow.state, ReturnState.QUANTITY_ENTERED)
        workflow.cancel()
        self.assertEqual(workflow.state, ReturnState.CLOSED)

    def test_malformed_quantity_is_rejected(self):
        workflow = ReturnToVendorWorkflow()
        workflow.select(self.item)

        for value in (2.7, "abc", None):
            with self.assertRaises(InvalidQuantity):
                workflow.enter_quantity(value)

        self.assertEqual(workflow.quantity, 50)
        self.assertEqual(workflow.state, ReturnState.ITEM_SELECTED)
