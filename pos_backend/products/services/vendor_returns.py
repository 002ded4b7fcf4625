# products/services/vendor_returns.py

"""
======================================================
PATH: products/services/vendor_returns.py
======================================================
RETURN-TO-VENDOR WORKFLOW

State machine for sending flagged stock back to the supplier:

    CLOSED -> ITEM_SELECTED -> QUANTITY_ENTERED -> SUBMITTING -> CLOSED

Rules:
- select(): quantity defaults to the batch's full on-hand quantity.
- enter_quantity(): values above on-hand clamp down; 0 or below is kept
  (the field accepts it) but blocks submit(). Non-integers raise
  InvalidQuantity.
- submit(): quantity <= 0 -> InvalidQuantity; otherwise
  return_or_write_off(..., reason="RETURN"). Success closes and clears
  the selection. Any failure goes back to QUANTITY_ENTERED and re-raises.
- cancel() is refused while SUBMITTING.
- refund_preview is quantity * batch cost, advisory only.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Callable, Optional

from django.db import models

from products.services.exceptions import InvalidQuantity, WorkflowStateError
from products.services.expiry import ExpiryItem
from products.services.ledger import to_int
from products.services.stock_mutations import RETURN_REASON, MutationResult, return_or_write_off

logger = logging.getLogger(__name__)


class ReturnState(models.TextChoices):
    CLOSED = "CLOSED", "Closed"
    ITEM_SELECTED = "ITEM_SELECTED", "Item Selected"
    QUANTITY_ENTERED = "QUANTITY_ENTERED", "Quantity Entered"
    SUBMITTING = "SUBMITTING", "Submitting"


class ReturnToVendorWorkflow:
    def __init__(self, *, submit_fn: Optional[Callable[..., MutationResult]] = None):
        self._submit_fn = submit_fn or return_or_write_off
        self.state = ReturnState.CLOSED
        self.item: Optional[ExpiryItem] = None
        self.quantity: int = 0
        self.last_result: Optional[MutationResult] = None

    # -----------------------------
    # transitions
    # -----------------------------
    def select(self, item: ExpiryItem) -> None:
        if self.state == ReturnState.SUBMITTING:
            raise WorkflowStateError("A return is already being submitted")
        self.item = item
        self.quantity = int(item.quantity)
        self.state = ReturnState.ITEM_SELECTED

    def enter_quantity(self, value) -> int:
        if self.state not in {ReturnState.ITEM_SELECTED, ReturnState.QUANTITY_ENTERED}:
            raise WorkflowStateError(f"Cannot enter a quantity while {self.state}")

        qty = to_int(value)
        on_hand = int(self.item.quantity)
        self.quantity = min(qty, on_hand)
        self.state = ReturnState.QUANTITY_ENTERED
        return self.quantity

    def submit(self, *, user=None) -> MutationResult:
        if self.state not in {ReturnState.ITEM_SELECTED, ReturnState.QUANTITY_ENTERED}:
            raise WorkflowStateError(f"Nothing to submit while {self.state}")
        if self.quantity <= 0:
            raise InvalidQuantity("Return quantity must be at least 1")

        item = self.item
        self.state = ReturnState.SUBMITTING
        try:
            result = self._submit_fn(
                product_id=item.product_id,
                batch_number=item.batch_number,
                quantity=self.quantity,
                reason=RETURN_REASON,
                user=user,
            )
        except Exception:
            # any failure leaves the return editable and cancellable
            self.state = ReturnState.QUANTITY_ENTERED
            raise

        logger.info(
            "vendor return submitted: product=%s batch=%s quantity=%s refund_preview=%s",
            item.product_id,
            item.batch_number,
            self.quantity,
            self.refund_preview,
        )
        self.last_result = result
        self._reset()
        return result

    def cancel(self) -> None:
        if self.state == ReturnState.SUBMITTING:
            raise WorkflowStateError("Cannot cancel while the return is being submitted")
        self._reset()

    # -----------------------------
    # helpers
    # -----------------------------
    @property
    def refund_preview(self) -> Decimal:
        if self.item is None:
            return Decimal("0")
        return Decimal(max(self.quantity, 0)) * Decimal(self.item.cost_price)

    @property
    def is_open(self) -> bool:
        return self.state != ReturnState.CLOSED

    def _reset(self) -> None:
        self.state = ReturnState.CLOSED
        self.item = None
        self.quantity = 0
