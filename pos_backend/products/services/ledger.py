# products/services/ledger.py

"""
======================================================
PATH: products/services/ledger.py
======================================================
BATCH LEDGER

Purpose:
- The only code that writes StockBatch.quantity and Product.stock_level.
- Resolve "same batch number" vs "new batch" for one product.

Rules:
- Callers hold the product row lock (lock_product) inside transaction.atomic().
- Batch lookup is an exact, case-sensitive match on batch_number.
- Existing batch: quantity += delta, floored at 0 ("clamp") or refused ("reject").
- Existing batch: cost_price is overwritten only by a positive cost.
- Missing batch + positive delta: a new batch is opened.
- Missing batch + zero/negative delta: nothing to remove, no-op.
- After every call: product.stock_level == sum(batch.quantity).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Sum

from products.models import Product, StockBatch
from products.services.exceptions import (
    InvalidQuantity,
    InventoryError,
    NegativeStockAttempt,
    ProductNotFound,
)

logger = logging.getLogger(__name__)

DEFAULT_BATCH_NUMBER = "DEFAULT"

UNDERFLOW_CLAMP = "clamp"
UNDERFLOW_REJECT = "reject"
UNDERFLOW_POLICIES = {UNDERFLOW_CLAMP, UNDERFLOW_REJECT}


@dataclass(frozen=True)
class LedgerResult:
    product: Product
    batch: Optional[StockBatch]
    requested_delta: int
    applied_delta: int
    created: bool = False
    clamped: bool = False

    @property
    def is_noop(self) -> bool:
        return self.batch is None


# -------------------------------------------------
# HELPERS
# -------------------------------------------------


def get_underflow_policy(override: Optional[str] = None) -> str:
    policy = (override or getattr(settings, "INVENTORY_UNDERFLOW_POLICY", UNDERFLOW_CLAMP) or "")
    policy = policy.strip().lower()
    if policy not in UNDERFLOW_POLICIES:
        raise InventoryError(f"Unknown underflow policy '{policy}'")
    return policy


def normalize_batch_number(batch_number) -> str:
    bn = (batch_number or "").strip() if isinstance(batch_number, str) else ""
    return bn or DEFAULT_BATCH_NUMBER


def to_int(value, *, field_name: str = "quantity") -> int:
    if value is None or value == "":
        raise InvalidQuantity(f"{field_name} is required")
    if isinstance(value, bool):
        # bool is an int subclass in Python
        raise InvalidQuantity(f"{field_name} must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise InvalidQuantity(f"{field_name} must be a whole number")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidQuantity(f"{field_name} must be an integer")


def to_cost(value) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        cost = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InventoryError("cost_price must be a valid decimal") from exc
    if cost < Decimal("0.00"):
        raise InventoryError("cost_price cannot be negative")
    return cost


def lock_product(product_id) -> Product:
    """
    Lock one product row for the rest of the current transaction.
    Concurrent mutations of the same product serialize here.
    """
    try:
        return Product.objects.select_for_update().get(pk=product_id)
    except (Product.DoesNotExist, ValidationError, ValueError):
        raise ProductNotFound(f"Product {product_id} not found", product_id=str(product_id))


def find_batch(product: Product, batch_number: str, *, for_update: bool = False) -> Optional[StockBatch]:
    qs = StockBatch.objects.filter(product=product)
    if for_update:
        qs = qs.select_for_update()
    # some DB collations compare case-insensitively; keep the match exact
    for batch in qs.filter(batch_number=batch_number):
        if batch.batch_number == batch_number:
            return batch
    return None


def recompute_stock_level(product: Product) -> int:
    total = (
        StockBatch.objects.filter(product=product)
        .aggregate(total=Sum("quantity"))
        .get("total")
        or 0
    )
    Product.objects.filter(pk=product.pk).update(stock_level=total)
    product.stock_level = total
    return total


# -------------------------------------------------
# CORE
# -------------------------------------------------


@transaction.atomic
def apply_delta(
    product: Product,
    batch_number: str,
    expiry_date,
    cost_price,
    quantity_delta,
    *,
    underflow_policy: Optional[str] = None,
) -> LedgerResult:
    """
    Apply a signed quantity change to one batch of one product.

    The caller must already hold the product lock (see lock_product).
    """
    delta = to_int(quantity_delta, field_name="quantity_delta")
    policy = get_underflow_policy(underflow_policy)
    cost = to_cost(cost_price)
    bn = normalize_batch_number(batch_number)

    batch = find_batch(product, bn, for_update=True)

    if batch is None:
        if delta <= 0:
            logger.info(
                "ledger no-op: product=%s batch=%s delta=%s (no such batch)",
                product.pk,
                bn,
                delta,
            )
            recompute_stock_level(product)
            return LedgerResult(product=product, batch=None, requested_delta=delta, applied_delta=0)

        if not expiry_date:
            raise InventoryError("expiry_date is required to open a new batch")

        batch = StockBatch.objects.create(
            product=product,
            batch_number=bn,
            expiry_date=expiry_date,
            quantity=delta,
            cost_price=cost if cost is not None else Decimal("0.00"),
        )
        recompute_stock_level(product)
        return LedgerResult(
            product=product,
            batch=batch,
            requested_delta=delta,
            applied_delta=delta,
            created=True,
        )

    current = int(batch.quantity or 0)
    target = current + delta
    clamped = False

    if target < 0:
        if policy == UNDERFLOW_REJECT:
            raise NegativeStockAttempt(
                f"Batch {bn} has {current} on hand; cannot remove {-delta}",
                on_hand=current,
                requested=-delta,
            )
        logger.warning(
            "ledger clamp: product=%s batch=%s on_hand=%s delta=%s -> 0",
            product.pk,
            bn,
            current,
            delta,
        )
        target = 0
        clamped = True

    batch.quantity = target
    update_fields = ["quantity", "updated_at"]
    if cost is not None and cost > Decimal("0.00"):
        batch.cost_price = cost
        update_fields.append("cost_price")
    batch.save(update_fields=update_fields)

    recompute_stock_level(product)

    return LedgerResult(
        product=product,
        batch=batch,
        requested_delta=delta,
        applied_delta=target - current,
        clamped=clamped,
    )
