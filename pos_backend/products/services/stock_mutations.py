# products/services/stock_mutations.py

"""
======================================================
PATH: products/services/stock_mutations.py
======================================================
STOCK MUTATION SERVICE

Purpose:
- The only entry point allowed to call the batch ledger.
- Encode real-world operations as signed deltas with default policies:
  receive (+), consume (-), return / write-off (-), quantity edit (+/-).
- Write one immutable StockMovement per applied mutation.

Rules:
- Every operation locks the product row first (serializes concurrent mutations).
- Unknown product -> ProductNotFound, nothing written.
- Any DatabaseError from persistence -> TransientStockError (retryable).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_date

from products.models import Product, StockBatch, StockMovement
from products.services.exceptions import (
    BatchNotFound,
    DuplicateBatchNumber,
    InvalidQuantity,
    InventoryError,
    persistence_errors,
)
from products.services.ledger import (
    DEFAULT_BATCH_NUMBER,
    LedgerResult,
    apply_delta,
    find_batch,
    lock_product,
    normalize_batch_number,
    to_cost,
    to_int,
)

logger = logging.getLogger(__name__)

RETURN_REASON = "RETURN"


@dataclass(frozen=True)
class MutationResult:
    ledger: LedgerResult
    movement: Optional[StockMovement]

    @property
    def product(self) -> Product:
        return self.ledger.product

    @property
    def batch(self) -> Optional[StockBatch]:
        return self.ledger.batch

    @property
    def applied_quantity(self) -> int:
        return abs(self.ledger.applied_delta)


# -------------------------------------------------
# HELPERS
# -------------------------------------------------


def _require_positive_int(value, *, field_name: str = "quantity") -> int:
    qty = to_int(value, field_name=field_name)
    if qty <= 0:
        raise InvalidQuantity(f"{field_name} must be greater than zero")
    return qty


def to_date(value) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = parse_date(str(value)[:10])
    if parsed is None:
        raise InventoryError(f"Invalid date '{value}' (expected YYYY-MM-DD)")
    return parsed


def default_expiry_date(today: Optional[date] = None) -> date:
    days = int(getattr(settings, "INVENTORY_DEFAULT_EXPIRY_DAYS", 365))
    return (today or timezone.localdate()) + timedelta(days=days)


def _record_movement(
    *,
    ledger: LedgerResult,
    reason: str,
    requested: int,
    user=None,
    note: str = "",
) -> Optional[StockMovement]:
    if ledger.batch is None:
        return None

    if reason == StockMovement.Reason.ADJUSTMENT:
        movement_type = (
            StockMovement.MovementType.IN
            if ledger.requested_delta > 0
            else StockMovement.MovementType.OUT
        )
    else:
        movement_type = StockMovement.REASON_TO_MOVEMENT[reason]

    return StockMovement.objects.create(
        product=ledger.product,
        batch=ledger.batch,
        movement_type=movement_type,
        reason=reason,
        quantity_requested=requested,
        quantity_applied=abs(ledger.applied_delta),
        unit_cost_snapshot=ledger.batch.cost_price,
        performed_by=user if getattr(user, "is_authenticated", False) else None,
        note=(note or "")[:255],
    )


def _log_mutation(reason: str, ledger: LedgerResult) -> None:
    logger.info(
        "stock %s: product=%s batch=%s requested=%s applied=%s stock_level=%s",
        reason,
        ledger.product.pk,
        getattr(ledger.batch, "batch_number", None),
        ledger.requested_delta,
        ledger.applied_delta,
        ledger.product.stock_level,
    )


def _lock_batch(batch_id) -> tuple[Product, StockBatch]:
    try:
        product_id = (
            StockBatch.objects.filter(pk=batch_id)
            .values_list("product_id", flat=True)
            .first()
        )
    except (ValidationError, ValueError):
        product_id = None
    if product_id is None:
        raise BatchNotFound(f"Batch {batch_id} not found", batch_id=str(batch_id))

    product = lock_product(product_id)
    batch = StockBatch.objects.select_for_update().get(pk=batch_id)
    return product, batch


# -------------------------------------------------
# RECEIVE
# -------------------------------------------------


@transaction.atomic
def _receive(*, product_id, batch_number, quantity, unit, location, expiry_date, cost_price, user):
    qty = _require_positive_int(quantity)
    bn = normalize_batch_number(batch_number)
    expiry = to_date(expiry_date) or default_expiry_date()
    cost = to_cost(cost_price)

    product = lock_product(product_id)

    changed = []
    unit = (unit or "").strip().upper() if isinstance(unit, str) else ""
    location = (location or "").strip() if isinstance(location, str) else ""
    if unit and unit != product.unit:
        product.unit = unit
        changed.append("unit")
    if location and location != product.location:
        product.location = location
        changed.append("location")
    if changed:
        product.save(update_fields=[*changed, "updated_at"])

    ledger = apply_delta(product, bn, expiry, cost, qty)
    movement = _record_movement(
        ledger=ledger,
        reason=StockMovement.Reason.RECEIPT,
        requested=qty,
        user=user,
    )
    _log_mutation("receipt", ledger)
    return MutationResult(ledger=ledger, movement=movement)


def receive_stock(
    *,
    product_id,
    batch_number: str = DEFAULT_BATCH_NUMBER,
    quantity,
    unit: Optional[str] = None,
    location: Optional[str] = None,
    expiry_date=None,
    cost_price=None,
    user=None,
) -> MutationResult:
    """
    Receive stock into a batch (create-or-increment).

    - quantity must be > 0
    - blank batch_number -> "DEFAULT"
    - missing expiry_date -> today + INVENTORY_DEFAULT_EXPIRY_DAYS
      (used only when a new batch is opened)
    - unit / location update the product when supplied
    """
    with persistence_errors("receipt"):
        return _receive(
            product_id=product_id,
            batch_number=batch_number,
            quantity=quantity,
            unit=unit,
            location=location,
            expiry_date=expiry_date,
            cost_price=cost_price,
            user=user,
        )


# -------------------------------------------------
# CONSUME (sales)
# -------------------------------------------------


@transaction.atomic
def _consume(*, product_id, batch_number, quantity, user):
    qty = _require_positive_int(quantity)
    bn = normalize_batch_number(batch_number)

    product = lock_product(product_id)
    ledger = apply_delta(product, bn, None, None, -qty)
    movement = _record_movement(
        ledger=ledger,
        reason=StockMovement.Reason.SALE,
        requested=qty,
        user=user,
    )
    _log_mutation("sale", ledger)
    return MutationResult(ledger=ledger, movement=movement)


def consume_stock(*, product_id, batch_number: str = DEFAULT_BATCH_NUMBER, quantity, user=None) -> MutationResult:
    with persistence_errors("sale"):
        return _consume(product_id=product_id, batch_number=batch_number, quantity=quantity, user=user)


# -------------------------------------------------
# RETURN / WRITE-OFF
# -------------------------------------------------


@transaction.atomic
def _return_or_write_off(*, product_id, batch_number, quantity, reason, user):
    bn = normalize_batch_number(batch_number)
    qty = to_int(quantity)

    product = lock_product(product_id)
    batch = find_batch(product, bn, for_update=True)
    if batch is None:
        raise BatchNotFound(f"Batch {bn} not found for product {product.pk}", batch_number=bn)

    on_hand = int(batch.quantity or 0)
    if qty < 1 or qty > on_hand:
        raise InvalidQuantity(
            f"Quantity must be between 1 and {on_hand}",
            on_hand=on_hand,
            requested=qty,
        )

    tag = (reason or "").strip() or RETURN_REASON
    movement_reason = (
        StockMovement.Reason.RETURN
        if tag.upper() == RETURN_REASON
        else StockMovement.Reason.WRITE_OFF
    )

    ledger = apply_delta(product, bn, None, None, -qty)
    movement = _record_movement(
        ledger=ledger,
        reason=movement_reason,
        requested=qty,
        user=user,
        note=tag,
    )
    logger.info(
        "stock %s (%s): product=%s batch=%s quantity=%s",
        movement_reason.lower(),
        tag,
        product.pk,
        bn,
        qty,
    )
    return MutationResult(ledger=ledger, movement=movement)


def return_or_write_off(
    *,
    product_id,
    batch_number: str,
    quantity,
    reason: str = RETURN_REASON,
    user=None,
) -> MutationResult:
    """
    Remove stock from an existing batch for a vendor return or write-off.

    1 <= quantity <= batch.quantity is re-checked under the product lock.
    The reason tag goes on the movement note for audit; ledger mechanics
    are identical for every reason.
    """
    with persistence_errors("return"):
        return _return_or_write_off(
            product_id=product_id,
            batch_number=batch_number,
            quantity=quantity,
            reason=reason,
            user=user,
        )


# -------------------------------------------------
# BATCH EDITS
# -------------------------------------------------


@transaction.atomic
def _set_batch_quantity(*, batch_id, quantity, user, note):
    target = to_int(quantity)
    if target < 0:
        raise InvalidQuantity("quantity cannot be negative")

    product, batch = _lock_batch(batch_id)
    delta = target - int(batch.quantity or 0)

    if delta == 0:
        return MutationResult(
            ledger=LedgerResult(product=product, batch=batch, requested_delta=0, applied_delta=0),
            movement=None,
        )

    ledger = apply_delta(product, batch.batch_number, None, None, delta)
    movement = _record_movement(
        ledger=ledger,
        reason=StockMovement.Reason.ADJUSTMENT,
        requested=abs(delta),
        user=user,
        note=note,
    )
    _log_mutation("adjustment", ledger)
    return MutationResult(ledger=ledger, movement=movement)


def set_batch_quantity(*, batch_id, quantity, user=None, note: str = "") -> MutationResult:
    """
    Set a batch's on-hand quantity (stock count correction).
    Applied as an ADJUSTMENT delta through the ledger.
    """
    with persistence_errors("adjustment"):
        return _set_batch_quantity(batch_id=batch_id, quantity=quantity, user=user, note=note)


@transaction.atomic
def _update_batch_details(*, batch_id, batch_number, expiry_date, cost_price):
    product, batch = _lock_batch(batch_id)
    update_fields = []

    if batch_number is not None:
        bn = normalize_batch_number(batch_number)
        if bn != batch.batch_number:
            clash = find_batch(product, bn)
            if clash is not None and clash.pk != batch.pk:
                raise DuplicateBatchNumber(
                    f"Batch number {bn} already exists for this product",
                    batch_number=bn,
                )
            batch.batch_number = bn
            update_fields.append("batch_number")

    expiry = to_date(expiry_date)
    if expiry is not None and expiry != batch.expiry_date:
        batch.expiry_date = expiry
        update_fields.append("expiry_date")

    cost = to_cost(cost_price)
    if cost is not None and cost != batch.cost_price:
        batch.cost_price = cost
        update_fields.append("cost_price")

    if update_fields:
        batch.save(update_fields=[*update_fields, "updated_at"])
        logger.info(
            "batch details updated: product=%s batch=%s fields=%s",
            product.pk,
            batch.pk,
            ",".join(update_fields),
        )
    return batch


def update_batch_details(*, batch_id, batch_number=None, expiry_date=None, cost_price=None) -> StockBatch:
    """
    Edit batch metadata (number, expiry, cost). Quantity is untouched.
    Renaming onto another batch number of the same product is refused.
    """
    with persistence_errors("batch update"):
        return _update_batch_details(
            batch_id=batch_id,
            batch_number=batch_number,
            expiry_date=expiry_date,
            cost_price=cost_price,
        )
