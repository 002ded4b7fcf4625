# stock_entry/services/commit.py

"""
======================================================
PATH: stock_entry/services/commit.py
======================================================
STOCK ENTRY COMMIT

commit_grid(grid, catalog=...) -> CommitReport

Rules:
- Rows are applied one at a time, top to bottom (newest scan first).
- Rows without a product name are skipped (incomplete).
- Row matches a catalog product (gtin / id / sku, else exact name)
  -> receive_stock() into that product.
- Otherwise a new product is created from the row (sku = gtin or generated,
  "Uncategorized" when no category, min stock 10) and the row's quantity
  is received as its first batch.
- First failing row stops the loop. Earlier rows stay applied; the failing
  row and all later rows stay in the grid. The report carries a
  PartialBatchFailure.
- Full success clears the grid.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from django.core.exceptions import ValidationError as DjangoValidationError

from products.models.product import DEFAULT_CATEGORY, DEFAULT_MIN_STOCK_LEVEL
from products.services import catalog as catalog_service
from products.services.catalog import ProductSnapshot, find_by_identity, find_by_name
from products.services.exceptions import InventoryError
from products.services.ledger import DEFAULT_BATCH_NUMBER
from products.services.stock_mutations import receive_stock as default_receive
from stock_entry.services.exceptions import PartialBatchFailure
from stock_entry.services.grid import ScanRow, StockEntryGrid

logger = logging.getLogger(__name__)

ROW_RECEIVED = "received"
ROW_CREATED = "created"
ROW_SKIPPED = "skipped"
ROW_FAILED = "failed"
ROW_PENDING = "pending"


@dataclass
class RowResult:
    row_id: str
    status: str
    product_id: Optional[str] = None
    batch_number: Optional[str] = None
    quantity: int = 0
    error: str = ""

    def to_dict(self) -> dict:
        return {
            "row_id": self.row_id,
            "status": self.status,
            "product_id": self.product_id,
            "batch_number": self.batch_number,
            "quantity": self.quantity,
            "error": self.error,
        }


@dataclass
class CommitReport:
    results: list[RowResult] = field(default_factory=list)
    failure: Optional[PartialBatchFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def applied_count(self) -> int:
        return sum(1 for r in self.results if r.status in (ROW_RECEIVED, ROW_CREATED))

    @property
    def settled_row_ids(self) -> set[str]:
        """Rows that leave the grid: everything on success, only applied rows on failure."""
        if self.ok:
            return {r.row_id for r in self.results}
        return {r.row_id for r in self.results if r.status in (ROW_RECEIVED, ROW_CREATED)}

    def to_dict(self) -> dict:
        data = {
            "ok": self.ok,
            "applied": self.applied_count,
            "results": [r.to_dict() for r in self.results],
        }
        if self.failure is not None:
            data["detail"] = self.failure.detail
            data["code"] = self.failure.code
            data["reason"] = self.failure.reason
        return data


def _resolve(catalog: list[ProductSnapshot], row: ScanRow) -> Optional[ProductSnapshot]:
    return find_by_identity(catalog, row.gtin) or find_by_name(catalog, row.product_name)


def _apply_row(row: ScanRow, *, catalog, receive, create_product, user, branch_id) -> RowResult:
    product = _resolve(catalog, row)
    status = ROW_RECEIVED

    if product is None:
        created = create_product(
            gtin=row.gtin or None,
            sku=row.gtin or "",
            name_en=row.product_name.strip(),
            name_mm=row.product_name.strip(),
            category=row.category or DEFAULT_CATEGORY,
            price=row.selling_price,
            unit=row.unit,
            location=row.location,
            min_stock_level=DEFAULT_MIN_STOCK_LEVEL,
            branch_id=branch_id,
        )
        product = ProductSnapshot.from_model(created)
        catalog.append(product)
        status = ROW_CREATED

    result = receive(
        product_id=product.id,
        batch_number=row.batch_number or DEFAULT_BATCH_NUMBER,
        quantity=row.quantity,
        unit=row.unit,
        location=row.location,
        expiry_date=row.expiry_date,
        cost_price=row.cost_price,
        user=user,
    )
    return RowResult(
        row_id=row.id,
        status=status,
        product_id=str(product.id),
        batch_number=result.batch.batch_number if result.batch else None,
        quantity=row.quantity,
    )


def commit_grid(
    grid: StockEntryGrid,
    *,
    catalog: Iterable[ProductSnapshot],
    receive: Optional[Callable] = None,
    create_product: Optional[Callable] = None,
    user=None,
    branch_id=None,
) -> CommitReport:
    """
    Apply every grid row through the Stock Mutation Service, sequentially.

    `receive` / `create_product` default to the real services; tests pass
    stand-ins to simulate a failing row.
    """
    receive = receive or default_receive
    create_product = create_product or catalog_service.create_product
    catalog = list(catalog)
    report = CommitReport()
    applied_ids = set()

    for index, row in enumerate(list(grid.rows)):
        if row.is_blank:
            report.results.append(RowResult(row_id=row.id, status=ROW_SKIPPED))
            continue

        try:
            result = _apply_row(
                row,
                catalog=catalog,
                receive=receive,
                create_product=create_product,
                user=user,
                branch_id=branch_id,
            )
        except (InventoryError, DjangoValidationError) as exc:
            logger.warning(
                "stock entry commit stopped at row %s (%s applied before it)",
                row.id,
                len(applied_ids),
                exc_info=True,
            )
            report.results.append(RowResult(row_id=row.id, status=ROW_FAILED, quantity=row.quantity, error=str(exc)))
            for later in grid.rows[index + 1:]:
                report.results.append(RowResult(row_id=later.id, status=ROW_PENDING, quantity=later.quantity))
            report.failure = PartialBatchFailure(cause=exc, row_id=row.id, applied=len(applied_ids))
            break

        report.results.append(result)
        applied_ids.add(row.id)

    grid.drop_rows(report.settled_row_ids)
    if report.ok:
        logger.info("stock entry committed: session=%s rows=%s", grid.session_id, report.applied_count)

    return report
