# stock_entry/services/grid.py

"""
======================================================
PATH: stock_entry/services/grid.py
======================================================
SCAN COALESCING BUFFER

Session-scoped grid of pending stock lines built from barcode scans and
manual row inserts. Nothing here touches the ledger; commit.py does that.

Scan rules:
- Identity = gtin, else serial number, else the raw payload.
- Catalog lookup: gtin, then id, then sku.
- Identity already in the grid -> quantity + 1, highlight, focus quantity.
  The row keeps its position.
- Otherwise a new row goes to the FRONT of the grid. Known products are
  pre-filled from the catalog (scan batch/expiry win when present) and
  focus quantity; unknown products focus product_name.
- The scanner badge reads "processing" for 0.6s after a scan.

Manual edits are last-write-wins. Deleting a row has no ledger effect.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, fields
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from products.models.product import DEFAULT_UNIT
from products.services.catalog import ProductSnapshot, find_by_identity
from products.services.ledger import to_cost, to_int
from products.services.stock_mutations import to_date
from stock_entry.services.exceptions import GridRowNotFound

PROCESSING_WINDOW = timedelta(milliseconds=600)

SCANNER_READY = "ready"
SCANNER_PROCESSING = "processing"

FOCUS_QUANTITY = "quantity"
FOCUS_PRODUCT_NAME = "product_name"


@dataclass(frozen=True)
class ScanEvent:
    """Structured record handed over by the barcode parser."""

    gtin: Optional[str] = None
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None
    serial_number: Optional[str] = None
    raw_data: str = ""
    type: str = "barcode"

    @property
    def identity(self) -> str:
        return (self.gtin or self.serial_number or self.raw_data or "").strip()


@dataclass
class ScanRow:
    id: str = field(default_factory=lambda: f"row-{uuid.uuid4().hex[:12]}")
    gtin: str = ""
    product_name: str = ""
    category: str = ""
    batch_number: str = ""
    expiry_date: Optional[date] = None
    quantity: int = 1
    unit: str = DEFAULT_UNIT
    cost_price: Decimal = Decimal("0")
    selling_price: Decimal = Decimal("0")
    location: str = ""
    supplier_id: str = ""
    # True when the identity was not in the catalog (commit will create a product)
    is_new: bool = True
    is_highlighted: bool = False

    @property
    def line_value(self) -> Decimal:
        return Decimal(self.quantity) * Decimal(self.cost_price)

    @property
    def is_blank(self) -> bool:
        return not (self.product_name or "").strip()

    def to_dict(self) -> dict:
        data = asdict(self)
        data["expiry_date"] = self.expiry_date.isoformat() if self.expiry_date else None
        data["cost_price"] = str(self.cost_price)
        data["selling_price"] = str(self.selling_price)
        data["line_value"] = str(self.line_value)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ScanRow":
        known = {f.name for f in fields(cls)}
        row = cls(**{k: v for k, v in data.items() if k in known})
        row.expiry_date = to_date(row.expiry_date)
        row.cost_price = to_cost(row.cost_price) or Decimal("0")
        row.selling_price = to_cost(row.selling_price) or Decimal("0")
        row.quantity = to_int(row.quantity)
        return row


EDITABLE_FIELDS = (
    "gtin",
    "product_name",
    "category",
    "batch_number",
    "expiry_date",
    "quantity",
    "unit",
    "cost_price",
    "selling_price",
    "location",
    "supplier_id",
)


@dataclass(frozen=True)
class ScanOutcome:
    row: ScanRow
    created: bool
    known_product: bool
    focus_field: str


def _coerce(name: str, value):
    if name == "quantity":
        return to_int(value)
    if name in ("cost_price", "selling_price"):
        return to_cost(value) or Decimal("0")
    if name == "expiry_date":
        return to_date(value)
    return "" if value is None else str(value)


class StockEntryGrid:
    def __init__(
        self,
        rows: Optional[Iterable[ScanRow]] = None,
        *,
        session_id: Optional[str] = None,
        last_scan_at: Optional[datetime] = None,
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self.rows: list[ScanRow] = list(rows or [])
        self.last_scan_at = last_scan_at

    def __len__(self) -> int:
        return len(self.rows)

    # -----------------------------
    # lookups
    # -----------------------------
    def find_row(self, identity: str) -> Optional[ScanRow]:
        identity = (identity or "").strip()
        if not identity:
            return None
        for row in self.rows:
            if row.gtin == identity:
                return row
        return None

    def get_row(self, row_id: str) -> ScanRow:
        for row in self.rows:
            if row.id == row_id:
                return row
        raise GridRowNotFound(f"Row {row_id} not found", row_id=row_id)

    # -----------------------------
    # scans
    # -----------------------------
    def handle_scan(
        self,
        event: ScanEvent,
        catalog: Iterable[ProductSnapshot],
        *,
        now: Optional[datetime] = None,
    ) -> ScanOutcome:
        self.last_scan_at = now or timezone.now()
        self.clear_highlights()

        identity = event.identity
        product = find_by_identity(catalog, identity)

        existing = self.find_row(identity)
        if existing is not None:
            existing.quantity += 1
            existing.is_highlighted = True
            return ScanOutcome(
                row=existing,
                created=False,
                known_product=product is not None,
                focus_field=FOCUS_QUANTITY,
            )

        row = ScanRow(gtin=identity, is_new=product is None)
        if product is not None:
            row.product_name = product.name_en
            row.category = product.category
            row.unit = product.unit
            row.cost_price = product.current_cost
            row.selling_price = product.price
            row.location = product.location or ""
            if event.batch_number:
                row.batch_number = event.batch_number
            if event.expiry_date:
                row.expiry_date = to_date(event.expiry_date)

        self.rows.insert(0, row)
        return ScanOutcome(
            row=row,
            created=True,
            known_product=product is not None,
            focus_field=FOCUS_QUANTITY if product is not None else FOCUS_PRODUCT_NAME,
        )

    def scanner_status(self, now: Optional[datetime] = None) -> str:
        if self.last_scan_at is None:
            return SCANNER_READY
        now = now or timezone.now()
        if now - self.last_scan_at < PROCESSING_WINDOW:
            return SCANNER_PROCESSING
        return SCANNER_READY

    # -----------------------------
    # manual edits
    # -----------------------------
    def add_row(self, gtin: str = "", **values) -> ScanRow:
        row = ScanRow(gtin=(gtin or "").strip())
        for name, value in values.items():
            if name in EDITABLE_FIELDS:
                setattr(row, name, _coerce(name, value))
        self.rows.insert(0, row)
        return row

    def update_row(self, row_id: str, **values) -> ScanRow:
        row = self.get_row(row_id)
        for name, value in values.items():
            if name not in EDITABLE_FIELDS:
                raise ValueError(f"'{name}' is not an editable row field")
            setattr(row, name, _coerce(name, value))
        return row

    def delete_row(self, row_id: str) -> ScanRow:
        row = self.get_row(row_id)
        self.rows.remove(row)
        return row

    def drop_rows(self, row_ids) -> None:
        row_ids = set(row_ids)
        self.rows = [r for r in self.rows if r.id not in row_ids]

    def clear(self) -> None:
        self.rows = []

    def clear_highlights(self) -> None:
        for row in self.rows:
            row.is_highlighted = False

    # -----------------------------
    # totals
    # -----------------------------
    @property
    def total_units(self) -> int:
        return sum(row.quantity for row in self.rows)

    @property
    def total_value(self) -> Decimal:
        return sum((row.line_value for row in self.rows), Decimal("0"))

    # -----------------------------
    # (de)serialization for the session store
    # -----------------------------
    def to_dict(self, *, now: Optional[datetime] = None) -> dict:
        return {
            "session_id": self.session_id,
            "rows": [row.to_dict() for row in self.rows],
            "total_units": self.total_units,
            "total_value": str(self.total_value),
            "scanner_status": self.scanner_status(now),
            "last_scan_at": self.last_scan_at.isoformat() if self.last_scan_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StockEntryGrid":
        last_scan_at = data.get("last_scan_at")
        if isinstance(last_scan_at, str):
            last_scan_at = parse_datetime(last_scan_at)
        return cls(
            rows=[ScanRow.from_dict(r) for r in data.get("rows") or []],
            session_id=data.get("session_id"),
            last_scan_at=last_scan_at,
        )
