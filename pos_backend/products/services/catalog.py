# products/services/catalog.py

"""
======================================================
PATH: products/services/catalog.py
======================================================
CATALOG SERVICE

Purpose:
- System of record for Product / StockBatch reads and product master-data writes.
- Produce immutable snapshots for the expiry classifier and the stock entry grid.

Rules:
- Snapshots are re-read after every mutation; nothing trusts optimistic local state.
- Identity lookup order: gtin, then id, then sku.
- GTIN is unique when present (DuplicateGtin); SKU is always unique (DuplicateSku).
- stock_level is never patched here (ledger-managed).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Prefetch, Q

from products.models import Product, StockBatch
from products.models.product import DEFAULT_CATEGORY, DEFAULT_MIN_STOCK_LEVEL, DEFAULT_UNIT
from products.services.exceptions import (
    DuplicateGtin,
    DuplicateSku,
    InventoryError,
    ProductNotFound,
    persistence_errors,
)

logger = logging.getLogger(__name__)

# Master-data fields a catalog write may touch.
PRODUCT_WRITABLE_FIELDS = (
    "sku",
    "gtin",
    "name_en",
    "name_mm",
    "generic_name",
    "category",
    "description",
    "price",
    "unit",
    "min_stock_level",
    "location",
    "requires_prescription",
    "is_active",
    "branch_id",
)


# -------------------------------------------------
# SNAPSHOTS
# -------------------------------------------------


@dataclass(frozen=True)
class BatchSnapshot:
    id: str
    batch_number: str
    expiry_date: date
    quantity: int
    cost_price: Decimal

    @classmethod
    def from_model(cls, batch: StockBatch) -> "BatchSnapshot":
        return cls(
            id=str(batch.id),
            batch_number=batch.batch_number,
            expiry_date=batch.expiry_date,
            quantity=int(batch.quantity or 0),
            cost_price=Decimal(batch.cost_price or 0),
        )


@dataclass(frozen=True)
class ProductSnapshot:
    id: str
    sku: str
    name_en: str
    gtin: Optional[str] = None
    name_mm: str = ""
    category: str = DEFAULT_CATEGORY
    unit: str = DEFAULT_UNIT
    price: Decimal = Decimal("0.00")
    location: str = ""
    min_stock_level: int = DEFAULT_MIN_STOCK_LEVEL
    stock_level: int = 0
    branch_id: Optional[str] = None
    batches: tuple[BatchSnapshot, ...] = field(default_factory=tuple)

    @classmethod
    def from_model(cls, product: Product) -> "ProductSnapshot":
        return cls(
            id=str(product.id),
            sku=product.sku,
            gtin=product.gtin,
            name_en=product.name_en,
            name_mm=product.name_mm,
            category=product.category,
            unit=product.unit,
            price=Decimal(product.price or 0),
            location=product.location,
            min_stock_level=int(product.min_stock_level or 0),
            stock_level=int(product.stock_level or 0),
            branch_id=str(product.branch_id) if product.branch_id else None,
            batches=tuple(BatchSnapshot.from_model(b) for b in product.batches.all()),
        )

    @property
    def current_cost(self) -> Decimal:
        """Cost of the first listed batch (the grid's default unit cost)."""
        if not self.batches:
            return Decimal("0.00")
        return self.batches[0].cost_price


def find_by_identity(products: Iterable[ProductSnapshot], identity: str) -> Optional[ProductSnapshot]:
    """
    Resolve a scanned identity against the catalog: gtin first, then id, then sku.
    """
    ident = (identity or "").strip()
    if not ident:
        return None

    products = list(products)
    for attr in ("gtin", "id", "sku"):
        for product in products:
            if (getattr(product, attr, None) or "") == ident:
                return product
    return None


def find_by_name(products: Iterable[ProductSnapshot], name: str) -> Optional[ProductSnapshot]:
    name = (name or "").strip()
    if not name:
        return None
    for product in products:
        if product.name_en == name:
            return product
    return None


# -------------------------------------------------
# READS
# -------------------------------------------------


def product_queryset(branch_id=None, *, include_inactive: bool = False):
    qs = Product.objects.prefetch_related(
        Prefetch("batches", queryset=StockBatch.objects.order_by("expiry_date", "created_at"))
    )
    if branch_id:
        qs = qs.filter(branch_id=branch_id)
    if not include_inactive:
        qs = qs.filter(is_active=True)
    return qs.order_by("name_en")


def list_products(branch_id=None, *, include_inactive: bool = False, search: str = "") -> list[ProductSnapshot]:
    """
    Catalog snapshot for one branch (or every branch when branch_id is None).
    """
    qs = product_queryset(branch_id, include_inactive=include_inactive)
    search = (search or "").strip()
    if search:
        qs = qs.filter(
            Q(name_en__icontains=search)
            | Q(name_mm__icontains=search)
            | Q(generic_name__icontains=search)
            | Q(sku__icontains=search)
            | Q(gtin__icontains=search)
        )
    return [ProductSnapshot.from_model(p) for p in qs]


def get_product_snapshot(product_id) -> ProductSnapshot:
    try:
        product = product_queryset(include_inactive=True).get(pk=product_id)
    except (Product.DoesNotExist, ValidationError, ValueError):
        raise ProductNotFound(f"Product {product_id} not found", product_id=str(product_id))
    return ProductSnapshot.from_model(product)


# -------------------------------------------------
# WRITES
# -------------------------------------------------


def generate_sku() -> str:
    base = f"SKU-{int(time.time() * 1000)}"
    candidate = base
    i = 1
    while Product.objects.filter(sku=candidate).exists():
        i += 1
        candidate = f"{base}-{i}"
    return candidate


def _clean_payload(data: dict) -> dict:
    payload = {}
    for key in PRODUCT_WRITABLE_FIELDS:
        if key in data:
            payload[key] = data[key]
    if "branch" in data and "branch_id" not in payload:
        branch = data["branch"]
        payload["branch_id"] = getattr(branch, "pk", branch)
    for key in ("sku", "gtin", "name_en", "category", "unit", "location"):
        if isinstance(payload.get(key), str):
            payload[key] = payload[key].strip()
    if "gtin" in payload:
        payload["gtin"] = payload["gtin"] or None
    return payload


def _check_unique(*, sku=None, gtin=None, exclude_id=None) -> None:
    if gtin:
        qs = Product.objects.filter(gtin=gtin)
        if exclude_id:
            qs = qs.exclude(pk=exclude_id)
        if qs.exists():
            raise DuplicateGtin(f"Product with GTIN {gtin} already exists", gtin=gtin)
    if sku:
        qs = Product.objects.filter(sku=sku)
        if exclude_id:
            qs = qs.exclude(pk=exclude_id)
        if qs.exists():
            raise DuplicateSku(f"Product with SKU {sku} already exists", sku=sku)


@transaction.atomic
def _create(payload: dict) -> Product:
    if not payload.get("name_en"):
        raise InventoryError("name_en is required")

    if not payload.get("sku"):
        payload["sku"] = payload.get("gtin") or generate_sku()

    payload.setdefault("category", DEFAULT_CATEGORY)
    payload.setdefault("unit", DEFAULT_UNIT)
    payload.setdefault("min_stock_level", DEFAULT_MIN_STOCK_LEVEL)

    _check_unique(sku=payload["sku"], gtin=payload.get("gtin"))

    product = Product(**payload)
    product.save()
    logger.info("catalog product created: id=%s sku=%s gtin=%s", product.pk, product.sku, product.gtin)
    return product


def create_product(data: Optional[dict] = None, **fields) -> Product:
    """
    Create a catalog product. stock_level starts at 0; stock arrives
    only through receive_stock().
    """
    payload = _clean_payload({**(data or {}), **fields})
    with persistence_errors("product create"):
        return _create(payload)


@transaction.atomic
def _update(product_id, payload: dict) -> Product:
    try:
        product = Product.objects.select_for_update().get(pk=product_id)
    except (Product.DoesNotExist, ValidationError, ValueError):
        raise ProductNotFound(f"Product {product_id} not found", product_id=str(product_id))

    _check_unique(
        sku=payload.get("sku") if payload.get("sku") != product.sku else None,
        gtin=payload.get("gtin") if payload.get("gtin") != product.gtin else None,
        exclude_id=product.pk,
    )

    for key, value in payload.items():
        setattr(product, key, value)
    product.save()
    logger.info("catalog product updated: id=%s fields=%s", product.pk, ",".join(sorted(payload)))
    return product


def update_product(product_id, patch: Optional[dict] = None, **fields) -> Product:
    payload = _clean_payload({**(patch or {}), **fields})
    with persistence_errors("product update"):
        return _update(product_id, payload)
