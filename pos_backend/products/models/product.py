# products/models/product.py

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from branches.models import Branch


# Common unit-of-measure codes offered by the stock entry grid.
# Free text is still accepted; these are the suggested values.
UNIT_CODES = (
    "PCS",
    "PACK",
    "BOTTLE",
    "CAN",
    "CARTON",
    "BOX",
    "KG",
    "LITER",
    "TIN",
    "ROLL",
    "BUNDLE",
    "TRAY",
)

DEFAULT_UNIT = "PCS"
DEFAULT_CATEGORY = "Uncategorized"
DEFAULT_MIN_STOCK_LEVEL = 10


class Product(models.Model):
    """
    Represents a sellable catalog item.

    STOCK MODEL (IMPORTANT):
    - Stock lives in StockBatch rows (one per batch number)
    - stock_level is the cached aggregate and is written ONLY by the
      batch ledger, inside the same locked transaction as the batch change
    - stock_level == sum(batch.quantity) after every completed mutation
    """

    class StockStatus(models.TextChoices):
        IN_STOCK = "IN_STOCK", "In Stock"
        LOW_STOCK = "LOW_STOCK", "Low Stock"
        OUT_OF_STOCK = "OUT_OF_STOCK", "Out of Stock"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    branch = models.ForeignKey(
        Branch,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="products",
    )

    sku = models.CharField(max_length=128, unique=True, db_index=True)
    gtin = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="Global Trade Item Number (barcode). Unique when present.",
    )

    name_en = models.CharField(max_length=255, db_index=True)
    name_mm = models.CharField(max_length=255, blank=True)
    generic_name = models.CharField(max_length=255, blank=True)

    category = models.CharField(max_length=128, default=DEFAULT_CATEGORY, db_index=True)
    description = models.TextField(blank=True)

    # Current selling price
    price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    unit = models.CharField(max_length=32, default=DEFAULT_UNIT)

    min_stock_level = models.PositiveIntegerField(default=DEFAULT_MIN_STOCK_LEVEL)

    # Ledger-managed aggregate (never edited directly)
    stock_level = models.PositiveIntegerField(default=0)

    location = models.CharField(max_length=128, blank=True)
    requires_prescription = models.BooleanField(default=False)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["branch", "name_en"], name="product_branch_name_idx"),
            models.Index(fields=["gtin"], name="product_gtin_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["gtin"],
                condition=Q(gtin__isnull=False) & ~Q(gtin=""),
                name="uniq_product_gtin_when_present",
            ),
            models.CheckConstraint(
                condition=Q(price__gte=0),
                name="chk_product_price_gte_zero",
            ),
        ]

    def __str__(self):
        return f"{self.name_en} ({self.sku})"

    def clean(self):
        self.sku = (self.sku or "").strip()
        if not self.sku:
            raise ValidationError({"sku": "sku is required"})

        self.gtin = (self.gtin or "").strip() or None

        if not (self.name_en or "").strip():
            raise ValidationError({"name_en": "name_en is required"})

        if self.price is None or Decimal(self.price) < Decimal("0.00"):
            raise ValidationError({"price": "price cannot be negative"})

        self.unit = (self.unit or "").strip().upper() or DEFAULT_UNIT
        self.category = (self.category or "").strip() or DEFAULT_CATEGORY

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    @property
    def is_low_stock(self) -> bool:
        return int(self.stock_level or 0) <= int(self.min_stock_level or 0)

    @property
    def stock_status(self) -> str:
        level = int(self.stock_level or 0)
        if level <= 0:
            return self.StockStatus.OUT_OF_STOCK
        if level <= int(self.min_stock_level or 0):
            return self.StockStatus.LOW_STOCK
        return self.StockStatus.IN_STOCK
