# products/models/stock_batch.py

"""
STOCK BATCH (DATED LOT OF ONE PRODUCT)

Rules:
- batch_number is unique within its product only ("DEFAULT" = untracked stock)
- quantity is mutated ONLY via the batch ledger (products/services/ledger.py)
- a depleted batch is kept at quantity 0 for history, never deleted by the API
- cost_price is the unit cost used for value-at-risk and refund previews
"""

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from .product import Product


class StockBatch(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name="batches",
    )

    batch_number = models.CharField(
        max_length=128,
        help_text="Supplier / lot reference, unique per product",
    )

    expiry_date = models.DateField()

    quantity = models.PositiveIntegerField(
        default=0,
        help_text="On-hand quantity (ledger-managed only)",
    )

    cost_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Unit cost for this batch",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["expiry_date", "created_at"]
        indexes = [
            models.Index(fields=["product", "expiry_date"], name="batch_product_expiry_idx"),
            models.Index(fields=["expiry_date"], name="batch_expiry_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "batch_number"],
                name="unique_batch_number_per_product",
            ),
            models.CheckConstraint(
                condition=Q(quantity__gte=0),
                name="chk_stockbatch_quantity_gte_zero",
            ),
            models.CheckConstraint(
                condition=Q(cost_price__gte=0),
                name="chk_stockbatch_cost_gte_zero",
            ),
        ]

    # -------------------------------------------------
    # VALIDATION
    # -------------------------------------------------

    def clean(self):
        if not (self.batch_number or "").strip():
            raise ValidationError({"batch_number": "batch_number is required"})

        if self.quantity is None or self.quantity < 0:
            raise ValidationError({"quantity": "quantity cannot be negative"})

        if not self.expiry_date:
            raise ValidationError({"expiry_date": "expiry_date is required"})

        if self.cost_price is None or self.cost_price < Decimal("0.00"):
            raise ValidationError({"cost_price": "cost_price cannot be negative"})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    # -------------------------------------------------
    # READ-ONLY HELPERS
    # -------------------------------------------------

    @property
    def value_on_hand(self) -> Decimal:
        return Decimal(self.cost_price or 0) * Decimal(int(self.quantity or 0))

    def __str__(self):
        product_name = getattr(self.product, "name_en", "Product")
        return f"{product_name} | Batch {self.batch_number}"
