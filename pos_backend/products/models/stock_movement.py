# products/models/stock_movement.py

"""
INVENTORY AUDIT TRAIL

Immutable record of one applied stock mutation.

GUARANTEES:
- Append-only (no updates, no deletes)
- Movement direction validated against reason
- quantity_applied may be lower than quantity_requested when an
  over-subtraction was clamped at zero
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from .product import Product
from .stock_batch import StockBatch


class StockMovement(models.Model):
    class MovementType(models.TextChoices):
        IN = "IN", "Stock In"
        OUT = "OUT", "Stock Out"

    class Reason(models.TextChoices):
        RECEIPT = "RECEIPT", "Stock Receipt"
        SALE = "SALE", "Sale"
        RETURN = "RETURN", "Return to Vendor"
        WRITE_OFF = "WRITE_OFF", "Write-off"
        ADJUSTMENT = "ADJUSTMENT", "Manual Adjustment"

    REASON_TO_MOVEMENT = {
        Reason.RECEIPT: MovementType.IN,
        Reason.SALE: MovementType.OUT,
        Reason.RETURN: MovementType.OUT,
        Reason.WRITE_OFF: MovementType.OUT,
        Reason.ADJUSTMENT: None,
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    product = models.ForeignKey(
        Product, on_delete=models.CASCADE, related_name="stock_movements"
    )
    batch = models.ForeignKey(
        StockBatch, on_delete=models.CASCADE, related_name="stock_movements"
    )

    movement_type = models.CharField(max_length=3, choices=MovementType.choices)
    reason = models.CharField(max_length=20, choices=Reason.choices)

    quantity_requested = models.PositiveIntegerField()
    quantity_applied = models.PositiveIntegerField()

    unit_cost_snapshot = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Unit cost from the batch at movement time (immutable).",
    )

    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="stock_movements",
    )

    note = models.CharField(max_length=255, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["created_at"], name="movement_created_idx"),
            models.Index(fields=["reason"], name="movement_reason_idx"),
            models.Index(fields=["product", "created_at"], name="movement_product_created_idx"),
            models.Index(fields=["batch", "created_at"], name="movement_batch_created_idx"),
        ]

    def clean(self):
        if self.quantity_requested <= 0:
            raise ValidationError("quantity_requested must be greater than zero")

        if self.quantity_applied > self.quantity_requested:
            raise ValidationError("quantity_applied cannot exceed quantity_requested")

        if self.batch_id and self.product_id:
            batch_product_id = (
                StockBatch.objects.filter(id=self.batch_id)
                .values_list("product_id", flat=True)
                .first()
            )
            if batch_product_id and batch_product_id != self.product_id:
                raise ValidationError("Batch does not belong to product")

        expected_type = self.REASON_TO_MOVEMENT.get(self.reason)
        if expected_type and self.movement_type != expected_type:
            raise ValidationError(
                f"{self.reason} requires movement_type={expected_type}"
            )

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("StockMovement records are immutable")

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "StockMovement records are immutable and cannot be deleted"
        )

    @property
    def signed_quantity(self) -> int:
        qty = int(self.quantity_applied or 0)
        return qty if self.movement_type == self.MovementType.IN else -qty

    @property
    def total_cost(self) -> Decimal:
        return Decimal(self.unit_cost_snapshot or 0) * Decimal(int(self.quantity_applied or 0))

    def __str__(self):
        product_name = getattr(self.product, "name_en", "Product")
        return f"{product_name} | {self.reason} | {self.quantity_applied}"
