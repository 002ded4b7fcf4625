# products/serializers/stock_batch.py
"""
======================================================
PATH: products/serializers/stock_batch.py
======================================================
STOCK BATCH SERIALIZERS

Purpose:
- Read shapes for StockBatch / StockMovement.
- Input shapes for the stock mutation endpoints (receive, consume,
  write-off, batch edits). Quantities are validated here for shape only;
  range rules (1 <= qty <= on hand) live in the services.
"""

from __future__ import annotations

from rest_framework import serializers

from products.models import StockBatch, StockMovement


class StockBatchSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = StockBatch
        fields = [
            "id",
            "batch_number",
            "expiry_date",
            "quantity",
            "cost_price",
        ]
        read_only_fields = fields


class StockBatchSerializer(serializers.ModelSerializer):
    product = serializers.UUIDField(source="product.id", read_only=True)
    product_name = serializers.CharField(source="product.name_en", read_only=True)
    value_on_hand = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = StockBatch
        fields = [
            "id",
            "product",
            "product_name",
            "batch_number",
            "expiry_date",
            "quantity",
            "cost_price",
            "value_on_hand",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class StockReceiveSerializer(serializers.Serializer):
    """
    Create-or-increment a batch.

    Accepts BOTH "product_id" and "productId" (frontend alias).
    """

    product_id = serializers.UUIDField(required=False)
    productId = serializers.UUIDField(required=False, write_only=True)
    batch_number = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=128)
    quantity = serializers.IntegerField(min_value=1)
    expiry_date = serializers.DateField(required=False, allow_null=True)
    cost_price = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True, min_value=0
    )
    unit = serializers.CharField(required=False, allow_blank=True, max_length=32)
    location = serializers.CharField(required=False, allow_blank=True, max_length=128)

    def __init__(self, *args, require_product=True, **kwargs):
        super().__init__(*args, **kwargs)
        self.require_product = require_product

    def validate(self, attrs):
        alias = attrs.pop("productId", None)
        if not attrs.get("product_id") and alias:
            attrs["product_id"] = alias
        if self.require_product and not attrs.get("product_id"):
            raise serializers.ValidationError({"product_id": "product_id is required"})
        return attrs


class StockConsumeSerializer(serializers.Serializer):
    batch_number = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=128)
    quantity = serializers.IntegerField(min_value=1)


class StockWriteOffSerializer(serializers.Serializer):
    batch_number = serializers.CharField(max_length=128)
    # Range is checked against on-hand stock by the service (InvalidQuantity).
    quantity = serializers.IntegerField()
    reason = serializers.CharField(required=False, allow_blank=True, default="WRITE_OFF", max_length=64)


class StockBatchPatchSerializer(serializers.Serializer):
    batch_number = serializers.CharField(required=False, max_length=128)
    expiry_date = serializers.DateField(required=False)
    cost_price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0)
    quantity = serializers.IntegerField(required=False, min_value=0)
    note = serializers.CharField(required=False, allow_blank=True, max_length=255)


class StockMovementSerializer(serializers.ModelSerializer):
    batch_number = serializers.CharField(source="batch.batch_number", read_only=True)
    product_name = serializers.CharField(source="product.name_en", read_only=True)
    performed_by = serializers.CharField(source="performed_by.username", read_only=True, default=None)

    class Meta:
        model = StockMovement
        fields = [
            "id",
            "product",
            "product_name",
            "batch",
            "batch_number",
            "movement_type",
            "reason",
            "quantity_requested",
            "quantity_applied",
            "unit_cost_snapshot",
            "performed_by",
            "note",
            "created_at",
        ]
        read_only_fields = fields
