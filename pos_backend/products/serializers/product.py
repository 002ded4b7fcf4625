# products/serializers/product.py

"""
PRODUCT SERIALIZER

Purpose:
- Canonical Product serializer for staff endpoints.
- stock_level is ledger-managed: read-only here, always equal to the batch sum.
- Uniqueness (sku / gtin) is checked by the catalog service so the API can
  answer 409 Conflict instead of a generic 400.
"""

from decimal import Decimal

from rest_framework import serializers

from products.models import Product
from products.serializers.stock_batch import StockBatchSummarySerializer


class ProductSerializer(serializers.ModelSerializer):
    """
    Canonical Product Serializer.

    GUARANTEES:
    - stock_level / stock_status are derived from batches (never written here)
    - batches are embedded (expiry-ordered) so clients never re-aggregate stock
    """

    sku = serializers.CharField(max_length=128, required=False, allow_blank=True)
    gtin = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)

    batches = StockBatchSummarySerializer(many=True, read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)
    stock_status = serializers.CharField(read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "branch",
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
            "stock_level",
            "stock_status",
            "is_low_stock",
            "location",
            "requires_prescription",
            "is_active",
            "batches",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "stock_level",
            "stock_status",
            "is_low_stock",
            "batches",
            "created_at",
            "updated_at",
        ]
        validators = []

    def validate_name_en(self, value):
        value = (value or "").strip()
        if not value:
            raise serializers.ValidationError("name_en is required")
        return value

    def validate_price(self, value):
        if value is None or value < Decimal("0.00"):
            raise serializers.ValidationError("price must be non-negative")
        return value

    def to_service_payload(self) -> dict:
        """validated_data shaped for products.services.catalog."""
        data = dict(self.validated_data)
        branch = data.pop("branch", None)
        if "branch" in self.validated_data:
            data["branch_id"] = getattr(branch, "pk", None)
        return data
