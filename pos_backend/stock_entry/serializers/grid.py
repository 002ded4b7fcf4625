# stock_entry/serializers/grid.py

"""
STOCK ENTRY INPUT SERIALIZERS

Scan events arrive already parsed (gtin / batch / expiry / serial); the
backend never decodes raw barcode payloads. "batchNumber", "expiryDate",
"serialNumber" and "rawData" are accepted as frontend aliases.
"""

from __future__ import annotations

from rest_framework import serializers

from stock_entry.services.grid import ScanEvent

SCAN_ALIASES = {
    "batchNumber": "batch_number",
    "expiryDate": "expiry_date",
    "serialNumber": "serial_number",
    "rawData": "raw_data",
}


class ScanEventSerializer(serializers.Serializer):
    gtin = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=64)
    batch_number = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=128)
    expiry_date = serializers.DateField(required=False, allow_null=True)
    serial_number = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=128)
    raw_data = serializers.CharField(required=False, allow_blank=True, default="")
    type = serializers.CharField(required=False, allow_blank=True, default="barcode", max_length=32)

    def to_internal_value(self, data):
        if hasattr(data, "dict"):
            data = data.dict()
        data = dict(data)
        for alias, name in SCAN_ALIASES.items():
            if alias in data and name not in data:
                data[name] = data.pop(alias)
        return super().to_internal_value(data)

    def validate(self, attrs):
        if not any((attrs.get(k) or "").strip() for k in ("gtin", "serial_number", "raw_data")):
            raise serializers.ValidationError("A scan needs a gtin, serial_number or raw_data.")
        return attrs

    def to_event(self) -> ScanEvent:
        v = self.validated_data
        return ScanEvent(
            gtin=(v.get("gtin") or "").strip() or None,
            batch_number=(v.get("batch_number") or "").strip() or None,
            expiry_date=v.get("expiry_date"),
            serial_number=(v.get("serial_number") or "").strip() or None,
            raw_data=v.get("raw_data") or "",
            type=v.get("type") or "barcode",
        )


class ScanRowPatchSerializer(serializers.Serializer):
    gtin = serializers.CharField(required=False, allow_blank=True, max_length=64)
    product_name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    category = serializers.CharField(required=False, allow_blank=True, max_length=128)
    batch_number = serializers.CharField(required=False, allow_blank=True, max_length=128)
    expiry_date = serializers.DateField(required=False, allow_null=True)
    quantity = serializers.IntegerField(required=False, min_value=0)
    unit = serializers.CharField(required=False, allow_blank=True, max_length=32)
    cost_price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0)
    selling_price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0)
    location = serializers.CharField(required=False, allow_blank=True, max_length=128)
    supplier_id = serializers.CharField(required=False, allow_blank=True, max_length=64)


class ScanRowCreateSerializer(ScanRowPatchSerializer):
    """Manual row insert. Every field is optional; the row starts at quantity 1."""
