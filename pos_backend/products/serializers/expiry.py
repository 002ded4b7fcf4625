# products/serializers/expiry.py

from rest_framework import serializers

from products.services.expiry import ALL_BUCKET, ExpiryTier


class ExpiryQuerySerializer(serializers.Serializer):
    tier = serializers.ChoiceField(
        choices=[ALL_BUCKET, *ExpiryTier.values],
        required=False,
        default=ALL_BUCKET,
    )
    today = serializers.DateField(required=False)
    branch_id = serializers.UUIDField(required=False)

    def to_internal_value(self, data):
        data = data.copy() if hasattr(data, "copy") else dict(data)
        if isinstance(data.get("tier"), str):
            data["tier"] = data["tier"].upper()
        return super().to_internal_value(data)


class ExpiryCalendarQuerySerializer(serializers.Serializer):
    month = serializers.RegexField(r"^\d{4}-(0[1-9]|1[0-2])$", required=False)
    today = serializers.DateField(required=False)
    branch_id = serializers.UUIDField(required=False)


class VendorReturnSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    batch_number = serializers.CharField(max_length=128)
    # Omitted -> the batch's full on-hand quantity. Must be within [1, on hand].
    quantity = serializers.IntegerField(required=False)
    today = serializers.DateField(required=False)
