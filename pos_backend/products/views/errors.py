# products/views/errors.py

"""
Map service-layer failures onto JSON responses: {"detail": ..., "code": ...}
with the status hinted by the error class. Domain errors never become 500s.
"""

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.response import Response

from products.services.exceptions import InventoryError


def inventory_error_response(exc: InventoryError) -> Response:
    return Response(
        {"detail": exc.detail, "code": exc.code},
        status=exc.status_code,
    )


def validation_error_response(exc: DjangoValidationError) -> Response:
    detail = exc.message_dict if hasattr(exc, "error_dict") else exc.messages
    return Response(
        {"detail": detail, "code": "invalid"},
        status=status.HTTP_400_BAD_REQUEST,
    )
