# products/views/expiry.py

"""
EXPIRY VIEWSET

- GET  /expiry/              tiered expiry report (?tier=, ?today=, ?branch_id=)
- GET  /expiry/calendar/     expiry dates for one month (?month=YYYY-MM)
- POST /expiry/returns/      return flagged stock to the vendor

Reports are computed from a fresh catalog snapshot on every request.
"""

from __future__ import annotations

from django.utils import timezone
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from permissions.roles import (
    CAP_CATALOG_MANAGE,
    CAP_INVENTORY_ADJUST,
    CAP_INVENTORY_VIEW,
    HasCapability,
    user_has_capability,
)
from products.serializers import (
    ExpiryCalendarQuerySerializer,
    ExpiryQuerySerializer,
    StockBatchSerializer,
    VendorReturnSerializer,
)
from products.services.catalog import get_product_snapshot, list_products
from products.services.exceptions import BatchNotFound, InvalidQuantity, InventoryError
from products.services.expiry import classify_expiry
from products.services.vendor_returns import ReturnToVendorWorkflow
from products.views.errors import inventory_error_response


class ExpiryViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated]

    required_capability = None

    def get_permissions(self):
        # reset per request to avoid state leaking between actions
        if self.action == "returns":
            self.required_capability = CAP_INVENTORY_ADJUST
        else:
            self.required_capability = CAP_INVENTORY_VIEW
        return [IsAuthenticated(), HasCapability()]

    def _branch_id(self, validated):
        branch_id = validated.get("branch_id")
        user = self.request.user
        if not branch_id and not user_has_capability(user, CAP_CATALOG_MANAGE):
            branch_id = getattr(user, "branch_id", None)
        return branch_id

    def _report(self, validated):
        today = validated.get("today") or timezone.localdate()
        products = list_products(self._branch_id(validated))
        return classify_expiry(products, today)

    @extend_schema(
        parameters=[
            OpenApiParameter(name="tier", type=str, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="today", type=str, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="branch_id", type=str, location=OpenApiParameter.QUERY, required=False),
        ],
        responses={200: OpenApiResponse(description="Expiry report with per-tier stats")},
    )
    def list(self, request):
        query = ExpiryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        report = self._report(query.validated_data)
        return Response(report.to_dict(query.validated_data.get("tier")))

    @action(detail=False, methods=["get"], url_path="calendar")
    def calendar(self, request):
        """
        Days in ?month=YYYY-MM (default: current month) with something expiring.
        """
        query = ExpiryCalendarQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        v = query.validated_data

        report = self._report(v)
        if v.get("month"):
            year, month = (int(part) for part in v["month"].split("-"))
        else:
            year, month = report.today.year, report.today.month

        days = []
        for day, items in report.calendar(year, month).items():
            days.append(
                {
                    "date": day.isoformat(),
                    "count": len(items),
                    "value": str(sum(i.value_at_risk for i in items)),
                    "items": [i.to_dict() for i in items],
                }
            )

        return Response({"month": f"{year:04d}-{month:02d}", "days": days})

    @extend_schema(
        request=VendorReturnSerializer,
        responses={
            200: OpenApiResponse(description="Return applied"),
            400: OpenApiResponse(description="Invalid quantity"),
            404: OpenApiResponse(description="Batch not found"),
        },
    )
    @action(detail=False, methods=["post"], url_path="returns")
    def returns(self, request):
        """
        Return (part of) a batch to the vendor.

        The batch must have stock on hand. quantity defaults to the full
        on-hand amount; a quantity outside [1, on hand] is rejected with 400
        and nothing is written.
        """
        serializer = VendorReturnSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        v = serializer.validated_data

        try:
            snapshot = get_product_snapshot(v["product_id"])
            report = classify_expiry([snapshot], v.get("today") or timezone.localdate())
            item = next(
                (i for i in report.items if i.batch_number == v["batch_number"]),
                None,
            )
            if item is None:
                raise BatchNotFound(
                    f"No stock on hand for batch {v['batch_number']}",
                    batch_number=v["batch_number"],
                )

            if "quantity" in v and not 1 <= v["quantity"] <= item.quantity:
                raise InvalidQuantity(
                    f"Return quantity must be between 1 and {item.quantity} (on hand)",
                    quantity=v["quantity"],
                    on_hand=item.quantity,
                )

            workflow = ReturnToVendorWorkflow()
            workflow.select(item)
            if "quantity" in v:
                workflow.enter_quantity(v["quantity"])
            refund_preview = workflow.refund_preview
            quantity = workflow.quantity

            result = workflow.submit(user=request.user)
        except InventoryError as exc:
            return inventory_error_response(exc)

        return Response(
            {
                "batch": StockBatchSerializer(result.batch).data,
                "quantity": quantity,
                "refund_preview": str(refund_preview),
                "stock_level": result.product.stock_level,
                "movement_id": str(result.movement.pk) if result.movement else None,
            },
            status=status.HTTP_200_OK,
        )
