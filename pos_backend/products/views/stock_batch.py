"""
======================================================
PATH: products/views/stock_batch.py
======================================================
STOCK BATCH VIEWSET

Purpose:
- Read StockBatch rows (branch / product filters).
- Receive stock through the mutation service (create-or-increment).
- Edit batch metadata and correct on-hand counts.
- Stock movement report (audit trail).

Rules:
- POST is a RECEIPT: same batch number increments, new number opens a batch.
- PATCH edits batch_number / expiry_date / cost_price; "quantity" is a
  stock count correction applied as an ADJUSTMENT through the ledger.
- PUT and DELETE are refused; batches leave the shelf via write-off/return.
"""

from __future__ import annotations

from datetime import datetime

from django.db import transaction
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from permissions.roles import (
    CAP_CATALOG_MANAGE,
    CAP_INVENTORY_ADJUST,
    CAP_INVENTORY_RECEIVE,
    CAP_INVENTORY_VIEW,
    HasAnyCapability,
    HasCapability,
    user_has_capability,
)
from products.models import StockBatch, StockMovement
from products.serializers import (
    StockBatchPatchSerializer,
    StockBatchSerializer,
    StockMovementSerializer,
    StockReceiveSerializer,
)
from products.services.exceptions import InventoryError
from products.services.stock_mutations import (
    receive_stock,
    set_batch_quantity,
    update_batch_details,
)
from products.views.errors import inventory_error_response


class StockBatchViewSet(viewsets.ModelViewSet):
    """
    Stock batch endpoints.

    - GET    /                      list (filters: product, batch_number, branch_id)
    - POST   /                      receive stock
    - PATCH  /{id}/                 metadata edit and/or quantity correction
    - GET    /movements/report/     audit trail
    """

    serializer_class = StockBatchSerializer
    permission_classes = [IsAuthenticated]
    filterset_fields = ["product", "batch_number"]

    required_capability = None
    required_any_capabilities = None

    def get_permissions(self):
        # reset per request to avoid state leaking between actions
        self.required_capability = None
        self.required_any_capabilities = None

        if self.action in {"list", "retrieve", "movement_report"}:
            self.required_any_capabilities = {CAP_INVENTORY_VIEW, CAP_INVENTORY_ADJUST}
            return [IsAuthenticated(), HasAnyCapability()]

        if self.action == "create":
            self.required_capability = CAP_INVENTORY_RECEIVE
            return [IsAuthenticated(), HasCapability()]

        if self.action == "partial_update":
            self.required_capability = CAP_INVENTORY_ADJUST
            return [IsAuthenticated(), HasCapability()]

        return [IsAuthenticated()]

    def _get_branch_id(self):
        branch_id = (self.request.query_params.get("branch_id") or "").strip() or None
        user = self.request.user
        if not branch_id and not user_has_capability(user, CAP_CATALOG_MANAGE):
            branch_id = getattr(user, "branch_id", None)
        return branch_id

    def get_queryset(self):
        qs = StockBatch.objects.select_related("product").order_by("expiry_date", "created_at")

        branch_id = self._get_branch_id()
        if branch_id:
            qs = qs.filter(product__branch_id=branch_id)

        include_empty = (self.request.query_params.get("include_empty") or "true").strip().lower() in (
            "1", "true", "yes"
        )
        if not include_empty:
            qs = qs.filter(quantity__gt=0)

        return qs

    # -------------------------------------------------
    # CREATE (receipt)
    # -------------------------------------------------
    def create(self, request, *args, **kwargs):
        """
        POST /api/products/stock-batches/

        Body: product_id (or productId), quantity, batch_number?, expiry_date?,
        cost_price?, unit?, location?
        """
        serializer = StockReceiveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        v = serializer.validated_data

        try:
            result = receive_stock(
                product_id=v["product_id"],
                batch_number=v.get("batch_number") or "",
                quantity=v["quantity"],
                unit=v.get("unit"),
                location=v.get("location"),
                expiry_date=v.get("expiry_date"),
                cost_price=v.get("cost_price"),
                user=request.user,
            )
        except InventoryError as exc:
            return inventory_error_response(exc)

        data = self.get_serializer(result.batch).data
        data["created"] = result.ledger.created
        data["stock_level"] = result.product.stock_level
        return Response(data, status=status.HTTP_201_CREATED)

    # -------------------------------------------------
    # UPDATE (restricted)
    # -------------------------------------------------
    def update(self, request, *args, **kwargs):
        return Response(
            {
                "detail": (
                    "PUT is not allowed for StockBatch. "
                    "Use PATCH for batch_number, expiry_date, cost_price or quantity."
                )
            },
            status=status.HTTP_405_METHOD_NOT_ALLOWED,
        )

    def partial_update(self, request, *args, **kwargs):
        """
        PATCH /api/products/stock-batches/{id}/
        """
        instance = self.get_object()
        serializer = StockBatchPatchSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        v = serializer.validated_data

        try:
            with transaction.atomic():
                update_batch_details(
                    batch_id=instance.pk,
                    batch_number=v.get("batch_number"),
                    expiry_date=v.get("expiry_date"),
                    cost_price=v.get("cost_price"),
                )
                if "quantity" in v:
                    set_batch_quantity(
                        batch_id=instance.pk,
                        quantity=v["quantity"],
                        user=request.user,
                        note=v.get("note") or "",
                    )
        except InventoryError as exc:
            return inventory_error_response(exc)

        instance.refresh_from_db()
        return Response(self.get_serializer(instance).data, status=status.HTTP_200_OK)

    def destroy(self, request, *args, **kwargs):
        return Response(
            {"detail": "Stock batches cannot be deleted. Use write-off or return instead."},
            status=status.HTTP_405_METHOD_NOT_ALLOWED,
        )

    # -------------------------------------------------
    # REPORT: Stock movements (filterable)
    # -------------------------------------------------
    @action(detail=False, methods=["get"], url_path="movements/report")
    def movement_report(self, request):
        qs = StockMovement.objects.select_related("product", "batch", "performed_by")

        product_id = (request.query_params.get("product_id") or "").strip()
        reason = (request.query_params.get("reason") or "").strip().upper()
        movement_type = (request.query_params.get("movement_type") or "").strip().upper()
        date_from = (request.query_params.get("date_from") or "").strip()
        date_to = (request.query_params.get("date_to") or "").strip()

        branch_id = self._get_branch_id()
        if branch_id:
            qs = qs.filter(product__branch_id=branch_id)
        if product_id:
            qs = qs.filter(product_id=product_id)
        if reason:
            qs = qs.filter(reason=reason)
        if movement_type:
            qs = qs.filter(movement_type=movement_type)

        def _parse_date(s: str):
            try:
                return datetime.strptime(s, "%Y-%m-%d").date()
            except ValueError:
                return None

        if date_from:
            d1 = _parse_date(date_from)
            if not d1:
                return Response({"detail": "date_from must be YYYY-MM-DD"}, status=400)
            qs = qs.filter(created_at__date__gte=d1)

        if date_to:
            d2 = _parse_date(date_to)
            if not d2:
                return Response({"detail": "date_to must be YYYY-MM-DD"}, status=400)
            qs = qs.filter(created_at__date__lte=d2)

        qs = qs.order_by("-created_at")[:500]
        data = StockMovementSerializer(qs, many=True).data
        return Response({"count": len(data), "results": data}, status=200)
