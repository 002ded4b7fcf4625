# products/views/product.py

"""
PRODUCT VIEWSET

Purpose:
- Staff catalog endpoints (CRUD + low-stock alerts)
- Product-scoped stock mutations: receive / consume / write-off

Key rules:
- Branch-scoped: ?branch_id=<uuid>; staff without catalog.manage only
  see their own branch.
- stock_level is read-only here; it moves only through the mutation service.
- GTIN / SKU clashes answer 409 Conflict.
- A product with stock on hand cannot be deleted.
"""

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import F, Q
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from permissions.roles import (
    CAP_CATALOG_MANAGE,
    CAP_INVENTORY_ADJUST,
    CAP_INVENTORY_RECEIVE,
    CAP_INVENTORY_VIEW,
    CAP_POS_SELL,
    HasCapability,
    user_has_capability,
)
from products.models import Product
from products.serializers import (
    ProductSerializer,
    StockBatchSerializer,
    StockConsumeSerializer,
    StockReceiveSerializer,
    StockWriteOffSerializer,
)
from products.services.catalog import create_product, product_queryset, update_product
from products.services.exceptions import InventoryError
from products.services.stock_mutations import (
    MutationResult,
    consume_stock,
    receive_stock,
    return_or_write_off,
)
from products.views.errors import inventory_error_response, validation_error_response


class ProductViewSet(viewsets.ModelViewSet):
    """
    Product endpoints.

    - CRUD
    - POST {id}/receive/     create-or-increment a batch
    - POST {id}/consume/     remove sold units from a batch
    - POST {id}/write-off/   return / write off units from a batch
    - GET  alerts/low-stock/
    """

    serializer_class = ProductSerializer
    permission_classes = [IsAuthenticated]

    required_capability = None

    ACTION_CAPABILITIES = {
        "list": CAP_INVENTORY_VIEW,
        "retrieve": CAP_INVENTORY_VIEW,
        "low_stock_alerts": CAP_INVENTORY_VIEW,
        "create": CAP_CATALOG_MANAGE,
        "update": CAP_CATALOG_MANAGE,
        "partial_update": CAP_CATALOG_MANAGE,
        "destroy": CAP_CATALOG_MANAGE,
        "receive": CAP_INVENTORY_RECEIVE,
        "consume": CAP_POS_SELL,
        "write_off": CAP_INVENTORY_ADJUST,
    }

    def get_permissions(self):
        # reset per request to avoid state leaking between actions
        self.required_capability = self.ACTION_CAPABILITIES.get(self.action)
        if self.required_capability is None:
            return [IsAuthenticated()]
        return [IsAuthenticated(), HasCapability()]

    def _get_branch_id(self):
        branch_id = (self.request.query_params.get("branch_id") or "").strip() or None
        user = self.request.user
        if not branch_id and not user_has_capability(user, CAP_CATALOG_MANAGE):
            branch_id = getattr(user, "branch_id", None)
        return branch_id

    def get_queryset(self):
        include_inactive = (
            self.request.query_params.get("include_inactive") or ""
        ).strip().lower() in ("1", "true", "yes")
        if self.action not in {"list", "low_stock_alerts"}:
            include_inactive = True

        qs = product_queryset(self._get_branch_id(), include_inactive=include_inactive)

        q = (self.request.query_params.get("q") or "").strip()
        if q:
            qs = qs.filter(
                Q(name_en__icontains=q)
                | Q(name_mm__icontains=q)
                | Q(generic_name__icontains=q)
                | Q(sku__icontains=q)
                | Q(gtin__icontains=q)
            )
        return qs

    def _fresh(self, product_id) -> Product:
        return product_queryset(include_inactive=True).get(pk=product_id)

    def _mutation_response(self, result: MutationResult, *, http_status=status.HTTP_200_OK) -> Response:
        product = self._fresh(result.product.pk)
        return Response(
            {
                "product": ProductSerializer(product, context=self.get_serializer_context()).data,
                "batch": StockBatchSerializer(result.batch).data if result.batch else None,
                "applied_quantity": result.applied_quantity,
                "clamped": result.ledger.clamped,
                "movement_id": str(result.movement.pk) if result.movement else None,
            },
            status=http_status,
        )

    # -----------------------------
    # Catalog writes (service-backed)
    # -----------------------------
    @extend_schema(
        request=ProductSerializer,
        responses={
            201: ProductSerializer,
            409: OpenApiResponse(description="GTIN or SKU already in use"),
        },
    )
    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            product = create_product(serializer.to_service_payload())
        except InventoryError as exc:
            return inventory_error_response(exc)
        except DjangoValidationError as exc:
            return validation_error_response(exc)

        data = self.get_serializer(self._fresh(product.pk)).data
        return Response(data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        instance = self.get_object()
        serializer = self.get_serializer(instance, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)

        try:
            product = update_product(instance.pk, serializer.to_service_payload())
        except InventoryError as exc:
            return inventory_error_response(exc)
        except DjangoValidationError as exc:
            return validation_error_response(exc)

        return Response(self.get_serializer(self._fresh(product.pk)).data)

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        if int(instance.stock_level or 0) > 0:
            return Response(
                {
                    "detail": "Product still has stock on hand. Write it off or deactivate the product instead.",
                    "code": "stock_on_hand",
                },
                status=status.HTTP_409_CONFLICT,
            )
        instance.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    # -----------------------------
    # Stock mutations
    # -----------------------------
    @extend_schema(request=StockReceiveSerializer, responses={200: OpenApiResponse(description="Mutation result")})
    @action(detail=True, methods=["post"], url_path="receive")
    def receive(self, request, pk=None):
        """
        POST /api/products/products/{id}/receive/

        Same batch number -> quantity increments (cost overwritten when > 0).
        New batch number -> new batch. Blank batch number -> "DEFAULT".
        """
        product = self.get_object()
        serializer = StockReceiveSerializer(data=request.data, require_product=False)
        serializer.is_valid(raise_exception=True)
        v = serializer.validated_data

        try:
            result = receive_stock(
                product_id=product.pk,
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
        except DjangoValidationError as exc:
            return validation_error_response(exc)

        return self._mutation_response(result)

    @extend_schema(request=StockConsumeSerializer, responses={200: OpenApiResponse(description="Mutation result")})
    @action(detail=True, methods=["post"], url_path="consume")
    def consume(self, request, pk=None):
        product = self.get_object()
        serializer = StockConsumeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        v = serializer.validated_data

        try:
            result = consume_stock(
                product_id=product.pk,
                batch_number=v.get("batch_number") or "",
                quantity=v["quantity"],
                user=request.user,
            )
        except InventoryError as exc:
            return inventory_error_response(exc)

        return self._mutation_response(result)

    @extend_schema(request=StockWriteOffSerializer, responses={200: OpenApiResponse(description="Mutation result")})
    @action(detail=True, methods=["post"], url_path="write-off")
    def write_off(self, request, pk=None):
        product = self.get_object()
        serializer = StockWriteOffSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        v = serializer.validated_data

        try:
            result = return_or_write_off(
                product_id=product.pk,
                batch_number=v["batch_number"],
                quantity=v["quantity"],
                reason=v.get("reason") or "WRITE_OFF",
                user=request.user,
            )
        except InventoryError as exc:
            return inventory_error_response(exc)

        return self._mutation_response(result)

    # -----------------------------
    # Alerts: Low stock
    # -----------------------------
    @extend_schema(
        parameters=[
            OpenApiParameter(name="threshold", type=int, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="branch_id", type=str, location=OpenApiParameter.QUERY, required=False),
        ],
        responses={200: ProductSerializer(many=True)},
    )
    @action(detail=False, methods=["get"], url_path="alerts/low-stock")
    def low_stock_alerts(self, request):
        """
        GET /api/products/products/alerts/low-stock/

        Optional query params:
        - threshold=<int> (defaults to each product's min_stock_level)
        - include_inactive=true|false (default false)
        - branch_id=<uuid>
        """
        qs = self.get_queryset()

        raw_threshold = (request.query_params.get("threshold") or "").strip()
        if raw_threshold:
            try:
                threshold = int(raw_threshold)
                if threshold < 0:
                    raise ValueError
            except ValueError:
                return Response(
                    {"detail": "threshold must be a non-negative integer"}, status=400
                )
            qs = qs.filter(stock_level__lte=threshold)
        else:
            qs = qs.filter(stock_level__lte=F("min_stock_level"))

        data = self.get_serializer(qs, many=True).data
        return Response({"count": len(data), "results": data})
