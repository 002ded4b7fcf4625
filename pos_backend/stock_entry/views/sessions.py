# stock_entry/views/sessions.py

"""
======================================================
PATH: stock_entry/views/sessions.py
======================================================
STOCK ENTRY SESSION VIEWSET

- POST   /sessions/                              open a grid
- GET    /sessions/{id}/                         grid + totals + scanner status
- DELETE /sessions/{id}/                         discard the grid (no ledger effect)
- POST   /sessions/{id}/scan/                    apply one parsed scan event
- POST   /sessions/{id}/rows/                    manual row insert
- PATCH  /sessions/{id}/rows/{row_id}/           edit a row (last write wins)
- DELETE /sessions/{id}/rows/{row_id}/           remove a row
- POST   /sessions/{id}/commit/                  save every row to stock

Every action needs inventory.receive. Sessions are private to the user
that opened them. The catalog is scoped to the user's branch unless they
manage the catalog (then ?branch_id=, else every branch).
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from permissions.roles import CAP_CATALOG_MANAGE, CAP_INVENTORY_RECEIVE, HasCapability, user_has_capability
from products.services.catalog import list_products
from products.services.exceptions import InventoryError
from products.views.errors import inventory_error_response
from stock_entry.serializers import ScanEventSerializer, ScanRowCreateSerializer, ScanRowPatchSerializer
from stock_entry.services.commit import commit_grid
from stock_entry.services.sessions import (
    COMMIT_LOCK_TIMEOUT,
    create_session,
    delete_session,
    load_session,
    save_session,
    session_lock,
    settle_commit,
)

logger = logging.getLogger(__name__)


class StockEntrySessionViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_INVENTORY_RECEIVE
    lookup_value_regex = "[0-9a-f]+"

    def _branch_id(self):
        branch_id = (self.request.query_params.get("branch_id") or "").strip() or None
        user = self.request.user
        if not user_has_capability(user, CAP_CATALOG_MANAGE):
            branch_id = getattr(user, "branch_id", None)
        return branch_id

    def _catalog(self):
        return list_products(self._branch_id())

    def create(self, request):
        grid = create_session(request.user)
        return Response(grid.to_dict(), status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        try:
            grid = load_session(request.user, pk)
        except InventoryError as exc:
            return inventory_error_response(exc)
        return Response(grid.to_dict())

    def destroy(self, request, pk=None):
        try:
            with session_lock(request.user, pk):
                delete_session(request.user, pk)
        except InventoryError as exc:
            return inventory_error_response(exc)
        return Response(status=status.HTTP_204_NO_CONTENT)

    # -----------------------------
    # scans
    # -----------------------------
    @extend_schema(request=ScanEventSerializer, responses={200: OpenApiResponse(description="Scan outcome + grid")})
    @action(detail=True, methods=["post"], url_path="scan")
    def scan(self, request, pk=None):
        serializer = ScanEventSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        catalog = self._catalog()
        try:
            with session_lock(request.user, pk):
                grid = load_session(request.user, pk)
                outcome = grid.handle_scan(serializer.to_event(), catalog)
                save_session(request.user, grid)
        except InventoryError as exc:
            return inventory_error_response(exc)

        return Response(
            {
                "row": outcome.row.to_dict(),
                "created": outcome.created,
                "known_product": outcome.known_product,
                "focus_field": outcome.focus_field,
                "grid": grid.to_dict(),
            }
        )

    # -----------------------------
    # manual rows
    # -----------------------------
    @extend_schema(request=ScanRowCreateSerializer)
    @action(detail=True, methods=["post"], url_path="rows")
    def rows(self, request, pk=None):
        serializer = ScanRowCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            with session_lock(request.user, pk):
                grid = load_session(request.user, pk)
                row = grid.add_row(**serializer.validated_data)
                save_session(request.user, grid)
        except InventoryError as exc:
            return inventory_error_response(exc)
        return Response({"row": row.to_dict(), "grid": grid.to_dict()}, status=status.HTTP_201_CREATED)

    @extend_schema(request=ScanRowPatchSerializer)
    @action(detail=True, methods=["patch", "delete"], url_path=r"rows/(?P<row_id>[^/.]+)")
    def row_detail(self, request, pk=None, row_id=None):
        serializer = None
        if request.method != "DELETE":
            serializer = ScanRowPatchSerializer(data=request.data, partial=True)
            serializer.is_valid(raise_exception=True)

        try:
            with session_lock(request.user, pk):
                grid = load_session(request.user, pk)

                if serializer is None:
                    grid.delete_row(row_id)
                    save_session(request.user, grid)
                    return Response(status=status.HTTP_204_NO_CONTENT)

                row = grid.update_row(row_id, **serializer.validated_data)
                save_session(request.user, grid)
        except InventoryError as exc:
            return inventory_error_response(exc)

        return Response({"row": row.to_dict(), "grid": grid.to_dict()})

    # -----------------------------
    # commit
    # -----------------------------
    @extend_schema(
        responses={
            200: OpenApiResponse(description="Every row saved; committed rows removed"),
            409: OpenApiResponse(description="Another commit of this session is running"),
            503: OpenApiResponse(description="Stopped at a failing row; unprocessed rows kept"),
        }
    )
    @action(detail=True, methods=["post"], url_path="commit")
    def commit(self, request, pk=None):
        """
        Save the grid row by row. Rows saved before a failure stay saved;
        the failing row and everything after it remain in the grid.

        The loop works on a snapshot. Only the rows it settled are then
        removed from the live session, so scans and edits made while it
        ran are kept.
        """
        try:
            with session_lock(request.user, pk, scope="commit", wait=0, timeout=COMMIT_LOCK_TIMEOUT):
                snapshot = load_session(request.user, pk)
                report = commit_grid(
                    snapshot,
                    catalog=self._catalog(),
                    user=request.user,
                    branch_id=self._branch_id(),
                )
                try:
                    grid = settle_commit(request.user, pk, report.settled_row_ids)
                except InventoryError:
                    logger.warning("stock entry session %s changed state during commit", pk, exc_info=True)
                    grid = snapshot
        except InventoryError as exc:
            return inventory_error_response(exc)

        data = report.to_dict()
        data["grid"] = grid.to_dict()
        if report.failure is not None:
            return Response(data, status=report.failure.status_code)
        return Response(data, status=status.HTTP_200_OK)
