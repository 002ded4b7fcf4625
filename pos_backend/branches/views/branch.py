# branches/views/branch.py

"""
BRANCH VIEWSET

Purpose:
- Branch directory for staff (authenticated)
- Master-data writes for catalog managers (admin / manager)

Visibility:
- admin / manager: every non-archived branch (or all with ?include_archived=true)
- other staff: only their own branch
"""

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models.deletion import ProtectedError
from rest_framework import status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from branches.models import Branch
from branches.serializers import BranchSerializer
from permissions.roles import (
    CAP_CATALOG_MANAGE,
    HasCapability,
    user_has_capability,
)


def _validation_detail(exc: DjangoValidationError):
    if hasattr(exc, "message_dict"):
        return exc.message_dict
    return exc.messages


class BranchViewSet(viewsets.ModelViewSet):
    """
    Branch / shop API
    """

    serializer_class = BranchSerializer
    permission_classes = [IsAuthenticated]

    required_capability = None

    def get_permissions(self):
        self.required_capability = None

        if self.action in {"list", "retrieve"}:
            return [IsAuthenticated()]

        self.required_capability = CAP_CATALOG_MANAGE
        return [IsAuthenticated(), HasCapability()]

    def get_queryset(self):
        user = self.request.user
        qs = Branch.objects.all().order_by("name")

        if not user_has_capability(user, CAP_CATALOG_MANAGE):
            branch_id = getattr(user, "branch_id", None)
            if not branch_id:
                return qs.none()
            return qs.filter(id=branch_id)

        include_archived = (
            self.request.query_params.get("include_archived") or ""
        ).strip().lower() in ("1", "true", "yes")
        if not include_archived and self.action == "list":
            qs = qs.exclude(status=Branch.Status.ARCHIVED)
        return qs

    def create(self, request, *args, **kwargs):
        try:
            return super().create(request, *args, **kwargs)
        except DjangoValidationError as exc:
            return Response({"detail": _validation_detail(exc)}, status=status.HTTP_400_BAD_REQUEST)

    def update(self, request, *args, **kwargs):
        try:
            return super().update(request, *args, **kwargs)
        except DjangoValidationError as exc:
            return Response({"detail": _validation_detail(exc)}, status=status.HTTP_400_BAD_REQUEST)

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()

        if Branch.objects.count() <= 1:
            return Response(
                {"detail": "Cannot delete the only remaining branch."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            instance.delete()
        except ProtectedError:
            return Response(
                {"detail": "Branch still owns products. Archive it instead."},
                status=status.HTTP_409_CONFLICT,
            )
        return Response(status=status.HTTP_204_NO_CONTENT)
