# users/views/me.py

"""
GET /api/auth/me/

Current staff profile: role, home branch (catalog scope for non-managers)
and the effective capability list the frontend uses to show or hide
inventory actions.
"""

from drf_spectacular.utils import extend_schema
from rest_framework import serializers
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView


class MeSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    email = serializers.EmailField()
    username = serializers.CharField()
    full_name = serializers.CharField()
    role = serializers.CharField()
    branch_id = serializers.UUIDField(allow_null=True)
    branch_name = serializers.CharField(allow_null=True)
    capabilities = serializers.ListField(child=serializers.CharField())


class MeView(APIView):
    permission_classes = [IsAuthenticated]
    serializer_class = MeSerializer

    @extend_schema(
        responses={200: MeSerializer},
        description="Current staff profile with branch scope and effective capabilities",
    )
    def get(self, request):
        user = request.user
        branch = user.branch

        return Response(
            {
                "id": user.id,
                "email": user.email,
                "username": user.username,
                "full_name": f"{user.first_name} {user.last_name}".strip(),
                "role": user.role,
                "branch_id": user.branch_id,
                "branch_name": branch.name if branch else None,
                "capabilities": sorted(user.capabilities),
            }
        )
