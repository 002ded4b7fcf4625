from rest_framework import serializers

from branches.models import Branch


class BranchSerializer(serializers.ModelSerializer):
    """
    Serializer for a shop branch.
    """

    class Meta:
        model = Branch
        fields = [
            "id",
            "name",
            "code",
            "address",
            "phone",
            "email",
            "manager_name",
            "status",
            "archived_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "archived_at",
            "created_at",
            "updated_at",
        ]
        # Uniqueness is checked in Branch.clean() so the API and admin agree.
        validators = []
        extra_kwargs = {"code": {"validators": []}}
