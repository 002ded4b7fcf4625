# branches/models/branch.py

import uuid

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone


class Branch(models.Model):
    """
    Represents a physical shop / branch.

    Guarantees:
    - Branches are stable master-data (the catalog is scoped by branch)
    - code is optional, but if provided it must be unique
    - archived_at is derived from status (set on archive, cleared on re-activate)
    """

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        ARCHIVED = "archived", "Archived"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255)

    code = models.CharField(
        max_length=50,
        null=True,
        blank=True,
        help_text="Unique branch code (optional). If set, must be unique.",
        db_index=True,
    )

    address = models.TextField(blank=True)
    phone = models.CharField(max_length=50, blank=True)
    email = models.EmailField(blank=True)
    manager_name = models.CharField(max_length=255, blank=True)

    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True,
    )
    archived_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["code"],
                condition=Q(code__isnull=False) & ~Q(code=""),
                name="uniq_branch_code_when_present",
            ),
        ]

    def clean(self):
        if not (self.name or "").strip():
            raise ValidationError({"name": "name is required"})

        code = (self.code or "").strip()
        self.code = code or None
        if code:
            clash = Branch.objects.filter(code=code).exclude(pk=self.pk)
            if clash.exists():
                raise ValidationError({"code": "Branch code already exists"})

    def save(self, *args, **kwargs):
        if self.status == self.Status.ARCHIVED:
            if self.archived_at is None:
                self.archived_at = timezone.now()
        elif self.status == self.Status.ACTIVE:
            self.archived_at = None

        self.full_clean()
        super().save(*args, **kwargs)

    @property
    def is_active(self) -> bool:
        return self.status == self.Status.ACTIVE

    def __str__(self):
        c = (self.code or "").strip()
        if c:
            return f"{self.name} ({c})"
        return self.name
