# users/management/commands/seed_users.py

from __future__ import annotations

from dataclasses import dataclass

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from branches.models import Branch
from permissions.roles import (
    ROLE_ADMIN,
    ROLE_CASHIER,
    ROLE_MANAGER,
    ROLE_PHARMACIST,
)
from users.models import User


@dataclass(frozen=True)
class SeedUserSpec:
    label: str
    role: str
    username: str
    email: str


SEED_USERS = [
    SeedUserSpec("Admin", ROLE_ADMIN, "admin", "admin@example.com"),
    SeedUserSpec("Manager", ROLE_MANAGER, "manager", "manager@example.com"),
    SeedUserSpec("Pharmacist", ROLE_PHARMACIST, "pharmacist", "pharmacist@example.com"),
    SeedUserSpec("Cashier", ROLE_CASHIER, "cashier", "cashier@example.com"),
]


def _upsert_user(*, spec: SeedUserSpec, password: str, branch) -> tuple[User, bool]:
    """
    Idempotent user seed:
    - create if missing
    - update role/staff flags/branch if exists
    """
    is_admin = spec.role == ROLE_ADMIN

    user = User.objects.filter(email=spec.email).first()
    if user is None:
        user = User.objects.create_user(
            email=spec.email,
            password=password,
            username=spec.username,
            role=spec.role,
            branch=branch,
            is_staff=True,
            is_superuser=is_admin,
        )
        return user, True

    dirty = False
    for field, value in (
        ("role", spec.role),
        ("is_staff", True),
        ("is_superuser", is_admin),
        ("branch", branch),
    ):
        if getattr(user, field) != value:
            setattr(user, field, value)
            dirty = True

    if dirty:
        user.save()

    return user, False


class Command(BaseCommand):
    help = "Seed staff users (admin, manager, pharmacist, cashier) for one branch."

    def add_arguments(self, parser):
        parser.add_argument(
            "--branch",
            type=str,
            default="",
            help="Branch code the non-admin staff belong to (optional).",
        )
        parser.add_argument(
            "--password",
            type=str,
            default="Pass1234!",
            help="Password for seeded users (default: Pass1234!)",
        )
        parser.add_argument(
            "--force-password",
            action="store_true",
            help="If set, resets password for existing seeded users too.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        branch_code = (options.get("branch") or "").strip()
        password = options.get("password") or ""
        force_password = bool(options.get("force_password"))

        if not password or len(password) < 6:
            raise CommandError("--password must be provided and at least 6 characters.")

        branch = None
        if branch_code:
            branch = Branch.objects.filter(code=branch_code).first()
            if branch is None:
                raise CommandError(f"Unknown branch code '{branch_code}'.")

        created_count = 0
        reset_count = 0

        for spec in SEED_USERS:
            user_branch = None if spec.role == ROLE_ADMIN else branch
            user, created = _upsert_user(spec=spec, password=password, branch=user_branch)

            if force_password and not created:
                user.set_password(password)
                user.save(update_fields=["password"])
                reset_count += 1

            if created:
                created_count += 1
                self.stdout.write(f"created: {spec.label} ({spec.role})")
            else:
                self.stdout.write(f"exists:  {spec.label} ({spec.role})")

        self.stdout.write("\n--- Summary ---")
        self.stdout.write(f"Created users: {created_count}")
        if force_password:
            self.stdout.write(f"Passwords reset: {reset_count}")
