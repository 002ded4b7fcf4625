# products/tests/utils.py

from __future__ import annotations

from decimal import Decimal

from django.contrib.auth import get_user_model

from branches.models import Branch
from products.models import Product

User = get_user_model()


def make_branch(name="Main Branch", code="MAIN") -> Branch:
    return Branch.objects.create(name=name, code=code)


def make_product(*, sku="PCM-500", name="Paracetamol 500mg", gtin=None, branch=None, **extra) -> Product:
    extra.setdefault("price", Decimal("100.00"))
    return Product.objects.create(sku=sku, gtin=gtin, name_en=name, branch=branch, **extra)


def make_user(role="admin", *, email=None, branch=None):
    return User.objects.create_user(
        email=email or f"{role}@example.com",
        password="password123",
        role=role,
        branch=branch,
    )
