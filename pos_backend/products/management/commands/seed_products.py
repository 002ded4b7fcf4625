# products/management/commands/seed_products.py

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone

from branches.models import Branch
from products.models import Product
from products.services.catalog import create_product
from products.services.stock_mutations import receive_stock

# (sku, gtin, name, category, price, [(batch_number, days_to_expiry, qty, cost), ...])
SEED_PRODUCTS = [
    ("AMOX-500", "8850000000011", "Amoxicillin 500mg", "Antibiotics", "1200.00", [
        ("AMX-2401", 12, 30, "800.00"),
        ("AMX-2402", 200, 50, "820.00"),
    ]),
    ("PARA-500", "8850000000028", "Paracetamol 500mg", "Pain Relief", "300.00", [
        ("PAR-2401", 45, 120, "150.00"),
    ]),
    ("VITA-C", "8850000000035", "Vitamin C 1000mg", "Vitamins", "800.00", [
        ("VTC-2401", 75, 40, "500.00"),
    ]),
    ("FLU-STOP", "8850000000042", "Flu Stop Syrup", "Cold & Flu", "1500.00", [
        ("FLU-2401", -5, 6, "900.00"),
        ("FLU-2402", 365, 24, "950.00"),
    ]),
    ("ART-LUM", None, "Artemether/Lumefantrine", "Antimalarial", "2500.00", [
        ("", 400, 15, "1800.00"),
    ]),
]


class Command(BaseCommand):
    help = "Seed one branch with products and batches spread across every expiry tier."

    def add_arguments(self, parser):
        parser.add_argument("--branch", type=str, default="MAIN", help="Branch code (created if missing).")
        parser.add_argument("--branch-name", type=str, default="Main Branch")

    @transaction.atomic
    def handle(self, *args, **options):
        code = (options.get("branch") or "").strip()
        if not code:
            raise CommandError("--branch must not be blank.")

        branch, created = Branch.objects.get_or_create(
            code=code,
            defaults={"name": options.get("branch_name") or code},
        )
        self.stdout.write(f"{'created' if created else 'exists:'} branch {branch.code}")

        today = timezone.localdate()
        received = 0

        for sku, gtin, name, category, price, batches in SEED_PRODUCTS:
            product = Product.objects.filter(sku=sku).first()
            if product is not None:
                self.stdout.write(f"exists:  {sku}")
                continue

            product = create_product(
                sku=sku,
                gtin=gtin,
                name_en=name,
                category=category,
                price=Decimal(price),
                branch_id=branch.pk,
            )
            for batch_number, days, qty, cost in batches:
                receive_stock(
                    product_id=product.pk,
                    batch_number=batch_number,
                    quantity=qty,
                    expiry_date=today + timedelta(days=days),
                    cost_price=cost,
                )
                received += 1
            self.stdout.write(f"created: {sku} ({len(batches)} batches)")

        self.stdout.write(self.style.SUCCESS(f"Products seeded. Batches received: {received}"))
