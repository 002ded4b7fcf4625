import uuid
from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("branches", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("sku", models.CharField(db_index=True, max_length=128, unique=True)),
                ("gtin", models.CharField(blank=True, help_text="Global Trade Item Number (barcode). Unique when present.", max_length=64, null=True)),
                ("name_en", models.CharField(db_index=True, max_length=255)),
                ("name_mm", models.CharField(blank=True, max_length=255)),
                ("generic_name", models.CharField(blank=True, max_length=255)),
                ("category", models.CharField(db_index=True, default="Uncategorized", max_length=128)),
                ("description", models.TextField(blank=True)),
                ("price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("unit", models.CharField(default="PCS", max_length=32)),
                ("min_stock_level", models.PositiveIntegerField(default=10)),
                ("stock_level", models.PositiveIntegerField(default=0)),
                ("location", models.CharField(blank=True, max_length=128)),
                ("requires_prescription", models.BooleanField(default=False)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("branch", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="products", to="branches.branch")),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["branch", "name_en"], name="product_branch_name_idx"),
                    models.Index(fields=["gtin"], name="product_gtin_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("gtin__isnull", False), models.Q(("gtin", ""), _negated=True)),
                        fields=("gtin",),
                        name="uniq_product_gtin_when_present",
                    ),
                    models.CheckConstraint(condition=models.Q(("price__gte", 0)), name="chk_product_price_gte_zero"),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockBatch",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("batch_number", models.CharField(help_text="Supplier / lot reference, unique per product", max_length=128)),
                ("expiry_date", models.DateField()),
                ("quantity", models.PositiveIntegerField(default=0, help_text="On-hand quantity (ledger-managed only)")),
                ("cost_price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Unit cost for this batch", max_digits=12)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("product", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="batches", to="products.product")),
            ],
            options={
                "ordering": ["expiry_date", "created_at"],
                "indexes": [
                    models.Index(fields=["product", "expiry_date"], name="batch_product_expiry_idx"),
                    models.Index(fields=["expiry_date"], name="batch_expiry_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("product", "batch_number"), name="unique_batch_number_per_product"),
                    models.CheckConstraint(condition=models.Q(("quantity__gte", 0)), name="chk_stockbatch_quantity_gte_zero"),
                    models.CheckConstraint(condition=models.Q(("cost_price__gte", 0)), name="chk_stockbatch_cost_gte_zero"),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockMovement",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("movement_type", models.CharField(choices=[("IN", "Stock In"), ("OUT", "Stock Out")], max_length=3)),
                ("reason", models.CharField(choices=[("RECEIPT", "Stock Receipt"), ("SALE", "Sale"), ("RETURN", "Return to Vendor"), ("WRITE_OFF", "Write-off"), ("ADJUSTMENT", "Manual Adjustment")], max_length=20)),
                ("quantity_requested", models.PositiveIntegerField()),
                ("quantity_applied", models.PositiveIntegerField()),
                ("unit_cost_snapshot", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Unit cost from the batch at movement time (immutable).", max_digits=12)),
                ("note", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("batch", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="stock_movements", to="products.stockbatch")),
                ("performed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="stock_movements", to=settings.AUTH_USER_MODEL)),
                ("product", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="stock_movements", to="products.product")),
            ],
            options={
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["created_at"], name="movement_created_idx"),
                    models.Index(fields=["reason"], name="movement_reason_idx"),
                    models.Index(fields=["product", "created_at"], name="movement_product_created_idx"),
                    models.Index(fields=["batch", "created_at"], name="movement_batch_created_idx"),
                ],
            },
        ),
    ]
