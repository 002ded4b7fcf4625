# products/admin.py
"""
=====================================================
PATH: products/admin.py
=====================================================

Admin rules (ledger-safe stock intake):

- Product master data is edited here; stock_level is read-only.
- NEW inline batch rows are not saved directly; they are routed through
  receive_stock() so the batch ledger and the RECEIPT movement stay in step.
  A row whose batch number already exists increments that batch.
- Existing StockBatch rows are read-only. Corrections go through the API
  (PATCH quantity / write-off / vendor return).
- StockMovement is an append-only audit list.

Important:
- Validation MUST happen inside InlineFormSet.clean() so Django admin can render
  inline errors on the page (instead of crashing into a ValidationError screen).
- StockBatch.id is a UUID with default=uuid4, so unsaved inline instances
  already carry a pk. Persisted rows are detected via _state.adding / DB lookup.
"""

from __future__ import annotations

from datetime import timedelta

from django.contrib import admin
from django.core.exceptions import ValidationError
from django.forms.models import BaseInlineFormSet
from django.utils import timezone

from products.models import Product, StockBatch, StockMovement
from products.services.expiry import classify_days
from products.services.stock_mutations import receive_stock


# =====================================================
# HELPERS
# =====================================================

def _is_persisted_stockbatch(inst: StockBatch | None) -> bool:
    if inst is None:
        return False

    if getattr(inst._state, "adding", True) is False:
        return True

    pk = getattr(inst, "pk", None)
    if not pk:
        return False
    return StockBatch.objects.filter(pk=pk).exists()


def _is_blank_new_row(cd: dict) -> bool:
    batch_number = (cd.get("batch_number") or "").strip()
    return (
        (not batch_number)
        and (not cd.get("expiry_date"))
        and (cd.get("quantity") in (None, "", 0))
    )


# =====================================================
# INLINE FORMSET (VALIDATION LIVES HERE)
# =====================================================

class StockBatchInlineFormSet(BaseInlineFormSet):
    def clean(self):
        super().clean()

        any_errors = False

        for form in self.forms:
            cd = getattr(form, "cleaned_data", None)
            if cd is None:
                continue

            if cd.get("DELETE"):
                form.add_error(None, "Stock batches cannot be deleted. Use write-off or return instead.")
                any_errors = True
                continue

            inst = getattr(form, "instance", None)
            if _is_persisted_stockbatch(inst):
                if form.has_changed():
                    form.add_error(
                        None,
                        "Existing batches are read-only here. "
                        "Receive into the same batch number to add stock.",
                    )
                    any_errors = True
                continue

            if _is_blank_new_row(cd):
                continue

            qty = cd.get("quantity")
            if qty in (None, "") or int(qty) <= 0:
                form.add_error("quantity", "quantity must be > 0 for stock intake.")
                any_errors = True

        if any_errors:
            raise ValidationError("Please correct the stock intake errors below.")


# =====================================================
# STOCK BATCH INLINE
# =====================================================

class StockBatchInline(admin.TabularInline):
    """
    Add stock batches directly on the Product page.

    - New rows => receive_stock()
    - Existing rows => read-only
    """

    model = StockBatch
    formset = StockBatchInlineFormSet

    extra = 1
    can_delete = False
    show_change_link = False

    fields = ("batch_number", "expiry_date", "quantity", "cost_price", "created_at")
    readonly_fields = ("created_at",)

    def get_formset(self, request, obj=None, **kwargs):
        # blank batch number -> DEFAULT, blank expiry -> service default
        formset = super().get_formset(request, obj, **kwargs)
        base_fields = getattr(formset.form, "base_fields", {})
        for name in ("batch_number", "expiry_date"):
            if name in base_fields:
                base_fields[name].required = False
        return formset


# =====================================================
# PRODUCT
# =====================================================

@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = (
        "sku",
        "gtin",
        "name_en",
        "branch",
        "category",
        "price",
        "stock_level",
        "is_low_stock",
        "is_active",
    )
    list_filter = ("is_active", "branch", "category", "created_at")
    search_fields = ("sku", "gtin", "name_en", "name_mm", "generic_name")
    list_select_related = ("branch",)
    ordering = ("name_en",)
    readonly_fields = ("stock_level", "created_at", "updated_at")

    inlines = [StockBatchInline]

    def save_formset(self, request, form, formset, change):
        if formset.model is not StockBatch:
            return super().save_formset(request, form, formset, change)

        parent_product = form.instance
        received = []

        for f in getattr(formset, "forms", []):
            cd = getattr(f, "cleaned_data", None)
            if not cd or cd.get("DELETE"):
                continue
            if _is_persisted_stockbatch(getattr(f, "instance", None)):
                continue
            if _is_blank_new_row(cd):
                continue

            result = receive_stock(
                product_id=parent_product.pk,
                batch_number=cd.get("batch_number") or "",
                quantity=int(cd["quantity"]),
                expiry_date=cd.get("expiry_date"),
                cost_price=cd.get("cost_price"),
                user=request.user,
            )
            received.append(result.batch)

        # Django admin builds its change message from these
        formset.new_objects = received
        formset.changed_objects = []
        formset.deleted_objects = []


# =====================================================
# STOCK BATCH (VIEW-ONLY LIST)
# =====================================================

@admin.register(StockBatch)
class StockBatchAdmin(admin.ModelAdmin):
    list_display = (
        "product",
        "batch_number",
        "expiry_date",
        "quantity",
        "cost_price",
        "expiry_status",
        "created_at",
    )
    list_filter = ("expiry_date", "product__branch")
    search_fields = ("batch_number", "product__name_en", "product__sku", "product__gtin")
    ordering = ("expiry_date", "created_at")
    readonly_fields = ("product", "batch_number", "expiry_date", "quantity", "cost_price", "created_at")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False if obj else True

    def has_delete_permission(self, request, obj=None):
        return False

    def expiry_status(self, obj):
        days = (obj.expiry_date - timezone.localdate()).days
        if days < 0:
            return "EXPIRED"
        return classify_days(days)

    expiry_status.short_description = "Expiry Status"


# =====================================================
# STOCK MOVEMENT (AUDIT)
# =====================================================

@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = (
        "created_at",
        "product",
        "batch",
        "movement_type",
        "reason",
        "quantity_requested",
        "quantity_applied",
        "performed_by",
    )
    list_filter = ("reason", "movement_type", "created_at")
    search_fields = ("product__name_en", "product__sku", "batch__batch_number", "note")
    date_hierarchy = "created_at"

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
