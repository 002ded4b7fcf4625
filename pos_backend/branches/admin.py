# branches/admin.py

from django.contrib import admin

from branches.models import Branch


@admin.register(Branch)
class BranchAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "status", "manager_name", "phone", "created_at")
    list_filter = ("status",)
    search_fields = ("name", "code", "manager_name")
    readonly_fields = ("archived_at", "created_at", "updated_at")
    ordering = ("name",)
