# stock_entry/apps.py

from django.apps import AppConfig


class StockEntryConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "stock_entry"
    verbose_name = "Stock Entry"
