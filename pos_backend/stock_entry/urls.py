# stock_entry/urls.py

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from stock_entry.views import StockEntrySessionViewSet

router = DefaultRouter()
router.register(r"sessions", StockEntrySessionViewSet, basename="stock-entry-session")

urlpatterns = [
    path("", include(router.urls)),
]
