# products/urls.py

"""
PRODUCTS URLS

Purpose:
- Register inventory routes under /api/products/
    /products/                      catalog + receive / consume / write-off
    /stock-batches/                 batches + movement report
    /expiry/                        expiry report, calendar, vendor returns
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from products.views import ExpiryViewSet, ProductViewSet, StockBatchViewSet

router = DefaultRouter()

router.register(r"products", ProductViewSet, basename="products")
router.register(r"stock-batches", StockBatchViewSet, basename="stock-batches")
router.register(r"expiry", ExpiryViewSet, basename="expiry")

urlpatterns = [
    path("", include(router.urls)),
]
