# branches/urls.py

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from branches.views import BranchViewSet

router = DefaultRouter()
router.register(r"branches", BranchViewSet, basename="branches")

urlpatterns = [
    path("", include(router.urls)),
]
