# backend/marketplace/urls.py
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import JobViewSet, ProposalViewSet

app_name = "marketplace"

router = DefaultRouter(trailing_slash="/?")
router.register(r"jobs", JobViewSet, basename="jobs")
router.register(r"proposals", ProposalViewSet, basename="proposals")

urlpatterns = [
    path("", include(router.urls)),
]
