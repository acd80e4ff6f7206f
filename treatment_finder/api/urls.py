"""
Treatment Finder API URL Configuration

RESTful API routes using DRF routers.
"""

from django.urls import include, path
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularRedocView,
    SpectacularSwaggerView,
)
from rest_framework.routers import DefaultRouter

from .views import IngestView, MessagingOutcomeWebhookView, OpportunityViewSet

router = DefaultRouter()
router.register(r"opportunities", OpportunityViewSet, basename="opportunity")

urlpatterns = [
    # Snapshot ingestion (shared secret)
    path("ingest/", IngestView.as_view(), name="api-ingest"),
    # Messaging vendor outcome callback (shared secret)
    path(
        "webhooks/messaging/outcome/",
        MessagingOutcomeWebhookView.as_view(),
        name="api-messaging-outcome",
    ),
    # API Documentation
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    path("redoc/", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    # Router URLs
    path("", include(router.urls)),
]
