from django.contrib import admin
from django.urls import include, path

from treatment_finder.api.views import HealthCheckView

urlpatterns = [
    # Health check (no auth)
    path("health/", HealthCheckView.as_view(), name="health"),
    path("api/v1/", include("treatment_finder.api.urls")),
    path("admin/", admin.site.urls),
    # Prometheus exposition at /metrics
    path("", include("django_prometheus.urls")),
]
