"""
URL configuration for the GIR Availability Sync service.

- /admin/          operator surfaces (sources, runs, errors, notification log)
- /api/health/     unauthenticated health check for load balancers
- /api/v1/         sync API (staff only)
- /api/schema/, /api/docs/, /api/redoc/   OpenAPI schema and viewers
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularRedocView,
    SpectacularSwaggerView,
)

from availability.views import health_check

schema_patterns = [
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    path("redoc/", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
]

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/health/", health_check, name="health-check"),
    path("api/v1/", include("availability.urls")),
    path("api/", include(schema_patterns)),
]
