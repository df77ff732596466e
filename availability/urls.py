"""
Availability URL configuration.

URL patterns for the sync API endpoints.
"""

from django.urls import path
from . import views

app_name = "availability"

urlpatterns = [
    path("sources/<uuid:source_id>/sync/", views.manual_sync, name="manual-sync"),
]
