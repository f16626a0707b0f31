"""
Sitewatch URL configuration.

URL patterns for the sitewatch API endpoints.
"""

from django.urls import include, path

urlpatterns = [
    path("", include("sitewatch.api.urls")),
]
