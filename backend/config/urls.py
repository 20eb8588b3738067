"""
Root URL configuration for the backend project.

We keep it short and simply include the URLs from the `compliance` app.
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path("admin/", admin.site.urls),
    # Catalogue, search and calculation endpoints all live under /api/
    path("api/", include("compliance.urls")),
]
