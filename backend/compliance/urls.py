"""
URL patterns for the `compliance` app.

Catalogue CRUD, the public search and the M value calculation.
"""
from django.urls import path

from .views import (
    CalculationExportView,
    CalculationView,
    ChemicalDetailView,
    ChemicalImportView,
    ChemicalListView,
    ChemicalRegulationView,
    ChemicalSearchView,
    ImportHistoryListView,
    RegulationDetailView,
    RegulationListView,
)

urlpatterns = [
    path("chemicals/", ChemicalListView.as_view(), name="chemical-list"),
    path("chemicals/import/", ChemicalImportView.as_view(), name="chemical-import"),
    path("chemicals/<int:pk>/", ChemicalDetailView.as_view(), name="chemical-detail"),
    path("regulations/", RegulationListView.as_view(), name="regulation-list"),
    path("regulations/<int:pk>/", RegulationDetailView.as_view(), name="regulation-detail"),
    path(
        "chemical-regulations/",
        ChemicalRegulationView.as_view(),
        name="chemical-regulations",
    ),
    path("search/", ChemicalSearchView.as_view(), name="search"),
    path("calculation/", CalculationView.as_view(), name="calculation"),
    path(
        "calculation/export/<str:export_format>/",
        CalculationExportView.as_view(),
        name="calculation-export",
    ),
    path("imports/history/", ImportHistoryListView.as_view(), name="import-history"),
]
