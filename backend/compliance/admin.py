"""Django admin registrations, handy for fixing catalogue data by hand."""
from django.contrib import admin

from .models import Chemical, ChemicalRegulation, ImportHistory, Regulation, RegulationUpdate


class ChemicalRegulationInline(admin.TabularInline):
    model = ChemicalRegulation
    extra = 0
    fields = ["regulation", "sml_value", "sml_unit", "notes", "restrictions"]


class RegulationUpdateInline(admin.TabularInline):
    model = RegulationUpdate
    extra = 0


@admin.register(Chemical)
class ChemicalAdmin(admin.ModelAdmin):
    list_display = ["name", "cas_number", "status", "risk_level", "updated_at"]
    list_filter = ["status", "risk_level"]
    search_fields = ["name", "cas_number"]
    inlines = [ChemicalRegulationInline]


@admin.register(Regulation)
class RegulationAdmin(admin.ModelAdmin):
    list_display = ["name", "short_name", "country", "region", "featured", "last_updated"]
    list_filter = ["region", "featured"]
    search_fields = ["name", "short_name", "country"]
    inlines = [RegulationUpdateInline]


@admin.register(ImportHistory)
class ImportHistoryAdmin(admin.ModelAdmin):
    list_display = ["imported_at", "original_filename", "added", "updated", "skipped"]
