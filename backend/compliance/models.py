"""Catalogue of chemicals, regulations and the SML links between them."""
from __future__ import annotations

from django.db import models
from django.utils import timezone


class Chemical(models.Model):
    """A substance that can show up in packaging material."""

    STATUS_CHOICES = [
        ("allowed", "Allowed"),
        ("restricted", "Restricted"),
        ("prohibited", "Prohibited"),
        ("unknown", "Unknown"),
    ]
    RISK_LEVEL_CHOICES = [
        ("low", "Low"),
        ("medium", "Medium"),
        ("high", "High"),
        ("unknown", "Unknown"),
    ]

    name = models.CharField(max_length=255)
    cas_number = models.CharField(max_length=64, unique=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="allowed")
    risk_level = models.CharField(max_length=20, choices=RISK_LEVEL_CHOICES, default="low")
    risk_description = models.TextField(blank=True, default="")
    regulations = models.ManyToManyField(
        "Regulation", through="ChemicalRegulation", related_name="chemicals"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:  # type: ignore[override]
        return f"{self.name} ({self.cas_number})"


class Regulation(models.Model):
    """A food-contact regulation (EU 10/2011, FDA 21 CFR, GB 9685, ...)."""

    REGION_CHOICES = [
        ("Europe", "Europe"),
        ("North America", "North America"),
        ("South America", "South America"),
        ("Asia", "Asia"),
        ("Africa", "Africa"),
        ("Oceania", "Oceania"),
        ("Global", "Global"),
    ]

    name = models.CharField(max_length=255)
    # Tables and exports prefer the short name when there is one.
    short_name = models.CharField(max_length=100, blank=True, default="")
    country = models.CharField(max_length=100)
    region = models.CharField(max_length=20, choices=REGION_CHOICES)
    description = models.TextField(blank=True, default="")
    link = models.URLField(max_length=500, blank=True, default="")
    last_updated = models.DateTimeField(default=timezone.now)
    featured = models.BooleanField(default=False)
    categories = models.JSONField(default=list, blank=True)
    update_details = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-featured", "-last_updated"]

    @property
    def display_name(self) -> str:
        return self.short_name or self.name

    def __str__(self) -> str:  # type: ignore[override]
        return self.display_name


class RegulationUpdate(models.Model):
    """One entry in a regulation's update history."""

    regulation = models.ForeignKey(
        Regulation, on_delete=models.CASCADE, related_name="update_history"
    )
    date = models.DateTimeField(default=timezone.now)
    description = models.TextField()

    class Meta:
        ordering = ["date", "id"]

    def __str__(self) -> str:  # type: ignore[override]
        return f"{self.regulation} @ {self.date:%Y-%m-%d}: {self.description}"


class ChemicalRegulation(models.Model):
    """
    Links a chemical to a regulation and stores the SML it sets.

    The SML is kept as text because regulation tables are messy ("0.05",
    "ND", "60 (sum of ...)").  The calculator parses it when it needs a
    number.
    """

    chemical = models.ForeignKey(
        Chemical, on_delete=models.CASCADE, related_name="chemical_regulations"
    )
    regulation = models.ForeignKey(
        Regulation, on_delete=models.CASCADE, related_name="chemical_regulations"
    )
    sml_value = models.CharField(max_length=100, blank=True, default="")
    sml_unit = models.CharField(max_length=20, default="mg/kg")
    notes = models.TextField(blank=True, default="")
    restrictions = models.TextField(blank=True, default="")
    additional_info = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(
                fields=["chemical", "regulation"], name="unique_chemical_regulation"
            )
        ]

    def __str__(self) -> str:  # type: ignore[override]
        return f"{self.chemical.name} in {self.regulation.display_name}"


class ImportHistory(models.Model):
    """
    Light-weight log of each spreadsheet import.

    Only counts and a one-line summary are kept; the rows themselves already
    live in `Chemical` and `ChemicalRegulation`.
    """

    imported_at = models.DateTimeField(auto_now_add=True)
    original_filename = models.CharField(max_length=255)
    regulation = models.ForeignKey(
        Regulation, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    added = models.PositiveIntegerField(default=0)
    updated = models.PositiveIntegerField(default=0)
    skipped = models.PositiveIntegerField(default=0)
    summary = models.TextField(help_text="Short description of what this import changed.")

    def __str__(self) -> str:  # type: ignore[override]
        return f"Import on {self.imported_at:%Y-%m-%d %H:%M} - {self.original_filename}"
