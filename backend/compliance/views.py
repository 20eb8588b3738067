"""
API views for the `compliance` app.

Roughly three groups:
- admin-managed catalogue CRUD (chemicals, regulations and the links with
  their SML values), plus a spreadsheet import,
- the public search used by the browse pages,
- the worst-case migration calculation and its downloads.

Everything is a plain `APIView`; each endpoint only does one or two things
so ViewSets would mostly add indirection.
"""
from __future__ import annotations

import logging
import math
from pathlib import Path

import pandas as pd
from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils.timezone import now
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated, IsAuthenticatedOrReadOnly
from rest_framework.response import Response
from rest_framework.views import APIView

from . import calculator, exports
from .models import Chemical, ChemicalRegulation, ImportHistory, Regulation, RegulationUpdate
from .serializers import (
    CalculationRequestSerializer,
    ChemicalDetailSerializer,
    ChemicalRegulationFilterSerializer,
    ChemicalRegulationLinkSerializer,
    ChemicalRegulationSerializer,
    ChemicalSerializer,
    ImportHistorySerializer,
    ImportUploadSerializer,
    RegulationSerializer,
    SearchResultSerializer,
    parameters_payload,
    results_payload,
)

logger = logging.getLogger(__name__)


def _with_links(queryset):
    return queryset.prefetch_related("chemical_regulations__regulation")


def _has_category(regulation: Regulation, categories: list[str]) -> bool:
    return any(category in (regulation.categories or []) for category in categories)


# --- chemicals ---------------------------------------------------------------


class ChemicalListView(APIView):
    """List (optionally filtered by name / CAS number) and create chemicals."""

    permission_classes = [IsAuthenticatedOrReadOnly]

    def get(self, request, *args, **kwargs):
        chemicals = _with_links(Chemical.objects.all())
        query = request.query_params.get("query", "").strip()
        if query:
            chemicals = chemicals.filter(
                Q(name__icontains=query) | Q(cas_number__icontains=query)
            )
        serializer = ChemicalDetailSerializer(chemicals, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    def post(self, request, *args, **kwargs):
        serializer = ChemicalSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        cas_number = serializer.validated_data["cas_number"]
        if Chemical.objects.filter(cas_number=cas_number).exists():
            return Response(
                {"error": "Chemical with this CAS number already exists."},
                status=status.HTTP_409_CONFLICT,
            )

        chemical = serializer.save()
        logger.info("Added chemical %s (%s)", chemical.name, chemical.cas_number)
        return Response(ChemicalSerializer(chemical).data, status=status.HTTP_201_CREATED)


class ChemicalDetailView(APIView):
    permission_classes = [IsAuthenticatedOrReadOnly]

    def get(self, request, pk: int, *args, **kwargs):
        chemical = get_object_or_404(_with_links(Chemical.objects.all()), pk=pk)
        return Response(ChemicalDetailSerializer(chemical).data, status=status.HTTP_200_OK)

    def put(self, request, pk: int, *args, **kwargs):
        chemical = get_object_or_404(Chemical, pk=pk)
        serializer = ChemicalSerializer(chemical, data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        cas_number = serializer.validated_data["cas_number"]
        if Chemical.objects.filter(cas_number=cas_number).exclude(pk=pk).exists():
            return Response(
                {"error": "Another chemical with this CAS number already exists."},
                status=status.HTTP_409_CONFLICT,
            )

        chemical = serializer.save()
        logger.info("Updated chemical %s", chemical.pk)
        return Response(ChemicalSerializer(chemical).data, status=status.HTTP_200_OK)

    def delete(self, request, pk: int, *args, **kwargs):
        chemical = get_object_or_404(Chemical, pk=pk)
        # Links go with it (on_delete=CASCADE).
        chemical.delete()
        logger.info("Deleted chemical %s", pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


# --- regulations -------------------------------------------------------------


class RegulationListView(APIView):
    """
    Regulation list used by the regulations page and the admin forms.

    Featured regulations come first, then the most recently updated ones.
    """

    permission_classes = [IsAuthenticatedOrReadOnly]

    def get(self, request, *args, **kwargs):
        regulations = Regulation.objects.prefetch_related("update_history").order_by(
            "-featured", "-last_updated"
        )
        params = request.query_params

        query = params.get("query", "").strip()
        if query:
            regulations = regulations.filter(
                Q(name__icontains=query)
                | Q(country__icontains=query)
                | Q(description__icontains=query)
            )
        if params.get("region"):
            regulations = regulations.filter(region=params["region"])
        if params.get("featured") == "true":
            regulations = regulations.filter(featured=True)

        # JSON containment lookups are not available on SQLite, so the
        # category filter runs in Python.
        category = params.get("category")
        if category:
            regulations = [r for r in regulations if _has_category(r, [category])]

        serializer = RegulationSerializer(regulations, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    def post(self, request, *args, **kwargs):
        serializer = RegulationSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        with transaction.atomic():
            regulation = serializer.save()
            RegulationUpdate.objects.create(
                regulation=regulation,
                description=f"Initial version of {regulation.name}",
            )
        logger.info("Added regulation %s", regulation.name)
        return Response(RegulationSerializer(regulation).data, status=status.HTTP_201_CREATED)


class RegulationDetailView(APIView):
    permission_classes = [IsAuthenticatedOrReadOnly]

    def get(self, request, pk: int, *args, **kwargs):
        regulation = get_object_or_404(Regulation, pk=pk)
        return Response(RegulationSerializer(regulation).data, status=status.HTTP_200_OK)

    def put(self, request, pk: int, *args, **kwargs):
        """
        Update the supplied fields.

        A non-blank `update_description` is appended to the update history
        so the details page can show what changed and when.
        """
        regulation = get_object_or_404(Regulation, pk=pk)
        serializer = RegulationSerializer(regulation, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        update_description = serializer.validated_data.get("update_description", "").strip()
        with transaction.atomic():
            regulation = serializer.save(last_updated=now())
            if update_description:
                RegulationUpdate.objects.create(
                    regulation=regulation, description=update_description
                )

        logger.info("Updated regulation %s", regulation.pk)
        return Response(RegulationSerializer(regulation).data, status=status.HTTP_200_OK)

    def delete(self, request, pk: int, *args, **kwargs):
        regulation = get_object_or_404(Regulation, pk=pk)
        regulation.delete()
        logger.info("Deleted regulation %s", pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


# --- chemical <-> regulation links -------------------------------------------


class ChemicalRegulationView(APIView):
    """List, create and remove the SML links between chemicals and regulations."""

    permission_classes = [IsAuthenticatedOrReadOnly]

    @staticmethod
    def _filters(request):
        # Blank ids mean "no filter", like a missing parameter.
        params = {key: value for key, value in request.query_params.items() if value}
        serializer = ChemicalRegulationFilterSerializer(data=params)
        if not serializer.is_valid():
            return None, Response(
                {"error": "Invalid filter.", "details": serializer.errors},
                status=status.HTTP_400_BAD_REQUEST,
            )
        return serializer.validated_data, None

    def get(self, request, *args, **kwargs):
        filters, error = self._filters(request)
        if error is not None:
            return error

        links = ChemicalRegulation.objects.select_related("regulation")
        if "chemical_id" in filters:
            links = links.filter(chemical_id=filters["chemical_id"])
        if "regulation_id" in filters:
            links = links.filter(regulation_id=filters["regulation_id"])
        serializer = ChemicalRegulationSerializer(links, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    def post(self, request, *args, **kwargs):
        serializer = ChemicalRegulationLinkSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data

        chemical = Chemical.objects.filter(pk=data["chemical_id"]).first()
        if chemical is None:
            return Response({"error": "Chemical not found."}, status=status.HTTP_404_NOT_FOUND)
        regulation = Regulation.objects.filter(pk=data["regulation_id"]).first()
        if regulation is None:
            return Response({"error": "Regulation not found."}, status=status.HTTP_404_NOT_FOUND)

        if ChemicalRegulation.objects.filter(chemical=chemical, regulation=regulation).exists():
            return Response(
                {"error": "This chemical is already linked to this regulation."},
                status=status.HTTP_409_CONFLICT,
            )

        link = ChemicalRegulation.objects.create(
            chemical=chemical,
            regulation=regulation,
            sml_value=data["sml_value"],
            sml_unit=data["sml_unit"],
            notes=data["notes"],
            restrictions=data["restrictions"],
        )
        logger.info("Linked chemical %s to regulation %s", chemical.pk, regulation.pk)
        return Response(ChemicalRegulationSerializer(link).data, status=status.HTTP_201_CREATED)

    def delete(self, request, *args, **kwargs):
        filters, error = self._filters(request)
        if error is not None:
            return error
        if "chemical_id" not in filters or "regulation_id" not in filters:
            return Response(
                {"error": "chemical_id and regulation_id are required."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        chemical_id = filters["chemical_id"]
        regulation_id = filters["regulation_id"]
        deleted, _ = ChemicalRegulation.objects.filter(
            chemical_id=chemical_id, regulation_id=regulation_id
        ).delete()
        if not deleted:
            return Response(
                {"error": "Chemical regulation relationship not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        logger.info("Unlinked chemical %s from regulation %s", chemical_id, regulation_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


# --- public search -----------------------------------------------------------


class ChemicalSearchView(APIView):
    """
    Search used by the public browse page and the calculator's chemical picker.

    `region` keeps chemicals listed in at least one regulation of that
    region; every `category` given widens the category filter.
    """

    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):
        params = request.query_params
        chemicals = _with_links(Chemical.objects.all())

        query = params.get("query", "").strip()
        if query:
            chemicals = chemicals.filter(
                Q(name__icontains=query) | Q(cas_number__icontains=query)
            )

        region = params.get("region", "")
        if region and region != "all":
            chemicals = chemicals.filter(
                chemical_regulations__regulation__region=region
            ).distinct()

        categories = params.getlist("category")
        if categories:
            chemicals = [
                chemical
                for chemical in chemicals
                if any(
                    _has_category(link.regulation, categories)
                    for link in chemical.chemical_regulations.all()
                )
            ]

        serializer = SearchResultSerializer(chemicals, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)


# --- calculation -------------------------------------------------------------


def _run_calculation(request):
    """
    Parse the request and run the calculator.

    Returns either ``(None, error_response)`` or
    ``((case, params, results), None)`` so both calculation views can share it.
    """
    serializer = CalculationRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return None, Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    params = serializer.build_parameters()
    substances = serializer.build_substances()
    try:
        results = calculator.evaluate(params, substances)
    except calculator.ValidationError as exc:
        return None, Response(
            {
                "error": "Invalid packaging parameters.",
                "field": exc.field,
                "details": str(exc),
            },
            status=status.HTTP_400_BAD_REQUEST,
        )

    # Huge but finite inputs can still overflow the product to inf.
    out_of_range = [
        index for index, result in enumerate(results) if not math.isfinite(result.m_value)
    ]
    if out_of_range:
        logger.warning("M value overflowed for substance(s) at %s", out_of_range)
        return None, Response(
            {
                "error": "Calculated M value is out of range.",
                "substances": out_of_range,
            },
            status=status.HTTP_400_BAD_REQUEST,
        )

    logger.info("Calculated M values for %d substance(s)", len(results))
    return (serializer.validated_data["case"], params, results), None


class CalculationView(APIView):
    """Compute M for every substance and compare it against each SML."""

    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):
        outcome, error = _run_calculation(request)
        if error is not None:
            return error
        case, params, results = outcome
        return Response(
            {
                "parameters": parameters_payload(case, params),
                "formula": exports.FORMULA,
                "results": results_payload(results),
            },
            status=status.HTTP_200_OK,
        )


class CalculationExportView(APIView):
    """Same calculation, returned as a CSV, Excel or PDF download."""

    permission_classes = [AllowAny]

    def post(self, request, export_format: str, *args, **kwargs):
        renderer = exports.RENDERERS.get(export_format)
        if renderer is None:
            return Response(
                {
                    "error": "Unsupported export format.",
                    "supported_formats": sorted(exports.RENDERERS),
                },
                status=status.HTTP_400_BAD_REQUEST,
            )

        outcome, error = _run_calculation(request)
        if error is not None:
            return error
        case, params, results = outcome

        response = HttpResponse(
            renderer(case, params, results),
            content_type=exports.CONTENT_TYPES[export_format],
        )
        filename = exports.export_filename(export_format, now().date())
        response["Content-Disposition"] = f'attachment; filename="{filename}"'
        return response


# --- spreadsheet import ------------------------------------------------------


class ChemicalImportView(APIView):
    """
    Bulk-load chemicals (and optionally their SML in one regulation) from a
    CSV or Excel sheet.

    Column names are fixed so the error messages can be precise.  Any extra
    column is kept in the link's `additional_info`.
    """

    permission_classes = [IsAuthenticated]

    REQUIRED_COLUMNS = {"Chemical Name", "CAS Number"}
    OPTIONAL_COLUMNS = {"SML", "Notes", "Restrictions"}
    ALLOWED_EXTENSIONS = {".csv", ".xlsx"}

    def post(self, request, *args, **kwargs):
        serializer = ImportUploadSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data
        upload = data["file"]

        if upload.size > settings.MAX_IMPORT_FILE_SIZE:
            limit_mb = settings.MAX_IMPORT_FILE_SIZE / (1024 * 1024)
            return Response(
                {"error": f"File size exceeds the limit of {limit_mb:g}MB."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        extension = Path(upload.name).suffix.lower()
        if extension not in self.ALLOWED_EXTENSIONS:
            return Response(
                {"error": "Invalid file type. Only .csv and .xlsx files are supported."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        regulation = None
        if data.get("regulation_id") is not None:
            regulation = Regulation.objects.filter(pk=data["regulation_id"]).first()
            if regulation is None:
                return Response(
                    {"error": "Regulation not found."}, status=status.HTTP_404_NOT_FOUND
                )

        try:
            # Everything as text: CAS numbers like "80-05-7" must not turn into
            # numbers or dates, and the SML column is free text anyway.
            if extension == ".csv":
                df = pd.read_csv(upload, dtype=str)
            else:
                df = pd.read_excel(upload, dtype=str)
            df.columns = [str(col).strip().lstrip("\ufeff") for col in df.columns]
            df = df.fillna("")
        except Exception as exc:  # noqa: BLE001
            # Pandas raises a whole zoo of errors for broken files; the user
            # only needs to know the file could not be read.
            logger.exception("Could not read import file %s", upload.name)
            return Response(
                {"error": "Could not read the uploaded file.", "details": str(exc)},
                status=status.HTTP_400_BAD_REQUEST,
            )

        missing_columns = self.REQUIRED_COLUMNS.difference(df.columns)
        if missing_columns:
            return Response(
                {
                    "error": "File is missing required column(s).",
                    "missing_columns": sorted(missing_columns),
                    "seen_columns": list(df.columns),
                },
                status=status.HTTP_400_BAD_REQUEST,
            )
        if df.empty:
            return Response(
                {"error": "File contains no data."}, status=status.HTTP_400_BAD_REQUEST
            )

        if regulation is None and data["regulation_name"].strip():
            regulation = self._find_or_create_regulation(
                data["regulation_name"].strip(), upload.name, data["region"], data["category"]
            )

        results = {"added": 0, "updated": 0, "skipped": 0, "errors": []}
        extra_columns = [
            col
            for col in df.columns
            if col not in self.REQUIRED_COLUMNS and col not in self.OPTIONAL_COLUMNS
        ]

        for index, row in df.iterrows():
            name = row["Chemical Name"].strip()
            cas_number = row["CAS Number"].strip()
            if not name and not cas_number:
                results["skipped"] += 1
                continue

            try:
                with transaction.atomic():
                    chemical, created = self._upsert_chemical(
                        name, cas_number, data["status"], data["risk_level"]
                    )
                    if regulation is not None:
                        self._link(chemical, regulation, row, extra_columns)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Import row %s failed", index)
                results["errors"].append(f"Row {index + 2}: {exc}")
                results["skipped"] += 1
                continue

            results["added" if created else "updated"] += 1

        summary = (
            f"Processed {len(df)} rows: {results['added']} added, "
            f"{results['updated']} updated, {results['skipped']} skipped"
        )
        if regulation is not None:
            summary += f" (Regulation: {regulation.name})"

        ImportHistory.objects.create(
            original_filename=upload.name,
            regulation=regulation,
            added=results["added"],
            updated=results["updated"],
            skipped=results["skipped"],
            summary=summary,
        )
        self._trim_history()
        logger.info("Import of %s finished. %s", upload.name, summary)

        return Response(
            {
                "message": summary,
                "results": results,
                "regulation": (
                    {"id": regulation.pk, "name": regulation.name} if regulation else None
                ),
            },
            status=status.HTTP_200_OK,
        )

    def _find_or_create_regulation(
        self, name: str, filename: str, region: str, category: str
    ) -> Regulation:
        regulation = Regulation.objects.filter(name__iexact=name).first()
        if regulation is not None:
            return regulation

        regulation = Regulation.objects.create(
            name=name,
            country="Unknown",
            region=region,
            description=f"Imported from {filename}",
            categories=[category] if category else [],
        )
        RegulationUpdate.objects.create(
            regulation=regulation, description=f"Initial version of {name}"
        )
        logger.info("Created regulation %s during import", name)
        return regulation

    def _upsert_chemical(
        self, name: str, cas_number: str, chem_status: str, risk_level: str
    ) -> tuple[Chemical, bool]:
        """Match on CAS number first, then on name."""
        chemical = None
        if cas_number:
            chemical = Chemical.objects.filter(cas_number=cas_number).first()
        if chemical is None and name:
            chemical = Chemical.objects.filter(name=name).first()
        if chemical is not None:
            return chemical, False

        chemical = Chemical.objects.create(
            name=name or f"Unknown (CAS: {cas_number})",
            # CAS numbers are unique; a name-only row gets a placeholder
            # derived from the name (the name lookup above already missed).
            cas_number=cas_number or f"Unknown ({name})"[:64],
            status=chem_status,
            risk_level=risk_level,
        )
        return chemical, True

    def _link(self, chemical: Chemical, regulation: Regulation, row, extra_columns) -> None:
        sml_value, sml_unit = calculator.split_sml_text(row.get("SML", ""))
        notes = row.get("Notes", "").strip()
        restrictions = row.get("Restrictions", "").strip()
        additional_info = {col: row[col] for col in extra_columns if row[col] != ""}

        link, created = ChemicalRegulation.objects.get_or_create(
            chemical=chemical,
            regulation=regulation,
            defaults={
                "sml_value": sml_value,
                "sml_unit": sml_unit,
                "notes": notes,
                "restrictions": restrictions,
                "additional_info": additional_info,
            },
        )
        if created:
            return

        # Existing link: only overwrite what the sheet actually provides.
        if sml_value:
            link.sml_value = sml_value
            link.sml_unit = sml_unit
        if notes:
            link.notes = notes
        if restrictions:
            link.restrictions = restrictions
        if additional_info:
            link.additional_info = {**(link.additional_info or {}), **additional_info}
        link.save()

    def _trim_history(self) -> None:
        """Keep only the newest IMPORT_HISTORY_KEEP entries."""
        qs = ImportHistory.objects.order_by("-imported_at", "-id")
        for old_entry in qs[settings.IMPORT_HISTORY_KEEP:]:
            old_entry.delete()


class ImportHistoryListView(APIView):
    """Feeds the small "Recent imports" panel on the admin page."""

    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        entries = ImportHistory.objects.order_by("-imported_at", "-id")[
            : settings.IMPORT_HISTORY_KEEP
        ]
        serializer = ImportHistorySerializer(entries, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)
