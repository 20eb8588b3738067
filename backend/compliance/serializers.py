"""Serializers used by the API views."""
from __future__ import annotations

import uuid

from rest_framework import serializers

from . import calculator
from .models import Chemical, ChemicalRegulation, ImportHistory, Regulation, RegulationUpdate


class ChemicalSerializer(serializers.ModelSerializer):
    class Meta:
        model = Chemical
        fields = [
            "id",
            "name",
            "cas_number",
            "status",
            "risk_level",
            "risk_description",
            "created_at",
            "updated_at",
        ]
        # Duplicate CAS numbers are reported by the views as 409, not as a
        # plain field error.
        extra_kwargs = {"cas_number": {"validators": []}}


class RegulationSummarySerializer(serializers.ModelSerializer):
    """The handful of regulation fields shown next to a chemical."""

    class Meta:
        model = Regulation
        fields = [
            "id",
            "name",
            "short_name",
            "country",
            "region",
            "categories",
            "description",
            "link",
            "last_updated",
            "featured",
        ]


class ChemicalRegulationSerializer(serializers.ModelSerializer):
    regulation = RegulationSummarySerializer(read_only=True)

    class Meta:
        model = ChemicalRegulation
        fields = [
            "id",
            "chemical",
            "regulation",
            "sml_value",
            "sml_unit",
            "notes",
            "restrictions",
            "additional_info",
        ]


class ChemicalDetailSerializer(ChemicalSerializer):
    chemical_regulations = ChemicalRegulationSerializer(many=True, read_only=True)

    class Meta(ChemicalSerializer.Meta):
        fields = ChemicalSerializer.Meta.fields + ["chemical_regulations"]


class RegulationUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = RegulationUpdate
        fields = ["date", "description"]


class RegulationSerializer(serializers.ModelSerializer):
    """
    Full regulation payload.

    `update_description` is write-only: when it is filled in on an update,
    the view appends it to the regulation's history.
    """

    update_history = RegulationUpdateSerializer(many=True, read_only=True)
    update_description = serializers.CharField(
        write_only=True, required=False, allow_blank=True
    )
    categories = serializers.ListField(
        child=serializers.CharField(), required=False
    )

    class Meta:
        model = Regulation
        fields = [
            "id",
            "name",
            "short_name",
            "country",
            "region",
            "description",
            "link",
            "last_updated",
            "featured",
            "categories",
            "update_details",
            "update_history",
            "update_description",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["last_updated", "created_at", "updated_at"]

    def create(self, validated_data):
        validated_data.pop("update_description", None)
        return super().create(validated_data)

    def update(self, instance, validated_data):
        validated_data.pop("update_description", None)
        return super().update(instance, validated_data)


class ChemicalRegulationLinkSerializer(serializers.Serializer):
    """Payload for linking an existing chemical to an existing regulation."""

    chemical_id = serializers.IntegerField()
    regulation_id = serializers.IntegerField()
    sml_value = serializers.CharField(required=False, allow_blank=True, default="")
    sml_unit = serializers.CharField(required=False, default=calculator.DEFAULT_SML_UNIT)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    restrictions = serializers.CharField(required=False, allow_blank=True, default="")


class ChemicalRegulationFilterSerializer(serializers.Serializer):
    """Query string filters for listing or removing links."""

    chemical_id = serializers.IntegerField(required=False)
    regulation_id = serializers.IntegerField(required=False)


class SearchResultSerializer(serializers.ModelSerializer):
    """
    Flattened chemical used by the public search page.

    Each regulation entry mixes the regulation fields with the SML data of
    the link, which is what the search table needs in one place.
    """

    regulations = serializers.SerializerMethodField()

    class Meta:
        model = Chemical
        fields = [
            "id",
            "name",
            "cas_number",
            "status",
            "risk_level",
            "risk_description",
            "regulations",
        ]

    def get_regulations(self, chemical: Chemical) -> list[dict]:
        regulations = []
        for link in chemical.chemical_regulations.all():
            regulation = link.regulation
            regulations.append(
                {
                    "id": regulation.id,
                    "name": regulation.name,
                    "short_name": regulation.short_name,
                    "country": regulation.country,
                    "region": regulation.region,
                    "categories": regulation.categories,
                    "sml_value": link.sml_value,
                    "sml_unit": link.sml_unit or calculator.DEFAULT_SML_UNIT,
                    "notes": link.notes,
                    "restrictions": link.restrictions,
                    "additional_info": link.additional_info or {},
                    "relation_id": link.id,
                }
            )
        return regulations


class ImportUploadSerializer(serializers.Serializer):
    """Spreadsheet plus the optional regulation the rows belong to."""

    file = serializers.FileField()
    regulation_id = serializers.IntegerField(required=False)
    regulation_name = serializers.CharField(required=False, allow_blank=True, default="")
    region = serializers.ChoiceField(
        choices=Regulation.REGION_CHOICES, required=False, default="Global"
    )
    category = serializers.CharField(required=False, allow_blank=True, default="Imported")
    status = serializers.ChoiceField(
        choices=Chemical.STATUS_CHOICES, required=False, default="allowed"
    )
    risk_level = serializers.ChoiceField(
        choices=Chemical.RISK_LEVEL_CHOICES, required=False, default="low"
    )


class ImportHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = ImportHistory
        fields = [
            "id",
            "imported_at",
            "original_filename",
            "regulation",
            "added",
            "updated",
            "skipped",
            "summary",
        ]


# --- calculation -----------------------------------------------------------


class CalculationLimitSerializer(serializers.Serializer):
    regulation_id = serializers.CharField(required=False, allow_blank=True, default="")
    name = serializers.CharField(required=False, allow_blank=True, default="")
    short_name = serializers.CharField(required=False, allow_blank=True, default="")
    # Accepts numbers or stored text like "0.05 mg/kg"; parsed later.
    sml_value = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, default=None
    )
    sml_unit = serializers.CharField(required=False, default=calculator.DEFAULT_SML_UNIT)


class CalculationSubstanceSerializer(serializers.Serializer):
    chemical_id = serializers.IntegerField(required=False)
    name = serializers.CharField(required=False, allow_blank=True, default="")
    cas_number = serializers.CharField(required=False, allow_blank=True, default="")
    contamination = serializers.FloatField()
    limits = CalculationLimitSerializer(many=True, required=False)


class CalculationRequestSerializer(serializers.Serializer):
    """
    Request body of the calculation endpoints.

    Turns the loosely typed JSON into the calculator's dataclasses.  For
    case 2 the surface area and food mass are fixed, so they may be left
    out.  Positivity of the parameters is left to the calculator so there is
    exactly one place deciding what "valid packaging" means.
    """

    case = serializers.ChoiceField(choices=[1, 2], required=False, default=1)
    surface_area = serializers.FloatField(required=False, allow_null=True, default=None)
    thickness = serializers.FloatField()
    density = serializers.FloatField()
    food_mass = serializers.FloatField(required=False, allow_null=True, default=None)
    substances = CalculationSubstanceSerializer(many=True)

    def validate(self, attrs):
        if attrs["case"] == 1:
            missing = {
                name: ["This field is required for case 1."]
                for name in ("surface_area", "food_mass")
                if attrs.get(name) is None
            }
            if missing:
                raise serializers.ValidationError(missing)

        chemical_ids = {
            item["chemical_id"] for item in attrs["substances"] if "chemical_id" in item
        }
        chemicals = (
            Chemical.objects.filter(id__in=chemical_ids)
            .prefetch_related("chemical_regulations__regulation")
            .in_bulk()
        )
        unknown = sorted(chemical_ids.difference(chemicals))
        if unknown:
            raise serializers.ValidationError(
                {"substances": [f"Chemical {pk} not found." for pk in unknown]}
            )
        attrs["_chemicals"] = chemicals
        return attrs

    def build_parameters(self) -> calculator.PackagingParameters:
        data = self.validated_data
        return calculator.PackagingParameters.for_case(
            data["case"],
            surface_area=data["surface_area"],
            thickness=data["thickness"],
            density=data["density"],
            food_mass=data["food_mass"],
        )

    def build_substances(self) -> list[calculator.Substance]:
        chemicals = self.validated_data["_chemicals"]
        substances = []
        for item in self.validated_data["substances"]:
            chemical = chemicals.get(item.get("chemical_id"))
            if chemical is not None:
                substances.append(
                    calculator.Substance(
                        identifier=str(chemical.id),
                        name=item["name"] or chemical.name,
                        cas_number=item["cas_number"] or chemical.cas_number,
                        contamination=item["contamination"],
                        applicable_limits=tuple(
                            _limit_from_link(link)
                            for link in chemical.chemical_regulations.all()
                        ),
                    )
                )
            else:
                substances.append(
                    calculator.Substance(
                        identifier=uuid.uuid4().hex,
                        name=item["name"],
                        cas_number=item["cas_number"] or None,
                        contamination=item["contamination"],
                        applicable_limits=tuple(
                            _limit_from_payload(limit) for limit in item.get("limits", [])
                        ),
                    )
                )
        return substances


def _limit_from_link(link: ChemicalRegulation) -> calculator.RegulatoryLimit:
    return calculator.RegulatoryLimit(
        regulation_id=str(link.regulation_id),
        display_name=link.regulation.display_name,
        sml_value=calculator.parse_sml_value(link.sml_value),
        sml_unit=link.sml_unit or calculator.DEFAULT_SML_UNIT,
    )


def _limit_from_payload(limit: dict) -> calculator.RegulatoryLimit:
    return calculator.RegulatoryLimit(
        regulation_id=limit["regulation_id"],
        display_name=limit["short_name"] or limit["name"],
        sml_value=calculator.parse_sml_value(limit["sml_value"]),
        sml_unit=limit["sml_unit"] or calculator.DEFAULT_SML_UNIT,
    )


def parameters_payload(case: int, params: calculator.PackagingParameters) -> dict:
    return {
        "case": case,
        "surface_area": params.surface_area,
        "thickness": params.thickness,
        "density": params.density,
        "food_mass": params.food_mass,
    }


def results_payload(results: list[calculator.CalculationResult]) -> list[dict]:
    """Plain JSON shape of the calculator output."""
    payload = []
    for result in results:
        substance = result.substance
        payload.append(
            {
                "substance": {
                    "id": substance.identifier,
                    "name": substance.name,
                    "cas_number": substance.cas_number,
                    "contamination": substance.contamination,
                },
                "m_value": result.m_value,
                "overall_status": result.overall_status,
                "limit_outcomes": [
                    {
                        "regulation_id": outcome.limit.regulation_id,
                        "regulation_name": outcome.limit.display_name,
                        "sml_value": outcome.limit.sml_value,
                        "sml_unit": outcome.limit.sml_unit,
                        "passed": outcome.passed,
                        "status": outcome.status,
                    }
                    for outcome in result.limit_outcomes
                ],
            }
        )
    return payload
