"""Catalogue endpoints: chemicals, regulations, links and the public search."""
import pytest

from compliance.models import Chemical, ChemicalRegulation, Regulation

pytestmark = pytest.mark.django_db


# ==================== chemicals ====================


def test_chemical_list_is_public_and_filters(api_client, bpa):
    Chemical.objects.create(name="Styrene", cas_number="100-42-5")

    response = api_client.get("/api/chemicals/")
    assert response.status_code == 200
    assert [c["name"] for c in response.json()] == ["Bisphenol A", "Styrene"]

    response = api_client.get("/api/chemicals/", {"query": "100-42"})
    assert [c["name"] for c in response.json()] == ["Styrene"]

    response = api_client.get("/api/chemicals/", {"query": "bisphenol"})
    (chemical,) = response.json()
    assert len(chemical["chemical_regulations"]) == 2


def test_create_chemical_requires_login(api_client):
    response = api_client.post(
        "/api/chemicals/", {"name": "Styrene", "cas_number": "100-42-5"}, format="json"
    )
    assert response.status_code in (401, 403)
    assert not Chemical.objects.exists()


def test_create_chemical_defaults(admin_client):
    response = admin_client.post(
        "/api/chemicals/", {"name": "Styrene", "cas_number": "100-42-5"}, format="json"
    )
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "allowed"
    assert body["risk_level"] == "low"


def test_create_chemical_requires_name_and_cas(admin_client):
    response = admin_client.post("/api/chemicals/", {"name": "Styrene"}, format="json")
    assert response.status_code == 400
    assert "cas_number" in response.json()


def test_duplicate_cas_number_conflicts(admin_client, bpa):
    response = admin_client.post(
        "/api/chemicals/", {"name": "BPA again", "cas_number": "80-05-7"}, format="json"
    )
    assert response.status_code == 409


def test_chemical_detail_includes_sml_links(api_client, bpa, eu_regulation):
    response = api_client.get(f"/api/chemicals/{bpa.pk}/")
    assert response.status_code == 200
    links = response.json()["chemical_regulations"]
    assert links[0]["regulation"]["short_name"] == "EU 10/2011"
    assert links[0]["sml_value"] == "0.5 mg/kg"
    assert links[0]["sml_unit"] == "mg/kg"


def test_chemical_detail_missing(api_client, db):
    assert api_client.get("/api/chemicals/999/").status_code == 404


def test_update_chemical(admin_client, bpa):
    response = admin_client.put(
        f"/api/chemicals/{bpa.pk}/",
        {"name": "BPA", "cas_number": "80-05-7", "status": "restricted", "risk_level": "high"},
        format="json",
    )
    assert response.status_code == 200
    bpa.refresh_from_db()
    assert bpa.name == "BPA"
    assert bpa.status == "restricted"


def test_update_chemical_to_taken_cas_conflicts(admin_client, bpa):
    other = Chemical.objects.create(name="Styrene", cas_number="100-42-5")
    response = admin_client.put(
        f"/api/chemicals/{other.pk}/",
        {"name": "Styrene", "cas_number": "80-05-7"},
        format="json",
    )
    assert response.status_code == 409


def test_delete_chemical_removes_links(admin_client, bpa):
    response = admin_client.delete(f"/api/chemicals/{bpa.pk}/")
    assert response.status_code == 204
    assert not Chemical.objects.exists()
    assert not ChemicalRegulation.objects.exists()


# ==================== regulations ====================


def test_create_regulation_seeds_history(admin_client):
    response = admin_client.post(
        "/api/regulations/",
        {
            "name": "GB 9685-2016",
            "short_name": "GB 9685",
            "country": "China",
            "region": "Asia",
            "categories": ["Additives"],
        },
        format="json",
    )
    assert response.status_code == 201
    body = response.json()
    assert [entry["description"] for entry in body["update_history"]] == [
        "Initial version of GB 9685-2016"
    ]


def test_create_regulation_validates_region(admin_client):
    response = admin_client.post(
        "/api/regulations/",
        {"name": "X", "country": "Y", "region": "Atlantis"},
        format="json",
    )
    assert response.status_code == 400
    assert "region" in response.json()


def test_regulation_filters_and_order(api_client, eu_regulation, fda_regulation):
    response = api_client.get("/api/regulations/")
    # Featured first.
    assert [r["id"] for r in response.json()] == [eu_regulation.pk, fda_regulation.pk]

    response = api_client.get("/api/regulations/", {"region": "North America"})
    assert [r["id"] for r in response.json()] == [fda_regulation.pk]

    response = api_client.get("/api/regulations/", {"category": "Plastics"})
    assert [r["id"] for r in response.json()] == [eu_regulation.pk]

    response = api_client.get("/api/regulations/", {"query": "united states"})
    assert [r["id"] for r in response.json()] == [fda_regulation.pk]

    response = api_client.get("/api/regulations/", {"featured": "true"})
    assert [r["id"] for r in response.json()] == [eu_regulation.pk]


def test_update_regulation_appends_history(admin_client, eu_regulation):
    before = eu_regulation.last_updated
    response = admin_client.put(
        f"/api/regulations/{eu_regulation.pk}/",
        {"short_name": "PIM", "update_description": "  Amendment 2020/1245  "},
        format="json",
    )
    assert response.status_code == 200
    body = response.json()
    assert body["short_name"] == "PIM"
    assert body["name"] == eu_regulation.name
    assert [entry["description"] for entry in body["update_history"]][-1] == "Amendment 2020/1245"

    eu_regulation.refresh_from_db()
    assert eu_regulation.last_updated >= before
    assert eu_regulation.update_history.count() == 2


def test_update_regulation_without_description_keeps_history(admin_client, eu_regulation):
    response = admin_client.put(
        f"/api/regulations/{eu_regulation.pk}/", {"featured": False}, format="json"
    )
    assert response.status_code == 200
    assert eu_regulation.update_history.count() == 1


def test_delete_regulation(admin_client, bpa, eu_regulation):
    assert admin_client.delete(f"/api/regulations/{eu_regulation.pk}/").status_code == 204
    assert not Regulation.objects.filter(pk=eu_regulation.pk).exists()
    assert bpa.chemical_regulations.count() == 1


# ==================== links ====================


def test_link_chemical_to_regulation(admin_client, eu_regulation):
    chemical = Chemical.objects.create(name="Styrene", cas_number="100-42-5")
    response = admin_client.post(
        "/api/chemical-regulations/",
        {"chemical_id": chemical.pk, "regulation_id": eu_regulation.pk, "sml_value": "60"},
        format="json",
    )
    assert response.status_code == 201
    link = ChemicalRegulation.objects.get(chemical=chemical)
    assert link.sml_value == "60"
    assert link.sml_unit == "mg/kg"

    again = admin_client.post(
        "/api/chemical-regulations/",
        {"chemical_id": chemical.pk, "regulation_id": eu_regulation.pk},
        format="json",
    )
    assert again.status_code == 409


def test_link_missing_side(admin_client, eu_regulation):
    response = admin_client.post(
        "/api/chemical-regulations/",
        {"chemical_id": 12345, "regulation_id": eu_regulation.pk},
        format="json",
    )
    assert response.status_code == 404


def test_list_and_delete_links(admin_client, bpa, eu_regulation, fda_regulation):
    response = admin_client.get("/api/chemical-regulations/", {"regulation_id": eu_regulation.pk})
    assert [link["chemical"] for link in response.json()] == [bpa.pk]

    response = admin_client.delete(
        f"/api/chemical-regulations/?chemical_id={bpa.pk}&regulation_id={fda_regulation.pk}"
    )
    assert response.status_code == 204
    assert bpa.chemical_regulations.count() == 1

    response = admin_client.delete(
        f"/api/chemical-regulations/?chemical_id={bpa.pk}&regulation_id={fda_regulation.pk}"
    )
    assert response.status_code == 404

    assert admin_client.delete("/api/chemical-regulations/").status_code == 400


def test_link_filters_must_be_numeric(admin_client, bpa, eu_regulation):
    response = admin_client.get("/api/chemical-regulations/", {"chemical_id": "abc"})
    assert response.status_code == 400
    assert "chemical_id" in response.json()["details"]

    response = admin_client.delete(
        f"/api/chemical-regulations/?chemical_id=abc&regulation_id={eu_regulation.pk}"
    )
    assert response.status_code == 400
    assert "error" in response.json()
    assert bpa.chemical_regulations.count() == 2


def test_blank_link_filter_is_ignored(api_client, bpa):
    response = api_client.get("/api/chemical-regulations/", {"chemical_id": ""})
    assert response.status_code == 200
    assert len(response.json()) == 2


# ==================== search ====================


def test_search_returns_flattened_regulations(api_client, bpa):
    response = api_client.get("/api/search/", {"query": "80-05"})
    assert response.status_code == 200
    (chemical,) = response.json()
    assert chemical["cas_number"] == "80-05-7"
    eu, fda = chemical["regulations"]
    assert eu["short_name"] == "EU 10/2011"
    assert eu["sml_value"] == "0.5 mg/kg"
    assert fda["sml_value"] == ""
    assert fda["sml_unit"] == "mg/kg"


def test_search_region_and_category_filters(api_client, bpa, fda_regulation):
    styrene = Chemical.objects.create(name="Styrene", cas_number="100-42-5")
    ChemicalRegulation.objects.create(chemical=styrene, regulation=fda_regulation)

    def names(**params):
        return [c["name"] for c in api_client.get("/api/search/", params).json()]

    assert names() == ["Bisphenol A", "Styrene"]
    assert names(region="Europe") == ["Bisphenol A"]
    assert names(region="all") == ["Bisphenol A", "Styrene"]
    assert names(region="North America") == ["Bisphenol A", "Styrene"]
    assert names(category="Plastics") == ["Bisphenol A"]
    assert names(category=["Plastics", "Polymers"]) == ["Bisphenol A", "Styrene"]
    assert names(category="Glass") == []
