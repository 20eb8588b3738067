import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from compliance.models import Chemical, ChemicalRegulation, Regulation, RegulationUpdate


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def admin_client(db):
    user = get_user_model().objects.create_user(username="admin", password="admin-pass")
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def eu_regulation(db):
    regulation = Regulation.objects.create(
        name="Commission Regulation (EU) No 10/2011",
        short_name="EU 10/2011",
        country="European Union",
        region="Europe",
        categories=["Plastics", "Food Contact"],
        featured=True,
    )
    RegulationUpdate.objects.create(
        regulation=regulation, description=f"Initial version of {regulation.name}"
    )
    return regulation


@pytest.fixture
def fda_regulation(db):
    return Regulation.objects.create(
        name="21 CFR 177",
        country="United States",
        region="North America",
        categories=["Polymers"],
    )


@pytest.fixture
def bpa(db, eu_regulation, fda_regulation):
    """Bisphenol A, with an SML in the EU list and no SML in the FDA one."""
    chemical = Chemical.objects.create(name="Bisphenol A", cas_number="80-05-7")
    ChemicalRegulation.objects.create(
        chemical=chemical, regulation=eu_regulation, sml_value="0.5 mg/kg"
    )
    ChemicalRegulation.objects.create(chemical=chemical, regulation=fda_regulation)
    return chemical
