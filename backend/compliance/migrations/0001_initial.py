import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Chemical",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("cas_number", models.CharField(max_length=64, unique=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("allowed", "Allowed"),
                            ("restricted", "Restricted"),
                            ("prohibited", "Prohibited"),
                            ("unknown", "Unknown"),
                        ],
                        default="allowed",
                        max_length=20,
                    ),
                ),
                (
                    "risk_level",
                    models.CharField(
                        choices=[("low", "Low"), ("medium", "Medium"), ("high", "High"), ("unknown", "Unknown")],
                        default="low",
                        max_length=20,
                    ),
                ),
                ("risk_description", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="Regulation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("short_name", models.CharField(blank=True, default="", max_length=100)),
                ("country", models.CharField(max_length=100)),
                (
                    "region",
                    models.CharField(
                        choices=[
                            ("Europe", "Europe"),
                            ("North America", "North America"),
                            ("South America", "South America"),
                            ("Asia", "Asia"),
                            ("Africa", "Africa"),
                            ("Oceania", "Oceania"),
                            ("Global", "Global"),
                        ],
                        max_length=20,
                    ),
                ),
                ("description", models.TextField(blank=True, default="")),
                ("link", models.URLField(blank=True, default="", max_length=500)),
                ("last_updated", models.DateTimeField(default=django.utils.timezone.now)),
                ("featured", models.BooleanField(default=False)),
                ("categories", models.JSONField(blank=True, default=list)),
                ("update_details", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={"ordering": ["-featured", "-last_updated"]},
        ),
        migrations.CreateModel(
            name="ChemicalRegulation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sml_value", models.CharField(blank=True, default="", max_length=100)),
                ("sml_unit", models.CharField(default="mg/kg", max_length=20)),
                ("notes", models.TextField(blank=True, default="")),
                ("restrictions", models.TextField(blank=True, default="")),
                ("additional_info", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "chemical",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="chemical_regulations",
                        to="compliance.chemical",
                    ),
                ),
                (
                    "regulation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="chemical_regulations",
                        to="compliance.regulation",
                    ),
                ),
            ],
            options={"ordering": ["id"]},
        ),
        migrations.AddField(
            model_name="chemical",
            name="regulations",
            field=models.ManyToManyField(
                related_name="chemicals",
                through="compliance.ChemicalRegulation",
                to="compliance.regulation",
            ),
        ),
        migrations.AddConstraint(
            model_name="chemicalregulation",
            constraint=models.UniqueConstraint(
                fields=("chemical", "regulation"), name="unique_chemical_regulation"
            ),
        ),
        migrations.CreateModel(
            name="RegulationUpdate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("date", models.DateTimeField(default=django.utils.timezone.now)),
                ("description", models.TextField()),
                (
                    "regulation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="update_history",
                        to="compliance.regulation",
                    ),
                ),
            ],
            options={"ordering": ["date", "id"]},
        ),
        migrations.CreateModel(
            name="ImportHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("imported_at", models.DateTimeField(auto_now_add=True)),
                ("original_filename", models.CharField(max_length=255)),
                ("added", models.PositiveIntegerField(default=0)),
                ("updated", models.PositiveIntegerField(default=0)),
                ("skipped", models.PositiveIntegerField(default=0)),
                ("summary", models.TextField(help_text="Short description of what this import changed.")),
                (
                    "regulation",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="compliance.regulation",
                    ),
                ),
            ],
        ),
    ]
