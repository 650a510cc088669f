import uuid

import accounts.utils
import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("units", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="FeeRule",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "reference",
                    models.CharField(
                        default=accounts.utils.generate_reference,
                        editable=False,
                        max_length=50,
                        unique=True,
                    ),
                ),
                ("name", models.CharField(max_length=255)),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("land", "Land"),
                            ("equipment", "Equipment"),
                            ("processing", "Processing"),
                            ("storage", "Storage"),
                            ("training", "Training"),
                            ("other", "Other"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "frequency",
                    models.CharField(
                        choices=[
                            ("daily", "Daily"),
                            ("weekly", "Weekly"),
                            ("monthly", "Monthly"),
                            ("quarterly", "Quarterly"),
                            ("yearly", "Yearly"),
                            ("per_transaction", "Per Transaction"),
                            ("one_time", "One Time"),
                        ],
                        max_length=20,
                    ),
                ),
                ("unit", models.CharField(max_length=255)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("active", "Active"),
                            ("inactive", "Inactive"),
                            ("draft", "Draft"),
                            ("scheduled", "Scheduled"),
                        ],
                        default="draft",
                        max_length=20,
                    ),
                ),
                (
                    "applicable_to",
                    models.CharField(
                        choices=[
                            ("all_members", "All Members"),
                            ("unit_leaders", "Unit Leaders"),
                            ("new_members", "New Members"),
                            ("active_members", "Active Members"),
                            ("specific_units", "Specific Units"),
                        ],
                        max_length=30,
                    ),
                ),
                ("description", models.TextField()),
                ("effective_date", models.DateField()),
                ("is_deleted", models.BooleanField(default=False)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_fee_rules",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Fee Rule",
                "verbose_name_plural": "Fee Rules",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="FeeRuleUnitAssignment",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "custom_amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=12,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                (
                    "fee_rule",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="unit_assignments",
                        to="feerules.feerule",
                    ),
                ),
                (
                    "unit",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="fee_rule_assignments",
                        to="units.unit",
                    ),
                ),
            ],
            options={
                "verbose_name": "Fee Rule Unit Assignment",
                "verbose_name_plural": "Fee Rule Unit Assignments",
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddField(
            model_name="feerule",
            name="units",
            field=models.ManyToManyField(
                blank=True,
                related_name="fee_rules",
                through="feerules.FeeRuleUnitAssignment",
                to="units.unit",
            ),
        ),
        migrations.AddIndex(
            model_name="feerule",
            index=models.Index(
                fields=["status", "effective_date"], name="feerule_status_eff_idx"
            ),
        ),
        migrations.AddIndex(
            model_name="feerule",
            index=models.Index(
                fields=["type", "status"], name="feerule_type_status_idx"
            ),
        ),
        migrations.AddIndex(
            model_name="feerule",
            index=models.Index(fields=["is_deleted"], name="feerule_deleted_idx"),
        ),
        migrations.AddIndex(
            model_name="feeruleunitassignment",
            index=models.Index(
                fields=["unit", "is_active"], name="feerule_unit_active_idx"
            ),
        ),
        migrations.AddConstraint(
            model_name="feeruleunitassignment",
            constraint=models.UniqueConstraint(
                fields=("fee_rule", "unit"), name="unique_fee_rule_unit"
            ),
        ),
    ]
