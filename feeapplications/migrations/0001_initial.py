import uuid

import accounts.utils
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("feerules", "0001_initial"),
        ("units", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="FeeApplication",
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
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("overdue", "Overdue"),
                            ("paid", "Paid"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("due_date", models.DateField()),
                ("paid_date", models.DateField(blank=True, null=True)),
                ("calculation_data", models.JSONField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, null=True)),
                (
                    "fee_rule",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="fee_applications",
                        to="feerules.feerule",
                    ),
                ),
                (
                    "unit",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="fee_applications",
                        to="units.unit",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="fee_applications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Fee Application",
                "verbose_name_plural": "Fee Applications",
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddIndex(
            model_name="feeapplication",
            index=models.Index(
                fields=["user", "status"], name="feeapp_user_status_idx"
            ),
        ),
        migrations.AddIndex(
            model_name="feeapplication",
            index=models.Index(
                fields=["fee_rule", "status"], name="feeapp_rule_status_idx"
            ),
        ),
        migrations.AddIndex(
            model_name="feeapplication",
            index=models.Index(fields=["due_date"], name="feeapp_due_date_idx"),
        ),
        migrations.AddConstraint(
            model_name="feeapplication",
            constraint=models.UniqueConstraint(
                condition=models.Q(("status__in", ["pending", "overdue"])),
                fields=("fee_rule", "user"),
                name="unique_open_fee_application",
            ),
        ),
    ]
