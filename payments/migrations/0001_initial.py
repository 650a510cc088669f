import uuid

import accounts.utils
import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("feeapplications", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
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
                ("reference_id", models.CharField(max_length=100)),
                (
                    "external_id",
                    models.CharField(blank=True, max_length=255, null=True),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                ("currency", models.CharField(default="EUR", max_length=3)),
                ("phone_number", models.CharField(max_length=25)),
                ("description", models.CharField(max_length=255)),
                ("status", models.CharField(default="pending", max_length=20)),
                (
                    "payment_method",
                    models.CharField(
                        choices=[("mtn_momo", "MTN Mobile Money")],
                        default="mtn_momo",
                        max_length=20,
                    ),
                ),
                (
                    "financial_transaction_id",
                    models.CharField(blank=True, max_length=100, null=True),
                ),
                ("payer_message", models.TextField(blank=True, null=True)),
                ("payee_note", models.TextField(blank=True, null=True)),
                ("reason", models.TextField(blank=True, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("callback_data", models.JSONField(blank=True, null=True)),
                (
                    "fee_application",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payments",
                        to="feeapplications.feeapplication",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment",
                "verbose_name_plural": "Payments",
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddIndex(
            model_name="payment",
            index=models.Index(
                fields=["reference_id"], name="payment_reference_id_idx"
            ),
        ),
        migrations.AddIndex(
            model_name="payment",
            index=models.Index(
                fields=["user", "status"], name="payment_user_status_idx"
            ),
        ),
        migrations.AddIndex(
            model_name="payment",
            index=models.Index(
                fields=["fee_application", "status"], name="payment_feeapp_status_idx"
            ),
        ),
    ]
