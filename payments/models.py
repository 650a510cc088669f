from django.db import models
from django.contrib.auth import get_user_model
from django.core.validators import MinValueValidator

from accounts.abstracts import TimeStampedModel, UniversalIdModel, ReferenceModel
from feeapplications.models import FeeApplication

User = get_user_model()


class PaymentQuerySet(models.QuerySet):
    def pending(self):
        return self.filter(status=Payment.STATUS_PENDING)

    def successful(self):
        return self.filter(status=Payment.STATUS_SUCCESSFUL)

    def failed(self):
        return self.filter(status__in=Payment.FAILED_STATUSES)

    def for_reference(self, reference_id):
        return self.filter(reference_id=reference_id)


class Payment(UniversalIdModel, TimeStampedModel, ReferenceModel):
    """
    One mobile money settlement attempt.
    A single gateway request covering several fee applications is stored as
    one row per application, all sharing the same `reference_id`.
    """

    # Gateway statuses are kept verbatim
    STATUS_PENDING = "pending"
    STATUS_SUCCESSFUL = "SUCCESSFUL"
    STATUS_FAILED = "FAILED"
    STATUS_REJECTED = "REJECTED"
    STATUS_TIMEOUT = "TIMEOUT"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_SUCCESSFUL, "Successful"),
        (STATUS_FAILED, "Failed"),
        (STATUS_REJECTED, "Rejected"),
        (STATUS_TIMEOUT, "Timeout"),
    ]
    FAILED_STATUSES = [STATUS_FAILED, STATUS_REJECTED, STATUS_TIMEOUT]

    PAYMENT_METHOD_CHOICES = [
        ("mtn_momo", "MTN Mobile Money"),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="payments")
    fee_application = models.ForeignKey(
        FeeApplication,
        on_delete=models.SET_NULL,
        related_name="payments",
        null=True,
        blank=True,
    )
    reference_id = models.CharField(max_length=100)
    external_id = models.CharField(max_length=255, blank=True, null=True)
    amount = models.DecimalField(
        max_digits=12, decimal_places=2, validators=[MinValueValidator(0)]
    )
    currency = models.CharField(max_length=3, default="EUR")
    phone_number = models.CharField(max_length=25)
    description = models.CharField(max_length=255)
    status = models.CharField(max_length=20, default=STATUS_PENDING)
    payment_method = models.CharField(
        max_length=20, choices=PAYMENT_METHOD_CHOICES, default="mtn_momo"
    )
    financial_transaction_id = models.CharField(max_length=100, blank=True, null=True)
    payer_message = models.TextField(blank=True, null=True)
    payee_note = models.TextField(blank=True, null=True)
    reason = models.TextField(blank=True, null=True)
    paid_at = models.DateTimeField(blank=True, null=True)
    callback_data = models.JSONField(blank=True, null=True)

    objects = PaymentQuerySet.as_manager()

    class Meta:
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["reference_id"], name="payment_reference_id_idx"),
            models.Index(fields=["user", "status"], name="payment_user_status_idx"),
            models.Index(
                fields=["fee_application", "status"], name="payment_feeapp_status_idx"
            ),
        ]

    def __str__(self):
        return f"{self.reference_id} - {self.amount} {self.currency} ({self.status})"

    def is_successful(self):
        return self.status == self.STATUS_SUCCESSFUL

    def is_pending(self):
        return self.status == self.STATUS_PENDING

    def is_failed(self):
        return self.status in self.FAILED_STATUSES
