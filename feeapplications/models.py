from django.db import models
from django.contrib.auth import get_user_model
from django.utils import timezone

from accounts.abstracts import TimeStampedModel, UniversalIdModel, ReferenceModel
from feerules.models import FeeRule
from feeapplications.snapshots import CalculationSnapshot
from units.models import Unit

User = get_user_model()

OPEN_STATUSES = ["pending", "overdue"]


class FeeApplicationQuerySet(models.QuerySet):
    def open(self):
        return self.filter(status__in=OPEN_STATUSES)

    def pending(self):
        return self.filter(status=FeeApplication.STATUS_PENDING)

    def overdue(self):
        return self.filter(status=FeeApplication.STATUS_OVERDUE)

    def paid(self):
        return self.filter(status=FeeApplication.STATUS_PAID)

    def due_before(self, day):
        return self.filter(due_date__lt=day)

    def for_user(self, user):
        return self.filter(user=user)


class FeeApplication(UniversalIdModel, TimeStampedModel, ReferenceModel):
    """
    One obligation of one member under one fee rule.
    The amount is frozen when the application is created.
    """

    STATUS_PENDING = "pending"
    STATUS_OVERDUE = "overdue"
    STATUS_PAID = "paid"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_OVERDUE, "Overdue"),
        (STATUS_PAID, "Paid"),
    ]

    fee_rule = models.ForeignKey(
        FeeRule, on_delete=models.PROTECT, related_name="fee_applications"
    )
    user = models.ForeignKey(
        User, on_delete=models.CASCADE, related_name="fee_applications"
    )
    unit = models.ForeignKey(
        Unit,
        on_delete=models.SET_NULL,
        related_name="fee_applications",
        null=True,
        blank=True,
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING
    )
    due_date = models.DateField()
    paid_date = models.DateField(blank=True, null=True)
    calculation_data = models.JSONField(blank=True, null=True)
    notes = models.TextField(blank=True, null=True)

    objects = FeeApplicationQuerySet.as_manager()

    class Meta:
        verbose_name = "Fee Application"
        verbose_name_plural = "Fee Applications"
        ordering = ["-created_at"]
        constraints = [
            # At most one open obligation per rule and member
            models.UniqueConstraint(
                fields=["fee_rule", "user"],
                condition=models.Q(status__in=OPEN_STATUSES),
                name="unique_open_fee_application",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "status"], name="feeapp_user_status_idx"),
            models.Index(fields=["fee_rule", "status"], name="feeapp_rule_status_idx"),
            models.Index(fields=["due_date"], name="feeapp_due_date_idx"),
        ]

    def __str__(self):
        return f"{self.reference} - {self.user.member_no} - {self.fee_rule.name}"

    @property
    def snapshot(self):
        return CalculationSnapshot.from_dict(self.calculation_data)

    @snapshot.setter
    def snapshot(self, value):
        self.calculation_data = value.to_dict() if value is not None else None

    def is_open(self):
        return self.status in OPEN_STATUSES

    def mark_as_overdue(self):
        if self.status != self.STATUS_PENDING:
            return False
        self.status = self.STATUS_OVERDUE
        self.save(update_fields=["status", "updated_at"])
        return True

    def mark_as_paid(self, paid_date=None):
        if self.status == self.STATUS_PAID:
            return False
        self.status = self.STATUS_PAID
        self.paid_date = paid_date or timezone.localdate()
        self.save(update_fields=["status", "paid_date", "updated_at"])
        return True
