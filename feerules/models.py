from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator
from django.utils import timezone

from accounts.abstracts import TimeStampedModel, UniversalIdModel, ReferenceModel
from units.models import Unit


class FeeRuleQuerySet(models.QuerySet):
    def active(self):
        return self.filter(status=FeeRule.STATUS_ACTIVE)

    def scheduled(self):
        return self.filter(status=FeeRule.STATUS_SCHEDULED)

    def not_deleted(self):
        return self.filter(is_deleted=False)

    def effective_date_reached(self, today=None):
        today = today or timezone.localdate()
        return self.filter(effective_date__lte=today)


class FeeRule(UniversalIdModel, TimeStampedModel, ReferenceModel):
    """
    Policy describing what is charged, to whom, how often and from when.
    - Land, equipment, processing, storage and training fees
    - Rules are never hard deleted, `is_deleted` hides them from every sweep
    """

    STATUS_ACTIVE = "active"
    STATUS_INACTIVE = "inactive"
    STATUS_DRAFT = "draft"
    STATUS_SCHEDULED = "scheduled"
    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_INACTIVE, "Inactive"),
        (STATUS_DRAFT, "Draft"),
        (STATUS_SCHEDULED, "Scheduled"),
    ]

    TYPE_CHOICES = [
        ("land", "Land"),
        ("equipment", "Equipment"),
        ("processing", "Processing"),
        ("storage", "Storage"),
        ("training", "Training"),
        ("other", "Other"),
    ]

    FREQUENCY_DAILY = "daily"
    FREQUENCY_WEEKLY = "weekly"
    FREQUENCY_MONTHLY = "monthly"
    FREQUENCY_QUARTERLY = "quarterly"
    FREQUENCY_YEARLY = "yearly"
    FREQUENCY_PER_TRANSACTION = "per_transaction"
    FREQUENCY_ONE_TIME = "one_time"
    FREQUENCY_CHOICES = [
        (FREQUENCY_DAILY, "Daily"),
        (FREQUENCY_WEEKLY, "Weekly"),
        (FREQUENCY_MONTHLY, "Monthly"),
        (FREQUENCY_QUARTERLY, "Quarterly"),
        (FREQUENCY_YEARLY, "Yearly"),
        (FREQUENCY_PER_TRANSACTION, "Per Transaction"),
        (FREQUENCY_ONE_TIME, "One Time"),
    ]

    APPLICABLE_ALL_MEMBERS = "all_members"
    APPLICABLE_UNIT_LEADERS = "unit_leaders"
    APPLICABLE_NEW_MEMBERS = "new_members"
    APPLICABLE_ACTIVE_MEMBERS = "active_members"
    APPLICABLE_SPECIFIC_UNITS = "specific_units"
    APPLICABLE_TO_CHOICES = [
        (APPLICABLE_ALL_MEMBERS, "All Members"),
        (APPLICABLE_UNIT_LEADERS, "Unit Leaders"),
        (APPLICABLE_NEW_MEMBERS, "New Members"),
        (APPLICABLE_ACTIVE_MEMBERS, "Active Members"),
        (APPLICABLE_SPECIFIC_UNITS, "Specific Units"),
    ]

    name = models.CharField(max_length=255)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    amount = models.DecimalField(
        max_digits=12, decimal_places=2, validators=[MinValueValidator(0)]
    )
    frequency = models.CharField(max_length=20, choices=FREQUENCY_CHOICES)
    # Unit of measure label: per hectare, per bag, per season...
    unit = models.CharField(max_length=255)
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT
    )
    applicable_to = models.CharField(max_length=30, choices=APPLICABLE_TO_CHOICES)
    description = models.TextField()
    effective_date = models.DateField()
    is_deleted = models.BooleanField(default=False)
    deleted_at = models.DateTimeField(blank=True, null=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="created_fee_rules",
        null=True,
        blank=True,
    )
    units = models.ManyToManyField(
        Unit, through="FeeRuleUnitAssignment", related_name="fee_rules", blank=True
    )

    objects = FeeRuleQuerySet.as_manager()

    class Meta:
        verbose_name = "Fee Rule"
        verbose_name_plural = "Fee Rules"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "effective_date"], name="feerule_status_eff_idx"),
            models.Index(fields=["type", "status"], name="feerule_type_status_idx"),
            models.Index(fields=["is_deleted"], name="feerule_deleted_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.get_frequency_display()})"

    @staticmethod
    def resolve_status(status, effective_date, today=None):
        """
        Future dated rules cannot be directly active.
        """
        today = today or timezone.localdate()
        if status == FeeRule.STATUS_SCHEDULED or (
            status == FeeRule.STATUS_ACTIVE and effective_date > today
        ):
            return FeeRule.STATUS_SCHEDULED
        return status

    def is_scheduled(self):
        return self.status == self.STATUS_SCHEDULED

    def is_active(self):
        return self.status == self.STATUS_ACTIVE

    def should_be_activated(self, today=None):
        today = today or timezone.localdate()
        return (
            self.is_scheduled()
            and not self.is_deleted
            and self.effective_date <= today
        )

    def activate(self, today=None):
        if self.should_be_activated(today):
            self.status = self.STATUS_ACTIVE
            self.save(update_fields=["status", "updated_at"])
            return True
        return False

    def soft_delete(self):
        self.is_deleted = True
        self.deleted_at = timezone.now()
        self.save(update_fields=["is_deleted", "deleted_at", "updated_at"])

    def restore(self):
        self.is_deleted = False
        self.deleted_at = None
        self.save(update_fields=["is_deleted", "deleted_at", "updated_at"])


class FeeRuleUnitAssignment(UniversalIdModel, TimeStampedModel):
    """
    Per unit override of a rule's amount.
    For `specific_units` rules the active assignments also decide who is billed.
    """

    fee_rule = models.ForeignKey(
        FeeRule, on_delete=models.CASCADE, related_name="unit_assignments"
    )
    unit = models.ForeignKey(
        Unit, on_delete=models.CASCADE, related_name="fee_rule_assignments"
    )
    custom_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        blank=True,
        null=True,
        validators=[MinValueValidator(0)],
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        verbose_name = "Fee Rule Unit Assignment"
        verbose_name_plural = "Fee Rule Unit Assignments"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["fee_rule", "unit"], name="unique_fee_rule_unit"
            ),
        ]
        indexes = [
            models.Index(fields=["unit", "is_active"], name="feerule_unit_active_idx"),
        ]

    def __str__(self):
        return f"{self.fee_rule.name} - {self.unit.code}"
