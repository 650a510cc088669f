# feerules/services.py

"""
Fee scheduling

Turns fee rules into fee applications and keeps rule and application
statuses moving with the calendar:

- scheduled rules become active once their effective date is reached
- active rules are applied to every user they target, at most one open
  application per (rule, user)
- pending applications past their due date become overdue

Every sweep is best effort per item. `apply_active_fee_rules` additionally runs
inside one transaction, each rule in its own savepoint. Only infrastructure
failures (lost connection, broken database) escape the per-item handlers and
roll the whole sweep back.
"""

import logging
import uuid

from django.db import transaction, IntegrityError, DatabaseError, OperationalError, InterfaceError
from django.utils import timezone

from feerules.applicability import ApplicabilityResolver
from feerules.calculators import calculate_due_date, calculate_fee_amount
from feerules.exceptions import FeeRuleNotApplicable
from feerules.models import FeeRule, FeeRuleUnitAssignment
from feeapplications.models import FeeApplication
from feeapplications.snapshots import CalculationSnapshot
from units.models import Unit

logger = logging.getLogger(__name__)

# Errors that mean the database itself is unusable, never a single bad record
INFRASTRUCTURE_ERRORS = (OperationalError, InterfaceError)


def unit_key(value):
    # Unit ids arrive in any UUID spelling
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        return str(value)


class FeeSchedulingService:
    def __init__(self, resolver=None, clock=timezone.now):
        self.clock = clock
        self.resolver = resolver or ApplicabilityResolver(clock=clock)

    def today(self):
        return timezone.localdate(self.clock())

    # ------------------------------------------------------------------
    # Application of rules
    # ------------------------------------------------------------------
    def apply_active_fee_rules(self):
        results = {
            "success": True,
            "applied_count": 0,
            "errors": [],
            "details": [],
        }

        try:
            with transaction.atomic():
                rules = (
                    FeeRule.objects.active()
                    .not_deleted()
                    .effective_date_reached(self.today())
                )
                for rule in rules:
                    try:
                        with transaction.atomic():
                            rule_result = self.apply_fee_rule(rule)
                    except INFRASTRUCTURE_ERRORS:
                        raise
                    except Exception as e:
                        results["errors"].append(
                            f"Error applying rule {rule.reference}: {str(e)}"
                        )
                        logger.error(f"Fee rule application error for {rule.reference}: {str(e)}")
                        continue
                    results["applied_count"] += rule_result["applied_count"]
                    results["errors"].extend(rule_result["errors"])
                    results["details"].append(rule_result)
        except INFRASTRUCTURE_ERRORS as e:
            results["success"] = False
            results["applied_count"] = 0
            results["details"] = []
            results["errors"].append(f"Transaction failed: {str(e)}")
            logger.error(f"Fee scheduling transaction failed: {str(e)}")

        logger.info(
            f"Applied active fee rules: {results['applied_count']} applications created, "
            f"{len(results['errors'])} errors"
        )
        return results

    def ensure_applicable(self, fee_rule):
        if fee_rule.is_deleted or not fee_rule.is_active():
            raise FeeRuleNotApplicable("Only active fee rules can be applied")
        if fee_rule.effective_date > self.today():
            raise FeeRuleNotApplicable("Fee rule effective date has not been reached yet")

    def apply_fee_rule(self, fee_rule):
        result = {
            "rule_id": str(fee_rule.id),
            "rule_reference": fee_rule.reference,
            "rule_name": fee_rule.name,
            "applied_count": 0,
            "skipped_count": 0,
            "errors": [],
        }

        logger.info(
            f"Starting fee rule application: {fee_rule.reference} ({fee_rule.applicable_to})"
        )

        try:
            with transaction.atomic():
                users = list(self.resolver.resolve(fee_rule).select_related("unit"))
        except INFRASTRUCTURE_ERRORS:
            raise
        except Exception as e:
            message = f"Error getting applicable users: {str(e)}"
            result["errors"].append(message)
            logger.error(f"{message} (rule {fee_rule.reference})")
            return result

        covered = set(
            FeeApplication.objects.open()
            .filter(fee_rule=fee_rule)
            .values_list("user_id", flat=True)
        )
        due_date = calculate_due_date(fee_rule.effective_date, fee_rule.frequency)

        for user in users:
            if user.id in covered:
                result["skipped_count"] += 1
                continue
            try:
                created = self._create_application(fee_rule, user, due_date)
            except INFRASTRUCTURE_ERRORS:
                raise
            except Exception as e:
                message = f"Error applying to user {user.member_no}: {str(e)}"
                result["errors"].append(message)
                logger.error(f"{message} (rule {fee_rule.reference})")
                continue

            if created:
                result["applied_count"] += 1
                covered.add(user.id)
            else:
                result["skipped_count"] += 1

        logger.info(
            f"Fee rule application completed: {fee_rule.reference} "
            f"applied={result['applied_count']} skipped={result['skipped_count']} "
            f"errors={len(result['errors'])}"
        )
        return result

    def _create_application(self, fee_rule, user, due_date):
        unit = user.unit

        try:
            with transaction.atomic():
                amount, unit_override = calculate_fee_amount(fee_rule, unit)
                snapshot = CalculationSnapshot(
                    base_amount=fee_rule.amount,
                    unit_override=unit_override,
                    final_amount=amount,
                    applied_at=self.clock(),
                )
                application = FeeApplication.objects.create(
                    fee_rule=fee_rule,
                    user=user,
                    unit=unit,
                    amount=amount,
                    status=FeeApplication.STATUS_PENDING,
                    due_date=due_date,
                    calculation_data=snapshot.to_dict(),
                )
        except IntegrityError:
            # Another sweep opened the same obligation first
            logger.info(
                f"Skipping {user.member_no}: open application already exists for {fee_rule.reference}"
            )
            return False

        logger.info(
            f"Fee application {application.reference} created for {user.member_no}: "
            f"{amount} due {due_date}"
        )
        return True

    # ------------------------------------------------------------------
    # Rule lifecycle
    # ------------------------------------------------------------------
    def schedule_fee_rule(self, fee_rule, effective_date):
        try:
            fee_rule.status = FeeRule.STATUS_SCHEDULED
            fee_rule.effective_date = effective_date
            fee_rule.save(update_fields=["status", "effective_date", "updated_at"])
        except DatabaseError as e:
            logger.error(f"Failed to schedule fee rule {fee_rule.reference}: {str(e)}")
            return False

        logger.info(f"Fee rule {fee_rule.reference} scheduled for {effective_date}")
        return True

    def activate_scheduled_rules(self):
        results = {"activated_count": 0, "errors": []}
        today = self.today()

        rules = FeeRule.objects.scheduled().not_deleted().effective_date_reached(today)
        for rule in rules:
            try:
                if rule.activate(today):
                    results["activated_count"] += 1
                    logger.info(f"Scheduled fee rule activated: {rule.reference}")
            except Exception as e:
                results["errors"].append(f"Error activating rule {rule.reference}: {str(e)}")
                logger.error(f"Error activating fee rule {rule.reference}: {str(e)}")

        return results

    def mark_overdue_fees(self):
        results = {"marked_count": 0, "errors": []}

        applications = FeeApplication.objects.pending().due_before(self.today())
        for application in applications:
            try:
                if application.mark_as_overdue():
                    results["marked_count"] += 1
            except Exception as e:
                results["errors"].append(
                    f"Error marking overdue fee {application.reference}: {str(e)}"
                )
                logger.error(f"Error marking fee {application.reference} overdue: {str(e)}")

        logger.info(f"Marked {results['marked_count']} fee applications overdue")
        return results

    # ------------------------------------------------------------------
    # Unit assignment
    # ------------------------------------------------------------------
    def assign_fee_rule_to_units(self, fee_rule, unit_ids, custom_amounts=None):
        results = {"assigned_count": 0, "errors": []}
        custom_amounts = {unit_key(k): v for k, v in (custom_amounts or {}).items()}

        for unit_id in unit_ids:
            try:
                unit = Unit.objects.get(pk=unit_id)
                with transaction.atomic():
                    FeeRuleUnitAssignment.objects.update_or_create(
                        fee_rule=fee_rule,
                        unit=unit,
                        defaults={
                            "is_active": True,
                            "custom_amount": custom_amounts.get(unit_key(unit_id)),
                        },
                    )
                results["assigned_count"] += 1
            except Unit.DoesNotExist:
                results["errors"].append(f"Unit {unit_id} not found")
            except Exception as e:
                results["errors"].append(f"Error assigning to unit {unit_id}: {str(e)}")
                logger.error(
                    f"Error assigning fee rule {fee_rule.reference} to unit {unit_id}: {str(e)}"
                )

        logger.info(
            f"Fee rule {fee_rule.reference} assigned to {results['assigned_count']} units"
        )
        return results
