from datetime import date, datetime, timedelta
from decimal import Decimal
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.db import IntegrityError, OperationalError, transaction
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from feerules.applicability import ApplicabilityResolver
from feerules.calculators import calculate_due_date, calculate_fee_amount
from feerules.models import FeeRule, FeeRuleUnitAssignment
from feerules.services import FeeSchedulingService
from feeapplications.models import FeeApplication
from payments.models import Payment
from units.models import Unit, Zone

User = get_user_model()

NOW = timezone.make_aware(datetime(2024, 1, 10, 9, 0))
TODAY = date(2024, 1, 10)


def fixed_clock():
    return NOW


def make_user(member_no, role=User.ROLE_MEMBER, unit=None, **extra):
    return User.objects.create_user(
        password="password",
        member_no=member_no,
        first_name="Test",
        last_name=member_no,
        role=role,
        unit=unit,
        **extra,
    )


def make_rule(**overrides):
    data = {
        "name": "Land Fee",
        "type": "land",
        "amount": Decimal("1000.00"),
        "frequency": FeeRule.FREQUENCY_MONTHLY,
        "unit": "per hectare",
        "status": FeeRule.STATUS_ACTIVE,
        "applicable_to": FeeRule.APPLICABLE_ALL_MEMBERS,
        "description": "Seasonal land fee",
        "effective_date": TODAY,
    }
    data.update(overrides)
    return FeeRule.objects.create(**data)


class RaisingResolver(ApplicabilityResolver):
    def __init__(self, failing_rule, error, **kwargs):
        super().__init__(**kwargs)
        self.failing_rule = failing_rule
        self.error = error

    def resolve(self, fee_rule):
        if fee_rule.pk == self.failing_rule.pk:
            raise self.error
        return super().resolve(fee_rule)


class CalculatorTests(TestCase):
    def test_monthly_due_date(self):
        self.assertEqual(
            calculate_due_date(date(2024, 1, 10), FeeRule.FREQUENCY_MONTHLY),
            date(2024, 2, 10),
        )

    def test_one_time_and_per_transaction_are_due_on_effective_date(self):
        for frequency in (FeeRule.FREQUENCY_ONE_TIME, FeeRule.FREQUENCY_PER_TRANSACTION):
            self.assertEqual(calculate_due_date(date(2024, 1, 10), frequency), date(2024, 1, 10))

    def test_other_frequencies(self):
        start = date(2024, 1, 31)
        self.assertEqual(calculate_due_date(start, FeeRule.FREQUENCY_DAILY), date(2024, 2, 1))
        self.assertEqual(calculate_due_date(start, FeeRule.FREQUENCY_WEEKLY), date(2024, 2, 7))
        self.assertEqual(calculate_due_date(start, FeeRule.FREQUENCY_MONTHLY), date(2024, 2, 29))
        self.assertEqual(calculate_due_date(start, FeeRule.FREQUENCY_QUARTERLY), date(2024, 4, 30))
        self.assertEqual(calculate_due_date(start, FeeRule.FREQUENCY_YEARLY), date(2025, 1, 31))

    def test_unit_override_only_from_active_assignment(self):
        unit = Unit.objects.create(name="North", code="U-N")
        rule = make_rule(amount=Decimal("500.00"))
        assignment = FeeRuleUnitAssignment.objects.create(
            fee_rule=rule, unit=unit, custom_amount=Decimal("300.00")
        )
        self.assertEqual(calculate_fee_amount(rule, unit), (Decimal("300.00"), Decimal("300.00")))

        assignment.is_active = False
        assignment.save()
        self.assertEqual(calculate_fee_amount(rule, unit), (Decimal("500.00"), None))
        self.assertEqual(calculate_fee_amount(rule, None), (Decimal("500.00"), None))


class ApplicabilityResolverTests(TestCase):
    def setUp(self):
        self.unit = Unit.objects.create(name="North", code="U-N")
        self.other_unit = Unit.objects.create(name="South", code="U-S")
        self.member = make_user("M001", unit=self.unit, last_activity_at=timezone.now())
        self.old_member = make_user("M002", unit=self.other_unit)
        User.objects.filter(pk=self.old_member.pk).update(
            created_at=timezone.now() - timedelta(days=365)
        )
        self.inactive = make_user("M003", status=User.STATUS_INACTIVE, unit=self.unit)
        self.leader = make_user("L001", role=User.ROLE_UNIT_LEADER, unit=self.unit)
        self.admin = make_user("A001", role=User.ROLE_ADMIN)
        self.resolver = ApplicabilityResolver()

    def resolve(self, applicable_to, **rule_fields):
        rule = make_rule(applicable_to=applicable_to, **rule_fields)
        return rule, self.resolver.resolve_ids(rule)

    def test_all_members(self):
        _, ids = self.resolve(FeeRule.APPLICABLE_ALL_MEMBERS)
        self.assertEqual(ids, {self.member.id, self.old_member.id})

    def test_unit_leaders(self):
        _, ids = self.resolve(FeeRule.APPLICABLE_UNIT_LEADERS)
        self.assertEqual(ids, {self.leader.id})

    def test_new_members(self):
        _, ids = self.resolve(FeeRule.APPLICABLE_NEW_MEMBERS)
        self.assertEqual(ids, {self.member.id})

    def test_active_members(self):
        _, ids = self.resolve(FeeRule.APPLICABLE_ACTIVE_MEMBERS)
        self.assertEqual(ids, {self.member.id})

    def test_specific_units(self):
        rule = make_rule(applicable_to=FeeRule.APPLICABLE_SPECIFIC_UNITS)
        FeeRuleUnitAssignment.objects.create(fee_rule=rule, unit=self.unit)
        FeeRuleUnitAssignment.objects.create(
            fee_rule=rule, unit=self.other_unit, is_active=False
        )
        self.assertEqual(self.resolver.resolve_ids(rule), {self.member.id})

    def test_unknown_value_resolves_to_nobody(self):
        rule = make_rule()
        rule.applicable_to = "everyone_on_earth"
        with self.assertLogs("feerules.applicability", level="WARNING"):
            self.assertEqual(self.resolver.resolve_ids(rule), set())


class FeeSchedulingServiceTests(TestCase):
    def setUp(self):
        self.unit = Unit.objects.create(name="North", code="U-N")
        self.member_in_unit = make_user("M001", unit=self.unit)
        self.member_elsewhere = make_user("M002")
        self.service = FeeSchedulingService(clock=fixed_clock)

    def test_apply_is_idempotent(self):
        rule = make_rule()

        first = self.service.apply_fee_rule(rule)
        second = self.service.apply_fee_rule(rule)

        self.assertEqual(first["applied_count"], 2)
        self.assertEqual(second["applied_count"], 0)
        self.assertEqual(second["skipped_count"], 2)
        self.assertEqual(FeeApplication.objects.filter(fee_rule=rule).count(), 2)

    def test_paid_application_does_not_block_new_obligation(self):
        rule = make_rule()
        self.service.apply_fee_rule(rule)
        FeeApplication.objects.get(user=self.member_in_unit).mark_as_paid(TODAY)

        result = self.service.apply_fee_rule(rule)

        self.assertEqual(result["applied_count"], 1)
        self.assertEqual(
            FeeApplication.objects.filter(user=self.member_in_unit).count(), 2
        )

    def test_database_rejects_second_open_application(self):
        rule = make_rule()
        self.service.apply_fee_rule(rule)
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                FeeApplication.objects.create(
                    fee_rule=rule,
                    user=self.member_in_unit,
                    amount=Decimal("1.00"),
                    status=FeeApplication.STATUS_OVERDUE,
                    due_date=TODAY,
                )

    def test_amount_is_frozen_at_creation(self):
        rule = make_rule(amount=Decimal("1000.00"))
        self.service.apply_fee_rule(rule)

        rule.amount = Decimal("2000.00")
        rule.save()

        application = FeeApplication.objects.get(user=self.member_in_unit)
        self.assertEqual(application.amount, Decimal("1000.00"))

    def test_unit_override_precedence(self):
        rule = make_rule(amount=Decimal("500.00"))
        FeeRuleUnitAssignment.objects.create(
            fee_rule=rule, unit=self.unit, custom_amount=Decimal("300.00"), is_active=True
        )

        self.service.apply_fee_rule(rule)

        in_unit = FeeApplication.objects.get(user=self.member_in_unit)
        elsewhere = FeeApplication.objects.get(user=self.member_elsewhere)
        self.assertEqual(in_unit.amount, Decimal("300.00"))
        self.assertEqual(in_unit.unit, self.unit)
        self.assertEqual(elsewhere.amount, Decimal("500.00"))
        self.assertEqual(in_unit.snapshot.unit_override, Decimal("300.00"))
        self.assertEqual(in_unit.snapshot.base_amount, Decimal("500.00"))
        self.assertEqual(in_unit.snapshot.applied_at, NOW)

    def test_due_date_follows_frequency(self):
        monthly = make_rule(frequency=FeeRule.FREQUENCY_MONTHLY)
        one_time = make_rule(name="Training", frequency=FeeRule.FREQUENCY_ONE_TIME)

        self.service.apply_fee_rule(monthly)
        self.service.apply_fee_rule(one_time)

        self.assertEqual(
            FeeApplication.objects.filter(fee_rule=monthly).first().due_date,
            date(2024, 2, 10),
        )
        self.assertEqual(
            FeeApplication.objects.filter(fee_rule=one_time).first().due_date,
            date(2024, 1, 10),
        )

    def test_apply_active_rules_skips_future_deleted_and_inactive(self):
        make_rule(name="Current")
        make_rule(name="Future", effective_date=TODAY + timedelta(days=1))
        make_rule(name="Deleted", is_deleted=True)
        make_rule(name="Draft", status=FeeRule.STATUS_DRAFT)

        result = self.service.apply_active_fee_rules()

        self.assertTrue(result["success"])
        self.assertEqual(result["applied_count"], 2)
        self.assertEqual([d["rule_name"] for d in result["details"]], ["Current"])

    def test_per_rule_failure_does_not_abort_sweep(self):
        broken = make_rule(name="Broken")
        make_rule(name="Healthy")
        service = FeeSchedulingService(
            resolver=RaisingResolver(broken, ValueError("bad data"), clock=fixed_clock),
            clock=fixed_clock,
        )

        result = service.apply_active_fee_rules()

        self.assertTrue(result["success"])
        self.assertEqual(result["applied_count"], 2)
        self.assertEqual(len(result["errors"]), 1)
        self.assertIn("bad data", result["errors"][0])

    def test_failed_rule_rolls_back_only_its_own_work(self):
        broken = make_rule(name="Broken")
        healthy = make_rule(name="Healthy")

        class PartlyFailingService(FeeSchedulingService):
            def apply_fee_rule(self, fee_rule):
                result = super().apply_fee_rule(fee_rule)
                if fee_rule.pk == broken.pk:
                    raise ValueError("failed after creating applications")
                return result

        result = PartlyFailingService(clock=fixed_clock).apply_active_fee_rules()

        self.assertTrue(result["success"])
        self.assertEqual(result["applied_count"], 2)
        self.assertEqual(len(result["errors"]), 1)
        self.assertFalse(FeeApplication.objects.filter(fee_rule=broken).exists())
        self.assertEqual(FeeApplication.objects.filter(fee_rule=healthy).count(), 2)

    def test_infrastructure_failure_rolls_back_whole_sweep(self):
        make_rule(name="First")
        lost = make_rule(name="Lost connection")
        service = FeeSchedulingService(
            resolver=RaisingResolver(lost, OperationalError("server closed the connection"), clock=fixed_clock),
            clock=fixed_clock,
        )

        result = service.apply_active_fee_rules()

        self.assertFalse(result["success"])
        self.assertEqual(result["applied_count"], 0)
        self.assertIn("Transaction failed", result["errors"][-1])
        self.assertEqual(FeeApplication.objects.count(), 0)

    def test_mark_overdue_fees(self):
        rule = make_rule()
        late = FeeApplication.objects.create(
            fee_rule=rule,
            user=self.member_in_unit,
            amount=Decimal("100.00"),
            due_date=TODAY - timedelta(days=1),
        )
        not_yet = FeeApplication.objects.create(
            fee_rule=rule,
            user=self.member_elsewhere,
            amount=Decimal("100.00"),
            due_date=TODAY + timedelta(days=1),
        )

        result = self.service.mark_overdue_fees()

        late.refresh_from_db()
        not_yet.refresh_from_db()
        self.assertEqual(result["marked_count"], 1)
        self.assertEqual(late.status, FeeApplication.STATUS_OVERDUE)
        self.assertEqual(not_yet.status, FeeApplication.STATUS_PENDING)

    def test_activate_scheduled_rules(self):
        due = make_rule(name="Due", status=FeeRule.STATUS_SCHEDULED, effective_date=TODAY)
        past = make_rule(
            name="Past", status=FeeRule.STATUS_SCHEDULED, effective_date=TODAY - timedelta(days=3)
        )
        tomorrow = make_rule(
            name="Tomorrow",
            status=FeeRule.STATUS_SCHEDULED,
            effective_date=TODAY + timedelta(days=1),
        )

        result = self.service.activate_scheduled_rules()

        for rule in (due, past, tomorrow):
            rule.refresh_from_db()
        self.assertEqual(result["activated_count"], 2)
        self.assertEqual(due.status, FeeRule.STATUS_ACTIVE)
        self.assertEqual(past.status, FeeRule.STATUS_ACTIVE)
        self.assertEqual(tomorrow.status, FeeRule.STATUS_SCHEDULED)

    def test_schedule_fee_rule(self):
        rule = make_rule(status=FeeRule.STATUS_DRAFT)
        self.assertTrue(self.service.schedule_fee_rule(rule, date(2024, 3, 1)))
        rule.refresh_from_db()
        self.assertEqual(rule.status, FeeRule.STATUS_SCHEDULED)
        self.assertEqual(rule.effective_date, date(2024, 3, 1))

    def test_assign_fee_rule_to_units_upserts(self):
        rule = make_rule()
        missing = "00000000-0000-0000-0000-000000000000"

        first = self.service.assign_fee_rule_to_units(
            rule, [self.unit.id, missing], {str(self.unit.id): Decimal("250.00")}
        )
        second = self.service.assign_fee_rule_to_units(rule, [self.unit.id])

        assignment = FeeRuleUnitAssignment.objects.get(fee_rule=rule, unit=self.unit)
        self.assertEqual(first["assigned_count"], 1)
        self.assertEqual(first["errors"], [f"Unit {missing} not found"])
        self.assertEqual(second["assigned_count"], 1)
        self.assertIsNone(assignment.custom_amount)
        self.assertEqual(FeeRuleUnitAssignment.objects.filter(fee_rule=rule).count(), 1)

    def test_custom_amount_keys_accept_any_uuid_spelling(self):
        rule = make_rule()
        key = self.unit.id.hex.upper()

        result = self.service.assign_fee_rule_to_units(
            rule, [self.unit.id], {key: Decimal("125.00")}
        )

        assignment = FeeRuleUnitAssignment.objects.get(fee_rule=rule, unit=self.unit)
        self.assertEqual(result["assigned_count"], 1)
        self.assertEqual(assignment.custom_amount, Decimal("125.00"))


class FeeRuleStatusTests(TestCase):
    def test_future_active_becomes_scheduled(self):
        self.assertEqual(
            FeeRule.resolve_status(FeeRule.STATUS_ACTIVE, date(2024, 2, 1), today=TODAY),
            FeeRule.STATUS_SCHEDULED,
        )
        self.assertEqual(
            FeeRule.resolve_status(FeeRule.STATUS_ACTIVE, TODAY, today=TODAY),
            FeeRule.STATUS_ACTIVE,
        )
        self.assertEqual(
            FeeRule.resolve_status(FeeRule.STATUS_DRAFT, date(2024, 2, 1), today=TODAY),
            FeeRule.STATUS_DRAFT,
        )

    def test_deleted_rule_is_never_activated(self):
        rule = make_rule(status=FeeRule.STATUS_SCHEDULED, is_deleted=True)
        self.assertFalse(rule.activate(TODAY))


class FeeRuleApiTests(APITestCase):
    def setUp(self):
        self.admin = make_user("A001", role=User.ROLE_ADMIN)
        self.member = make_user("M001")
        self.today = timezone.localdate()
        self.rule = make_rule(effective_date=self.today)
        self.unit = Unit.objects.create(
            name="North", code="U-N", zone=Zone.objects.create(name="Zone A", code="ZA")
        )

    def url(self, suffix=""):
        return f"/api/v1/feerules/{self.rule.reference}/{suffix}"

    def test_member_can_list_but_not_create(self):
        self.client.force_authenticate(user=self.member)
        response = self.client.get("/api/v1/feerules/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post("/api/v1/feerules/", {"name": "x"})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_future_active_rule_is_scheduled(self):
        self.client.force_authenticate(user=self.admin)
        data = {
            "name": "Storage Fee",
            "type": "storage",
            "amount": "250.00",
            "frequency": "monthly",
            "unit": "per bag",
            "status": "active",
            "applicable_to": "all_members",
            "description": "Warehouse storage",
            "effective_date": str(self.today + timedelta(days=30)),
        }
        response = self.client.post("/api/v1/feerules/", data, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["status"], FeeRule.STATUS_SCHEDULED)
        self.assertEqual(response.data["created_by"], self.admin.member_no)

    def test_create_without_status_starts_as_draft(self):
        self.client.force_authenticate(user=self.admin)
        data = {
            "name": "Training Fee",
            "type": "training",
            "amount": "50.00",
            "frequency": "one_time",
            "unit": "per session",
            "applicable_to": "all_members",
            "description": "Agronomy training",
            "effective_date": str(self.today),
        }
        response = self.client.post("/api/v1/feerules/", data, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["status"], FeeRule.STATUS_DRAFT)

    def test_negative_amount_is_rejected(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.patch(self.url(), {"amount": "-1.00"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_apply_requires_authentication(self):
        response = self.client.post(self.url("apply/"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_apply_requires_admin(self):
        self.client.force_authenticate(user=self.member)
        response = self.client.post(self.url("apply/"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_apply_active_rule(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(self.url("apply/"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["applied_count"], 1)
        self.assertEqual(response.data["errors"], [])

        response = self.client.post(self.url("apply/"))
        self.assertEqual(response.data["applied_count"], 0)

    def test_apply_rejects_inactive_or_future_rule(self):
        self.client.force_authenticate(user=self.admin)
        self.rule.status = FeeRule.STATUS_DRAFT
        self.rule.save()
        response = self.client.post(self.url("apply/"))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        self.rule.status = FeeRule.STATUS_ACTIVE
        self.rule.effective_date = self.today + timedelta(days=5)
        self.rule.save()
        response = self.client.post(self.url("apply/"))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(FeeApplication.objects.exists())

    def test_schedule_validation(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(
            self.url("schedule/"), {"effective_date": str(self.today)}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertIn("effective_date", response.data["errors"])

        future = self.today + timedelta(days=7)
        response = self.client.post(
            self.url("schedule/"), {"effective_date": str(future)}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.rule.refresh_from_db()
        self.assertEqual(self.rule.status, FeeRule.STATUS_SCHEDULED)
        self.assertEqual(self.rule.effective_date, future)

    def test_assign_units(self):
        self.client.force_authenticate(user=self.admin)
        data = {
            "unit_ids": [str(self.unit.id)],
            "custom_amounts": {str(self.unit.id): "300.00"},
        }
        response = self.client.post(self.url("assign-units/"), data, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["assigned_count"], 1)
        assignment = FeeRuleUnitAssignment.objects.get(fee_rule=self.rule)
        self.assertEqual(assignment.custom_amount, Decimal("300.00"))

        response = self.client.post(self.url("assign-units/"), {"unit_ids": []}, format="json")
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)

    def test_delete_is_soft_and_refused_with_applications(self):
        self.client.force_authenticate(user=self.admin)
        FeeApplication.objects.create(
            fee_rule=self.rule, user=self.member, amount=Decimal("10.00"), due_date=self.today
        )
        response = self.client.delete(self.url())
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        other = make_rule(name="Unused", effective_date=self.today)
        response = self.client.delete(f"/api/v1/feerules/{other.reference}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        other.refresh_from_db()
        self.assertTrue(other.is_deleted)

        response = self.client.get(f"/api/v1/feerules/{other.reference}/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_stats(self):
        self.client.force_authenticate(user=self.admin)
        open_fee = FeeApplication.objects.create(
            fee_rule=self.rule, user=self.member, amount=Decimal("10.00"), due_date=self.today
        )
        paid_fee = FeeApplication.objects.create(
            fee_rule=self.rule,
            user=self.admin,
            amount=Decimal("15.00"),
            due_date=self.today,
            status=FeeApplication.STATUS_PAID,
        )
        for fee, payment_status in (
            (open_fee, Payment.STATUS_REJECTED),
            (paid_fee, Payment.STATUS_SUCCESSFUL),
        ):
            Payment.objects.create(
                user=fee.user,
                fee_application=fee,
                reference_id=f"ref-{payment_status}",
                amount=fee.amount,
                phone_number="256772123456",
                description="Land fee",
                status=payment_status,
            )
        response = self.client.get(self.url("stats/"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["total_applications"], 2)
        self.assertEqual(response.data["data"]["pending_applications"], 1)
        self.assertEqual(response.data["data"]["paid_applications"], 1)
        self.assertEqual(response.data["data"]["total_amount_due"], Decimal("10.00"))
        self.assertEqual(response.data["data"]["total_amount_paid"], Decimal("15.00"))
        self.assertEqual(response.data["data"]["successful_payments"], 1)
        self.assertEqual(response.data["data"]["failed_payments"], 1)

    def test_restore_deleted_rule(self):
        self.client.force_authenticate(user=self.admin)
        self.rule.soft_delete()

        response = self.client.post(self.url("restore/"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.rule.refresh_from_db()
        self.assertFalse(self.rule.is_deleted)
        self.assertIsNone(self.rule.deleted_at)

        response = self.client.post(self.url("restore/"))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_activate_scheduled_endpoint(self):
        self.client.force_authenticate(user=self.admin)
        make_rule(name="Due", status=FeeRule.STATUS_SCHEDULED, effective_date=self.today)
        response = self.client.post("/api/v1/feerules/activate-scheduled/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["activated_count"], 1)


class ManagementCommandTests(TestCase):
    def setUp(self):
        self.today = timezone.localdate()
        self.member = make_user("M001")

    def test_activate_dry_run_changes_nothing(self):
        rule = make_rule(status=FeeRule.STATUS_SCHEDULED, effective_date=self.today)
        out = StringIO()
        call_command("activate_scheduled_fee_rules", "--dry-run", stdout=out)
        rule.refresh_from_db()
        self.assertEqual(rule.status, FeeRule.STATUS_SCHEDULED)
        self.assertIn(rule.reference, out.getvalue())

    def test_run_fee_schedule(self):
        scheduled = make_rule(status=FeeRule.STATUS_SCHEDULED, effective_date=self.today)
        old_rule = make_rule(name="Old", status=FeeRule.STATUS_INACTIVE)
        late = FeeApplication.objects.create(
            fee_rule=old_rule,
            user=self.member,
            amount=Decimal("50.00"),
            due_date=self.today - timedelta(days=2),
        )

        call_command("run_fee_schedule", stdout=StringIO(), stderr=StringIO())

        scheduled.refresh_from_db()
        late.refresh_from_db()
        self.assertEqual(scheduled.status, FeeRule.STATUS_ACTIVE)
        self.assertTrue(
            FeeApplication.objects.filter(fee_rule=scheduled, user=self.member).exists()
        )
        self.assertEqual(late.status, FeeApplication.STATUS_OVERDUE)

    def test_apply_and_mark_overdue_commands(self):
        make_rule(effective_date=self.today)
        out = StringIO()
        call_command("apply_fee_rules", stdout=out, stderr=StringIO())
        self.assertIn("Created 1 fee applications", out.getvalue())

        out = StringIO()
        call_command("mark_overdue_fees", stdout=out, stderr=StringIO())
        self.assertIn("Marked 0 fee applications overdue", out.getvalue())
