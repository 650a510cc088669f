from datetime import date, datetime
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from feerules.models import FeeRule
from feeapplications.models import FeeApplication
from feeapplications.snapshots import CalculationSnapshot

User = get_user_model()


def make_rule():
    return FeeRule.objects.create(
        name="Processing Fee",
        type="processing",
        amount=Decimal("200.00"),
        frequency=FeeRule.FREQUENCY_ONE_TIME,
        unit="per bag",
        status=FeeRule.STATUS_ACTIVE,
        applicable_to=FeeRule.APPLICABLE_ALL_MEMBERS,
        description="Maize processing",
        effective_date=date(2024, 1, 10),
    )


class CalculationSnapshotTests(TestCase):
    def test_json_form_and_back(self):
        applied_at = timezone.make_aware(datetime(2024, 1, 10, 9, 0))
        snapshot = CalculationSnapshot(
            base_amount=Decimal("500.00"),
            final_amount=Decimal("300.00"),
            applied_at=applied_at,
            unit_override=Decimal("300.00"),
        )
        data = snapshot.to_dict()
        self.assertEqual(data["base_amount"], "500.00")
        self.assertEqual(data["unit_override"], "300.00")
        self.assertEqual(CalculationSnapshot.from_dict(data), snapshot)

    def test_tolerates_missing_and_bad_fields(self):
        snapshot = CalculationSnapshot.from_dict(
            {"base_amount": "100", "final_amount": "abc", "applied_at": "yesterday"}
        )
        self.assertEqual(snapshot.base_amount, Decimal("100"))
        self.assertIsNone(snapshot.final_amount)
        self.assertIsNone(snapshot.unit_override)
        self.assertIsNone(snapshot.applied_at)
        self.assertIsNone(CalculationSnapshot.from_dict(None))


class FeeApplicationLifecycleTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            password="password", member_no="M001", first_name="Amina", last_name="K"
        )
        self.application = FeeApplication.objects.create(
            fee_rule=make_rule(),
            user=self.user,
            amount=Decimal("200.00"),
            due_date=date(2024, 1, 10),
        )

    def test_only_pending_becomes_overdue(self):
        self.assertTrue(self.application.mark_as_overdue())
        self.assertFalse(self.application.mark_as_overdue())
        self.assertEqual(self.application.status, FeeApplication.STATUS_OVERDUE)

    def test_overdue_can_be_paid_once(self):
        self.application.mark_as_overdue()
        self.assertTrue(self.application.mark_as_paid(date(2024, 2, 1)))
        self.assertFalse(self.application.mark_as_paid(date(2024, 3, 1)))
        self.application.refresh_from_db()
        self.assertEqual(self.application.status, FeeApplication.STATUS_PAID)
        self.assertEqual(self.application.paid_date, date(2024, 2, 1))
        self.assertFalse(self.application.is_open())


class FeeApplicationApiTests(APITestCase):
    def setUp(self):
        self.rule = make_rule()
        self.member = User.objects.create_user(
            password="password", member_no="M001", first_name="Amina", last_name="K"
        )
        self.other = User.objects.create_user(
            password="password", member_no="M002", first_name="Brian", last_name="O"
        )
        self.admin = User.objects.create_user(
            password="password",
            member_no="A001",
            first_name="Admin",
            last_name="User",
            role=User.ROLE_ADMIN,
        )
        self.mine = FeeApplication.objects.create(
            fee_rule=self.rule, user=self.member, amount=Decimal("200.00"), due_date=date(2024, 1, 10)
        )
        self.theirs = FeeApplication.objects.create(
            fee_rule=self.rule,
            user=self.other,
            amount=Decimal("200.00"),
            due_date=date(2024, 1, 10),
            status=FeeApplication.STATUS_OVERDUE,
        )

    def test_member_sees_only_own_applications(self):
        self.client.force_authenticate(user=self.member)
        response = self.client.get("/api/v1/feeapplications/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([a["reference"] for a in response.data], [self.mine.reference])
        self.assertEqual(response.data[0]["fee_rule"]["name"], "Processing Fee")

    def test_admin_sees_all_and_can_filter(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get("/api/v1/feeapplications/")
        self.assertEqual(len(response.data), 2)

        response = self.client.get("/api/v1/feeapplications/?status=overdue")
        self.assertEqual([a["reference"] for a in response.data], [self.theirs.reference])

    def test_member_cannot_read_someone_elses_application(self):
        self.client.force_authenticate(user=self.member)
        response = self.client.get(f"/api/v1/feeapplications/{self.theirs.reference}/")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.get(f"/api/v1/feeapplications/{self.mine.reference}/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
