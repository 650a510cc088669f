from datetime import date, datetime
from decimal import Decimal
from functools import partial
from unittest import mock

import requests
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from feerules.models import FeeRule
from feeapplications.models import FeeApplication
from payments.exceptions import (
    AmountMismatch,
    FeeAlreadyPaid,
    FeeApplicationNotFound,
    GatewayError,
    PaymentAlreadyPending,
    PaymentNotFound,
)
from payments.models import Payment
from payments.momo import (
    TOKEN_CACHE_KEY,
    GatewayResult,
    GatewayStatus,
    MtnMomoClient,
    normalize_phone_number,
)
from payments.services import PaymentOrchestrator
from payments.views import InitiatePaymentView, PaymentStatusView

User = get_user_model()

NOW = timezone.make_aware(datetime(2024, 3, 5, 10, 30))

MOMO_CONFIG = {
    "BASE_URL": "https://momo.test",
    "SUBSCRIPTION_KEY": "sub-key",
    "TARGET_ENVIRONMENT": "sandbox",
    "API_USER": "api-user",
    "API_KEY": "api-key",
    "CALLBACK_URL": "https://koabiga.test/api/v1/payments/callback/",
    "CURRENCY": "EUR",
    "COUNTRY_CODE": "256",
    "TOKEN_CACHE_TIMEOUT": 3300,
    "REQUEST_TIMEOUT": 5,
}


class FakeGateway(MtnMomoClient):
    """Records charges instead of calling the provider."""

    def __init__(self, accept=True, status_value="SUCCESSFUL"):
        super().__init__(config=MOMO_CONFIG, session=mock.Mock())
        self.accept = accept
        self.status_value = status_value
        self.charges = []
        self.polls = []

    def create_payment(self, amount, phone_number, description, external_id=None):
        self.charges.append((amount, phone_number, description, external_id))
        if not self.accept:
            return GatewayResult(success=False, message="Failed to create payment request: rejected")
        return GatewayResult(
            success=True,
            reference_id=f"ref-{len(self.charges)}",
            external_id=external_id,
        )

    def check_payment_status(self, reference_id):
        self.polls.append(reference_id)
        return GatewayResult(
            success=True,
            reference_id=reference_id,
            status=GatewayStatus(
                reference_id=reference_id,
                status=self.status_value,
                financial_transaction_id="FT-991",
                payer_message="Fees",
                payee_note="Fees",
                reason=None if self.status_value == "SUCCESSFUL" else "Payer declined",
            ),
        )


def make_member(member_no, **extra):
    return User.objects.create_user(
        password="password",
        member_no=member_no,
        first_name="Grace",
        last_name=member_no,
        email=f"{member_no.lower()}@koabiga.test",
        **extra,
    )


def make_application(user, amount, fee_status=FeeApplication.STATUS_PENDING, name="Land Fee"):
    rule = FeeRule.objects.create(
        name=name,
        type="land",
        amount=amount,
        frequency=FeeRule.FREQUENCY_ONE_TIME,
        unit="per hectare",
        status=FeeRule.STATUS_ACTIVE,
        applicable_to=FeeRule.APPLICABLE_ALL_MEMBERS,
        description=f"{name} description",
        effective_date=date(2024, 3, 1),
    )
    return FeeApplication.objects.create(
        fee_rule=rule, user=user, amount=amount, due_date=date(2024, 3, 1), status=fee_status
    )


class PhoneNumberTests(TestCase):
    def test_local_trunk_prefix_is_replaced(self):
        self.assertEqual(normalize_phone_number("0772123456", "256"), "256772123456")

    def test_formatting_is_stripped_and_code_not_doubled(self):
        self.assertEqual(normalize_phone_number("+256 772-123-456", "256"), "256772123456")

    def test_missing_country_code_is_added(self):
        self.assertEqual(normalize_phone_number("772123456", "256"), "256772123456")

    def test_country_code_is_configurable(self):
        self.assertEqual(normalize_phone_number("0788 123 456", "250"), "250788123456")


class MtnMomoClientTests(TestCase):
    def setUp(self):
        cache.clear()
        self.session = mock.Mock()
        self.momo = MtnMomoClient(config=MOMO_CONFIG, session=self.session)

    def token_response(self):
        return mock.Mock(status_code=200, json=mock.Mock(return_value={"access_token": "tok-1"}))

    def test_token_is_cached(self):
        self.session.post.return_value = self.token_response()

        self.assertEqual(self.momo.get_access_token(), "tok-1")
        self.assertEqual(self.momo.get_access_token(), "tok-1")

        self.assertEqual(self.session.post.call_count, 1)
        self.assertEqual(cache.get(TOKEN_CACHE_KEY), "tok-1")
        _, kwargs = self.session.post.call_args
        self.assertEqual(kwargs["auth"], ("api-user", "api-key"))
        self.assertEqual(kwargs["timeout"], 5)

    def test_token_failure_fails_the_charge(self):
        self.session.post.return_value = mock.Mock(status_code=401, json=mock.Mock(return_value={}))

        result = self.momo.create_payment(Decimal("100.00"), "0772123456", "Fees")

        self.assertFalse(result.success)
        self.assertEqual(result.message, "Failed to get access token")
        self.assertIsNone(cache.get(TOKEN_CACHE_KEY))

    def test_create_payment_accepted(self):
        cache.set(TOKEN_CACHE_KEY, "tok-1")
        self.session.post.return_value = mock.Mock(status_code=202)

        result = self.momo.create_payment(Decimal("250.00"), "0772123456", "Fees", "ext-1")

        self.assertTrue(result.success)
        self.assertEqual(result.external_id, "ext-1")
        _, kwargs = self.session.post.call_args
        self.assertEqual(kwargs["headers"]["X-Reference-Id"], result.reference_id)
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer tok-1")
        self.assertEqual(kwargs["headers"]["X-Callback-Url"], MOMO_CONFIG["CALLBACK_URL"])
        self.assertEqual(kwargs["json"]["payer"]["partyId"], "256772123456")
        self.assertEqual(kwargs["json"]["amount"], "250.00")
        self.assertEqual(kwargs["json"]["currency"], "EUR")

    def test_create_payment_rejected(self):
        cache.set(TOKEN_CACHE_KEY, "tok-1")
        self.session.post.return_value = mock.Mock(
            status_code=400, json=mock.Mock(return_value={"message": "Invalid payer"})
        )

        result = self.momo.create_payment(Decimal("250.00"), "0772123456", "Fees")

        self.assertFalse(result.success)
        self.assertIn("Invalid payer", result.message)

    def test_transport_error_becomes_failure(self):
        cache.set(TOKEN_CACHE_KEY, "tok-1")
        self.session.post.side_effect = requests.ConnectionError("unreachable")

        result = self.momo.create_payment(Decimal("250.00"), "0772123456", "Fees")

        self.assertFalse(result.success)
        self.assertIn("unreachable", result.message)

    def test_check_payment_status(self):
        cache.set(TOKEN_CACHE_KEY, "tok-1")
        self.session.get.return_value = mock.Mock(
            status_code=200,
            json=mock.Mock(
                return_value={
                    "amount": "250",
                    "currency": "EUR",
                    "externalId": "ext-1",
                    "status": "FAILED",
                    "reason": {"code": "PAYER_NOT_FOUND", "message": "Payer not found"},
                }
            ),
        )

        result = self.momo.check_payment_status("ref-1")

        self.assertTrue(result.success)
        self.assertEqual(result.status.status, "FAILED")
        self.assertEqual(result.status.reason, "Payer not found")
        self.assertEqual(result.status.amount, Decimal("250"))
        self.assertEqual(result.status.reference_id, "ref-1")

    def test_provider_pending_matches_local_pending(self):
        gateway_status = self.momo.handle_callback({"referenceId": "ref-1", "status": "PENDING"})
        self.assertEqual(gateway_status.status, Payment.STATUS_PENDING)

    def test_callback_without_reference_is_rejected(self):
        self.assertIsNone(self.momo.handle_callback({"status": "SUCCESSFUL"}))
        self.assertIsNone(self.momo.handle_callback(["not", "an", "object"]))

    def test_callback_without_status_is_rejected(self):
        self.assertIsNone(self.momo.handle_callback({"referenceId": "ref-1"}))
        self.assertIsNone(self.momo.handle_callback({"referenceId": "ref-1", "status": ""}))


class PaymentOrchestratorTests(TestCase):
    def setUp(self):
        self.member = make_member("M001")
        self.fee_a = make_application(self.member, Decimal("100.00"), name="Land Fee")
        self.fee_b = make_application(self.member, Decimal("150.00"), name="Storage Fee")
        self.gateway = FakeGateway()
        self.orchestrator = PaymentOrchestrator(gateway=self.gateway, clock=lambda: NOW)

    def initiate(self, amount, ids, **kwargs):
        return self.orchestrator.initiate_payment(
            self.member,
            phone_number="0772123456",
            amount=amount,
            description="Season fees",
            fee_application_ids=ids,
            **kwargs,
        )

    def test_fan_out_creates_one_row_per_fee(self):
        summary = self.initiate(Decimal("250.00"), [self.fee_a.id, self.fee_b.id], payment_type="bulk")

        payments = Payment.objects.for_reference(summary["reference_id"])
        self.assertEqual(payments.count(), 2)
        self.assertEqual(
            {(p.fee_application_id, p.amount) for p in payments},
            {(self.fee_a.id, Decimal("100.00")), (self.fee_b.id, Decimal("150.00"))},
        )
        self.assertEqual(len(self.gateway.charges), 1)
        self.assertEqual(self.gateway.charges[0][0], Decimal("250.00"))
        self.assertEqual(
            summary["external_id"], f"bulk_fees_user_{self.member.member_no}_{int(NOW.timestamp())}"
        )
        self.assertEqual(summary["fee_applications_count"], 2)

    def test_amount_mismatch_is_rejected_before_gateway(self):
        with self.assertRaises(AmountMismatch):
            self.initiate(Decimal("200.00"), [self.fee_a.id, self.fee_b.id])

        self.assertEqual(self.gateway.charges, [])
        self.assertFalse(Payment.objects.exists())

    def test_rounding_within_tolerance_is_accepted(self):
        summary = self.initiate(Decimal("250.01"), [self.fee_a.id, self.fee_b.id])
        self.assertEqual(summary["amount"], "250.01")

    def test_other_members_fee_is_not_found(self):
        other = make_member("M002")
        theirs = make_application(other, Decimal("100.00"))
        with self.assertRaises(FeeApplicationNotFound):
            self.initiate(Decimal("200.00"), [self.fee_a.id, theirs.id])

    def test_paid_fee_is_rejected(self):
        self.fee_a.mark_as_paid(date(2024, 3, 2))
        with self.assertRaises(FeeAlreadyPaid):
            self.initiate(Decimal("100.00"), [self.fee_a.id])

    def test_duplicate_pending_payment_is_rejected(self):
        first = self.initiate(Decimal("100.00"), [self.fee_a.id])
        with self.assertRaises(PaymentAlreadyPending) as ctx:
            self.initiate(Decimal("250.00"), [self.fee_a.id, self.fee_b.id])
        self.assertEqual(ctx.exception.extra["pending_payments"], [first["reference_id"]])
        self.assertEqual(
            first["external_id"], f"fee_{self.fee_a.reference}_user_{self.member.member_no}"
        )

    def test_gateway_failure_creates_no_rows(self):
        self.orchestrator.gateway = FakeGateway(accept=False)
        with self.assertRaises(GatewayError):
            self.initiate(Decimal("100.00"), [self.fee_a.id])
        self.assertFalse(Payment.objects.exists())

    def test_payment_without_fees(self):
        summary = self.initiate(Decimal("40.00"), [])
        payment = Payment.objects.get(reference_id=summary["reference_id"])
        self.assertIsNone(payment.fee_application)
        self.assertEqual(payment.amount, Decimal("40.00"))
        self.assertTrue(payment.external_id.startswith(f"payment_user_{self.member.member_no}_"))

    @mock.patch("payments.services.send_payment_received_email")
    def test_status_poll_cascades_once(self, send_email):
        summary = self.initiate(Decimal("250.00"), [self.fee_a.id, self.fee_b.id])
        reference_id = summary["reference_id"]

        with self.captureOnCommitCallbacks(execute=True):
            result = self.orchestrator.check_payment_status(self.member, reference_id)

        self.assertEqual(result["status"], Payment.STATUS_SUCCESSFUL)
        self.assertEqual(result["payments_count"], 2)
        self.assertEqual(result["amount"], "250.00")
        for payment in Payment.objects.for_reference(reference_id):
            self.assertEqual(payment.status, Payment.STATUS_SUCCESSFUL)
            self.assertEqual(payment.financial_transaction_id, "FT-991")
            self.assertEqual(payment.paid_at, NOW)
        for fee in (self.fee_a, self.fee_b):
            fee.refresh_from_db()
            self.assertEqual(fee.status, FeeApplication.STATUS_PAID)
            self.assertEqual(fee.paid_date, timezone.localdate(NOW))
        self.assertEqual(send_email.call_count, 1)

        with self.captureOnCommitCallbacks(execute=True):
            self.orchestrator.check_payment_status(self.member, reference_id)
        self.assertEqual(send_email.call_count, 1)

    @mock.patch("payments.services.send_payment_received_email")
    def test_callback_and_poll_share_reconciliation(self, send_email):
        summary = self.initiate(Decimal("250.00"), [self.fee_a.id, self.fee_b.id])
        reference_id = summary["reference_id"]
        payload = {
            "referenceId": reference_id,
            "status": "SUCCESSFUL",
            "financialTransactionId": "FT-991",
            "externalId": summary["external_id"],
            "amount": "250.00",
        }

        first = self.orchestrator.handle_callback(payload)
        again = self.orchestrator.handle_callback(payload)
        self.orchestrator.check_payment_status(self.member, reference_id)

        self.assertEqual(first["updated_count"], 2)
        self.assertEqual(again["updated_count"], 0)
        payment = Payment.objects.filter(reference_id=reference_id).first()
        self.assertEqual(payment.callback_data["referenceId"], reference_id)
        self.assertEqual(
            FeeApplication.objects.filter(status=FeeApplication.STATUS_PAID).count(), 2
        )

    def test_failed_payment_leaves_fees_open_and_allows_retry(self):
        self.orchestrator.gateway = FakeGateway(status_value="FAILED")
        summary = self.initiate(Decimal("100.00"), [self.fee_a.id])

        self.orchestrator.check_payment_status(self.member, summary["reference_id"])

        payment = Payment.objects.get(reference_id=summary["reference_id"])
        self.fee_a.refresh_from_db()
        self.assertTrue(payment.is_failed())
        self.assertIsNone(payment.paid_at)
        self.assertEqual(payment.reason, "Payer declined")
        self.assertEqual(self.fee_a.status, FeeApplication.STATUS_PENDING)

        retry = self.initiate(Decimal("100.00"), [self.fee_a.id])
        self.assertNotEqual(retry["reference_id"], summary["reference_id"])

    def test_settled_payment_is_not_downgraded(self):
        summary = self.initiate(Decimal("100.00"), [self.fee_a.id])
        self.orchestrator.handle_callback({"referenceId": summary["reference_id"], "status": "SUCCESSFUL"})

        result = self.orchestrator.handle_callback(
            {"referenceId": summary["reference_id"], "status": "FAILED"}
        )

        self.assertEqual(result["updated_count"], 0)
        self.assertTrue(Payment.objects.get(reference_id=summary["reference_id"]).is_successful())

    def test_failed_payment_does_not_return_to_pending(self):
        summary = self.initiate(Decimal("100.00"), [self.fee_a.id])
        reference_id = summary["reference_id"]
        self.orchestrator.handle_callback({"referenceId": reference_id, "status": "FAILED"})

        missing_status = self.orchestrator.handle_callback({"referenceId": reference_id})
        provider_pending = self.orchestrator.handle_callback(
            {"referenceId": reference_id, "status": "PENDING"}
        )

        self.assertFalse(missing_status["success"])
        self.assertEqual(provider_pending["updated_count"], 0)
        self.assertEqual(
            Payment.objects.get(reference_id=reference_id).status, Payment.STATUS_FAILED
        )
        retry = self.initiate(Decimal("100.00"), [self.fee_a.id])
        self.assertNotEqual(retry["reference_id"], reference_id)

    def test_unknown_references(self):
        with self.assertRaises(PaymentNotFound):
            self.orchestrator.check_payment_status(self.member, "nope")

        result = self.orchestrator.handle_callback({"referenceId": "nope", "status": "SUCCESSFUL"})
        self.assertFalse(result["success"])
        self.assertFalse(self.orchestrator.handle_callback({"status": "SUCCESSFUL"})["success"])


class PaymentApiTests(APITestCase):
    def setUp(self):
        self.member = make_member("M001")
        self.other = make_member("M002")
        self.fee_a = make_application(self.member, Decimal("100.00"), name="Land Fee")
        self.fee_b = make_application(self.member, Decimal("150.00"), name="Storage Fee")
        self.gateway = FakeGateway()
        orchestrator_class = partial(PaymentOrchestrator, gateway=self.gateway)
        for view in (InitiatePaymentView, PaymentStatusView):
            patcher = mock.patch.object(view, "orchestrator_class", orchestrator_class)
            patcher.start()
            self.addCleanup(patcher.stop)

    def initiate(self, data):
        return self.client.post("/api/v1/payments/initiate/", data, format="json")

    def test_initiate_requires_authentication(self):
        response = self.initiate({})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_initiate_validation(self):
        self.client.force_authenticate(user=self.member)
        response = self.initiate({"phone_number": "07", "amount": "0"})
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertFalse(response.data["success"])
        self.assertIn("phone_number", response.data["errors"])
        self.assertIn("description", response.data["errors"])

    def test_initiate_bulk(self):
        self.client.force_authenticate(user=self.member)
        response = self.initiate(
            {
                "phone_number": "0772123456",
                "amount": "250.00",
                "description": "Season fees",
                "fee_application_ids": [str(self.fee_a.id), str(self.fee_b.id)],
                "payment_type": "bulk",
            }
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["data"]["fee_applications_count"], 2)
        self.assertEqual(Payment.objects.count(), 2)

    def test_initiate_single_legacy_id(self):
        self.client.force_authenticate(user=self.member)
        response = self.initiate(
            {
                "phone_number": "0772123456",
                "amount": "100.00",
                "description": "Land fee",
                "fee_application_id": str(self.fee_a.id),
            }
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Payment.objects.get().fee_application, self.fee_a)

    def test_initiate_errors(self):
        self.client.force_authenticate(user=self.other)
        response = self.initiate(
            {
                "phone_number": "0772123456",
                "amount": "100.00",
                "description": "Land fee",
                "fee_application_ids": [str(self.fee_a.id)],
            }
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.client.force_authenticate(user=self.member)
        response = self.initiate(
            {
                "phone_number": "0772123456",
                "amount": "200.00",
                "description": "Season fees",
                "fee_application_ids": [str(self.fee_a.id), str(self.fee_b.id)],
            }
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("Amount mismatch", response.data["message"])
        self.assertEqual(self.gateway.charges, [])

    def test_status_get_and_post(self):
        self.client.force_authenticate(user=self.member)
        response = self.client.get("/api/v1/payments/status/?reference_id=unknown")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.initiate(
            {
                "phone_number": "0772123456",
                "amount": "100.00",
                "description": "Land fee",
                "fee_application_ids": [str(self.fee_a.id)],
            }
        )
        reference_id = Payment.objects.get().reference_id
        response = self.client.post(
            "/api/v1/payments/status/", {"reference_id": reference_id}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["status"], Payment.STATUS_SUCCESSFUL)
        self.fee_a.refresh_from_db()
        self.assertEqual(self.fee_a.status, FeeApplication.STATUS_PAID)

        self.client.force_authenticate(user=self.other)
        response = self.client.get(f"/api/v1/payments/status/?reference_id={reference_id}")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_history_is_own_and_paginated(self):
        for index in range(12):
            Payment.objects.create(
                user=self.member,
                reference_id=f"ref-{index}",
                amount=Decimal("10.00"),
                phone_number="0772123456",
                description="Fees",
            )
        Payment.objects.create(
            user=self.other,
            reference_id="other",
            amount=Decimal("10.00"),
            phone_number="0772000000",
            description="Fees",
        )

        self.client.force_authenticate(user=self.member)
        response = self.client.get("/api/v1/payments/history/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["count"], 12)
        self.assertEqual(len(response.data["results"]), 10)
        self.assertIsNotNone(response.data["next"])

    def test_callback_always_answers_200(self):
        response = self.client.post(
            "/api/v1/payments/callback/", data="{not json", content_type="application/json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data["success"])

        response = self.client.post(
            "/api/v1/payments/callback/",
            {"referenceId": "unknown", "status": "SUCCESSFUL"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data["success"])

    def test_callback_settles_payment(self):
        payment = Payment.objects.create(
            user=self.member,
            fee_application=self.fee_a,
            reference_id="ref-cb",
            amount=Decimal("100.00"),
            phone_number="0772123456",
            description="Land fee",
        )
        response = self.client.post(
            "/api/v1/payments/callback/",
            {"referenceId": "ref-cb", "status": "SUCCESSFUL", "financialTransactionId": "FT-1"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["success"])
        payment.refresh_from_db()
        self.fee_a.refresh_from_db()
        self.assertTrue(payment.is_successful())
        self.assertEqual(self.fee_a.status, FeeApplication.STATUS_PAID)
