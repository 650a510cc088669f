import logging
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from feeapplications.models import FeeApplication
from payments.exceptions import (
    FeeApplicationNotFound,
    FeeAlreadyPaid,
    PaymentAlreadyPending,
    AmountMismatch,
    PaymentNotFound,
    GatewayError,
)
from payments.models import Payment
from payments.momo import MtnMomoClient
from payments.utils import send_payment_received_email

logger = logging.getLogger(__name__)


def fee_application_summary(fee_application):
    return {
        "id": str(fee_application.id),
        "reference": fee_application.reference,
        "amount": str(fee_application.amount),
        "status": fee_application.status,
        "due_date": fee_application.due_date,
        "fee_rule": {
            "name": fee_application.fee_rule.name,
            "description": fee_application.fee_rule.description,
        },
    }


class PaymentOrchestrator:
    """
    Initiates mobile money charges for fee applications and reconciles their
    outcome, whether it arrives by polling or by callback.

    The acting user is always passed in explicitly.
    """

    PAYMENT_TYPE_SINGLE = "single"
    PAYMENT_TYPE_BULK = "bulk"

    def __init__(self, gateway=None, clock=timezone.now):
        self.gateway = gateway or MtnMomoClient()
        self.clock = clock

    def _external_id(self, user, payment_type, fee_applications):
        epoch = int(self.clock().timestamp())
        if payment_type == self.PAYMENT_TYPE_BULK:
            return f"bulk_fees_user_{user.member_no}_{epoch}"
        if fee_applications:
            return f"fee_{fee_applications[0].reference}_user_{user.member_no}"
        return f"payment_user_{user.member_no}_{epoch}"

    def _load_fee_applications(self, user, fee_application_ids):
        by_id = {
            str(application.id): application
            for application in FeeApplication.objects.select_related("fee_rule").filter(
                id__in=fee_application_ids, user=user
            )
        }
        if len(by_id) != len(fee_application_ids):
            raise FeeApplicationNotFound()
        # Keep the caller's order
        return [by_id[str(pk)] for pk in fee_application_ids]

    def initiate_payment(
        self,
        user,
        phone_number,
        amount,
        description,
        fee_application_ids=None,
        payment_type=PAYMENT_TYPE_SINGLE,
    ):
        amount = Decimal(str(amount))
        fee_application_ids = list(dict.fromkeys(str(pk) for pk in fee_application_ids or []))
        fee_applications = []

        if fee_application_ids:
            fee_applications = self._load_fee_applications(user, fee_application_ids)

            if any(a.status == FeeApplication.STATUS_PAID for a in fee_applications):
                raise FeeAlreadyPaid()

            pending_reference_ids = list(
                Payment.objects.pending()
                .filter(fee_application_id__in=fee_application_ids)
                .values_list("reference_id", flat=True)
                .distinct()
            )
            if pending_reference_ids:
                raise PaymentAlreadyPending(pending_reference_ids)

            total = sum((a.amount for a in fee_applications), Decimal("0"))
            if abs(total - amount) > settings.PAYMENT_AMOUNT_TOLERANCE:
                raise AmountMismatch(
                    f"Amount mismatch. Expected: {total}, Provided: {amount}"
                )

        external_id = self._external_id(user, payment_type, fee_applications)
        result = self.gateway.create_payment(amount, phone_number, description, external_id)
        if not result.success:
            logger.error(
                f"Payment initiation for {user.member_no} failed at the gateway: {result.message}"
            )
            raise GatewayError(result.message)

        currency = getattr(self.gateway, "currency", settings.MTN_MOMO["CURRENCY"])
        rows = [(a, a.amount) for a in fee_applications] or [(None, amount)]
        with transaction.atomic():
            payments = [
                Payment.objects.create(
                    user=user,
                    fee_application=fee_application,
                    reference_id=result.reference_id,
                    external_id=result.external_id,
                    amount=row_amount,
                    currency=currency,
                    phone_number=phone_number,
                    description=description,
                    status=Payment.STATUS_PENDING,
                    payment_method="mtn_momo",
                )
                for fee_application, row_amount in rows
            ]

        logger.info(
            f"Payment {result.reference_id} initiated by {user.member_no}: "
            f"{amount} {currency} for {len(fee_applications)} fee applications"
        )
        return {
            "payment_id": str(payments[0].id),
            "reference_id": result.reference_id,
            "external_id": result.external_id,
            "amount": str(amount),
            "currency": currency,
            "phone_number": phone_number,
            "description": description,
            "status": Payment.STATUS_PENDING,
            "payment_type": payment_type,
            "fee_applications_count": len(fee_applications),
            "fee_applications": [fee_application_summary(a) for a in fee_applications],
        }

    def check_payment_status(self, user, reference_id):
        payments = Payment.objects.for_reference(reference_id).filter(user=user)
        if not payments.exists():
            raise PaymentNotFound()

        result = self.gateway.check_payment_status(reference_id)
        if not result.success:
            raise GatewayError(result.message)

        self.reconcile(reference_id, result.status)
        return self.status_summary(reference_id, user=user)

    def handle_callback(self, payload):
        gateway_status = self.gateway.handle_callback(payload)
        if gateway_status is None:
            return {"success": False, "message": "Invalid callback payload"}

        reference_id = gateway_status.reference_id
        if not Payment.objects.for_reference(reference_id).exists():
            logger.warning(f"Callback received for unknown payment reference {reference_id}")
            return {"success": False, "message": "Payment not found"}

        updated = self.reconcile(reference_id, gateway_status, from_callback=True)
        return {
            "success": True,
            "message": "Callback processed",
            "reference_id": reference_id,
            "status": gateway_status.status,
            "updated_count": updated,
        }

    def reconcile(self, reference_id, gateway_status, from_callback=False):
        """
        Bring every payment row sharing `reference_id` to `gateway_status`.

        Rows already carrying the status are left alone, so delivering the
        same outcome twice changes nothing. On success each linked fee
        application is marked paid. Returns the number of rows updated.
        """
        new_status = gateway_status.status
        successful = new_status == Payment.STATUS_SUCCESSFUL
        now = self.clock()

        with transaction.atomic():
            payments = list(
                Payment.objects.select_for_update().for_reference(reference_id)
            )
            changed = []
            for payment in payments:
                if payment.status == new_status:
                    continue
                if payment.is_successful():
                    logger.warning(
                        f"Ignoring {new_status} for settled payment {payment.reference} ({reference_id})"
                    )
                    continue
                if new_status == Payment.STATUS_PENDING:
                    logger.warning(
                        f"Ignoring pending for finished payment {payment.reference} ({reference_id})"
                    )
                    continue

                payment.status = new_status
                payment.financial_transaction_id = gateway_status.financial_transaction_id
                payment.payer_message = gateway_status.payer_message
                payment.payee_note = gateway_status.payee_note
                payment.reason = gateway_status.reason
                payment.paid_at = now if successful else None
                update_fields = [
                    "status",
                    "financial_transaction_id",
                    "payer_message",
                    "payee_note",
                    "reason",
                    "paid_at",
                    "updated_at",
                ]
                if from_callback:
                    payment.callback_data = gateway_status.raw
                    update_fields.append("callback_data")
                payment.save(update_fields=update_fields)
                changed.append(payment)

                if successful and payment.fee_application is not None:
                    payment.fee_application.mark_as_paid(timezone.localdate(now))

            if changed and successful:
                payer = changed[0].user
                transaction.on_commit(
                    lambda: send_payment_received_email(payer, changed)
                )

        if changed:
            logger.info(
                f"Payment {reference_id} reconciled to {new_status}: {len(changed)} rows updated"
            )
        return len(changed)

    def status_summary(self, reference_id, user=None):
        payments = Payment.objects.for_reference(reference_id).select_related(
            "fee_application__fee_rule"
        )
        if user is not None:
            payments = payments.filter(user=user)
        payments = list(payments)
        first = payments[0]
        return {
            "payment_id": str(first.id),
            "reference_id": first.reference_id,
            "amount": str(sum((p.amount for p in payments), Decimal("0"))),
            "currency": first.currency,
            "status": first.status,
            "phone_number": first.phone_number,
            "description": first.description,
            "financial_transaction_id": first.financial_transaction_id,
            "paid_at": first.paid_at,
            "payments_count": len(payments),
            "fee_applications": [
                fee_application_summary(p.fee_application)
                for p in payments
                if p.fee_application is not None
            ],
        }
