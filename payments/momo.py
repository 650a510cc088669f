# payments/momo.py

"""
MTN Mobile Money collection API client

Stateless wrapper around the provider's HTTP API. The only state it keeps is
the bearer token, cached in the Django cache under a fixed key.

Every call returns a result object; transport errors and non success responses
are logged and turned into `success=False` results, never raised.

Charges complete asynchronously: `create_payment` only tells us the provider
accepted the request (HTTP 202). The outcome arrives later through
`check_payment_status` or the callback.
"""

import logging
import re
import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional

import requests
from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger(__name__)

TOKEN_CACHE_KEY = "mtn_momo_access_token"

PROVIDER_PENDING = "PENDING"


@dataclass
class GatewayStatus:
    """Normalized state of a charge, from a status poll or a callback."""

    reference_id: Optional[str]
    status: str
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    external_id: Optional[str] = None
    financial_transaction_id: Optional[str] = None
    payer_message: Optional[str] = None
    payee_note: Optional[str] = None
    reason: Optional[str] = None
    raw: dict = field(default_factory=dict)

    @property
    def is_successful(self):
        return self.status == "SUCCESSFUL"


@dataclass
class GatewayResult:
    success: bool
    message: str = ""
    reference_id: Optional[str] = None
    external_id: Optional[str] = None
    status: Optional[GatewayStatus] = None


def normalize_phone_number(phone_number, country_code):
    """
    Format a phone number as the provider's MSISDN: digits only, with the
    country code exactly once.

    >>> normalize_phone_number("0772 123 456", "256")
    '256772123456'
    """
    digits = re.sub(r"\D", "", str(phone_number or ""))
    if digits.startswith("0"):
        digits = country_code + digits[1:]
    if not digits.startswith(country_code):
        digits = country_code + digits
    return digits


def normalize_status(status):
    # Local rows use lower case "pending"; terminal statuses are kept verbatim
    if not status:
        return "pending"
    status = str(status)
    if status.upper() == PROVIDER_PENDING:
        return "pending"
    return status.upper()


def _to_decimal(value):
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _reason_text(reason):
    # The provider sends either a plain string or {"code": ..., "message": ...}
    if reason is None:
        return None
    if isinstance(reason, dict):
        return reason.get("message") or reason.get("code")
    return str(reason)


def parse_status_payload(data, reference_id=None):
    return GatewayStatus(
        reference_id=reference_id or data.get("referenceId") or data.get("reference_id"),
        status=normalize_status(data.get("status")),
        amount=_to_decimal(data.get("amount")),
        currency=data.get("currency"),
        external_id=data.get("externalId"),
        financial_transaction_id=data.get("financialTransactionId"),
        payer_message=data.get("payerMessage"),
        payee_note=data.get("payeeNote"),
        reason=_reason_text(data.get("reason")),
        raw=data,
    )


class MtnMomoClient:
    def __init__(self, config=None, session=None):
        config = config or settings.MTN_MOMO
        self.base_url = config["BASE_URL"].rstrip("/")
        self.subscription_key = config.get("SUBSCRIPTION_KEY")
        self.target_environment = config.get("TARGET_ENVIRONMENT", "sandbox")
        self.api_user = config.get("API_USER")
        self.api_key = config.get("API_KEY")
        self.callback_url = config.get("CALLBACK_URL")
        self.currency = config.get("CURRENCY", "EUR")
        self.country_code = str(config.get("COUNTRY_CODE", "256"))
        self.token_cache_timeout = config.get("TOKEN_CACHE_TIMEOUT", 3300)
        self.timeout = config.get("REQUEST_TIMEOUT", 30)
        self.session = session or requests.Session()

    def _headers(self, **extra):
        headers = {
            "X-Target-Environment": self.target_environment,
            "Ocp-Apim-Subscription-Key": self.subscription_key,
        }
        headers.update(extra)
        return headers

    @staticmethod
    def generate_reference_id():
        return str(uuid.uuid4())

    def get_access_token(self):
        token = cache.get(TOKEN_CACHE_KEY)
        if token:
            return token

        try:
            response = self.session.post(
                f"{self.base_url}/collection/token/",
                auth=(self.api_user or "", self.api_key or ""),
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"MTN MoMo token request exception: {str(e)}")
            return None

        if response.status_code != 200:
            logger.error(f"MTN MoMo token request failed with status {response.status_code}")
            return None

        try:
            token = response.json().get("access_token")
        except ValueError:
            token = None
        if not token:
            logger.error("MTN MoMo token response did not contain an access token")
            return None

        cache.set(TOKEN_CACHE_KEY, token, self.token_cache_timeout)
        return token

    def create_payment(self, amount, phone_number, description, external_id=None):
        access_token = self.get_access_token()
        if not access_token:
            return GatewayResult(success=False, message="Failed to get access token")

        reference_id = self.generate_reference_id()
        external_id = external_id or reference_id
        payload = {
            "amount": str(amount),
            "currency": self.currency,
            "externalId": external_id,
            "payer": {
                "partyIdType": "MSISDN",
                "partyId": normalize_phone_number(phone_number, self.country_code),
            },
            "payerMessage": description,
            "payeeNote": description,
        }
        extra_headers = {
            "Authorization": f"Bearer {access_token}",
            "X-Reference-Id": reference_id,
            "Content-Type": "application/json",
        }
        if self.callback_url:
            extra_headers["X-Callback-Url"] = self.callback_url

        try:
            response = self.session.post(
                f"{self.base_url}/collection/v1_0/requesttopay",
                json=payload,
                headers=self._headers(**extra_headers),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(
                f"MTN MoMo payment request exception for {external_id}: {str(e)}"
            )
            return GatewayResult(success=False, message=f"Payment request failed: {str(e)}")

        if response.status_code == 202:
            logger.info(
                f"MTN MoMo payment request accepted: reference={reference_id} external={external_id}"
            )
            return GatewayResult(
                success=True,
                message="Payment request created successfully",
                reference_id=reference_id,
                external_id=external_id,
            )

        try:
            error_message = response.json().get("message") or "Unknown error"
        except ValueError:
            error_message = "Unknown error"
        logger.error(
            f"MTN MoMo payment request failed for {external_id}: "
            f"status={response.status_code} message={error_message}"
        )
        return GatewayResult(
            success=False, message=f"Failed to create payment request: {error_message}"
        )

    def check_payment_status(self, reference_id):
        access_token = self.get_access_token()
        if not access_token:
            return GatewayResult(success=False, message="Failed to get access token")

        try:
            response = self.session.get(
                f"{self.base_url}/collection/v1_0/requesttopay/{reference_id}",
                headers=self._headers(Authorization=f"Bearer {access_token}"),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"MTN MoMo status check exception for {reference_id}: {str(e)}")
            return GatewayResult(success=False, message=f"Status check failed: {str(e)}")

        if response.status_code != 200:
            logger.error(
                f"MTN MoMo status check failed for {reference_id}: status={response.status_code}"
            )
            return GatewayResult(success=False, message="Failed to check payment status")

        try:
            data = response.json()
        except ValueError:
            logger.error(f"MTN MoMo status check for {reference_id} returned invalid JSON")
            return GatewayResult(success=False, message="Failed to check payment status")

        return GatewayResult(
            success=True,
            reference_id=reference_id,
            external_id=data.get("externalId"),
            status=parse_status_payload(data, reference_id=reference_id),
        )

    def handle_callback(self, payload):
        """
        Parse an inbound notification. Returns None when the payload carries
        no reference id or no status.
        """
        if not isinstance(payload, dict):
            logger.error("MTN MoMo callback payload is not an object")
            return None

        logger.info(f"MTN MoMo callback received for {payload.get('referenceId')}")
        gateway_status = parse_status_payload(payload)
        if not gateway_status.reference_id:
            logger.error("MTN MoMo callback missing reference ID")
            return None
        if not payload.get("status"):
            logger.error(f"MTN MoMo callback for {gateway_status.reference_id} missing status")
            return None
        return gateway_status
