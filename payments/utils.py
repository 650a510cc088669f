import resend
import logging
from datetime import datetime

from django.conf import settings
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)


def send_payment_received_email(user, payments):
    """
    Sent to the member once a mobile money payment succeeds
    """
    if not user.email:
        return None

    try:
        email_body = render_to_string(
            "payment_received.html",
            {
                "user": user,
                "payments": payments,
                "reference_id": payments[0].reference_id,
                "total_amount": sum(payment.amount for payment in payments),
                "currency": payments[0].currency,
                "current_year": datetime.now().year,
            },
        )
        params = {
            "from": settings.DEFAULT_FROM_EMAIL,
            "to": [user.email],
            "subject": "Payment Received",
            "html": email_body,
        }
        response = resend.Emails.send(params)
        logger.info(f"Email sent to {user.email} with response: {response}")
        return response

    except Exception as e:
        logger.error(f"Error sending email to {user.email}: {str(e)}")
        return None
