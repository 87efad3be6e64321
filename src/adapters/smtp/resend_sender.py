"""
Resend email sender adapter - Implements EmailSender protocol.

Delivers the rendered OTP email through the Resend HTTP API.
"""

import logging

import resend

from src.domain.exceptions import DeliveryFailure

from .template import render_otp_email

logger = logging.getLogger(__name__)


class ResendEmailSender:
    """
    Implements EmailSender protocol via the resend SDK.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, api_key: str, sender: str) -> None:
        resend.api_key = api_key
        self._sender = sender

    def send_otp(self, email: str, template_vars: dict[str, str]) -> None:
        """
        Send the OTP email.

        Raises:
            DeliveryFailure: If Resend rejects the request or returns no id
        """
        subject, html_body = render_otp_email(template_vars)
        params = {
            "from": self._sender,
            "to": [email],
            "subject": subject,
            "html": html_body,
        }
        try:
            response = resend.Emails.send(params)
        except Exception as e:
            logger.error("Resend delivery to %s failed: %s", email, e)
            raise DeliveryFailure(email) from e

        if not response or not response.get("id"):
            raise DeliveryFailure(email)
        logger.info("OTP email sent to %s (id=%s)", email, response["id"])
