"""
Console email sender adapter - Implements EmailSender protocol.

This module provides a console-based implementation of the domain's
email sender port, logging OTP codes to stdout for demo purposes.
"""

import logging

from .template import render_otp_email

logger = logging.getLogger(__name__)


class ConsoleEmailSender:
    """
    Implements EmailSender protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - prints OTP codes to stdout.
    """

    def send_otp(self, email: str, template_vars: dict[str, str]) -> None:
        """
        Log the OTP to console (simulates email delivery).

        The template is still rendered so missing variables fail the same
        way they would with a real transport. The code is logged at INFO
        level to be visible in docker-compose logs.

        Args:
            email: Recipient email address (normalized by domain layer)
            template_vars: OTP, COMPANY_NAME and YEAR values
        """
        subject, _ = render_otp_email(template_vars)
        logger.info(
            "[VERIFICATION] Email: %s Company: %s Code: %s",
            email,
            template_vars["COMPANY_NAME"],
            template_vars["OTP"],
        )
        logger.debug("[VERIFICATION] Subject: %s", subject)
