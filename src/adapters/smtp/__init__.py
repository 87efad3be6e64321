"""Email sender adapters."""

from .console import ConsoleEmailSender
from .resend_sender import ResendEmailSender

__all__ = ["ConsoleEmailSender", "ResendEmailSender"]
