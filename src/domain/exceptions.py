"""
Domain exceptions - Semantic error types for the claim workflow.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.

OTP validation outcomes are not exceptions; they are reported through
VerifyResult so callers can branch on them without try/except.
"""


class ClaimError(Exception):
    """Base class for claim workflow domain errors."""

    pass


class ValidationError(ClaimError):
    """Input has the wrong shape (missing name, malformed email, ...)."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class ClaimNotFound(ClaimError):
    """Unknown claim request, tracking number or company."""

    pass


class InvalidTransition(ClaimError):
    """Operation is not allowed from the claim's current status."""

    def __init__(self, claim_id: object, status: str, operation: str) -> None:
        super().__init__(f"Cannot {operation} claim {claim_id} in status {status}")
        self.claim_id = claim_id
        self.status = status
        self.operation = operation


class CompanyAlreadyClaimed(ClaimError):
    """The company already has an owner assigned."""

    pass


class ResendTooSoon(ClaimError):
    """A new code was requested before the resend cooldown elapsed."""

    def __init__(self, retry_after_seconds: int) -> None:
        super().__init__(f"Retry after {retry_after_seconds} seconds")
        self.retry_after_seconds = retry_after_seconds


class SendLimitReached(ClaimError):
    """No more codes may be issued for this claim; the claim is rejected."""

    pass


class DeliveryFailure(ClaimError):
    """The email collaborator failed to deliver a code."""

    pass
