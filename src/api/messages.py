"""
User-facing message catalog.

Route handlers never hard-code display text; they ask the injected catalog,
so a localized catalog can be swapped in through dependency overrides.
"""

from dataclasses import dataclass, field

DEFAULT_MESSAGES: dict[str, str] = {
    "claim_started": "Claim request created",
    "claim_exists": "You already have an open claim for this company",
    "domain_recorded": "Domain choice recorded",
    "domain_confirmed": "Claim submitted for review",
    "code_sent": "Verification code sent to {email}",
    "code_resent": "A new verification code has been sent",
    "verified": "Email verified. Your claim is awaiting review",
    "claim_cancelled": "Claim request cancelled",
    "mismatch": "Incorrect code. {remaining} attempt(s) remaining",
    "expired": "This code has expired. Please request a new code",
    "locked": "Too many incorrect attempts. Please request a new code",
    "consumed": "This code has already been used",
    "no_code": "No active code. Please request a new code",
    "claim_not_found": "Claim request not found",
    "company_claimed": "This company has already been claimed",
    "invalid_step": "This action is not available at the current step",
    "resend_too_soon": "Please wait {seconds} second(s) before requesting a new code",
    "send_limit": "Too many codes requested. This claim has been closed",
    "delivery_failed": "We could not send the verification email. Please try resending",
    "invalid_input": "Invalid {field}: {message}",
    "login_required": "Please sign in to claim a company",
}


@dataclass
class MessageCatalog:
    """Looks up display text by key and fills in named values."""

    messages: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_MESSAGES))

    def get(self, key: str, **values: object) -> str:
        template = self.messages.get(key) or DEFAULT_MESSAGES[key]
        return template.format(**values)
