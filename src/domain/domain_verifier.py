"""
Domain verifier - decides whether a claimant may skip OTP verification.

No DNS or mailbox proof is performed here. A claimant who says they hold a
company-domain address is taken at their word; the admin review of
DOMAIN_CONFIRMED claims is the control for that path.
"""

from dataclasses import replace
from datetime import datetime

from .models import ClaimRequest, ClaimStatus


def offers_domain_path(company_domain: str | None) -> bool:
    """True iff the company has a known email domain to ask about."""
    return bool(company_domain and company_domain.strip())


def record_domain_choice(claim: ClaimRequest, asserted: bool, now: datetime) -> ClaimRequest:
    """
    Record the claimant's answer and move the claim to profile entry.

    The answer picks the path taken at profile submission:
    asserted -> DOMAIN_CONFIRMED, declined -> PENDING_OTP.
    """
    return replace(
        claim,
        has_domain_email=asserted,
        status=ClaimStatus.PROFILE_ENTRY,
        updated_at=now,
    )
