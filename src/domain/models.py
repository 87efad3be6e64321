"""
Domain models - Claim workflow records and value types.

Records are frozen dataclasses; state changes produce a new instance via
dataclasses.replace() which the repositories persist with compare-and-set.
"""

import secrets
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4


class ClaimStatus(str, Enum):
    """
    Claim workflow states.

    Workflow steps (in progress):
    - DOMAIN_CHOICE: claimant is asked whether they hold a company-domain email
    - PROFILE_ENTRY: claimant enters display name, photo and business email
    - PENDING_OTP: code sent, awaiting verification

    Outcomes:
    - DOMAIN_CONFIRMED: domain path completed, awaiting admin review
    - VERIFIED: code verified, awaiting admin review
    - REJECTED: cancelled, or no further codes can be issued
    - EXPIRED: abandoned past the code lifetime plus retention window

    Transitions:
        DOMAIN_CHOICE -> PROFILE_ENTRY
        PROFILE_ENTRY -> DOMAIN_CONFIRMED | PENDING_OTP
        PENDING_OTP   -> VERIFIED
        DOMAIN_CHOICE | PROFILE_ENTRY | PENDING_OTP -> REJECTED | EXPIRED

    Note: claim writes are compare-and-set on the expected prior status and
    the version the writer loaded, so concurrent requests for one claim
    cannot both move it and a stale copy never overwrites a newer one.
    """

    DOMAIN_CHOICE = "DOMAIN_CHOICE"
    PROFILE_ENTRY = "PROFILE_ENTRY"
    DOMAIN_CONFIRMED = "DOMAIN_CONFIRMED"
    PENDING_OTP = "PENDING_OTP"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


# Statuses from which the workflow can still move forward.
IN_PROGRESS_STATUSES = frozenset(
    {ClaimStatus.DOMAIN_CHOICE, ClaimStatus.PROFILE_ENTRY, ClaimStatus.PENDING_OTP}
)

# A new claim for the same (company, claimant) pair is only created once the
# previous one reached one of these.
REPLACEABLE_STATUSES = frozenset({ClaimStatus.REJECTED, ClaimStatus.EXPIRED})


class VerifyResult(Enum):
    """
    Result of an OTP validation attempt.

    Used by OtpChallengeRepository.verify() to indicate success or the
    specific failure reason.
    """

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    CONSUMED = "consumed"
    MISMATCH = "mismatch"
    LOCKED = "locked"


def generate_tracking_number() -> str:
    """Six-digit public reference shown to the claimant for status checks."""
    return f"{secrets.randbelow(900000) + 100000}"


@dataclass(frozen=True)
class Company:
    """Read-only view of a directory listing."""

    id: str
    name: str
    known_email_domain: str | None = None
    claimed: bool = False


@dataclass(frozen=True)
class ClaimRequest:
    """A claimant's attempt to take ownership of a company listing."""

    company_id: str
    claimant_user_id: str
    status: ClaimStatus
    created_at: datetime
    updated_at: datetime
    id: UUID = field(default_factory=uuid4)
    tracking_number: str = field(default_factory=generate_tracking_number)
    display_name: str | None = None
    business_email: str | None = None
    has_domain_email: bool | None = None
    photo_url: str | None = None
    version: int = 0


@dataclass(frozen=True)
class OtpChallenge:
    """
    An issued code and its validation state.

    `code_hash` is bcrypt. `sent_to` is the address the code was emailed to;
    a code only verifies the claim while that is still its business email.
    """

    claim_request_id: UUID
    code_hash: str
    issued_at: datetime
    expires_at: datetime
    attempts: int = 0
    consumed: bool = False
    locked: bool = False
    superseded: bool = False
    sent_to: str | None = None
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class ChallengeCheck:
    """Outcome of one validation attempt and the challenge state it leaves."""

    result: VerifyResult
    attempts: int = 0
    locked: bool = False
    consumed: bool = False
    sent_to: str | None = None

    def remaining_attempts(self, max_attempts: int) -> int:
        if self.locked or self.consumed:
            return 0
        return max(max_attempts - self.attempts, 0)
