"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Protocol
from uuid import UUID

from .models import (
    IN_PROGRESS_STATUSES,
    REPLACEABLE_STATUSES,
    ChallengeCheck,
    ClaimRequest,
    ClaimStatus,
    Company,
    OtpChallenge,
    VerifyResult,
)

__all__ = [
    "IN_PROGRESS_STATUSES",
    "REPLACEABLE_STATUSES",
    "ClaimRequestRepository",
    "ClaimStatus",
    "CompanyDirectory",
    "EmailSender",
    "OtpChallengeRepository",
    "VerifyResult",
]


class ClaimRequestRepository(Protocol):
    """Port interface for claim request persistence."""

    def find_or_create(self, claim: ClaimRequest) -> tuple[ClaimRequest, bool]:
        """
        Atomically return the open claim for (company_id, claimant_user_id),
        or store `claim` if there is none.

        Claims in REJECTED or EXPIRED status do not count as open.

        Returns:
            (stored claim, True if `claim` was inserted)
        """
        ...

    def get(self, claim_id: UUID) -> ClaimRequest | None:
        """Fetch a claim by id."""
        ...

    def find_by_company_and_claimant(
        self, company_id: str, claimant_user_id: str
    ) -> ClaimRequest | None:
        """Fetch the open claim for a (company, claimant) pair."""
        ...

    def find_by_tracking_number(
        self, tracking_number: str, claimant_user_id: str | None = None
    ) -> ClaimRequest | None:
        """
        Fetch the most recent claim carrying the tracking number.

        Tracking numbers are not unique; passing `claimant_user_id` limits
        the lookup to that claimant's claims.
        """
        ...

    def save(self, claim: ClaimRequest, expected_status: ClaimStatus) -> bool:
        """
        Persist the claim's mutable fields if its stored status still equals
        `expected_status` and its stored version still equals `claim.version`.

        A successful save increments the stored version.

        Returns:
            True if the row was updated, False if another request wrote it first
        """
        ...

    def touch(self, claim_id: UUID, expected_status: ClaimStatus, now: datetime) -> bool:
        """
        Set updated_at to `now` if the claim is still in `expected_status`.

        Leaves the version alone, so it never invalidates a concurrent save.
        """
        ...

    def list_by_status(self, statuses: Iterable[ClaimStatus]) -> list[ClaimRequest]:
        """List claims in any of the given statuses, oldest first."""
        ...

    def expire_stale(self, cutoff: datetime, now: datetime) -> int:
        """
        Move in-progress claims untouched since `cutoff` to EXPIRED.

        Returns:
            Number of claims expired
        """
        ...


class OtpChallengeRepository(Protocol):
    """Port interface for OTP challenge persistence."""

    def replace(
        self,
        challenge: OtpChallenge,
        max_sends: int | None = None,
        cooldown_seconds: int = 0,
    ) -> None:
        """
        Store `challenge` as the claim's only active challenge.

        Under one per-claim lock: checks the resend cooldown and the send cap
        with src.domain.otp.check_issue_allowed, marks any previously active
        challenge superseded and inserts the new one.

        Raises:
            ResendTooSoon: The active code is younger than `cooldown_seconds`
            SendLimitReached: `max_sends` codes were already issued
        """
        ...

    def get_active(self, claim_request_id: UUID) -> OtpChallenge | None:
        """Fetch the claim's active (not superseded) challenge."""
        ...

    def count_issued(self, claim_request_id: UUID) -> int:
        """Count challenges issued for the claim that are still retained."""
        ...

    def verify(
        self, claim_request_id: UUID, candidate: str, now: datetime, max_attempts: int
    ) -> ChallengeCheck:
        """
        Validate a candidate code against the active challenge.

        Implementations hold a per-claim lock for the whole check so that
        the attempt counter and the consumed flag change atomically, and
        delegate the decision to src.domain.otp.evaluate_challenge.
        """
        ...

    def purge(self, cutoff: datetime) -> int:
        """Delete challenges whose expiry is before `cutoff`. Returns count."""
        ...


class CompanyDirectory(Protocol):
    """Port interface for the read-only company lookup."""

    def get_company(self, company_id: str) -> Company | None:
        """Fetch a company by id."""
        ...


class EmailSender(Protocol):
    """Port interface for email delivery."""

    def send_otp(self, email: str, template_vars: dict[str, str]) -> None:
        """
        Send the OTP email.

        Args:
            email: Recipient email address
            template_vars: Values for the {{OTP}}, {{COMPANY_NAME}} and
                {{YEAR}} placeholders

        Raises:
            DeliveryFailure: If the message could not be handed off
        """
        ...
