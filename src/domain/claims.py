"""
Claim domain service - company ownership claim workflow.

This module contains the core business logic for claiming a company
listing, driving each claim through the workflow below one call at a time.
Every call loads the claim, checks the step is allowed from its current
status, and persists the result with a compare-and-set on that status
and the version it loaded.

Workflow
========

    start_claim      -> DOMAIN_CHOICE (company has a known email domain)
                     -> PROFILE_ENTRY (otherwise)
    choose_domain    DOMAIN_CHOICE | PROFILE_ENTRY -> PROFILE_ENTRY
    submit_profile   PROFILE_ENTRY -> DOMAIN_CONFIRMED (domain path)
                     PROFILE_ENTRY | PENDING_OTP -> PENDING_OTP (code sent)
    send_or_resend   PENDING_OTP -> PENDING_OTP (new code sent)
    verify_otp       PENDING_OTP -> VERIFIED on SUCCESS
    cancel_claim     any in-progress status -> REJECTED

Side effects are ordered: a challenge is persisted before its code is
emailed, so a delivered code can always be validated.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from uuid import UUID

from email_validator import EmailNotValidError, validate_email

from . import domain_verifier, otp
from .exceptions import (
    ClaimNotFound,
    CompanyAlreadyClaimed,
    DeliveryFailure,
    InvalidTransition,
    SendLimitReached,
    ValidationError,
)
from .models import (
    IN_PROGRESS_STATUSES,
    ChallengeCheck,
    ClaimRequest,
    ClaimStatus,
    Company,
    OtpChallenge,
    VerifyResult,
)
from .ports import ClaimRequestRepository, CompanyDirectory, EmailSender, OtpChallengeRepository

logger = logging.getLogger(__name__)

REVIEW_STATUSES = (ClaimStatus.DOMAIN_CONFIRMED, ClaimStatus.VERIFIED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class OtpPolicy:
    """Tunable limits for code issuance and validation."""

    ttl_seconds: int = 3600
    max_attempts: int = 5
    resend_cooldown_seconds: int = 0
    max_sends: int = 5
    retention_seconds: int = 86400
    bcrypt_cost: int = 10


@dataclass
class ClaimService:
    """
    Domain service for company ownership claims.

    Orchestrates the claim workflow: company lookup, domain choice,
    profile validation, code issuance and delivery, and code verification.
    """

    claims: ClaimRequestRepository
    challenges: OtpChallengeRepository
    companies: CompanyDirectory
    email_sender: EmailSender
    policy: OtpPolicy = field(default_factory=OtpPolicy)
    clock: Callable[[], datetime] = _utcnow

    def start_claim(self, company_id: str, claimant_user_id: str) -> tuple[ClaimRequest, bool]:
        """
        Find or create the claim for (company, claimant).

        Returns:
            (claim, created) - created is False when an open claim already
            existed for the pair and was returned instead

        Raises:
            ValidationError: If the claimant id is blank
            ClaimNotFound: If the company does not exist
            CompanyAlreadyClaimed: If the company already has an owner
        """
        if not claimant_user_id or not claimant_user_id.strip():
            raise ValidationError("claimant_user_id", "required")

        company = self._company(company_id)
        if company.claimed:
            raise CompanyAlreadyClaimed(company_id)

        now = self.clock()
        offers_domain = domain_verifier.offers_domain_path(company.known_email_domain)
        candidate = ClaimRequest(
            company_id=company_id,
            claimant_user_id=claimant_user_id.strip(),
            status=ClaimStatus.DOMAIN_CHOICE if offers_domain else ClaimStatus.PROFILE_ENTRY,
            has_domain_email=None if offers_domain else False,
            created_at=now,
            updated_at=now,
        )
        claim, created = self.claims.find_or_create(candidate)
        if created:
            logger.info("Claim %s started for company %s", claim.id, company_id)
        else:
            logger.info("Claim %s already open for company %s", claim.id, company_id)
        return claim, created

    def choose_domain(self, claim_id: UUID, asserted: bool) -> ClaimRequest:
        """
        Record whether the claimant holds a company-domain email.

        Raises:
            ValidationError: If asserting a domain email for a company with
                no known domain
            InvalidTransition: If the profile was already submitted
        """
        claim = self.get_claim(claim_id)
        if claim.status not in (ClaimStatus.DOMAIN_CHOICE, ClaimStatus.PROFILE_ENTRY):
            raise InvalidTransition(claim.id, claim.status.value, "choose domain for")

        company = self._company(claim.company_id)
        if asserted and not domain_verifier.offers_domain_path(company.known_email_domain):
            raise ValidationError("has_domain_email", "company has no known email domain")

        updated = domain_verifier.record_domain_choice(claim, asserted, self.clock())
        return self._save(updated, claim.status, "choose domain for")

    def submit_profile(
        self,
        claim_id: UUID,
        display_name: str,
        business_email: str | None = None,
        photo_url: str | None = None,
    ) -> ClaimRequest:
        """
        Submit the claimant profile and take the chosen verification path.

        Domain path: the claim becomes DOMAIN_CONFIRMED and no code is issued.
        OTP path: a code is issued, persisted and emailed; the claim becomes
        PENDING_OTP. Resubmitting from PENDING_OTP issues a fresh code.

        Raises:
            ValidationError: Blank name, or missing/malformed business email
                on the OTP path; the claim stays where it was
            InvalidTransition: If the domain question is still unanswered or
                the claim already finished
            ResendTooSoon: Resubmitted within the resend cooldown
            SendLimitReached: No codes left for the claim (claim is rejected)
            DeliveryFailure: The code was stored but the email failed; the
                claim is PENDING_OTP and a resend is available
        """
        claim = self.get_claim(claim_id)
        if claim.status not in (ClaimStatus.PROFILE_ENTRY, ClaimStatus.PENDING_OTP):
            raise InvalidTransition(claim.id, claim.status.value, "submit profile for")

        name = (display_name or "").strip()
        if not name:
            raise ValidationError("display_name", "required")

        now = self.clock()
        if claim.has_domain_email:
            email = self._normalize_email(business_email) if business_email else None
            confirmed = replace(
                claim,
                display_name=name,
                business_email=email,
                photo_url=photo_url,
                status=ClaimStatus.DOMAIN_CONFIRMED,
                updated_at=now,
            )
            confirmed = self._save(confirmed, claim.status, "submit profile for")
            logger.info("Claim %s confirmed via company domain", claim.id)
            return confirmed

        if not business_email or not business_email.strip():
            raise ValidationError("business_email", "required")
        email = self._normalize_email(business_email)

        company = self._company(claim.company_id)
        code = otp.generate_code()
        self._issue(claim, self._new_challenge(claim, code, now, email))

        pending = self._save(
            replace(
                claim,
                display_name=name,
                business_email=email,
                photo_url=photo_url,
                status=ClaimStatus.PENDING_OTP,
                updated_at=now,
            ),
            claim.status,
            "submit profile for",
        )
        logger.info("Claim %s awaiting OTP verification", claim.id)

        self._deliver(pending, company, code, now)
        return pending

    def send_or_resend_otp(self, claim_id: UUID) -> OtpChallenge:
        """
        Issue a new code for a PENDING_OTP claim, superseding the old one.

        Raises:
            InvalidTransition: If the claim is not awaiting a code
            ResendTooSoon: If the resend cooldown has not elapsed
            SendLimitReached: If the claim used all its codes (claim is rejected)
            DeliveryFailure: The code was stored but the email failed
        """
        claim = self.get_claim(claim_id)
        if claim.status != ClaimStatus.PENDING_OTP:
            raise InvalidTransition(claim.id, claim.status.value, "send code for")

        now = self.clock()
        company = self._company(claim.company_id)

        code = otp.generate_code()
        challenge = self._new_challenge(claim, code, now, claim.business_email)
        self._issue(claim, challenge)

        if not self.claims.touch(claim.id, ClaimStatus.PENDING_OTP, now):
            current = self.claims.get(claim.id)
            status = current.status.value if current else "MISSING"
            raise InvalidTransition(claim.id, status, "send code for")
        logger.info("Claim %s: new code issued", claim.id)

        self._deliver(claim, company, code, now)
        return challenge

    def verify_otp(self, claim_id: UUID, code: str) -> ChallengeCheck:
        """
        Check a submitted code; on SUCCESS the claim becomes VERIFIED.

        Mismatches keep the claim in PENDING_OTP. EXPIRED and LOCKED need a
        resend; when no codes are left a LOCKED result also rejects the claim.
        A correct code emailed to an address the claimant has since replaced
        reports EXPIRED and leaves the claim pending.

        Raises:
            ValidationError: If the code is not six digits (no attempt spent)
            InvalidTransition: If the claim never reached PENDING_OTP
        """
        claim = self.get_claim(claim_id)
        if claim.status not in (ClaimStatus.PENDING_OTP, ClaimStatus.VERIFIED):
            raise InvalidTransition(claim.id, claim.status.value, "verify code for")

        candidate = (code or "").strip()
        if not otp.is_well_formed(candidate):
            raise ValidationError("code", "must be 6 digits")

        check = self.challenges.verify(
            claim.id, candidate, self.clock(), self.policy.max_attempts
        )

        if check.result == VerifyResult.SUCCESS:
            return self._mark_verified(claim.id, check)
        if check.result == VerifyResult.LOCKED:
            logger.warning("Claim %s: challenge locked after failed attempts", claim.id)
            if self.challenges.count_issued(claim.id) >= self.policy.max_sends:
                self._reject_exhausted(claim.id, "no codes left")
        elif check.result == VerifyResult.MISMATCH:
            logger.info("Claim %s: wrong code (attempt %d)", claim.id, check.attempts)
        return check

    def cancel_claim(self, claim_id: UUID) -> ClaimRequest:
        """
        Abandon an in-progress claim.

        Raises:
            InvalidTransition: If the claim already finished
        """
        claim = self.get_claim(claim_id)
        if claim.status not in IN_PROGRESS_STATUSES:
            raise InvalidTransition(claim.id, claim.status.value, "cancel")
        return self._reject(claim, "cancelled by claimant")

    def get_claim(self, claim_id: UUID) -> ClaimRequest:
        claim = self.claims.get(claim_id)
        if claim is None:
            raise ClaimNotFound(str(claim_id))
        return claim

    def find_by_tracking_number(
        self, tracking_number: str, claimant_user_id: str | None = None
    ) -> ClaimRequest:
        claim = self.claims.find_by_tracking_number(tracking_number.strip(), claimant_user_id)
        if claim is None:
            raise ClaimNotFound(tracking_number)
        return claim

    def remaining_attempts(self, claim_id: UUID) -> int:
        """Wrong guesses left on the active challenge (0 if none)."""
        challenge = self.challenges.get_active(claim_id)
        if challenge is None or challenge.consumed or challenge.locked:
            return 0
        return max(self.policy.max_attempts - challenge.attempts, 0)

    def list_claims_for_review(
        self, statuses: Iterable[ClaimStatus] = REVIEW_STATUSES
    ) -> list[ClaimRequest]:
        """Claims the admin review surface should act on."""
        return self.claims.list_by_status(statuses)

    def expire_stale_claims(self) -> int:
        """
        Expire abandoned claims and drop dead challenges.

        A claim untouched for a full code lifetime plus the retention window
        becomes EXPIRED; the claimant can then start a fresh claim.
        """
        now = self.clock()
        retention = timedelta(seconds=self.policy.retention_seconds)
        claim_cutoff = now - timedelta(seconds=self.policy.ttl_seconds) - retention

        expired = self.claims.expire_stale(claim_cutoff, now)
        purged = self.challenges.purge(now - retention)
        logger.info("Expired %d stale claim(s), purged %d challenge(s)", expired, purged)
        return expired

    def _company(self, company_id: str) -> Company:
        company = self.companies.get_company(company_id)
        if company is None:
            raise ClaimNotFound(f"company {company_id}")
        return company

    def _new_challenge(
        self, claim: ClaimRequest, code: str, now: datetime, sent_to: str | None
    ) -> OtpChallenge:
        return otp.new_challenge(
            claim.id,
            code,
            now,
            self.policy.ttl_seconds,
            self.policy.bcrypt_cost,
            sent_to=sent_to,
        )

    def _issue(self, claim: ClaimRequest, challenge: OtpChallenge) -> None:
        # The repository checks cooldown and cap under the lock it inserts with
        try:
            self.challenges.replace(
                challenge, self.policy.max_sends, self.policy.resend_cooldown_seconds
            )
        except SendLimitReached:
            self._reject_exhausted(claim.id, "send limit reached")
            raise

    def _mark_verified(self, claim_id: UUID, check: ChallengeCheck) -> ChallengeCheck:
        """
        Move the claim to VERIFIED for a code that just matched.

        Works from a fresh read so profile changes made since the caller
        loaded the claim are kept, and only verifies while the claim's
        business email is still the address the code was sent to.
        """
        while True:
            claim = self.get_claim(claim_id)
            if claim.status != ClaimStatus.PENDING_OTP or claim.business_email != check.sent_to:
                logger.warning("Claim %s: matched code no longer applies to the claim", claim_id)
                return replace(check, result=VerifyResult.EXPIRED)

            verified = replace(claim, status=ClaimStatus.VERIFIED, updated_at=self.clock())
            if self.claims.save(verified, ClaimStatus.PENDING_OTP):
                logger.info("Claim %s verified", claim_id)
                return check

    def _deliver(self, claim: ClaimRequest, company: Company, code: str, now: datetime) -> None:
        # Runs after the challenge is stored; DeliveryFailure propagates to the
        # caller with the challenge intact so a resend can follow.
        try:
            self.email_sender.send_otp(
                claim.business_email,
                {"OTP": code, "COMPANY_NAME": company.name, "YEAR": str(now.year)},
            )
        except DeliveryFailure:
            logger.warning("Claim %s: code delivery failed", claim.id)
            raise

    def _reject(self, claim: ClaimRequest, reason: str) -> ClaimRequest:
        rejected = replace(claim, status=ClaimStatus.REJECTED, updated_at=self.clock())
        stored = self._save(rejected, claim.status, "reject")
        logger.info("Claim %s rejected: %s", claim.id, reason)
        return stored

    def _reject_exhausted(self, claim_id: UUID, reason: str) -> None:
        """Reject a claim that can get no further codes, unless it already finished."""
        while True:
            claim = self.get_claim(claim_id)
            if claim.status not in IN_PROGRESS_STATUSES:
                return
            rejected = replace(claim, status=ClaimStatus.REJECTED, updated_at=self.clock())
            if self.claims.save(rejected, claim.status):
                logger.info("Claim %s rejected: %s", claim_id, reason)
                return

    def _save(self, claim: ClaimRequest, expected: ClaimStatus, operation: str) -> ClaimRequest:
        if not self.claims.save(claim, expected):
            current = self.claims.get(claim.id)
            status = current.status.value if current else "MISSING"
            raise InvalidTransition(claim.id, status, operation)
        return replace(claim, version=claim.version + 1)

    def _normalize_email(self, email: str) -> str:
        """
        Validate syntax and normalize for storage.

        Applies: strip whitespace + lowercase. No deliverability lookup.
        """
        try:
            validate_email(email.strip(), check_deliverability=False)
        except EmailNotValidError as e:
            raise ValidationError("business_email", str(e)) from None
        return email.strip().lower()
