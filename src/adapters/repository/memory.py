"""
In-memory repository adapters - Process-local implementations of the ports.

Used for local development (STORAGE_BACKEND=memory) and unit tests. They
honour the same atomicity contract as the PostgreSQL adapters: a store-wide
lock guards claim find-or-create and compare-and-set, and each claim gets
its own lock for OTP issue/verify so one claimant's bcrypt work does not
block another's.
"""

import json
import threading
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from uuid import UUID
from weakref import WeakValueDictionary

from src.domain.models import (
    IN_PROGRESS_STATUSES,
    REPLACEABLE_STATUSES,
    ChallengeCheck,
    ClaimRequest,
    ClaimStatus,
    Company,
    OtpChallenge,
    VerifyResult,
)
from src.domain.otp import check_issue_allowed, evaluate_challenge


class InMemoryClaimRequestRepository:
    """
    Implements ClaimRequestRepository protocol with a dict.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self) -> None:
        self._claims: dict[UUID, ClaimRequest] = {}
        self._lock = threading.Lock()

    def find_or_create(self, claim: ClaimRequest) -> tuple[ClaimRequest, bool]:
        with self._lock:
            existing = self._open_claim(claim.company_id, claim.claimant_user_id)
            if existing is not None:
                return existing, False
            self._claims[claim.id] = claim
            return claim, True

    def get(self, claim_id: UUID) -> ClaimRequest | None:
        with self._lock:
            return self._claims.get(claim_id)

    def find_by_company_and_claimant(
        self, company_id: str, claimant_user_id: str
    ) -> ClaimRequest | None:
        with self._lock:
            return self._open_claim(company_id, claimant_user_id)

    def find_by_tracking_number(
        self, tracking_number: str, claimant_user_id: str | None = None
    ) -> ClaimRequest | None:
        with self._lock:
            matches = [
                c
                for c in self._claims.values()
                if c.tracking_number == tracking_number
                and claimant_user_id in (None, c.claimant_user_id)
            ]
        if not matches:
            return None
        return max(matches, key=lambda c: c.created_at)

    def save(self, claim: ClaimRequest, expected_status: ClaimStatus) -> bool:
        with self._lock:
            stored = self._claims.get(claim.id)
            if (
                stored is None
                or stored.status != expected_status
                or stored.version != claim.version
            ):
                return False
            # Identity and tracking fields are immutable once created
            self._claims[claim.id] = replace(
                claim,
                company_id=stored.company_id,
                claimant_user_id=stored.claimant_user_id,
                tracking_number=stored.tracking_number,
                created_at=stored.created_at,
                version=stored.version + 1,
            )
            return True

    def touch(self, claim_id: UUID, expected_status: ClaimStatus, now: datetime) -> bool:
        with self._lock:
            stored = self._claims.get(claim_id)
            if stored is None or stored.status != expected_status:
                return False
            self._claims[claim_id] = replace(stored, updated_at=now)
            return True

    def list_by_status(self, statuses: Iterable[ClaimStatus]) -> list[ClaimRequest]:
        wanted = set(statuses)
        with self._lock:
            matches = [c for c in self._claims.values() if c.status in wanted]
        return sorted(matches, key=lambda c: c.created_at)

    def expire_stale(self, cutoff: datetime, now: datetime) -> int:
        expired = 0
        with self._lock:
            for claim_id, claim in list(self._claims.items()):
                if claim.status in IN_PROGRESS_STATUSES and claim.updated_at < cutoff:
                    self._claims[claim_id] = replace(
                        claim,
                        status=ClaimStatus.EXPIRED,
                        updated_at=now,
                        version=claim.version + 1,
                    )
                    expired += 1
        return expired

    def _open_claim(self, company_id: str, claimant_user_id: str) -> ClaimRequest | None:
        for claim in self._claims.values():
            if (
                claim.company_id == company_id
                and claim.claimant_user_id == claimant_user_id
                and claim.status not in REPLACEABLE_STATUSES
            ):
                return claim
        return None


class InMemoryOtpChallengeRepository:
    """
    Implements OtpChallengeRepository protocol with per-claim locks.

    Challenges are kept per claim in issue order; the last one is active
    unless superseded. Locks live in a WeakValueDictionary, so a claim's
    lock disappears once no caller holds it and lookups for unknown or
    purged claims leave nothing behind.
    """

    def __init__(self) -> None:
        self._challenges: dict[UUID, list[OtpChallenge]] = defaultdict(list)
        self._locks: WeakValueDictionary[UUID, threading.Lock] = WeakValueDictionary()
        self._registry_lock = threading.Lock()

    def _claim_lock(self, claim_request_id: UUID) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(claim_request_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[claim_request_id] = lock
            return lock

    def replace(
        self,
        challenge: OtpChallenge,
        max_sends: int | None = None,
        cooldown_seconds: int = 0,
    ) -> None:
        claim_id = challenge.claim_request_id
        with self._claim_lock(claim_id):
            check_issue_allowed(
                challenge,
                self._active(claim_id),
                len(self._challenges.get(claim_id, [])),
                max_sends,
                cooldown_seconds,
            )
            history = self._challenges[claim_id]
            history[:] = [replace(c, superseded=True) for c in history]
            history.append(replace(challenge, superseded=False))

    def get_active(self, claim_request_id: UUID) -> OtpChallenge | None:
        with self._claim_lock(claim_request_id):
            return self._active(claim_request_id)

    def count_issued(self, claim_request_id: UUID) -> int:
        with self._claim_lock(claim_request_id):
            return len(self._challenges.get(claim_request_id, []))

    def verify(
        self, claim_request_id: UUID, candidate: str, now: datetime, max_attempts: int
    ) -> ChallengeCheck:
        with self._claim_lock(claim_request_id):
            challenge = self._active(claim_request_id)
            superseded_hashes = [
                c.code_hash for c in self._challenges.get(claim_request_id, []) if c.superseded
            ]
            check = evaluate_challenge(
                challenge, candidate, now, max_attempts, superseded_hashes
            )
            if challenge is None:
                return check

            if check.result == VerifyResult.SUCCESS:
                self._store(replace(challenge, consumed=True))
            elif check.attempts != challenge.attempts or check.locked != challenge.locked:
                self._store(replace(challenge, attempts=check.attempts, locked=check.locked))
            return check

    def purge(self, cutoff: datetime) -> int:
        purged = 0
        with self._registry_lock:
            claim_ids = list(self._challenges)
        for claim_id in claim_ids:
            with self._claim_lock(claim_id):
                history = self._challenges.get(claim_id, [])
                kept = [c for c in history if c.expires_at >= cutoff]
                purged += len(history) - len(kept)
                if kept:
                    self._challenges[claim_id] = kept
                else:
                    self._challenges.pop(claim_id, None)
        return purged

    def _active(self, claim_request_id: UUID) -> OtpChallenge | None:
        history = self._challenges.get(claim_request_id)
        if not history or history[-1].superseded:
            return None
        return history[-1]

    def _store(self, challenge: OtpChallenge) -> None:
        history = self._challenges[challenge.claim_request_id]
        history[-1] = challenge


class InMemoryCompanyDirectory:
    """Implements CompanyDirectory protocol over a dict of companies."""

    def __init__(self, companies: Iterable[Company] = ()) -> None:
        self._companies = {company.id: company for company in companies}

    @classmethod
    def from_json(cls, path: str) -> "InMemoryCompanyDirectory":
        """Load companies from a JSON list of {id, name, known_email_domain, claimed}."""
        records = json.loads(Path(path).read_text())
        return cls(Company(**record) for record in records)

    def add(self, company: Company) -> None:
        self._companies[company.id] = company

    def get_company(self, company_id: str) -> Company | None:
        return self._companies.get(company_id)
