"""
OTP generation and validation rules.

Security Design - Timing Oracle Prevention:
------------------------------------------
Codes are stored as bcrypt hashes. evaluate_challenge() always runs exactly
one bcrypt comparison against the active challenge before looking at any
state, substituting _DUMMY_CODE_HASH when the claim has no challenge. The
NOT_FOUND, EXPIRED, CONSUMED, LOCKED and MISMATCH paths therefore all pay
the same cryptographic cost and cannot be told apart by response time.

Decision order (first match wins):
    NOT_FOUND -> EXPIRED -> CONSUMED -> LOCKED -> SUCCESS -> MISMATCH

A wrong guess that matches a superseded code of the same claim reports
EXPIRED without spending an attempt, so an honest claimant typing the code
from an older email is told to use the newest one.
"""

import secrets
from collections.abc import Sequence
from datetime import datetime, timedelta

import bcrypt

from .exceptions import ResendTooSoon, SendLimitReached
from .models import ChallengeCheck, OtpChallenge, VerifyResult

CODE_LENGTH = 6

# Pre-computed bcrypt hash used when a claim has no challenge, so validation
# always performs one bcrypt comparison.
_DUMMY_CODE_HASH = bcrypt.hashpw(b"000000-no-challenge", bcrypt.gensalt(10)).decode()


def generate_code() -> str:
    """
    Generate a cryptographically secure 6-digit code.

    Uniform over 000000-999999. Returns a string to preserve leading zeros.
    """
    return f"{secrets.randbelow(10**CODE_LENGTH):0{CODE_LENGTH}d}"


def hash_code(code: str, rounds: int = 10) -> str:
    """Hash a code for storage."""
    return bcrypt.hashpw(code.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def code_matches(code_hash: str | None, candidate: str) -> bool:
    """Constant-time check of `candidate` against a stored hash."""
    stored = code_hash if code_hash is not None else _DUMMY_CODE_HASH
    matched = bcrypt.checkpw(candidate.encode(), stored.encode())
    return matched and code_hash is not None


def is_well_formed(candidate: str) -> bool:
    return len(candidate) == CODE_LENGTH and candidate.isascii() and candidate.isdigit()


def new_challenge(
    claim_request_id,
    code: str,
    now: datetime,
    ttl_seconds: int,
    rounds: int = 10,
    sent_to: str | None = None,
) -> OtpChallenge:
    """Build a fresh challenge for `code`, valid for `ttl_seconds`."""
    return OtpChallenge(
        claim_request_id=claim_request_id,
        code_hash=hash_code(code, rounds),
        issued_at=now,
        expires_at=now + timedelta(seconds=ttl_seconds),
        sent_to=sent_to,
    )


def check_issue_allowed(
    challenge: OtpChallenge,
    active: OtpChallenge | None,
    issued_count: int,
    max_sends: int | None,
    cooldown_seconds: int = 0,
) -> None:
    """
    Decide whether `challenge` may be issued for its claim.

    Repositories call this while holding the same claim lock they hold for
    the supersede-and-insert, so the count cannot move under the check.

    Raises:
        ResendTooSoon: The active code is younger than `cooldown_seconds`
        SendLimitReached: `issued_count` already reached `max_sends`
    """
    if cooldown_seconds > 0 and active is not None:
        ready_at = active.issued_at + timedelta(seconds=cooldown_seconds)
        if challenge.issued_at < ready_at:
            wait = ready_at - challenge.issued_at
            raise ResendTooSoon(int(wait.total_seconds()) + 1)

    if max_sends is not None and issued_count >= max_sends:
        raise SendLimitReached(str(challenge.claim_request_id))


def evaluate_challenge(
    challenge: OtpChallenge | None,
    candidate: str,
    now: datetime,
    max_attempts: int,
    superseded_hashes: Sequence[str] = (),
) -> ChallengeCheck:
    """
    Decide the outcome of one validation attempt.

    Pure function: the caller persists the returned attempts/locked/consumed
    values while still holding its lock on the challenge.

    Args:
        challenge: The claim's active challenge, or None
        candidate: Code submitted by the claimant
        now: Current time (timezone-aware)
        max_attempts: Wrong guesses allowed before the challenge locks
        superseded_hashes: Hashes of older codes issued for the same claim

    Returns:
        ChallengeCheck with the result and the challenge's new state
    """
    # CRITICAL: compare before any state-based return (constant time)
    matched = code_matches(challenge.code_hash if challenge else None, candidate)

    if challenge is None:
        return ChallengeCheck(VerifyResult.NOT_FOUND)

    state = dict(
        attempts=challenge.attempts, locked=challenge.locked, consumed=challenge.consumed
    )

    if now > challenge.expires_at:
        return ChallengeCheck(VerifyResult.EXPIRED, **state)

    if challenge.consumed:
        return ChallengeCheck(VerifyResult.CONSUMED, **state)

    if challenge.locked or challenge.attempts >= max_attempts:
        return ChallengeCheck(VerifyResult.LOCKED, **{**state, "locked": True})

    if matched:
        return ChallengeCheck(
            VerifyResult.SUCCESS, **{**state, "consumed": True}, sent_to=challenge.sent_to
        )

    if any(code_matches(old_hash, candidate) for old_hash in superseded_hashes):
        return ChallengeCheck(VerifyResult.EXPIRED, **state)

    attempts = challenge.attempts + 1
    if attempts >= max_attempts:
        return ChallengeCheck(VerifyResult.LOCKED, attempts=attempts, locked=True)
    return ChallengeCheck(VerifyResult.MISMATCH, attempts=attempts)
