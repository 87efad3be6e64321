"""
PostgreSQL repository adapters - Implement the claim workflow's storage ports.

This module provides the PostgreSQL implementations of the domain's
repository ports using psycopg3 with raw SQL.

Concurrency Design - Per-Claim Serialization:
---------------------------------------------
Every write that touches a claim's OTP state first takes a row lock on the
owning claim_requests row (SELECT ... FOR UPDATE). Issuing a new code and
validating a code for the same claim therefore run one after the other:

1. **replace()**: checks the resend cooldown and the send cap, supersedes the
   active challenge and inserts the new one in the same transaction, so
   concurrent resends cannot exceed the cap and a concurrent verify() sees
   either the old code or the new one, never both.

2. **verify()**: reads the active challenge, runs evaluate_challenge() and
   writes the attempt counter / consumed flag before committing. The
   consumed update is guarded by ``WHERE NOT consumed`` as a second line of
   defence against double success.

3. **save()**: claim writes are compare-and-set on the expected prior status
   and the loaded version (``WHERE id = %s AND status = %s AND version = %s``).

Clock values are passed in by the domain service rather than taken from
NOW(), so expiry follows the same clock the service uses.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from uuid import UUID

from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from src.domain.models import (
    ChallengeCheck,
    ClaimRequest,
    ClaimStatus,
    Company,
    OtpChallenge,
    VerifyResult,
)
from src.domain.otp import check_issue_allowed, evaluate_challenge

logger = logging.getLogger(__name__)

_CLAIM_COLUMNS = """
    id, company_id, claimant_user_id, tracking_number, display_name,
    business_email, has_domain_email, photo_url, status, created_at, updated_at,
    version
"""

_OPEN_CLAIM_PREDICATE = "status NOT IN ('REJECTED', 'EXPIRED')"

_CHALLENGE_COLUMNS = """
    id, claim_request_id, code_hash, issued_at, expires_at,
    attempts, consumed, locked, superseded, sent_to
"""


def _to_claim(row: dict) -> ClaimRequest:
    return ClaimRequest(
        id=row["id"],
        company_id=row["company_id"],
        claimant_user_id=row["claimant_user_id"],
        tracking_number=row["tracking_number"],
        display_name=row["display_name"],
        business_email=row["business_email"],
        has_domain_email=row["has_domain_email"],
        photo_url=row["photo_url"],
        status=ClaimStatus(row["status"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        version=row["version"],
    )


def _to_challenge(row: dict) -> OtpChallenge:
    return OtpChallenge(
        id=row["id"],
        claim_request_id=row["claim_request_id"],
        code_hash=row["code_hash"],
        issued_at=row["issued_at"],
        expires_at=row["expires_at"],
        attempts=row["attempts"],
        consumed=row["consumed"],
        locked=row["locked"],
        superseded=row["superseded"],
        sent_to=row["sent_to"],
    )


class PostgresClaimRequestRepository:
    """
    Implements ClaimRequestRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def find_or_create(self, claim: ClaimRequest) -> tuple[ClaimRequest, bool]:
        """
        Atomically find the open claim for the pair or insert `claim`.

        Uses INSERT ... ON CONFLICT DO NOTHING against the partial unique
        index on open claims; the index guarantees a single open claim per
        (company, claimant) even under concurrent submissions.
        """
        insert_sql = f"""
            INSERT INTO claim_requests ({_CLAIM_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (company_id, claimant_user_id) WHERE {_OPEN_CLAIM_PREDICATE}
            DO NOTHING
            RETURNING {_CLAIM_COLUMNS}
        """
        select_sql = f"""
            SELECT {_CLAIM_COLUMNS} FROM claim_requests
            WHERE company_id = %s AND claimant_user_id = %s AND {_OPEN_CLAIM_PREDICATE}
        """
        params = (
            claim.id,
            claim.company_id,
            claim.claimant_user_id,
            claim.tracking_number,
            claim.display_name,
            claim.business_email,
            claim.has_domain_email,
            claim.photo_url,
            claim.status.value,
            claim.created_at,
            claim.updated_at,
            claim.version,
        )

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(insert_sql, params)
            row = cursor.fetchone()
            if row is not None:
                conn.commit()
                return _to_claim(row), True

            cursor.execute(select_sql, (claim.company_id, claim.claimant_user_id))
            row = cursor.fetchone()
            conn.commit()

        if row is None:
            # The conflicting claim finished between the two statements
            return self.find_or_create(claim)
        return _to_claim(row), False

    def get(self, claim_id: UUID) -> ClaimRequest | None:
        sql = f"SELECT {_CLAIM_COLUMNS} FROM claim_requests WHERE id = %s"
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (claim_id,))
            row = cursor.fetchone()
        return _to_claim(row) if row else None

    def find_by_company_and_claimant(
        self, company_id: str, claimant_user_id: str
    ) -> ClaimRequest | None:
        sql = f"""
            SELECT {_CLAIM_COLUMNS} FROM claim_requests
            WHERE company_id = %s AND claimant_user_id = %s AND {_OPEN_CLAIM_PREDICATE}
        """
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (company_id, claimant_user_id))
            row = cursor.fetchone()
        return _to_claim(row) if row else None

    def find_by_tracking_number(
        self, tracking_number: str, claimant_user_id: str | None = None
    ) -> ClaimRequest | None:
        conditions = ["tracking_number = %s"]
        params: list[str] = [tracking_number]
        if claimant_user_id is not None:
            conditions.append("claimant_user_id = %s")
            params.append(claimant_user_id)
        sql = f"""
            SELECT {_CLAIM_COLUMNS} FROM claim_requests
            WHERE {" AND ".join(conditions)}
            ORDER BY created_at DESC
            LIMIT 1
        """
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, params)
            row = cursor.fetchone()
        return _to_claim(row) if row else None

    def save(self, claim: ClaimRequest, expected_status: ClaimStatus) -> bool:
        """
        Compare-and-set update of the claim's mutable fields.

        Returns:
            True if the stored status matched `expected_status`, the stored
            version matched `claim.version` and the row was updated
        """
        sql = """
            UPDATE claim_requests
            SET display_name = %s,
                business_email = %s,
                has_domain_email = %s,
                photo_url = %s,
                status = %s,
                updated_at = %s,
                version = version + 1
            WHERE id = %s AND status = %s AND version = %s
        """
        params = (
            claim.display_name,
            claim.business_email,
            claim.has_domain_email,
            claim.photo_url,
            claim.status.value,
            claim.updated_at,
            claim.id,
            expected_status.value,
            claim.version,
        )
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, params)
            conn.commit()
            return cursor.rowcount == 1

    def touch(self, claim_id: UUID, expected_status: ClaimStatus, now: datetime) -> bool:
        sql = "UPDATE claim_requests SET updated_at = %s WHERE id = %s AND status = %s"
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (now, claim_id, expected_status.value))
            conn.commit()
            return cursor.rowcount == 1

    def list_by_status(self, statuses: Iterable[ClaimStatus]) -> list[ClaimRequest]:
        sql = f"""
            SELECT {_CLAIM_COLUMNS} FROM claim_requests
            WHERE status = ANY(%s)
            ORDER BY created_at
        """
        values = [status.value for status in statuses]
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (values,))
            rows = cursor.fetchall()
        return [_to_claim(row) for row in rows]

    def expire_stale(self, cutoff: datetime, now: datetime) -> int:
        sql = """
            UPDATE claim_requests
            SET status = %s, updated_at = %s, version = version + 1
            WHERE status IN ('DOMAIN_CHOICE', 'PROFILE_ENTRY', 'PENDING_OTP')
              AND updated_at < %s
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (ClaimStatus.EXPIRED.value, now, cutoff))
            conn.commit()
            return cursor.rowcount


class PostgresOtpChallengeRepository:
    """
    Implements OtpChallengeRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def replace(
        self,
        challenge: OtpChallenge,
        max_sends: int | None = None,
        cooldown_seconds: int = 0,
    ) -> None:
        """
        Check the issue limits, supersede the active challenge and store the new one.

        Everything runs in one transaction under the claim row lock, so two
        resends for the same claim are counted one after the other. A raised
        ResendTooSoon or SendLimitReached rolls the transaction back.
        """
        lock_sql = "SELECT id FROM claim_requests WHERE id = %s FOR UPDATE"
        active_sql = f"""
            SELECT {_CHALLENGE_COLUMNS} FROM otp_challenges
            WHERE claim_request_id = %s AND NOT superseded
        """
        count_sql = "SELECT COUNT(*) AS issued FROM otp_challenges WHERE claim_request_id = %s"
        supersede_sql = """
            UPDATE otp_challenges
            SET superseded = TRUE
            WHERE claim_request_id = %s AND NOT superseded
        """
        insert_sql = f"""
            INSERT INTO otp_challenges ({_CHALLENGE_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, FALSE, %s)
        """
        claim_id = challenge.claim_request_id

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(lock_sql, (claim_id,))
            cursor.execute(active_sql, (claim_id,))
            row = cursor.fetchone()
            cursor.execute(count_sql, (claim_id,))
            issued = cursor.fetchone()["issued"]

            check_issue_allowed(
                challenge,
                _to_challenge(row) if row else None,
                issued,
                max_sends,
                cooldown_seconds,
            )

            cursor.execute(supersede_sql, (claim_id,))
            cursor.execute(
                insert_sql,
                (
                    challenge.id,
                    claim_id,
                    challenge.code_hash,
                    challenge.issued_at,
                    challenge.expires_at,
                    challenge.attempts,
                    challenge.consumed,
                    challenge.locked,
                    challenge.sent_to,
                ),
            )
            conn.commit()

    def get_active(self, claim_request_id: UUID) -> OtpChallenge | None:
        sql = f"""
            SELECT {_CHALLENGE_COLUMNS} FROM otp_challenges
            WHERE claim_request_id = %s AND NOT superseded
        """
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (claim_request_id,))
            row = cursor.fetchone()
        return _to_challenge(row) if row else None

    def count_issued(self, claim_request_id: UUID) -> int:
        sql = "SELECT COUNT(*) FROM otp_challenges WHERE claim_request_id = %s"
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (claim_request_id,))
            return cursor.fetchone()[0]

    def verify(
        self, claim_request_id: UUID, candidate: str, now: datetime, max_attempts: int
    ) -> ChallengeCheck:
        """
        Validate a candidate code with the claim row locked.

        The decision itself is made by evaluate_challenge() (constant-time
        bcrypt comparison, fixed check order); this method only loads the
        inputs and persists the resulting challenge state.
        """
        lock_sql = "SELECT id FROM claim_requests WHERE id = %s FOR UPDATE"
        active_sql = f"""
            SELECT {_CHALLENGE_COLUMNS} FROM otp_challenges
            WHERE claim_request_id = %s AND NOT superseded
            FOR UPDATE
        """
        superseded_sql = """
            SELECT code_hash FROM otp_challenges
            WHERE claim_request_id = %s AND superseded
        """
        update_sql = """
            UPDATE otp_challenges
            SET attempts = %s, locked = %s
            WHERE id = %s AND NOT consumed
        """
        consume_sql = """
            UPDATE otp_challenges
            SET consumed = TRUE
            WHERE id = %s AND NOT consumed
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(lock_sql, (claim_request_id,))
            cursor.execute(active_sql, (claim_request_id,))
            row = cursor.fetchone()
            challenge = _to_challenge(row) if row else None

            superseded_hashes: list[str] = []
            if challenge is not None:
                cursor.execute(superseded_sql, (claim_request_id,))
                superseded_hashes = [r["code_hash"] for r in cursor.fetchall()]

            check = evaluate_challenge(
                challenge, candidate, now, max_attempts, superseded_hashes
            )

            if check.result == VerifyResult.SUCCESS:
                cursor.execute(consume_sql, (challenge.id,))
                if cursor.rowcount != 1:
                    # Lost the compare-and-set to a concurrent success
                    conn.commit()
                    return ChallengeCheck(
                        VerifyResult.CONSUMED, attempts=challenge.attempts, consumed=True
                    )
            elif challenge is not None and (
                check.attempts != challenge.attempts or check.locked != challenge.locked
            ):
                cursor.execute(update_sql, (check.attempts, check.locked, challenge.id))

            conn.commit()
            return check

    def purge(self, cutoff: datetime) -> int:
        sql = "DELETE FROM otp_challenges WHERE expires_at < %s"
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (cutoff,))
            conn.commit()
            return cursor.rowcount


class PostgresCompanyDirectory:
    """Implements CompanyDirectory protocol over the companies table."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def get_company(self, company_id: str) -> Company | None:
        sql = "SELECT id, name, known_email_domain, claimed FROM companies WHERE id = %s"
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (company_id,))
            row = cursor.fetchone()
        if row is None:
            return None
        return Company(
            id=row["id"],
            name=row["name"],
            known_email_domain=row["known_email_domain"],
            claimed=row["claimed"],
        )


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
