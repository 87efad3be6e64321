"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- A controllable clock for expiry tests
- In-memory adapters and a wired ClaimService
- Sample companies
- A PostgreSQL pool for integration and adversarial tests (skipped when
  the database is unreachable)
"""

from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from src.adapters.repository.memory import (
    InMemoryClaimRequestRepository,
    InMemoryCompanyDirectory,
    InMemoryOtpChallengeRepository,
)
from src.adapters.repository.postgres import run_migrations
from src.config.settings import get_settings
from src.domain.claims import ClaimService, OtpPolicy
from src.domain.models import Company

# Lowest bcrypt cost keeps unit tests fast; timing tests use the real cost.
FAST_BCRYPT_COST = 4

ACME = Company(id="acme", name="Acme Realty", known_email_domain="acme.com")
NO_DOMAIN = Company(id="corner-shop", name="Corner Shop", known_email_domain=None)
TAKEN = Company(id="taken", name="Taken Homes", known_email_domain="taken.com", claimed=True)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def companies() -> InMemoryCompanyDirectory:
    return InMemoryCompanyDirectory([ACME, NO_DOMAIN, TAKEN])


@pytest.fixture
def claim_repository() -> InMemoryClaimRequestRepository:
    return InMemoryClaimRequestRepository()


@pytest.fixture
def challenge_repository() -> InMemoryOtpChallengeRepository:
    return InMemoryOtpChallengeRepository()


@pytest.fixture
def email_sender() -> Mock:
    return Mock()


@pytest.fixture
def policy() -> OtpPolicy:
    return OtpPolicy(bcrypt_cost=FAST_BCRYPT_COST)


@pytest.fixture
def service(
    claim_repository: InMemoryClaimRequestRepository,
    challenge_repository: InMemoryOtpChallengeRepository,
    companies: InMemoryCompanyDirectory,
    email_sender: Mock,
    policy: OtpPolicy,
    clock: FakeClock,
) -> ClaimService:
    return ClaimService(
        claims=claim_repository,
        challenges=challenge_repository,
        companies=companies,
        email_sender=email_sender,
        policy=policy,
        clock=clock,
    )


def sent_code(email_sender: Mock) -> str:
    """The OTP passed to the most recent send_otp call."""
    return email_sender.send_otp.call_args[0][1]["OTP"]


def wrong_code(code: str) -> str:
    """A well-formed code guaranteed to differ from `code`."""
    return f"{(int(code) + 1) % 1_000_000:06d}"


@pytest.fixture(scope="session")
def pool() -> Generator[ConnectionPool, None, None]:
    """Connection pool against DATABASE_URL with migrations applied."""
    settings = get_settings()
    pool = ConnectionPool(conninfo=settings.database_url, min_size=1, max_size=10, open=True)
    try:
        pool.wait(timeout=5)
    except PoolTimeout:
        pool.close()
        pytest.skip("PostgreSQL is not reachable")
    run_migrations(pool)
    yield pool
    pool.close()


def reset_database(pool: ConnectionPool) -> None:
    """Empty all tables and seed the sample companies."""
    with pool.connection() as conn:
        conn.execute("TRUNCATE otp_challenges, claim_requests, companies")
        for company in (ACME, NO_DOMAIN, TAKEN):
            conn.execute(
                "INSERT INTO companies (id, name, known_email_domain, claimed) "
                "VALUES (%s, %s, %s, %s)",
                (company.id, company.name, company.known_email_domain, company.claimed),
            )
        conn.commit()
