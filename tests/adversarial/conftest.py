"""
Shared fixtures for adversarial tests.

Provides common test infrastructure for race condition, brute force and
timing tests against the PostgreSQL adapters.
"""

from collections.abc import Generator
from unittest.mock import Mock

import pytest
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import (
    PostgresClaimRequestRepository,
    PostgresCompanyDirectory,
    PostgresOtpChallengeRepository,
)
from src.domain.claims import ClaimService, OtpPolicy
from tests.conftest import FAST_BCRYPT_COST, reset_database

# Module-level marker for all adversarial tests
pytestmark = pytest.mark.adversarial


@pytest.fixture(autouse=True)
def clean_database(pool: ConnectionPool) -> Generator[None, None, None]:
    """Reset tables before each test."""
    reset_database(pool)
    yield


@pytest.fixture
def email_sender() -> Mock:
    return Mock()


def make_service(pool: ConnectionPool, email_sender: Mock, **policy: int) -> ClaimService:
    """ClaimService wired to the PostgreSQL adapters; `policy` overrides OtpPolicy fields."""
    policy.setdefault("bcrypt_cost", FAST_BCRYPT_COST)
    return ClaimService(
        claims=PostgresClaimRequestRepository(pool),
        challenges=PostgresOtpChallengeRepository(pool),
        companies=PostgresCompanyDirectory(pool),
        email_sender=email_sender,
        policy=OtpPolicy(**policy),
    )


@pytest.fixture
def service(pool: ConnectionPool, email_sender: Mock) -> ClaimService:
    return make_service(pool, email_sender)
