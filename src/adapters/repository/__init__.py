"""Repository adapters - Database and in-memory implementations."""

from .memory import (
    InMemoryClaimRequestRepository,
    InMemoryCompanyDirectory,
    InMemoryOtpChallengeRepository,
)
from .postgres import (
    PostgresClaimRequestRepository,
    PostgresCompanyDirectory,
    PostgresOtpChallengeRepository,
    run_migrations,
)

__all__ = [
    "InMemoryClaimRequestRepository",
    "InMemoryCompanyDirectory",
    "InMemoryOtpChallengeRepository",
    "PostgresClaimRequestRepository",
    "PostgresCompanyDirectory",
    "PostgresOtpChallengeRepository",
    "run_migrations",
]
