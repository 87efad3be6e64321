"""
Adversarial tests for timing oracle attack prevention.

Verifies that the verification failure modes have statistically similar
response times, so an attacker cannot tell an unknown claim from a wrong,
expired or locked code by measuring.

Security rationale:
- Every path runs exactly one bcrypt comparison at the production cost,
  including claims with no challenge (dummy hash)
- The decision order is fixed and applied after the comparison
"""

import statistics
import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from src.domain.otp import evaluate_challenge, new_challenge

pytestmark = pytest.mark.adversarial

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
PRODUCTION_COST = 10


class TestTimingAttacks:
    """
    Verify constant-time behaviour of the validation decision.

    Measures evaluate_challenge() directly so database latency does not
    drown the signal.
    """

    ITERATIONS = 10

    # Maximum allowed difference in mean times
    MAX_VARIANCE_RATIO = 0.25

    @pytest.fixture(autouse=True)
    def clean_database(self) -> None:
        """These measurements need no database."""

    @pytest.fixture(scope="class")
    def challenge(self):
        return new_challenge(uuid4(), "424242", NOW, 3600, rounds=PRODUCTION_COST)

    def mean_time(self, challenge, candidate: str, now: datetime = NOW) -> float:
        samples = []
        for _ in range(self.ITERATIONS):
            start = time.perf_counter()
            evaluate_challenge(challenge, candidate, now, max_attempts=5)
            samples.append(time.perf_counter() - start)
        return statistics.mean(samples)

    def assert_similar(self, a: float, b: float) -> None:
        ratio = abs(a - b) / max(a, b)
        assert ratio < self.MAX_VARIANCE_RATIO, f"timing differs by {ratio:.0%}"

    def test_not_found_vs_mismatch(self, challenge) -> None:
        self.assert_similar(
            self.mean_time(None, "111111"),
            self.mean_time(challenge, "111111"),
        )

    def test_expired_vs_mismatch(self, challenge) -> None:
        self.assert_similar(
            self.mean_time(challenge, "424242", NOW + timedelta(hours=2)),
            self.mean_time(challenge, "111111"),
        )

    def test_locked_vs_mismatch(self, challenge) -> None:
        locked = replace(challenge, attempts=5, locked=True)
        self.assert_similar(
            self.mean_time(locked, "424242"),
            self.mean_time(challenge, "111111"),
        )

    def test_success_vs_mismatch(self, challenge) -> None:
        self.assert_similar(
            self.mean_time(challenge, "424242"),
            self.mean_time(challenge, "111111"),
        )
