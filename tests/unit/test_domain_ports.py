"""
Unit tests for domain ports, value types and exceptions.

Tests verify:
- Status and result enums carry the expected values
- Exceptions are properly structured
- Adapters satisfy the ports structurally
- Domain purity (zero framework imports)
"""

import subprocess
from enum import Enum

import pytest

from src.adapters.repository.memory import (
    InMemoryClaimRequestRepository,
    InMemoryCompanyDirectory,
    InMemoryOtpChallengeRepository,
)
from src.domain.exceptions import (
    ClaimError,
    ClaimNotFound,
    CompanyAlreadyClaimed,
    DeliveryFailure,
    InvalidTransition,
    ResendTooSoon,
    SendLimitReached,
    ValidationError,
)
from src.domain.models import generate_tracking_number
from src.domain.ports import (
    IN_PROGRESS_STATUSES,
    REPLACEABLE_STATUSES,
    ClaimRequestRepository,
    ClaimStatus,
    CompanyDirectory,
    OtpChallengeRepository,
    VerifyResult,
)


class TestClaimStatusEnum:
    """Tests for ClaimStatus enum."""

    def test_values_match_names(self) -> None:
        """Stored status strings equal the member names."""
        for member in ClaimStatus:
            assert member.value == member.name

    def test_all_statuses_present(self) -> None:
        assert {s.value for s in ClaimStatus} == {
            "DOMAIN_CHOICE",
            "PROFILE_ENTRY",
            "DOMAIN_CONFIRMED",
            "PENDING_OTP",
            "VERIFIED",
            "REJECTED",
            "EXPIRED",
        }

    def test_status_compares_as_string(self) -> None:
        assert ClaimStatus.VERIFIED == "VERIFIED"

    def test_in_progress_and_replaceable_are_disjoint(self) -> None:
        assert not IN_PROGRESS_STATUSES & REPLACEABLE_STATUSES
        assert ClaimStatus.VERIFIED not in IN_PROGRESS_STATUSES | REPLACEABLE_STATUSES
        assert ClaimStatus.DOMAIN_CONFIRMED not in IN_PROGRESS_STATUSES | REPLACEABLE_STATUSES


class TestVerifyResultEnum:
    """Tests for VerifyResult enum."""

    def test_verify_result_is_enum(self) -> None:
        assert issubclass(VerifyResult, Enum)

    @pytest.mark.parametrize(
        ("member", "value"),
        [
            ("SUCCESS", "success"),
            ("NOT_FOUND", "not_found"),
            ("EXPIRED", "expired"),
            ("CONSUMED", "consumed"),
            ("MISMATCH", "mismatch"),
            ("LOCKED", "locked"),
        ],
    )
    def test_members(self, member: str, value: str) -> None:
        assert VerifyResult[member].value == value

    def test_exactly_six_outcomes(self) -> None:
        assert len(VerifyResult) == 6


class TestTrackingNumber:
    """Tests for generate_tracking_number()."""

    def test_six_digits(self) -> None:
        number = generate_tracking_number()
        assert len(number) == 6
        assert number.isdigit()


class TestExceptions:
    """Tests for domain exceptions."""

    @pytest.mark.parametrize(
        "exc",
        [
            ValidationError("business_email", "required"),
            ClaimNotFound("abc"),
            InvalidTransition("abc", "VERIFIED", "cancel"),
            CompanyAlreadyClaimed("acme"),
            ResendTooSoon(30),
            SendLimitReached("abc"),
            DeliveryFailure("owner@gmail.com"),
        ],
    )
    def test_all_inherit_from_claim_error(self, exc: ClaimError) -> None:
        assert isinstance(exc, ClaimError)

    def test_validation_error_carries_field(self) -> None:
        exc = ValidationError("display_name", "required")
        assert exc.field == "display_name"
        assert exc.message == "required"
        assert str(exc) == "display_name: required"

    def test_invalid_transition_message(self) -> None:
        exc = InvalidTransition("abc", "VERIFIED", "cancel")
        assert exc.status == "VERIFIED"
        assert str(exc) == "Cannot cancel claim abc in status VERIFIED"

    def test_resend_too_soon_carries_delay(self) -> None:
        assert ResendTooSoon(12).retry_after_seconds == 12


class TestStructuralSubtyping:
    """Adapters satisfy the ports without inheriting from them."""

    def test_in_memory_adapters(self) -> None:
        def accepts(
            claims: ClaimRequestRepository,
            challenges: OtpChallengeRepository,
            companies: CompanyDirectory,
        ) -> None:
            pass

        accepts(
            InMemoryClaimRequestRepository(),
            InMemoryOtpChallengeRepository(),
            InMemoryCompanyDirectory(),
        )

    @pytest.mark.parametrize(
        "adapter",
        [InMemoryClaimRequestRepository, InMemoryOtpChallengeRepository, InMemoryCompanyDirectory],
    )
    def test_no_explicit_inheritance(self, adapter: type) -> None:
        assert adapter.__bases__ == (object,)


class TestDomainPurity:
    """The domain layer imports no web, validation or database framework."""

    @pytest.mark.parametrize(
        "pattern",
        [
            "from fastapi",
            "import fastapi",
            "from pydantic",
            "import pydantic",
            "from psycopg",
            "import psycopg",
        ],
    )
    def test_no_framework_imports_in_domain(self, pattern: str) -> None:
        result = subprocess.run(
            ["grep", "-r", pattern, "src/domain/"],
            capture_output=True,
            text=True,
        )
        assert result.returncode != 0, f"Framework import found: {result.stdout}"
