"""
Unit tests for the domain verifier.

The verifier only decides whether the domain question is offered and
records the answer; it never proves mailbox control.
"""

from datetime import datetime, timezone

import pytest

from src.domain.domain_verifier import offers_domain_path, record_domain_choice
from src.domain.models import ClaimRequest, ClaimStatus

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_claim() -> ClaimRequest:
    return ClaimRequest(
        company_id="acme",
        claimant_user_id="user-1",
        status=ClaimStatus.DOMAIN_CHOICE,
        created_at=NOW,
        updated_at=NOW,
    )


class TestOffersDomainPath:
    """Tests for offers_domain_path()."""

    def test_known_domain_is_offered(self) -> None:
        assert offers_domain_path("acme.com") is True

    @pytest.mark.parametrize("domain", [None, "", "   "])
    def test_missing_domain_is_not_offered(self, domain: str | None) -> None:
        assert offers_domain_path(domain) is False


class TestRecordDomainChoice:
    """Tests for record_domain_choice()."""

    def test_yes_marks_domain_email(self) -> None:
        claim = record_domain_choice(make_claim(), True, NOW)
        assert claim.has_domain_email is True
        assert claim.status == ClaimStatus.PROFILE_ENTRY

    def test_no_selects_otp_path(self) -> None:
        claim = record_domain_choice(make_claim(), False, NOW)
        assert claim.has_domain_email is False
        assert claim.status == ClaimStatus.PROFILE_ENTRY

    def test_original_claim_unchanged(self) -> None:
        """Records are immutable; a new instance is returned."""
        original = make_claim()
        record_domain_choice(original, True, NOW)
        assert original.has_domain_email is None
        assert original.status == ClaimStatus.DOMAIN_CHOICE
