"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from src.domain.models import ClaimRequest, ClaimStatus


class StartClaimRequest(BaseModel):
    """Request model for starting a claim."""

    company_id: str = Field(..., min_length=1, max_length=128, description="Company to claim")


class DomainChoiceRequest(BaseModel):
    """Request model for the domain email question."""

    has_domain_email: bool = Field(
        ..., description="Claimant holds an email address on the company's domain"
    )


class ProfileRequest(BaseModel):
    """Request model for claimant profile submission."""

    display_name: str = Field(..., min_length=1, max_length=200, description="Full name")
    business_email: EmailStr | None = Field(
        None, description="Address to verify (required unless on the domain path)"
    )
    photo_url: str | None = Field(
        None, max_length=2048, description="Reference to an uploaded profile photo"
    )


class VerifyOtpRequest(BaseModel):
    """Request model for code verification."""

    code: str = Field(
        ...,
        min_length=6,
        max_length=6,
        pattern=r"^\d{6}$",
        description="6-digit verification code",
    )


class ClaimResponse(BaseModel):
    """Claim request as seen by its claimant."""

    id: UUID
    company_id: str
    status: ClaimStatus
    tracking_number: str
    display_name: str | None = None
    business_email: str | None = None
    has_domain_email: bool | None = None
    photo_url: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_claim(cls, claim: ClaimRequest) -> "ClaimResponse":
        return cls(
            id=claim.id,
            company_id=claim.company_id,
            status=claim.status,
            tracking_number=claim.tracking_number,
            display_name=claim.display_name,
            business_email=claim.business_email,
            has_domain_email=claim.has_domain_email,
            photo_url=claim.photo_url,
            created_at=claim.created_at,
            updated_at=claim.updated_at,
        )


class StepResponse(BaseModel):
    """Response model for a workflow step."""

    message: str
    claim: ClaimResponse


class StartClaimResponse(StepResponse):
    """Response model for claim start; created is False for an existing claim."""

    created: bool


class OtpSentResponse(BaseModel):
    """Response model for code (re)send."""

    message: str
    expires_in_seconds: int


class VerifyOtpResponse(BaseModel):
    """Response model for a successful verification."""

    message: str
    status: ClaimStatus


class TrackingResponse(BaseModel):
    """Public status lookup by tracking number."""

    tracking_number: str
    company_id: str
    status: ClaimStatus
    created_at: datetime
    updated_at: datetime


class AdminClaimResponse(ClaimResponse):
    """Claim request as seen by the admin review surface."""

    claimant_user_id: str

    @classmethod
    def from_claim(cls, claim: ClaimRequest) -> "AdminClaimResponse":
        base = ClaimResponse.from_claim(claim).model_dump()
        return cls(**base, claimant_user_id=claim.claimant_user_id)


class ExpireResponse(BaseModel):
    """Response model for the stale claim sweep."""

    expired: int


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str


class OtpErrorDetail(BaseModel):
    """Error detail for a failed code verification."""

    code: str
    message: str
    remaining_attempts: int


class OtpErrorResponse(BaseModel):
    """Error response model for a failed code verification."""

    detail: OtpErrorDetail
