"""
API v1 routes.

Defines REST endpoints for the company claim verification workflow.
Each endpoint is one workflow step; the claim's progress lives in the
store, so clients only need the claim id between calls.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from src.api.dependencies import (
    get_claim_service,
    get_claimant_user_id,
    get_message_catalog,
    get_otp_policy,
    require_admin,
)
from src.api.messages import MessageCatalog
from src.api.models import (
    AdminClaimResponse,
    ClaimResponse,
    DomainChoiceRequest,
    ErrorResponse,
    ExpireResponse,
    OtpErrorResponse,
    OtpSentResponse,
    ProfileRequest,
    StartClaimRequest,
    StartClaimResponse,
    StepResponse,
    TrackingResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
)
from src.domain.claims import ClaimService, OtpPolicy
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
from src.domain.models import ClaimRequest, ClaimStatus, VerifyResult

router = APIRouter(tags=["v1"])
admin_router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])

# VerifyResult -> (HTTP status, message key)
_OTP_FAILURES = {
    VerifyResult.MISMATCH: (status.HTTP_400_BAD_REQUEST, "mismatch"),
    VerifyResult.EXPIRED: (status.HTTP_410_GONE, "expired"),
    VerifyResult.LOCKED: (status.HTTP_423_LOCKED, "locked"),
    VerifyResult.CONSUMED: (status.HTTP_409_CONFLICT, "consumed"),
    VerifyResult.NOT_FOUND: (status.HTTP_404_NOT_FOUND, "no_code"),
}

_STEP_ERRORS = {
    404: {"model": ErrorResponse, "description": "Claim not found"},
    409: {"model": ErrorResponse, "description": "Not allowed at the current step"},
    422: {"description": "Validation error"},
}


def _http_error(exc: ClaimError, catalog: MessageCatalog) -> HTTPException:
    """Translate a domain error into the HTTP error the client sees."""
    if isinstance(exc, ValidationError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=catalog.get("invalid_input", field=exc.field, message=exc.message),
        )
    if isinstance(exc, ClaimNotFound):
        return HTTPException(status.HTTP_404_NOT_FOUND, catalog.get("claim_not_found"))
    if isinstance(exc, CompanyAlreadyClaimed):
        return HTTPException(status.HTTP_409_CONFLICT, catalog.get("company_claimed"))
    if isinstance(exc, ResendTooSoon):
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=catalog.get("resend_too_soon", seconds=exc.retry_after_seconds),
            headers={"Retry-After": str(exc.retry_after_seconds)},
        )
    if isinstance(exc, SendLimitReached):
        return HTTPException(status.HTTP_409_CONFLICT, catalog.get("send_limit"))
    if isinstance(exc, DeliveryFailure):
        return HTTPException(status.HTTP_502_BAD_GATEWAY, catalog.get("delivery_failed"))
    if isinstance(exc, InvalidTransition):
        return HTTPException(status.HTTP_409_CONFLICT, catalog.get("invalid_step"))
    return HTTPException(status.HTTP_400_BAD_REQUEST, str(exc))


def _owned_claim(service: ClaimService, claim_id: UUID, claimant_user_id: str) -> ClaimRequest:
    """Load a claim, hiding other claimants' claims behind ClaimNotFound."""
    claim = service.get_claim(claim_id)
    if claim.claimant_user_id != claimant_user_id:
        raise ClaimNotFound(str(claim_id))
    return claim


@router.get(
    "/claims/tracking/{tracking_number}",
    response_model=TrackingResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Not signed in"},
        404: {"model": ErrorResponse, "description": "Unknown tracking number"},
    },
    summary="Check claim status by tracking number",
)
def track_claim(
    tracking_number: str,
    claimant_user_id: str = Depends(get_claimant_user_id),
    service: ClaimService = Depends(get_claim_service),
    catalog: MessageCatalog = Depends(get_message_catalog),
) -> TrackingResponse:
    """
    Status lookup for the caller's own claims.

    Tracking numbers are six digits and not unique, so lookups are scoped to
    the signed-in claimant; other claimants' numbers report 404.
    """
    try:
        claim = service.find_by_tracking_number(tracking_number, claimant_user_id)
    except ClaimError as e:
        raise _http_error(e, catalog) from None
    return TrackingResponse(
        tracking_number=claim.tracking_number,
        company_id=claim.company_id,
        status=claim.status,
        created_at=claim.created_at,
        updated_at=claim.updated_at,
    )


@router.post(
    "/claims",
    response_model=StartClaimResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        200: {"model": StartClaimResponse, "description": "Existing open claim returned"},
        401: {"model": ErrorResponse, "description": "Not signed in"},
        404: {"model": ErrorResponse, "description": "Company not found"},
        409: {"model": ErrorResponse, "description": "Company already claimed"},
        422: {"description": "Validation error"},
    },
    summary="Start a company claim",
    description="Find or create the caller's claim for a company. "
    "Repeating the call returns the same open claim with status 200.",
)
def start_claim(
    request_data: StartClaimRequest,
    response: Response,
    claimant_user_id: str = Depends(get_claimant_user_id),
    service: ClaimService = Depends(get_claim_service),
    catalog: MessageCatalog = Depends(get_message_catalog),
) -> StartClaimResponse:
    """
    Start (or resume) a claim.

    - **company_id**: Company listing to claim

    The next step is `domain-choice` when the claim status is DOMAIN_CHOICE,
    otherwise `profile`.
    """
    try:
        claim, created = service.start_claim(request_data.company_id, claimant_user_id)
    except ClaimError as e:
        raise _http_error(e, catalog) from None

    if not created:
        response.status_code = status.HTTP_200_OK
    return StartClaimResponse(
        message=catalog.get("claim_started" if created else "claim_exists"),
        claim=ClaimResponse.from_claim(claim),
        created=created,
    )


@router.get(
    "/claims/{claim_id}",
    response_model=ClaimResponse,
    responses={404: {"model": ErrorResponse, "description": "Claim not found"}},
    summary="Get a claim",
)
def get_claim(
    claim_id: UUID,
    claimant_user_id: str = Depends(get_claimant_user_id),
    service: ClaimService = Depends(get_claim_service),
    catalog: MessageCatalog = Depends(get_message_catalog),
) -> ClaimResponse:
    try:
        claim = _owned_claim(service, claim_id, claimant_user_id)
    except ClaimError as e:
        raise _http_error(e, catalog) from None
    return ClaimResponse.from_claim(claim)


@router.post(
    "/claims/{claim_id}/domain-choice",
    response_model=StepResponse,
    responses=_STEP_ERRORS,
    summary="Answer the domain email question",
)
def choose_domain(
    claim_id: UUID,
    request_data: DomainChoiceRequest,
    claimant_user_id: str = Depends(get_claimant_user_id),
    service: ClaimService = Depends(get_claim_service),
    catalog: MessageCatalog = Depends(get_message_catalog),
) -> StepResponse:
    """
    Record whether the claimant holds an email on the company's domain.

    - **has_domain_email**: true skips code verification (admin reviews the claim)
    """
    try:
        _owned_claim(service, claim_id, claimant_user_id)
        claim = service.choose_domain(claim_id, request_data.has_domain_email)
    except ClaimError as e:
        raise _http_error(e, catalog) from None
    return StepResponse(message=catalog.get("domain_recorded"), claim=ClaimResponse.from_claim(claim))


@router.post(
    "/claims/{claim_id}/profile",
    response_model=StepResponse,
    responses={
        **_STEP_ERRORS,
        429: {"model": ErrorResponse, "description": "Resend cooldown active"},
        502: {"model": ErrorResponse, "description": "Code stored but email failed"},
    },
    summary="Submit the claimant profile",
    description="On the domain path the claim goes to review. Otherwise a "
    "6-digit code is emailed to business_email.",
)
def submit_profile(
    claim_id: UUID,
    request_data: ProfileRequest,
    claimant_user_id: str = Depends(get_claimant_user_id),
    service: ClaimService = Depends(get_claim_service),
    catalog: MessageCatalog = Depends(get_message_catalog),
) -> StepResponse:
    """
    Submit profile details.

    - **display_name**: Claimant's full name
    - **business_email**: Address to verify (required unless on the domain path)
    - **photo_url**: Optional reference to an uploaded photo
    """
    try:
        _owned_claim(service, claim_id, claimant_user_id)
        claim = service.submit_profile(
            claim_id,
            request_data.display_name,
            business_email=request_data.business_email,
            photo_url=request_data.photo_url,
        )
    except ClaimError as e:
        raise _http_error(e, catalog) from None

    if claim.status == ClaimStatus.DOMAIN_CONFIRMED:
        message = catalog.get("domain_confirmed")
    else:
        message = catalog.get("code_sent", email=claim.business_email)
    return StepResponse(message=message, claim=ClaimResponse.from_claim(claim))


@router.post(
    "/claims/{claim_id}/otp",
    response_model=OtpSentResponse,
    responses={
        **_STEP_ERRORS,
        429: {"model": ErrorResponse, "description": "Resend cooldown active"},
        502: {"model": ErrorResponse, "description": "Code stored but email failed"},
    },
    summary="Send a new verification code",
    description="Issues a fresh code; any earlier code stops working.",
)
def send_otp(
    claim_id: UUID,
    claimant_user_id: str = Depends(get_claimant_user_id),
    service: ClaimService = Depends(get_claim_service),
    catalog: MessageCatalog = Depends(get_message_catalog),
) -> OtpSentResponse:
    try:
        _owned_claim(service, claim_id, claimant_user_id)
        challenge = service.send_or_resend_otp(claim_id)
    except ClaimError as e:
        raise _http_error(e, catalog) from None
    return OtpSentResponse(
        message=catalog.get("code_resent"),
        expires_in_seconds=int((challenge.expires_at - challenge.issued_at).total_seconds()),
    )


@router.post(
    "/claims/{claim_id}/otp/verify",
    response_model=VerifyOtpResponse,
    responses={
        400: {"model": OtpErrorResponse, "description": "Incorrect code"},
        404: {"model": ErrorResponse, "description": "Claim or code not found"},
        409: {"model": ErrorResponse, "description": "Code already used"},
        410: {"model": OtpErrorResponse, "description": "Code expired"},
        423: {"model": OtpErrorResponse, "description": "Too many incorrect attempts"},
        422: {"description": "Validation error"},
    },
    summary="Verify the emailed code",
)
def verify_otp(
    claim_id: UUID,
    request_data: VerifyOtpRequest,
    claimant_user_id: str = Depends(get_claimant_user_id),
    service: ClaimService = Depends(get_claim_service),
    catalog: MessageCatalog = Depends(get_message_catalog),
    policy: OtpPolicy = Depends(get_otp_policy),
) -> VerifyOtpResponse:
    """
    Verify a code.

    - **code**: 6-digit code from the email

    Failures report how many attempts remain; EXPIRED and LOCKED mean a new
    code must be requested.
    """
    try:
        _owned_claim(service, claim_id, claimant_user_id)
        check = service.verify_otp(claim_id, request_data.code)
    except ClaimError as e:
        raise _http_error(e, catalog) from None

    if check.result == VerifyResult.SUCCESS:
        return VerifyOtpResponse(message=catalog.get("verified"), status=ClaimStatus.VERIFIED)

    status_code, key = _OTP_FAILURES[check.result]
    remaining = check.remaining_attempts(policy.max_attempts)
    raise HTTPException(
        status_code=status_code,
        detail={
            "code": check.result.value,
            "message": catalog.get(key, remaining=remaining),
            "remaining_attempts": remaining,
        },
    )


@router.post(
    "/claims/{claim_id}/cancel",
    response_model=StepResponse,
    responses=_STEP_ERRORS,
    summary="Cancel a claim",
)
def cancel_claim(
    claim_id: UUID,
    claimant_user_id: str = Depends(get_claimant_user_id),
    service: ClaimService = Depends(get_claim_service),
    catalog: MessageCatalog = Depends(get_message_catalog),
) -> StepResponse:
    try:
        _owned_claim(service, claim_id, claimant_user_id)
        claim = service.cancel_claim(claim_id)
    except ClaimError as e:
        raise _http_error(e, catalog) from None
    return StepResponse(message=catalog.get("claim_cancelled"), claim=ClaimResponse.from_claim(claim))


@admin_router.get(
    "/claims",
    response_model=list[AdminClaimResponse],
    summary="List claims awaiting review",
    description="Defaults to DOMAIN_CONFIRMED and VERIFIED claims.",
)
def list_claims(
    statuses: list[ClaimStatus] = Query(
        default=[ClaimStatus.DOMAIN_CONFIRMED, ClaimStatus.VERIFIED], alias="status"
    ),
    service: ClaimService = Depends(get_claim_service),
) -> list[AdminClaimResponse]:
    return [AdminClaimResponse.from_claim(c) for c in service.list_claims_for_review(statuses)]


@admin_router.post(
    "/claims/expire-stale",
    response_model=ExpireResponse,
    summary="Expire abandoned claims",
)
def expire_stale_claims(service: ClaimService = Depends(get_claim_service)) -> ExpireResponse:
    return ExpireResponse(expired=service.expire_stale_claims())
