"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

import secrets
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import APIKeyHeader
from psycopg_pool import ConnectionPool

from src.adapters.smtp.console import ConsoleEmailSender
from src.adapters.smtp.resend_sender import ResendEmailSender
from src.api.messages import MessageCatalog
from src.config.settings import Settings, get_settings
from src.domain.claims import ClaimService, OtpPolicy
from src.domain.ports import EmailSender

# Module-level singletons - both are stateless
_console_sender = ConsoleEmailSender()
_catalog = MessageCatalog()


def get_pool(request: Request) -> ConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.pool


@lru_cache
def _resend_sender(api_key: str, sender: str) -> ResendEmailSender:
    return ResendEmailSender(api_key=api_key, sender=sender)


def get_email_sender(settings: Settings = Depends(get_settings)) -> EmailSender:
    """Pick the email adapter configured by EMAIL_BACKEND."""
    if settings.email_backend == "resend":
        return _resend_sender(settings.resend_api_key, settings.email_from)
    return _console_sender


def get_otp_policy(settings: Settings = Depends(get_settings)) -> OtpPolicy:
    return OtpPolicy(
        ttl_seconds=settings.otp_ttl_seconds,
        max_attempts=settings.otp_max_attempts,
        resend_cooldown_seconds=settings.otp_resend_cooldown_seconds,
        max_sends=settings.otp_max_sends,
        retention_seconds=settings.otp_retention_seconds,
        bcrypt_cost=settings.bcrypt_cost,
    )


def get_claim_service(
    request: Request,
    email_sender: EmailSender = Depends(get_email_sender),
    policy: OtpPolicy = Depends(get_otp_policy),
) -> ClaimService:
    """
    Create claim service with injected dependencies.

    Wires the repositories built at startup (app.state) together with the
    configured email sender and OTP policy.
    """
    state = request.app.state
    return ClaimService(
        claims=state.claim_repository,
        challenges=state.challenge_repository,
        companies=state.company_directory,
        email_sender=email_sender,
        policy=policy,
    )


def get_message_catalog() -> MessageCatalog:
    """Get the display text catalog (singleton)."""
    return _catalog


def get_claimant_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> str:
    """
    Identify the claimant.

    The upstream auth gateway authenticates the user and forwards their id;
    requests without it are sent back to sign in.
    """
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=_catalog.get("login_required"),
        )
    return x_user_id.strip()


admin_token_header = APIKeyHeader(name="X-Admin-Token", auto_error=False)


def require_admin(
    token: str | None = Depends(admin_token_header),
    settings: Settings = Depends(get_settings),
) -> None:
    """Guard admin endpoints with the shared admin token (constant-time check)."""
    expected = settings.admin_api_token
    if not expected or token is None or not secrets.compare_digest(
        token.encode(), expected.encode()
    ):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
