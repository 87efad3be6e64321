"""
Domain layer - Pure business logic with zero framework imports.

This package contains the core business logic for the company claim
verification workflow. It defines its own port interfaces for
infrastructure abstraction, ensuring true hexagonal architecture decoupling.
"""

from .claims import ClaimService, OtpPolicy
from .exceptions import (
    ClaimError,
    ClaimNotFound,
    CompanyAlreadyClaimed,
    DeliveryFailure,
    InvalidTransition,
    ResendTooSoon,
    SendLimitReached,
    ValidationError,
)
from .models import ChallengeCheck, ClaimRequest, ClaimStatus, Company, OtpChallenge, VerifyResult
from .ports import ClaimRequestRepository, CompanyDirectory, EmailSender, OtpChallengeRepository

__all__ = [
    "ChallengeCheck",
    "ClaimError",
    "ClaimNotFound",
    "ClaimRequest",
    "ClaimRequestRepository",
    "ClaimService",
    "ClaimStatus",
    "Company",
    "CompanyAlreadyClaimed",
    "CompanyDirectory",
    "DeliveryFailure",
    "EmailSender",
    "InvalidTransition",
    "OtpChallenge",
    "OtpChallengeRepository",
    "OtpPolicy",
    "ResendTooSoon",
    "SendLimitReached",
    "ValidationError",
    "VerifyResult",
]
