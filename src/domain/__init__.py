"""
Domain layer - Pure business logic with zero framework imports.

This package contains the identity-verification and submission protocol
for event registration: qualification, one-time codes, redirect tokens,
reconciliation of submissions, the per-session state machine and the
operator lifecycle operations. It defines its own port interfaces for
infrastructure abstraction.
"""

from .administration import EventAdministration
from .exceptions import (
    CodeExhausted,
    CodeExpired,
    DirectoryUnavailable,
    EventNotFound,
    InvalidCode,
    InvalidFlowTransition,
    InvalidToken,
    NotQualified,
    RegistrationClosed,
    RegistrationError,
    RegistrationNotFound,
    TokenExpired,
    TransferConflict,
    ValidationError,
    VerificationRequired,
)
from .flow import FlowState, RegistrationFlow
from .lifecycle import AttendeeLifecycle
from .models import (
    DirectoryProfile,
    Event,
    IssuedCode,
    QualifiedProfile,
    QualifiedRegistrant,
    Registration,
    RegistrationMode,
    RegistrationStatus,
    Submission,
    SubmissionResult,
    VerifiedProfile,
)
from .ports import (
    AttendeeExtrasRepository,
    EmailSender,
    EventRepository,
    IdentityDirectory,
    QualifierRepository,
    RedirectTokenRepository,
    RegistrationRepository,
    TokenResult,
    TransferResult,
    VerificationSessionRepository,
    VerifyResult,
)
from .qualification import QualificationResolver
from .redirect import RedirectTokenService
from .registration import ReconciliationEngine
from .verification import OneTimeCodeAuthenticator

__all__ = [
    "AttendeeExtrasRepository",
    "AttendeeLifecycle",
    "CodeExhausted",
    "CodeExpired",
    "DirectoryProfile",
    "DirectoryUnavailable",
    "EmailSender",
    "Event",
    "EventAdministration",
    "EventNotFound",
    "EventRepository",
    "FlowState",
    "IdentityDirectory",
    "InvalidCode",
    "InvalidFlowTransition",
    "InvalidToken",
    "IssuedCode",
    "NotQualified",
    "OneTimeCodeAuthenticator",
    "QualificationResolver",
    "QualifiedProfile",
    "QualifiedRegistrant",
    "QualifierRepository",
    "ReconciliationEngine",
    "RedirectTokenRepository",
    "RedirectTokenService",
    "Registration",
    "RegistrationClosed",
    "RegistrationError",
    "RegistrationFlow",
    "RegistrationMode",
    "RegistrationNotFound",
    "RegistrationRepository",
    "RegistrationStatus",
    "Submission",
    "SubmissionResult",
    "TokenExpired",
    "TokenResult",
    "TransferConflict",
    "TransferResult",
    "ValidationError",
    "VerificationRequired",
    "VerificationSessionRepository",
    "VerifiedProfile",
    "VerifyResult",
]
