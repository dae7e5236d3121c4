"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, EmailStr, Field

from src.domain.models import (
    Event,
    QualifiedProfile,
    Registration,
    RegistrationMode,
    RegistrationStatus,
    VerifiedProfile,
)


class QualificationRequest(BaseModel):
    """Claimed identity: an email, a distributor id, or both."""

    email: EmailStr | None = None
    distributor_id: str | None = Field(None, max_length=64)


class QualificationResponse(BaseModel):
    """
    Outcome of a qualification check.

    ``email`` is masked unless it is the address the caller supplied.
    """

    qualified: bool = True
    email: str | None
    email_masked: bool
    first_name: str
    last_name: str
    distributor_id: str | None
    verified_by_hydra: bool

    @classmethod
    def from_domain(cls, profile: QualifiedProfile) -> "QualificationResponse":
        return cls(
            email=profile.email,
            email_masked=profile.email_masked,
            first_name=profile.first_name,
            last_name=profile.last_name,
            distributor_id=profile.distributor_id,
            verified_by_hydra=profile.verified_by_hydra,
        )


class IssueCodeRequest(BaseModel):
    email: EmailStr | None = None
    distributor_id: str | None = Field(None, max_length=64)


class IssueCodeResponse(BaseModel):
    """Response model after a code was sent."""

    message: str
    email: str
    email_masked: bool
    expires_in_seconds: int
    session_token: str | None = Field(
        None, description="Present when the email is masked; send it back to validate the code"
    )


class ValidateCodeRequest(BaseModel):
    """Request model for code validation."""

    code: str = Field(
        ...,
        min_length=4,
        max_length=10,
        pattern=r"^\d+$",
        description="Numeric verification code",
    )
    email: EmailStr | None = None
    session_token: str | None = None


class VerifiedProfileResponse(BaseModel):
    """A verified identity plus the grant token that proves it."""

    event_id: str
    email: str
    first_name: str
    last_name: str
    distributor_id: str | None
    unicity_id: str | None
    phone: str | None
    verified_by_hydra: bool
    grant_token: str | None = None
    expires_in_seconds: int | None = None

    @classmethod
    def from_domain(
        cls, profile: VerifiedProfile, expires_in_seconds: int | None = None
    ) -> "VerifiedProfileResponse":
        return cls(
            event_id=profile.event_id,
            email=profile.email,
            first_name=profile.first_name,
            last_name=profile.last_name,
            distributor_id=profile.distributor_id,
            unicity_id=profile.unicity_id,
            phone=profile.phone,
            verified_by_hydra=profile.verified_by_hydra,
            grant_token=profile.grant_token,
            expires_in_seconds=expires_in_seconds,
        )


class RedirectTokenRequest(BaseModel):
    email: EmailStr


class RedirectTokenResponse(BaseModel):
    token: str
    expires_in_seconds: int


class ConsumeRedirectTokenRequest(BaseModel):
    token: str = Field(..., min_length=1)
    email: EmailStr


class SubmissionRequest(BaseModel):
    """
    Registration form submission.

    Only keys present in ``fields`` are treated as submitted; absent keys
    keep their stored values on update.
    """

    fields: dict[str, Any] = Field(default_factory=dict)
    attendees: list[dict[str, Any]] = Field(default_factory=list)
    language: str | None = Field(None, max_length=10)
    existing_registration_id: str | None = None


class RegistrationResponse(BaseModel):
    id: str
    event_id: str
    email: str
    first_name: str
    last_name: str
    distributor_id: str | None
    phone: str | None
    status: RegistrationStatus
    swag_status: str
    verified_by_hydra: bool
    language: str
    form_data: dict[str, Any]
    order_id: str | None
    attendee_index: int | None
    badge_print_count: int
    checked_in_at: datetime | None
    checked_in_by: str | None
    registered_at: datetime | None
    last_modified: datetime | None

    @classmethod
    def from_domain(cls, registration: Registration) -> "RegistrationResponse":
        return cls(
            id=registration.id,
            event_id=registration.event_id,
            email=registration.email,
            first_name=registration.first_name,
            last_name=registration.last_name,
            distributor_id=registration.distributor_id,
            phone=registration.phone,
            status=registration.status,
            swag_status=registration.swag_status,
            verified_by_hydra=registration.verified_by_hydra,
            language=registration.language,
            form_data=registration.form_data,
            order_id=registration.order_id,
            attendee_index=registration.attendee_index,
            badge_print_count=registration.badge_print_count,
            checked_in_at=registration.checked_in_at,
            checked_in_by=registration.checked_in_by,
            registered_at=registration.registered_at,
            last_modified=registration.last_modified,
        )


class SubmissionResponse(BaseModel):
    was_updated: bool
    registrations: list[RegistrationResponse]


class ExistingRegistrationResponse(BaseModel):
    registration: RegistrationResponse | None


class EventCreateRequest(BaseModel):
    """Request model for creating an event (operator)."""

    id: str | None = Field(None, max_length=64)
    name: str = Field(..., min_length=1)
    registration_mode: RegistrationMode = RegistrationMode.OPEN_VERIFIED
    qualification_start_date: datetime | None = None
    qualification_end_date: datetime | None = None
    capacity: int | None = Field(None, ge=0)
    required_fields: list[str] = Field(default_factory=list)


class EventResponse(BaseModel):
    id: str
    name: str
    registration_mode: RegistrationMode
    requires_qualification: bool
    requires_verification: bool
    registration_closed_at: datetime | None
    qualification_start_date: datetime | None
    qualification_end_date: datetime | None
    capacity: int | None
    required_fields: list[str]

    @classmethod
    def from_domain(cls, event: Event) -> "EventResponse":
        return cls(
            id=event.id,
            name=event.name,
            registration_mode=event.registration_mode,
            requires_qualification=event.requires_qualification,
            requires_verification=event.requires_verification,
            registration_closed_at=event.registration_closed_at,
            qualification_start_date=event.qualification_start_date,
            qualification_end_date=event.qualification_end_date,
            capacity=event.capacity,
            required_fields=list(event.required_fields),
        )


class QualifierEntry(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr
    distributor_id: str | None = None
    guest_allowance_rule_id: str | None = None


class QualifierImportRequest(BaseModel):
    qualifiers: list[QualifierEntry] = Field(..., min_length=1)


class QualifierImportResponse(BaseModel):
    imported: int


class TransferRequest(BaseModel):
    target_event_id: str = Field(..., min_length=1)


class CheckInRequest(BaseModel):
    checked_in_by: str | None = None


class ErrorDetail(BaseModel):
    code: str
    message: str
    terminal: bool
    missing_fields: list[str] | None = None


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: ErrorDetail
