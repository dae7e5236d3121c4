"""
Domain models - Plain dataclasses for events, identities and registrations.

These types flow between the domain services and the repository ports.
They carry no persistence or transport concerns.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any


class RegistrationMode(str, Enum):
    """
    Trust model an event registers attendees under.

    - QUALIFIED_VERIFIED: only qualified-list identities, code verification required
    - OPEN_VERIFIED: anyone, code verification required at submission
    - OPEN_ANONYMOUS: anyone, no verification, duplicates allowed
    """

    QUALIFIED_VERIFIED = "qualified_verified"
    OPEN_VERIFIED = "open_verified"
    OPEN_ANONYMOUS = "open_anonymous"

    @property
    def requires_qualification(self) -> bool:
        return self is RegistrationMode.QUALIFIED_VERIFIED

    @property
    def requires_verification(self) -> bool:
        return self is not RegistrationMode.OPEN_ANONYMOUS


class RegistrationStatus(str, Enum):
    QUALIFIED = "qualified"
    REGISTERED = "registered"
    CHECKED_IN = "checked_in"
    NOT_COMING = "not_coming"


# Columns stored directly on a registration; everything else goes to form_data.
REGISTRATION_COLUMNS = ("first_name", "last_name", "email", "phone", "distributor_id", "language")

# Fields every non-anonymous submission and every primary attendee must carry.
BASE_REQUIRED_FIELDS = ("first_name", "last_name", "email")


@dataclass(frozen=True)
class Event:
    id: str
    name: str
    registration_mode: RegistrationMode = RegistrationMode.OPEN_VERIFIED
    registration_closed_at: datetime | None = None
    qualification_start_date: datetime | None = None
    qualification_end_date: datetime | None = None
    capacity: int | None = None
    required_fields: tuple[str, ...] = ()

    @property
    def requires_qualification(self) -> bool:
        return self.registration_mode.requires_qualification

    @property
    def requires_verification(self) -> bool:
        return self.registration_mode.requires_verification

    @property
    def is_closed(self) -> bool:
        return self.registration_closed_at is not None


@dataclass(frozen=True)
class QualifiedRegistrant:
    id: str
    event_id: str
    first_name: str
    last_name: str
    email: str
    distributor_id: str | None = None
    guest_allowance_rule_id: str | None = None


@dataclass(frozen=True)
class DirectoryProfile:
    """Identity as known to the external authoritative directory."""

    email: str
    first_name: str = ""
    last_name: str = ""
    distributor_id: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class QualifiedProfile:
    """
    Result of a successful qualification check.

    ``email`` is what may be shown to the caller: masked unless it
    is the address the caller supplied. ``contact_email`` is the server-held
    address codes are delivered to and is never part of a response.
    """

    event_id: str
    email: str | None
    first_name: str = ""
    last_name: str = ""
    distributor_id: str | None = None
    phone: str | None = None
    email_masked: bool = False
    verified_by_hydra: bool = False
    qualifier_id: str | None = field(default=None, repr=False)
    contact_email: str | None = field(default=None, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "email": self.contact_email or self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "distributor_id": self.distributor_id,
            "phone": self.phone,
            "verified_by_hydra": self.verified_by_hydra,
            "qualifier_id": self.qualifier_id,
        }


@dataclass(frozen=True)
class VerifiedProfile:
    """Identity whose email control has been proven for one event."""

    event_id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    distributor_id: str | None = None
    phone: str | None = None
    verified_by_hydra: bool = False
    grant_token: str | None = field(default=None, repr=False)

    @property
    def unicity_id(self) -> str | None:
        return self.distributor_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "distributor_id": self.distributor_id,
            "phone": self.phone,
            "verified_by_hydra": self.verified_by_hydra,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VerifiedProfile":
        return cls(
            event_id=data["event_id"],
            email=data["email"],
            first_name=data.get("first_name") or "",
            last_name=data.get("last_name") or "",
            distributor_id=data.get("distributor_id"),
            phone=data.get("phone"),
            verified_by_hydra=bool(data.get("verified_by_hydra")),
        )

    def with_grant(self, grant_token: str) -> "VerifiedProfile":
        return replace(self, grant_token=grant_token)


@dataclass(frozen=True)
class IssuedCode:
    """What a caller learns after a code is sent."""

    email: str
    email_masked: bool
    expires_in_seconds: int
    session_token: str | None = None


@dataclass(frozen=True)
class VerificationSession:
    """Live code session as stored by the repository."""

    id: str
    event_id: str
    email: str
    code_hash: str
    attempt_count: int
    expires_at: datetime
    profile: dict[str, Any]
    session_token: str | None = None


@dataclass
class Registration:
    id: str
    event_id: str
    email: str
    first_name: str
    last_name: str
    distributor_id: str | None = None
    phone: str | None = None
    status: RegistrationStatus = RegistrationStatus.REGISTERED
    swag_status: str = "pending"
    verified_by_hydra: bool = False
    language: str = "en"
    form_data: dict[str, Any] = field(default_factory=dict)
    order_id: str | None = None
    attendee_index: int | None = None
    badge_printed_at: datetime | None = None
    badge_print_count: int = 0
    checked_in_at: datetime | None = None
    checked_in_by: str | None = None
    registered_at: datetime | None = None
    last_modified: datetime | None = None

    def value_of(self, name: str) -> Any:
        if name in REGISTRATION_COLUMNS:
            return getattr(self, name)
        return self.form_data.get(name)


@dataclass(frozen=True)
class Submission:
    """
    One form submission.

    ``fields`` maps field identifiers to values; only keys present are
    considered re-submitted. ``attendees`` holds additional attendee
    payloads (open_anonymous only).
    """

    fields: dict[str, Any] = field(default_factory=dict)
    attendees: tuple[dict[str, Any], ...] = ()
    language: str | None = None


@dataclass(frozen=True)
class SubmissionResult:
    registrations: tuple[Registration, ...]
    was_updated: bool

    @property
    def registration(self) -> Registration:
        return self.registrations[0]

    @property
    def created_count(self) -> int:
        return 0 if self.was_updated else len(self.registrations)
