"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols.
"""

from enum import Enum
from typing import Any, Protocol

from .models import DirectoryProfile, Event, QualifiedRegistrant, Registration, VerificationSession


class VerifyResult(Enum):
    """
    Result of a code verification attempt.

    Used by verify_code() to indicate success or specific failure.
    """

    SUCCESS = "success"
    INVALID_CODE = "invalid_code"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    NOT_FOUND = "not_found"


class TokenResult(Enum):
    """Result of a redirect-token consumption attempt."""

    SUCCESS = "success"
    INVALID = "invalid"
    EXPIRED = "expired"


class TransferResult(Enum):
    """Result of moving a registration between events."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


class EventRepository(Protocol):
    """Port interface for event lookups and admin transitions."""

    def get_event(self, event_id: str) -> Event | None: ...

    def create_event(self, event: Event) -> Event: ...

    def close_registration(self, event_id: str) -> Event | None:
        """Set registration_closed_at if not already set. None if unknown event."""
        ...


class QualifierRepository(Protocol):
    """Port interface for the per-event qualified list."""

    def find_qualifier_by_distributor_id(
        self, event_id: str, distributor_id: str
    ) -> QualifiedRegistrant | None: ...

    def find_qualifier_by_email(self, event_id: str, email: str) -> QualifiedRegistrant | None:
        """Case-insensitive email match."""
        ...

    def add_qualifiers(self, qualifiers: list[QualifiedRegistrant]) -> int: ...


class VerificationSessionRepository(Protocol):
    """Port interface for code sessions and the grants they open."""

    def replace_session(
        self,
        event_id: str,
        email: str,
        code_hash: str,
        ttl_seconds: int,
        profile: dict[str, Any],
        session_token: str | None,
    ) -> None:
        """
        Atomically store a new code session for (event_id, email).

        Any previous session for the same pair is overwritten, so at most one
        live code exists per pair. The attempt counter restarts at zero.
        """
        ...

    def verify_code(
        self,
        event_id: str,
        code: str,
        max_attempts: int,
        *,
        email: str | None = None,
        session_token: str | None = None,
    ) -> tuple[VerifyResult, VerificationSession | None]:
        """
        Check a code against the live session, serialised per session.

        Return values by scenario:
        - SUCCESS: code matches within TTL; the session is destroyed
        - NOT_FOUND: no session for the key
        - EXPIRED: TTL exceeded; the session is destroyed
        - INVALID_CODE: mismatch; attempt counter incremented
        - EXHAUSTED: mismatch that reached max_attempts; the session is destroyed
        """
        ...

    def discard_session(
        self, event_id: str, *, email: str | None = None, session_token: str | None = None
    ) -> bool: ...

    def create_grant(
        self, token: str, event_id: str, email: str, profile: dict[str, Any], ttl_seconds: int
    ) -> None: ...

    def find_grant(self, token: str) -> dict[str, Any] | None:
        """Return the granted profile, or None when unknown or past its TTL."""
        ...


class RedirectTokenRepository(Protocol):
    """Port interface for single-use redirect tokens."""

    def create_redirect_token(
        self, token: str, event_id: str, email: str, profile: dict[str, Any], ttl_seconds: int
    ) -> None: ...

    def consume_redirect_token(
        self, token: str, email: str, event_id: str
    ) -> tuple[TokenResult, dict[str, Any] | None]:
        """Mark the token consumed exactly once; concurrent callers see INVALID."""
        ...


class RegistrationRepository(Protocol):
    """Port interface for registration persistence."""

    def get_registration(self, registration_id: str) -> Registration | None: ...

    def find_registration(
        self, event_id: str, *, email: str | None = None, distributor_id: str | None = None
    ) -> Registration | None:
        """Find the unique (non-anonymous) registration, email first then distributor id."""
        ...

    def upsert_registration(
        self, event_id: str, email: str, values: dict[str, Any]
    ) -> tuple[Registration, bool]:
        """
        Insert, or update the existing row for (event_id, email).

        Uniqueness is enforced by the storage layer. On update only the keys
        present in ``values`` are written. Returns (registration, was_updated).
        """
        ...

    def update_registration(
        self, registration_id: str, values: dict[str, Any]
    ) -> Registration | None: ...

    def insert_order(self, rows: list[dict[str, Any]]) -> list[Registration]:
        """Insert every row of an anonymous order in one transaction."""
        ...

    def transfer_registration(
        self, registration_id: str, source_event_id: str, target_event_id: str
    ) -> tuple[TransferResult, Registration | None]:
        """Move and reset event-scoped state in one transaction."""
        ...

    def delete_registration(self, registration_id: str) -> bool: ...

    def check_in(self, registration_id: str, checked_in_by: str | None) -> Registration | None: ...


class AttendeeExtrasRepository(Protocol):
    """
    Port interface for event-scoped attendee state owned by on-site collaborators.

    Badge printing, the swag desk and guest lists write this state outside
    the registration flow. Transfer resets badge and swag state and keeps
    guests; cancel removes all of it with the registration.
    """

    def record_badge_print(self, registration_id: str) -> Registration | None: ...

    def assign_swag(self, registration_id: str, item_name: str) -> str: ...

    def count_swag_assignments(self, registration_id: str) -> int: ...

    def add_guest(
        self, registration_id: str, first_name: str, last_name: str, email: str | None = None
    ) -> str: ...

    def list_guests(self, registration_id: str) -> list[dict[str, Any]]: ...


class IdentityDirectory(Protocol):
    """Port interface for the external authoritative identity directory."""

    def lookup(self, email: str) -> DirectoryProfile | None:
        """
        Look up a customer by email.

        Raises:
            DirectoryUnavailable: If the directory cannot be reached
        """
        ...


class EmailSender(Protocol):
    """Port interface for email delivery."""

    def send_verification_code(self, email: str, code: str, event_id: str) -> None:
        """
        Send verification code to email address.

        Args:
            email: Recipient email address (the real, unmasked address)
            code: numeric verification code
            event_id: Event the code is scoped to
        """
        ...
