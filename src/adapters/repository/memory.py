"""
In-memory repository adapter - Implements every repository port.

A single re-entrant lock serialises all operations except the bcrypt
code check, which runs under a per-session lock instead. This gives the same
guarantees the PostgreSQL adapter gets from row locks and unique
constraints: one live code per (event, email), serialised verification
attempts, exactly-once token consumption and one non-anonymous
registration per (event, email). Time comes from an injectable clock so
TTL expiry can be exercised without sleeping.
"""

import copy
import threading
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any

from src.domain.codes import code_matches
from src.domain.masking import normalize_email
from src.domain.models import (
    Event,
    QualifiedRegistrant,
    Registration,
    RegistrationStatus,
    VerificationSession,
)
from src.domain.ports import TokenResult, TransferResult, VerifyResult


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryRepository:
    """
    Implements all repository protocols in process memory.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Returned registrations are copies; mutating them does not touch storage.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._lock = threading.RLock()
        self._events: dict[str, Event] = {}
        self._qualifiers: list[QualifiedRegistrant] = []
        self._registrations: dict[str, Registration] = {}
        self._sessions: dict[tuple[str, str], VerificationSession] = {}
        self._session_locks: dict[tuple[str, str], threading.Lock] = {}
        self._grants: dict[str, dict[str, Any]] = {}
        self._redirect_tokens: dict[str, dict[str, Any]] = {}
        self._guests: dict[str, list[dict[str, Any]]] = {}
        self._swag: dict[str, list[dict[str, Any]]] = {}
        self._badge_prints: dict[str, list[datetime]] = {}

    # Events

    def get_event(self, event_id: str) -> Event | None:
        with self._lock:
            return self._events.get(event_id)

    def create_event(self, event: Event) -> Event:
        with self._lock:
            self._events[event.id] = event
            return event

    def close_registration(self, event_id: str) -> Event | None:
        with self._lock:
            event = self._events.get(event_id)
            if event is None:
                return None
            if event.registration_closed_at is None:
                event = replace(event, registration_closed_at=self._clock())
                self._events[event_id] = event
            return event

    # Qualified list

    def find_qualifier_by_distributor_id(
        self, event_id: str, distributor_id: str
    ) -> QualifiedRegistrant | None:
        with self._lock:
            for qualifier in self._qualifiers:
                if qualifier.event_id == event_id and qualifier.distributor_id == distributor_id:
                    return qualifier
            return None

    def find_qualifier_by_email(self, event_id: str, email: str) -> QualifiedRegistrant | None:
        email = normalize_email(email)
        with self._lock:
            for qualifier in self._qualifiers:
                if qualifier.event_id == event_id and normalize_email(qualifier.email) == email:
                    return qualifier
            return None

    def add_qualifiers(self, qualifiers: list[QualifiedRegistrant]) -> int:
        with self._lock:
            self._qualifiers.extend(qualifiers)
            return len(qualifiers)

    # Verification sessions and grants

    def replace_session(
        self,
        event_id: str,
        email: str,
        code_hash: str,
        ttl_seconds: int,
        profile: dict[str, Any],
        session_token: str | None,
    ) -> None:
        with self._lock:
            self._sessions[(event_id, email)] = VerificationSession(
                id=str(uuid.uuid4()),
                event_id=event_id,
                email=email,
                code_hash=code_hash,
                attempt_count=0,
                expires_at=self._clock() + timedelta(seconds=ttl_seconds),
                profile=copy.deepcopy(profile),
                session_token=session_token,
            )

    def _find_session(
        self, event_id: str, email: str | None, session_token: str | None
    ) -> VerificationSession | None:
        if session_token is not None:
            for session in self._sessions.values():
                if session.event_id == event_id and session.session_token == session_token:
                    return session
            return None
        if email is None:
            return None
        return self._sessions.get((event_id, email))

    def verify_code(
        self,
        event_id: str,
        code: str,
        max_attempts: int,
        *,
        email: str | None = None,
        session_token: str | None = None,
    ) -> tuple[VerifyResult, VerificationSession | None]:
        with self._lock:
            session = self._find_session(event_id, email, session_token)
            key = (session.event_id, session.email) if session else None
            key_lock = self._session_locks.setdefault(key, threading.Lock()) if key else None
        if key_lock is None:
            code_matches(code, None)
            return VerifyResult.NOT_FOUND, None

        # Attempts on one session are serialised by its own lock; the bcrypt
        # check runs outside the repository lock.
        with key_lock:
            with self._lock:
                session = self._find_session(event_id, email, session_token)
            matched = code_matches(code, session.code_hash if session else None)
            with self._lock:
                if session is None:
                    return VerifyResult.NOT_FOUND, None
                if self._sessions.get(key) is not session:
                    # Replaced by a resend while the code was being checked.
                    return VerifyResult.INVALID_CODE, None
                if self._clock() >= session.expires_at:
                    del self._sessions[key]
                    return VerifyResult.EXPIRED, None
                if session.attempt_count >= max_attempts:
                    del self._sessions[key]
                    return VerifyResult.EXHAUSTED, None

                if not matched:
                    attempts = session.attempt_count + 1
                    if attempts >= max_attempts:
                        del self._sessions[key]
                        return VerifyResult.EXHAUSTED, None
                    self._sessions[key] = replace(session, attempt_count=attempts)
                    return VerifyResult.INVALID_CODE, None

                del self._sessions[key]
                return VerifyResult.SUCCESS, session

    def discard_session(
        self, event_id: str, *, email: str | None = None, session_token: str | None = None
    ) -> bool:
        with self._lock:
            session = self._find_session(event_id, email, session_token)
            if session is None:
                return False
            del self._sessions[(session.event_id, session.email)]
            return True

    def create_grant(
        self, token: str, event_id: str, email: str, profile: dict[str, Any], ttl_seconds: int
    ) -> None:
        with self._lock:
            self._grants[token] = {
                "event_id": event_id,
                "email": email,
                "profile": copy.deepcopy(profile),
                "expires_at": self._clock() + timedelta(seconds=ttl_seconds),
            }

    def find_grant(self, token: str) -> dict[str, Any] | None:
        with self._lock:
            grant = self._grants.get(token)
            if grant is None or self._clock() >= grant["expires_at"]:
                return None
            return {**copy.deepcopy(grant["profile"]), "event_id": grant["event_id"], "email": grant["email"]}

    # Redirect tokens

    def create_redirect_token(
        self, token: str, event_id: str, email: str, profile: dict[str, Any], ttl_seconds: int
    ) -> None:
        with self._lock:
            self._redirect_tokens[token] = {
                "event_id": event_id,
                "email": email,
                "profile": copy.deepcopy(profile),
                "expires_at": self._clock() + timedelta(seconds=ttl_seconds),
                "consumed_at": None,
            }

    def consume_redirect_token(
        self, token: str, email: str, event_id: str
    ) -> tuple[TokenResult, dict[str, Any] | None]:
        with self._lock:
            record = self._redirect_tokens.get(token)
            if record is None or record["consumed_at"] is not None:
                return TokenResult.INVALID, None
            if record["email"] != email or record["event_id"] != event_id:
                return TokenResult.INVALID, None
            if self._clock() >= record["expires_at"]:
                return TokenResult.EXPIRED, None
            record["consumed_at"] = self._clock()
            return TokenResult.SUCCESS, copy.deepcopy(record["profile"])

    # Registrations

    def _copy(self, registration: Registration) -> Registration:
        return copy.deepcopy(registration)

    def get_registration(self, registration_id: str) -> Registration | None:
        with self._lock:
            registration = self._registrations.get(registration_id)
            return self._copy(registration) if registration else None

    def _find_unique(
        self, event_id: str, email: str | None, distributor_id: str | None
    ) -> Registration | None:
        candidates = [
            r for r in self._registrations.values() if r.event_id == event_id and r.order_id is None
        ]
        if email is not None:
            for registration in candidates:
                if registration.email == email:
                    return registration
        if distributor_id is not None:
            for registration in candidates:
                if registration.distributor_id == distributor_id:
                    return registration
        return None

    def find_registration(
        self, event_id: str, *, email: str | None = None, distributor_id: str | None = None
    ) -> Registration | None:
        with self._lock:
            email = normalize_email(email) if email else None
            registration = self._find_unique(event_id, email, distributor_id)
            return self._copy(registration) if registration else None

    def _apply(self, registration: Registration, values: dict[str, Any]) -> None:
        for name, value in values.items():
            if name == "status":
                value = RegistrationStatus(value)
            elif name == "form_data":
                value = copy.deepcopy(value or {})
            setattr(registration, name, value)
        registration.last_modified = self._clock()

    def _insert(self, event_id: str, email: str, values: dict[str, Any]) -> Registration:
        now = self._clock()
        registration = Registration(
            id=str(uuid.uuid4()),
            event_id=event_id,
            email=email,
            first_name=values.get("first_name") or "",
            last_name=values.get("last_name") or "",
            registered_at=now,
            last_modified=now,
        )
        self._apply(
            registration,
            {k: v for k, v in values.items() if k not in ("event_id", "email", "first_name", "last_name")},
        )
        registration.language = registration.language or "en"
        self._registrations[registration.id] = registration
        return registration

    def upsert_registration(
        self, event_id: str, email: str, values: dict[str, Any]
    ) -> tuple[Registration, bool]:
        with self._lock:
            existing = self._find_unique(event_id, email, None)
            if existing is not None:
                self._apply(existing, values)
                return self._copy(existing), True
            return self._copy(self._insert(event_id, email, values)), False

    def update_registration(
        self, registration_id: str, values: dict[str, Any]
    ) -> Registration | None:
        with self._lock:
            registration = self._registrations.get(registration_id)
            if registration is None:
                return None
            self._apply(registration, values)
            return self._copy(registration)

    def insert_order(self, rows: list[dict[str, Any]]) -> list[Registration]:
        with self._lock:
            return [self._copy(self._insert(row["event_id"], row["email"], row)) for row in rows]

    def transfer_registration(
        self, registration_id: str, source_event_id: str, target_event_id: str
    ) -> tuple[TransferResult, Registration | None]:
        with self._lock:
            registration = self._registrations.get(registration_id)
            if registration is None or registration.event_id != source_event_id:
                return TransferResult.NOT_FOUND, None
            if (
                registration.order_id is None
                and self._find_unique(target_event_id, registration.email, None) is not None
            ):
                return TransferResult.CONFLICT, None

            registration.event_id = target_event_id
            registration.checked_in_at = None
            registration.checked_in_by = None
            registration.badge_printed_at = None
            registration.badge_print_count = 0
            registration.swag_status = "pending"
            if registration.status == RegistrationStatus.CHECKED_IN:
                registration.status = RegistrationStatus.REGISTERED
            registration.last_modified = self._clock()
            self._swag.pop(registration_id, None)
            self._badge_prints.pop(registration_id, None)
            return TransferResult.SUCCESS, self._copy(registration)

    def delete_registration(self, registration_id: str) -> bool:
        with self._lock:
            if self._registrations.pop(registration_id, None) is None:
                return False
            self._guests.pop(registration_id, None)
            self._swag.pop(registration_id, None)
            self._badge_prints.pop(registration_id, None)
            return True

    def check_in(self, registration_id: str, checked_in_by: str | None) -> Registration | None:
        with self._lock:
            registration = self._registrations.get(registration_id)
            if registration is None:
                return None
            now = self._clock()
            registration.status = RegistrationStatus.CHECKED_IN
            registration.checked_in_at = now
            registration.checked_in_by = checked_in_by
            registration.last_modified = now
            return self._copy(registration)

    def record_badge_print(self, registration_id: str) -> Registration | None:
        with self._lock:
            registration = self._registrations.get(registration_id)
            if registration is None:
                return None
            now = self._clock()
            self._badge_prints.setdefault(registration_id, []).append(now)
            registration.badge_printed_at = now
            registration.badge_print_count += 1
            return self._copy(registration)

    def assign_swag(self, registration_id: str, item_name: str) -> str:
        with self._lock:
            assignment_id = str(uuid.uuid4())
            self._swag.setdefault(registration_id, []).append({"id": assignment_id, "item_name": item_name})
            return assignment_id

    def count_swag_assignments(self, registration_id: str) -> int:
        with self._lock:
            return len(self._swag.get(registration_id, []))

    def add_guest(
        self, registration_id: str, first_name: str, last_name: str, email: str | None = None
    ) -> str:
        with self._lock:
            guest_id = str(uuid.uuid4())
            self._guests.setdefault(registration_id, []).append(
                {"id": guest_id, "first_name": first_name, "last_name": last_name, "email": email}
            )
            return guest_id

    def list_guests(self, registration_id: str) -> list[dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._guests.get(registration_id, []))
