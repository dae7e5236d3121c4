"""
One-Time-Code Authenticator - Proves control of an email address.

Verification Session States
===========================

    ISSUED -> VALIDATED  (correct code within TTL; session destroyed)
    ISSUED -> EXPIRED    (TTL exceeded; session destroyed on read)
    ISSUED -> EXHAUSTED  (max wrong attempts; session destroyed)

Issuing again for the same (event, email) replaces the live session, so a
resend invalidates the previous code. Qualification is resolved before a
code is generated: an unqualified identity never receives one.

A successful validation opens a verification grant: an event-scoped,
multi-use token with its own TTL that later requests present instead of
re-running the code flow.
"""

import logging
from dataclasses import dataclass

from .codes import generate_code, hash_code, new_token
from .exceptions import (
    CodeExhausted,
    CodeExpired,
    InvalidCode,
    RegistrationClosed,
    ValidationError,
    VerificationRequired,
)
from .masking import normalize_email
from .models import Event, IssuedCode, QualifiedProfile, VerifiedProfile
from .ports import EmailSender, VerificationSessionRepository, VerifyResult
from .qualification import QualificationResolver

logger = logging.getLogger(__name__)


@dataclass
class OneTimeCodeAuthenticator:
    """Domain service issuing and validating one-time codes."""

    resolver: QualificationResolver
    sessions: VerificationSessionRepository
    email_sender: EmailSender
    code_length: int = 6
    code_ttl_seconds: int = 600
    max_attempts: int = 5
    grant_ttl_seconds: int = 1800
    bcrypt_cost: int = 10

    def issue(
        self,
        event_id: str,
        email: str | None = None,
        distributor_id: str | None = None,
    ) -> IssuedCode:
        """
        Resolve qualification, then send a fresh code.

        Returns:
            IssuedCode with a session_token when the caller only knows the
            masked address

        Raises:
            RegistrationClosed: If the event no longer accepts registrations
            NotQualified: If the identity may not register (no code is sent)
            ValidationError: If the event does not use verification, or no
                deliverable email is known
        """
        event = self._open_event(event_id)
        if not event.requires_verification:
            raise ValidationError(message="This event does not use email verification")

        profile = self.resolver.resolve(event.id, email=email, distributor_id=distributor_id)
        if not profile.contact_email:
            raise ValidationError(["email"])
        return self._send(event, profile)

    def issue_for_profile(self, profile: QualifiedProfile) -> IssuedCode:
        """Send a code for an already-resolved profile."""
        event = self._open_event(profile.event_id)
        if not profile.contact_email:
            raise ValidationError(["email"])
        return self._send(event, profile)

    def _send(self, event: Event, profile: QualifiedProfile) -> IssuedCode:
        code = generate_code(self.code_length)
        session_token = new_token() if profile.email_masked else None
        self.sessions.replace_session(
            event.id,
            profile.contact_email,
            hash_code(code, self.bcrypt_cost),
            self.code_ttl_seconds,
            profile.to_dict(),
            session_token,
        )
        self.email_sender.send_verification_code(profile.contact_email, code, event.id)
        return IssuedCode(
            email=profile.email or "",
            email_masked=profile.email_masked,
            expires_in_seconds=self.code_ttl_seconds,
            session_token=session_token,
        )

    def validate(
        self,
        event_id: str,
        code: str,
        email: str | None = None,
        session_token: str | None = None,
    ) -> VerifiedProfile:
        """
        Validate a code and open a verification grant.

        Raises:
            InvalidCode: If the code does not match or no session exists
            CodeExpired: If the session is past its TTL
            CodeExhausted: If this attempt used up the allowed attempts
        """
        event = self._open_event(event_id)
        lookup_email = normalize_email(email) if email and not session_token else None
        if lookup_email is None and not session_token:
            raise ValidationError(["email", "session_token"])

        result, session = self.sessions.verify_code(
            event.id,
            code.strip(),
            self.max_attempts,
            email=lookup_email,
            session_token=session_token,
        )
        if result in (VerifyResult.NOT_FOUND, VerifyResult.INVALID_CODE):
            raise InvalidCode()
        if result == VerifyResult.EXPIRED:
            raise CodeExpired()
        if result == VerifyResult.EXHAUSTED:
            raise CodeExhausted()

        profile = VerifiedProfile.from_dict({**session.profile, "email": session.email})
        return self.open_grant(profile)

    def discard(self, event_id: str, email: str | None = None, session_token: str | None = None) -> bool:
        """Drop the live session ("use a different email")."""
        return self.sessions.discard_session(
            event_id,
            email=normalize_email(email) if email else None,
            session_token=session_token,
        )

    def open_grant(self, profile: VerifiedProfile) -> VerifiedProfile:
        token = new_token()
        self.sessions.create_grant(
            token, profile.event_id, profile.email, profile.to_dict(), self.grant_ttl_seconds
        )
        return profile.with_grant(token)

    def resume(self, event_id: str, grant_token: str | None) -> VerifiedProfile | None:
        """Silent resume: the verified profile behind a live grant for this event."""
        if not grant_token:
            return None
        data = self.sessions.find_grant(grant_token)
        if data is None or data.get("event_id") != event_id:
            return None
        return VerifiedProfile.from_dict(data).with_grant(grant_token)

    def restore(self, event_id: str, grant_token: str | None) -> VerifiedProfile:
        """
        Resume with the same checks as a fresh verification.

        Raises:
            RegistrationClosed: If the event has closed since the grant opened
            VerificationRequired: If there is no live grant for this event
            NotQualified: If the identity has left the qualified list
        """
        event = self._open_event(event_id)
        profile = self.resume(event.id, grant_token)
        if profile is None:
            raise VerificationRequired()
        if event.requires_qualification:
            self.resolver.resolve(event.id, email=profile.email)
        return profile

    def _open_event(self, event_id: str) -> Event:
        event = self.resolver.load_event(event_id)
        if event.is_closed:
            raise RegistrationClosed()
        return event
