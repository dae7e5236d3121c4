"""
Registration State Machine - One registrant's path through a registration page.

States
======

    EMAIL -> OTP -> FORM -> SUCCESS
    EMAIL -> NOT_QUALIFIED            (qualified_verified, before any code is sent)
    any   -> REGISTRATION_CLOSED      (as soon as the closed flag is observed)

Per mode:

- qualified_verified: EMAIL -> OTP -> FORM. FORM is only entered with a
  verified profile (code validation, consumed redirect token, or a resumed
  grant for this event).
- open_verified: starts in FORM. Submitting without a verified profile
  fails with VerificationRequired; the flow sends a code to the form's email
  and moves to OTP, keeping the payload, so verify() followed by submit()
  commits the same data.
- open_anonymous: FORM -> SUCCESS. No code is ever sent.

The flow holds exactly one state value. Entered form data survives every
recoverable failure and is only dropped after a successful submission.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from .exceptions import (
    InvalidFlowTransition,
    InvalidToken,
    NotQualified,
    RegistrationClosed,
    TokenExpired,
    VerificationRequired,
)
from .models import (
    IssuedCode,
    Registration,
    RegistrationMode,
    Submission,
    SubmissionResult,
    VerifiedProfile,
)
from .redirect import RedirectTokenService
from .registration import ReconciliationEngine
from .verification import OneTimeCodeAuthenticator

T = TypeVar("T")


class FlowState(str, Enum):
    EMAIL = "email"
    OTP = "otp"
    FORM = "form"
    SUCCESS = "success"
    NOT_QUALIFIED = "not_qualified"
    REGISTRATION_CLOSED = "registration_closed"


@dataclass
class RegistrationFlow:
    """Per-session controller sequencing qualification, verification and submission."""

    event_id: str
    authenticator: OneTimeCodeAuthenticator
    redirect_tokens: RedirectTokenService
    engine: ReconciliationEngine
    state: FlowState = FlowState.EMAIL
    mode: RegistrationMode | None = None
    email: str | None = None
    distributor_id: str | None = None
    issued: IssuedCode | None = None
    verified: VerifiedProfile | None = None
    existing: Registration | None = None
    pending: Submission | None = None
    result: SubmissionResult | None = None
    reason: str | None = None

    def start(
        self,
        grant_token: str | None = None,
        redirect_token: str | None = None,
        email: str | None = None,
    ) -> FlowState:
        """
        Enter the flow.

        A redirect token (with its email) or a live grant skips the code
        step; neither skips the closed or qualification checks. A bare
        email only pre-fills the EMAIL step.
        """
        event = self._guard(self.authenticator.resolver.load_event, self.event_id)
        self.mode = event.registration_mode
        if event.is_closed:
            return self._close()
        self.email = email

        if self.mode == RegistrationMode.OPEN_ANONYMOUS:
            self.state = FlowState.FORM
            return self.state

        if redirect_token and email:
            try:
                return self.redeem_redirect_token(redirect_token, email)
            except (InvalidToken, TokenExpired):
                pass

        resumed = self._guard(self.authenticator.resume, self.event_id, grant_token)
        if resumed is not None:
            if self.mode.requires_qualification:
                self._guard(self.authenticator.resolver.resolve, self.event_id, email=resumed.email)
            return self._enter_form(resumed)

        self.state = FlowState.FORM if self.mode == RegistrationMode.OPEN_VERIFIED else FlowState.EMAIL
        return self.state

    def enter_identity(self, email: str | None = None, distributor_id: str | None = None) -> IssuedCode:
        """EMAIL -> OTP: qualify the claimed identity and send a code."""
        if not self._gated_form():
            self._require(FlowState.EMAIL)
        issued = self._guard(
            self.authenticator.issue, self.event_id, email=email, distributor_id=distributor_id
        )
        self.email, self.distributor_id = email, distributor_id
        self.issued = issued
        self.state = FlowState.OTP
        return issued

    def resend(self) -> IssuedCode:
        """Issue a fresh code for the same identity; the previous one stops working."""
        self._require(FlowState.OTP)
        self.issued = self._guard(
            self.authenticator.issue, self.event_id, email=self.email, distributor_id=self.distributor_id
        )
        return self.issued

    def verify(self, code: str) -> VerifiedProfile:
        """OTP -> FORM on a correct code. Failures leave the flow in OTP."""
        self._require(FlowState.OTP)
        profile = self._guard(
            self.authenticator.validate,
            self.event_id,
            code,
            email=None if self.issued and self.issued.session_token else self.email,
            session_token=self.issued.session_token if self.issued else None,
        )
        self._enter_form(profile)
        return profile

    def redeem_redirect_token(self, token: str, email: str) -> FlowState:
        """Skip the code step with a token minted on another page."""
        if not self._gated_form():
            self._require(FlowState.EMAIL)
        profile = self._guard(self.redirect_tokens.consume, token, email, self.event_id)
        return self._enter_form(profile)

    def submit(
        self,
        fields: dict[str, Any] | None = None,
        attendees: list[dict[str, Any]] | None = None,
        language: str | None = None,
    ) -> SubmissionResult:
        """
        FORM -> SUCCESS.

        Called without arguments after a verification detour, the pending
        payload is submitted again unchanged.
        """
        self._require(FlowState.FORM)
        if fields is None and self.pending is not None:
            submission = self.pending
        else:
            submission = Submission(
                fields=dict(fields or {}), attendees=tuple(attendees or ()), language=language
            )
        self.pending = submission

        try:
            result = self._guard(
                self.engine.submit,
                self.event_id,
                submission,
                self.verified,
                self.existing.id if self.existing else None,
            )
        except VerificationRequired:
            form_email = submission.fields.get("email")
            if self.mode == RegistrationMode.OPEN_VERIFIED and form_email:
                self.enter_identity(email=form_email)
            raise

        self.result = result
        self.pending = None
        self.state = FlowState.SUCCESS
        return result

    def reset(self) -> FlowState:
        """Use a different email: discard the code session and return to EMAIL."""
        if self.state in (FlowState.SUCCESS, FlowState.REGISTRATION_CLOSED):
            raise InvalidFlowTransition(f"Cannot reset from {self.state.value}")
        if self.issued is not None:
            self.authenticator.discard(
                self.event_id,
                email=None if self.issued.session_token else self.email,
                session_token=self.issued.session_token,
            )
        self.email = self.distributor_id = None
        self.issued = self.verified = self.existing = None
        self.reason = None
        self.state = FlowState.EMAIL
        return self.state

    def _enter_form(self, profile: VerifiedProfile) -> FlowState:
        self.verified = profile
        self.email = profile.email
        self.existing = self._guard(self.engine.fetch_existing, self.event_id, profile)
        self.state = FlowState.FORM
        return self.state

    def _gated_form(self) -> bool:
        return (
            self.state == FlowState.FORM
            and self.mode == RegistrationMode.OPEN_VERIFIED
            and self.verified is None
        )

    def _require(self, *states: FlowState) -> None:
        if self.state == FlowState.REGISTRATION_CLOSED:
            raise RegistrationClosed()
        if self.state not in states:
            raise InvalidFlowTransition(f"Not allowed in state {self.state.value}")

    def _close(self) -> FlowState:
        self.state = FlowState.REGISTRATION_CLOSED
        return self.state

    def _guard(self, operation: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return operation(*args, **kwargs)
        except RegistrationClosed:
            self._close()
            raise
        except NotQualified as exc:
            self.state = FlowState.NOT_QUALIFIED
            self.reason = exc.reason
            raise
