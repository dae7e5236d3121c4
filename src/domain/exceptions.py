"""
Domain exceptions - Semantic error types for event registration.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.

Every error carries a stable ``code`` for API consumers and a ``terminal``
flag. Terminal errors (NotQualified, RegistrationClosed) must be shown as
non-retryable; all others are recoverable by correcting input or re-running
verification.
"""


class RegistrationError(Exception):
    """Base class for registration domain errors."""

    code = "registration_error"
    terminal = False
    default_message = "Registration failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(RegistrationError):
    """Missing or malformed fields. Lists the exact field identifiers."""

    code = "validation_error"
    default_message = "Required fields are missing"

    def __init__(self, missing_fields: list[str] | None = None, message: str | None = None) -> None:
        self.missing_fields = list(missing_fields or [])
        if message is None and self.missing_fields:
            message = "Missing required fields: " + ", ".join(self.missing_fields)
        super().__init__(message)


class NotQualified(RegistrationError):
    """Identity is not on the qualified list (or outside the window)."""

    code = "not_qualified"
    terminal = True
    default_message = "This identity is not on the qualified list for this event."

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason or self.default_message
        super().__init__(self.reason)


class InvalidCode(RegistrationError):
    """Code mismatch or no live verification session."""

    code = "invalid_code"
    default_message = "Invalid verification code"


class CodeExpired(RegistrationError):
    """Verification code TTL exceeded."""

    code = "code_expired"
    default_message = "Verification code expired. Please request a new code."


class CodeExhausted(RegistrationError):
    """Too many wrong attempts; a fresh code must be issued."""

    code = "code_exhausted"
    default_message = "Too many attempts. Please request a new code."


class VerificationRequired(RegistrationError):
    """Submission attempted without a completed verification."""

    code = "verification_required"
    default_message = "Please verify your email before registering"


class RegistrationClosed(RegistrationError):
    """Event no longer accepts submissions of any kind."""

    code = "registration_closed"
    terminal = True
    default_message = "Registration is closed for this event"


class InvalidToken(RegistrationError):
    """Redirect token unknown, already consumed, or bound elsewhere."""

    code = "invalid_token"
    default_message = "Invalid or already used token"


class TokenExpired(RegistrationError):
    """Redirect token TTL exceeded."""

    code = "token_expired"
    default_message = "Token expired"


class TransferConflict(RegistrationError):
    """Transfer target is invalid for this registration."""

    code = "transfer_conflict"


class EventNotFound(RegistrationError):
    code = "event_not_found"
    default_message = "Event not found"


class RegistrationNotFound(RegistrationError):
    code = "registration_not_found"
    default_message = "Registration not found"


class InvalidFlowTransition(RegistrationError):
    """Operation is not allowed in the flow's current state."""

    code = "invalid_flow_transition"


class DirectoryUnavailable(RegistrationError):
    """External identity directory could not be reached."""

    code = "directory_unavailable"
    default_message = "Identity directory unavailable"
