"""
Translation of domain errors into HTTP responses.

Every error body has the same shape:

    {"detail": {"code": ..., "message": ..., "terminal": ..., "missing_fields": [...]}}

``missing_fields`` is only present for validation errors. ``terminal`` tells
clients the failure is not retryable (not qualified, registration closed).
"""

from fastapi import HTTPException, status

from src.domain.exceptions import (
    CodeExhausted,
    CodeExpired,
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

STATUS_BY_ERROR: dict[type[RegistrationError], int] = {
    ValidationError: 422,
    NotQualified: status.HTTP_403_FORBIDDEN,
    VerificationRequired: status.HTTP_403_FORBIDDEN,
    InvalidCode: status.HTTP_401_UNAUTHORIZED,
    CodeExpired: status.HTTP_401_UNAUTHORIZED,
    CodeExhausted: status.HTTP_401_UNAUTHORIZED,
    InvalidToken: status.HTTP_401_UNAUTHORIZED,
    TokenExpired: status.HTTP_401_UNAUTHORIZED,
    RegistrationClosed: status.HTTP_409_CONFLICT,
    TransferConflict: status.HTTP_409_CONFLICT,
    InvalidFlowTransition: status.HTTP_409_CONFLICT,
    EventNotFound: status.HTTP_404_NOT_FOUND,
    RegistrationNotFound: status.HTTP_404_NOT_FOUND,
}


def http_error(exc: RegistrationError) -> HTTPException:
    """Build the HTTPException for a domain error."""
    detail: dict[str, object] = {
        "code": exc.code,
        "message": exc.message,
        "terminal": exc.terminal,
    }
    if isinstance(exc, ValidationError):
        detail["missing_fields"] = exc.missing_fields
    status_code = STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=status_code, detail=detail)
