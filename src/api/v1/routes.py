"""
API v1 routes.

Public endpoints a registration page drives: qualification, one-time codes,
redirect tokens and submissions. A successful code validation (or redirect
token consumption) returns a ``grant_token``; later calls send it as
``Authorization: Bearer <grant_token>``.

Endpoints are plain ``def`` so FastAPI runs the blocking database and bcrypt
work in its threadpool.
"""

from fastapi import APIRouter, Depends, Response, status
from fastapi.security import HTTPAuthorizationCredentials

from src.api.dependencies import (
    get_authenticator,
    get_engine,
    get_redirect_service,
    get_resolver,
    get_verified_profile,
    http_bearer,
)
from src.api.errors import http_error
from src.api.models import (
    ConsumeRedirectTokenRequest,
    ErrorResponse,
    ExistingRegistrationResponse,
    IssueCodeRequest,
    IssueCodeResponse,
    QualificationRequest,
    QualificationResponse,
    RedirectTokenRequest,
    RedirectTokenResponse,
    RegistrationResponse,
    SubmissionRequest,
    SubmissionResponse,
    ValidateCodeRequest,
    VerifiedProfileResponse,
)
from src.domain.exceptions import RegistrationError, VerificationRequired
from src.domain.models import Submission, VerifiedProfile
from src.domain.qualification import QualificationResolver
from src.domain.redirect import RedirectTokenService
from src.domain.registration import ReconciliationEngine
from src.domain.verification import OneTimeCodeAuthenticator

router = APIRouter(tags=["v1"])

_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Event not found"}}
_CLOSED = {409: {"model": ErrorResponse, "description": "Registration closed"}}
_INVALID = {422: {"model": ErrorResponse, "description": "Validation error"}}


@router.post(
    "/events/{event_id}/qualification",
    response_model=QualificationResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Not qualified"},
        **_NOT_FOUND,
        **_INVALID,
    },
    summary="Check whether an identity may register",
)
def resolve_qualification(
    event_id: str,
    request_data: QualificationRequest,
    resolver: QualificationResolver = Depends(get_resolver),
) -> QualificationResponse:
    """
    Resolve an email and/or distributor id against the event's qualified list.

    The email is masked in the response when only a distributor id was sent.
    """
    try:
        profile = resolver.resolve(
            event_id, email=request_data.email, distributor_id=request_data.distributor_id
        )
    except RegistrationError as e:
        raise http_error(e) from None
    return QualificationResponse.from_domain(profile)


@router.post(
    "/events/{event_id}/otp",
    response_model=IssueCodeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"model": ErrorResponse, "description": "Not qualified"},
        **_NOT_FOUND,
        **_CLOSED,
        **_INVALID,
    },
    summary="Send a one-time code",
    description="Qualification is checked first; an unqualified identity never receives a code. "
    "Calling again resends a fresh code and invalidates the previous one.",
)
def issue_code(
    event_id: str,
    request_data: IssueCodeRequest,
    authenticator: OneTimeCodeAuthenticator = Depends(get_authenticator),
) -> IssueCodeResponse:
    try:
        issued = authenticator.issue(
            event_id, email=request_data.email, distributor_id=request_data.distributor_id
        )
    except RegistrationError as e:
        raise http_error(e) from None
    return IssueCodeResponse(
        message="Verification code sent",
        email=issued.email,
        email_masked=issued.email_masked,
        expires_in_seconds=issued.expires_in_seconds,
        session_token=issued.session_token,
    )


@router.post(
    "/events/{event_id}/otp/validate",
    response_model=VerifiedProfileResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid, expired or exhausted code"},
        **_NOT_FOUND,
        **_CLOSED,
        **_INVALID,
    },
    summary="Validate a one-time code",
)
def validate_code(
    event_id: str,
    request_data: ValidateCodeRequest,
    authenticator: OneTimeCodeAuthenticator = Depends(get_authenticator),
) -> VerifiedProfileResponse:
    """
    Validate the code sent to the email (or to the masked address behind
    ``session_token``) and open a verification grant.
    """
    try:
        profile = authenticator.validate(
            event_id,
            request_data.code,
            email=request_data.email,
            session_token=request_data.session_token,
        )
    except RegistrationError as e:
        raise http_error(e) from None
    return VerifiedProfileResponse.from_domain(profile, authenticator.grant_ttl_seconds)


@router.delete(
    "/events/{event_id}/otp",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Discard the pending code (use a different email)",
)
def discard_code(
    event_id: str,
    email: str | None = None,
    session_token: str | None = None,
    authenticator: OneTimeCodeAuthenticator = Depends(get_authenticator),
) -> Response:
    authenticator.discard(event_id, email=email, session_token=session_token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/events/{event_id}/session",
    response_model=VerifiedProfileResponse,
    responses={
        403: {"model": ErrorResponse, "description": "No live verification"},
        **_NOT_FOUND,
        **_CLOSED,
    },
    summary="Resume a verified session",
)
def resume_session(
    event_id: str,
    credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer),
    authenticator: OneTimeCodeAuthenticator = Depends(get_authenticator),
) -> VerifiedProfileResponse:
    """Re-enter with a grant token; closed and qualification checks run again."""
    try:
        restored = authenticator.restore(event_id, credentials.credentials if credentials else None)
    except RegistrationError as e:
        raise http_error(e) from None
    return VerifiedProfileResponse.from_domain(restored)


@router.post(
    "/events/{event_id}/redirect-tokens",
    response_model=RedirectTokenResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"model": ErrorResponse, "description": "No live verification"}, **_INVALID},
    summary="Mint a single-use redirect token",
)
def issue_redirect_token(
    event_id: str,
    request_data: RedirectTokenRequest,
    profile: VerifiedProfile | None = Depends(get_verified_profile),
    redirect_service: RedirectTokenService = Depends(get_redirect_service),
) -> RedirectTokenResponse:
    try:
        if profile is None:
            raise VerificationRequired()
        token = redirect_service.issue(event_id, request_data.email, profile)
    except RegistrationError as e:
        raise http_error(e) from None
    return RedirectTokenResponse(token=token, expires_in_seconds=redirect_service.ttl_seconds)


@router.post(
    "/events/{event_id}/redirect-tokens/consume",
    response_model=VerifiedProfileResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid or expired token"},
        403: {"model": ErrorResponse, "description": "Not qualified"},
        **_NOT_FOUND,
        **_CLOSED,
    },
    summary="Consume a redirect token",
)
def consume_redirect_token(
    event_id: str,
    request_data: ConsumeRedirectTokenRequest,
    redirect_service: RedirectTokenService = Depends(get_redirect_service),
) -> VerifiedProfileResponse:
    try:
        profile = redirect_service.consume(request_data.token, request_data.email, event_id)
    except RegistrationError as e:
        raise http_error(e) from None
    return VerifiedProfileResponse.from_domain(
        profile, redirect_service.authenticator.grant_ttl_seconds
    )


@router.post(
    "/events/{event_id}/registrations",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        200: {"model": SubmissionResponse, "description": "Existing registration updated"},
        403: {"model": ErrorResponse, "description": "Verification required"},
        **_NOT_FOUND,
        **_CLOSED,
        **_INVALID,
    },
    summary="Submit a registration",
    description="Creates a registration (201) or updates the one the verified identity "
    "already holds (200). open_anonymous events accept extra attendees and never update.",
)
def submit_registration(
    event_id: str,
    request_data: SubmissionRequest,
    response: Response,
    verified: VerifiedProfile | None = Depends(get_verified_profile),
    engine: ReconciliationEngine = Depends(get_engine),
) -> SubmissionResponse:
    submission = Submission(
        fields=request_data.fields,
        attendees=tuple(request_data.attendees),
        language=request_data.language,
    )
    try:
        result = engine.submit(
            event_id, submission, verified, request_data.existing_registration_id
        )
    except RegistrationError as e:
        raise http_error(e) from None
    if result.was_updated:
        response.status_code = status.HTTP_200_OK
    return SubmissionResponse(
        was_updated=result.was_updated,
        registrations=[RegistrationResponse.from_domain(r) for r in result.registrations],
    )


@router.get(
    "/events/{event_id}/registrations/existing",
    response_model=ExistingRegistrationResponse,
    responses={403: {"model": ErrorResponse, "description": "Verification required"}},
    summary="Fetch the registration held by the verified identity",
)
def fetch_existing_registration(
    event_id: str,
    verified: VerifiedProfile | None = Depends(get_verified_profile),
    engine: ReconciliationEngine = Depends(get_engine),
) -> ExistingRegistrationResponse:
    try:
        registration = engine.fetch_existing(event_id, verified)
    except RegistrationError as e:
        raise http_error(e) from None
    return ExistingRegistrationResponse(
        registration=RegistrationResponse.from_domain(registration) if registration else None
    )
