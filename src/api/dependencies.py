"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

import secrets
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import (
    HTTPAuthorizationCredentials,
    HTTPBasic,
    HTTPBasicCredentials,
    HTTPBearer,
)
from psycopg_pool import ConnectionPool

from src.adapters.repository.memory import InMemoryRepository
from src.adapters.repository.postgres import (
    PostgresEventRepository,
    PostgresQualifierRepository,
    PostgresRedirectTokenRepository,
    PostgresRegistrationRepository,
    PostgresVerificationRepository,
)
from src.adapters.smtp.console import ConsoleEmailSender
from src.config.settings import Settings, get_settings
from src.domain.administration import EventAdministration
from src.domain.lifecycle import AttendeeLifecycle
from src.domain.models import VerifiedProfile
from src.domain.ports import (
    EmailSender,
    EventRepository,
    IdentityDirectory,
    QualifierRepository,
    RedirectTokenRepository,
    RegistrationRepository,
    VerificationSessionRepository,
)
from src.domain.qualification import QualificationResolver
from src.domain.redirect import RedirectTokenService
from src.domain.registration import ReconciliationEngine
from src.domain.verification import OneTimeCodeAuthenticator

# Module-level singleton - ConsoleEmailSender is stateless
_email_sender = ConsoleEmailSender()


@dataclass(frozen=True)
class Repositories:
    """The repository adapters one backend provides, bundled for wiring."""

    events: EventRepository
    qualifiers: QualifierRepository
    sessions: VerificationSessionRepository
    redirect_tokens: RedirectTokenRepository
    registrations: RegistrationRepository

    @classmethod
    def postgres(cls, pool: ConnectionPool) -> "Repositories":
        return cls(
            events=PostgresEventRepository(pool),
            qualifiers=PostgresQualifierRepository(pool),
            sessions=PostgresVerificationRepository(pool),
            redirect_tokens=PostgresRedirectTokenRepository(pool),
            registrations=PostgresRegistrationRepository(pool),
        )

    @classmethod
    def in_memory(cls, repository: InMemoryRepository | None = None) -> "Repositories":
        repository = repository or InMemoryRepository()
        return cls(
            events=repository,
            qualifiers=repository,
            sessions=repository,
            redirect_tokens=repository,
            registrations=repository,
        )


def get_repositories(request: Request) -> Repositories:
    """
    Get repository bundle from app state.

    The bundle is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.repositories


def get_identity_directory(request: Request) -> IdentityDirectory:
    return request.app.state.directory


def get_email_sender() -> EmailSender:
    """Get console email sender (singleton)."""
    return _email_sender


def get_resolver(
    repositories: Repositories = Depends(get_repositories),
    directory: IdentityDirectory = Depends(get_identity_directory),
) -> QualificationResolver:
    return QualificationResolver(
        events=repositories.events,
        qualifiers=repositories.qualifiers,
        registrations=repositories.registrations,
        directory=directory,
    )


def get_authenticator(
    resolver: QualificationResolver = Depends(get_resolver),
    repositories: Repositories = Depends(get_repositories),
    email_sender: EmailSender = Depends(get_email_sender),
    settings: Settings = Depends(get_settings),
) -> OneTimeCodeAuthenticator:
    """
    Create the code authenticator with injected dependencies.

    Wires together the resolver, session repository and email sender.
    """
    return OneTimeCodeAuthenticator(
        resolver=resolver,
        sessions=repositories.sessions,
        email_sender=email_sender,
        code_length=settings.code_length,
        code_ttl_seconds=settings.code_ttl_seconds,
        max_attempts=settings.max_attempts,
        grant_ttl_seconds=settings.verified_session_ttl_seconds,
        bcrypt_cost=settings.bcrypt_cost,
    )


def get_redirect_service(
    repositories: Repositories = Depends(get_repositories),
    authenticator: OneTimeCodeAuthenticator = Depends(get_authenticator),
    settings: Settings = Depends(get_settings),
) -> RedirectTokenService:
    return RedirectTokenService(
        tokens=repositories.redirect_tokens,
        authenticator=authenticator,
        ttl_seconds=settings.redirect_token_ttl_seconds,
    )


def get_engine(repositories: Repositories = Depends(get_repositories)) -> ReconciliationEngine:
    return ReconciliationEngine(events=repositories.events, registrations=repositories.registrations)


def get_lifecycle(repositories: Repositories = Depends(get_repositories)) -> AttendeeLifecycle:
    return AttendeeLifecycle(events=repositories.events, registrations=repositories.registrations)


def get_administration(
    repositories: Repositories = Depends(get_repositories),
) -> EventAdministration:
    return EventAdministration(events=repositories.events, qualifiers=repositories.qualifiers)


# Bearer scheme for verification grants; optional so anonymous submissions pass
http_bearer = HTTPBearer(auto_error=False)


def get_verified_profile(
    event_id: str,
    credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer),
    authenticator: OneTimeCodeAuthenticator = Depends(get_authenticator),
) -> VerifiedProfile | None:
    """
    Resolve the Bearer grant token into the verified profile for this event.

    Returns None when no token is sent or the grant is unknown, expired, or
    belongs to another event; routes decide whether that is an error.
    """
    if credentials is None:
        return None
    return authenticator.resume(event_id, credentials.credentials)


# HTTP BASIC AUTH security scheme for operator endpoints
http_basic = HTTPBasic()


def require_admin(
    credentials: HTTPBasicCredentials = Depends(http_basic),
    settings: Settings = Depends(get_settings),
) -> str:
    """
    Check operator credentials from the HTTP BASIC AUTH header.

    FastAPI's HTTPBasic automatically returns 401 for a missing or
    malformed Authorization header. Both comparisons always run.

    Returns:
        The operator's username
    """
    username_ok = secrets.compare_digest(
        credentials.username.encode(), settings.admin_username.encode()
    )
    password_ok = secrets.compare_digest(
        credentials.password.encode(), settings.admin_password.encode()
    )
    if not (username_ok and password_ok):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username
