"""
Shared fixtures for adversarial tests.

Domain services wired to the PostgreSQL adapters, so attacks exercise the
real row locks and unique constraints. Skipped when PostgreSQL is not
reachable.
"""

from dataclasses import dataclass
from unittest.mock import MagicMock

import pytest
from psycopg_pool import ConnectionPool

from src.adapters.smtp.console import ConsoleEmailSender
from src.api.dependencies import Repositories
from src.domain.lifecycle import AttendeeLifecycle
from src.domain.models import Event, RegistrationMode
from src.domain.qualification import QualificationResolver
from src.domain.redirect import RedirectTokenService
from src.domain.registration import ReconciliationEngine
from src.domain.verification import OneTimeCodeAuthenticator

# Module-level marker for all adversarial tests
pytestmark = pytest.mark.adversarial


@dataclass
class AttackTarget:
    """Services an attacker reaches through the API, backed by PostgreSQL."""

    pool: ConnectionPool
    repositories: Repositories
    sender: MagicMock
    authenticator: OneTimeCodeAuthenticator
    redirect_tokens: RedirectTokenService
    engine: ReconciliationEngine
    lifecycle: AttendeeLifecycle

    def add_event(self, event_id: str, mode: RegistrationMode = RegistrationMode.OPEN_VERIFIED) -> None:
        self.repositories.events.create_event(Event(id=event_id, name=event_id, registration_mode=mode))

    def last_code(self) -> str:
        return self.sender.send_verification_code.call_args.args[1]


@pytest.fixture
def target(clean_postgres: ConnectionPool) -> AttackTarget:
    """Fresh database and services with a low bcrypt cost and 5 attempts."""
    repositories = Repositories.postgres(clean_postgres)
    sender = MagicMock(spec=ConsoleEmailSender)
    resolver = QualificationResolver(
        events=repositories.events,
        qualifiers=repositories.qualifiers,
        registrations=repositories.registrations,
    )
    authenticator = OneTimeCodeAuthenticator(
        resolver=resolver,
        sessions=repositories.sessions,
        email_sender=sender,
        max_attempts=5,
        bcrypt_cost=4,
    )
    return AttackTarget(
        pool=clean_postgres,
        repositories=repositories,
        sender=sender,
        authenticator=authenticator,
        redirect_tokens=RedirectTokenService(tokens=repositories.redirect_tokens, authenticator=authenticator),
        engine=ReconciliationEngine(events=repositories.events, registrations=repositories.registrations),
        lifecycle=AttendeeLifecycle(events=repositories.events, registrations=repositories.registrations),
    )
