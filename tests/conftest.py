"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- In-memory repositories with a controllable clock
- A recording email sender that captures issued codes
- Fully wired domain services
- A PostgreSQL pool for integration/adversarial tests (skipped when unreachable)
"""

import uuid
from collections.abc import Generator
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from src.adapters.repository.memory import InMemoryRepository
from src.adapters.repository.postgres import run_migrations
from src.config.settings import get_settings
from src.domain.administration import EventAdministration
from src.domain.flow import RegistrationFlow
from src.domain.lifecycle import AttendeeLifecycle
from src.domain.models import Event, QualifiedRegistrant, RegistrationMode
from src.domain.qualification import QualificationResolver
from src.domain.redirect import RedirectTokenService
from src.domain.registration import ReconciliationEngine
from src.domain.verification import OneTimeCodeAuthenticator

# Lowest bcrypt work factor keeps the suite fast
TEST_BCRYPT_COST = 4


class FrozenClock:
    """Clock that only moves when a test advances it."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@dataclass
class RecordingEmailSender:
    """EmailSender that keeps every code it was asked to deliver."""

    sent: list[tuple[str, str, str]] = field(default_factory=list)

    def send_verification_code(self, email: str, code: str, event_id: str) -> None:
        self.sent.append((email, code, event_id))

    def last_code(self, email: str | None = None) -> str:
        for sent_email, code, _ in reversed(self.sent):
            if email is None or sent_email == email:
                return code
        raise AssertionError(f"No code sent to {email}")


@dataclass
class Services:
    repository: InMemoryRepository
    sender: RecordingEmailSender
    clock: FrozenClock
    resolver: QualificationResolver
    authenticator: OneTimeCodeAuthenticator
    redirect_tokens: RedirectTokenService
    engine: ReconciliationEngine
    lifecycle: AttendeeLifecycle
    administration: EventAdministration

    def flow(self, event_id: str) -> RegistrationFlow:
        return RegistrationFlow(
            event_id=event_id,
            authenticator=self.authenticator,
            redirect_tokens=self.redirect_tokens,
            engine=self.engine,
        )

    def add_event(
        self,
        event_id: str,
        mode: RegistrationMode = RegistrationMode.OPEN_VERIFIED,
        **kwargs,
    ) -> Event:
        return self.repository.create_event(
            Event(id=event_id, name=f"Event {event_id}", registration_mode=mode, **kwargs)
        )

    def add_qualifier(
        self,
        event_id: str,
        email: str,
        first_name: str = "Ana",
        last_name: str = "Diaz",
        distributor_id: str | None = None,
    ) -> QualifiedRegistrant:
        qualifier = QualifiedRegistrant(
            id=f"q-{uuid.uuid4().hex[:8]}",
            event_id=event_id,
            first_name=first_name,
            last_name=last_name,
            email=email,
            distributor_id=distributor_id,
        )
        self.repository.add_qualifiers([qualifier])
        return qualifier


def build_services(
    repository: InMemoryRepository,
    clock: FrozenClock,
    directory=None,
    max_attempts: int = 5,
) -> Services:
    sender = RecordingEmailSender()
    resolver = QualificationResolver(
        events=repository,
        qualifiers=repository,
        registrations=repository,
        directory=directory,
        clock=clock,
    )
    authenticator = OneTimeCodeAuthenticator(
        resolver=resolver,
        sessions=repository,
        email_sender=sender,
        max_attempts=max_attempts,
        bcrypt_cost=TEST_BCRYPT_COST,
    )
    return Services(
        repository=repository,
        sender=sender,
        clock=clock,
        resolver=resolver,
        authenticator=authenticator,
        redirect_tokens=RedirectTokenService(tokens=repository, authenticator=authenticator),
        engine=ReconciliationEngine(events=repository, registrations=repository),
        lifecycle=AttendeeLifecycle(events=repository, registrations=repository),
        administration=EventAdministration(events=repository, qualifiers=repository),
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def repository(clock: FrozenClock) -> InMemoryRepository:
    return InMemoryRepository(clock=clock)


@pytest.fixture
def services(repository: InMemoryRepository, clock: FrozenClock) -> Services:
    """Domain services wired to the in-memory repository."""
    return build_services(repository, clock)


@pytest.fixture
def make_services(repository: InMemoryRepository, clock: FrozenClock):
    """Factory for services with a directory or a different attempt limit."""

    def factory(directory=None, max_attempts: int = 5) -> Services:
        return build_services(repository, clock, directory=directory, max_attempts=max_attempts)

    return factory


@pytest.fixture(scope="session")
def pg_pool() -> Generator[ConnectionPool, None, None]:
    """
    Connection pool for tests that need PostgreSQL.

    Skips the requesting test when the database cannot be reached.
    """
    settings = get_settings()
    pool = ConnectionPool(conninfo=settings.database_url, min_size=1, max_size=10, open=False)
    try:
        pool.open(wait=True, timeout=5.0)
    except PoolTimeout:
        pool.close()
        pytest.skip("PostgreSQL is not reachable")
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def clean_postgres(pg_pool: ConnectionPool) -> Generator[ConnectionPool, None, None]:
    """Empty database before each test; child tables go with events via CASCADE."""
    with pg_pool.connection() as conn:
        conn.execute("TRUNCATE events CASCADE")
        conn.commit()
    yield pg_pool
