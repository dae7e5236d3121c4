"""Repository adapters - Database and in-memory implementations."""

from .memory import InMemoryRepository
from .postgres import (
    PostgresEventRepository,
    PostgresQualifierRepository,
    PostgresRedirectTokenRepository,
    PostgresRegistrationRepository,
    PostgresVerificationRepository,
    run_migrations,
)

__all__ = [
    "InMemoryRepository",
    "PostgresEventRepository",
    "PostgresQualifierRepository",
    "PostgresRedirectTokenRepository",
    "PostgresRegistrationRepository",
    "PostgresVerificationRepository",
    "run_migrations",
]
