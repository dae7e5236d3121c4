"""Directory adapter used when no external identity directory is configured."""

from src.domain.models import DirectoryProfile


class NullIdentityDirectory:
    """Implements IdentityDirectory protocol; knows no one."""

    def lookup(self, email: str) -> DirectoryProfile | None:
        return None
