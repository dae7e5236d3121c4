"""Identity directory adapters - Authoritative identity lookups."""

from .remote import HttpIdentityDirectory
from .null import NullIdentityDirectory

__all__ = ["HttpIdentityDirectory", "NullIdentityDirectory"]
