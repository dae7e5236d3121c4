"""
Verification code primitives.

Codes are generated with the secrets module and stored only as bcrypt
hashes (bcrypt salts every hash). Checking always runs a bcrypt comparison,
against a dummy hash when no session exists, so a missing session costs
the same time as a wrong code.
"""

import secrets

import bcrypt

# Pre-computed bcrypt hash for timing oracle prevention.
_DUMMY_CODE_HASH = bcrypt.hashpw(b"dummy_code_for_timing_safety", bcrypt.gensalt(10)).decode()


def generate_code(length: int = 6) -> str:
    """
    Generate cryptographically secure numeric code.

    Returns string to preserve leading zeros.
    """
    return "".join(secrets.choice("0123456789") for _ in range(length))


def hash_code(code: str, rounds: int = 10) -> str:
    return bcrypt.hashpw(code.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def code_matches(code: str, code_hash: str | None) -> bool:
    """Constant-time check; always runs bcrypt even without a stored hash."""
    stored = code_hash if code_hash is not None else _DUMMY_CODE_HASH
    matched = bcrypt.checkpw(code.encode(), stored.encode())
    return matched and code_hash is not None


def new_token() -> str:
    """Opaque URL-safe token for sessions, grants and redirects."""
    return secrets.token_urlsafe(32)
