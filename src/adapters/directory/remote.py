"""
HTTP identity directory adapter - Implements IdentityDirectory protocol.

Looks customers up in an external directory service over HTTP:

    GET {base_url}/customers?email=<email>

A 404 means the identity is unknown. Transport failures, timeouts and
5xx responses raise DirectoryUnavailable so callers can fall back to the
local qualified list.

Accepted response shapes (the customer may be wrapped in "customer"):

    {"id": {"unicity": "12345678"},
     "humanName": {"firstName": "Ana", "lastName": "Diaz"},
     "email": "ana@example.com",
     "phone": "+1 555 0100"}
"""

import logging
from typing import Any

import httpx

from src.domain.exceptions import DirectoryUnavailable
from src.domain.models import DirectoryProfile

logger = logging.getLogger(__name__)


def _parse_customer(data: dict[str, Any], email: str) -> DirectoryProfile:
    customer = data.get("customer") or data
    identifier = customer.get("id")
    if isinstance(identifier, dict):
        identifier = identifier.get("unicity")
    name = customer.get("humanName") or {}
    return DirectoryProfile(
        email=(customer.get("email") or email).strip().lower(),
        first_name=name.get("firstName") or "",
        last_name=name.get("lastName") or "",
        distributor_id=str(identifier) if identifier else None,
        phone=customer.get("phone") or None,
    )


class HttpIdentityDirectory:
    """
    Implements IdentityDirectory protocol via httpx.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(timeout=timeout)

    def lookup(self, email: str) -> DirectoryProfile | None:
        try:
            response = self.client.get(f"{self.base_url}/customers", params={"email": email})
            if response.status_code == 404:
                return None
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Identity directory lookup failed: %s", e)
            raise DirectoryUnavailable() from e

        if not isinstance(data, dict) or not data:
            return None
        return _parse_customer(data, email)

    def close(self) -> None:
        self.client.close()
