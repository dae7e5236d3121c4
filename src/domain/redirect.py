"""
Redirect Token Service - Carries a verified identity across a navigation boundary.

A token is minted only from an already verified profile, is bound to one
(event, email) pair, expires after a short TTL and can be consumed exactly
once. Consuming it is equivalent to a completed code validation, but the
qualification check still runs again for events that require it.
"""

import logging
from dataclasses import dataclass

from .codes import new_token
from .exceptions import InvalidToken, RegistrationClosed, TokenExpired, ValidationError
from .masking import normalize_email
from .models import VerifiedProfile
from .ports import RedirectTokenRepository, TokenResult
from .verification import OneTimeCodeAuthenticator

logger = logging.getLogger(__name__)


@dataclass
class RedirectTokenService:
    tokens: RedirectTokenRepository
    authenticator: OneTimeCodeAuthenticator
    ttl_seconds: int = 600

    def issue(self, event_id: str, email: str, profile: VerifiedProfile) -> str:
        """
        Mint a single-use token for a verified profile.

        Raises:
            ValidationError: If the profile is not for this event and email
        """
        email = normalize_email(email)
        if profile.event_id != event_id or profile.email != email:
            raise ValidationError(message="Profile does not match the requested event and email")
        token = new_token()
        self.tokens.create_redirect_token(token, event_id, email, profile.to_dict(), self.ttl_seconds)
        return token

    def consume(self, token: str, email: str, event_id: str) -> VerifiedProfile:
        """
        Consume a token and open a verification grant for its profile.

        Raises:
            InvalidToken: If unknown, already consumed, or bound to another identity
            TokenExpired: If past its TTL
            RegistrationClosed: If the event has closed
            NotQualified: If the identity is no longer qualified
        """
        event = self.authenticator.resolver.load_event(event_id)
        if event.is_closed:
            raise RegistrationClosed()

        result, data = self.tokens.consume_redirect_token(token, normalize_email(email), event.id)
        if result == TokenResult.EXPIRED:
            raise TokenExpired()
        if result != TokenResult.SUCCESS:
            raise InvalidToken()

        profile = VerifiedProfile.from_dict(data)
        if event.requires_qualification:
            self.authenticator.resolver.resolve(event.id, email=profile.email)
        logger.info("Redirect token consumed for event %s", event.id)
        return self.authenticator.open_grant(profile)
