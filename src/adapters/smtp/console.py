"""
Console email sender adapter - Implements EmailSender protocol.

Verification codes are written to the application log instead of being
mailed, for local development and demos. Each line names the event the
code belongs to, since one address can hold codes for several events.
"""

import logging

logger = logging.getLogger(__name__)


class ConsoleEmailSender:
    """Delivers one-time codes to the log. Structural EmailSender, no Protocol base."""

    def send_verification_code(self, email: str, code: str, event_id: str) -> None:
        """
        Log a one-time code at INFO so it shows up in container logs.

        Args:
            email: Real (unmasked) recipient address, already normalized
            code: Numeric one-time code, leading zeros kept
            event_id: Event the code is valid for
        """
        logger.info("[VERIFICATION] Event: %s Email: %s Code: %s", event_id, email, code)
