"""
Qualification Resolver - Decides who may register for an event.

Resolution order for an event that requires qualification:

1. distributor id against the qualified list (if supplied)
2. email against the qualified list, case-insensitive (if supplied)
3. an existing registration for the identity (operator pre-loaded rows)

A qualified-list match is still rejected outside the event's qualification
window. Open events qualify every identity trivially.

The profile's email is masked unless it is the address the caller typed;
the real address travels in ``contact_email`` and is never returned to a
caller who has not proven control of it. A distributor id in the profile
always comes from the qualified list, the identity directory or a stored
registration, never from the caller.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from .exceptions import DirectoryUnavailable, EventNotFound, NotQualified, ValidationError
from .masking import mask_email, normalize_email
from .models import DirectoryProfile, Event, QualifiedProfile
from .ports import EventRepository, IdentityDirectory, QualifierRepository, RegistrationRepository

logger = logging.getLogger(__name__)

NOT_ON_LIST = "This identity was not found on the qualified list for this event."
WINDOW_NOT_STARTED = "Registration period has not started yet."
WINDOW_ENDED = "Registration period has ended."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class QualificationResolver:
    """Domain service resolving a claimed identity into a QualifiedProfile."""

    events: EventRepository
    qualifiers: QualifierRepository
    registrations: RegistrationRepository
    directory: IdentityDirectory | None = None
    clock: Callable[[], datetime] = _utcnow

    def load_event(self, event_id: str) -> Event:
        event = self.events.get_event(event_id)
        if event is None:
            raise EventNotFound()
        return event

    def resolve(
        self,
        event_id: str,
        email: str | None = None,
        distributor_id: str | None = None,
    ) -> QualifiedProfile:
        """
        Resolve a claimed identity for an event.

        Raises:
            ValidationError: If neither email nor distributor id is supplied
            EventNotFound: If the event does not exist
            NotQualified: If the identity may not register
        """
        email = normalize_email(email) if email and email.strip() else None
        distributor_id = distributor_id.strip() if distributor_id and distributor_id.strip() else None
        if email is None and distributor_id is None:
            raise ValidationError(["email", "distributor_id"])

        event = self.load_event(event_id)

        if not event.requires_qualification:
            return self._open_profile(event, email)
        return self._qualified_profile(event, email, distributor_id)

    def _open_profile(self, event: Event, email: str | None) -> QualifiedProfile:
        directory_entry = self._lookup_directory(email) if email else None
        return QualifiedProfile(
            event_id=event.id,
            email=email,
            first_name=directory_entry.first_name if directory_entry else "",
            last_name=directory_entry.last_name if directory_entry else "",
            distributor_id=directory_entry.distributor_id if directory_entry else None,
            phone=directory_entry.phone if directory_entry else None,
            verified_by_hydra=directory_entry is not None,
            contact_email=email,
        )

    def _qualified_profile(
        self, event: Event, email: str | None, distributor_id: str | None
    ) -> QualifiedProfile:
        qualifier = None
        if distributor_id is not None:
            qualifier = self.qualifiers.find_qualifier_by_distributor_id(event.id, distributor_id)
        if qualifier is None and email is not None:
            qualifier = self.qualifiers.find_qualifier_by_email(event.id, email)

        if qualifier is not None:
            self._check_window(event)
            contact_email = normalize_email(qualifier.email)
            first_name, last_name = qualifier.first_name, qualifier.last_name
            matched_distributor_id = qualifier.distributor_id
            phone = None
            qualifier_id = qualifier.id
        else:
            existing = self.registrations.find_registration(
                event.id, email=email, distributor_id=distributor_id
            )
            if existing is None:
                raise NotQualified(NOT_ON_LIST)
            contact_email = existing.email
            first_name, last_name = existing.first_name, existing.last_name
            matched_distributor_id = existing.distributor_id
            phone = existing.phone
            qualifier_id = None

        directory_entry = self._lookup_directory(contact_email)
        if directory_entry is not None:
            first_name = first_name or directory_entry.first_name
            last_name = last_name or directory_entry.last_name
            matched_distributor_id = matched_distributor_id or directory_entry.distributor_id
            phone = phone or directory_entry.phone

        masked = email is None or contact_email != email
        return QualifiedProfile(
            event_id=event.id,
            email=mask_email(contact_email) if masked else contact_email,
            first_name=first_name,
            last_name=last_name,
            distributor_id=matched_distributor_id,
            phone=phone,
            email_masked=masked,
            verified_by_hydra=directory_entry is not None,
            qualifier_id=qualifier_id,
            contact_email=contact_email,
        )

    def _check_window(self, event: Event) -> None:
        if event.qualification_start_date is None or event.qualification_end_date is None:
            return
        now = self.clock()
        if now < event.qualification_start_date:
            raise NotQualified(WINDOW_NOT_STARTED)
        if now > event.qualification_end_date:
            raise NotQualified(WINDOW_ENDED)

    def _lookup_directory(self, email: str) -> DirectoryProfile | None:
        if self.directory is None:
            return None
        try:
            return self.directory.lookup(email)
        except DirectoryUnavailable:
            logger.warning("Identity directory unavailable, using local qualified list")
            return None
