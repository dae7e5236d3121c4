"""Operator transitions on events and their qualified lists."""

import uuid
from dataclasses import dataclass, replace

from .exceptions import EventNotFound, ValidationError
from .masking import normalize_email
from .models import Event, QualifiedRegistrant
from .ports import EventRepository, QualifierRepository


@dataclass
class EventAdministration:
    events: EventRepository
    qualifiers: QualifierRepository

    def create_event(self, event: Event) -> Event:
        if (event.qualification_start_date and event.qualification_end_date
                and event.qualification_start_date > event.qualification_end_date):
            raise ValidationError(["qualification_end_date"], "Qualification window ends before it starts")
        if not event.id:
            event = replace(event, id=str(uuid.uuid4()))
        return self.events.create_event(event)

    def import_qualifiers(self, event_id: str, entries: list[dict]) -> int:
        """
        Add qualified registrants to an event's list.

        Emails are normalized; every entry needs first_name, last_name and email.
        """
        if self.events.get_event(event_id) is None:
            raise EventNotFound()
        missing = [
            f"qualifiers[{index}].{name}"
            for index, entry in enumerate(entries)
            for name in ("first_name", "last_name", "email")
            if not (entry.get(name) or "").strip()
        ]
        if missing:
            raise ValidationError(missing)
        qualifiers = [
            QualifiedRegistrant(
                id=str(uuid.uuid4()),
                event_id=event_id,
                first_name=entry["first_name"].strip(),
                last_name=entry["last_name"].strip(),
                email=normalize_email(entry["email"]),
                distributor_id=(entry.get("distributor_id") or "").strip() or None,
                guest_allowance_rule_id=entry.get("guest_allowance_rule_id"),
            )
            for entry in entries
        ]
        return self.qualifiers.add_qualifiers(qualifiers)

    def close_registration(self, event_id: str) -> Event:
        event = self.events.close_registration(event_id)
        if event is None:
            raise EventNotFound()
        return event
