"""
Registration Reconciliation Engine - Insert-or-update of submissions.

Decides, for one submission, whether it creates a registration or updates
the one already held for the identity, or (open_anonymous) always inserts.

Field precedence on update (last writer wins per submission)
=============================================================

- A key present in the submission overwrites the stored value, including
  an explicit empty value.
- A key absent from the submission keeps the stored value.
- Custom fields travel together in ``form_data``: when the submission
  carries any, they replace the stored ``form_data`` as a whole.
- ``email`` comes from the verified identity, never from the form. So does
  ``distributor_id``, except on open events where the form may supply one;
  it is stored but never used to find a registration.
- ``status`` moves ``qualified`` -> ``registered``; other statuses are kept.
- ``verified_by_hydra`` is only ever raised.

Required fields are checked against the record as it will be stored (the
incoming values layered over the stored ones), and the error names every
missing field.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from .exceptions import (
    EventNotFound,
    RegistrationClosed,
    RegistrationNotFound,
    ValidationError,
    VerificationRequired,
)
from .masking import normalize_email
from .models import (
    BASE_REQUIRED_FIELDS,
    REGISTRATION_COLUMNS,
    Event,
    Registration,
    RegistrationMode,
    RegistrationStatus,
    Submission,
    SubmissionResult,
    VerifiedProfile,
)
from .ports import EventRepository, RegistrationRepository

logger = logging.getLogger(__name__)

_EDITABLE_COLUMNS = ("first_name", "last_name", "phone", "language")


def _is_blank(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def _clean(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _custom_fields(payload: dict[str, Any]) -> dict[str, Any] | None:
    custom = {k: v for k, v in payload.items() if k not in REGISTRATION_COLUMNS and k != "form_data"}
    if isinstance(payload.get("form_data"), dict):
        custom = {**payload["form_data"], **custom}
    elif not custom and "form_data" not in payload:
        return None
    return custom


@dataclass
class ReconciliationEngine:
    """Domain service turning submissions into persisted registrations."""

    events: EventRepository
    registrations: RegistrationRepository

    def submit(
        self,
        event_id: str,
        submission: Submission,
        verified: VerifiedProfile | None = None,
        existing_registration_id: str | None = None,
    ) -> SubmissionResult:
        """
        Reconcile a submission against any prior registration.

        Args:
            event_id: Target event
            submission: Form values (and extra attendees for anonymous orders)
            verified: Proven identity; required unless the event is open_anonymous
            existing_registration_id: Registration the caller is editing, if known

        Raises:
            RegistrationClosed: Always first, whenever the event is closed
            VerificationRequired: Verified modes without a proven identity
            ValidationError: With the exact missing field identifiers
        """
        event = self.events.get_event(event_id)
        if event is None:
            raise EventNotFound()
        if event.is_closed:
            raise RegistrationClosed()

        if event.registration_mode == RegistrationMode.OPEN_ANONYMOUS:
            return self._submit_order(event, submission)

        if verified is None or verified.event_id != event.id:
            raise VerificationRequired()
        return self._upsert(event, submission, verified, existing_registration_id)

    def fetch_existing(self, event_id: str, verified: VerifiedProfile | None) -> Registration | None:
        """Registration held by a verified identity for an event, if any."""
        if verified is None or verified.event_id != event_id:
            raise VerificationRequired()
        event = self.events.get_event(event_id)
        if event is None:
            raise EventNotFound()
        return self._find_owned(event, verified)

    def _find_owned(self, event: Event, verified: VerifiedProfile) -> Registration | None:
        # A distributor id only reaches a row under another email when it came
        # from the qualified list; in open modes the email is the whole identity.
        distributor_id = verified.distributor_id if event.requires_qualification else None
        return self.registrations.find_registration(
            event.id, email=normalize_email(verified.email), distributor_id=distributor_id
        )

    def _upsert(
        self,
        event: Event,
        submission: Submission,
        verified: VerifiedProfile,
        existing_registration_id: str | None,
    ) -> SubmissionResult:
        email = normalize_email(verified.email)
        if existing_registration_id:
            existing = self.registrations.get_registration(existing_registration_id)
            if existing is None or existing.event_id != event.id or existing.email != email:
                raise RegistrationNotFound()
        else:
            existing = self._find_owned(event, verified)

        values = self._values(event, submission, verified, existing)
        required = BASE_REQUIRED_FIELDS + tuple(event.required_fields)
        missing = [
            name
            for name in dict.fromkeys(required)
            if name != "email" and _is_blank(self._merged_value(name, values, existing))
        ]
        if missing:
            raise ValidationError(missing)

        if existing is not None and existing.email != email:
            registration = self.registrations.update_registration(existing.id, values)
            if registration is None:
                raise RegistrationNotFound()
            was_updated = True
        else:
            registration, was_updated = self.registrations.upsert_registration(event.id, email, values)

        logger.info(
            "Registration %s %s for event %s",
            registration.id,
            "updated" if was_updated else "created",
            event.id,
        )
        return SubmissionResult(registrations=(registration,), was_updated=was_updated)

    def _values(
        self,
        event: Event,
        submission: Submission,
        verified: VerifiedProfile,
        existing: Registration | None,
    ) -> dict[str, Any]:
        incoming = submission.fields
        values: dict[str, Any] = {}
        for name in _EDITABLE_COLUMNS:
            if name in incoming:
                values[name] = _clean(incoming[name])
        if submission.language:
            values["language"] = submission.language

        if verified.distributor_id:
            values["distributor_id"] = verified.distributor_id
        elif "distributor_id" in incoming and not event.requires_qualification:
            values["distributor_id"] = _clean(incoming["distributor_id"])

        custom = _custom_fields(incoming)
        if custom is not None:
            values["form_data"] = custom

        if existing is None:
            values.setdefault("first_name", verified.first_name)
            values.setdefault("last_name", verified.last_name)
            if verified.phone:
                values.setdefault("phone", verified.phone)
            values["status"] = RegistrationStatus.REGISTERED
        elif existing.status == RegistrationStatus.QUALIFIED:
            values["status"] = RegistrationStatus.REGISTERED

        if verified.verified_by_hydra:
            values["verified_by_hydra"] = True
        return values

    @staticmethod
    def _merged_value(name: str, values: dict[str, Any], existing: Registration | None) -> Any:
        if name in REGISTRATION_COLUMNS:
            if name in values:
                return values[name]
            return existing.value_of(name) if existing else None
        if "form_data" in values:
            return values["form_data"].get(name)
        return existing.value_of(name) if existing else None

    def _submit_order(self, event: Event, submission: Submission) -> SubmissionResult:
        primary = dict(submission.fields)
        payloads = [primary, *submission.attendees]

        missing: list[str] = []
        primary_required = dict.fromkeys(BASE_REQUIRED_FIELDS + tuple(event.required_fields))
        for name in primary_required:
            if _is_blank(primary.get(name) if name in REGISTRATION_COLUMNS else self._custom_value(primary, name)):
                missing.append(name)
        for index, attendee in enumerate(submission.attendees):
            for name in BASE_REQUIRED_FIELDS:
                if _is_blank(attendee.get(name)):
                    missing.append(f"attendees[{index}].{name}")
        if missing:
            raise ValidationError(missing)

        order_id = str(uuid.uuid4())
        shared_language = submission.language or primary.get("language") or "en"
        rows = []
        for index, payload in enumerate(payloads):
            rows.append(
                {
                    "event_id": event.id,
                    "email": normalize_email(payload["email"]),
                    "first_name": _clean(payload["first_name"]),
                    "last_name": _clean(payload["last_name"]),
                    "phone": _clean(payload.get("phone")) or None,
                    "distributor_id": _clean(payload.get("distributor_id")) or None,
                    "language": payload.get("language") or shared_language,
                    "form_data": _custom_fields(payload) or {},
                    "status": RegistrationStatus.REGISTERED,
                    "verified_by_hydra": False,
                    "order_id": order_id,
                    "attendee_index": index,
                }
            )
        registrations = self.registrations.insert_order(rows)
        logger.info(
            "Order %s created %d registration(s) for event %s", order_id, len(registrations), event.id
        )
        return SubmissionResult(registrations=tuple(registrations), was_updated=False)

    @staticmethod
    def _custom_value(payload: dict[str, Any], name: str) -> Any:
        if name in payload:
            return payload[name]
        form_data = payload.get("form_data")
        return form_data.get(name) if isinstance(form_data, dict) else None
