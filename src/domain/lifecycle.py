"""
Attendee Lifecycle Operations - Operator-driven changes to a registration.

Transfer resets exactly the event-scoped operational state (check-in,
badge print history, swag assignments) and keeps identity, guests, travel
and reimbursement records. Cancellation deletes the registration together
with its event-scoped state, which frees the identity to register again.
"""

import logging
from dataclasses import dataclass

from .exceptions import RegistrationNotFound, TransferConflict
from .models import Registration
from .ports import EventRepository, RegistrationRepository, TransferResult

logger = logging.getLogger(__name__)


@dataclass
class AttendeeLifecycle:
    events: EventRepository
    registrations: RegistrationRepository

    def transfer(self, registration_id: str, target_event_id: str) -> Registration:
        """
        Move a registration to another event.

        Raises:
            RegistrationNotFound: If the registration does not exist
            TransferConflict: If the target is the current event, does not
                exist, or already holds a registration for this attendee
        """
        registration = self.registrations.get_registration(registration_id)
        if registration is None:
            raise RegistrationNotFound()
        if registration.event_id == target_event_id:
            raise TransferConflict("Registration is already in this event")
        if self.events.get_event(target_event_id) is None:
            raise TransferConflict("Target event not found")
        if (
            registration.order_id is None
            and self.registrations.find_registration(target_event_id, email=registration.email) is not None
        ):
            raise TransferConflict("This attendee is already registered for the target event")

        result, moved = self.registrations.transfer_registration(
            registration_id, registration.event_id, target_event_id
        )
        if result == TransferResult.NOT_FOUND:
            raise RegistrationNotFound()
        if result == TransferResult.CONFLICT:
            raise TransferConflict("This attendee is already registered for the target event")

        logger.info(
            "Registration %s transferred from event %s to %s",
            registration_id,
            registration.event_id,
            target_event_id,
        )
        return moved

    def cancel(self, registration_id: str) -> None:
        """Delete a registration and its badge/swag state."""
        if not self.registrations.delete_registration(registration_id):
            raise RegistrationNotFound()
        logger.info("Registration %s cancelled", registration_id)

    def check_in(self, registration_id: str, checked_in_by: str | None = None) -> Registration:
        registration = self.registrations.check_in(registration_id, checked_in_by)
        if registration is None:
            raise RegistrationNotFound()
        return registration
