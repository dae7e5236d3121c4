"""
API v1 operator routes.

Event setup and attendee lifecycle operations, behind HTTP BASIC AUTH.
"""

from fastapi import APIRouter, Depends, Response, status

from src.api.dependencies import get_administration, get_lifecycle, require_admin
from src.api.errors import http_error
from src.api.models import (
    CheckInRequest,
    ErrorResponse,
    EventCreateRequest,
    EventResponse,
    QualifierImportRequest,
    QualifierImportResponse,
    RegistrationResponse,
    TransferRequest,
)
from src.domain.administration import EventAdministration
from src.domain.exceptions import RegistrationError
from src.domain.lifecycle import AttendeeLifecycle
from src.domain.models import Event

router = APIRouter(prefix="/admin", tags=["admin"])

_UNAUTHORIZED = {401: {"description": "Invalid operator credentials"}}
_NOT_FOUND = {404: {"model": ErrorResponse, "description": "Not found"}}


@router.post(
    "/events",
    response_model=EventResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_UNAUTHORIZED, 422: {"model": ErrorResponse, "description": "Validation error"}},
    summary="Create an event",
)
def create_event(
    request_data: EventCreateRequest,
    operator: str = Depends(require_admin),
    administration: EventAdministration = Depends(get_administration),
) -> EventResponse:
    event = Event(
        id=request_data.id or "",
        name=request_data.name,
        registration_mode=request_data.registration_mode,
        qualification_start_date=request_data.qualification_start_date,
        qualification_end_date=request_data.qualification_end_date,
        capacity=request_data.capacity,
        required_fields=tuple(request_data.required_fields),
    )
    try:
        created = administration.create_event(event)
    except RegistrationError as e:
        raise http_error(e) from None
    return EventResponse.from_domain(created)


@router.post(
    "/events/{event_id}/qualifiers",
    response_model=QualifierImportResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_UNAUTHORIZED, **_NOT_FOUND},
    summary="Import qualified registrants",
)
def import_qualifiers(
    event_id: str,
    request_data: QualifierImportRequest,
    operator: str = Depends(require_admin),
    administration: EventAdministration = Depends(get_administration),
) -> QualifierImportResponse:
    try:
        imported = administration.import_qualifiers(
            event_id, [entry.model_dump() for entry in request_data.qualifiers]
        )
    except RegistrationError as e:
        raise http_error(e) from None
    return QualifierImportResponse(imported=imported)


@router.post(
    "/events/{event_id}/close",
    response_model=EventResponse,
    responses={**_UNAUTHORIZED, **_NOT_FOUND},
    summary="Close registration for an event",
)
def close_registration(
    event_id: str,
    operator: str = Depends(require_admin),
    administration: EventAdministration = Depends(get_administration),
) -> EventResponse:
    try:
        event = administration.close_registration(event_id)
    except RegistrationError as e:
        raise http_error(e) from None
    return EventResponse.from_domain(event)


@router.post(
    "/registrations/{registration_id}/transfer",
    response_model=RegistrationResponse,
    responses={
        **_UNAUTHORIZED,
        **_NOT_FOUND,
        409: {"model": ErrorResponse, "description": "Transfer conflict"},
    },
    summary="Move a registration to another event",
    description="Check-in, badge print history and swag assignments are reset; "
    "guests, travel and reimbursement records are kept.",
)
def transfer_registration(
    registration_id: str,
    request_data: TransferRequest,
    operator: str = Depends(require_admin),
    lifecycle: AttendeeLifecycle = Depends(get_lifecycle),
) -> RegistrationResponse:
    try:
        registration = lifecycle.transfer(registration_id, request_data.target_event_id)
    except RegistrationError as e:
        raise http_error(e) from None
    return RegistrationResponse.from_domain(registration)


@router.post(
    "/registrations/{registration_id}/check-in",
    response_model=RegistrationResponse,
    responses={**_UNAUTHORIZED, **_NOT_FOUND},
    summary="Check an attendee in",
)
def check_in(
    registration_id: str,
    request_data: CheckInRequest | None = None,
    operator: str = Depends(require_admin),
    lifecycle: AttendeeLifecycle = Depends(get_lifecycle),
) -> RegistrationResponse:
    checked_in_by = (request_data.checked_in_by if request_data else None) or operator
    try:
        registration = lifecycle.check_in(registration_id, checked_in_by)
    except RegistrationError as e:
        raise http_error(e) from None
    return RegistrationResponse.from_domain(registration)


@router.delete(
    "/registrations/{registration_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={**_UNAUTHORIZED, **_NOT_FOUND},
    summary="Cancel a registration",
)
def cancel_registration(
    registration_id: str,
    operator: str = Depends(require_admin),
    lifecycle: AttendeeLifecycle = Depends(get_lifecycle),
) -> Response:
    try:
        lifecycle.cancel(registration_id)
    except RegistrationError as e:
        raise http_error(e) from None
    return Response(status_code=status.HTTP_204_NO_CONTENT)
