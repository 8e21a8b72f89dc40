# backend/app/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    GET /slots - Open slots for a tutor on a date
    GET / - Caller's bookings with filters
    POST / - Request a booking (student side)
    GET /{booking_id} - Booking details (parties and admins)
    PUT /{booking_id} - Edit a pending booking (student)
    PUT /{booking_id}/accept - Accept a pending booking (tutor)
    PUT /{booking_id}/decline - Decline a pending booking (tutor)
    PUT /{booking_id}/complete - Mark a started session completed
    DELETE /{booking_id} - Cancel a booking (either party)
"""

import asyncio
from datetime import date
import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status

from ...api.dependencies import get_booking_service, get_request_context, require_tutor
from ...core.constants import DEFAULT_BOOKING_DURATION_MINUTES
from ...core.exceptions import DomainException
from ...core.request_context import RequestContext
from ...models.booking import BookingStatus
from ...schemas.booking import (
    AvailableSlotsResponse,
    BookingAccept,
    BookingCreate,
    BookingFilters,
    BookingReason,
    BookingResponse,
    BookingUpdate,
)
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])

DATE_QUERY_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.get(
    "/slots",
    response_model=AvailableSlotsResponse,
    dependencies=[Depends(get_request_context)],
    responses={404: {"description": "Tutor not found"}},
)
async def get_available_slots(
    tutor_id: str = Query(..., min_length=1),
    slot_date: str = Query(..., alias="date", pattern=DATE_QUERY_PATTERN, description="YYYY-MM-DD"),
    duration: int = Query(DEFAULT_BOOKING_DURATION_MINUTES, description="Minutes"),
    booking_service: BookingService = Depends(get_booking_service),
) -> AvailableSlotsResponse:
    """Bookable start times for ``duration`` minutes on ``date``."""
    try:
        day = date.fromisoformat(slot_date)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="date must be a valid YYYY-MM-DD calendar date",
        )
    try:
        slots = await asyncio.to_thread(booking_service.get_available_slots, tutor_id, day, duration)
        return AvailableSlotsResponse(tutor_id=tutor_id, date=day, duration=duration, slots=slots)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("", response_model=List[BookingResponse])
async def get_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    role: Optional[str] = Query(None, pattern=r"^(student|tutor)$"),
    upcoming: bool = Query(False),
    ctx: RequestContext = Depends(get_request_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[BookingResponse]:
    """Caller's bookings as student, tutor or both."""
    try:
        filters = BookingFilters(status=status_filter, role=role, upcoming=upcoming)
        bookings = await asyncio.to_thread(booking_service.get_bookings, ctx, filters)
        return [BookingResponse.from_model(b) for b in bookings]
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Business rule violation, unavailable slot or conflict"},
        404: {"description": "Tutor not found"},
    },
)
async def create_booking(
    booking_data: BookingCreate = Body(...),
    ctx: RequestContext = Depends(get_request_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """
    Request a session with a tutor.

    The booking starts as pending and holds the tutor's time until it is
    declined, cancelled or completed.
    """
    try:
        booking = await asyncio.to_thread(booking_service.create_booking, ctx, booking_data)
        return BookingResponse.from_model(booking)
    except DomainException as e:
        handle_domain_exception(e)


# ============================================================================
# SECTION 2: Dynamic routes (with path parameters - placed last)
# ============================================================================


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    responses={403: {"description": "Not a party to this booking"}, 404: {"description": "Booking not found"}},
)
async def get_booking(
    booking_id: str = Path(..., description="Booking ULID"),
    ctx: RequestContext = Depends(get_request_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, ctx, booking_id)
        return BookingResponse.from_model(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: str = Path(..., description="Booking ULID"),
    patch: BookingUpdate = Body(...),
    ctx: RequestContext = Depends(get_request_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Edit or reschedule a booking that is still pending."""
    try:
        booking = await asyncio.to_thread(booking_service.update_booking, ctx, booking_id, patch)
        return BookingResponse.from_model(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{booking_id}/accept", response_model=BookingResponse)
async def accept_booking(
    booking_id: str = Path(..., description="Booking ULID"),
    data: Optional[BookingAccept] = Body(None),
    ctx: RequestContext = Depends(require_tutor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """
    Accept a pending booking.

    Returns ``confirmed`` when the calendar event was created, otherwise
    ``accepted``.
    """
    try:
        booking = await asyncio.to_thread(booking_service.accept_booking, ctx, booking_id, data)
        return BookingResponse.from_model(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{booking_id}/decline", response_model=BookingResponse)
async def decline_booking(
    booking_id: str = Path(..., description="Booking ULID"),
    data: BookingReason = Body(...),
    ctx: RequestContext = Depends(require_tutor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.decline_booking, ctx, booking_id, data.reason
        )
        return BookingResponse.from_model(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: str = Path(..., description="Booking ULID"),
    ctx: RequestContext = Depends(get_request_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.complete_booking, ctx, booking_id)
        return BookingResponse.from_model(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/{booking_id}", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str = Path(..., description="Booking ULID"),
    data: BookingReason = Body(...),
    ctx: RequestContext = Depends(get_request_context),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Cancel a pending, accepted or confirmed booking."""
    try:
        booking = await asyncio.to_thread(booking_service.cancel_booking, ctx, booking_id, data.reason)
        return BookingResponse.from_model(booking)
    except DomainException as e:
        handle_domain_exception(e)
