# backend/app/routes/v1/availability.py
"""
Tutor availability routes - API v1

Mounted under /api/v1/bookings next to the booking routes, and included
before them so these static paths win over /{booking_id}.

Endpoints:
    GET /tutors - Tutor directory with availability summaries
    GET /availability - Caller's availability (admins may pass tutor_id)
    PUT /availability - Partial update of weekly schedule and settings
    POST /availability/override - Add or replace a date override
    DELETE /availability/override - Remove a date override
"""

import asyncio
from datetime import date
import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...api.dependencies import get_availability_service, get_request_context, require_tutor
from ...core.exceptions import DomainException
from ...core.request_context import RequestContext
from ...schemas.availability import (
    AvailabilityResponse,
    AvailabilityUpdate,
    DateOverrideCreate,
    TutorWithAvailability,
)
from ...services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["availability-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get(
    "/tutors",
    response_model=List[TutorWithAvailability],
    dependencies=[Depends(get_request_context)],
)
async def list_tutors(
    subject: Optional[str] = Query(None, max_length=100, description="Case-insensitive skill match"),
    active_only: bool = Query(False, description="Only tutors with active availability"),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> List[TutorWithAvailability]:
    """Tutor directory for students picking whom to book."""
    try:
        return await asyncio.to_thread(
            availability_service.get_tutors_with_availability,
            subject=subject,
            active_only=active_only,
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/availability", response_model=AvailabilityResponse)
async def get_availability(
    tutor_id: Optional[str] = Query(None, description="Admins only: tutor to read"),
    ctx: RequestContext = Depends(require_tutor),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    """Get availability, creating the inactive default on first read."""
    try:
        availability = await asyncio.to_thread(availability_service.get_availability, ctx, tutor_id)
        return AvailabilityResponse.from_model(availability)
    except DomainException as e:
        handle_domain_exception(e)


@router.put(
    "/availability",
    response_model=AvailabilityResponse,
    responses={400: {"description": "Inverted or overlapping time slot"}},
)
async def update_availability(
    patch: AvailabilityUpdate = Body(...),
    tutor_id: Optional[str] = Query(None, description="Admins only: tutor to update"),
    ctx: RequestContext = Depends(require_tutor),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    try:
        availability = await asyncio.to_thread(
            availability_service.update_availability, ctx, patch, tutor_id
        )
        return AvailabilityResponse.from_model(availability)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/availability/override", response_model=AvailabilityResponse)
async def add_date_override(
    data: DateOverrideCreate = Body(...),
    tutor_id: Optional[str] = Query(None, description="Admins only: tutor to update"),
    ctx: RequestContext = Depends(require_tutor),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    """Add an override for a date; an existing override for that date is replaced."""
    try:
        availability = await asyncio.to_thread(
            availability_service.add_date_override, ctx, data, tutor_id
        )
        return AvailabilityResponse.from_model(availability)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete(
    "/availability/override",
    response_model=AvailabilityResponse,
    responses={404: {"description": "No override for that date"}},
)
async def remove_date_override(
    override_date: date = Query(..., alias="date", description="YYYY-MM-DD"),
    tutor_id: Optional[str] = Query(None, description="Admins only: tutor to update"),
    ctx: RequestContext = Depends(require_tutor),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    try:
        availability = await asyncio.to_thread(
            availability_service.remove_date_override, ctx, override_date, tutor_id
        )
        return AvailabilityResponse.from_model(availability)
    except DomainException as e:
        handle_domain_exception(e)
