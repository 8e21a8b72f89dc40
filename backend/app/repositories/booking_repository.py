# backend/app/repositories/booking_repository.py
"""
Booking Repository for the tutoring platform.

Overlap queries use the half-open test on the stored instants:
``scheduled_at < other_end AND ends_at > other_start``, restricted to
bookings that still hold the tutor's time.
"""

from datetime import datetime
import logging
from typing import List, Optional, cast

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.exceptions import RepositoryException
from ..models.booking import ACTIVE_STATUSES, Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

_ACTIVE_VALUES = sorted(status.value for status in ACTIVE_STATUSES)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def find_conflicts(
        self,
        tutor_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Active bookings of a tutor overlapping ``[start, end)``.

        Args:
            tutor_id: The tutor ID
            start: Window start (UTC)
            end: Window end (UTC)
            exclude_booking_id: Booking being rescheduled, ignored in the check

        Returns:
            Overlapping bookings ordered by start
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.tutor_id == tutor_id,
                Booking.status.in_(_ACTIVE_VALUES),
                Booking.scheduled_at < end,
                Booking.ends_at > start,
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return cast(List[Booking], query.order_by(Booking.scheduled_at).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking time conflict: {str(e)}")
            raise RepositoryException(f"Failed to check conflict: {str(e)}")

    def get_active_for_tutor_between(self, tutor_id: str, start: datetime, end: datetime) -> List[Booking]:
        """Active bookings touching a range, used to filter open slots."""
        return self.find_conflicts(tutor_id, start, end)

    def get_with_parties(self, booking_id: str) -> Optional[Booking]:
        return self.get_by_id(booking_id, load_relationships=True)

    def list_for_user(
        self,
        user_id: str,
        as_student: bool = True,
        as_tutor: bool = True,
        status: Optional[str] = None,
        starts_after: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[Booking]:
        """
        Bookings where the user is a party, ordered by start.

        Args:
            user_id: The caller
            as_student: Include bookings the user requested
            as_tutor: Include bookings the user teaches
            status: Optional exact status filter
            starts_after: Only bookings starting after this instant
            limit: Maximum rows returned
        """
        if not as_student and not as_tutor:
            return []
        try:
            query = self._apply_eager_loading(self.db.query(Booking))
            clauses = []
            if as_student:
                clauses.append(Booking.student_id == user_id)
            if as_tutor:
                clauses.append(Booking.tutor_id == user_id)
            query = query.filter(or_(*clauses))
            if status:
                query = query.filter(Booking.status == status)
            if starts_after is not None:
                query = query.filter(Booking.scheduled_at > starts_after)
            return cast(List[Booking], query.order_by(Booking.scheduled_at).limit(limit).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(Booking.student),
            joinedload(Booking.tutor),
        )
