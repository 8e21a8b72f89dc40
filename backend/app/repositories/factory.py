# backend/app/repositories/factory.py
"""
Repository Factory for the tutoring platform.

Central place where services obtain repositories, so tests can swap
implementations by patching one seam.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .availability_repository import AvailabilityRepository
    from .booking_repository import BookingRepository
    from .user_repository import UserRepository


class RepositoryFactory:
    """Creates repository instances bound to a session."""

    @staticmethod
    def create_user_repository(db: Session) -> "UserRepository":
        """Create repository for user directory lookups."""
        from .user_repository import UserRepository

        return UserRepository(db)

    @staticmethod
    def create_availability_repository(db: Session) -> "AvailabilityRepository":
        """Create repository for availability operations and date overrides."""
        from .availability_repository import AvailabilityRepository

        return AvailabilityRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        """Create repository for bookings and conflict queries."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)
