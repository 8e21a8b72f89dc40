# backend/app/repositories/__init__.py
"""
Repository Pattern Implementation for the tutoring platform.

This package provides the repository layer for data access,
separating business logic from database queries.

Key Components:
- BaseRepository: Generic CRUD foundation (flush only, never commit)
- RepositoryFactory: Factory for creating repository instances
- UserRepository: Users and the tutor directory
- AvailabilityRepository: Tutor availability and date overrides
- BookingRepository: Bookings, conflict detection and per-user listings

Usage:
    from app.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_booking_repository(db)
    conflicts = repository.find_conflicts(tutor_id, start, end)
"""

from .availability_repository import AvailabilityRepository
from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .factory import RepositoryFactory
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "RepositoryFactory",
    "AvailabilityRepository",
    "BookingRepository",
    "UserRepository",
]
