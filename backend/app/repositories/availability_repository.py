# backend/app/repositories/availability_repository.py
"""
Availability Repository for the tutoring platform.

Data access for TutorAvailability and its date overrides. Overrides are
addressed by (availability, date); the unique constraint on that pair is what
makes override upserts idempotent.
"""

from datetime import date
import logging
from typing import Any, Dict, List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, selectinload

from ..core.exceptions import RepositoryException
from ..models.availability import AvailabilityDateOverride, TutorAvailability
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AvailabilityRepository(BaseRepository[TutorAvailability]):
    """Repository for tutor availability and date overrides."""

    def __init__(self, db: Session):
        super().__init__(db, TutorAvailability)
        self.logger = logging.getLogger(__name__)

    def get_by_tutor_id(self, tutor_id: str) -> Optional[TutorAvailability]:
        try:
            return cast(
                Optional[TutorAvailability],
                self._apply_eager_loading(self.db.query(TutorAvailability))
                .filter(TutorAvailability.tutor_id == tutor_id)
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting availability for tutor {tutor_id}: {str(e)}")
            raise RepositoryException(f"Failed to get availability: {str(e)}")

    def get_override(self, availability_id: str, override_date: date) -> Optional[AvailabilityDateOverride]:
        try:
            return cast(
                Optional[AvailabilityDateOverride],
                self.db.query(AvailabilityDateOverride)
                .filter(
                    AvailabilityDateOverride.availability_id == availability_id,
                    AvailabilityDateOverride.override_date == override_date,
                )
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting override for {override_date}: {str(e)}")
            raise RepositoryException(f"Failed to get date override: {str(e)}")

    def upsert_override(
        self,
        availability: TutorAvailability,
        override_date: date,
        available: bool,
        slots: List[Dict[str, str]],
    ) -> AvailabilityDateOverride:
        """Replace the override for ``override_date`` or add one."""
        existing = self.get_override(cast(str, availability.id), override_date)
        try:
            if existing is not None:
                existing.available = available
                existing.slots = slots
                override = existing
            else:
                override = AvailabilityDateOverride(
                    override_date=override_date,
                    available=available,
                    slots=slots,
                )
                availability.date_overrides.append(override)
            self.db.flush()
            return override
        except SQLAlchemyError as e:
            self.logger.error(f"Error saving override for {override_date}: {str(e)}")
            raise RepositoryException(f"Failed to save date override: {str(e)}")

    def delete_override(self, availability: TutorAvailability, override_date: date) -> bool:
        """Remove the override for ``override_date``; False when none existed."""
        existing = self.get_override(cast(str, availability.id), override_date)
        if existing is None:
            return False
        try:
            availability.date_overrides.remove(existing)
            self.db.flush()
            return True
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting override for {override_date}: {str(e)}")
            raise RepositoryException(f"Failed to delete date override: {str(e)}")

    def apply_changes(self, availability: TutorAvailability, changes: Dict[str, Any]) -> TutorAvailability:
        for key, value in changes.items():
            setattr(availability, key, value)
        self.flush()
        return availability

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(selectinload(TutorAvailability.date_overrides))
