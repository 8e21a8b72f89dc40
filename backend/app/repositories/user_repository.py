# backend/app/repositories/user_repository.py
"""
User Repository for the tutoring platform.

Directory lookups consumed by scheduling: by id (optionally row-locked), by
email, and the tutor listing behind the tutor directory.
"""

import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..core.enums import RoleName
from ..core.exceptions import RepositoryException
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    """Repository for User data access."""

    def __init__(self, db: Session):
        super().__init__(db, User)
        self.logger = logging.getLogger(__name__)

    def get_by_id(self, id: str, load_relationships: bool = True, for_update: bool = False) -> Optional[User]:
        """
        Get user by ID.

        ``for_update`` takes a row lock on PostgreSQL. Booking writes lock the
        tutor row so concurrent schedule mutations for one tutor serialize.
        """
        if id is None:
            return None
        try:
            query = self.db.query(User).filter(User.id == str(id))
            if for_update and self.dialect_name == "postgresql":
                query = query.with_for_update()
            return cast(Optional[User], query.first())
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting user by ID {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve user: {str(e)}")

    def list_tutors(self, subject: Optional[str] = None) -> List[User]:
        """
        Active tutors ordered by name.

        Subject membership in the ``skills`` JSON list is checked in Python so
        the query stays portable between PostgreSQL and SQLite.
        """
        try:
            tutors = cast(
                List[User],
                self.db.query(User)
                .options(selectinload(User.availability))
                .filter(User.role == RoleName.TUTOR.value, User.is_active.is_(True))
                .order_by(User.first_name, User.last_name)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing tutors: {str(e)}")
            raise RepositoryException(f"Failed to list tutors: {str(e)}")

        if subject:
            wanted = subject.strip().lower()
            tutors = [t for t in tutors if wanted in {s.lower() for s in t.skill_list}]
        return tutors
