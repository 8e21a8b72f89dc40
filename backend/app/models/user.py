# backend/app/models/user.py
"""
User model for the tutoring platform.

Students and tutors share one table and are told apart by ``role``.
Account creation, passwords and OAuth live in the identity service; this
table only mirrors what scheduling needs: identity, role and declared skills.

Classes:
    User: Directory entry consulted by the scheduling services
"""

import logging
from typing import Any, List, cast

from sqlalchemy import JSON, Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import RoleName
from ..database import Base

logger = logging.getLogger(__name__)


class User(Base):
    """
    Directory entry for a student, tutor or admin.

    Attributes:
        id: ULID primary key
        email: Unique email address
        first_name: User's first name
        last_name: User's last name
        role: One of RoleName
        skills: Subject tags the user declares (seed for tutor availability)
        is_active: Whether the account may take part in bookings
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String, unique=True, index=True, nullable=False)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    role = Column(String(20), nullable=False, default=RoleName.STUDENT.value, index=True)
    # Generic JSON for cross-dialect compatibility (SQLite in tests)
    skills = Column(JSON, nullable=False, default=list)
    bio = Column(String(1000), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    availability = relationship(
        "TutorAvailability",
        back_populates="tutor",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        logger.debug(f"Creating new user with email: {kwargs.get('email')}")

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def role_name(self) -> RoleName:
        return RoleName(cast(str, self.role))

    @property
    def skill_list(self) -> List[str]:
        return list(cast(list, self.skills) or [])

    @property
    def is_tutor(self) -> bool:
        return self.role_name is RoleName.TUTOR
