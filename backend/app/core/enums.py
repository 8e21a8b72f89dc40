# backend/app/core/enums.py
"""
Core enums for the tutoring platform.

Roles form a closed set. Authorization checks branch on every member
explicitly and treat anything else as a programming error.
"""

from enum import Enum


class RoleName(str, Enum):
    """User roles. A user holds exactly one."""

    ADMIN = "admin"
    TUTOR = "tutor"
    STUDENT = "student"


def can_publish_availability(role: RoleName) -> bool:
    """Whether a role may own availability and receive bookings."""
    if role is RoleName.TUTOR:
        return True
    if role is RoleName.ADMIN:
        return True
    if role is RoleName.STUDENT:
        return False
    raise ValueError(f"Unhandled role: {role!r}")


def can_act_for_other_users(role: RoleName) -> bool:
    """Whether a role may read or manage records owned by someone else."""
    if role is RoleName.ADMIN:
        return True
    if role is RoleName.TUTOR:
        return False
    if role is RoleName.STUDENT:
        return False
    raise ValueError(f"Unhandled role: {role!r}")
