# backend/app/api/dependencies/database.py
"""
Request-scoped database session.

Routes and service factories depend on this wrapper rather than on
``app.database.get_db`` directly so tests can override a single dependency.
"""

from typing import Generator

from sqlalchemy.orm import Session

from ...database import get_db as _session_per_request


def get_db() -> Generator[Session, None, None]:
    yield from _session_per_request()
