# backend/app/api/dependencies/auth.py
"""
Authentication and authorization dependencies.

Routes never read identity from the token directly: they receive a
RequestContext built from the verified token subject and the stored user
row, so the role used for authorization is always the current one.
"""

import logging

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ...auth import get_current_user_id
from ...core.enums import can_publish_availability
from ...core.exceptions import UnauthorizedException
from ...core.request_context import RequestContext, new_request_id
from ...models.user import User
from ...repositories.factory import RepositoryFactory
from .database import get_db

logger = logging.getLogger(__name__)


def get_current_active_user(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> User:
    """
    Load the authenticated user.

    Raises:
        UnauthorizedException: the user no longer exists
        HTTPException: 403 if deactivated
    """
    user = RepositoryFactory.create_user_repository(db).get_by_id(user_id, load_relationships=False)
    if user is None:
        logger.warning("Token subject has no user row", extra={"user_id": user_id})
        raise UnauthorizedException()
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return user


def get_request_context(
    request: Request,
    current_user: User = Depends(get_current_active_user),
) -> RequestContext:
    """Caller identity plus the request id assigned by the middleware."""
    request_id = getattr(request.state, "request_id", None) or new_request_id()
    return RequestContext(
        user_id=current_user.id,
        role=current_user.role_name,
        request_id=request_id,
    )


def require_tutor(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    """Restrict an endpoint to roles that may publish availability."""
    if not can_publish_availability(ctx.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": "Only tutors can perform this action",
                "code": "TUTOR_ROLE_REQUIRED",
                "details": {},
            },
        )
    return ctx
