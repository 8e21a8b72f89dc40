from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Optional

import ulid

from .enums import RoleName, can_act_for_other_users


@dataclass(frozen=True)
class RequestContext:
    """Authenticated caller passed explicitly into every service call."""

    user_id: str
    role: RoleName
    request_id: str = field(default_factory=lambda: str(ulid.ULID()))

    @property
    def is_admin(self) -> bool:
        return can_act_for_other_users(self.role)

    def log_extra(self, **extra: Any) -> dict[str, Any]:
        return {"request_id": self.request_id, "user_id": self.user_id, **extra}


def new_request_id(incoming: Optional[str] = None) -> str:
    value = (incoming or "").strip()
    return value[:64] if value else str(ulid.ULID())


class RequestIdFilter(logging.Filter):
    """Give every record a request_id attribute so format strings never break."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = "no-request"
        return True


def attach_request_id_filter(logger: Optional[logging.Logger] = None) -> None:
    target = logger or logging.getLogger()
    for handler in target.handlers:
        handler.addFilter(RequestIdFilter())
