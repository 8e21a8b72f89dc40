# backend/app/core/config.py
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_SLOT_STEP_MINUTES,
    MAX_BOOKING_DURATION_MINUTES,
    MIN_BOOKING_DURATION_MINUTES,
)

logger = logging.getLogger(__name__)

_DEFAULT_SECRET_KEY = SecretStr("dev-only-change-me")


# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Auth (token issuance lives elsewhere; we only decode)
    secret_key: SecretStr = Field(
        default=_DEFAULT_SECRET_KEY,
        description="Secret key for JWT tokens",
    )
    algorithm: str = "HS256"

    database_url: str = Field(
        default="sqlite:///./tutoring.db",
        alias="DATABASE_URL",
        description="SQLAlchemy database URL",
    )
    database_echo: bool = False

    # Scheduling
    redis_url: Optional[str] = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis used for per-tutor scheduling locks (local locks when unset)",
    )
    booking_lock_ttl_seconds: int = Field(default=30, ge=1)
    slot_step_minutes: int = Field(default=DEFAULT_SLOT_STEP_MINUTES, ge=5, le=180)
    min_booking_duration_minutes: int = MIN_BOOKING_DURATION_MINUTES
    max_booking_duration_minutes: int = MAX_BOOKING_DURATION_MINUTES
    availability_use_tutor_timezone: bool = Field(
        default=False,
        description=(
            "Resolve day-of-week and HH:mm in the tutor's stored timezone instead of "
            "the UTC wall-clock fields of the booking instant"
        ),
    )

    # Google Calendar
    google_calendar_enabled: bool = Field(default=False, alias="GOOGLE_CALENDAR_ENABLED")
    google_client_id: str = Field(default="", alias="GOOGLE_CLIENT_ID")
    google_client_secret: SecretStr = Field(default=SecretStr(""), alias="GOOGLE_CLIENT_SECRET")
    google_refresh_token: SecretStr = Field(default=SecretStr(""), alias="GOOGLE_REFRESH_TOKEN")
    google_calendar_id: str = Field(default="primary", alias="GOOGLE_CALENDAR_ID")
    google_calendar_timeout_seconds: float = 10.0

    # CORS
    allowed_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("max_booking_duration_minutes")
    @classmethod
    def _check_duration_bounds(cls, v: int, info) -> int:
        lower = info.data.get("min_booking_duration_minutes", MIN_BOOKING_DURATION_MINUTES)
        if v < lower:
            raise ValueError("max_booking_duration_minutes must be >= min_booking_duration_minutes")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}

    @property
    def google_calendar_configured(self) -> bool:
        """All three OAuth values must be present for calendar sync to run."""
        return bool(
            self.google_calendar_enabled
            and self.google_client_id
            and self.google_client_secret.get_secret_value()
            and self.google_refresh_token.get_secret_value()
        )


def assert_env(current: "Settings") -> None:
    """Refuse to boot production with the development secret."""
    if current.is_production and (
        current.secret_key.get_secret_value() == _DEFAULT_SECRET_KEY.get_secret_value()
    ):
        raise RuntimeError("SECRET_KEY must be set in production.")


settings = Settings()
