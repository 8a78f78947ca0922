"""
Configuration and settings for the task sync backend.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.types import SignInMethod


class Settings(BaseSettings):
    """Environment-backed settings shared by the functions, service and scripts."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")

    # Firebase
    firebase_database_url: Optional[str] = Field(
        default=None, validation_alias="FIREBASE_DATABASE_URL"
    )
    firebase_api_key: Optional[str] = Field(
        default=None, validation_alias="FIREBASE_API_KEY"
    )
    # Path to a service account key; application default credentials otherwise.
    firebase_credentials: Optional[str] = Field(
        default=None, validation_alias="FIREBASE_CREDENTIALS"
    )
    # Uid the admin SDK impersonates in database security rules.
    database_auth_uid: Optional[str] = Field(
        default=None, validation_alias="FIREBASE_DATABASE_AUTH_UID"
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, validation_alias="TIMESLOTS_USE_IN_MEMORY_BACKENDS"
    )

    # Task data
    data_root: str = Field(default="", validation_alias="TIMESLOTS_DATA_ROOT")
    seed_data_path: Optional[str] = Field(
        default=None, validation_alias="TIMESLOTS_SEED_DATA_PATH"
    )
    sign_in_method: SignInMethod = Field(
        default=SignInMethod.ANONYMOUS, validation_alias="TIMESLOTS_SIGN_IN_METHOD"
    )
    strict_session: bool = Field(
        default=False, validation_alias="TIMESLOTS_STRICT_SESSION"
    )

    # Inactive account cleanup
    cron_key: Optional[str] = Field(default=None, validation_alias="CRON_KEY")
    inactivity_threshold_minutes: int = Field(
        default=30, validation_alias="INACTIVITY_THRESHOLD_MINUTES"
    )
    cleanup_max_concurrent: int = Field(
        default=3, ge=1, validation_alias="CLEANUP_MAX_CONCURRENT"
    )
    cleanup_page_size: int = Field(
        default=1000, ge=1, le=1000, validation_alias="CLEANUP_PAGE_SIZE"
    )

    @property
    def inactivity_threshold(self) -> timedelta:
        return timedelta(minutes=self.inactivity_threshold_minutes)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
