"""Application settings loaded from environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration sourced from environment variables and .env."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    DATABASE_URL: str
    HOST: str = "0.0.0.0"
    PORT: int = Field(default=8000, ge=1, le=65535)
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "text"
    LOG_FILE: Path | None = None
    LOG_FILE_MAX_BYTES: int = Field(default=10_485_760, ge=1)
    LOG_FILE_BACKUP_COUNT: int = Field(default=5, ge=1)

    SCHEDULER_ENABLED: bool = True
    SCHEDULER_JOBSTORE_URL: str = "sqlite:///./scheduler-jobs.sqlite"
    DAILY_INDEXING_CRON_HOUR: str = "0"
    DAILY_INDEXING_CRON_MINUTE: str = "0"
    AUTO_INDEXING_INTERVAL_HOURS: int = Field(default=24, ge=1)
    STALE_JOB_TIMEOUT_HOURS: int = Field(default=6, ge=1)
    STALE_JOB_REAPER_INTERVAL_SECONDS: int = Field(default=900, ge=1)
    DAILY_INDEXING_API_KEY: SecretStr | None = None

    HTTP_FETCH_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0, le=60)
    HTTP_AGENT_DELAY_SECONDS: float = Field(default=0.75, ge=0)
    OUTBOUND_HTTP_USER_AGENT: str = (
        "GSCSitemapSync/1.0 (+https://github.com/gsc-sitemap-sync)"
    )

    STATUS_CHECK_BATCH_SIZE: int = Field(default=100, ge=1)
    STATUS_CHECK_BATCH_DELAY_SECONDS: float = Field(default=1.0, ge=0)
    SUBMISSION_SETTLE_DELAY_SECONDS: float = Field(default=20.0, ge=0)
    MANUAL_RESUBMIT_COOLDOWN_HOURS: int = Field(default=24, ge=0)
    GOOGLE_SERVICE_ACCOUNT_FILE: Path | None = None

    SMTP_HOST: str | None = None
    SMTP_PORT: int = Field(default=587, ge=1, le=65535)
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: SecretStr | None = None
    SMTP_FROM_ADDRESS: str = "indexing@localhost"
    SMTP_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)

    @field_validator("LOG_FILE", "GOOGLE_SERVICE_ACCOUNT_FILE", mode="before")
    @classmethod
    def parse_optional_path(cls, value: object) -> object:
        if value in (None, ""):
            return None
        return value

    @field_validator("SMTP_HOST", "SMTP_USERNAME", mode="before")
    @classmethod
    def parse_optional_text(cls, value: object) -> object:
        if isinstance(value, str) and value.strip() == "":
            return None
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]
