"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the job queue and the
helper scripts share one configuration surface that is built once at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from strategic_analysis.services.job_queue import QueueConfig


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class GeminiSettings(BaseSettings):
    """Configuration for Gemini model access."""

    model_config = SettingsConfigDict(populate_by_name=True)

    api_key: str = Field(..., validation_alias="GEMINI_API_KEY")
    model_name: str = Field(
        "gemini-1.5-pro-latest", validation_alias="GEMINI_MODEL_NAME"
    )
    temperature: float = Field(0.5, validation_alias="GEMINI_TEMPERATURE")


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = SettingsConfigDict(populate_by_name=True)

    frontend_api_key: Optional[str] = Field(
        None,
        validation_alias="FRONTEND_API_KEY",
        description="Shared secret expected in the x-api-key header.",
    )


class QueueSettings(BaseSettings):
    """Limits applied to calls against the generation API."""

    model_config = SettingsConfigDict(populate_by_name=True)

    max_concurrent: int = Field(1, ge=1, validation_alias="QUEUE_MAX_CONCURRENT")
    window_seconds: float = Field(60.0, gt=0, validation_alias="QUEUE_WINDOW_SECONDS")
    max_per_window: int = Field(3, ge=1, validation_alias="QUEUE_MAX_PER_WINDOW")
    job_timeout_seconds: float = Field(
        180.0, gt=0, validation_alias="QUEUE_JOB_TIMEOUT_SECONDS"
    )
    max_attempts: int = Field(3, ge=1, validation_alias="QUEUE_MAX_ATTEMPTS")
    initial_backoff_seconds: float = Field(
        15.0, ge=0, validation_alias="QUEUE_INITIAL_BACKOFF_SECONDS"
    )

    def to_config(self) -> "QueueConfig":
        """Freeze the settings into the value handed to the job queue."""
        from strategic_analysis.services.job_queue import QueueConfig

        return QueueConfig(
            max_concurrent=self.max_concurrent,
            window_seconds=self.window_seconds,
            max_per_window=self.max_per_window,
            job_timeout_seconds=self.job_timeout_seconds,
            max_attempts=self.max_attempts,
            initial_backoff_seconds=self.initial_backoff_seconds,
        )


class ThrottleSettings(BaseSettings):
    """Per-caller request cap for the analyze endpoint."""

    model_config = SettingsConfigDict(populate_by_name=True)

    limit: int = Field(30, ge=1, validation_alias="ANALYZE_RATE_LIMIT")
    window_seconds: float = Field(
        60.0, gt=0, validation_alias="ANALYZE_RATE_WINDOW_SECONDS"
    )


class UploadSettings(BaseSettings):
    """Constraints for uploaded supporting documents."""

    model_config = SettingsConfigDict(populate_by_name=True)

    max_bytes: int = Field(20 * 1024 * 1024, validation_alias="MAX_UPLOAD_BYTES")
    max_additional_documents: int = Field(
        10, validation_alias="MAX_ADDITIONAL_DOCUMENTS"
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    environment: str = Field("production", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    allowed_origins: str = Field(
        "",
        validation_alias="ALLOWED_ORIGINS",
        description="Comma-separated CORS origins added to the local dev servers.",
    )
    upload_dir: Path = Field(Path("uploads"), validation_alias="UPLOAD_DIR")
    export_title: str = Field(
        "Strategic Analysis Report", validation_alias="EXPORT_TITLE"
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    gemini: GeminiSettings = Field(default_factory=GeminiSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)
    throttle: ThrottleSettings = Field(default_factory=ThrottleSettings)
    uploads: UploadSettings = Field(default_factory=UploadSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def allowed_origins_list(self) -> list[str]:
        return [
            origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()
        ]

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def methodology_dir(self) -> Path:
        return self.upload_dir / "methodology"


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "GeminiSettings",
    "QueueSettings",
    "SecuritySettings",
    "ThrottleSettings",
    "UploadSettings",
    "get_settings",
]
