from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError

REPO_ROOT = Path(__file__).resolve().parents[2]
ENV_FILE = REPO_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE), env_file_encoding="utf-8", extra="ignore"
    )

    # console logs instead of JSON
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    ENVIRONMENT: str = "development"

    # CORS allow origins (comma-separated). Default empty (no cross-origin).
    CORS_ALLOW_ORIGINS: str = ""

    # Reasoning collaborator
    OPENAI_API_KEY: str | None = None
    OPENAI_API_BASE: str = "https://api.openai.com/v1"
    OPENAI_TIMEOUT_SECONDS: float = 60.0
    PLANNER_MODEL: str = "gpt-4o"
    PLANNER_MAX_TOKENS: int = 2048
    PLANNER_TEMPERATURE: float = 0.7
    MAX_TOOL_ROUNDS: int = Field(default=5, ge=1, le=20)

    # Retrieval collaborator
    RETRIEVAL_API_URL: str | None = Field(
        default=None,
        validation_alias=AliasChoices("RETRIEVAL_API_URL", "VIVATECH_API_URL"),
    )
    API_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)
    RETRIEVAL_MAX_RESULTS: int = Field(default=20, ge=1, le=100)
    MAX_RETRIEVAL_CALLS: int = Field(default=3, ge=1, le=10)

    # Conference context
    CONFERENCE_NAME: str = "VivaTech 2025"
    CONFERENCE_DATE: date | None = None

    # Observability
    SENTRY_DSN: str | None = None
    SENTRY_RELEASE: str | None = None
    SENTRY_TRACES_SAMPLE_RATE: float = 0.2

    @field_validator("CONFERENCE_DATE", mode="before")
    @classmethod
    def _blank_date(cls, value):  # type: ignore[override]
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def allow_origins(self) -> list[str]:
        s = (self.CORS_ALLOW_ORIGINS or "").strip()
        if s == "*":
            return ["*"]
        if s == "":
            return []
        return [part.strip() for part in s.split(",") if part.strip()]

    def validate_required(self) -> None:
        """Raise ConfigError when credentials or endpoints are missing."""
        if not (self.OPENAI_API_KEY or "").strip():
            raise ConfigError("Missing required configuration: OPENAI_API_KEY")
        if not (self.RETRIEVAL_API_URL or "").strip():
            raise ConfigError("Missing required configuration: RETRIEVAL_API_URL")


settings = Settings()
