"""Configuration models for articlecast."""

from __future__ import annotations

import os
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; articlecast/0.1)"
WPM_ENV_VAR = "ARTICLECAST_WPM"


class ConfigError(ValueError):
    """Raised when required configuration is missing from the environment."""


class FetchConfig(BaseModel):
    """How article pages are retrieved."""

    timeout_seconds: int = Field(default=30, ge=5, le=180)
    render: bool = False
    headless: bool = True
    user_agent: str = DEFAULT_USER_AGENT


class SpeechConfig(BaseModel):
    """Narration settings."""

    words_per_minute: int = Field(default=150, gt=0)
    command: list[str] | None = None
    rate: int | None = Field(default=None, gt=0)

    @field_validator("command")
    @classmethod
    def validate_command(cls, value: list[str] | None) -> list[str] | None:
        if value is not None and not value:
            raise ValueError("command must name an executable")
        return value


class StoreConfig(BaseModel):
    """Connection settings for the Appwrite profile collection."""

    endpoint: str
    project_id: str
    database_id: str
    user_collection_id: str
    api_key: str | None = None
    timeout_seconds: float = Field(default=15.0, gt=0)

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, value: str) -> str:
        parsed = urlparse(value.strip())
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(f"endpoint must be an http(s) URL, got '{value}'")
        return value.strip().rstrip("/")

    @classmethod
    def from_env(cls) -> "StoreConfig":
        required = {
            "endpoint": "APPWRITE_ENDPOINT",
            "project_id": "APPWRITE_PROJECT",
            "database_id": "APPWRITE_DATABASE_ID",
            "user_collection_id": "APPWRITE_USER_COLLECTION_ID",
        }
        values: dict[str, str] = {}
        missing: list[str] = []
        for field_name, variable in required.items():
            raw = os.getenv(variable, "").strip()
            if not raw:
                missing.append(variable)
                continue
            values[field_name] = raw

        if missing:
            raise ConfigError(f"Missing environment variables: {', '.join(missing)}")

        api_key = os.getenv("APPWRITE_API_KEY", "").strip() or None
        return cls(api_key=api_key, **values)


class ReaderConfig(BaseModel):
    """Top-level settings bundle."""

    fetch: FetchConfig = Field(default_factory=FetchConfig)
    speech: SpeechConfig = Field(default_factory=SpeechConfig)
    store: StoreConfig | None = None

    @classmethod
    def from_env(cls, *, require_store: bool = False) -> "ReaderConfig":
        speech = SpeechConfig()
        wpm = os.getenv(WPM_ENV_VAR, "").strip()
        if wpm:
            try:
                speech = SpeechConfig(words_per_minute=int(wpm))
            except ValueError as exc:
                raise ConfigError(f"{WPM_ENV_VAR} must be a positive integer, got '{wpm}'") from exc

        try:
            store = StoreConfig.from_env()
        except ConfigError:
            if require_store:
                raise
            store = None

        return cls(speech=speech, store=store)
