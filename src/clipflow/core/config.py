"""Application settings for the clipboard flow service.

Values come from the process environment and the env file picked by
`get_settings()` for the current ENVIRONMENT. Field names are upper case so
they match the environment variables one to one.
"""

import json
import os
from functools import lru_cache
from typing import Self

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


LLM_PROVIDERS = {"openai", "anthropic", "openrouter", "ollama", "gemini"}

ENV_FILES: dict[str, str | None] = {
    "development": ".env.dev",
    "production": ".env.prod",
    "test": None,
}


def split_origins(raw: object) -> list[str]:
    """Normalize CORS origins given as a list, a JSON array or a CSV string."""
    if isinstance(raw, list | tuple):
        items = list(raw)
    elif isinstance(raw, str):
        text = raw.strip()
        if text.startswith("["):
            try:
                items = json.loads(text)
            except json.JSONDecodeError as e:
                raise ValueError("CORS_ORIGINS is not valid JSON") from e
            if not isinstance(items, list):
                raise ValueError("CORS_ORIGINS JSON must be an array")
        else:
            items = text.split(",")
    else:
        raise ValueError(f"Unsupported CORS_ORIGINS value: {type(raw).__name__}")
    return [origin for origin in (str(i).strip() for i in items) if origin]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # App
    APP_NAME: str = "ClipFlow"
    ENVIRONMENT: str = "development"  # development | production | test

    # CORS for local dashboards; a CSV or JSON string is accepted from env
    CORS_ORIGINS: list[str] | str = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    ALLOW_CREDENTIALS: bool = True

    # Transformation flow
    TRANSFORMATION_TIMEOUT_SECONDS: float = 30.0
    PASTE_DELAY_SECONDS: float = 0.05
    MAX_INPUT_BYTES: int = 100_000
    PASTE_PERMISSION_GRANTED: bool = True
    ACTIVE_TRANSFORMATION: str = "clean-terminal-text"

    # Buffer change detector
    DETECTOR_ENABLED: bool = True
    DETECTOR_POLL_INTERVAL_SECONDS: float = 0.15
    DETECTOR_LEEWAY_SECONDS: float = 0.05
    DETECTOR_GRACE_DELAY_SECONDS: float = 0.08

    # History
    HISTORY_ENABLED: bool = True
    HISTORY_ENTRY_LIMIT: int = 100  # 0 keeps everything
    DATABASE_URL: str = "sqlite+aiosqlite:///./clipflow.db"

    # Notifications
    NOTIFICATIONS_ENABLED: bool = True
    NOTIFICATION_HISTORY_SIZE: int = 50

    # LLM strategy (only registered when a provider is configured)
    # Secrets belong in .env.dev/.env.prod, never in source
    LLM_PROVIDER: str | None = None
    LLM_MODEL: str = "gpt-4o-mini"
    LLM_SYSTEM_PROMPT: str = (
        "Rewrite the user's text so it is clear and well formatted. "
        "Return only the rewritten text."
    )
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_TOKENS: int | None = 4096
    LLM_CONTENT_LIMIT_BYTES: int = 200_000
    OPENAI_API_KEY: str | None = None
    ANTHROPIC_API_KEY: str | None = None
    OPENROUTER_API_KEY: str | None = None
    OLLAMA_BASE_URL: str = "http://localhost:11434/v1"
    GEMINI_API_KEY: str | None = None

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v: object) -> list[str]:
        return split_origins(v)

    @field_validator("LLM_PROVIDER", mode="before")
    @classmethod
    def normalize_llm_provider(cls, v: object) -> str | None:
        """Lower-case the provider name and treat blanks as unset."""
        provider = str(v).strip().lower() if v is not None else ""
        if not provider:
            return None
        if provider not in LLM_PROVIDERS:
            raise ValueError(
                f"LLM_PROVIDER must be one of {sorted(LLM_PROVIDERS)}, got '{provider}'"
            )
        return provider

    @field_validator(
        "TRANSFORMATION_TIMEOUT_SECONDS",
        "DETECTOR_POLL_INTERVAL_SECONDS",
    )
    @classmethod
    def _require_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("value must be greater than zero")
        return v

    @field_validator(
        "PASTE_DELAY_SECONDS",
        "DETECTOR_LEEWAY_SECONDS",
        "DETECTOR_GRACE_DELAY_SECONDS",
        "HISTORY_ENTRY_LIMIT",
        "MAX_INPUT_BYTES",
    )
    @classmethod
    def _require_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("value must not be negative")
        return v

    @model_validator(mode="after")
    def _reject_wildcard_with_credentials(self) -> Self:
        origins = (
            split_origins(self.CORS_ORIGINS)
            if isinstance(self.CORS_ORIGINS, str)
            else self.CORS_ORIGINS
        )
        self.CORS_ORIGINS = origins
        if self.ALLOW_CREDENTIALS and "*" in origins:
            raise ValueError(
                "CORS_ORIGINS may not contain '*' while ALLOW_CREDENTIALS is true; "
                "list the allowed origins explicitly"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    environment = os.getenv("ENVIRONMENT", "development").lower()
    if environment not in ENV_FILES:
        raise ValueError(
            f"ENVIRONMENT must be one of {sorted(ENV_FILES)}, got '{environment}'"
        )
    # `_env_file` is a runtime-only pydantic-settings kwarg
    return Settings(_env_file=ENV_FILES[environment])  # type: ignore[call-arg]
