from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Application configuration loaded from environment or .env."""

    app_name: str = Field(default="localesync")
    app_env: str = Field(default="dev", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")

    baseline_locale: str = Field(default="en", alias="BASELINE_LOCALE")
    translation_service_name: str = Field(
        default="openrouter", alias="TRANSLATION_SERVICE_NAME"
    )
    openrouter_api_key: Optional[SecretStr] = Field(default=None, alias="OPENROUTER_API_KEY")
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1", alias="OPENROUTER_BASE_URL"
    )
    openrouter_referer: Optional[str] = Field(default=None, alias="OPENROUTER_REFERER")
    openrouter_title: Optional[str] = Field(default="localesync", alias="OPENROUTER_TITLE")

    translation_models: list[str] = Field(
        default_factory=lambda: [
            "anthropic/claude-3.5-sonnet",
            "openai/gpt-4o-mini",
            "google/gemini-pro-1.5",
        ],
        alias="TRANSLATION_MODELS",
    )
    translation_single_timeout: float = Field(default=30.0, alias="TRANSLATION_SINGLE_TIMEOUT")
    translation_batch_timeout: float = Field(default=60.0, alias="TRANSLATION_BATCH_TIMEOUT")
    translation_single_max_tokens: int = Field(
        default=200, alias="TRANSLATION_SINGLE_MAX_TOKENS"
    )
    translation_batch_max_tokens: int = Field(
        default=4000, alias="TRANSLATION_BATCH_MAX_TOKENS"
    )
    translation_temperature: float = Field(default=0.1, alias="TRANSLATION_TEMPERATURE")
    translation_success_delay: float = Field(default=3.0, alias="TRANSLATION_SUCCESS_DELAY")
    translation_failure_delay: float = Field(default=2.0, alias="TRANSLATION_FAILURE_DELAY")

    language_names: dict[str, str] = Field(
        default_factory=lambda: {
            "en": "English",
            "ru": "Russian",
            "es": "Spanish",
            "de": "German",
            "fr": "French",
            "zh": "Chinese",
        },
        alias="LANGUAGE_NAMES",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
    )


@lru_cache
def get_settings() -> AppSettings:
    """Return cached application settings."""
    return AppSettings()  # type: ignore[call-arg]
