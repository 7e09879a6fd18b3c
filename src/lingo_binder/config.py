"""Application settings."""

from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class TargetLanguage(str, Enum):
    """Languages offered by the reader."""

    SPANISH = "Spanish"
    FRENCH = "French"
    GERMAN = "German"
    CHINESE = "Chinese (Simplified)"
    JAPANESE = "Japanese"
    KOREAN = "Korean"
    ITALIAN = "Italian"
    PORTUGUESE = "Portuguese"
    RUSSIAN = "Russian"
    HINDI = "Hindi"


class ProviderConfig(BaseSettings):
    """Translation backend selection and credentials."""

    model_config = SettingsConfigDict(env_prefix="LINGO_PROVIDER_", extra="ignore")

    kind: Literal["gemini", "openai"] = "gemini"
    model: str | None = None  # Provider default when unset
    api_key: SecretStr | None = None  # Falls back to the SDK's own env var
    base_url: str = "https://api.openai.com/v1"
    temperature: float = 0.3
    timeout: float = 60.0


class TranslationSettings(BaseSettings):
    """Batching and retry tuning."""

    model_config = SettingsConfigDict(env_prefix="LINGO_TRANSLATION_", extra="ignore")

    batch_size: int = Field(default=10, ge=1)
    max_retries: int = Field(default=3, ge=0)
    initial_backoff: float = Field(default=2.0, ge=0)
    backoff_factor: float = Field(default=1.5, ge=1)
    max_backoff: float = Field(default=30.0, ge=0)
    batch_pause: float = Field(default=0.5, ge=0)


class AppSettings(BaseSettings):
    """Library location and reader behavior."""

    model_config = SettingsConfigDict(env_prefix="LINGO_", extra="ignore")

    library_path: Path = Path.home() / ".lingo_binder" / "library.db"
    progress_debounce: float = Field(default=1.0, ge=0)
    target_language: TargetLanguage = TargetLanguage.CHINESE
