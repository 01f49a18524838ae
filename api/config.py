"""Application configuration using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from tracker.engines.base import BROWSER_USER_AGENT
from tracker.storage import DEFAULT_MAX_RESULTS


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = Field(default=8000, validation_alias=AliasChoices("PORT", "API_PORT"))
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Engine credentials (request bodies may override per call)
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "OPEN_AI_KEY", "OPEN_API_KEY"),
    )
    perplexity_api_key: str | None = None
    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_GEMINI_API_KEY", "GEMINI_API_KEY"),
    )

    # Engines
    default_enabled_engines: list[str] = Field(
        default_factory=lambda: ["perplexity", "google", "bing"]
    )
    rankings_enabled_engines: list[str] = Field(default_factory=lambda: ["google", "chatgpt"])
    engine_timeout_seconds: float = 30.0
    engine_hard_timeout_seconds: float | None = None
    engine_user_agent: str = BROWSER_USER_AGENT

    # Insights
    insights_model: str = "gpt-4o"
    insights_timeout_seconds: float = 60.0

    # Result history
    data_dir: Path = Path("data")
    results_filename: str = "brand-tracking-results.json"
    results_max_history: int = DEFAULT_MAX_RESULTS

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.env == "production"

    @property
    def results_file(self) -> Path:
        """Path of the result history file."""
        return self.data_dir / self.results_filename

    @property
    def insights_enabled(self) -> bool:
        """Check if insights can be generated (has an OpenAI key)."""
        return bool(self.openai_api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
