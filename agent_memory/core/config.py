"""Configuration management with pydantic-settings."""

import os
from functools import lru_cache

from pydantic import BaseModel as PydanticBaseModel
from pydantic import Field
from pydantic_settings import BaseSettings

from .enums import ConflictStrategy, DispatcherType


class DatabaseSettings(PydanticBaseModel):
    """Global store settings (tenant configurations live here, not tenant data)."""

    redis_url: str = Field(default="redis://localhost:6379")


class LLMSettings(PydanticBaseModel):
    """LLM provider settings."""

    provider: str = Field(default="openai")  # openai | openai_compatible | ollama
    model: str = Field(default="gpt-4o-mini")
    api_key: str | None = Field(default=None)  # can use OPENAI_API_KEY env
    base_url: str | None = Field(default=None)
    extraction_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    consolidation_temperature: float = Field(default=0.1, ge=0.0, le=2.0)

    def resolved_api_key(self) -> str | None:
        """Return the configured credential, falling back to ``OPENAI_API_KEY``."""
        return self.api_key or os.environ.get("OPENAI_API_KEY") or None

    def has_credential(self) -> bool:
        """Hosted OpenAI needs a key; self-hosted OpenAI-compatible servers do not."""
        if self.provider == "openai":
            return bool(self.resolved_api_key())
        return True


class ExtractionSettings(PydanticBaseModel):
    """
    Background extraction settings.
    Env vars (with env_nested_delimiter='__'): EXTRACTION__DISPATCHER, EXTRACTION__CONCURRENCY,
    EXTRACTION__QUEUE_SIZE, EXTRACTION__CONFLICT_STRATEGY, EXTRACTION__SESSION_TTL_SECONDS.
    """

    enabled: bool = Field(default=True)
    dispatcher: DispatcherType = Field(default=DispatcherType.LOCAL)
    concurrency: int = Field(default=4, ge=1)
    queue_size: int = Field(default=1000, ge=1)
    conflict_strategy: ConflictStrategy = Field(
        default=ConflictStrategy.FAITHFUL,
        description="faithful = unlocked read-modify-write; locked = per-list lock.",
    )
    session_ttl_seconds: int = Field(default=86400, ge=1)
    shutdown_grace_seconds: float = Field(default=5.0, ge=0.0)


class LoggingSettings(PydanticBaseModel):
    """Structured logging settings."""

    level: str = Field(default="INFO")
    json_output: bool = Field(default=True)


class Settings(BaseSettings):
    """Application settings with nested configuration."""

    app_name: str = Field(default="AgentMemoryService")
    debug: bool = Field(default=False)
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000, ge=1, le=65535)
    cors_origins: list[str] | None = Field(default=None)

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = {
        "env_file": ".env",
        "env_nested_delimiter": "__",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings.

    Only composition roots (the FastAPI lifespan, the Celery task and the CLI
    entry point) should call this; components receive their settings
    explicitly. Call ``get_settings.cache_clear()`` after overriding
    environment variables in tests.
    """
    return Settings()
