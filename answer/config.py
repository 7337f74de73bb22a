"""Transcoder configuration via environment variables."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed transcoder settings."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="", case_sensitive=False)

    summary_token_budget: int = Field(500, alias="SUMMARY_TOKEN_BUDGET", gt=0)
    summary_model: str = Field("gpt-4-0613", alias="SUMMARY_MODEL")
    log_level: str = Field("WARNING", alias="LOG_LEVEL")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
