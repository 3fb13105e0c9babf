"""
Interaction engine configuration.

This module provides configuration settings for the interaction engine
loaded from environment variables.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Find .env file in project root
_env_file = Path(__file__).parent.parent.parent.parent.parent / ".env"


class InteractionSettings(BaseSettings):
    """
    Interaction engine settings from environment variables.

    All settings are prefixed with INKWELL_ in environment.
    """

    model_config = SettingsConfigDict(
        env_prefix="INKWELL_",
        env_file=str(_env_file) if _env_file.exists() else None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server-wide secret keying anonymous token digests
    anonymous_secret: str = "change-me-in-production"
    anonymous_token_max_length: int = Field(default=128, ge=1, le=1024)

    # Stats cache TTL in seconds (0 disables caching)
    stats_cache_ttl: int = Field(default=300, ge=0)

    # Lifetime of the "sync needed" flag set at login
    sync_flag_ttl: int = Field(default=3600, gt=0)

    # Feature flags
    coauthors_enabled: bool = True

    # Optimistic concurrency retries for rating rollups
    rating_max_retries: int = Field(default=5, ge=1, le=50)


# Global instance
interaction_settings = InteractionSettings()
