"""Process settings for the relay runner"""

import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Settings read from the environment and ``.env``"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Host factory, "package.module:callable"
    vincord_host: str = Field(default="", description="Game host factory path")
    vincord_config: str = Field(default="VinCord.json", description="Relay config document name")

    # Overrides DiscordToken from the relay document when set
    discord_bot_token: str = Field(default="", description="Discord bot token")
    discord_guild_id: int | None = Field(default=None, description="Guild for fast command sync")

    health_host: str = Field(default="0.0.0.0", description="Health server bind address")
    health_port: int = Field(default=0, description="Health server port, 0 disables it")

    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
