"""Twitch bot configuration"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# === Path Configuration ===
TWITCH_DIR = Path(__file__).parent.parent
COMPONENTS_DIR = TWITCH_DIR / "components"

BOT_SCOPES = [
    "user:bot",  # Bot identifier
    "user:read:chat",  # Read chat messages
    "user:write:chat",  # Send chat messages
]

BROADCASTER_SCOPES = [
    "channel:bot",  # Allow bot to speak in the channel
    "channel:read:redemptions",  # Channel points EventSub
    "channel:manage:redemptions",  # Fulfil / refund redemptions
]


class TwitchBotSettings(BaseSettings):
    """Twitch bot settings"""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Twitch OAuth
    client_id: str = Field(..., description="Twitch OAuth Client ID")
    client_secret: str = Field(..., description="Twitch OAuth Client Secret")

    # Bot Configuration
    bot_id: str = Field(..., description="Bot User ID")
    owner_id: str = Field(..., description="Owner User ID")

    # Database
    database_url: str = Field(..., description="PostgreSQL database URL")
    database_ssl: str = Field(default="require", description="asyncpg ssl mode, empty to disable")

    # EventSub
    conduit_id: str = Field(default="", description="Twitch EventSub Conduit ID")

    # Emote providers (editor account tokens)
    seventv_token: str = Field(default="", description="7TV API token")
    bttv_token: str = Field(default="", description="BetterTTV dashboard token")

    # Emote lifecycle
    operation_timeout: float = Field(default=5.0, description="Timeout for store/provider calls")

    # Environment
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL starts with postgresql://"""
        if not v.startswith(("postgresql://", "postgres://")):
            raise ValueError("DATABASE_URL must start with 'postgresql://'")
        return v

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
def get_settings() -> TwitchBotSettings:
    """Get cached settings instance"""
    return TwitchBotSettings()  # type: ignore[call-arg]
