"""Application settings via pydantic-settings. Loads from environment and .env file."""

from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings

DEFAULT_REDIRECT_URL = "https://blazium.app"


class Settings(BaseSettings):
    """Blazebot configuration.

    All values can be overridden via environment variables or .env file.
    BOT_TOKEN is required; a missing or blank token fails at startup.
    """

    # Discord
    bot_token: str
    bot_enabled: bool = True
    bot_message_content_intent: bool = True
    bot_shard_count: int | None = None  # None: use the gateway's recommendation
    bot_restart_timeout_seconds: float = 120.0

    # HTTP
    http_host: str = "0.0.0.0"
    http_port: int = 8080
    redirect_url: str = DEFAULT_REDIRECT_URL

    # Environment
    blazebot_env: str = "development"

    # Logging
    blazebot_log_level: str = "INFO"

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore", "frozen": True}

    @field_validator("bot_token")
    @classmethod
    def _require_token(cls, value: str) -> str:
        """Strip surrounding whitespace and reject blank tokens."""
        token = value.strip()
        if not token:
            msg = "BOT_TOKEN must be set to the Discord bot token."
            raise ValueError(msg)
        return token

    @field_validator("bot_shard_count")
    @classmethod
    def _positive_shard_count(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            msg = "BOT_SHARD_COUNT must be at least 1 when set."
            raise ValueError(msg)
        return value
