"""Shared test fixtures."""

import pytest

from blazebot.config import Settings


@pytest.fixture
def settings() -> Settings:
    """Test settings with the bot disabled so no Discord connection is attempted."""
    return Settings(
        bot_token="test-token-not-real",
        bot_enabled=False,
        blazebot_env="development",
    )
