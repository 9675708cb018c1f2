"""Discord bot wiring for Blazebot.

Runs alongside FastAPI using the same event loop. Builds the shard
manager, registers the command dispatcher, and launches the connection
in a background task so the HTTP server never waits on Discord.

A failed start is logged and the bot stays down; the web service keeps
serving regardless.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from blazebot.discord.client import build_intents
from blazebot.discord.dispatcher import CommandDispatcher
from blazebot.discord.manager import ShardManager, ShardManagerError

if TYPE_CHECKING:
    from blazebot.config import Settings

logger = logging.getLogger(__name__)


def is_bot_enabled(settings: Settings) -> bool:
    """Check whether the Discord bot should be started."""
    return bool(settings.bot_enabled and settings.bot_token)


def create_shard_manager(settings: Settings) -> ShardManager:
    """Build a manager with the dispatcher and intents registered, not yet started."""
    manager = ShardManager(settings)
    dispatcher = CommandDispatcher(manager)
    manager.add_handler(dispatcher.dispatch)
    manager.register_intent(build_intents(message_content=settings.bot_message_content_intent))
    return manager


def start_discord_bot(manager: ShardManager) -> asyncio.Task[None]:
    """Start the manager as a background task in the current event loop.

    Returns the task so the caller can cancel a start that is still in
    flight during shutdown. The task never raises.
    """

    async def _run_bot() -> None:
        logger.info("shard_manager_starting")
        try:
            await manager.start()
        except asyncio.CancelledError:
            logger.info("discord_bot_cancelled")
        except ShardManagerError as exc:
            logger.error("shard_manager_start_failed err=%s", exc)
        except Exception:  # Last-resort handler: bot must never take the web service down
            logger.exception("discord_bot_error")
        else:
            logger.info("discord_bot_running")

    return asyncio.create_task(_run_bot(), name="discord-bot")
