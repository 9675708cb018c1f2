"""Command dispatcher: literal chat commands and connection logging.

Commands are matched on the whole message text after trimming surrounding
whitespace. Matching is case-sensitive: ``ping`` answers, ``PING`` does not.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord

from blazebot.discord.events import BotEvent, MessageReceived, ShardConnected
from blazebot.discord.manager import ShardManagerError

if TYPE_CHECKING:
    from blazebot.discord.manager import ShardManager

logger = logging.getLogger(__name__)

# Static replies: exact message text → reply text.
SIMPLE_REPLIES: dict[str, str] = {
    "ping": "Pong!",
    "pong": "Ping!",
}

RESTART_COMMAND = "restart"
RESTART_ACK = "[INFO] Restarting shard manager..."
RESTART_SUCCESS = "[SUCCESS] Manager successfully restarted."
RESTART_FAILURE = "[ERROR] Manager restart failed: {reason}"


class CommandDispatcher:
    """Single entry point for every inbound bot event."""

    def __init__(self, manager: ShardManager) -> None:
        self.manager = manager

    async def dispatch(self, event: BotEvent) -> None:
        if isinstance(event, ShardConnected):
            logger.info("shard_connected shard_id=%d", event.shard_id)
        elif isinstance(event, MessageReceived):
            await self._handle_message(event)

    async def _handle_message(self, event: MessageReceived) -> None:
        # Ignore the bot's own messages to avoid reply loops.
        if event.author_id == self.manager.user_id:
            return

        text = event.content.strip()
        reply = SIMPLE_REPLIES.get(text)
        if reply is not None:
            await self._reply(event.channel_id, reply)
        elif text == RESTART_COMMAND:
            await self._handle_restart(event)

    async def _handle_restart(self, event: MessageReceived) -> None:
        """Restart the shard manager and report the outcome to the channel."""
        await self._reply(event.channel_id, RESTART_ACK)
        logger.info(
            "restart_requested author_id=%s channel_id=%s", event.author_id, event.channel_id
        )
        try:
            await self.manager.restart()
        except ShardManagerError as exc:
            logger.error("shard_manager_restart_failed err=%s state=%s", exc, self.manager.state)
            await self._reply(event.channel_id, RESTART_FAILURE.format(reason=exc))
            return
        logger.info("shard_manager_restart_succeeded")
        await self._reply(event.channel_id, RESTART_SUCCESS)

    async def _reply(self, channel_id: int, content: str) -> None:
        try:
            await self.manager.send_message(channel_id, content)
        except (discord.Forbidden, discord.HTTPException, ShardManagerError) as exc:
            # Missing permissions or no live handle: non-fatal
            logger.warning("reply_failed channel_id=%s err=%s", channel_id, exc)
