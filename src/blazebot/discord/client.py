"""Auto-sharded gateway client that forwards Discord callbacks as BotEvents."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence

import discord

from blazebot.discord.events import BotEvent, MessageReceived, ShardConnected

logger = logging.getLogger(__name__)

EventHandler = Callable[[BotEvent], Awaitable[None]]


def build_intents(*, message_content: bool = True) -> discord.Intents:
    """Guild message events only, optionally with message bodies attached.

    Message content is a privileged intent: without it Discord delivers
    guild messages with an empty ``content`` and literal commands never match.
    """
    intents = discord.Intents.none()
    intents.guild_messages = True
    intents.message_content = message_content
    return intents


class ShardClient(discord.AutoShardedClient):
    """One generation of the bot's gateway connection.

    Every shard's events are translated to the closed BotEvent set and
    handed to each registered handler in order. A failing handler is
    logged and does not prevent the rest from running.
    """

    def __init__(
        self,
        *,
        handlers: Sequence[EventHandler],
        intents: discord.Intents,
        shard_count: int | None = None,
    ) -> None:
        super().__init__(intents=intents, shard_count=shard_count)
        self._handlers: tuple[EventHandler, ...] = tuple(handlers)

    async def on_message(self, message: discord.Message) -> None:
        await self._emit(MessageReceived.from_message(message))

    async def on_shard_connect(self, shard_id: int) -> None:
        await self._emit(ShardConnected(shard_id=shard_id))

    async def _emit(self, event: BotEvent) -> None:
        for handler in self._handlers:
            try:
                await handler(event)
            except Exception:  # Last-resort handler: one bad handler must not stall the shard
                logger.exception("bot_event_handler_error event=%s", type(event).__name__)
