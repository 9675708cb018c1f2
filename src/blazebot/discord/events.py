"""Inbound bot events.

The gateway client translates raw Discord callbacks into one of these
variants before handing them to the dispatcher. Events are transient:
they live for a single dispatch call and are never stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import discord


@dataclass(frozen=True)
class MessageReceived:
    """A chat message visible to the bot."""

    author_id: int
    channel_id: int
    content: str

    @classmethod
    def from_message(cls, message: discord.Message) -> MessageReceived:
        return cls(
            author_id=message.author.id,
            channel_id=message.channel.id,
            content=message.content,
        )


@dataclass(frozen=True)
class ShardConnected:
    """A shard finished connecting to the gateway."""

    shard_id: int


BotEvent = MessageReceived | ShardConnected
