"""Shard manager: sole owner of the live Discord client handle.

Each generation of the bot is a fresh ``ShardClient``. Restarting builds a
replacement, waits for all of its shards to become ready, swaps it in and
only then closes the previous generation, so the bot never goes dark. If
the replacement cannot be brought up the previous handle stays live and
the manager reports ``DEGRADED`` until the next successful restart.

All handle swaps happen under one lock, so concurrent event delivery can
never observe a half-replaced client.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from enum import StrEnum
from typing import TYPE_CHECKING

import discord

from blazebot.discord.client import EventHandler, ShardClient

if TYPE_CHECKING:
    from blazebot.config import Settings

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., ShardClient]


class ManagerState(StrEnum):
    """Lifecycle of the managed handle."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    RESTARTING = "restarting"
    DEGRADED = "degraded"  # last restart failed; previous handle still serving
    FAILED = "failed"  # no usable handle


class ShardManagerError(Exception):
    """Base class for shard manager failures."""


class ManagerNotRunning(ShardManagerError):
    """Raised when an operation needs a live handle and there is none."""


class RestartInProgress(ShardManagerError):
    """Raised when a start or restart is already running."""


class ManagerStartError(ShardManagerError):
    """Raised when a client generation cannot log in or become ready."""


class ShardManager:
    """Owns the bot's gateway connection across restarts.

    Usage:
        manager = ShardManager(settings)
        manager.add_handler(dispatcher.dispatch)
        manager.register_intent(build_intents())
        await manager.start()
        ...
        await manager.restart()
        ...
        await manager.shutdown()
    """

    def __init__(
        self,
        settings: Settings,
        client_factory: ClientFactory = ShardClient,
    ) -> None:
        self.settings = settings
        self._client_factory = client_factory
        self._handlers: list[EventHandler] = []
        self._intents = discord.Intents.none()
        self._client: ShardClient | None = None
        self._connect_task: asyncio.Task[None] | None = None
        self._cleanup_tasks: set[asyncio.Task[None]] = set()
        self._lock = asyncio.Lock()
        self._state = ManagerState.STOPPED

    @property
    def state(self) -> ManagerState:
        return self._state

    @property
    def client(self) -> ShardClient | None:
        """The live handle, or None before start, after shutdown, or once FAILED."""
        return self._client

    @property
    def user_id(self) -> int | None:
        """The bot's own Discord user ID on the live handle."""
        client = self._client
        if client is None or client.user is None:
            return None
        return client.user.id

    def add_handler(self, handler: EventHandler) -> None:
        """Register an event callback. Applies to every client built afterwards."""
        self._handlers.append(handler)

    def register_intent(self, intents: discord.Intents) -> None:
        """Add gateway intents. Applies to every client built afterwards."""
        self._intents = self._intents | intents

    async def start(self) -> None:
        """Log in and connect the first client generation.

        Raises ManagerStartError if the token is rejected or the shards
        never become ready. The manager is then FAILED and holds no handle.
        """
        if self._lock.locked():
            raise RestartInProgress("shard manager is already starting or restarting")
        async with self._lock:
            if self._client is not None:
                raise ShardManagerError("shard manager is already started")
            self._state = ManagerState.STARTING
            client = self._build_client()
            try:
                task = await self._bring_up(client, timeout=None)
            except ManagerStartError:
                self._state = ManagerState.FAILED
                raise
            except asyncio.CancelledError:
                self._state = ManagerState.STOPPED
                raise
            self._client = client
            self._connect_task = task
            self._state = ManagerState.RUNNING
        logger.info("shard_manager_started shards=%s", client.shard_count)

    async def restart(self) -> None:
        """Replace the live client with a freshly connected one.

        The shard count is re-read from the gateway (unless pinned in
        settings), so a restart also rescales. On failure the previous
        client keeps serving and the manager is DEGRADED.
        """
        if self._lock.locked():
            raise RestartInProgress("shard manager is already starting or restarting")
        async with self._lock:
            previous = self._client
            previous_task = self._connect_task
            if previous is None:
                raise ManagerNotRunning("shard manager has not been started")

            self._state = ManagerState.RESTARTING
            logger.info("shard_manager_restarting")
            replacement = self._build_client()
            try:
                task = await self._bring_up(
                    replacement, timeout=self.settings.bot_restart_timeout_seconds
                )
            except (ManagerStartError, asyncio.CancelledError):
                self._state = ManagerState.DEGRADED
                raise

            self._client = replacement
            self._connect_task = task
            self._state = ManagerState.RUNNING
            await self._stop(previous, previous_task)
        logger.info("shard_manager_restarted shards=%s", replacement.shard_count)

    async def shutdown(self) -> None:
        """Close the live client. Safe to call when nothing is running."""
        async with self._lock:
            client = self._client
            task = self._connect_task
            self._client = None
            self._connect_task = None
            self._state = ManagerState.STOPPED
            if client is None:
                return
            await self._stop(client, task)
        logger.info("shard_manager_stopped")

    async def send_message(self, channel_id: int, content: str) -> None:
        """Send a text message to a channel through the live handle."""
        client = self._client
        if client is None:
            raise ManagerNotRunning("shard manager has not been started")
        await client.get_partial_messageable(channel_id).send(content)

    def _build_client(self) -> ShardClient:
        return self._client_factory(
            handlers=tuple(self._handlers),
            intents=self._intents,
            shard_count=self.settings.bot_shard_count,
        )

    async def _bring_up(
        self,
        client: ShardClient,
        timeout: float | None,
    ) -> asyncio.Task[None]:
        """Log in, connect every shard, and wait until all of them are ready.

        Returns the background task driving the connection. On any failure
        the client is closed before the error propagates.
        """
        try:
            await client.login(self.settings.bot_token)
        except (discord.LoginFailure, discord.HTTPException) as exc:
            await client.close()
            raise ManagerStartError(f"login failed: {exc}") from exc
        except asyncio.CancelledError:
            await client.close()
            raise

        connect_task = asyncio.create_task(client.connect(reconnect=True), name="discord-shards")
        connect_task.add_done_callback(self._on_connect_done)
        ready_task = asyncio.create_task(client.wait_until_ready(), name="discord-shards-ready")
        try:
            done, _ = await asyncio.wait(
                {connect_task, ready_task},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            ready_task.cancel()
            await self._stop(client, connect_task)
            raise

        if ready_task in done:
            return connect_task

        ready_task.cancel()
        if connect_task in done:
            exc = None if connect_task.cancelled() else connect_task.exception()
            await client.close()
            raise ManagerStartError(f"gateway connection ended before ready: {exc}") from exc

        await self._stop(client, connect_task)
        raise ManagerStartError(f"shards not ready after {timeout:g}s")

    async def _stop(self, client: ShardClient, task: asyncio.Task[None] | None) -> None:
        await client.close()
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _on_connect_done(self, task: asyncio.Task[None]) -> None:
        """Surface connection tasks that die on their own (auth revoked, intents denied)."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            logger.info("shard_connection_closed")
            return
        logger.error("shard_connection_failed err=%s", exc, exc_info=exc)
        if task is not self._connect_task:
            return
        # The live handle is dead: drop it so FAILED always means "no handle".
        client = self._client
        self._client = None
        self._connect_task = None
        self._state = ManagerState.FAILED
        if client is not None:
            cleanup = asyncio.get_running_loop().create_task(
                client.close(), name="discord-shards-cleanup"
            )
            self._cleanup_tasks.add(cleanup)
            cleanup.add_done_callback(self._cleanup_tasks.discard)
