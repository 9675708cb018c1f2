"""Tests for the shard manager and its client generations.

Gateway clients are replaced by an in-memory fake: no real Discord
connection required.
"""

from __future__ import annotations

import asyncio
import contextlib
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from blazebot.config import Settings
from blazebot.discord.manager import (
    ManagerNotRunning,
    ManagerStartError,
    ManagerState,
    RestartInProgress,
    ShardManager,
    ShardManagerError,
)


class FakeClient:
    """Stand-in for ShardClient with controllable login/connect behaviour."""

    def __init__(
        self,
        *,
        handlers,
        intents: discord.Intents,
        shard_count: int | None = None,
        user_id: int = 1000,
        login_error: Exception | None = None,
        connect_error: Exception | None = None,
        becomes_ready: bool = True,
        crash_error: Exception | None = None,
    ) -> None:
        self.handlers = handlers
        self.intents = intents
        self.shard_count = shard_count or 1
        self.user = MagicMock(id=user_id)
        self.login_error = login_error
        self.connect_error = connect_error
        self.becomes_ready = becomes_ready
        self.crash_error = crash_error
        self._crash = asyncio.Event()
        self.token: str | None = None
        self.closed = False
        self.channel = MagicMock()
        self.channel.send = AsyncMock()
        self._ready = asyncio.Event()
        self._closed = asyncio.Event()

    async def login(self, token: str) -> None:
        self.token = token
        if self.login_error is not None:
            raise self.login_error

    async def connect(self, *, reconnect: bool = True) -> None:
        await asyncio.sleep(0)
        if self.connect_error is not None:
            raise self.connect_error
        if self.becomes_ready:
            self._ready.set()
        if self.crash_error is not None:
            await self._crash.wait()
            raise self.crash_error
        await self._closed.wait()

    def crash(self) -> None:
        """Kill the live connection with ``crash_error``."""
        self._crash.set()

    async def wait_until_ready(self) -> None:
        await self._ready.wait()

    async def close(self) -> None:
        self.closed = True
        self._closed.set()

    def get_partial_messageable(self, channel_id: int) -> MagicMock:
        self.channel.id = channel_id
        return self.channel


class FakeFactory:
    """Builds one FakeClient per generation, configured from a queue of overrides."""

    def __init__(self, *generations: dict) -> None:
        self._generations = list(generations)
        self.clients: list[FakeClient] = []

    def __call__(self, **kwargs) -> FakeClient:
        overrides = self._generations.pop(0) if self._generations else {}
        client = FakeClient(**kwargs, **overrides)
        self.clients.append(client)
        return client


@pytest.fixture
def settings() -> Settings:
    return Settings(bot_token="test-token-not-real", bot_restart_timeout_seconds=0.2)


def make_manager(settings: Settings, *generations: dict) -> tuple[ShardManager, FakeFactory]:
    factory = FakeFactory(*generations)
    return ShardManager(settings, client_factory=factory), factory


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestRegistration:
    async def test_handlers_and_intents_passed_to_client(self, settings: Settings) -> None:
        manager, factory = make_manager(settings)
        handler = AsyncMock()
        manager.add_handler(handler)
        manager.register_intent(discord.Intents(guild_messages=True))
        manager.register_intent(discord.Intents(message_content=True))

        await manager.start()

        client = factory.clients[0]
        assert client.handlers == (handler,)
        assert client.intents.guild_messages is True
        assert client.intents.message_content is True
        assert client.intents.members is False
        await manager.shutdown()

    async def test_pinned_shard_count(self) -> None:
        settings = Settings(bot_token="tok", bot_shard_count=3)
        manager, factory = make_manager(settings)
        await manager.start()
        assert factory.clients[0].shard_count == 3
        await manager.shutdown()


# ---------------------------------------------------------------------------
# Start / shutdown
# ---------------------------------------------------------------------------


class TestStart:
    async def test_initial_state(self, settings: Settings) -> None:
        manager, _ = make_manager(settings)
        assert manager.state == ManagerState.STOPPED
        assert manager.client is None
        assert manager.user_id is None

    async def test_start_runs(self, settings: Settings) -> None:
        manager, factory = make_manager(settings)
        await manager.start()
        assert manager.state == ManagerState.RUNNING
        assert manager.client is factory.clients[0]
        assert factory.clients[0].token == "test-token-not-real"
        assert manager.user_id == 1000
        await manager.shutdown()

    async def test_login_failure(self, settings: Settings) -> None:
        manager, factory = make_manager(
            settings, {"login_error": discord.LoginFailure("Improper token has been passed.")}
        )
        with pytest.raises(ManagerStartError, match="login failed"):
            await manager.start()
        assert manager.state == ManagerState.FAILED
        assert manager.client is None
        assert factory.clients[0].closed is True

    async def test_connection_dies_before_ready(self, settings: Settings) -> None:
        manager, factory = make_manager(
            settings, {"connect_error": RuntimeError("privileged intents required")}
        )
        with pytest.raises(ManagerStartError, match="privileged intents required"):
            await manager.start()
        assert manager.state == ManagerState.FAILED
        assert factory.clients[0].closed is True

    async def test_double_start_rejected(self, settings: Settings) -> None:
        manager, _ = make_manager(settings)
        await manager.start()
        with pytest.raises(ShardManagerError):
            await manager.start()
        await manager.shutdown()

    async def test_shutdown_closes_client(self, settings: Settings) -> None:
        manager, factory = make_manager(settings)
        await manager.start()
        await manager.shutdown()
        assert factory.clients[0].closed is True
        assert manager.state == ManagerState.STOPPED
        assert manager.client is None

    async def test_shutdown_without_start(self, settings: Settings) -> None:
        manager, _ = make_manager(settings)
        await manager.shutdown()
        assert manager.state == ManagerState.STOPPED


# ---------------------------------------------------------------------------
# Restart
# ---------------------------------------------------------------------------


class TestRestart:
    async def test_restart_swaps_handle(self, settings: Settings) -> None:
        manager, factory = make_manager(settings, {}, {"user_id": 1000})
        await manager.start()
        first = manager.client

        await manager.restart()

        second = manager.client
        assert second is factory.clients[1]
        assert second is not first
        assert first.closed is True
        assert second.closed is False
        assert manager.state == ManagerState.RUNNING
        await manager.shutdown()

    async def test_restart_without_start(self, settings: Settings) -> None:
        manager, factory = make_manager(settings)
        with pytest.raises(ManagerNotRunning):
            await manager.restart()
        assert factory.clients == []

    async def test_failed_restart_keeps_previous_handle(self, settings: Settings) -> None:
        manager, factory = make_manager(
            settings, {}, {"login_error": discord.LoginFailure("bad token")}
        )
        await manager.start()
        first = manager.client

        with pytest.raises(ManagerStartError):
            await manager.restart()

        assert manager.client is first
        assert first.closed is False
        assert factory.clients[1].closed is True
        assert manager.state == ManagerState.DEGRADED
        await manager.shutdown()

    async def test_restart_times_out(self, settings: Settings) -> None:
        manager, factory = make_manager(settings, {}, {"becomes_ready": False})
        await manager.start()
        first = manager.client

        with pytest.raises(ManagerStartError, match="not ready"):
            await manager.restart()

        assert manager.client is first
        assert factory.clients[1].closed is True
        assert manager.state == ManagerState.DEGRADED
        await manager.shutdown()

    async def test_degraded_manager_recovers(self, settings: Settings) -> None:
        manager, factory = make_manager(settings, {}, {"becomes_ready": False}, {})
        await manager.start()
        with pytest.raises(ManagerStartError):
            await manager.restart()
        assert manager.state == ManagerState.DEGRADED

        await manager.restart()

        assert manager.state == ManagerState.RUNNING
        assert manager.client is factory.clients[2]
        assert factory.clients[0].closed is True
        await manager.shutdown()

    async def test_concurrent_restart_rejected(self, settings: Settings) -> None:
        manager, _ = make_manager(settings, {}, {"becomes_ready": False})
        await manager.start()

        slow = asyncio.create_task(manager.restart())
        await asyncio.sleep(0)
        assert manager.state == ManagerState.RESTARTING
        with pytest.raises(RestartInProgress):
            await manager.restart()

        with pytest.raises(ManagerStartError):
            await slow
        await manager.shutdown()


# ---------------------------------------------------------------------------
# Messaging
# ---------------------------------------------------------------------------


class TestSendMessage:
    async def test_send_uses_live_handle(self, settings: Settings) -> None:
        manager, factory = make_manager(settings)
        await manager.start()
        await manager.send_message(555, "Pong!")
        factory.clients[0].channel.send.assert_awaited_once_with("Pong!")
        assert factory.clients[0].channel.id == 555
        await manager.shutdown()

    async def test_send_after_restart_uses_replacement(self, settings: Settings) -> None:
        manager, factory = make_manager(settings)
        await manager.start()
        await manager.restart()
        await manager.send_message(555, "[SUCCESS] Manager successfully restarted.")
        factory.clients[0].channel.send.assert_not_awaited()
        factory.clients[1].channel.send.assert_awaited_once()
        await manager.shutdown()

    async def test_send_without_handle(self, settings: Settings) -> None:
        manager, _ = make_manager(settings)
        with pytest.raises(ManagerNotRunning):
            await manager.send_message(555, "Pong!")


# ---------------------------------------------------------------------------
# Live connection failure
# ---------------------------------------------------------------------------


class TestLiveConnectionFailure:
    async def test_dead_connection_drops_handle(self, settings: Settings) -> None:
        manager, factory = make_manager(
            settings, {"crash_error": RuntimeError("4014 disallowed intents")}
        )
        await manager.start()
        assert manager.state == ManagerState.RUNNING
        live_task = manager._connect_task

        factory.clients[0].crash()
        with contextlib.suppress(RuntimeError):
            await live_task
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert manager.state == ManagerState.FAILED
        assert manager.client is None
        assert manager.user_id is None
        assert factory.clients[0].closed is True
        with pytest.raises(ManagerNotRunning):
            await manager.send_message(555, "Pong!")
        with pytest.raises(ManagerNotRunning):
            await manager.restart()

    async def test_failed_manager_can_start_again(self, settings: Settings) -> None:
        manager, factory = make_manager(
            settings, {"crash_error": RuntimeError("connection reset")}, {}
        )
        await manager.start()
        live_task = manager._connect_task
        factory.clients[0].crash()
        with contextlib.suppress(RuntimeError):
            await live_task
        await asyncio.sleep(0)

        await manager.start()

        assert manager.state == ManagerState.RUNNING
        assert manager.client is factory.clients[1]
        await manager.shutdown()
