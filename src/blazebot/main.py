"""FastAPI application factory."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from blazebot import __version__
from blazebot.api.middleware import install_middleware
from blazebot.api.pages import router as pages_router
from blazebot.config import Settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: launch the Discord bot in the background. Shutdown: close it."""
    settings: Settings = app.state.settings
    app.state.shard_manager = None

    # Start Discord bot if configured
    manager = None
    start_task = None
    from blazebot.discord.bot import is_bot_enabled

    if is_bot_enabled(settings):
        from blazebot.discord.bot import create_shard_manager, start_discord_bot

        manager = create_shard_manager(settings)
        app.state.shard_manager = manager
        start_task = start_discord_bot(manager)
        logger.info("discord_bot_integration_started")
    else:
        logger.info("discord_bot_integration_disabled")

    yield

    # Shutdown Discord bot if running
    if start_task is not None and not start_task.done():
        start_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await start_task
    if manager is not None:
        await manager.shutdown()
        logger.info("discord_bot_integration_stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the Blazebot FastAPI application."""
    settings = settings or Settings()

    logging.basicConfig(
        level=getattr(logging, settings.blazebot_log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Blazebot",
        version=__version__,
        description="Blazium Discord bot with link-preview embeds and health checks",
        docs_url="/docs" if settings.blazebot_env != "production" else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    install_middleware(app)
    app.include_router(pages_router)

    return app
