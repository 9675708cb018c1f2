"""Static routes: root redirect and liveness probes."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from blazebot.config import Settings

router = APIRouter(tags=["pages"])


@router.get("/", include_in_schema=False)
async def root(request: Request) -> RedirectResponse:
    """Permanent redirect to the marketing site."""
    settings: Settings = request.app.state.settings
    return RedirectResponse(settings.redirect_url, status_code=301)


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/health/bot")
async def bot_health(request: Request) -> dict[str, str]:
    """Report the shard manager's state, including a degraded restart."""
    manager = getattr(request.app.state, "shard_manager", None)
    if manager is None:
        return {"state": "disabled"}
    return {"state": str(manager.state)}
