"""HTTP middleware: permissive CORS and the link-preview crawler short-circuit.

Registration order matters: Starlette runs the most recently added
middleware first, so ``install_middleware`` adds the crawler layer before
the CORS layer. That way the crawler response also carries CORS headers.

An exception escaping a route becomes a 500 in Starlette's
ServerErrorMiddleware, which sits outside this chain, so that response
has no CORS headers. Routes must return their errors as responses
(or raise HTTPException) to keep CORS headers on every response.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import HTMLResponse

from blazebot.api.embed import (
    BLAZIUM_CARD,
    EMBED_CACHE_CONTROL,
    is_link_crawler,
    render_embed_html,
)

logger = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS, PUT, DELETE",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

_EMBED_HTML = render_embed_html(BLAZIUM_CARD)


async def cors_middleware(request: Request, call_next: CallNext) -> Response:
    """Add CORS headers to every response and answer preflight requests directly."""
    if request.method == "OPTIONS":
        response = Response(status_code=200)
    else:
        response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response


async def embed_middleware(request: Request, call_next: CallNext) -> Response:
    """Serve the Open Graph card to link-preview crawlers on any path."""
    if is_link_crawler(request.headers.get("user-agent")):
        logger.debug("embed_served path=%s", request.url.path)
        return HTMLResponse(_EMBED_HTML, headers={"Cache-Control": EMBED_CACHE_CONTROL})
    return await call_next(request)


def install_middleware(app: FastAPI) -> None:
    """Register the middleware chain: CORS (outer) → crawler → routes."""
    app.middleware("http")(embed_middleware)
    app.middleware("http")(cors_middleware)
