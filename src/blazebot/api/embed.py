"""Link-preview card served to chat crawlers.

See https://ogp.me for the Open Graph properties.
"""

from __future__ import annotations

import pathlib

from fastapi.templating import Jinja2Templates
from pydantic import BaseModel

TEMPLATES_DIR = pathlib.Path(__file__).resolve().parent.parent / "templates"

# Starlette enables autoescaping for .html templates.
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

# Substring of the User-Agent sent by Discord's link unfurler (compared lowercased).
CRAWLER_MARKER = "discordbot"

EMBED_CACHE_CONTROL = "max-age=3600"


class EmbedCard(BaseModel):
    """Open Graph metadata for a link preview."""

    title: str
    description: str
    image_url: str
    url: str
    site_name: str
    og_type: str = "website"
    twitter_card: str = "summary_large_image"


BLAZIUM_CARD = EmbedCard(
    title="Blazium Engine",
    description="Blazium Engine forked from Godot.",
    image_url="https://blazium.app/static/assets/logo.png",
    url="https://blazium.app",
    site_name="Blazium Engine",
)


def render_embed_html(card: EmbedCard) -> str:
    """Render a minimal HTML document carrying the card's meta tags."""
    return templates.get_template("embed.html").render(card=card)


def is_link_crawler(user_agent: str | None) -> bool:
    """True when the User-Agent belongs to the link-preview crawler (any case)."""
    return bool(user_agent) and CRAWLER_MARKER in user_agent.lower()
