"""Run the web service and Discord bot: ``python -m blazebot``.

uvicorn owns SIGINT/SIGTERM. Either signal ends the application lifespan,
which closes the shard manager before the process exits.
"""

import logging

import uvicorn

from blazebot.config import Settings
from blazebot.main import create_app

logger = logging.getLogger(__name__)


def main() -> None:
    settings = Settings()
    app = create_app(settings)
    logger.info("http_server_starting host=%s port=%d", settings.http_host, settings.http_port)
    uvicorn.run(app, host=settings.http_host, port=settings.http_port)


if __name__ == "__main__":
    main()
