from __future__ import annotations

import logging

from .settings import Settings

PRODUCTION_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
DEVELOPMENT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"


# PUBLIC_INTERFACE
def configure_logging(settings: Settings) -> None:
    """
    Install a single stream handler on the root logger.

    Production logs at the configured level with a compact format. Development
    uses a verbose format with source locations.
    """
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format=PRODUCTION_FORMAT if settings.is_production else DEVELOPMENT_FORMAT,
        force=True,
    )
    # Request lines are written by the application's own access logger.
    logging.getLogger("uvicorn.access").disabled = True
