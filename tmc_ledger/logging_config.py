"""
Logging setup for the service.

Every module logs through its own `logging.getLogger(__name__)` logger.
This module installs a single stream handler on the package logger and the
request logger so the level is driven by settings.LOG_LEVEL.

Called once from the application lifespan; calling it again is harmless.
"""

import logging

from tmc_ledger.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str | None = None) -> None:
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    for name in ("tmc_ledger", "tmc.request"):
        logger = logging.getLogger(name)
        logger.setLevel((level or settings.LOG_LEVEL).upper())
        logger.addHandler(handler)
        logger.propagate = False

    _configured = True
