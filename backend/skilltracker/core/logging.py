"""Logging configuration"""

import logging
import sys

from skilltracker.core.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
HANDLER_NAME = "skilltracker"


def configure_logging(level: str | None = None) -> None:
    """Attach a single stdout handler to the root logger.

    Calling it again only updates the level, so reloads do not duplicate output.
    """
    root = logging.getLogger()
    root.setLevel((level or get_settings().log_level).upper())

    if any(h.get_name() == HANDLER_NAME for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
