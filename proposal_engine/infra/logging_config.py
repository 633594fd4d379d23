"""Process-wide logging setup for the API service."""

from __future__ import annotations

import logging

from proposal_engine.config.settings import get_settings

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Set the root level and install one console handler if none exists."""
    level_name = (level or get_settings().LOG_LEVEL or "INFO").upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)

    logging.getLogger(__name__).debug("Logging configured at %s", level_name)
