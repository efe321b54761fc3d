"""Logging setup."""
from __future__ import annotations

import logging

from .config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger once from LOG_LEVEL (or an explicit level)."""
    value = (level or get_settings().log_level or "INFO").upper()
    numeric = logging.getLevelName(value)
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    logging.getLogger("profilepage").setLevel(numeric)
