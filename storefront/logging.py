"""
Logging for the storefront package.

Usage:
    from storefront.logging import get_logger
    logger = get_logger(__name__)

Only the ``storefront`` logger is configured. When the host application has
already set up the root logger, records simply propagate to its handlers.
"""

import logging
import os
import sys
from functools import cache

PACKAGE_LOGGER = "storefront"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FORMAT_SIMPLE = "%(levelname)s - %(name)s - %(message)s"

# Carts are talked to over Upstash REST and Supabase, both via httpx
_NOISY_LOGGERS = ("httpx", "httpcore")


def _get_log_level() -> int:
    """STOREFRONT_LOG_LEVEL, then LOG_LEVEL, then INFO."""
    level_name = os.environ.get("STOREFRONT_LOG_LEVEL") or os.environ.get("LOG_LEVEL", "INFO")
    return getattr(logging, level_name.upper(), logging.INFO)


def _configure_package_logger() -> None:
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(_get_log_level())

    if package_logger.handlers or logging.getLogger().handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    # Vercel adds its own timestamps
    is_production = os.environ.get("VERCEL") == "1"
    handler.setFormatter(logging.Formatter(LOG_FORMAT_SIMPLE if is_production else LOG_FORMAT))
    package_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


_configure_package_logger()


@cache
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def sanitize_for_logging(value: object, max_length: int = 50) -> str:
    """
    Make a shopper-supplied value safe to put in a log line.

    Control characters are escaped (CWE-117) and long values truncated with
    a trailing "...".
    """
    if value is None or value == "":
        return "N/A"
    text = (
        str(value)
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
        .replace("\x00", "")
    )
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def sanitize_id_for_logging(id_value: str | None) -> str:
    """First 8 characters of a user id; enough to correlate, not to identify."""
    return sanitize_for_logging(id_value, max_length=8).removesuffix("...")


__all__ = [
    "LOG_FORMAT",
    "LOG_FORMAT_SIMPLE",
    "PACKAGE_LOGGER",
    "get_logger",
    "sanitize_for_logging",
    "sanitize_id_for_logging",
]
