"""
Logging for CartSync.

Usage:
    from cartsync.logging import cart_context, get_logger
    logger = get_logger(__name__)

    logger.info(f"Reconciled cart ({cart_context(device_id, owner_id)})")

Device ids arrive in the X-Device-Id header and owner ids in webhook bodies,
so every id that reaches a log line goes through cart_context (or
sanitize_id_for_logging) first.
"""

import logging
import os
import sys
from functools import cache

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FORMAT_SIMPLE = "%(levelname)s - %(name)s - %(message)s"

# Clients whose per-request logging drowns out cart events
NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "supabase", "postgrest")

ID_LOG_LENGTH = 8


def _get_log_level() -> int:
    """CARTSYNC_LOG_LEVEL wins over LOG_LEVEL; INFO when neither is set."""
    level_name = os.environ.get("CARTSYNC_LOG_LEVEL") or os.environ.get("LOG_LEVEL", "INFO")
    return getattr(logging, level_name.upper(), logging.INFO)


def configure_logging(force: bool = False) -> None:
    """
    Attach a stdout handler to the root logger.

    Leaves an already configured root alone unless force is set, so the
    server's own logging setup (uvicorn, pytest) is kept.
    """
    root = logging.getLogger()
    if root.handlers and not force:
        return

    level = _get_log_level()
    root.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    # Vercel already timestamps every line
    is_production = os.environ.get("VERCEL") == "1"
    handler.setFormatter(logging.Formatter(LOG_FORMAT_SIMPLE if is_production else LOG_FORMAT))
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


configure_logging()


@cache
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _escape_log_injection(value: str) -> str:
    """Escape characters that could inject fake log entries (CWE-117)."""
    return (
        value.replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
        .replace("\x00", "")
    )


def sanitize_id_for_logging(id_value: str | None) -> str:
    """Escaped, truncated form of a device or owner id; "N/A" when empty."""
    if not id_value:
        return "N/A"
    return _escape_log_injection(str(id_value))[:ID_LOG_LENGTH]


def cart_context(device_id: str | None = None, owner_id: str | None = None) -> str:
    """
    Describe which cart a log line is about, e.g. "device=3f2a9c1b owner=user-123".

    An id that is not given is left out.
    """
    parts = []
    if device_id is not None:
        parts.append(f"device={sanitize_id_for_logging(device_id)}")
    if owner_id is not None:
        parts.append(f"owner={sanitize_id_for_logging(owner_id)}")
    return " ".join(parts) or "cart=N/A"


__all__ = [
    "LOG_FORMAT",
    "LOG_FORMAT_SIMPLE",
    "cart_context",
    "configure_logging",
    "get_logger",
    "sanitize_id_for_logging",
]
