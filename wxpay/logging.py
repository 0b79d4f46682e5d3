"""
Centralized logging configuration for wxpay.

Usage:
    from wxpay.logging import get_logger
    logger = get_logger(__name__)

    logger.info("Order queried")
    logger.error("Gateway call failed", exc_info=True)

Library modules only ask for loggers. Applications (or scripts/wxpay_cli.py)
call configure_logging() once at startup.
"""

import logging
import os
import re
import sys
from functools import cache
from typing import Any, Optional, TextIO

# Default format for logs
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FORMAT_SIMPLE = "%(levelname)s - %(name)s - %(message)s"

REDACTED = "[REDACTED]"

# Parameter names whose values never reach the logs
REDACT_KEYS = frozenset(
    {
        "sign",
        "pay_sign",
        "key",
        "api_key",
        "secret",
        "pfx",
        "authorization",
    }
)


def _get_log_level() -> int:
    """Get log level from environment or default to INFO."""
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def configure_logging(stream: Optional[TextIO] = None) -> None:
    """Configure root logger with a console handler (no-op if already configured).

    Args:
        stream: Where to write; defaults to stdout
    """
    root = logging.getLogger()

    if root.handlers:
        return

    root.setLevel(_get_log_level())

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(_get_log_level())

    # Simple format in production, detailed locally
    is_production = os.environ.get("WXPAY_ENV") == "production"
    formatter = logging.Formatter(LOG_FORMAT_SIMPLE if is_production else LOG_FORMAT)
    handler.setFormatter(formatter)

    root.addHandler(handler)

    # Request lines from the transport are logged by wxpay itself
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


@cache
def get_logger(name: str) -> logging.Logger:
    """
    Get or create a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def _escape_log_injection(value: str) -> str:
    """
    Escape characters that could be used for log injection attacks (CWE-117).

    Gateway responses echo caller data (return_msg, attach, ...), so anything
    taken from the wire goes through here before it is logged.
    """
    return (
        value.replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
        .replace("\x00", "")
    )


def sanitize_id_for_logging(id_value: str | None) -> str:
    """
    Sanitize an identifier (order number, prepay id) for logging.

    Truncates to the first 8 chars and escapes injection characters.
    Returns "N/A" for empty values.
    """
    if not id_value:
        return "N/A"
    safe_value = _escape_log_injection(str(id_value))
    return safe_value[:8] if len(safe_value) > 8 else safe_value


def sanitize_string_for_logging(value: str | None, max_length: int = 50) -> str:
    """
    Sanitize a free-form string for logging.

    Args:
        value: String value to sanitize (can be None)
        max_length: Maximum length to keep (default: 50)

    Returns:
        Sanitized string or "N/A" if None
    """
    if not value:
        return "N/A"
    safe_value = _escape_log_injection(str(value))
    if len(safe_value) <= max_length:
        return safe_value
    return safe_value[:max_length] + "..."


def _normalize_key(key: str) -> str:
    return re.sub(r"[-_\s]", "", key.lower())


_NORMALIZED_REDACT_KEYS = {_normalize_key(k) for k in REDACT_KEYS}


def redact_params(params: dict[str, Any]) -> dict[str, Any]:
    """Copy a parameter set with signatures and secrets replaced by [REDACTED]."""
    return {
        k: REDACTED if _normalize_key(k) in _NORMALIZED_REDACT_KEYS else v
        for k, v in params.items()
    }


__all__ = [
    "configure_logging",
    "get_logger",
    "redact_params",
    "sanitize_id_for_logging",
    "sanitize_string_for_logging",
]
