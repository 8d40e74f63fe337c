"""Centralized logging helpers.

Provides a single place to configure the root logger and a handful of
helpers used for structured DEBUG traces (``extra_context``), timing
(``Timer``) and URL redaction (``safe_url``) across the registry client,
resolver and CLI.
"""
from __future__ import annotations

import logging
import os
import time
import urllib.parse
from typing import Any, Dict, Optional

from constants import Constants

_SENSITIVE_KEYS = ("token", "key", "secret", "password", "auth")


def configure_logging(log_file: Optional[str] = None) -> None:
    """Configure the root logger once.

    The level is read from ``GEMLOCK_LOG_LEVEL`` (default INFO). Calling this
    more than once replaces the previously installed handler instead of
    stacking duplicates.

    Args:
        log_file: Optional path; when given, records go to this file instead of stderr.
    """
    level_name = os.environ.get(Constants.LOG_LEVEL_ENV, "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_gemlock_handler", False):
            root.removeHandler(handler)

    handler: logging.Handler
    if log_file:
        handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
    handler._gemlock_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records from ``logger`` would be emitted."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build the ``extra`` mapping for a structured log record.

    None values are dropped so formatters never see empty keys.
    """
    return {k: v for k, v in fields.items() if v is not None}


def redact(value: str) -> str:
    """Mask all but the first few characters of a sensitive value."""
    if not value:
        return value
    if len(value) <= 4:
        return "****"
    return value[:4] + "****"


def safe_url(url: str) -> str:
    """Return ``url`` with credentials and sensitive query values masked."""
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return url
    netloc = parts.netloc
    if "@" in netloc:
        netloc = "****@" + netloc.split("@", 1)[1]
    query = parts.query
    if query:
        pairs = urllib.parse.parse_qsl(query, keep_blank_values=True)
        masked = [
            (k, redact(v) if any(s in k.lower() for s in _SENSITIVE_KEYS) else v)
            for k, v in pairs
        ]
        query = urllib.parse.urlencode(masked)
    return urllib.parse.urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


class Timer:
    """Context manager measuring wall-clock duration in milliseconds."""

    def __init__(self) -> None:
        self._start: Optional[float] = None
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> float:
        """Elapsed milliseconds; measured up to now while still running."""
        if self._start is None:
            return 0.0
        end = self._end if self._end is not None else time.perf_counter()
        return round((end - self._start) * 1000.0, 2)
