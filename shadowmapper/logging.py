"""
Structured Logging

Every module logs through a child of the ``shadowmapper`` logger,
obtained with get_logger(). setup_logging() attaches one stdout
handler to that root, as JSON lines in production or plain text
in development. Pipeline counters passed with ``extra=`` are copied
onto the JSON line when they appear in EXTRA_FIELDS.

Usage:
    from shadowmapper.logging import get_logger
    logger = get_logger("extractor")
    logger.info("Extraction complete", extra={"validated": 12, "disqualified": 3})
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Iterable, Optional

from shadowmapper.config import settings

NAMESPACE = "shadowmapper"

EXTRA_FIELDS = (
    # extraction / delta
    "model_count", "sentences", "candidates", "validated", "disqualified",
    "survival_rate", "unindexed", "intent",
    # structure / shape
    "claims", "edges", "shape", "confidence", "stance",
    # http
    "error", "duration_ms", "status_code", "method", "path", "error_type",
)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with whitelisted context fields."""

    def __init__(self, fields: Iterable[str] = EXTRA_FIELDS):
        super().__init__()
        self.fields = tuple(fields)

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in self.fields:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable format for development."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> logging.Logger:
    """
    Configure the package root logger. Call once at app startup.

    Level and format default to SHADOWMAPPER_LOG_LEVEL and
    SHADOWMAPPER_LOG_FORMAT ("json" or "text"). Repeated calls
    replace the handler rather than stacking another.
    """
    level = (level or settings.LOG_LEVEL).upper()
    fmt = fmt or settings.LOG_FORMAT

    root = logging.getLogger(NAMESPACE)
    root.setLevel(getattr(logging, level, logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    root.addHandler(handler)

    # Suppress noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return root


def get_logger(name: str) -> logging.Logger:
    """Named logger under the shadowmapper namespace; qualified names pass through."""
    if name == NAMESPACE or name.startswith(NAMESPACE + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{NAMESPACE}.{name}")
