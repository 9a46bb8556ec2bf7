"""Logging setup for TriggerBrew.

Two formats are available:

- **dev** (default): ``12:00:01 INFO [triggerbrew.x] message``.
- **json**: one JSON object per line, with any ``extra=`` keys attached by
  the caller (``agent_id``, ``trigger_type`` ...) surfaced as fields.

Call :func:`setup_logging` once at the entry point.  Modules log through
``logging.getLogger(__name__)``.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

DEV_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DEV_DATEFMT = "%H:%M:%S"

# Third-party loggers that are too chatty at INFO.
_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "aiosqlite")

# Attributes every LogRecord has; anything else came in through ``extra=``.
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}


class JSONFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS and not key.startswith("_"):
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.environ.get("LOG_LEVEL", "INFO")
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        print(
            f"WARNING: Invalid LOG_LEVEL '{level}', falling back to INFO",
            file=sys.stderr,
        )
        return logging.INFO
    return resolved


def setup_logging(
    fmt: str | None = None,
    level: int | str | None = None,
    log_file: Path | None = None,
) -> None:
    """Configure the root logger.

    Parameters
    ----------
    fmt:
        ``"json"`` or ``"dev"``.  Defaults to ``LOG_FORMAT`` or ``"dev"``.
    level:
        Level name or number.  Defaults to ``LOG_LEVEL`` or ``INFO``; an
        unknown name warns on stderr and uses ``INFO``.
    log_file:
        When given, records also go to a rotating file (10 MB x 3).
    """
    fmt = fmt or os.environ.get("LOG_FORMAT", "dev")
    resolved = _resolve_level(level)

    if fmt == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(DEV_FORMAT, datefmt=DEV_DATEFMT)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            log_file, maxBytes=10 * 1024 * 1024, backupCount=3, encoding="utf-8",
        ))

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(resolved)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
