"""
Logging Configuration — Post-aware log output.

Every record may carry post context through ``extra``:

    logger.info("Post saved", extra={"post_id": post.id, "slug": post.slug})

Both formatters surface those fields, so a save can be followed from the
first upload to the final row write in either output.

## Environment Variables

- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_FORMAT: json, text (default: text)

## Usage

    from quillpost.logging_config import setup_logging

    setup_logging()  # once, from the CLI or server entry point
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict

# Record attributes treated as post context, in output order
CONTEXT_FIELDS = ("post_id", "slug", "media_kind", "storage_path")

# Chatty third-party loggers held at WARNING
QUIET_LOGGERS = ("httpx", "httpcore", "PIL", "werkzeug")


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """The post context fields set on ``record``, skipping unset and None."""
    context = {}
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            context[name] = value
    return context


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    {"ts": "...", "level": "...", "logger": "...", "message": "...", "post_id": ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **record_context(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    """
    Terminal output, with post context appended when present.

    12:34:56 INFO    [service        ] Saved post 42 (post_id=42 slug=hello-world)
    """

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def _level(self, name: str) -> str:
        if not sys.stderr.isatty():
            return f"{name:7}"
        return f"{self.LEVEL_COLORS.get(name, '')}{name:7}{self.RESET}"

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        source = record.name.rsplit(".", 1)[-1][:15]

        line = record.getMessage()
        context = record_context(record)
        if context:
            line += " (" + " ".join(f"{k}={v}" for k, v in context.items()) + ")"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return f"{stamp} {self._level(record.levelname)} [{source:15}] {line}"


def setup_logging(
    level: str | None = None,
    format_type: str | None = None,
) -> None:
    """
    Install one stderr handler on the root logger.

    Args:
        level: DEBUG, INFO, WARNING or ERROR; falls back to LOG_LEVEL, then
               INFO. Unknown names also mean INFO.
        format_type: ``json`` or ``text``; falls back to LOG_FORMAT, then text.
    """
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    output = (format_type or os.environ.get("LOG_FORMAT", "text")).lower()
    numeric_level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter() if output == "json" else HumanFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(f"Logging configured: level={level_name}, format={output}")
