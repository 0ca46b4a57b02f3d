"""Process-wide logging setup shared by stdlib and structlog loggers.

The app factory logs through the standard library with ``extra=`` fields;
adapters and services log through structlog with key/value pairs. Both end
up on one root handler, rendered as text in development and as JSON lines
everywhere else:

    2025-01-15 10:23:45 | WARNING  | dermassist.services.router | Provider failed  provider=ollama
"""

from datetime import datetime, timezone
import json
import logging
import sys
from typing import Any, TextIO

import structlog

# Client libraries that log every backend round-trip at INFO or DEBUG.
THIRD_PARTY_LOGGER_LEVELS: dict[str, str] = {
    "uvicorn": "WARNING",
    "uvicorn.error": "WARNING",
    "uvicorn.access": "WARNING",
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "openai": "WARNING",
    "python_multipart": "WARNING",
}

# Anything a bare LogRecord already carries is not a user-supplied field.
_BUILTIN_ATTRS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))) | {
    "message",
    "asctime",
}
_HIDDEN_ATTRS = frozenset({"color_message"})


def record_fields(record: logging.LogRecord) -> dict[str, Any]:
    """The ``extra`` / structlog key-value fields attached to a record."""
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _BUILTIN_ATTRS and key not in _HIDDEN_ATTRS and value is not None
    }


def _level(value: str | int) -> int:
    return value if isinstance(value, int) else logging.getLevelName(value.upper())


class JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, then fields."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **record_fields(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class DevFormatter(logging.Formatter):
    """Pipe-separated line for terminals, fields appended as ``key=value``."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        parts = [created, record.levelname.ljust(8), record.name, record.getMessage()]
        text = " | ".join(parts)

        fields = record_fields(record)
        if fields:
            text += "  " + " ".join(f"{key}={value}" for key, value in fields.items())

        if record.exc_info:
            trace = self.formatException(record.exc_info).splitlines()
            text += "".join(f"\n  {line}" for line in trace)
        return text


def configure_structlog() -> None:
    """Hand structlog events to the stdlib logger named after the module."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.render_to_log_kwargs,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


def configure_logging(
    level: str | int = "INFO",
    *,
    environment: str = "production",
    stream: TextIO | None = None,
    logger_levels: dict[str, str | int] | None = None,
) -> None:
    """Install the root handler and the structlog bridge.

    Safe to call again (tests do); previous root handlers are replaced.

    Args:
        level: Root level, by name or number.
        environment: ``"development"`` selects DevFormatter, anything else JSON.
        stream: Destination, stdout by default.
        logger_levels: Per-logger overrides applied after the third-party defaults.
    """
    handler = logging.StreamHandler(sys.stdout if stream is None else stream)
    handler.setFormatter(DevFormatter() if environment == "development" else JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(_level(level))
    handler.setLevel(root.level)
    root.addHandler(handler)

    for name, logger_level in {**THIRD_PARTY_LOGGER_LEVELS, **(logger_levels or {})}.items():
        logging.getLogger(name).setLevel(_level(logger_level))

    configure_structlog()


__all__ = [
    "THIRD_PARTY_LOGGER_LEVELS",
    "DevFormatter",
    "JsonFormatter",
    "configure_logging",
    "configure_structlog",
    "record_fields",
]
