from __future__ import annotations

import logging
import re
from logging.config import dictConfig
from typing import Any, Iterable, Sequence

from settings import get_settings

_DEFAULT_EXTRA_KEYS = (
    "station_id",
    "alert_sk",
    "alert_name",
    "level",
    "matched",
    "status",
    "message_id",
    "error",
    "alert_count",
    "enabled_count",
    "sent",
    "failed",
    "skipped",
    "audit_failures",
    "audit_pk",
    "audit_sk",
)

_SENSITIVE_KEYWORDS = (
    "token",
    "secret",
    "password",
    "apikey",
    "auth",
    "authorization",
)
_TOKEN_LIKE = re.compile(r"^[A-Za-z0-9_-]{21,}$")
_BOT_PATH = re.compile(r"/bot[^/\s]+/")
_REDACTED = "[REDACTED]"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

# Loggers that echo request URLs, which carry the bot token.
_QUIET_LOGGERS = ("httpx", "httpcore")

_configured = False


def redact_value(key: str, value: Any) -> Any:
    """Return ``value`` with secrets masked based on its key and shape."""
    lowered = key.lower()
    if any(keyword in lowered for keyword in _SENSITIVE_KEYWORDS):
        return _REDACTED
    if isinstance(value, dict):
        return {k: redact_value(str(k), v) for k, v in value.items()}
    if isinstance(value, str) and _TOKEN_LIKE.match(value):
        return _REDACTED
    return value


class RedactingFilter(logging.Filter):
    """Masks credential-looking ``extra`` attributes and bot URLs before formatting."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in list(vars(record).items()):
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            setattr(record, key, redact_value(key, value))

        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True
        if _BOT_PATH.search(message):
            record.msg = redact_message(message)
            record.args = None
        return True


def redact_message(message: str) -> str:
    return _BOT_PATH.sub(f"/bot{_REDACTED}/", message)


class ContextualFormatter(logging.Formatter):

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
        extra_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self._extra_keys: Sequence[str] = tuple(extra_keys or _DEFAULT_EXTRA_KEYS)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context_parts: list[str] = []
        for key in self._extra_keys:
            if not hasattr(record, key):
                continue
            value = getattr(record, key, None)
            if value is None:
                continue
            context_parts.append(f"{key}={value}")
        if context_parts:
            return f"{message} | {' '.join(context_parts)}"
        return message


def configure_logging(level: str | int | None = None) -> None:
    """Configure application-wide logging with contextual, redacted output."""
    global _configured
    if _configured:
        return

    settings = get_settings()
    log_level = level if level is not None else settings.log_level

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "redact": {"()": "logging_config.RedactingFilter"},
            },
            "formatters": {
                "contextual": {
                    "()": "logging_config.ContextualFormatter",
                    "fmt": "%(asctime)sZ | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                    "style": "%",
                    "extra_keys": list(_DEFAULT_EXTRA_KEYS),
                }
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "level": log_level,
                    "formatter": "contextual",
                    "filters": ["redact"],
                }
            },
            "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
            "root": {"handlers": ["default"], "level": log_level},
        }
    )

    _configured = True
