from __future__ import annotations

import contextvars
import json
import logging
import os
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TypedDict

REDACTED = "[REDACTED]"

CONTEXT_KEYS = ("request_id", "run_id", "provider_id", "phase", "ticker")

_SECRET_KEYS = frozenset(
    {
        "authorization",
        "cookie",
        "password",
        "token",
        "secret",
        "api_key",
        "gemini_api_key",
        "groq_api_key",
        "github_token",
    }
)

# Attributes every LogRecord has, plus the ones this module sets itself.
_STANDARD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {
    "message",
    "asctime",
    "service",
    "environment",
    "event",
    "error_code",
    "fields",
    *CONTEXT_KEYS,
}


class LogContext(TypedDict, total=False):
    request_id: str
    run_id: str
    provider_id: str
    phase: str
    ticker: str


def _key_name(key: str) -> str:
    return key.strip().lower().replace("-", "_")


@dataclass(frozen=True)
class LoggingSettings:
    service: str = "analyst-panel-core"
    environment: str = "dev"
    level: int = logging.INFO
    output: str = "json"
    secret_keys: frozenset[str] = field(default=_SECRET_KEYS)

    @classmethod
    def from_env(cls) -> LoggingSettings:
        level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), None)
        extra_keys = {
            _key_name(raw) for raw in os.getenv("LOG_REDACT_KEYS", "").split(",")
        }
        return cls(
            service=os.getenv("LOG_SERVICE", cls.service),
            environment=os.getenv("APP_ENV", cls.environment),
            level=level if isinstance(level, int) else logging.INFO,
            output=os.getenv("LOG_FORMAT", cls.output).strip().lower(),
            secret_keys=_SECRET_KEYS | {key for key in extra_keys if key},
        )


_settings = LoggingSettings.from_env()
_configured = False

_context: contextvars.ContextVar[LogContext | None] = contextvars.ContextVar(
    "analyst_panel_log_context", default=None
)


def sanitize_for_logging(value: object, *, key: str | None = None) -> object:
    """Replace values stored under secret-looking keys, at any depth."""
    if key is not None and _key_name(key) in _settings.secret_keys:
        return REDACTED
    if isinstance(value, Mapping):
        return {str(k): sanitize_for_logging(v, key=str(k)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize_for_logging(item) for item in value]
    return value


def get_log_context() -> LogContext:
    return dict(_context.get() or {})


@contextmanager
def log_context(**values: str | None) -> Iterator[None]:
    """Stamp the given keys on every record logged inside the block.

    Blank and ``None`` values leave the outer value in place.
    """
    merged = get_log_context()
    merged.update(
        {key: value.strip() for key, value in values.items() if value and value.strip()}
    )
    token = _context.set(merged)
    try:
        yield
    finally:
        _context.reset(token)


class ContextStampFilter(logging.Filter):
    def __init__(self, settings: LoggingSettings) -> None:
        super().__init__()
        self.settings = settings

    def filter(self, record: logging.LogRecord) -> bool:
        context = get_log_context()
        for key in CONTEXT_KEYS:
            setattr(record, key, context.get(key))
        record.service = self.settings.service
        record.environment = self.settings.environment
        return True


def _record_fields(record: logging.LogRecord) -> dict[str, object]:
    attached = getattr(record, "fields", None)
    if isinstance(attached, Mapping):
        collected = {str(key): value for key, value in attached.items()}
    else:
        collected = {} if attached is None else {"fields": attached}
    collected.update(
        (key, value)
        for key, value in record.__dict__.items()
        if key not in _STANDARD_ATTRS
    )
    return collected


def _tags(record: logging.LogRecord) -> dict[str, str]:
    tags: dict[str, str] = {}
    for key in ("event", "error_code", *CONTEXT_KEYS):
        value = getattr(record, key, None)
        if isinstance(value, str) and value:
            tags[key] = value
    return tags


def _to_json(value: object) -> str:
    return json.dumps(
        sanitize_for_logging(value), ensure_ascii=True, sort_keys=True, default=str
    )


class StructuredFormatter(logging.Formatter):
    """One JSON document per record, or ``key=value`` text when output is "text"."""

    def __init__(self, output: str = "json") -> None:
        super().__init__()
        self.output = output

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        tags = _tags(record)
        fields = _record_fields(record)
        exception = self.formatException(record.exc_info) if record.exc_info else None

        if self.output == "text":
            parts = [timestamp, record.levelname, record.name, record.getMessage()]
            parts.extend(f"{key}={value}" for key, value in tags.items())
            if fields:
                parts.append(f"fields={_to_json(fields)}")
            if exception:
                parts.append(f"exception={exception}")
            return " ".join(parts)

        document: dict[str, object] = {
            "timestamp": timestamp,
            "level": record.levelname,
            "logger": record.name,
            "service": getattr(record, "service", _settings.service),
            "environment": getattr(record, "environment", _settings.environment),
            "message": record.getMessage(),
            **tags,
        }
        if fields:
            document["fields"] = fields
        if exception:
            document["exception"] = exception
        return _to_json(document)


def configure_logging(settings: LoggingSettings | None = None) -> None:
    global _configured, _settings
    if _configured:
        return
    if settings is not None:
        _settings = settings

    root = logging.getLogger()
    root.setLevel(_settings.level)
    stamp = ContextStampFilter(_settings)
    if root.handlers:
        # Someone (uvicorn, pytest) already installed handlers; only stamp them
        for handler in root.handlers:
            handler.addFilter(stamp)
    else:
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(StructuredFormatter(_settings.output))
        handler.addFilter(stamp)
        root.addHandler(handler)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)


def log_event(
    logger: logging.Logger,
    *,
    event: str,
    message: str,
    level: int = logging.INFO,
    error_code: str | None = None,
    fields: Mapping[str, object] | None = None,
) -> None:
    """Log ``message`` tagged with a stable ``event`` name for querying."""
    extra: dict[str, object] = {"event": event}
    if error_code is not None:
        extra["error_code"] = error_code
    if fields is not None:
        extra["fields"] = sanitize_for_logging(fields)
    logger.log(level, message, extra=extra)
