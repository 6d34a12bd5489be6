"""Structured logging for ratekit: JSON lines, identifier redaction, request ids."""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from ratekit.core.config import LogSettings, settings

REDACTED = "[REDACTED]"

# Raw caller identifiers and credentials never reach the log output;
# log key_hash (see hash_identifier) instead.
SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "identifier",
        "client_id",
        "x-client-id",
        "client_ip",
        "rate_limit_key",
        "api_key",
        "x-api-key",
        "authorization",
        "token",
        "secret",
        "password",
        "cookie",
        "set-cookie",
    }
)

# Everything a bare LogRecord carries is metadata, not an ``extra`` field.
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", logging.NOTSET, "", 0, "", None, None).__dict__
) | {"message", "asctime", "stack", "taskName"}

_request_id: ContextVar[str | None] = ContextVar("ratekit_request_id", default=None)


def set_request_id(request_id: str | None) -> None:
    _request_id.set(request_id)


def get_request_id() -> str | None:
    return _request_id.get()


def clear_request_id() -> None:
    _request_id.set(None)


def hash_identifier(value: str) -> str:
    """Return a 16-char SHA-256 prefix, stable across processes."""
    return hashlib.sha256(value.encode()).hexdigest()[:16]


def _normalize_keys(keys: Iterable[str] | None) -> frozenset[str]:
    return frozenset(k.lower() for k in (keys or SENSITIVE_KEYS_DEFAULT))


def redact(value: Any, sensitive_keys: frozenset[str]) -> Any:
    """Mask sensitive mapping entries, descending into nested containers."""
    if isinstance(value, Mapping):
        return {
            key: REDACTED if str(key).lower() in sensitive_keys else redact(item, sensitive_keys)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(redact(item, sensitive_keys) for item in value)
    return value


def extra_fields(record: logging.LogRecord, sensitive_keys: frozenset[str]) -> dict[str, Any]:
    """Collect the ``extra=`` fields of a record, already redacted."""
    fields = {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }
    return redact(fields, sensitive_keys)


class RequestIdFilter(logging.Filter):
    """Stamp the contextual request id onto records that lack one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Rewrite sensitive extras in place so no formatter can print them."""

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.sensitive_keys = _normalize_keys(sensitive_keys)

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in extra_fields(record, self.sensitive_keys).items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message and extras."""

    def __init__(
        self,
        *,
        sensitive_keys: Iterable[str] | None = None,
        ensure_ascii: bool = True,
    ) -> None:
        super().__init__()
        self.sensitive_keys = _normalize_keys(sensitive_keys)
        self.ensure_ascii = ensure_ascii

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id
        payload.update(extra_fields(record, self.sensitive_keys))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


def _build_handler(cfg: LogSettings) -> logging.Handler:
    if cfg.output != "file":
        return logging.StreamHandler(sys.stdout)

    path = Path(cfg.file_path or "logs/app.log")
    path.parent.mkdir(parents=True, exist_ok=True)
    if cfg.max_bytes:
        return RotatingFileHandler(
            path, maxBytes=cfg.max_bytes, backupCount=cfg.backup_count, encoding="utf-8"
        )
    return logging.FileHandler(path, encoding="utf-8")


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install a single redacting handler on the root logger.

    ``APP_DEBUG`` forces DEBUG regardless of ``LOG_LEVEL``.
    """
    cfg = log_settings or settings.log
    level = logging.DEBUG if settings.app.debug else getattr(logging, cfg.level.upper(), logging.INFO)

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    if cfg.format == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in ("uvicorn", "uvicorn.access"):
        logging.getLogger(name).propagate = False
