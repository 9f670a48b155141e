"""
Structured logging for the generation service.

JSON lines in production, one readable line per record elsewhere. Every
record carries the request_id bound by RequestIdMiddleware, and log_event
attaches principal/feature context plus free-form extras. Extras whose key
looks like a credential are masked, and long values are cut short so a
provider error body cannot flood the log.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

LOGGER_NAME = "careerhub"
MAX_EXTRA_CHARS = 500

request_id_ctx_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Fields passed via ``extra=`` that the JSON formatter carries through.
_STRUCTURED_FIELDS = (
    "user_id",
    "feature_key",
    "event_type",
    "error_code",
    "status",
    "path",
    "method",
    "latency_bucket",
    "source",
    "attempt",
)

_SECRET_MARKERS = ("api_key", "authorization", "secret", "password", "token")
# Non-secret keys that happen to contain a marker
_NOT_SECRET = {"tokens_used", "total_tokens"}

# (upper bound in ms, label); anything slower is ">=10s"
_LATENCY_BUCKETS = (
    (10, "<10ms"),
    (100, "10-100ms"),
    (500, "100-500ms"),
    (1000, "500-1000ms"),
    (10000, "1-10s"),
)


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    rid = request_id_ctx_var.get()
    return rid if rid is not None else default


def latency_bucket_ms(latency_ms: Optional[float]) -> str:
    if latency_ms is None:
        return "unknown"
    for bound, label in _LATENCY_BUCKETS:
        if latency_ms < bound:
            return label
    return ">=10s"


def _utc_timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z")


class RequestIdFilter(logging.Filter):
    """Stamp the current request_id on records that do not carry one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": _utc_timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        for name in _STRUCTURED_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class PrettyFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        tags = ""
        for label, attr in (("rid", "request_id"), ("user", "user_id"), ("feature", "feature_key")):
            value = getattr(record, attr, None)
            if value:
                tags += f" [{label}={value}]"
        line = f"{_utc_timestamp(record)} {record.levelname} [{record.name}]{tags} {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(env: str = "development", level: Optional[str] = None) -> None:
    """Install a single stdout handler on the ``careerhub`` logger."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel((level or os.getenv("LOG_LEVEL") or "INFO").upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if env.lower() == "production" else PrettyFormatter())
    handler.addFilter(RequestIdFilter())

    logger.handlers = [handler]
    logger.propagate = True

    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.error").propagate = False
    # httpx logs every provider request at INFO, URL included
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _is_secret(key: str) -> bool:
    lowered = key.lower()
    return lowered not in _NOT_SECRET and any(marker in lowered for marker in _SECRET_MARKERS)


def _safe_truncate(value, limit: int = MAX_EXTRA_CHARS):
    try:
        text = str(value)
    except Exception:
        return "<unserializable>"
    if len(text) <= limit:
        return text
    return text[:limit] + "...<truncated>"


def _clean_extra(extra: Dict[str, object]) -> Dict[str, object]:
    cleaned: Dict[str, object] = {}
    for key, value in extra.items():
        if value is None:
            continue
        cleaned[key] = "***" if _is_secret(key) else _safe_truncate(value)
    return cleaned


def log_event(
    level: str,
    msg: str,
    *,
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    feature_key: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, object]] = None,
):
    """Log ``msg`` on the careerhub logger with request and principal context."""
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        configure_logging(os.getenv("ENV", "development"))

    payload = {
        "request_id": request_id or get_request_id(),
        "user_id": user_id,
        "feature_key": feature_key,
        "event_type": event_type,
        "error_code": error_code,
    }
    if extra:
        payload.update(_clean_extra(extra))

    getattr(logger, level, logger.info)(msg, extra=payload)
