"""
Structured logging for the storefront service.

- One named logger, "storefronts". JSON lines in production, one readable
  line per record elsewhere.
- request_id and tenant_id are bound per request in context variables and
  stamped onto every record by RequestContextFilter.
- Anything passed through `extra=` is rendered too, so call sites can log
  page ids, operations and counters without formatting them into the message.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

LOGGER_NAME = "storefronts"
MAX_FIELD_LENGTH = 500

request_id_ctx_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
tenant_id_ctx_var: ContextVar[Optional[str]] = ContextVar("tenant_id", default=None)

# Attributes every LogRecord has; everything else came in through `extra=`.
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}
_CONTEXT_ATTRS = ("request_id", "tenant_id")


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    rid = request_id_ctx_var.get()
    return rid if rid is not None else default


def get_tenant_id(default: Optional[str] = None) -> Optional[str]:
    """Tenant the edge router resolved for the current request, if any."""
    tid = tenant_id_ctx_var.get()
    return tid if tid is not None else default


def latency_bucket_ms(latency_ms: Optional[float]) -> str:
    if latency_ms is None:
        return "unknown"
    for bound, label in ((10, "<10ms"), (100, "10-100ms"), (500, "100-500ms"), (1000, "500-1000ms")):
        if latency_ms < bound:
            return label
    return ">=1000ms"


def _timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z")


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RESERVED_ATTRS and key not in _CONTEXT_ATTRS and value is not None
    }


class RequestContextFilter(logging.Filter):
    """Stamp request_id and tenant_id from context unless the call set them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        if getattr(record, "tenant_id", None) is None:
            record.tenant_id = get_tenant_id()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": _timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
            "tenant_id": getattr(record, "tenant_id", None),
        }
        payload.update(_extra_fields(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class PrettyFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        parts = [_timestamp(record), record.levelname, f"[{LOGGER_NAME}]"]
        rid = getattr(record, "request_id", None)
        tid = getattr(record, "tenant_id", None)
        if rid:
            parts.append(f"[rid={rid}]")
        if tid:
            parts.append(f"[tenant={tid}]")
        parts.append(record.getMessage())
        parts.extend(f"{key}={value}" for key, value in sorted(_extra_fields(record).items()))
        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(env: str = "development") -> None:
    """Install the stdout handler on the service logger (idempotent)."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if env.lower() == "production" else PrettyFormatter())
    handler.addFilter(RequestContextFilter())

    logger.handlers = [handler]
    logger.propagate = True

    # uvicorn keeps its own error output
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.error").propagate = False


def _truncate(value: Any, limit: int = MAX_FIELD_LENGTH) -> str:
    try:
        text = str(value)
    except Exception:
        return "<unserializable>"
    return text if len(text) <= limit else text[:limit] + "...<truncated>"


def log_event(
    level: str,
    msg: str,
    *,
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    tenant_id: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, object]] = None,
):
    """Log a domain event with ids attached and free-form fields truncated."""
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        configure_logging(os.getenv("ENV", "development"))

    fields: Dict[str, Any] = {
        "request_id": request_id or get_request_id(),
        "tenant_id": tenant_id or get_tenant_id(),
        "user_id": user_id,
        "event_type": event_type,
        "error_code": error_code,
    }
    for key, value in (extra or {}).items():
        fields[key] = _truncate(value)

    getattr(logger, level, logger.info)(msg, extra=fields)
