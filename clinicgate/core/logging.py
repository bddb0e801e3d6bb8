"""
Structured logging for entitlement decisions.

Every record carries the request_id and, when the request names one, the
tenant_id, both bound per request through context variables. Production
emits one JSON object per line; development emits a single readable line.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, Optional

request_id_ctx_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
tenant_id_ctx_var: ContextVar[Optional[str]] = ContextVar("tenant_id", default=None)

LOGGER_NAME = "clinicgate"
TRUNCATE_AT = 500

# Extra fields surfaced in JSON output when present on the record
DECISION_FIELDS = ("tenant_id", "status", "reason", "resource", "event_type", "error_code")


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    """Fetch the current request_id from context (if any)."""
    rid = request_id_ctx_var.get()
    return rid if rid is not None else default


def get_tenant_id() -> Optional[str]:
    return tenant_id_ctx_var.get()


def _utc_timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z")


def latency_bucket_ms(latency_ms: Optional[float]) -> str:
    if latency_ms is None:
        return "unknown"
    for bound, label in ((10, "<10ms"), (100, "10-100ms"), (500, "100-500ms"), (1000, "500-1000ms")):
        if latency_ms < bound:
            return label
    return ">=1000ms"


class RequestIdFilter(logging.Filter):
    """Fill request_id and tenant_id from context when the caller did not."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        if getattr(record, "tenant_id", None) is None:
            record.tenant_id = get_tenant_id()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": _utc_timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        payload.update(
            (field, getattr(record, field))
            for field in DECISION_FIELDS
            if getattr(record, field, None) is not None
        )
        return json.dumps(payload, default=str)


class PrettyFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        context = "".join(
            f" [{label}={value}]"
            for label, value in (
                ("rid", getattr(record, "request_id", None)),
                ("tenant", getattr(record, "tenant_id", None)),
                ("reason", getattr(record, "reason", None)),
            )
            if value
        )
        return f"{_utc_timestamp(record)} {record.levelname} [{LOGGER_NAME}]{context} {record.getMessage()}"


def configure_logging(env: str = "development") -> None:
    """JSON lines in production, pretty lines elsewhere, on the clinicgate logger."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if env.lower() == "production" else PrettyFormatter())
    handler.addFilter(RequestIdFilter())

    logger.handlers = [handler]
    logger.propagate = True


def _safe_truncate(value, limit: int = TRUNCATE_AT) -> str:
    text = repr(value) if not isinstance(value, str) else value
    if len(text) <= limit:
        return text
    return text[:limit] + "...<truncated>"


def log_event(
    level: str,
    msg: str,
    *,
    request_id: Optional[str] = None,
    tenant_id: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, object]] = None,
):
    """Structured decision log with request/tenant correlation and truncated extras."""

    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        # Tests import services without going through main
        configure_logging(os.getenv("ENV", "development"))

    payload = {
        "request_id": request_id or get_request_id(),
        "tenant_id": tenant_id or get_tenant_id(),
    }
    if event_type:
        payload["event_type"] = event_type
    if error_code:
        payload["error_code"] = error_code
    for key, value in (extra or {}).items():
        payload[key] = _safe_truncate(value)

    getattr(logger, level, logger.info)(msg, extra=payload)
