"""
Application logging and audit trail.
Emits human-readable or JSON records tagged with the request Correlation ID.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from cotamarket.core.config import settings


class JsonFormatter(logging.Formatter):
    """Structured formatter for log aggregation pipelines."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "correlation_id": getattr(record, "correlation_id", None),
            "message": record.getMessage(),
        }

        audit = getattr(record, "audit", None)
        if audit:
            log_data["audit"] = audit

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class CorrelationFilter(logging.Filter):
    """Guarantees every record carries a correlation_id attribute for the formatters."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True


def setup_logging(level: str = "INFO", format_type: str = "text") -> logging.Logger:
    """Configures the application logger. Safe to call more than once."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    if format_type == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | [%(correlation_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    app_logger = logging.getLogger("cotamarket")
    app_logger.setLevel(log_level)

    for handler in app_logger.handlers[:]:
        app_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(formatter)
    handler.addFilter(CorrelationFilter())
    app_logger.addHandler(handler)
    app_logger.propagate = False

    # SQL echo is too noisy outside of debugging sessions
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return app_logger


logger = setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
audit_logger = logging.getLogger("cotamarket.audit")


def get_logger_with_correlation(correlation_id: Optional[str]) -> logging.LoggerAdapter:
    """Returns a logger adapter that stamps every record with the given Correlation ID."""
    return logging.LoggerAdapter(logger, {"correlation_id": correlation_id or "-"})


def audit_log(
    action: str,
    user: str,
    resource: str,
    details: Optional[Dict[str, Any]] = None
) -> None:
    """
    Records a business event on the dedicated audit channel.
    Audit entries are never sampled or filtered by level.
    """
    payload: Dict[str, Any] = {
        "action": action,
        "user": user,
        "resource": resource,
        "details": details or {},
    }
    correlation_id = (details or {}).get("correlation_id", "-")
    audit_logger.info(
        f"AUDIT {action} by {user} on {resource} | {json.dumps(payload['details'], default=str)}",
        extra={"audit": payload, "correlation_id": correlation_id},
    )
