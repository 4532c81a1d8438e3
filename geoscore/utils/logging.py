"""Logging configuration."""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Literal

from geoscore.config import get_settings

security_logger = logging.getLogger("geoscore.security")
audit_logger = logging.getLogger("geoscore.audit")

# Attributes present on every LogRecord; anything else came in through `extra`
_RESERVED_ATTRS = set(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {
    "message",
    "asctime",
}


def setup_logging(
    level: str | None = None,
    format_type: Literal["json", "text"] | None = None,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Output format (json or text)
    """
    settings = get_settings()
    level = level or settings.log_level
    format_type = format_type or settings.log_format

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if format_type == "json":
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


class JsonFormatter(logging.Formatter):
    """JSON log formatter that keeps fields passed via ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        import json

        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_entry[key] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def log_security_event(event: str, **details: Any) -> None:
    """Record a security-relevant event (failed auth, lockout, drift alert)."""
    fields = {k: v for k, v in details.items() if k not in _RESERVED_ATTRS}
    security_logger.warning(
        f"Security event: {event}",
        extra={"event": event, **fields},
    )


def log_audit(action: str, user_id: str | None, **details: Any) -> None:
    """Record a user action for the audit trail."""
    fields = {k: v for k, v in details.items() if k not in _RESERVED_ATTRS}
    audit_logger.info(
        f"Audit: {action}",
        extra={"action": action, "user_id": user_id, **fields},
    )
