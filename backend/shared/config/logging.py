"""
Structured logging.

Loggers accept keyword context (``logger.info("Order confirmed",
order_id=12)``). Production writes one JSON object per line; development
writes a colored single line with the context appended. Records carry the
request id set by the correlation middleware.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import settings


def _context(record: logging.LogRecord) -> dict[str, Any] | None:
    return getattr(record, "extra_data", None)


def _request_id(record: logging.LogRecord) -> str | None:
    request_id = getattr(record, "request_id", None)
    return request_id if request_id and request_id != "-" else None


class StructuredFormatter(logging.Formatter):
    """One JSON document per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if request_id := _request_id(record):
            entry["request_id"] = request_id
        if context := _context(record):
            entry["data"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if settings.debug:
            entry["source"] = f"{record.filename}:{record.lineno}"
        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, self.RESET)
        parts = [
            f"{color}{datetime.now():%H:%M:%S} {record.levelname:<8}{self.RESET}",
        ]
        if request_id := _request_id(record):
            parts.append(f"[{request_id[:8]}]")
        parts.append(f"{record.name}: {record.getMessage()}")
        line = " ".join(parts)

        if context := _context(record):
            line += " (" + ", ".join(f"{k}={v}" for k, v in context.items()) + ")"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredLogger(logging.Logger):
    """
    Logger whose level methods take keyword context.

    exc_info and extra keep their stdlib meaning; every other keyword lands
    in ``record.extra_data``. Do not pass msg, level or args as keywords.
    """

    def _log_with_data(
        self,
        level: int,
        msg: str,
        args: tuple,
        exc_info: Any = None,
        extra: dict | None = None,
        **context: Any,
    ) -> None:
        if not self.isEnabledFor(level):
            return
        extra = dict(extra or {})
        extra["extra_data"] = context or None
        super()._log(level, msg, args, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.DEBUG, msg, args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.INFO, msg, args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.WARNING, msg, args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.ERROR, msg, args, **kwargs)

    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.CRITICAL, msg, args, **kwargs)


logging.setLoggerClass(StructuredLogger)


def setup_logging() -> None:
    """Install the stdout handler on the root logger. Call once at startup."""
    # Deferred: correlation imports FastAPI, which settings users need not load
    from shared.infrastructure.correlation import CorrelationIdFilter

    level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(
        StructuredFormatter() if settings.environment == "production" else DevelopmentFormatter()
    )

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for noisy in ("uvicorn.access", "httpx", "httpcore", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    return logging.getLogger(name)  # type: ignore


def mask_user_id(user_id: int | str | None) -> str:
    """First two characters of the id, then ***."""
    if user_id is None:
        return "<no-user>"
    return f"{str(user_id)[:2]}***"


pos_api_logger = get_logger("pos_api")
orders_logger = get_logger("pos_api.orders")
tabs_logger = get_logger("pos_api.tabs")
kitchen_logger = get_logger("pos_api.kitchen")
inventory_logger = get_logger("pos_api.inventory")

security_audit_logger = get_logger("security.audit")


def audit_authorization_event(
    action: str,
    user_id: int | str | None = None,
    role: str | None = None,
    allowed: bool = True,
    reason: str | None = None,
    **context: Any,
) -> None:
    """
    Record an authorization decision for a sensitive operation
    (VOID_ORDER). Denials are logged at WARNING.
    """
    security_audit_logger._log_with_data(
        logging.INFO if allowed else logging.WARNING,
        f"AUTHZ_AUDIT: {action}",
        (),
        action=action,
        user_id=mask_user_id(user_id),
        role=role,
        allowed=allowed,
        reason=reason,
        **context,
    )
