"""
Structured Logging with Correlation IDs

Every log line emitted through get_logger() carries the correlation
context active at the time of the call:
- sync_run_id / sync_type: the reconciler run
- external_id / shipment_number: the Hillebrand record being processed
- workflow_id / activity_name: the Temporal execution, when there is one

Credential-bearing keys in extra_fields are masked before formatting.

Usage:
    from core.observability.logging import get_logger, with_correlation

    logger = get_logger(__name__)

    with with_correlation(sync_run_id="run-001", sync_type="shipments"):
        logger.info("Syncing shipment", extra_fields={"external_id": 4711})
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Dict, Iterator, Optional


REDACTED = "***"

SENSITIVE_KEYS = frozenset({
    "access_token",
    "refresh_token",
    "password",
    "client_secret",
    "authorization",
})


# =============================================================================
# Correlation Context
# =============================================================================

@dataclass(frozen=True)
class CorrelationContext:
    """Immutable set of correlation IDs for the current task."""
    sync_run_id: Optional[str] = None
    sync_type: Optional[str] = None
    external_id: Optional[str] = None
    shipment_number: Optional[str] = None
    workflow_id: Optional[str] = None
    activity_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Set fields only, in declaration order."""
        values = ((f.name, getattr(self, f.name)) for f in fields(self))
        return {name: value for name, value in values if value is not None}

    def merge(self, **kwargs) -> "CorrelationContext":
        """New context with kwargs layered over this one; None never clears a value."""
        data = self.to_dict()
        data.update({k: v for k, v in kwargs.items() if v is not None})
        return CorrelationContext(**data)


_correlation_context: ContextVar[CorrelationContext] = ContextVar(
    "correlation_context",
    default=CorrelationContext(),
)


def get_correlation_context() -> CorrelationContext:
    return _correlation_context.get()


@contextmanager
def with_correlation(**kwargs) -> Iterator[CorrelationContext]:
    """
    Layer correlation IDs over the current context for the duration of the block.

    Usage:
        with with_correlation(sync_run_id="run-001", external_id="4711"):
            logger.info("Processing")
    """
    token = _correlation_context.set(get_correlation_context().merge(**kwargs))
    try:
        yield _correlation_context.get()
    finally:
        _correlation_context.reset(token)


def redact(extra_fields: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of extra_fields with credential values masked."""
    return {
        key: REDACTED if key.lower() in SENSITIVE_KEYS and value else value
        for key, value in extra_fields.items()
    }


# =============================================================================
# Formatters
# =============================================================================

class StructuredFormatter(logging.Formatter):
    """
    One JSON object per line.

    Output format:
    {
        "timestamp": "2025-03-14T09:30:00.000000Z",
        "level": "INFO",
        "logger": "reconciliation.shipments",
        "message": "Synced shipment",
        "sync_run_id": "3f2a9c1b7d4e",
        "sync_type": "shipments",
        "external_id": "4711",
        "shipment_number": "HB-2025-0001"
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **get_correlation_context().to_dict(),
            **redact(getattr(record, "extra_fields", None) or {}),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Single-line text with a short correlation prefix and trailing key=value pairs.

    Output format:
    2025-03-14 09:30:00 [INFO ] reconciliation.shipments [3f2a9c1b7d4e/shipments/ext:4711]: Synced shipment | status=delivered
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_correlation_context()
        prefix = [
            part for part in (
                ctx.sync_run_id[:12] if ctx.sync_run_id else None,
                ctx.sync_type,
                f"ext:{ctx.external_id}" if ctx.external_id else None,
            )
            if part
        ]

        timestamp = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")
        line = f"{timestamp} [{record.levelname:5}] {record.name} [{'/'.join(prefix) or '-'}]: {record.getMessage()}"

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            line += " | " + " ".join(f"{k}={v}" for k, v in redact(extra_fields).items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


# =============================================================================
# Logger with Correlation Support
# =============================================================================

class CorrelatedLogger:
    """
    Thin wrapper over logging.Logger that accepts extra_fields= on every call.

    Correlation IDs are not copied onto the record; the formatters read
    them from the context at format time.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def log(self, level: int, msg: str, *args, extra_fields: Optional[Dict[str, Any]] = None, exc_info=None):
        if not self._logger.isEnabledFor(level):
            return
        if exc_info is True:
            exc_info = sys.exc_info()

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "(unknown file)",
            0,
            msg,
            args,
            exc_info,
        )
        record.extra_fields = extra_fields or {}
        self._logger.handle(record)

    def debug(self, msg: str, *args, **kwargs):
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self.log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs["exc_info"] = True
        self.log(logging.ERROR, msg, *args, **kwargs)

    def setLevel(self, level):
        self._logger.setLevel(level)

    def isEnabledFor(self, level) -> bool:
        return self._logger.isEnabledFor(level)


# =============================================================================
# Configuration
# =============================================================================

APP_LOGGERS = ["activities", "workflows", "api", "connectors", "reconciliation", "storage", "workers"]

_loggers: Dict[str, CorrelatedLogger] = {}
_configured = False
_handler: Optional[logging.Handler] = None


def configure_logging(
    level: int = logging.INFO,
    json_format: bool = False,
    include_temporal: bool = True,
    force: bool = False,
):
    """
    Install one stdout handler on the root logger.

    Args:
        level: Level for the handler and the application loggers
        json_format: StructuredFormatter if True, else HumanReadableFormatter
        include_temporal: Keep temporalio loggers at INFO
        force: Replace an earlier configuration (get_logger configures
            implicitly with the defaults on first use)
    """
    global _configured, _handler

    if _configured and not force:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())

    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)
    root.addHandler(handler)
    root.setLevel(level)
    _handler = handler

    for logger_name in APP_LOGGERS:
        logging.getLogger(logger_name).setLevel(level)

    for noisy in ("aiohttp", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    if include_temporal:
        logging.getLogger("temporalio").setLevel(logging.INFO)

    _configured = True


def get_logger(name: str) -> CorrelatedLogger:
    """Correlated logger for name (typically __name__), configuring logging on first use."""
    if not _configured:
        configure_logging()

    if name not in _loggers:
        _loggers[name] = CorrelatedLogger(logging.getLogger(name))
    return _loggers[name]
