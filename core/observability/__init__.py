"""
Observability Module for the Logistics Sync Engine

Provides:
- Structured logging with correlation IDs
- Metrics collection (sync runs, record outcomes, token events, durations)
"""

from core.observability.metrics import (
    MetricsCollector,
    get_metrics,
    record_sync_started,
    record_sync_completed,
    record_sync_failed,
    record_record_outcome,
    record_token_event,
)

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    with_correlation,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "get_metrics",
    "record_sync_started",
    "record_sync_completed",
    "record_sync_failed",
    "record_record_outcome",
    "record_token_event",
    # Logging
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
]
