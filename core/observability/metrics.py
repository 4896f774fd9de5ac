"""
Metrics Collection for the Logistics Sync Engine

Collects and exposes metrics for:
- Sync runs per reconciler (started, completed, failed)
- Record outcomes per reconciler (created, updated, linked, error)
- Token lifecycle events (cache hits, refreshes, password grants)
- Run durations (average, p95)

Metrics are process-local and in-memory only; each instance keeps its own.
"""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Any, Dict, List, Optional


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class SyncRunMetrics:
    """Metrics for reconciler runs."""
    started: int = 0
    completed: int = 0
    failed: int = 0
    in_progress: int = 0

    by_type: Dict[str, Dict[str, int]] = field(default_factory=lambda: defaultdict(lambda: {"started": 0, "completed": 0, "failed": 0}))
    last_completed_at: Dict[str, datetime] = field(default_factory=dict)


@dataclass
class RecordMetrics:
    """Per-record outcome counts, keyed by sync type then action."""
    by_type: Dict[str, Dict[str, int]] = field(default_factory=lambda: defaultdict(lambda: defaultdict(int)))


@dataclass
class TimingMetrics:
    """Run duration samples."""
    max_samples: int = 1000
    by_stage: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    def add_sample(self, duration_ms: float, stage: str):
        samples = self.by_stage[stage]
        samples.append(duration_ms)
        if len(samples) > self.max_samples:
            self.by_stage[stage] = samples[-self.max_samples:]

    def get_average(self, stage: str) -> float:
        samples = self.by_stage.get(stage, [])
        return statistics.mean(samples) if samples else 0.0

    def get_p95(self, stage: str) -> float:
        """Get 95th percentile duration."""
        samples = self.by_stage.get(stage, [])
        if not samples:
            return 0.0
        sorted_samples = sorted(samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]


# =============================================================================
# Metrics Collector (Singleton)
# =============================================================================

class MetricsCollector:
    """
    Thread-safe metrics collector for the sync engine.

    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_sync_started("shipments")
        metrics.record_record_outcome("shipments", "created")
    """

    _instance: Optional["MetricsCollector"] = None
    _lock = Lock()

    def __init__(self):
        self.runs = SyncRunMetrics()
        self.records = RecordMetrics()
        self.timings = TimingMetrics()
        self.token_events: Dict[str, int] = defaultdict(int)
        self._lock = Lock()

    @classmethod
    def instance(cls) -> "MetricsCollector":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    # =========================================================================
    # Sync Runs
    # =========================================================================

    def record_sync_started(self, sync_type: str):
        with self._lock:
            self.runs.started += 1
            self.runs.in_progress += 1
            self.runs.by_type[sync_type]["started"] += 1

    def record_sync_completed(self, sync_type: str, duration_ms: float = None):
        with self._lock:
            self.runs.completed += 1
            self.runs.in_progress = max(0, self.runs.in_progress - 1)
            self.runs.by_type[sync_type]["completed"] += 1
            self.runs.last_completed_at[sync_type] = datetime.utcnow()

            if duration_ms:
                self.timings.add_sample(duration_ms, f"sync.{sync_type}")

    def record_sync_failed(self, sync_type: str):
        with self._lock:
            self.runs.failed += 1
            self.runs.in_progress = max(0, self.runs.in_progress - 1)
            self.runs.by_type[sync_type]["failed"] += 1

    # =========================================================================
    # Records and Tokens
    # =========================================================================

    def record_record_outcome(self, sync_type: str, action: str, count: int = 1):
        """Record a per-record outcome (created, updated, linked, error)."""
        with self._lock:
            self.records.by_type[sync_type][action] += count

    def record_token_event(self, kind: str):
        """Record a token lifecycle event (cache_hit, refresh, password_grant, refresh_failed)."""
        with self._lock:
            self.token_events[kind] += 1

    def get_timing_stats(self, stage: str) -> Dict[str, float]:
        """Get timing statistics for a stage."""
        with self._lock:
            return {
                "average_ms": self.timings.get_average(stage),
                "p95_ms": self.timings.get_p95(stage),
                "sample_count": len(self.timings.by_stage.get(stage, [])),
            }

    # =========================================================================
    # Summary
    # =========================================================================

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            return {
                "runs": {
                    "started": self.runs.started,
                    "completed": self.runs.completed,
                    "failed": self.runs.failed,
                    "in_progress": self.runs.in_progress,
                    "by_type": {k: dict(v) for k, v in self.runs.by_type.items()},
                    "last_completed_at": {k: v.isoformat() for k, v in self.runs.last_completed_at.items()},
                },
                "records": {k: dict(v) for k, v in self.records.by_type.items()},
                "tokens": dict(self.token_events),
                "timings": {
                    stage: {
                        "average_ms": self.timings.get_average(stage),
                        "p95_ms": self.timings.get_p95(stage),
                    }
                    for stage in self.timings.by_stage.keys()
                },
            }


# =============================================================================
# Module-level convenience functions
# =============================================================================

def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return MetricsCollector.instance()


def record_sync_started(sync_type: str):
    get_metrics().record_sync_started(sync_type)


def record_sync_completed(sync_type: str, duration_ms: float = None):
    get_metrics().record_sync_completed(sync_type, duration_ms)


def record_sync_failed(sync_type: str):
    get_metrics().record_sync_failed(sync_type)


def record_record_outcome(sync_type: str, action: str, count: int = 1):
    get_metrics().record_record_outcome(sync_type, action, count)


def record_token_event(kind: str):
    get_metrics().record_token_event(kind)
