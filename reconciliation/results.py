"""Sync run summaries returned by the reconcilers."""

import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from core.models.logistics import SyncAction
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import (
    record_record_outcome,
    record_sync_completed,
    record_sync_failed,
    record_sync_started,
)

logger = get_logger(__name__)


@dataclass
class SyncRecord:
    """Outcome for one external record.

    label is the human identifier: shipment number, document file name or
    invoice number.
    """
    external_id: Optional[int]
    label: str
    action: SyncAction
    error: Optional[str] = None
    document_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "external_id": self.external_id,
            "label": self.label,
            "action": self.action.value,
        }
        if self.document_type is not None:
            data["document_type"] = self.document_type
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class SyncResult:
    """Uniform summary: created, updated, errors and per-record outcomes."""
    sync_type: str
    created: int = 0
    updated: int = 0
    errors: int = 0
    records: List[SyncRecord] = field(default_factory=list)

    def record_created(self, external_id: Optional[int], label: str, **extra) -> None:
        self.created += 1
        self.records.append(SyncRecord(external_id, label, SyncAction.CREATED, **extra))

    def record_updated(self, external_id: Optional[int], label: str, **extra) -> None:
        self.updated += 1
        self.records.append(SyncRecord(external_id, label, SyncAction.UPDATED, **extra))

    def record_error(self, external_id: Optional[int], label: str, error: str, **extra) -> None:
        self.errors += 1
        self.records.append(SyncRecord(external_id, label, SyncAction.ERROR, error=error, **extra))

    @property
    def total(self) -> int:
        return self.created + self.updated + self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sync_type": self.sync_type,
            "created": self.created,
            "updated": self.updated,
            "errors": self.errors,
            "records": [r.to_dict() for r in self.records],
        }


@dataclass
class InvoiceSyncResult(SyncResult):
    linked: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["linked"] = self.linked
        return data


@contextmanager
def tracked_run(result: SyncResult) -> Iterator[str]:
    """Bracket one reconciler run with correlation, timing and metrics.

    Yields the generated sync_run_id. A batch-level exception is logged,
    counted as a failed run and re-raised.
    """
    sync_type = result.sync_type
    sync_run_id = uuid.uuid4().hex[:12]
    start = time.monotonic()
    record_sync_started(sync_type)

    with with_correlation(sync_run_id=sync_run_id, sync_type=sync_type):
        try:
            yield sync_run_id
        except Exception:
            record_sync_failed(sync_type)
            logger.exception(f"Failed to sync Hillebrand {sync_type}")
            raise

        duration_ms = (time.monotonic() - start) * 1000
        record_sync_completed(sync_type, duration_ms)
        record_record_outcome(sync_type, "created", result.created)
        record_record_outcome(sync_type, "updated", result.updated)
        record_record_outcome(sync_type, "error", result.errors)

        summary = {
            "created": result.created,
            "updated": result.updated,
            "errors": result.errors,
            "duration_ms": round(duration_ms, 1),
        }
        if isinstance(result, InvoiceSyncResult):
            record_record_outcome(sync_type, "linked", result.linked)
            summary["linked"] = result.linked
        logger.info(f"Hillebrand {sync_type} sync complete", extra_fields=summary)
