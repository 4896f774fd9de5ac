"""Activity definitions module."""

from activities.sync import (
    sync_shipments_activity,
    sync_documents_activity,
    sync_invoices_activity,
    SyncInput,
    SyncOutput,
)

__all__ = [
    "sync_shipments_activity",
    "sync_documents_activity",
    "sync_invoices_activity",
    "SyncInput",
    "SyncOutput",
]
