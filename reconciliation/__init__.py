"""Hillebrand reconcilers.

Exposes:
- sync_shipments(client, db_path) -> SyncResult
- sync_documents(client, db_path) -> SyncResult
- sync_invoices(client, db_path) -> InvoiceSyncResult
"""

from reconciliation.documents import sync_documents
from reconciliation.invoices import sync_invoices
from reconciliation.results import InvoiceSyncResult, SyncRecord, SyncResult
from reconciliation.shipments import sync_shipments

__all__ = [
    "sync_shipments",
    "sync_documents",
    "sync_invoices",
    "SyncResult",
    "SyncRecord",
    "InvoiceSyncResult",
]
