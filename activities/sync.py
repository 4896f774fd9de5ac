"""
Sync Activities for the Logistics Pipeline

Activities that run one Hillebrand reconciler each:
- sync_shipments_activity: Upsert shipments (must run first)
- sync_documents_activity: Upsert documents of synced shipments
- sync_invoices_activity: Upsert invoices and link them to shipments

Each activity builds its own API client from the environment and returns
the reconciler summary as a plain dataclass.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from temporalio import activity

from connectors.hillebrand.hb_client import create_client
from connectors.hillebrand.hb_mapping import DestinationDefaults
from core.config import HillebrandSettings
from core.models.logistics import LinkPolicy
from core.observability.logging import with_correlation
from reconciliation.documents import sync_documents
from reconciliation.invoices import sync_invoices
from reconciliation.results import InvoiceSyncResult, SyncResult
from reconciliation.shipments import sync_shipments


# =============================================================================
# Activity Input/Output Models
# =============================================================================

@dataclass
class SyncInput:
    """Input for a sync activity. Unset fields fall back to the environment."""
    db_path: Optional[str] = None
    link_policy: Optional[str] = None


@dataclass
class SyncOutput:
    """Output from a sync activity"""
    sync_type: str
    created: int = 0
    updated: int = 0
    errors: int = 0
    linked: int = 0
    records: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_result(cls, result: SyncResult) -> "SyncOutput":
        return cls(
            sync_type=result.sync_type,
            created=result.created,
            updated=result.updated,
            errors=result.errors,
            linked=result.linked if isinstance(result, InvoiceSyncResult) else 0,
            records=[r.to_dict() for r in result.records],
        )


def _settings_and_db(input: SyncInput):
    settings = HillebrandSettings.from_env()
    db_path = Path(input.db_path) if input.db_path else settings.db_path
    return settings, db_path


def _correlation(name: str) -> Dict[str, str]:
    info = activity.info()
    return {"workflow_id": info.workflow_id, "activity_name": name}


# =============================================================================
# Activities
# =============================================================================

@activity.defn
async def sync_shipments_activity(input: SyncInput) -> SyncOutput:
    """Sync all Hillebrand shipments into the local store."""
    settings, db_path = _settings_and_db(input)
    activity.logger.info(f"Syncing Hillebrand shipments into {db_path}")

    destination = DestinationDefaults(
        country=settings.default_destination_country,
        city=settings.default_destination_city,
        warehouse=settings.default_destination_warehouse,
    )

    with with_correlation(**_correlation("sync_shipments_activity")):
        async with create_client(settings) as client:
            result = await sync_shipments(client, db_path, destination=destination)

    activity.logger.info(
        f"Shipments synced: created={result.created} updated={result.updated} errors={result.errors}"
    )
    return SyncOutput.from_result(result)


@activity.defn
async def sync_documents_activity(input: SyncInput) -> SyncOutput:
    """Sync documents for every local shipment with a Hillebrand ID."""
    settings, db_path = _settings_and_db(input)
    activity.logger.info(f"Syncing Hillebrand documents into {db_path}")

    with with_correlation(**_correlation("sync_documents_activity")):
        async with create_client(settings) as client:
            result = await sync_documents(client, db_path)

    activity.logger.info(
        f"Documents synced: created={result.created} updated={result.updated} errors={result.errors}"
    )
    return SyncOutput.from_result(result)


@activity.defn
async def sync_invoices_activity(input: SyncInput) -> SyncOutput:
    """Sync all Hillebrand invoices and link them to local shipments."""
    settings, db_path = _settings_and_db(input)
    link_policy = LinkPolicy(input.link_policy or settings.link_policy)
    activity.logger.info(f"Syncing Hillebrand invoices into {db_path} (links: {link_policy.value})")

    with with_correlation(**_correlation("sync_invoices_activity")):
        async with create_client(settings) as client:
            result = await sync_invoices(client, db_path, link_policy=link_policy)

    activity.logger.info(
        f"Invoices synced: created={result.created} updated={result.updated} "
        f"linked={result.linked} errors={result.errors}"
    )
    return SyncOutput.from_result(result)
