"""Document reconciliation.

For every local shipment that carries a Hillebrand shipment ID, fetches
its documents and upserts them into logistics_documents keyed by
external_document_id. Each document belongs to the shipment being synced
when it was fetched.
"""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import aiohttp
from pydantic import ValidationError

from connectors.hillebrand.hb_client import HBApiClient
from connectors.hillebrand.hb_errors import ExternalApiError, RecordMappingError
from connectors.hillebrand.hb_mapping import map_document
from connectors.hillebrand.hb_models import HBDocument
from core.config import DEFAULT_DB_PATH
from core.models.logistics import LocalShipment
from core.observability.logging import get_logger, with_correlation
from reconciliation.results import SyncResult, tracked_run
from storage.logistics_db import (
    get_document_by_external_id,
    init_logistics_db,
    insert_document,
    list_synced_shipments,
    update_document,
)

logger = get_logger(__name__)


def _document_label(raw: Any) -> str:
    if isinstance(raw, dict) and raw.get("fileName"):
        return str(raw["fileName"])
    return "unknown"


async def _sync_shipment_documents(
    client: HBApiClient,
    shipment: LocalShipment,
    result: SyncResult,
    db_path: Path,
    clock: Callable[[], datetime],
) -> None:
    """Upsert one shipment's documents into result. Fetch errors propagate."""
    documents = await client.get_shipment_documents(shipment.external_shipment_id)

    for raw in documents:
        raw_id = raw.get("id") if isinstance(raw, dict) else None
        raw_type = raw.get("documentType") if isinstance(raw, dict) else None
        if raw_type is not None and not isinstance(raw_type, str):
            raw_type = str(raw_type)

        with with_correlation(external_id=str(raw_id)):
            try:
                try:
                    document = HBDocument.model_validate(raw)
                except ValidationError as e:
                    raise RecordMappingError(
                        f"Invalid document payload: {e.error_count()} validation error(s)"
                    ) from e

                local = map_document(document, shipment.id, clock())
                existing = get_document_by_external_id(document.id, db_path)

                if existing:
                    update_document(existing.id, local, db_path)
                    result.record_updated(document.id, local.file_name, document_type=local.document_type.value)
                else:
                    insert_document(local, db_path)
                    result.record_created(document.id, local.file_name, document_type=local.document_type.value)

            except Exception as e:
                result.record_error(raw_id, _document_label(raw), str(e), document_type=raw_type)
                logger.error(
                    "Error syncing Hillebrand document",
                    extra_fields={"shipment_id": shipment.id, "error": str(e)},
                )


async def sync_documents(
    client: HBApiClient,
    db_path: Path = DEFAULT_DB_PATH,
    clock: Optional[Callable[[], datetime]] = None,
) -> SyncResult:
    """Sync documents for all local shipments with a Hillebrand ID.

    A failure to fetch one shipment's documents is logged and counted as a
    single error; the remaining shipments are still synced.

    Args:
        client: Hillebrand API client
        db_path: SQLite database holding the logistics tables
        clock: Returns the current UTC time; injectable for tests
    """
    clock = clock or datetime.utcnow
    result = SyncResult(sync_type="documents")

    with tracked_run(result):
        init_logistics_db(db_path)
        shipments = list_synced_shipments(db_path)
        logger.info("Found shipments with Hillebrand IDs", extra_fields={"count": len(shipments)})

        for shipment in shipments:
            before: Dict[str, int] = {"created": result.created, "updated": result.updated, "errors": result.errors}

            with with_correlation(shipment_number=shipment.shipment_number):
                try:
                    await _sync_shipment_documents(client, shipment, result, db_path, clock)
                except (ExternalApiError, aiohttp.ClientError, asyncio.TimeoutError) as e:
                    result.record_error(shipment.external_shipment_id, shipment.shipment_number, str(e))
                    logger.error(
                        "Failed to sync documents for shipment",
                        extra_fields={
                            "hillebrand_shipment_id": shipment.external_shipment_id,
                            "error": str(e),
                        },
                    )
                    continue

                logger.info(
                    "Synced documents for shipment",
                    extra_fields={
                        "created": result.created - before["created"],
                        "updated": result.updated - before["updated"],
                        "errors": result.errors - before["errors"],
                    },
                )

    return result
