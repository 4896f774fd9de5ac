"""Shipment reconciliation.

Pulls every Hillebrand shipment and upserts it into logistics_shipments,
keyed by external_shipment_id:
- Known external ID -> all mapped fields overwritten, shipment number kept
- New external ID -> inserted with a freshly allocated HB-<year>-NNNN number

A failure on one shipment is recorded in the result and the run continues.
Only failing to list shipments at all aborts the run.
"""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import aiohttp
from pydantic import ValidationError

from connectors.hillebrand.hb_client import HBApiClient
from connectors.hillebrand.hb_errors import (
    AuthConfigurationError,
    AuthenticationError,
    ExternalApiError,
    RecordMappingError,
)
from connectors.hillebrand.hb_mapping import DestinationDefaults, map_shipment
from connectors.hillebrand.hb_models import HBShipment
from core.config import DEFAULT_DB_PATH
from core.observability.logging import get_logger, with_correlation
from reconciliation.results import SyncResult, tracked_run
from storage.logistics_db import (
    get_max_shipment_sequence,
    get_shipment_by_external_id,
    init_logistics_db,
    insert_shipment,
    update_shipment,
)

logger = get_logger(__name__)

PAGE_SIZE = 100
FALLBACK_STATUSES = ["shipped", "arrived", "delivered"]


class ShipmentNumberAllocator:
    """Hands out HB-<year>-NNNN shipment numbers for one run.

    The highest existing suffix for the year is read once; later numbers
    are counted in memory, so a number taken by a failed insert is never
    handed out again within the run.
    """

    def __init__(self, db_path: Path, year: int):
        self.db_path = db_path
        self.prefix = f"HB-{year}"
        self._next: Optional[int] = None

    def allocate(self) -> str:
        if self._next is None:
            self._next = get_max_shipment_sequence(self.prefix, self.db_path) + 1
        number = f"{self.prefix}-{self._next:04d}"
        self._next += 1
        return number


async def fetch_external_shipments(client: HBApiClient) -> List[Dict[str, Any]]:
    """Fetch all shipments, falling back to per-status queries.

    Some accounts get an empty unfiltered listing even though status
    filtered queries return data; the fallback covers that case.
    """
    shipments = await client.list_all_shipments(page_size=PAGE_SIZE)
    logger.info("Fetched Hillebrand shipments", extra_fields={"count": len(shipments)})

    if not shipments:
        logger.info(
            "No shipments without filter, trying status filters",
            extra_fields={"statuses": FALLBACK_STATUSES},
        )
        shipments = await client.list_shipments_by_status(
            FALLBACK_STATUSES,
            page_size=PAGE_SIZE,
            skip_failed=True,
        )
        logger.info("Fetched Hillebrand shipments by status", extra_fields={"count": len(shipments)})

    return shipments


async def _fetch_detail(client: HBApiClient, listed: HBShipment, raw: Dict[str, Any]) -> Dict[str, Any]:
    """Detail payload for a shipment, or the list payload if it cannot be fetched."""
    try:
        detail = await client.get_shipment(listed.id)
    except (ExternalApiError, aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.warning(
            "Could not fetch shipment details, using list data",
            extra_fields={"error": str(e)},
        )
        return raw

    if not isinstance(detail, dict):
        logger.warning("Shipment detail was not an object, using list data")
        return raw
    return detail


def _validate(raw: Any) -> HBShipment:
    try:
        return HBShipment.model_validate(raw)
    except ValidationError as e:
        raise RecordMappingError(f"Invalid shipment payload: {e.error_count()} validation error(s)") from e


async def sync_shipments(
    client: HBApiClient,
    db_path: Path = DEFAULT_DB_PATH,
    destination: Optional[DestinationDefaults] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> SyncResult:
    """Sync shipments from Hillebrand into the local store.

    Args:
        client: Hillebrand API client
        db_path: SQLite database holding the logistics tables
        destination: Fallback destination for shipments without one
        clock: Returns the current UTC time; injectable for tests

    Returns:
        SyncResult with one record per external shipment

    Raises:
        AuthConfigurationError / AuthenticationError: Token could not be obtained
        ExternalApiError: The shipment listing failed
    """
    clock = clock or datetime.utcnow
    result = SyncResult(sync_type="shipments")

    with tracked_run(result):
        init_logistics_db(db_path)
        external_shipments = await fetch_external_shipments(client)
        allocator = ShipmentNumberAllocator(db_path, clock().year)

        for raw in external_shipments:
            raw_id = raw.get("id") if isinstance(raw, dict) else None
            label = "unknown"

            with with_correlation(external_id=str(raw_id)):
                try:
                    listed = _validate(raw)
                    shipment = _validate(await _fetch_detail(client, listed, raw))
                    now = clock()

                    existing = get_shipment_by_external_id(listed.id, db_path)
                    if existing:
                        label = existing.shipment_number
                        local = map_shipment(shipment, existing.shipment_number, now, destination)
                        local.external_shipment_id = listed.id
                        update_shipment(existing.id, local, db_path)
                        result.record_updated(listed.id, label)
                    else:
                        label = allocator.allocate()
                        local = map_shipment(shipment, label, now, destination)
                        local.external_shipment_id = listed.id
                        insert_shipment(local, db_path)
                        result.record_created(listed.id, label)

                    logger.debug(
                        "Synced shipment",
                        extra_fields={"shipment_number": label, "status": local.status.value},
                    )

                except (AuthConfigurationError, AuthenticationError):
                    raise
                except Exception as e:
                    result.record_error(raw_id, label, str(e))
                    logger.error(
                        "Error syncing Hillebrand shipment",
                        extra_fields={"error": str(e), "error_type": type(e).__name__},
                    )

    return result
