"""Invoice reconciliation.

Pulls every Hillebrand invoice, upserts it into logistics_invoices keyed by
external_invoice_id, and links it to the local shipments named in its
shipmentReferences.

Link existence follows LinkPolicy:
- PER_INVOICE (default): skip linking once the invoice has any link, so an
  invoice referencing several shipments is linked to the first known one
- PER_SHIPMENT: one link per (invoice, shipment) pair
"""

from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Optional

from pydantic import ValidationError

from connectors.hillebrand.hb_client import HBApiClient
from connectors.hillebrand.hb_errors import RecordMappingError
from connectors.hillebrand.hb_mapping import map_invoice
from connectors.hillebrand.hb_models import HBInvoice
from core.config import DEFAULT_DB_PATH
from core.models.logistics import LinkPolicy, LocalInvoice
from core.observability.logging import get_logger, with_correlation
from reconciliation.results import InvoiceSyncResult, tracked_run
from storage.logistics_db import (
    create_invoice_link,
    get_invoice_by_external_id,
    get_shipment_id_map,
    init_logistics_db,
    insert_invoice,
    invoice_link_exists,
    update_invoice,
)

logger = get_logger(__name__)

PAGE_SIZE = 100


def _link_shipments(
    invoice: HBInvoice,
    local_invoice: LocalInvoice,
    shipment_map: Dict[int, int],
    link_policy: LinkPolicy,
    db_path: Path,
) -> int:
    """Create missing links for an invoice. Returns the number created."""
    linked = 0
    for ref in invoice.shipment_references:
        shipment_id = shipment_map.get(ref.id)
        if shipment_id is None:
            continue

        scope = shipment_id if link_policy == LinkPolicy.PER_SHIPMENT else None
        if invoice_link_exists(local_invoice.id, scope, db_path):
            continue

        create_invoice_link(local_invoice.id, shipment_id, db_path)
        linked += 1
    return linked


async def sync_invoices(
    client: HBApiClient,
    db_path: Path = DEFAULT_DB_PATH,
    link_policy: LinkPolicy = LinkPolicy.PER_INVOICE,
    clock: Optional[Callable[[], datetime]] = None,
) -> InvoiceSyncResult:
    """Sync invoices from Hillebrand into the local store.

    Args:
        client: Hillebrand API client
        db_path: SQLite database holding the logistics tables
        link_policy: How an existing invoice-shipment link is detected
        clock: Returns the current UTC time; injectable for tests

    Returns:
        InvoiceSyncResult with one record per external invoice

    Raises:
        AuthConfigurationError / AuthenticationError: Token could not be obtained
        ExternalApiError: The invoice listing failed
    """
    clock = clock or datetime.utcnow
    result = InvoiceSyncResult(sync_type="invoices")

    with tracked_run(result):
        init_logistics_db(db_path)
        external_invoices = await client.list_all_invoices(page_size=PAGE_SIZE)
        logger.info("Fetched Hillebrand invoices", extra_fields={"count": len(external_invoices)})

        # Built once and reused for every invoice
        shipment_map = get_shipment_id_map(db_path)

        for raw in external_invoices:
            raw_id = raw.get("id") if isinstance(raw, dict) else None
            label = str(raw.get("invoiceNumber") or "unknown") if isinstance(raw, dict) else "unknown"

            with with_correlation(external_id=str(raw_id)):
                try:
                    try:
                        invoice = HBInvoice.model_validate(raw)
                    except ValidationError as e:
                        raise RecordMappingError(
                            f"Invalid invoice payload: {e.error_count()} validation error(s)"
                        ) from e

                    local = map_invoice(invoice, clock())
                    existing = get_invoice_by_external_id(invoice.id, db_path)

                    if existing:
                        if local.paid_at and existing.paid_at:
                            local.paid_at = existing.paid_at
                        local = update_invoice(existing.id, local, db_path)
                        result.record_updated(invoice.id, invoice.invoice_number)
                    else:
                        local = insert_invoice(local, db_path)
                        result.record_created(invoice.id, invoice.invoice_number)

                    result.linked += _link_shipments(invoice, local, shipment_map, link_policy, db_path)

                except Exception as e:
                    result.record_error(raw_id, label, str(e))
                    logger.error(
                        "Error syncing Hillebrand invoice",
                        extra_fields={"error": str(e), "error_type": type(e).__name__},
                    )

    return result
