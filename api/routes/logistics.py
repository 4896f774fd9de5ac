"""Logistics sync endpoints.

Triggers the Hillebrand reconcilers on demand and exposes on-demand
tracking events and sync metrics.
"""

from pathlib import Path
from typing import Any, AsyncGenerator, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ValidationError

from connectors.hillebrand.hb_client import HBApiClient, create_client
from connectors.hillebrand.hb_errors import (
    AuthConfigurationError,
    AuthenticationError,
    ExternalApiError,
)
from connectors.hillebrand.hb_mapping import DestinationDefaults
from connectors.hillebrand.hb_models import HBEvent
from core.config import HillebrandSettings
from core.models.logistics import LinkPolicy
from core.observability.metrics import get_metrics
from reconciliation import sync_documents, sync_invoices, sync_shipments


router = APIRouter()


# =============================================================================
# Response Models
# =============================================================================

class SyncRecordResponse(BaseModel):
    external_id: Optional[Any] = None
    label: str
    action: str
    document_type: Optional[str] = None
    error: Optional[str] = None


class SyncResultResponse(BaseModel):
    """Summary of one sync run."""
    sync_type: str
    created: int
    updated: int
    errors: int
    linked: Optional[int] = None
    records: List[SyncRecordResponse]


class ShipmentEventResponse(BaseModel):
    id: Optional[int] = None
    event_type: Optional[str] = None
    event_date_time: Optional[str] = None
    description: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    vessel_name: Optional[str] = None


# =============================================================================
# Dependencies
# =============================================================================

def get_settings() -> HillebrandSettings:
    return HillebrandSettings.from_env()


async def get_client(settings: HillebrandSettings = Depends(get_settings)) -> AsyncGenerator[HBApiClient, None]:
    """Client bound to the process-wide token cache, one HTTP session per request."""
    async with create_client(settings) as client:
        yield client


def get_db_path(settings: HillebrandSettings = Depends(get_settings)) -> Path:
    return settings.db_path


def _raise_http(e: Exception) -> None:
    """Translate batch-level sync failures into HTTP errors."""
    if isinstance(e, AuthConfigurationError):
        raise HTTPException(status_code=503, detail=f"Hillebrand not configured: {e}")
    if isinstance(e, AuthenticationError):
        raise HTTPException(status_code=502, detail=f"Hillebrand authentication failed: {e}")
    if isinstance(e, ExternalApiError):
        raise HTTPException(status_code=502, detail=f"Hillebrand API error: {e}")
    raise e


# =============================================================================
# Sync triggers
# =============================================================================

@router.post("/sync/shipments", response_model=SyncResultResponse)
async def trigger_shipment_sync(
    client: HBApiClient = Depends(get_client),
    db_path: Path = Depends(get_db_path),
    settings: HillebrandSettings = Depends(get_settings),
) -> Dict[str, Any]:
    """Sync all Hillebrand shipments."""
    destination = DestinationDefaults(
        country=settings.default_destination_country,
        city=settings.default_destination_city,
        warehouse=settings.default_destination_warehouse,
    )
    try:
        result = await sync_shipments(client, db_path, destination=destination)
    except (AuthConfigurationError, AuthenticationError, ExternalApiError) as e:
        _raise_http(e)
    return result.to_dict()


@router.post("/sync/documents", response_model=SyncResultResponse)
async def trigger_document_sync(
    client: HBApiClient = Depends(get_client),
    db_path: Path = Depends(get_db_path),
) -> Dict[str, Any]:
    """Sync documents for all shipments with a Hillebrand ID."""
    try:
        result = await sync_documents(client, db_path)
    except (AuthConfigurationError, AuthenticationError, ExternalApiError) as e:
        _raise_http(e)
    return result.to_dict()


@router.post("/sync/invoices", response_model=SyncResultResponse)
async def trigger_invoice_sync(
    link_policy: Optional[LinkPolicy] = None,
    client: HBApiClient = Depends(get_client),
    db_path: Path = Depends(get_db_path),
    settings: HillebrandSettings = Depends(get_settings),
) -> Dict[str, Any]:
    """Sync all Hillebrand invoices and link them to shipments."""
    policy = link_policy or LinkPolicy(settings.link_policy)
    try:
        result = await sync_invoices(client, db_path, link_policy=policy)
    except (AuthConfigurationError, AuthenticationError, ExternalApiError) as e:
        _raise_http(e)
    return result.to_dict()


# =============================================================================
# On-demand reads
# =============================================================================

@router.get("/shipments/{external_id}/events", response_model=List[ShipmentEventResponse])
async def get_shipment_events(
    external_id: int,
    client: HBApiClient = Depends(get_client),
) -> List[ShipmentEventResponse]:
    """Fetch tracking events for a Hillebrand shipment (not stored)."""
    try:
        raw_events = await client.get_shipment_events(external_id)
    except ExternalApiError as e:
        if e.status_code == 404:
            raise HTTPException(status_code=404, detail=f"Shipment {external_id} not found")
        _raise_http(e)
    except (AuthConfigurationError, AuthenticationError) as e:
        _raise_http(e)

    events = []
    for raw in raw_events:
        try:
            event = HBEvent.model_validate(raw)
        except ValidationError as e:
            raise HTTPException(
                status_code=502,
                detail=f"Hillebrand API error: malformed event ({e.error_count()} validation error(s))",
            )
        events.append(ShipmentEventResponse(
            id=event.id,
            event_type=event.event_type,
            event_date_time=event.event_date_time,
            description=event.description,
            city=event.location.city_name if event.location else None,
            country=(event.location.country_name or event.location.country_code) if event.location else None,
            vessel_name=event.vessel.name if event.vessel else None,
        ))
    return events


@router.get("/metrics")
async def get_sync_metrics() -> Dict[str, Any]:
    """In-memory sync, record and token metrics for this process."""
    return get_metrics().get_summary()
