"""Hillebrand HTTP Client.

Thin authenticated wrapper over the Hillebrand logistics API.
Handles bearer headers, response-envelope normalization and pagination.

No retries or backoff happen at this layer: a non-2xx response raises
ExternalApiError immediately and the caller decides what to do with it.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

import aiohttp

from connectors.hillebrand.hb_auth import HBAuthProvider, get_auth_provider
from connectors.hillebrand.hb_errors import ExternalApiError, ResponseShapeError
from core.config import HillebrandSettings
from core.observability.logging import get_logger

logger = get_logger(__name__)


# =============================================================================
# Response Envelopes
# =============================================================================

class EnvelopeShape(str, Enum):
    """Known shapes of a list response.

    BARE_ARRAY is a top-level JSON array; every other member names the
    object key under which the array is exposed.
    """
    BARE_ARRAY = "array"
    SHIPMENTS = "shipments"
    EVENTS = "events"
    DOCUMENTS = "documents"
    INVOICES = "invoices"
    LINES = "lines"
    DATA = "data"
    ITEMS = "items"
    CONTENT = "content"


SHIPMENT_ENVELOPES = (EnvelopeShape.SHIPMENTS, EnvelopeShape.DATA, EnvelopeShape.ITEMS, EnvelopeShape.CONTENT)
EVENT_ENVELOPES = (EnvelopeShape.EVENTS, EnvelopeShape.DATA, EnvelopeShape.ITEMS)
DOCUMENT_ENVELOPES = (EnvelopeShape.DOCUMENTS, EnvelopeShape.DATA, EnvelopeShape.ITEMS)
INVOICE_ENVELOPES = (EnvelopeShape.INVOICES, EnvelopeShape.DATA, EnvelopeShape.ITEMS, EnvelopeShape.CONTENT)
LINE_ENVELOPES = (EnvelopeShape.LINES, EnvelopeShape.DATA, EnvelopeShape.ITEMS)


def decode_envelope(
    payload: Any,
    shapes: Iterable[EnvelopeShape],
) -> Tuple[EnvelopeShape, List[Dict[str, Any]]]:
    """Decode a list response into (shape, records).

    Args:
        payload: Parsed JSON body
        shapes: Keyed shapes accepted for this endpoint, in priority order

    Returns:
        The matched shape and the list of records

    Raises:
        ResponseShapeError: If the payload matches none of the known shapes
    """
    if isinstance(payload, list):
        return EnvelopeShape.BARE_ARRAY, payload

    if isinstance(payload, dict):
        for shape in shapes:
            value = payload.get(shape.value)
            if isinstance(value, list):
                return shape, value

        raise ResponseShapeError(
            f"Unrecognized list envelope with keys {sorted(payload.keys())}",
            200,
            json.dumps(payload, default=str)[:2000],
        )

    raise ResponseShapeError(
        f"Unrecognized list envelope of type {type(payload).__name__}",
        200,
        str(payload)[:2000],
    )


# =============================================================================
# Client
# =============================================================================

@dataclass
class HBApiConfig:
    """Configuration for the Hillebrand API client."""
    base_url: str = "https://api.hillebrandgori.com"
    api_version: str = "v6"
    timeout_seconds: int = 30
    max_pages: int = 100

    @classmethod
    def from_settings(cls, settings: HillebrandSettings) -> "HBApiConfig":
        return cls(
            base_url=settings.api_url,
            timeout_seconds=settings.timeout_seconds,
            max_pages=settings.max_pages,
        )

    def build_url(self, endpoint: str) -> str:
        return f"{self.base_url.rstrip('/')}/{self.api_version}/{endpoint.lstrip('/')}"


class HBApiClient:
    """HTTP client for the Hillebrand logistics API.

    Provides:
    - Authenticated requests (bearer token from HBAuthProvider)
    - Envelope normalization for list endpoints
    - Bounded automatic pagination

    List helpers return raw JSON records; callers validate them one by one
    so that a malformed record fails only itself.

    Usage:
        async with HBApiClient(auth_provider, api_config) as client:
            shipments = await client.list_all_shipments()
            documents = await client.get_shipment_documents(shipments[0]["id"])
    """

    def __init__(self, auth_provider: HBAuthProvider, api_config: Optional[HBApiConfig] = None):
        self.auth_provider = auth_provider
        self.api_config = api_config or HBApiConfig()
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "HBApiClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def connect(self) -> None:
        """Open a pooled HTTP session for subsequent requests."""
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.api_config.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    # =========================================================================
    # Generic request
    # =========================================================================

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Make an authenticated API request.

        Args:
            method: HTTP method
            endpoint: Path below the versioned base URL (e.g. "shipments/12")
            params: Query parameters; None values are dropped
            json_body: JSON request body

        Returns:
            Parsed JSON response (None for an empty body)

        Raises:
            AuthConfigurationError / AuthenticationError: From the token provider
            ExternalApiError: Any non-2xx response
        """
        token = await self.auth_provider.get_access_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        query = {k: str(v) for k, v in (params or {}).items() if v is not None}
        url = self.api_config.build_url(endpoint)

        status, text = await self._send(method, url, headers, query, json_body)

        if status < 200 or status >= 300:
            logger.error(
                "Hillebrand API error",
                extra_fields={"endpoint": endpoint, "status": status, "error": text[:500]},
            )
            if status == 401:
                self.auth_provider.invalidate()
            raise ExternalApiError(f"Hillebrand API error: {status} - {text[:500]}", status, text)

        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError as e:
            raise ExternalApiError(f"Invalid JSON from {endpoint}: {e}", status, text[:2000]) from e

    async def _send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        params: Dict[str, str],
        json_body: Optional[Dict[str, Any]],
    ) -> Tuple[int, str]:
        """Perform the HTTP call. Returns (status code, response text)."""
        if self._session is not None:
            async with self._session.request(method, url, headers=headers, params=params, json=json_body) as response:
                return response.status, await response.text()

        timeout = aiohttp.ClientTimeout(total=self.api_config.timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.request(method, url, headers=headers, params=params, json=json_body) as response:
                return response.status, await response.text()

    async def _paginate(
        self,
        fetch_page: Callable[[int], Awaitable[List[Dict[str, Any]]]],
        page_size: int,
        label: str,
    ) -> List[Dict[str, Any]]:
        """Fetch pages starting at 1 until a short page or max_pages is reached."""
        all_results: List[Dict[str, Any]] = []
        max_pages = self.api_config.max_pages

        for page in range(1, max_pages + 1):
            results = await fetch_page(page)
            all_results.extend(results)

            if len(results) < page_size:
                return all_results

        logger.warning(
            f"Pagination truncated for {label}: still receiving full pages after {max_pages} pages",
            extra_fields={"max_pages": max_pages, "page_size": page_size, "fetched": len(all_results)},
        )
        return all_results

    # =========================================================================
    # Shipments
    # =========================================================================

    async def list_shipments(
        self,
        page: int = 1,
        page_size: int = 50,
        status: Optional[str] = None,
        reference: Optional[str] = None,
        modified_since: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """List one page of shipments.

        Args:
            page: 1-based page number
            page_size: Records per page
            status: Optional Hillebrand status filter
            reference: Optional reference filter
            modified_since: Optional modifiedSinceTimeStamp filter (ISO string)
        """
        params = {
            "page": page,
            "pageSize": page_size,
            "status": status,
            "reference": reference,
            "modifiedSinceTimeStamp": modified_since,
        }
        payload = await self.request("GET", "shipments", params=params)
        shape, shipments = decode_envelope(payload, SHIPMENT_ENVELOPES)

        logger.debug(
            "Hillebrand shipments page",
            extra_fields={"page": page, "shape": shape.value, "count": len(shipments), "status": status},
        )
        return shipments

    async def list_all_shipments(
        self,
        page_size: int = 100,
        status: Optional[str] = None,
        reference: Optional[str] = None,
        modified_since: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """List all shipments with automatic pagination."""
        async def fetch_page(page: int) -> List[Dict[str, Any]]:
            return await self.list_shipments(
                page=page,
                page_size=page_size,
                status=status,
                reference=reference,
                modified_since=modified_since,
            )

        return await self._paginate(fetch_page, page_size, "shipments")

    async def list_shipments_by_status(
        self,
        statuses: List[str],
        page_size: int = 100,
        skip_failed: bool = False,
    ) -> List[Dict[str, Any]]:
        """Query each status separately and de-duplicate by shipment ID.

        Args:
            statuses: Hillebrand statuses to query, in order
            page_size: Page size for each single-page query
            skip_failed: Log and skip a status whose query fails instead of raising
        """
        all_shipments: List[Dict[str, Any]] = []
        seen_ids = set()

        for status in statuses:
            try:
                shipments = await self.list_shipments(status=status, page_size=page_size)
            except ExternalApiError as e:
                if not skip_failed:
                    raise
                logger.warning(
                    f"Failed to fetch shipments with status {status}",
                    extra_fields={"error": str(e)},
                )
                continue

            for shipment in shipments:
                shipment_id = shipment.get("id") if isinstance(shipment, dict) else None
                if shipment_id is not None and shipment_id in seen_ids:
                    continue
                seen_ids.add(shipment_id)
                all_shipments.append(shipment)

        return all_shipments

    async def get_shipment(self, shipment_id: int) -> Dict[str, Any]:
        """Get a single shipment with full detail (cargo, timeline, vessel)."""
        return await self.request("GET", f"shipments/{shipment_id}")

    async def get_shipment_events(self, shipment_id: int) -> List[Dict[str, Any]]:
        """Get tracking events for a shipment."""
        payload = await self.request("GET", f"shipments/{shipment_id}/events")
        _, events = decode_envelope(payload, EVENT_ENVELOPES)
        return events

    async def get_shipment_documents(self, shipment_id: int) -> List[Dict[str, Any]]:
        """Get documents attached to a shipment."""
        payload = await self.request("GET", f"shipments/{shipment_id}/documents")
        _, documents = decode_envelope(payload, DOCUMENT_ENVELOPES)
        return documents

    # =========================================================================
    # Invoices
    # =========================================================================

    async def list_invoices(
        self,
        page: int = 1,
        page_size: int = 50,
        status: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """List one page of invoices."""
        params = {"page": page, "pageSize": page_size, "status": status}
        payload = await self.request("GET", "invoices", params=params)
        _, invoices = decode_envelope(payload, INVOICE_ENVELOPES)
        return invoices

    async def list_all_invoices(self, page_size: int = 100, status: Optional[str] = None) -> List[Dict[str, Any]]:
        """List all invoices with automatic pagination."""
        async def fetch_page(page: int) -> List[Dict[str, Any]]:
            return await self.list_invoices(page=page, page_size=page_size, status=status)

        return await self._paginate(fetch_page, page_size, "invoices")

    async def get_invoice(self, invoice_id: int) -> Dict[str, Any]:
        return await self.request("GET", f"invoices/{invoice_id}")

    async def get_invoice_lines(self, invoice_id: int) -> List[Dict[str, Any]]:
        payload = await self.request("GET", f"invoices/{invoice_id}/lines")
        _, lines = decode_envelope(payload, LINE_ENVELOPES)
        return lines


def create_client(settings: Optional[HillebrandSettings] = None) -> HBApiClient:
    """Create a client bound to the process-wide auth provider."""
    settings = settings or HillebrandSettings.from_env()
    return HBApiClient(get_auth_provider(settings), HBApiConfig.from_settings(settings))
