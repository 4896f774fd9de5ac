"""Local logistics record models.

These models describe rows in the local logistics store, independent of
the Hillebrand API schema. Hillebrand field mappings are handled in
/connectors/hillebrand/hb_mapping.py.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


# =============================================================================
# Value Parsers
# =============================================================================

def _parse_money(value):
    """Parse an amount into an exact Decimal (floats go through their shortest repr)."""
    if value is None or isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    if isinstance(value, (int, float, str)):
        text = str(value).strip().replace(",", "")
        if text == "":
            return None
        try:
            amount = Decimal(text)
        except InvalidOperation:
            raise ValueError(f"Invalid amount: {value!r}")
        if not amount.is_finite():
            raise ValueError(f"Invalid amount: {value!r}")
        return amount
    return value


MoneyValue = Annotated[Decimal, BeforeValidator(_parse_money)]


# =============================================================================
# Enumerations
# =============================================================================

class ShipmentStatus(str, Enum):
    """Shipment lifecycle states."""
    DRAFT = "draft"
    BOOKED = "booked"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    ARRIVED_PORT = "arrived_port"
    CUSTOMS_CLEARANCE = "customs_clearance"
    CLEARED = "cleared"
    AT_WAREHOUSE = "at_warehouse"
    DISPATCHED = "dispatched"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class ShipmentType(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class TransportMode(str, Enum):
    SEA_FCL = "sea_fcl"
    SEA_LCL = "sea_lcl"
    AIR = "air"
    ROAD = "road"


class DocumentType(str, Enum):
    """Shipping and customs document types."""
    BILL_OF_LADING = "bill_of_lading"
    AIRWAY_BILL = "airway_bill"
    COMMERCIAL_INVOICE = "commercial_invoice"
    PACKING_LIST = "packing_list"
    CERTIFICATE_OF_ORIGIN = "certificate_of_origin"
    CUSTOMS_DECLARATION = "customs_declaration"
    IMPORT_PERMIT = "import_permit"
    EXPORT_PERMIT = "export_permit"
    DELIVERY_NOTE = "delivery_note"
    HEALTH_CERTIFICATE = "health_certificate"
    INSURANCE_CERTIFICATE = "insurance_certificate"
    PROOF_OF_DELIVERY = "proof_of_delivery"
    OTHER = "other"


class InvoiceStatus(str, Enum):
    OPEN = "open"
    PAID = "paid"
    OVERDUE = "overdue"
    DISPUTED = "disputed"
    CANCELLED = "cancelled"


class LinkPolicy(str, Enum):
    """How existing invoice-shipment links are detected.

    PER_INVOICE: any link for the invoice counts, so an invoice gets at most one link.
    PER_SHIPMENT: one link per (invoice, shipment) pair.
    """
    PER_INVOICE = "per_invoice"
    PER_SHIPMENT = "per_shipment"


class SyncAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    ERROR = "error"


# =============================================================================
# Local Records
# =============================================================================

class LocalRecord(BaseModel):
    model_config = ConfigDict(use_enum_values=False)


class LocalShipment(LocalRecord):
    """A shipment row in the local store.

    external_shipment_id is None for locally originated shipments.
    """
    id: Optional[int] = None
    external_shipment_id: Optional[int] = None
    shipment_number: str
    type: ShipmentType = ShipmentType.INBOUND
    transport_mode: TransportMode = TransportMode.SEA_FCL
    status: ShipmentStatus = ShipmentStatus.IN_TRANSIT
    external_reference: Optional[str] = None

    origin_country: Optional[str] = None
    origin_city: Optional[str] = None
    destination_country: Optional[str] = None
    destination_city: Optional[str] = None
    destination_warehouse: Optional[str] = None

    carrier_name: Optional[str] = None
    container_number: Optional[str] = None
    bl_number: Optional[str] = None

    etd: Optional[datetime] = None
    atd: Optional[datetime] = None
    eta: Optional[datetime] = None
    ata: Optional[datetime] = None
    delivered_at: Optional[datetime] = None

    total_cases: Optional[int] = None
    total_bottles: Optional[int] = None
    total_weight_kg: Optional[float] = None
    total_volume_m3: Optional[float] = None

    co2_emissions_tonnes: Optional[float] = None
    partner_notes: Optional[str] = None
    last_synced_at: Optional[datetime] = None


class LocalDocument(LocalRecord):
    id: Optional[int] = None
    external_document_id: int
    shipment_id: int
    document_type: DocumentType = DocumentType.OTHER
    document_number: Optional[str] = None
    file_name: str
    file_url: str = ""
    download_url: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: str = "application/pdf"
    uploaded_by: Optional[str] = None
    last_synced_at: Optional[datetime] = None


class LocalInvoice(LocalRecord):
    """An invoice row. Amounts are always the latest external snapshot."""
    id: Optional[int] = None
    external_invoice_id: int
    invoice_number: str
    invoice_date: datetime
    payment_due_date: Optional[datetime] = None
    status: InvoiceStatus = InvoiceStatus.OPEN
    currency_code: str = "USD"
    total_amount: MoneyValue
    open_amount: MoneyValue
    paid_amount: MoneyValue
    paid_at: Optional[datetime] = None
    last_synced_at: Optional[datetime] = None


class InvoiceShipmentLink(LocalRecord):
    id: Optional[int] = None
    invoice_id: int
    shipment_id: int
    created_at: Optional[datetime] = Field(default=None)
