"""Hillebrand vocabulary and record mapping.

Translates Hillebrand statuses, modalities and document types into the
local enumerations, and Hillebrand records into local records.

The vocabulary mappers are total: every input, including None and empty
strings, maps to a member of the target enumeration. Unknown values fall
back to a conservative default.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from connectors.hillebrand.hb_errors import RecordMappingError
from connectors.hillebrand.hb_models import HBDocument, HBInvoice, HBReference, HBShipment
from core.models.logistics import (
    DocumentType,
    InvoiceStatus,
    LocalDocument,
    LocalInvoice,
    LocalShipment,
    ShipmentStatus,
    ShipmentType,
    TransportMode,
)

CARRIER_NAME = "Hillebrand"
BOTTLES_PER_CASE = 6
LB_TO_KG = 0.453592
CUBIC_FEET_TO_M3 = 0.0283168


# =============================================================================
# Vocabulary Tables
# =============================================================================

SHIPMENT_STATUS_MAP: Dict[str, ShipmentStatus] = {
    "shipped": ShipmentStatus.IN_TRANSIT,
    "departed": ShipmentStatus.IN_TRANSIT,
    "in transit": ShipmentStatus.IN_TRANSIT,
    "in_transit": ShipmentStatus.IN_TRANSIT,
    "arrived": ShipmentStatus.ARRIVED_PORT,
    "delivered": ShipmentStatus.DELIVERED,
    "collected": ShipmentStatus.PICKED_UP,
    "booked": ShipmentStatus.BOOKED,
}

TRANSPORT_MODE_MAP: Dict[str, TransportMode] = {
    "air": TransportMode.AIR,
    "maritime": TransportMode.SEA_FCL,
    "sea": TransportMode.SEA_FCL,
    "ocean": TransportMode.SEA_FCL,
    "road": TransportMode.ROAD,
    "truck": TransportMode.ROAD,
}

DOCUMENT_TYPE_MAP: Dict[str, DocumentType] = {
    # Bill of lading
    "bill_of_lading": DocumentType.BILL_OF_LADING,
    "bol": DocumentType.BILL_OF_LADING,
    "bl": DocumentType.BILL_OF_LADING,
    "master_bill_of_lading": DocumentType.BILL_OF_LADING,
    "house_bill_of_lading": DocumentType.BILL_OF_LADING,
    # Airway bill
    "airway_bill": DocumentType.AIRWAY_BILL,
    "awb": DocumentType.AIRWAY_BILL,
    "air_waybill": DocumentType.AIRWAY_BILL,
    # Commercial invoice
    "commercial_invoice": DocumentType.COMMERCIAL_INVOICE,
    "invoice": DocumentType.COMMERCIAL_INVOICE,
    "ci": DocumentType.COMMERCIAL_INVOICE,
    # Packing list
    "packing_list": DocumentType.PACKING_LIST,
    "packing": DocumentType.PACKING_LIST,
    "pl": DocumentType.PACKING_LIST,
    # Certificate of origin
    "certificate_of_origin": DocumentType.CERTIFICATE_OF_ORIGIN,
    "coo": DocumentType.CERTIFICATE_OF_ORIGIN,
    "origin_certificate": DocumentType.CERTIFICATE_OF_ORIGIN,
    # Customs
    "customs_declaration": DocumentType.CUSTOMS_DECLARATION,
    "customs": DocumentType.CUSTOMS_DECLARATION,
    "customs_doc": DocumentType.CUSTOMS_DECLARATION,
    # Permits
    "import_permit": DocumentType.IMPORT_PERMIT,
    "export_permit": DocumentType.EXPORT_PERMIT,
    # Delivery
    "delivery_note": DocumentType.DELIVERY_NOTE,
    "delivery": DocumentType.DELIVERY_NOTE,
    "dn": DocumentType.DELIVERY_NOTE,
    # Health
    "health_certificate": DocumentType.HEALTH_CERTIFICATE,
    "phyto": DocumentType.HEALTH_CERTIFICATE,
    "phytosanitary": DocumentType.HEALTH_CERTIFICATE,
    # Insurance
    "insurance_certificate": DocumentType.INSURANCE_CERTIFICATE,
    "insurance": DocumentType.INSURANCE_CERTIFICATE,
    # Proof of delivery
    "proof_of_delivery": DocumentType.PROOF_OF_DELIVERY,
    "pod": DocumentType.PROOF_OF_DELIVERY,
}

INVOICE_STATUS_MAP: Dict[str, InvoiceStatus] = {
    "open": InvoiceStatus.OPEN,
    "paid": InvoiceStatus.PAID,
    "overdue": InvoiceStatus.OVERDUE,
}


def _normalize(value: Optional[str]) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip().lower()


def map_shipment_status(status: Optional[str]) -> ShipmentStatus:
    """Map a Hillebrand shipment status. Unknown -> in_transit."""
    return SHIPMENT_STATUS_MAP.get(_normalize(status), ShipmentStatus.IN_TRANSIT)


def map_transport_mode(modality: Optional[str]) -> TransportMode:
    """Map a Hillebrand main modality. Missing or unknown -> sea_fcl."""
    return TRANSPORT_MODE_MAP.get(_normalize(modality), TransportMode.SEA_FCL)


def map_document_type(document_type: Optional[str]) -> DocumentType:
    """Map a Hillebrand document type. Unknown -> other."""
    return DOCUMENT_TYPE_MAP.get(_normalize(document_type), DocumentType.OTHER)


def map_invoice_status(status: Optional[str]) -> InvoiceStatus:
    """Map a Hillebrand invoice status. Unknown -> open, never paid."""
    return INVOICE_STATUS_MAP.get(_normalize(status), InvoiceStatus.OPEN)


# =============================================================================
# Field Helpers
# =============================================================================

# Time, fraction and offset at the end of a timestamp (.1234567, +0000, +02)
_TIME_TAIL = re.compile(
    r"(?P<hms>\d{2}:\d{2}(?::\d{2})?)(?:\.(?P<frac>\d+))?(?:(?P<sign>[+-])(?P<hh>\d{2}):?(?P<mm>\d{2})?)?$"
)


def _normalize_timestamp(text: str) -> str:
    """Rewrite the time tail into the HH:MM:SS.ffffff+HH:MM form datetime.fromisoformat accepts."""
    match = _TIME_TAIL.search(text)
    if not match:
        return text

    tail = match.group("hms")
    if match.group("frac"):
        tail += "." + match.group("frac")[:6].ljust(6, "0")
    if match.group("sign"):
        tail += f"{match.group('sign')}{match.group('hh')}:{match.group('mm') or '00'}"
    return text[:match.start()] + tail


def parse_hb_date(value: Optional[str]) -> Optional[datetime]:
    """Parse a Hillebrand date or timestamp into naive UTC.

    Accepts ISO 8601 timestamps (with or without offset, including a
    trailing Z, compact +HHMM offsets and fractions of any length) and
    plain dates. Returns None for missing or unparseable input.
    """
    if not value or not isinstance(value, str):
        return None

    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    text = _normalize_timestamp(text)

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def extract_customer_reference(references: List[HBReference]) -> Optional[str]:
    """Prefer the serviceCustomer reference, then customer."""
    for role in ("serviceCustomer", "customer"):
        for ref in references:
            if ref.role == role and ref.reference:
                return ref.reference
    return None


def extract_bl_number(shipment: HBShipment) -> Optional[str]:
    return (
        shipment.bill_of_lading_number
        or shipment.bl_number
        or shipment.master_bill_number
        or shipment.house_bill_number
    )


@dataclass
class CargoTotals:
    total_cases: Optional[int] = None
    total_bottles: Optional[int] = None
    total_weight_kg: Optional[float] = None
    total_volume_m3: Optional[float] = None


def _is_unit(unit: Optional[str], *names: str) -> bool:
    return _normalize(unit) in names


def compute_cargo_totals(shipment: HBShipment) -> CargoTotals:
    """Sum cargo lines into cases, estimated bottles, kg and m3.

    Falls back to shipment-level totals when the cargo lines carry none.
    Zero totals are reported as None.
    """
    cases = 0.0
    bottles = 0.0
    weight_kg = 0.0
    volume_m3 = 0.0

    for item in shipment.cargo_lines:
        packages = item.number_of_packages or item.quantity or 0
        cases += packages
        if packages > 0:
            bottles += packages * BOTTLES_PER_CASE

        if item.gross_weight:
            if _is_unit(item.gross_weight_unit, "lb"):
                weight_kg += item.gross_weight * LB_TO_KG
            else:
                weight_kg += item.gross_weight

        if item.volume:
            if _is_unit(item.volume_unit, "cbf", "ft3"):
                volume_m3 += item.volume * CUBIC_FEET_TO_M3
            else:
                volume_m3 += item.volume

    if cases == 0 and shipment.number_of_packages:
        cases = shipment.number_of_packages
    if cases == 0 and shipment.number_of_pieces:
        cases = shipment.number_of_pieces
    if weight_kg == 0 and shipment.total_weight:
        weight_kg = shipment.total_weight
        if _is_unit(shipment.total_weight_unit, "lb"):
            weight_kg *= LB_TO_KG
    if volume_m3 == 0 and shipment.total_volume:
        volume_m3 = shipment.total_volume

    return CargoTotals(
        total_cases=int(round(cases)) if cases > 0 else None,
        total_bottles=int(round(bottles)) if bottles > 0 else None,
        total_weight_kg=round(weight_kg, 2) if weight_kg > 0 else None,
        total_volume_m3=round(volume_m3, 3) if volume_m3 > 0 else None,
    )


# =============================================================================
# Record Mapping
# =============================================================================

@dataclass
class DestinationDefaults:
    country: str = "UAE"
    city: str = "Ras Al Khaimah"
    warehouse: str = "RAK Port"


def map_shipment(
    shipment: HBShipment,
    shipment_number: str,
    synced_at: datetime,
    destination: Optional[DestinationDefaults] = None,
) -> LocalShipment:
    """Map a Hillebrand shipment onto a local shipment record.

    Args:
        shipment: Validated Hillebrand shipment (detail payload preferred)
        shipment_number: Local number; the existing one for updates
        synced_at: Timestamp stored as last_synced_at
        destination: Fallbacks for a missing destination location
    """
    destination = destination or DestinationDefaults()
    origin = shipment.ship_from_location
    ship_to = shipment.ship_to_location
    totals = compute_cargo_totals(shipment)

    return LocalShipment(
        external_shipment_id=shipment.id,
        shipment_number=shipment_number,
        type=ShipmentType.INBOUND,
        transport_mode=map_transport_mode(shipment.main_modality),
        status=map_shipment_status(shipment.status),
        external_reference=extract_customer_reference(shipment.references),
        origin_country=(origin.country_name or origin.country_code) if origin else None,
        origin_city=origin.city_name if origin else None,
        destination_country=(ship_to.country_name or ship_to.country_code if ship_to else None) or destination.country,
        destination_city=(ship_to.city_name if ship_to else None) or destination.city,
        destination_warehouse=destination.warehouse,
        carrier_name=CARRIER_NAME,
        container_number=shipment.equipment.number if shipment.equipment else None,
        bl_number=extract_bl_number(shipment),
        etd=parse_hb_date(shipment.etd or shipment.estimated_departure_date),
        atd=parse_hb_date(shipment.atd or shipment.actual_departure_date),
        eta=parse_hb_date(shipment.eta or shipment.estimated_arrival_date),
        ata=parse_hb_date(shipment.ata or shipment.actual_arrival_date),
        delivered_at=parse_hb_date(shipment.delivered_date),
        total_cases=totals.total_cases,
        total_bottles=totals.total_bottles,
        total_weight_kg=totals.total_weight_kg,
        total_volume_m3=totals.total_volume_m3,
        co2_emissions_tonnes=shipment.emission.value if shipment.emission else None,
        partner_notes=f"Supplier: {shipment.ship_from_party_name or 'Unknown'}",
        last_synced_at=synced_at,
    )


def map_document(document: HBDocument, shipment_id: int, synced_at: datetime) -> LocalDocument:
    return LocalDocument(
        external_document_id=document.id,
        shipment_id=shipment_id,
        document_type=map_document_type(document.document_type),
        document_number=document.document_number,
        file_name=document.file_name or f"document_{document.id}.pdf",
        file_url=document.download_url or "",
        download_url=document.download_url,
        file_size=document.file_size,
        mime_type=document.mime_type or "application/pdf",
        uploaded_by=None,
        last_synced_at=synced_at,
    )


def map_invoice(invoice: HBInvoice, synced_at: datetime) -> LocalInvoice:
    """Map a Hillebrand invoice onto a local invoice record.

    paid_amount is always total - open from this snapshot. paid_at is set
    only when the status normalizes to paid.

    Raises:
        RecordMappingError: If the invoice date is missing or unparseable
    """
    invoice_date = parse_hb_date(invoice.invoice_date)
    if invoice_date is None:
        raise RecordMappingError("Invalid invoice date")

    status = map_invoice_status(invoice.invoice_status)

    return LocalInvoice(
        external_invoice_id=invoice.id,
        invoice_number=invoice.invoice_number,
        invoice_date=invoice_date,
        payment_due_date=parse_hb_date(invoice.payment_due_date),
        status=status,
        currency_code=invoice.currency_code or "USD",
        total_amount=invoice.total_amount,
        open_amount=invoice.open_amount,
        paid_amount=invoice.total_amount - invoice.open_amount,
        paid_at=synced_at if status == InvoiceStatus.PAID else None,
        last_synced_at=synced_at,
    )
