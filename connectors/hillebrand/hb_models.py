"""Hillebrand data models.

These are Hillebrand-specific models that map to the Hillebrand API schema.
They are separate from the local logistics models in /core/models/.

Only fields this engine consumes are declared; anything else in the
payload is ignored.
"""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from core.models.logistics import MoneyValue


# =============================================================================
# Hillebrand API Models
# =============================================================================

class HBBaseModel(BaseModel):
    """Base model for Hillebrand API entities."""

    class Config:
        populate_by_name = True


class HBLocation(HBBaseModel):
    city_name: Optional[str] = Field(None, alias="cityName")
    country_code: Optional[str] = Field(None, alias="countryCode")
    country_name: Optional[str] = Field(None, alias="countryName")
    unlocode: Optional[str] = Field(None, alias="unlocode")


class HBReference(HBBaseModel):
    reference: Optional[str] = Field(None, alias="reference")
    role: Optional[str] = Field(None, alias="role")


class HBEquipment(HBBaseModel):
    number: Optional[str] = Field(None, alias="number")
    type: Optional[str] = Field(None, alias="type")
    seal_number: Optional[str] = Field(None, alias="sealNumber")


class HBEmission(HBBaseModel):
    value: Optional[float] = Field(None, alias="value")
    unit: Optional[str] = Field(None, alias="unit")
    type: Optional[str] = Field(None, alias="type")


class HBCargoItem(HBBaseModel):
    """A cargo line on a shipment detail."""
    id: Optional[int] = Field(None, alias="id")
    description: Optional[str] = Field(None, alias="description")
    product_name: Optional[str] = Field(None, alias="productName")
    quantity: Optional[float] = Field(None, alias="quantity")
    quantity_unit: Optional[str] = Field(None, alias="quantityUnit")
    number_of_packages: Optional[float] = Field(None, alias="numberOfPackages")
    package_type: Optional[str] = Field(None, alias="packageType")
    gross_weight: Optional[float] = Field(None, alias="grossWeight")
    gross_weight_unit: Optional[str] = Field(None, alias="grossWeightUnit")
    net_weight: Optional[float] = Field(None, alias="netWeight")
    volume: Optional[float] = Field(None, alias="volume")
    volume_unit: Optional[str] = Field(None, alias="volumeUnit")
    hs_code: Optional[str] = Field(None, alias="hsCode")


class HBVessel(HBBaseModel):
    name: Optional[str] = Field(None, alias="name")
    imo_number: Optional[str] = Field(None, alias="imoNumber")
    voyage_number: Optional[str] = Field(None, alias="voyageNumber")
    flag: Optional[str] = Field(None, alias="flag")


class HBEvent(HBBaseModel):
    """Tracking event for a shipment.

    Maps to: /shipments/{id}/events
    """
    id: Optional[int] = Field(None, alias="id")
    event_type: Optional[str] = Field(None, alias="eventType")
    event_date_time: Optional[str] = Field(None, alias="eventDateTime")
    location: Optional[HBLocation] = Field(None, alias="location")
    description: Optional[str] = Field(None, alias="description")
    vessel: Optional[HBVessel] = Field(None, alias="vessel")


class HBDocument(HBBaseModel):
    """Document attached to a shipment.

    Maps to: /shipments/{id}/documents
    """
    id: int = Field(..., alias="id")
    document_type: Optional[str] = Field(None, alias="documentType")
    document_number: Optional[str] = Field(None, alias="documentNumber")
    file_name: Optional[str] = Field(None, alias="fileName")
    file_size: Optional[int] = Field(None, alias="fileSize")
    mime_type: Optional[str] = Field(None, alias="mimeType")
    uploaded_at: Optional[str] = Field(None, alias="uploadedAt")
    download_url: Optional[str] = Field(None, alias="downloadUrl")


class HBShipment(HBBaseModel):
    """Hillebrand shipment, as returned by the list or detail endpoint.

    Maps to: /shipments and /shipments/{id}

    The API uses both short (etd) and long (estimatedDepartureDate) names
    for timeline dates depending on the endpoint; both are declared.
    """
    id: int = Field(..., alias="id")
    status: Optional[str] = Field(None, alias="status")
    ship_from_party_name: Optional[str] = Field(None, alias="shipFromPartyName")
    ship_from_location: Optional[HBLocation] = Field(None, alias="shipFromLocation")
    ship_to_party_name: Optional[str] = Field(None, alias="shipToPartyName")
    ship_to_location: Optional[HBLocation] = Field(None, alias="shipToLocation")
    main_modality: Optional[str] = Field(None, alias="mainModality")
    references: List[HBReference] = Field(default_factory=list, alias="references")
    equipment: Optional[HBEquipment] = Field(None, alias="equipment")
    emission: Optional[HBEmission] = Field(None, alias="emission")
    created_at: Optional[str] = Field(None, alias="createdAt")
    updated_at: Optional[str] = Field(None, alias="updatedAt")

    # Timeline
    estimated_departure_date: Optional[str] = Field(None, alias="estimatedDepartureDate")
    actual_departure_date: Optional[str] = Field(None, alias="actualDepartureDate")
    estimated_arrival_date: Optional[str] = Field(None, alias="estimatedArrivalDate")
    actual_arrival_date: Optional[str] = Field(None, alias="actualArrivalDate")
    delivered_date: Optional[str] = Field(None, alias="deliveredDate")
    etd: Optional[str] = Field(None, alias="etd")
    atd: Optional[str] = Field(None, alias="atd")
    eta: Optional[str] = Field(None, alias="eta")
    ata: Optional[str] = Field(None, alias="ata")

    # Cargo summary
    total_weight: Optional[float] = Field(None, alias="totalWeight")
    total_weight_unit: Optional[str] = Field(None, alias="totalWeightUnit")
    total_volume: Optional[float] = Field(None, alias="totalVolume")
    total_volume_unit: Optional[str] = Field(None, alias="totalVolumeUnit")
    number_of_packages: Optional[float] = Field(None, alias="numberOfPackages")
    number_of_pieces: Optional[float] = Field(None, alias="numberOfPieces")

    # Detailed cargo (field name varies)
    cargo: Optional[List[HBCargoItem]] = Field(None, alias="cargo")
    cargo_items: Optional[List[HBCargoItem]] = Field(None, alias="cargoItems")
    items: Optional[List[HBCargoItem]] = Field(None, alias="items")

    vessel: Optional[HBVessel] = Field(None, alias="vessel")

    # Bill of lading
    bill_of_lading_number: Optional[str] = Field(None, alias="billOfLadingNumber")
    bl_number: Optional[str] = Field(None, alias="blNumber")
    master_bill_number: Optional[str] = Field(None, alias="masterBillNumber")
    house_bill_number: Optional[str] = Field(None, alias="houseBillNumber")

    @property
    def cargo_lines(self) -> List[HBCargoItem]:
        """First non-empty of cargo, cargoItems, items."""
        return self.cargo or self.cargo_items or self.items or []


class HBShipmentReference(HBBaseModel):
    id: int = Field(..., alias="id")
    reference: Optional[str] = Field(None, alias="reference")


class HBInvoice(HBBaseModel):
    """Hillebrand invoice.

    Maps to: /invoices and /invoices/{id}
    """
    id: int = Field(..., alias="id")
    invoice_number: str = Field(..., alias="invoiceNumber")
    invoice_date: Optional[str] = Field(None, alias="invoiceDate")
    payment_due_date: Optional[str] = Field(None, alias="paymentDueDate")
    invoice_status: Optional[str] = Field(None, alias="invoiceStatus")
    currency_code: Optional[str] = Field(None, alias="currencyCode")
    total_amount: MoneyValue = Field(..., alias="totalAmount")
    open_amount: MoneyValue = Field(Decimal("0"), alias="openAmount")
    shipment_references: List[HBShipmentReference] = Field(default_factory=list, alias="shipmentReferences")


class HBInvoiceLine(HBBaseModel):
    """Maps to: /invoices/{id}/lines"""
    id: Optional[int] = Field(None, alias="id")
    description: Optional[str] = Field(None, alias="description")
    quantity: Optional[float] = Field(None, alias="quantity")
    unit_price: Optional[MoneyValue] = Field(None, alias="unitPrice")
    amount: Optional[MoneyValue] = Field(None, alias="amount")
    currency_code: Optional[str] = Field(None, alias="currencyCode")
