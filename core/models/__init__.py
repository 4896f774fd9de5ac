"""Core data models - provider-neutral local logistics types.

This package contains the local record models and enumerations that are
intentionally independent of the Hillebrand API schema.
"""

from core.models.logistics import (
    # Enumerations
    ShipmentStatus,
    ShipmentType,
    TransportMode,
    DocumentType,
    InvoiceStatus,
    LinkPolicy,
    SyncAction,

    # Records
    LocalShipment,
    LocalDocument,
    LocalInvoice,
    InvoiceShipmentLink,
)

__all__ = [
    "ShipmentStatus",
    "ShipmentType",
    "TransportMode",
    "DocumentType",
    "InvoiceStatus",
    "LinkPolicy",
    "SyncAction",
    "LocalShipment",
    "LocalDocument",
    "LocalInvoice",
    "InvoiceShipmentLink",
]
