"""Logistics Database Operations.

This module handles all database operations for the logistics store:
- Schema initialization
- External-ID keyed lookups, inserts and updates for shipments,
  documents and invoices
- Invoice-shipment link checks and inserts

Invoice amounts are stored as TEXT and read back as exact Decimals.

Every sqlite3 failure is re-raised as PersistenceError so reconcilers can
treat it as a record-level error.
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from pydantic import BaseModel

from connectors.hillebrand.hb_errors import PersistenceError
from core.config import DEFAULT_DB_PATH
from core.models.logistics import (
    InvoiceShipmentLink,
    LocalDocument,
    LocalInvoice,
    LocalShipment,
)
from core.observability.logging import get_logger

logger = get_logger(__name__)


SHIPMENT_COLUMNS = (
    "external_shipment_id", "shipment_number", "type", "transport_mode", "status",
    "external_reference", "origin_country", "origin_city", "destination_country",
    "destination_city", "destination_warehouse", "carrier_name", "container_number",
    "bl_number", "etd", "atd", "eta", "ata", "delivered_at", "total_cases",
    "total_bottles", "total_weight_kg", "total_volume_m3", "co2_emissions_tonnes",
    "partner_notes", "last_synced_at",
)

DOCUMENT_COLUMNS = (
    "external_document_id", "shipment_id", "document_type", "document_number",
    "file_name", "file_url", "download_url", "file_size", "mime_type",
    "uploaded_by", "last_synced_at",
)

INVOICE_COLUMNS = (
    "external_invoice_id", "invoice_number", "invoice_date", "payment_due_date",
    "status", "currency_code", "total_amount", "open_amount", "paid_amount",
    "paid_at", "last_synced_at",
)


@contextmanager
def _connect(db_path: Path) -> Iterator[sqlite3.Connection]:
    """Open a connection, commit on success, always close.

    Raises:
        PersistenceError: Wrapping any sqlite3.Error
    """
    conn = None
    try:
        conn = sqlite3.connect(db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        yield conn
        conn.commit()
    except sqlite3.Error as e:
        if conn is not None:
            conn.rollback()
        raise PersistenceError(f"Database error: {e}") from e
    finally:
        if conn is not None:
            conn.close()


def _to_db(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def _values(record: BaseModel, columns: Sequence[str]) -> List[Any]:
    return [_to_db(getattr(record, column)) for column in columns]


def init_logistics_db(db_path: Path = DEFAULT_DB_PATH) -> None:
    """Initialize logistics tables.

    Creates:
    - logistics_shipments: unique external_shipment_id and shipment_number
    - logistics_documents: unique external_document_id, FK to shipments
    - logistics_invoices: unique external_invoice_id
    - logistics_invoice_shipments: invoice-shipment join

    Args:
        db_path: Path to SQLite database file
    """
    with _connect(db_path) as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS logistics_shipments (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                external_shipment_id INTEGER UNIQUE,
                shipment_number TEXT NOT NULL UNIQUE,
                type TEXT NOT NULL,
                transport_mode TEXT NOT NULL,
                status TEXT NOT NULL,
                external_reference TEXT,
                origin_country TEXT,
                origin_city TEXT,
                destination_country TEXT,
                destination_city TEXT,
                destination_warehouse TEXT,
                carrier_name TEXT,
                container_number TEXT,
                bl_number TEXT,
                etd TEXT,
                atd TEXT,
                eta TEXT,
                ata TEXT,
                delivered_at TEXT,
                total_cases INTEGER,
                total_bottles INTEGER,
                total_weight_kg REAL,
                total_volume_m3 REAL,
                co2_emissions_tonnes REAL,
                partner_notes TEXT,
                last_synced_at TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS logistics_documents (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                external_document_id INTEGER NOT NULL UNIQUE,
                shipment_id INTEGER NOT NULL REFERENCES logistics_shipments(id),
                document_type TEXT NOT NULL,
                document_number TEXT,
                file_name TEXT NOT NULL,
                file_url TEXT NOT NULL,
                download_url TEXT,
                file_size INTEGER,
                mime_type TEXT NOT NULL,
                uploaded_by TEXT,
                last_synced_at TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS logistics_invoices (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                external_invoice_id INTEGER NOT NULL UNIQUE,
                invoice_number TEXT NOT NULL,
                invoice_date TEXT NOT NULL,
                payment_due_date TEXT,
                status TEXT NOT NULL,
                currency_code TEXT NOT NULL,
                total_amount TEXT NOT NULL,
                open_amount TEXT NOT NULL,
                paid_amount TEXT NOT NULL,
                paid_at TEXT,
                last_synced_at TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS logistics_invoice_shipments (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                invoice_id INTEGER NOT NULL REFERENCES logistics_invoices(id),
                shipment_id INTEGER NOT NULL REFERENCES logistics_shipments(id),
                created_at TEXT NOT NULL,
                UNIQUE(invoice_id, shipment_id)
            )
        """)

        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_logistics_documents_shipment
            ON logistics_documents(shipment_id)
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_logistics_invoice_shipments_invoice
            ON logistics_invoice_shipments(invoice_id)
        """)

    logger.debug("Logistics tables initialized", extra_fields={"db_path": str(db_path)})


# =============================================================================
# Generic helpers
# =============================================================================

def _insert(table: str, columns: Sequence[str], record: BaseModel, db_path: Path) -> int:
    now = datetime.utcnow().isoformat()
    placeholders = ", ".join("?" for _ in range(len(columns) + 2))
    with _connect(db_path) as conn:
        cursor = conn.execute(
            f"INSERT INTO {table} ({', '.join(columns)}, created_at, updated_at) VALUES ({placeholders})",
            _values(record, columns) + [now, now],
        )
        return cursor.lastrowid


def _update(table: str, columns: Sequence[str], record_id: int, record: BaseModel, db_path: Path) -> None:
    now = datetime.utcnow().isoformat()
    assignments = ", ".join(f"{column} = ?" for column in columns)
    with _connect(db_path) as conn:
        cursor = conn.execute(
            f"UPDATE {table} SET {assignments}, updated_at = ? WHERE id = ?",
            _values(record, columns) + [now, record_id],
        )
        if cursor.rowcount == 0:
            raise PersistenceError(f"No {table} row with id {record_id}")


def _fetch_one(query: str, params: Sequence[Any], db_path: Path) -> Optional[Dict[str, Any]]:
    with _connect(db_path) as conn:
        row = conn.execute(query, params).fetchone()
    return dict(row) if row else None


# =============================================================================
# Shipments
# =============================================================================

def get_shipment_by_external_id(external_id: int, db_path: Path = DEFAULT_DB_PATH) -> Optional[LocalShipment]:
    row = _fetch_one(
        "SELECT * FROM logistics_shipments WHERE external_shipment_id = ?",
        (external_id,),
        db_path,
    )
    return LocalShipment.model_validate(row) if row else None


def insert_shipment(shipment: LocalShipment, db_path: Path = DEFAULT_DB_PATH) -> LocalShipment:
    """Insert a new shipment.

    Returns:
        The shipment with id populated

    Raises:
        PersistenceError: Including a duplicate external ID or shipment number
    """
    shipment_id = _insert("logistics_shipments", SHIPMENT_COLUMNS, shipment, db_path)
    return shipment.model_copy(update={"id": shipment_id})


def update_shipment(shipment_id: int, shipment: LocalShipment, db_path: Path = DEFAULT_DB_PATH) -> LocalShipment:
    """Overwrite all mapped fields of an existing shipment row."""
    _update("logistics_shipments", SHIPMENT_COLUMNS, shipment_id, shipment, db_path)
    return shipment.model_copy(update={"id": shipment_id})


def list_synced_shipments(db_path: Path = DEFAULT_DB_PATH) -> List[LocalShipment]:
    """All shipments that carry an external shipment ID, oldest first."""
    with _connect(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM logistics_shipments WHERE external_shipment_id IS NOT NULL ORDER BY id"
        ).fetchall()
    return [LocalShipment.model_validate(dict(row)) for row in rows]


def get_shipment_id_map(db_path: Path = DEFAULT_DB_PATH) -> Dict[int, int]:
    """Map every external shipment ID to its local shipment ID (single query)."""
    with _connect(db_path) as conn:
        rows = conn.execute(
            "SELECT id, external_shipment_id FROM logistics_shipments WHERE external_shipment_id IS NOT NULL"
        ).fetchall()
    return {row["external_shipment_id"]: row["id"] for row in rows}


def get_max_shipment_sequence(prefix: str, db_path: Path = DEFAULT_DB_PATH) -> int:
    """Highest numeric suffix among shipment numbers of the form <prefix>-NNNN.

    Returns 0 when no number with that prefix exists.
    """
    with _connect(db_path) as conn:
        rows = conn.execute(
            "SELECT shipment_number FROM logistics_shipments WHERE shipment_number LIKE ?",
            (f"{prefix}-%",),
        ).fetchall()

    highest = 0
    for row in rows:
        suffix = row["shipment_number"][len(prefix) + 1:]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest


def count_shipments(db_path: Path = DEFAULT_DB_PATH) -> int:
    with _connect(db_path) as conn:
        return conn.execute("SELECT COUNT(*) FROM logistics_shipments").fetchone()[0]


# =============================================================================
# Documents
# =============================================================================

def get_document_by_external_id(external_id: int, db_path: Path = DEFAULT_DB_PATH) -> Optional[LocalDocument]:
    row = _fetch_one(
        "SELECT * FROM logistics_documents WHERE external_document_id = ?",
        (external_id,),
        db_path,
    )
    return LocalDocument.model_validate(row) if row else None


def insert_document(document: LocalDocument, db_path: Path = DEFAULT_DB_PATH) -> LocalDocument:
    document_id = _insert("logistics_documents", DOCUMENT_COLUMNS, document, db_path)
    return document.model_copy(update={"id": document_id})


def update_document(document_id: int, document: LocalDocument, db_path: Path = DEFAULT_DB_PATH) -> LocalDocument:
    _update("logistics_documents", DOCUMENT_COLUMNS, document_id, document, db_path)
    return document.model_copy(update={"id": document_id})


def list_documents_for_shipment(shipment_id: int, db_path: Path = DEFAULT_DB_PATH) -> List[LocalDocument]:
    with _connect(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM logistics_documents WHERE shipment_id = ? ORDER BY id",
            (shipment_id,),
        ).fetchall()
    return [LocalDocument.model_validate(dict(row)) for row in rows]


# =============================================================================
# Invoices
# =============================================================================

def get_invoice_by_external_id(external_id: int, db_path: Path = DEFAULT_DB_PATH) -> Optional[LocalInvoice]:
    row = _fetch_one(
        "SELECT * FROM logistics_invoices WHERE external_invoice_id = ?",
        (external_id,),
        db_path,
    )
    return LocalInvoice.model_validate(row) if row else None


def insert_invoice(invoice: LocalInvoice, db_path: Path = DEFAULT_DB_PATH) -> LocalInvoice:
    invoice_id = _insert("logistics_invoices", INVOICE_COLUMNS, invoice, db_path)
    return invoice.model_copy(update={"id": invoice_id})


def update_invoice(invoice_id: int, invoice: LocalInvoice, db_path: Path = DEFAULT_DB_PATH) -> LocalInvoice:
    _update("logistics_invoices", INVOICE_COLUMNS, invoice_id, invoice, db_path)
    return invoice.model_copy(update={"id": invoice_id})


def invoice_link_exists(
    invoice_id: int,
    shipment_id: Optional[int] = None,
    db_path: Path = DEFAULT_DB_PATH,
) -> bool:
    """Check for an existing link.

    Args:
        invoice_id: Local invoice ID
        shipment_id: When given, only a link to this shipment counts;
            when None, any link for the invoice counts
    """
    if shipment_id is None:
        row = _fetch_one(
            "SELECT id FROM logistics_invoice_shipments WHERE invoice_id = ? LIMIT 1",
            (invoice_id,),
            db_path,
        )
    else:
        row = _fetch_one(
            "SELECT id FROM logistics_invoice_shipments WHERE invoice_id = ? AND shipment_id = ? LIMIT 1",
            (invoice_id, shipment_id),
            db_path,
        )
    return row is not None


def create_invoice_link(invoice_id: int, shipment_id: int, db_path: Path = DEFAULT_DB_PATH) -> InvoiceShipmentLink:
    now = datetime.utcnow()
    with _connect(db_path) as conn:
        cursor = conn.execute(
            "INSERT INTO logistics_invoice_shipments (invoice_id, shipment_id, created_at) VALUES (?, ?, ?)",
            (invoice_id, shipment_id, now.isoformat()),
        )
        link_id = cursor.lastrowid
    return InvoiceShipmentLink(id=link_id, invoice_id=invoice_id, shipment_id=shipment_id, created_at=now)


def list_invoice_links(invoice_id: int, db_path: Path = DEFAULT_DB_PATH) -> List[InvoiceShipmentLink]:
    with _connect(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM logistics_invoice_shipments WHERE invoice_id = ? ORDER BY id",
            (invoice_id,),
        ).fetchall()
    return [InvoiceShipmentLink.model_validate(dict(row)) for row in rows]
