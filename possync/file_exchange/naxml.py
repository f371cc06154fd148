"""
POSSync NAXML Documents.

Conventions for NAXML batch files exchanged through Import/Export:
- Document type detection from the root element name
- File patterns per entity type
- Export filename prefixes per document type
- A builder for maintenance documents the framework writes to Import/
"""
from __future__ import annotations
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable
import xml.etree.ElementTree as ET

from possync.errors import ErrorCode, POSAdapterError
from possync.mapping.xml_path import parse_xml

NAXML_NAMESPACES: dict[str, str] = {
    "3.2": "http://www.naxml.org/POSBO/Vocabulary/2003-10-16",
    "3.4": "http://www.naxml.org/POSBO/Vocabulary/2003-10-16",
    "4.0": "http://www.naxml.org/POSBO/Vocabulary/2020-01-01",
}


class NAXMLDocumentType(str, Enum):
    TRANSACTION = "TransactionDocument"
    DEPARTMENT_MAINTENANCE = "DepartmentMaintenance"
    TENDER_MAINTENANCE = "TenderMaintenance"
    TAX_RATE_MAINTENANCE = "TaxRateMaintenance"
    PRICE_BOOK_MAINTENANCE = "PriceBookMaintenance"
    EMPLOYEE_MAINTENANCE = "EmployeeMaintenance"
    INVENTORY_MOVEMENT = "InventoryMovement"
    ACKNOWLEDGMENT = "Acknowledgment"


# Export filename prefix -> document type written under that prefix.
EXPORT_PREFIXES: dict[str, NAXMLDocumentType] = {
    "DeptMaint": NAXMLDocumentType.DEPARTMENT_MAINTENANCE,
    "TenderMaint": NAXMLDocumentType.TENDER_MAINTENANCE,
    "TaxMaint": NAXMLDocumentType.TAX_RATE_MAINTENANCE,
    "PriceBook": NAXMLDocumentType.PRICE_BOOK_MAINTENANCE,
    "EmpMaint": NAXMLDocumentType.EMPLOYEE_MAINTENANCE,
}

# Files the POS drops into Export/, per entity type.
FILE_PATTERNS: dict[str, tuple[str, ...]] = {
    "departments": ("DeptMaint*.xml", "Department*.xml"),
    "tender_types": ("TenderMaint*.xml", "MOP*.xml"),
    "cashiers": ("EmpMaint*.xml", "Employee*.xml", "Cashier*.xml"),
    "tax_rates": ("TaxMaint*.xml", "TaxRate*.xml"),
    "transactions": ("TLog*.xml", "Trans*.xml"),
    "acknowledgments": ("Ack*.xml", "*_Ack.xml"),
}

# Child containers for each maintenance document the builder writes.
_MAINTENANCE_LAYOUT: dict[NAXMLDocumentType, tuple[str, str]] = {
    NAXMLDocumentType.DEPARTMENT_MAINTENANCE: ("Departments", "Department"),
    NAXMLDocumentType.TENDER_MAINTENANCE: ("Tenders", "Tender"),
    NAXMLDocumentType.TAX_RATE_MAINTENANCE: ("TaxRates", "TaxRate"),
    NAXMLDocumentType.PRICE_BOOK_MAINTENANCE: ("Items", "Item"),
    NAXMLDocumentType.EMPLOYEE_MAINTENANCE: ("Employees", "Employee"),
}


def prefix_for(document_type: NAXMLDocumentType) -> str:
    for prefix, doc_type in EXPORT_PREFIXES.items():
        if doc_type is document_type:
            return prefix
    raise ValueError(f"No export prefix for {document_type.value}")


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------

def detect_document_type(root: ET.Element) -> NAXMLDocumentType:
    """Match the root element (e.g. ``NAXMLDepartmentMaintenance``) to a type."""
    for doc_type in NAXMLDocumentType:
        if doc_type.value in root.tag:
            return doc_type
    raise POSAdapterError(
        f"Unsupported NAXML document type: {root.tag}",
        422,
        ErrorCode.UNSUPPORTED_DOCUMENT_TYPE,
        details={"root_element": root.tag},
    )


def parse_document(content: str | bytes) -> tuple[NAXMLDocumentType, ET.Element]:
    root = parse_xml(content)
    return detect_document_type(root), root


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

def _text(value: Any) -> str:
    if isinstance(value, bool):
        return "Y" if value else "N"
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _append(parent: ET.Element, name: str, value: Any) -> None:
    if value is None:
        return
    child = ET.SubElement(parent, name)
    child.text = _text(value)


def build_maintenance_document(
    document_type: NAXMLDocumentType,
    store_location_id: str,
    records: Iterable[dict[str, Any]],
    version: str = "3.4",
    maintenance_type: str = "Full",
    maintenance_date: datetime | None = None,
) -> bytes:
    """Serialize a maintenance document.

    Each record is a flat mapping of element name to value; keys starting
    with ``@`` become attributes (``{"@Code": "10", "Description": "Fuel"}``).
    Booleans are written as Y/N and ``None`` values are omitted.
    """
    if document_type not in _MAINTENANCE_LAYOUT:
        raise ValueError(f"{document_type.value} is not a maintenance document")
    container_name, element_name = _MAINTENANCE_LAYOUT[document_type]

    root = ET.Element(
        f"NAXML{document_type.value}",
        {"version": version, "xmlns": NAXML_NAMESPACES.get(version, NAXML_NAMESPACES["3.4"])},
    )
    header = ET.SubElement(root, "MaintenanceHeader")
    _append(header, "StoreLocationID", store_location_id)
    _append(header, "MaintenanceDate", maintenance_date or datetime.now(timezone.utc))
    _append(header, "MaintenanceType", maintenance_type)

    container = ET.SubElement(root, container_name)
    for record in records:
        attrs = {k[1:]: _text(v) for k, v in record.items() if k.startswith("@") and v is not None}
        element = ET.SubElement(container, element_name, attrs)
        for name, value in record.items():
            if not name.startswith("@"):
                _append(element, name, value)

    ET.indent(root)
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)
