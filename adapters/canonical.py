"""Canonical POS entities every adapter produces, and the builders that make them.

Builders take the field dict the mapping engine extracted plus the record's
source index, so they plug straight in as a ``RecordBuilder``. Vendors
disagree on names (``posCode`` vs ``code`` vs ``id``), so each builder
looks at the usual aliases before falling back to an index-based code.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from possync.mapping.transforms import to_boolean, to_datetime, to_number


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

class POSDepartment(BaseModel):
    pos_code: str
    display_name: str
    is_taxable: bool = True
    minimum_age: Optional[int] = None
    is_lottery: bool = False
    is_active: bool = True
    sort_order: int = 0
    tax_rate_code: Optional[str] = None
    description: Optional[str] = None


class POSTenderType(BaseModel):
    pos_code: str
    display_name: str
    is_cash_equivalent: bool = False
    is_electronic: bool = False
    affects_cash_drawer: bool = False
    requires_reference: bool = False
    is_active: bool = True
    sort_order: int = 0
    description: Optional[str] = None


class POSCashier(BaseModel):
    pos_code: str
    first_name: str
    last_name: str = ""
    is_active: bool = True
    employee_id: Optional[str] = None


class POSTaxRate(BaseModel):
    pos_code: str
    display_name: str
    rate: float = Field(0.0, ge=0)  # decimal fraction, 0.0825 == 8.25%
    is_active: bool = True
    jurisdiction_code: Optional[str] = None
    description: Optional[str] = None


class POSTransactionLineItem(BaseModel):
    line_number: int
    item_code: Optional[str] = None
    description: str = ""
    department_code: Optional[str] = None
    quantity: float = 1.0
    unit_price: float = 0.0
    extended_price: float = 0.0
    tax_amount: float = 0.0
    is_void: bool = False


class POSTransactionPayment(BaseModel):
    tender_code: str
    tender_description: Optional[str] = None
    amount: float = 0.0
    reference_number: Optional[str] = None


class POSTransaction(BaseModel):
    transaction_id: str
    store_location_id: Optional[str] = None
    terminal_id: Optional[str] = None
    cashier_code: Optional[str] = None
    business_date: Optional[str] = None
    timestamp: Optional[datetime] = None
    transaction_type: str = "Sale"
    subtotal: float = 0.0
    tax_total: float = 0.0
    grand_total: float = 0.0
    line_items: list[POSTransactionLineItem] = Field(default_factory=list)
    payments: list[POSTransactionPayment] = Field(default_factory=list)


class POSAcknowledgmentError(BaseModel):
    code: str
    message: str = ""


class POSAcknowledgment(BaseModel):
    original_document_id: Optional[str] = None
    original_document_type: Optional[str] = None
    status: str = "Unknown"
    timestamp: Optional[datetime] = None
    records_processed: int = 0
    records_failed: int = 0
    errors: list[POSAcknowledgmentError] = Field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.status.lower() in ("accepted", "success", "ok")


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------

_AGE_RESTRICTED_WORDS = ("ALCOHOL", "BEER", "WINE", "LIQUOR", "SPIRITS",
                         "TOBACCO", "CIGARETTE", "CIGAR", "VAPE")
_LOTTERY_WORDS = ("LOTTERY", "LOTTO", "SCRATCH")


def _first(values: dict[str, Any], *names: str) -> Any:
    for name in names:
        value = values.get(name)
        if value not in (None, ""):
            return value
    return None


def _bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    parsed = to_boolean(value)
    return default if parsed is None else parsed


def _number(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    return to_number(value)


def _optional_str(value: Any) -> Optional[str]:
    return None if value in (None, "") else str(value)


def detect_minimum_age(name: str, explicit: Any = None) -> Optional[int]:
    """Explicit positive age wins; otherwise 21 for alcohol and tobacco names."""
    if explicit not in (None, ""):
        age = int(to_number(explicit))
        if age > 0:
            return age
    upper = name.upper()
    if any(word in upper for word in _AGE_RESTRICTED_WORDS):
        return 21
    return None


def is_lottery_name(name: str) -> bool:
    upper = name.upper()
    return any(word in upper for word in _LOTTERY_WORDS)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def build_department(values: dict[str, Any], index: int) -> POSDepartment:
    name = str(_first(values, "display_name", "name") or "")
    return POSDepartment(
        pos_code=str(_first(values, "pos_code", "code", "id") or f"DEPT_{index}"),
        display_name=name,
        is_taxable=_bool(values.get("is_taxable"), True),
        minimum_age=detect_minimum_age(name, values.get("minimum_age")),
        is_lottery=_bool(values.get("is_lottery")) or is_lottery_name(name),
        is_active=_bool(values.get("is_active"), True),
        sort_order=int(_number(values.get("sort_order"), index)),
        tax_rate_code=_optional_str(values.get("tax_rate_code")),
        description=_optional_str(values.get("description")),
    )


def build_tender_type(values: dict[str, Any], index: int) -> POSTenderType:
    name = str(_first(values, "display_name", "name") or f"Tender {index}")
    upper = name.upper()
    is_cash = "CASH" in upper
    is_card = any(word in upper for word in ("CREDIT", "DEBIT", "CARD"))
    is_check = "CHECK" in upper
    return POSTenderType(
        pos_code=str(_first(values, "pos_code", "code", "id") or f"TENDER_{index}"),
        display_name=name,
        is_cash_equivalent=_bool(values.get("is_cash_equivalent"), is_cash or is_check),
        is_electronic=_bool(values.get("is_electronic"), is_card),
        affects_cash_drawer=_bool(values.get("affects_cash_drawer"), is_cash),
        requires_reference=_bool(values.get("requires_reference"), is_card or is_check),
        is_active=_bool(values.get("is_active"), True),
        sort_order=int(_number(values.get("sort_order"), index)),
        description=_optional_str(values.get("description")),
    )


def build_cashier(values: dict[str, Any], index: int) -> POSCashier:
    """A single ``name`` is split on whitespace when first/last are absent."""
    first = str(values.get("first_name") or "")
    last = str(values.get("last_name") or "")
    if not first and values.get("name"):
        parts = str(values["name"]).split()
        first = parts[0] if parts else ""
        last = " ".join(parts[1:])
    employee_id = _optional_str(values.get("employee_id"))
    return POSCashier(
        pos_code=str(_first(values, "pos_code", "code", "id", "employee_id") or f"CASHIER_{index}"),
        first_name=first or "Unknown",
        last_name=last,
        is_active=_bool(values.get("is_active"), True),
        employee_id=employee_id,
    )


def build_tax_rate(values: dict[str, Any], index: int) -> POSTaxRate:
    rate = _number(values.get("rate"), 0.0)
    if rate > 1:
        rate = rate / 100
    return POSTaxRate(
        pos_code=str(_first(values, "pos_code", "code", "id") or f"TAX_{index}"),
        display_name=str(_first(values, "display_name", "name") or f"Tax Rate {index}"),
        rate=rate,
        is_active=_bool(values.get("is_active"), True),
        jurisdiction_code=_optional_str(values.get("jurisdiction_code")),
        description=_optional_str(values.get("description")),
    )


def build_line_item(values: dict[str, Any], index: int) -> POSTransactionLineItem:
    quantity = _number(values.get("quantity"), 1.0)
    unit_price = _number(values.get("unit_price"))
    return POSTransactionLineItem(
        line_number=int(_number(values.get("line_number"), index + 1)),
        item_code=_optional_str(values.get("item_code")),
        description=str(values.get("description") or ""),
        department_code=_optional_str(values.get("department_code")),
        quantity=quantity,
        unit_price=unit_price,
        extended_price=_number(values.get("extended_price"), quantity * unit_price),
        tax_amount=_number(values.get("tax_amount")),
        is_void=_bool(values.get("is_void")),
    )


def build_payment(values: dict[str, Any], index: int) -> POSTransactionPayment:
    return POSTransactionPayment(
        tender_code=str(values.get("tender_code") or f"TENDER_{index}"),
        tender_description=_optional_str(values.get("tender_description")),
        amount=_number(values.get("amount")),
        reference_number=_optional_str(values.get("reference_number")),
    )


def build_transaction(
    values: dict[str, Any],
    line_items: list[POSTransactionLineItem],
    payments: list[POSTransactionPayment],
) -> POSTransaction:
    stamp = values.get("timestamp")
    return POSTransaction(
        transaction_id=str(values["transaction_id"]),
        store_location_id=_optional_str(values.get("store_location_id")),
        terminal_id=_optional_str(values.get("terminal_id")),
        cashier_code=_optional_str(values.get("cashier_code")),
        business_date=_optional_str(values.get("business_date")),
        timestamp=stamp if isinstance(stamp, datetime) else (to_datetime(stamp) if stamp else None),
        transaction_type=str(values.get("transaction_type") or "Sale"),
        subtotal=_number(values.get("subtotal")),
        tax_total=_number(values.get("tax_total")),
        grand_total=_number(values.get("grand_total")),
        line_items=line_items,
        payments=payments,
    )
