"""Test canonical entity builders and their naming heuristics."""
import pytest

from adapters.canonical import (
    build_cashier,
    build_department,
    build_line_item,
    build_payment,
    build_tax_rate,
    build_tender_type,
    build_transaction,
    detect_minimum_age,
)


def test_department_age_and_lottery_heuristics():
    beer = build_department({"pos_code": "10", "display_name": "Cold Beer"}, 0)
    assert beer.minimum_age == 21
    assert not beer.is_lottery

    scratch = build_department({"code": "20", "name": "Scratch Tickets"}, 1)
    assert scratch.pos_code == "20"
    assert scratch.is_lottery
    assert scratch.minimum_age is None
    assert scratch.sort_order == 1


def test_explicit_minimum_age_wins():
    assert detect_minimum_age("Cigarettes", 18) == 18
    assert detect_minimum_age("Cigarettes", "0") == 21
    assert detect_minimum_age("Snacks") is None


def test_department_code_fallback():
    dept = build_department({"display_name": "Misc", "is_active": "N"}, 4)
    assert dept.pos_code == "DEPT_4"
    assert dept.is_active is False
    assert dept.is_taxable is True


@pytest.mark.parametrize("name,cash,electronic,drawer,reference", [
    ("Cash", True, False, True, False),
    ("Credit Card", False, True, False, True),
    ("Personal Check", True, False, False, True),
    ("Gift Voucher", False, False, False, False),
])
def test_tender_heuristics(name, cash, electronic, drawer, reference):
    tender = build_tender_type({"pos_code": "T", "display_name": name}, 0)
    assert tender.is_cash_equivalent is cash
    assert tender.is_electronic is electronic
    assert tender.affects_cash_drawer is drawer
    assert tender.requires_reference is reference


def test_tender_explicit_flags_override_heuristics():
    tender = build_tender_type({"display_name": "Cash", "affects_cash_drawer": "no"}, 2)
    assert tender.pos_code == "TENDER_2"
    assert tender.affects_cash_drawer is False


def test_cashier_name_split():
    cashier = build_cashier({"employee_id": "E7", "name": "Jordan Lee Smith"}, 0)
    assert cashier.pos_code == "E7"
    assert cashier.first_name == "Jordan"
    assert cashier.last_name == "Lee Smith"

    unnamed = build_cashier({}, 3)
    assert unnamed.pos_code == "CASHIER_3"
    assert unnamed.first_name == "Unknown"


def test_tax_rate_percentage_is_converted():
    assert build_tax_rate({"code": "T1", "rate": "8.25"}, 0).rate == pytest.approx(0.0825)
    assert build_tax_rate({"code": "T2", "rate": 0.06}, 0).rate == pytest.approx(0.06)
    assert build_tax_rate({}, 5).pos_code == "TAX_5"


def test_transaction_assembly():
    items = [
        build_line_item({"item_code": "SKU1", "quantity": "2", "unit_price": "1.50"}, 0),
        build_line_item({"line_number": "7", "extended_price": "4.00"}, 1),
    ]
    payments = [build_payment({"tender_code": "CASH", "amount": "7.00"}, 0)]
    txn = build_transaction(
        {"transaction_id": 1001, "timestamp": "2026-10-17T09:30:00", "grand_total": "7.00"},
        items,
        payments,
    )
    assert txn.transaction_id == "1001"
    assert txn.transaction_type == "Sale"
    assert txn.timestamp.hour == 9
    assert txn.line_items[0].extended_price == 3.0
    assert txn.line_items[0].line_number == 1
    assert txn.line_items[1].line_number == 7
    assert txn.payments[0].amount == 7.0
