from decimal import Decimal

from pydantic import ValidationError

from models import BusinessProfile
from tax_calc import compute_invoice_totals
from utils import blank_item, error_messages, format_money, rows_to_line_items, validate_items


def test_blank_item_defaults():
    row = blank_item(12)
    assert row["quantity"] == 1.0
    assert row["tax_rate"] == 12.0
    assert row["name"] == ""


def test_rows_feed_engine_before_validation():
    rows = [blank_item(), {**blank_item(), "name": "Desk", "unit_price": 1000.0}]
    totals = compute_invoice_totals(rows_to_line_items(rows))
    assert totals.grand_total == Decimal("1180")


def test_validate_items_collects_every_row_error():
    rows = [
        {**blank_item(), "name": "Desk", "unit_price": 1000.0},
        {**blank_item(), "name": "", "unit_price": 0.0},
        {**blank_item(), "name": "Chair", "quantity": 0.0, "unit_price": 10.0},
    ]
    forms, errors = validate_items(rows)
    assert len(forms) == 1
    assert any(e.startswith("Item 2: Item name") for e in errors)
    assert any(e.startswith("Item 2: Price") for e in errors)
    assert any(e.startswith("Item 3: Quantity") for e in errors)


def test_validate_items_requires_rows():
    assert validate_items([]) == ([], ["Invoice must have at least one item"])


def test_error_messages_labels_fields():
    try:
        BusinessProfile(business_name="Acme", address="Pune", state_code="x", phone="8207050123")
    except ValidationError as e:
        messages = error_messages(e)
    assert len(messages) == 1
    assert messages[0].startswith("State code:")


def test_format_money():
    assert format_money(Decimal("23010")) == "₹23,010.00"
    assert format_money(-40, "Rs.") == "-Rs.40.00"
    assert format_money("1234.565") == "₹1,234.57"
