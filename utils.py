from typing import Dict, List, Tuple

from pydantic import ValidationError

from models import LineItemForm
from tax_calc import LineItem, money

FIELD_LABELS = {
    "name": "Item name",
    "business_name": "Business name",
    "unit_price": "Price",
    "tax_rate": "GST rate",
    "state_code": "State code",
    "customer_id": "Customer",
    "items": "Items",
    "amount": "Payment amount",
}


def blank_item(gst_rate: float = 18.0) -> Dict:
    return {"name": "", "description": "", "quantity": 1.0, "unit_price": 0.0,
            "discount": 0.0, "tax_rate": float(gst_rate)}


def rows_to_line_items(rows: List[Dict]) -> List[LineItem]:
    """Form rows as engine input; rows are used as typed, validation comes later."""
    return [LineItem.from_mapping(r) for r in rows]


def error_messages(err: ValidationError, prefix: str = "") -> List[str]:
    messages = []
    for e in err.errors():
        loc = [str(p) for p in e["loc"]]
        field = loc[-1] if loc else ""
        label = FIELD_LABELS.get(field, field.replace("_", " ").capitalize())
        msg = e["msg"]
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
            messages.append(f"{prefix}{msg}")
        else:
            messages.append(f"{prefix}{label}: {msg}" if label else f"{prefix}{msg}")
    return messages


def validate_items(rows: List[Dict]) -> Tuple[List[LineItemForm], List[str]]:
    """Validate every row, collecting messages as "Item N: ..." instead of stopping at the first."""
    forms, errors = [], []
    if not rows:
        errors.append("Invoice must have at least one item")
    for i, row in enumerate(rows, start=1):
        try:
            forms.append(LineItemForm(**row))
        except ValidationError as e:
            errors.extend(error_messages(e, prefix=f"Item {i}: "))
    return forms, errors


def format_money(value, symbol: str = "₹") -> str:
    amount = money(value)
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"
