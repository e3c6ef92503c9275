from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Tuple

ZERO = Decimal("0")
HUNDRED = Decimal("100")
TWO_PLACES = Decimal("0.01")


class DiscountMode(str, Enum):
    PERCENT = "PERCENT"
    ABSOLUTE = "ABSOLUTE"


class Jurisdiction(str, Enum):
    INTRA = "INTRA"  # CGST + SGST
    INTER = "INTER"  # IGST


class OverallDiscountStage(str, Enum):
    POST_TAX = "POST_TAX"
    PRE_TAX = "PRE_TAX"


class PaymentStatus(str, Enum):
    DUE = "DUE"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


def money(val) -> Decimal:
    """Round to 2 decimals consistently for money values."""
    return to_decimal(val).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_decimal(val, default: Decimal = ZERO) -> Decimal:
    """Coerce form input to Decimal; absent or unparsable values give ``default``."""
    if val is None or val == "":
        return default
    if isinstance(val, Decimal):
        d = val
    else:
        try:
            # str() keeps 0.1 as 0.1 instead of the binary float expansion
            d = Decimal(str(val).strip())
        except (InvalidOperation, ValueError):
            return default
    if not d.is_finite():
        return default
    return d


def _non_negative(val, default: Decimal = ZERO) -> Decimal:
    d = to_decimal(val, default)
    return d if d > ZERO else ZERO


@dataclass(frozen=True)
class LineItem:
    name: str = ""
    quantity: Any = None
    unit_price: Any = None
    discount: Any = None
    tax_rate: Any = None
    description: str = ""

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "LineItem":
        return cls(
            name=str(row.get("name") or ""),
            quantity=row.get("quantity"),
            unit_price=row.get("unit_price"),
            discount=row.get("discount"),
            tax_rate=row.get("tax_rate"),
            description=str(row.get("description") or ""),
        )


@dataclass(frozen=True)
class LineAmounts:
    base_amount: Decimal
    discount_amount: Decimal
    line_subtotal: Decimal
    tax_amount: Decimal
    line_total_with_tax: Decimal


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    total_discount: Decimal
    total_tax: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    overall_discount: Decimal
    grand_total: Decimal
    jurisdiction: Jurisdiction
    lines: Tuple[LineAmounts, ...] = field(default_factory=tuple)

    def rounded(self) -> "InvoiceTotals":
        """Two-place snapshot for display and storage.

        Intra-state tax is two equal rounded halves and the total tax is
        their sum. The grand total is rebuilt from the rounded parts, so the
        printed subtotal, tax and discount always add up to it.
        """
        if self.jurisdiction is Jurisdiction.INTRA:
            cgst = sgst = money(self.total_tax / 2)
            igst = ZERO
            total_tax = cgst + sgst
        else:
            cgst = sgst = ZERO
            igst = total_tax = money(self.total_tax)
        subtotal = money(self.subtotal)
        # zero when the overall discount was already taken off the subtotal
        deducted = money(self.subtotal + self.total_tax - self.grand_total)
        lines = tuple(
            LineAmounts(*(money(v) for v in (
                line.base_amount,
                line.discount_amount,
                line.line_subtotal,
                line.tax_amount,
                line.line_total_with_tax,
            )))
            for line in self.lines
        )
        return InvoiceTotals(
            subtotal=subtotal,
            total_discount=money(self.total_discount),
            total_tax=total_tax,
            cgst=cgst,
            sgst=sgst,
            igst=igst,
            overall_discount=money(self.overall_discount),
            grand_total=subtotal + total_tax - deducted,
            jurisdiction=self.jurisdiction,
            lines=lines,
        )

    def as_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "total_discount": self.total_discount,
            "cgst": self.cgst,
            "sgst": self.sgst,
            "igst": self.igst,
            "total_tax": self.total_tax,
            "overall_discount": self.overall_discount,
            "grand_total": self.grand_total,
            "jurisdiction": self.jurisdiction.value,
        }


def compute_line_total(item: LineItem, discount_mode=DiscountMode.ABSOLUTE, clamp: bool = True) -> LineAmounts:
    """
    Compute the amounts for one invoice line.
    Missing or negative inputs are normalised instead of rejected:
    quantity defaults to 1, everything else to 0.
    """
    qty = _non_negative(item.quantity, default=Decimal("1"))
    unit_price = _non_negative(item.unit_price)
    discount = _non_negative(item.discount)
    rate = _non_negative(item.tax_rate)

    base = qty * unit_price
    if DiscountMode(discount_mode) is DiscountMode.PERCENT:
        discount_amount = base * discount / HUNDRED
    else:
        discount_amount = discount
    if clamp:
        discount_amount = min(max(discount_amount, ZERO), base)

    after_discount = base - discount_amount
    tax_amount = after_discount * rate / HUNDRED
    return LineAmounts(
        base_amount=base,
        discount_amount=discount_amount,
        line_subtotal=after_discount,
        tax_amount=tax_amount,
        line_total_with_tax=after_discount + tax_amount,
    )


def compute_invoice_totals(
    items: Iterable[LineItem],
    jurisdiction=Jurisdiction.INTRA,
    overall_discount=ZERO,
    discount_mode=DiscountMode.ABSOLUTE,
    overall_discount_stage=OverallDiscountStage.POST_TAX,
    clamp: bool = True,
) -> InvoiceTotals:
    """
    Aggregate line amounts into invoice totals.
    If jurisdiction is INTRA → CGST + SGST (half each)
    Else → IGST
    """
    jurisdiction = Jurisdiction(jurisdiction)
    lines = tuple(compute_line_total(it, discount_mode, clamp=clamp) for it in items)

    subtotal = sum((l.line_subtotal for l in lines), ZERO)
    total_discount = sum((l.discount_amount for l in lines), ZERO)
    total_tax = sum((l.tax_amount for l in lines), ZERO)

    if jurisdiction is Jurisdiction.INTRA:
        cgst = sgst = total_tax / 2
        igst = ZERO
    else:
        cgst = sgst = ZERO
        igst = total_tax

    overall = _non_negative(overall_discount)
    if OverallDiscountStage(overall_discount_stage) is OverallDiscountStage.PRE_TAX:
        subtotal = subtotal - overall
        grand_total = subtotal + total_tax
    else:
        grand_total = subtotal + total_tax - overall

    return InvoiceTotals(
        subtotal=subtotal,
        total_discount=total_discount,
        total_tax=total_tax,
        cgst=cgst,
        sgst=sgst,
        igst=igst,
        overall_discount=overall,
        grand_total=grand_total,
        jurisdiction=jurisdiction,
        lines=lines,
    )


def determine_jurisdiction(business_state: Optional[str], customer_state: Optional[str]) -> Jurisdiction:
    """Same state (or unknown buyer state) → INTRA, else INTER."""
    if not customer_state or not customer_state.strip():
        return Jurisdiction.INTRA
    if (business_state or "").strip() == customer_state.strip():
        return Jurisdiction.INTRA
    return Jurisdiction.INTER


def _amount_of(payment) -> Decimal:
    if isinstance(payment, Mapping):
        return to_decimal(payment.get("amount"))
    if hasattr(payment, "amount"):
        return to_decimal(payment.amount)
    return to_decimal(payment)


def amount_paid(payments: Iterable) -> Decimal:
    return sum((_amount_of(p) for p in payments), ZERO)


def due_amount(grand_total, payments: Iterable) -> Decimal:
    return to_decimal(grand_total) - amount_paid(payments)


def payment_status(grand_total, payments: Iterable) -> PaymentStatus:
    payments = list(payments)
    due = due_amount(grand_total, payments)
    if due <= ZERO:
        return PaymentStatus.PAID
    if amount_paid(payments) > ZERO:
        return PaymentStatus.PARTIAL
    return PaymentStatus.DUE


def can_accept_payment(amount, due) -> bool:
    """A payment must be positive and must not exceed the amount still due."""
    amount = to_decimal(amount)
    return ZERO < amount <= to_decimal(due)
