# models.py
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from tax_calc import InvoiceTotals, Jurisdiction, LineItem, PaymentStatus

STATE_CODE = r"^[0-9]{2}$"
PHONE = r"^[0-9]{10}$"


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


class BusinessProfile(BaseModel):
    """Seller details printed on every invoice."""
    business_name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    state_code: str = Field(..., pattern=STATE_CODE)
    phone: str = Field(..., pattern=PHONE)
    gst_number: Optional[str] = None

    @field_validator("business_name", "address", "state_code", "phone", mode="before")
    @classmethod
    def strip_required(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("gst_number", mode="before")
    @classmethod
    def optional_gst(cls, v):
        v = _blank_to_none(v)
        return v.strip().upper() if isinstance(v, str) else v


class CustomerForm(BaseModel):
    name: str = Field(..., min_length=1)
    phone: Optional[str] = Field(None, pattern=PHONE)
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state_code: Optional[str] = Field(None, pattern=STATE_CODE)
    gstin: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def strip_strings(cls, v):
        v = _blank_to_none(v)
        return v.strip() if isinstance(v, str) else v


class Customer(CustomerForm):
    id: int


class LineItemForm(BaseModel):
    """One editable invoice row, validated before submission."""
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    quantity: Decimal = Field(Decimal("1"), gt=0)
    unit_price: Decimal = Field(..., gt=0)
    discount: Decimal = Field(Decimal("0"), ge=0)
    tax_rate: Decimal = Field(Decimal("18"), ge=0)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("description", mode="before")
    @classmethod
    def optional_description(cls, v):
        return _blank_to_none(v)

    def to_line_item(self) -> LineItem:
        return LineItem(
            name=self.name,
            description=self.description or "",
            quantity=self.quantity,
            unit_price=self.unit_price,
            discount=self.discount,
            tax_rate=self.tax_rate,
        )


class InvoiceDraft(BaseModel):
    customer_id: int = Field(..., description="customer must be selected")
    invoice_title: Optional[str] = None
    invoice_date: date = Field(default_factory=date.today)
    due_date: Optional[date] = None
    template_id: Optional[int] = None
    notes: Optional[str] = None
    overall_discount: Decimal = Field(Decimal("0"), ge=0)
    # None → derived from business and customer state codes
    jurisdiction: Optional[Jurisdiction] = None
    items: List[LineItemForm] = Field(..., min_length=1)

    @field_validator("invoice_title", "notes", mode="before")
    @classmethod
    def optional_text(cls, v):
        return _blank_to_none(v)

    @model_validator(mode="after")
    def due_after_invoice_date(self):
        if self.due_date is not None and self.due_date < self.invoice_date:
            raise ValueError("Due date cannot be before the invoice date")
        return self

    def line_items(self) -> List[LineItem]:
        return [it.to_line_item() for it in self.items]


class PaymentMethod(str, Enum):
    CASH = "CASH"
    BANK = "BANK"
    UPI = "UPI"
    CARD = "CARD"
    CHEQUE = "CHEQUE"
    OTHER = "OTHER"


class PaymentForm(BaseModel):
    amount: Decimal = Field(..., gt=0)
    method: PaymentMethod = PaymentMethod.CASH
    reference_id: Optional[str] = None
    bank_name: Optional[str] = None
    account_details: Optional[str] = None
    payment_date: date = Field(default_factory=date.today)

    @field_validator("method", mode="before")
    @classmethod
    def upper_method(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator("reference_id", "bank_name", "account_details", mode="before")
    @classmethod
    def optional_text(cls, v):
        return _blank_to_none(v)


class Payment(PaymentForm):
    id: int
    invoice_id: int
    created_at: datetime = Field(default_factory=datetime.now)


class TemplateConfig(BaseModel):
    """Which invoice sections a template shows."""
    show_customer_email: bool = True
    show_customer_phone: bool = True
    show_customer_location: bool = True
    show_discount: bool = True
    show_payment_info: bool = True
    show_logo: bool = True
    show_signature: bool = False
    show_qr_code: bool = False
    show_notes: bool = True
    show_due_date: bool = True
    show_item_description: bool = True


class Invoice(BaseModel):
    """Stored invoice with the totals snapshot taken at submission time."""
    id: int
    invoice_number: str
    customer_id: int
    invoice_type: Jurisdiction
    invoice_title: Optional[str] = None
    invoice_date: date
    due_date: Optional[date] = None
    template_id: Optional[int] = None
    notes: Optional[str] = None
    items: List[LineItemForm]
    totals: InvoiceTotals
    paid_amount: Decimal = Decimal("0")
    due_amount: Decimal = Decimal("0")
    status: PaymentStatus = PaymentStatus.DUE
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def grand_total(self) -> Decimal:
        return self.totals.grand_total
