"""In-memory bookkeeping for one business: profile, customers, invoices,
payments, templates and uploaded assets.

Every mutating call either fully succeeds or raises before touching state,
so a rejected form submission never loses what the user already entered.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional

from assets import AssetType, prepare_image
from config import Settings, get_settings
from customers import CustomerDirectory, CustomerNotFound
from models import BusinessProfile, Invoice, InvoiceDraft, Payment, PaymentForm
from tax_calc import (
    ZERO,
    InvoiceTotals,
    Jurisdiction,
    LineItem,
    amount_paid,
    can_accept_payment,
    compute_invoice_totals,
    determine_jurisdiction,
    money,
    payment_status,
)
from templates import TemplateRegistry

logger = logging.getLogger(__name__)


class InvoiceBookError(ValueError):
    pass


class NotFoundError(InvoiceBookError):
    pass


class BusinessProfileMissing(InvoiceBookError):
    pass


class PaymentRejected(InvoiceBookError):
    pass


class InvoiceBook:
    def __init__(self, settings: Optional[Settings] = None, clock: Callable[[], datetime] = datetime.now):
        self.settings = settings or get_settings()
        self._clock = clock
        self.business: Optional[BusinessProfile] = None
        self.customers = CustomerDirectory(score_cutoff=self.settings.customer_search_cutoff)
        self.templates = TemplateRegistry(default_layout=self.settings.default_template)
        self.assets: Dict[AssetType, bytes] = {}
        self._invoices: Dict[int, Invoice] = {}
        self._payments: Dict[int, Payment] = {}
        self._next_invoice_id = 1
        self._next_payment_id = 1

    # ---------------------------------------------------
    # BUSINESS PROFILE
    # ---------------------------------------------------
    def save_business(self, profile: BusinessProfile) -> BusinessProfile:
        created = self.business is None
        self.business = profile
        logger.info("business profile %s", "created" if created else "updated",
                    extra={"state_code": profile.state_code})
        return profile

    def require_business(self) -> BusinessProfile:
        if self.business is None:
            raise BusinessProfileMissing("Business not found. Please create a business profile first.")
        return self.business

    def upload_asset(self, asset_type: AssetType, img_bytes: bytes) -> bytes:
        self.require_business()
        png = prepare_image(img_bytes, max_px=self.settings.logo_max_px)
        self.assets[AssetType(asset_type)] = png
        logger.info("asset uploaded", extra={"asset_type": AssetType(asset_type).value})
        return png

    # ---------------------------------------------------
    # TOTALS
    # ---------------------------------------------------
    def jurisdiction_for(self, customer_id: Optional[int], override: Optional[Jurisdiction] = None) -> Jurisdiction:
        if override is not None:
            return Jurisdiction(override)
        business = self.require_business()
        customer = self.customers.find(customer_id)
        return determine_jurisdiction(business.state_code, customer.state_code if customer else None)

    def preview_totals(self, items: Iterable[LineItem], jurisdiction: Jurisdiction,
                       overall_discount=Decimal("0")) -> InvoiceTotals:
        """Totals for an editing form, using the configured discount rules."""
        return compute_invoice_totals(
            items,
            jurisdiction=jurisdiction,
            overall_discount=overall_discount,
            discount_mode=self.settings.discount_mode,
            overall_discount_stage=self.settings.overall_discount_stage,
            clamp=self.settings.clamp_discounts,
        )

    def _snapshot(self, draft: InvoiceDraft):
        try:
            self.customers.get(draft.customer_id)
        except CustomerNotFound as e:
            raise NotFoundError(str(e)) from None
        if draft.template_id is not None:
            self.templates.get(draft.template_id)
        jurisdiction = self.jurisdiction_for(draft.customer_id, draft.jurisdiction)
        totals = self.preview_totals(draft.line_items(), jurisdiction, draft.overall_discount)
        return jurisdiction, totals.rounded()

    # ---------------------------------------------------
    # INVOICES
    # ---------------------------------------------------
    def _next_number(self) -> str:
        base = f"{self.settings.invoice_prefix}-{self._clock().strftime('%Y%m%d%H%M%S')}"
        taken = {inv.invoice_number for inv in self._invoices.values()}
        number, counter = base, 1
        while number in taken:
            number = f"{base}-{counter}"
            counter += 1
        return number

    def create_invoice(self, draft: InvoiceDraft) -> Invoice:
        self.require_business()
        jurisdiction, totals = self._snapshot(draft)

        invoice = Invoice(
            id=self._next_invoice_id,
            invoice_number=self._next_number(),
            customer_id=draft.customer_id,
            invoice_type=jurisdiction,
            invoice_title=draft.invoice_title,
            invoice_date=draft.invoice_date,
            due_date=draft.due_date,
            template_id=draft.template_id,
            notes=draft.notes,
            items=draft.items,
            totals=totals,
            created_at=self._clock(),
        )
        self._refresh_payment_state(invoice)
        self._invoices[invoice.id] = invoice
        self._next_invoice_id += 1
        logger.info("invoice created", extra={
            "invoice_number": invoice.invoice_number,
            "grand_total": str(totals.grand_total),
            "invoice_type": jurisdiction.value,
        })
        return invoice

    def update_invoice(self, invoice_id: int, draft: InvoiceDraft) -> Invoice:
        current = self.get_invoice(invoice_id)
        jurisdiction, totals = self._snapshot(draft)

        invoice = current.model_copy(update={
            "customer_id": draft.customer_id,
            "invoice_type": jurisdiction,
            "invoice_title": draft.invoice_title,
            "invoice_date": draft.invoice_date,
            "due_date": draft.due_date,
            "template_id": draft.template_id,
            "notes": draft.notes,
            "items": draft.items,
            "totals": totals,
        })
        self._refresh_payment_state(invoice)
        self._invoices[invoice_id] = invoice
        logger.info("invoice updated", extra={
            "invoice_number": invoice.invoice_number,
            "grand_total": str(totals.grand_total),
            "status": invoice.status.value,
        })
        return invoice

    def get_invoice(self, invoice_id: int) -> Invoice:
        try:
            return self._invoices[invoice_id]
        except KeyError:
            raise NotFoundError(f"Invoice {invoice_id} not found") from None

    def list_invoices(self) -> List[Invoice]:
        return sorted(self._invoices.values(), key=lambda inv: (inv.created_at, inv.id), reverse=True)

    def customer_name(self, invoice: Invoice) -> str:
        customer = self.customers.find(invoice.customer_id)
        return customer.name if customer else ""

    # ---------------------------------------------------
    # PAYMENTS
    # ---------------------------------------------------
    def payments_for(self, invoice_id: int) -> List[Payment]:
        found = [p for p in self._payments.values() if p.invoice_id == invoice_id]
        return sorted(found, key=lambda p: (p.payment_date, p.id), reverse=True)

    def add_payment(self, invoice_id: int, form: PaymentForm) -> Payment:
        invoice = self.get_invoice(invoice_id)
        if not can_accept_payment(form.amount, invoice.due_amount):
            logger.warning("payment rejected", extra={
                "invoice_number": invoice.invoice_number,
                "amount": str(form.amount),
                "due_amount": str(invoice.due_amount),
            })
            if form.amount <= 0:
                raise PaymentRejected("Payment amount must be greater than 0")
            raise PaymentRejected(
                f"Payment amount cannot exceed due amount of {money(invoice.due_amount)}"
            )

        payment = Payment(id=self._next_payment_id, invoice_id=invoice_id,
                          created_at=self._clock(), **form.model_dump())
        self._payments[payment.id] = payment
        self._next_payment_id += 1
        self._refresh_payment_state(invoice)
        logger.info("payment recorded", extra={
            "invoice_number": invoice.invoice_number,
            "amount": str(payment.amount),
            "status": invoice.status.value,
        })
        return payment

    def delete_payment(self, payment_id: int) -> Invoice:
        try:
            payment = self._payments.pop(payment_id)
        except KeyError:
            raise NotFoundError(f"Payment {payment_id} not found") from None
        invoice = self.get_invoice(payment.invoice_id)
        self._refresh_payment_state(invoice)
        logger.info("payment deleted", extra={
            "invoice_number": invoice.invoice_number,
            "status": invoice.status.value,
        })
        return invoice

    def _refresh_payment_state(self, invoice: Invoice) -> None:
        payments = self.payments_for(invoice.id)
        invoice.paid_amount = money(amount_paid(payments))
        invoice.due_amount = money(invoice.grand_total - invoice.paid_amount)
        invoice.status = payment_status(invoice.grand_total, payments)

    # ---------------------------------------------------
    # DASHBOARD
    # ---------------------------------------------------
    def summary(self) -> dict:
        invoices = list(self._invoices.values())
        billed = sum((inv.grand_total for inv in invoices), Decimal("0"))
        paid = sum((inv.paid_amount for inv in invoices), Decimal("0"))
        # an invoice edited below its payments does not offset the others
        outstanding = sum((max(inv.due_amount, ZERO) for inv in invoices), ZERO)
        counts = {status: 0 for status in ("DUE", "PARTIAL", "PAID")}
        for inv in invoices:
            counts[inv.status.value] += 1
        return {
            "invoices": len(invoices),
            "customers": len(self.customers),
            "billed": money(billed),
            "paid": money(paid),
            "outstanding": money(outstanding),
            "by_status": counts,
        }
