from datetime import date, datetime
from decimal import Decimal

import pytest

from assets import AssetType
from config import Settings
from invoice_book import BusinessProfileMissing, InvoiceBook, NotFoundError, PaymentRejected
from models import CustomerForm, InvoiceDraft, LineItemForm, PaymentForm, TemplateConfig
from tax_calc import DiscountMode, Jurisdiction, OverallDiscountStage, PaymentStatus
from templates import TemplateError


def two_items():
    return [
        LineItemForm(name="Steel rods", quantity=10, unit_price=1500, discount=0, tax_rate=18),
        LineItemForm(name="Installation", quantity=1, unit_price=5000, discount=500, tax_rate=18),
    ]


def draft_for(customer_id, **overrides):
    data = {"customer_id": customer_id, "invoice_date": date(2025, 10, 7), "items": two_items()}
    data.update(overrides)
    return InvoiceDraft(**data)


def test_invoice_needs_business_profile(settings):
    book = InvoiceBook(settings)
    with pytest.raises(BusinessProfileMissing):
        book.create_invoice(draft_for(1))


def test_intra_state_invoice_snapshot(book, local_customer):
    invoice = book.create_invoice(draft_for(local_customer.id))
    assert invoice.invoice_type is Jurisdiction.INTRA
    assert invoice.totals.subtotal == Decimal("19500.00")
    assert invoice.totals.cgst == Decimal("1755.00")
    assert invoice.totals.sgst == Decimal("1755.00")
    assert invoice.totals.igst == 0
    assert invoice.grand_total == Decimal("23010.00")
    assert invoice.due_amount == Decimal("23010.00")
    assert invoice.paid_amount == 0
    assert invoice.status is PaymentStatus.DUE


def test_inter_state_invoice_from_customer_state(book, remote_customer):
    invoice = book.create_invoice(draft_for(remote_customer.id))
    assert invoice.invoice_type is Jurisdiction.INTER
    assert invoice.totals.igst == Decimal("3510.00")
    assert invoice.totals.cgst == invoice.totals.sgst == 0
    assert invoice.grand_total == Decimal("23010.00")


def test_jurisdiction_override_wins(book, remote_customer):
    invoice = book.create_invoice(draft_for(remote_customer.id, jurisdiction=Jurisdiction.INTRA))
    assert invoice.invoice_type is Jurisdiction.INTRA
    assert invoice.totals.cgst == Decimal("1755.00")


def test_customer_without_state_is_intra(book):
    walk_in = book.customers.add(CustomerForm(name="Walk-in"))
    assert book.create_invoice(draft_for(walk_in.id)).invoice_type is Jurisdiction.INTRA


def test_unknown_customer_rejected(book):
    with pytest.raises(NotFoundError):
        book.create_invoice(draft_for(999))
    assert book.list_invoices() == []


def test_unknown_template_rejected(book, local_customer):
    with pytest.raises(TemplateError):
        book.create_invoice(draft_for(local_customer.id, template_id=42))


def test_overall_discount_comes_off_grand_total(book, local_customer):
    invoice = book.create_invoice(draft_for(local_customer.id, overall_discount=1010))
    assert invoice.totals.overall_discount == Decimal("1010.00")
    assert invoice.grand_total == Decimal("22000.00")


def test_configured_discount_mode_is_used(business):
    settings = Settings(_env_file=None, discount_mode=DiscountMode.PERCENT,
                        overall_discount_stage=OverallDiscountStage.PRE_TAX)
    book = InvoiceBook(settings)
    book.save_business(business)
    customer = book.customers.add(CustomerForm(name="Pune Traders", state_code="27"))
    items = [LineItemForm(name="Chairs", quantity=4, unit_price=2500, discount=10, tax_rate=12)]
    invoice = book.create_invoice(InvoiceDraft(customer_id=customer.id, items=items, overall_discount=80))
    assert invoice.totals.total_discount == Decimal("1000.00")
    assert invoice.totals.subtotal == Decimal("8920.00")
    assert invoice.grand_total == Decimal("10000.00")


def test_invoice_numbers_are_unique(book, local_customer):
    book._clock = lambda: datetime(2025, 10, 7, 12, 0, 0)
    first = book.create_invoice(draft_for(local_customer.id))
    second = book.create_invoice(draft_for(local_customer.id))
    third = book.create_invoice(draft_for(local_customer.id))
    assert first.invoice_number == "INV-20251007120000"
    assert second.invoice_number == "INV-20251007120000-1"
    assert third.invoice_number == "INV-20251007120000-2"


def test_list_invoices_newest_first(book, local_customer):
    first = book.create_invoice(draft_for(local_customer.id))
    second = book.create_invoice(draft_for(local_customer.id))
    assert [inv.id for inv in book.list_invoices()] == [second.id, first.id]


def test_payment_flow_and_overpayment(book, local_customer):
    invoice = book.create_invoice(draft_for(local_customer.id))
    book.add_payment(invoice.id, PaymentForm(amount=10000, method="upi"))
    invoice = book.get_invoice(invoice.id)
    assert invoice.paid_amount == Decimal("10000.00")
    assert invoice.due_amount == Decimal("13010.00")
    assert invoice.status is PaymentStatus.PARTIAL

    with pytest.raises(PaymentRejected, match="cannot exceed due amount"):
        book.add_payment(invoice.id, PaymentForm(amount=14000))
    assert len(book.payments_for(invoice.id)) == 1

    book.add_payment(invoice.id, PaymentForm(amount="13010", method="CASH"))
    invoice = book.get_invoice(invoice.id)
    assert invoice.status is PaymentStatus.PAID
    assert invoice.due_amount == 0


def test_deleting_payment_moves_status_back(book, local_customer):
    invoice = book.create_invoice(draft_for(local_customer.id))
    first = book.add_payment(invoice.id, PaymentForm(amount=10000))
    second = book.add_payment(invoice.id, PaymentForm(amount=13010))
    assert book.get_invoice(invoice.id).status is PaymentStatus.PAID

    assert book.delete_payment(second.id).status is PaymentStatus.PARTIAL
    assert book.delete_payment(first.id).status is PaymentStatus.DUE
    assert book.get_invoice(invoice.id).due_amount == Decimal("23010.00")

    with pytest.raises(NotFoundError):
        book.delete_payment(first.id)


def test_payments_sorted_by_date_desc(book, local_customer):
    invoice = book.create_invoice(draft_for(local_customer.id))
    book.add_payment(invoice.id, PaymentForm(amount=100, payment_date=date(2025, 10, 1)))
    book.add_payment(invoice.id, PaymentForm(amount=200, payment_date=date(2025, 10, 9)))
    assert [p.amount for p in book.payments_for(invoice.id)] == [Decimal("200"), Decimal("100")]


def test_update_recomputes_and_keeps_payments(book, local_customer, remote_customer):
    invoice = book.create_invoice(draft_for(local_customer.id))
    book.add_payment(invoice.id, PaymentForm(amount=5000))

    items = [LineItemForm(name="Steel rods", quantity=2, unit_price=1500, tax_rate=18)]
    updated = book.update_invoice(invoice.id, draft_for(remote_customer.id, items=items, notes="revised"))
    assert updated.invoice_number == invoice.invoice_number
    assert updated.invoice_type is Jurisdiction.INTER
    assert updated.grand_total == Decimal("3540.00")
    assert updated.paid_amount == Decimal("5000.00")
    assert updated.due_amount == Decimal("-1460.00")
    assert updated.status is PaymentStatus.PAID
    assert book.get_invoice(invoice.id).notes == "revised"


def test_failed_update_leaves_invoice_untouched(book, local_customer):
    invoice = book.create_invoice(draft_for(local_customer.id))
    with pytest.raises(NotFoundError):
        book.update_invoice(invoice.id, draft_for(999))
    assert book.get_invoice(invoice.id).grand_total == Decimal("23010.00")


def test_preview_matches_snapshot(book, local_customer):
    draft = draft_for(local_customer.id)
    preview = book.preview_totals(draft.line_items(), Jurisdiction.INTRA)
    invoice = book.create_invoice(draft)
    assert preview.rounded() == invoice.totals


def test_summary(book, local_customer, remote_customer):
    a = book.create_invoice(draft_for(local_customer.id))
    book.create_invoice(draft_for(remote_customer.id))
    book.add_payment(a.id, PaymentForm(amount=23010))
    summary = book.summary()
    assert summary["invoices"] == 2
    assert summary["customers"] == 2
    assert summary["billed"] == Decimal("46020.00")
    assert summary["paid"] == Decimal("23010.00")
    assert summary["outstanding"] == Decimal("23010.00")
    assert summary["by_status"] == {"DUE": 1, "PARTIAL": 0, "PAID": 1}


def test_summary_ignores_overpaid_invoice(book, local_customer, remote_customer):
    a = book.create_invoice(draft_for(local_customer.id))
    book.add_payment(a.id, PaymentForm(amount=5000))
    items = [LineItemForm(name="Steel rods", quantity=2, unit_price=1500, tax_rate=18)]
    book.update_invoice(a.id, draft_for(remote_customer.id, items=items))
    book.create_invoice(draft_for(local_customer.id))

    summary = book.summary()
    assert book.get_invoice(a.id).due_amount == Decimal("-1460.00")
    assert summary["billed"] == Decimal("26550.00")
    assert summary["paid"] == Decimal("5000.00")
    assert summary["outstanding"] == Decimal("23010.00")


def test_template_resolution_for_invoice(book, local_customer):
    minimal = book.templates.create("Minimal", TemplateConfig(show_notes=False))
    invoice = book.create_invoice(draft_for(local_customer.id, template_id=minimal.id))
    layout, color, config = book.templates.resolve(invoice)
    assert layout == "Standard"
    assert config.show_notes is False


def test_upload_asset_requires_business(settings, png_bytes):
    book = InvoiceBook(settings)
    with pytest.raises(BusinessProfileMissing):
        book.upload_asset(AssetType.LOGO, png_bytes)


def test_upload_asset_stores_png(book, png_bytes):
    stored = book.upload_asset(AssetType.LOGO, png_bytes)
    assert book.assets[AssetType.LOGO] == stored
    assert stored.startswith(b"\x89PNG")
