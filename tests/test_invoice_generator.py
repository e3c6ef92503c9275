import io
import re
from datetime import date

import pandas as pd

from assets import AssetType
from invoice_generator import generate_invoice_csv_bytes, generate_invoice_pdf, invoice_lines_frame
from models import InvoiceDraft, LineItemForm, PaymentForm, TemplateConfig


def make_invoice(book, customer, n_items=2, **overrides):
    items = [LineItemForm(name=f"Item {i}", description="Grade A", quantity=i + 1, unit_price=250,
                          discount=10, tax_rate=18) for i in range(n_items)]
    data = {"customer_id": customer.id, "items": items, "invoice_date": date(2025, 10, 7),
            "due_date": date(2025, 11, 6), "notes": "Thank you for your business"}
    data.update(overrides)
    return book.create_invoice(InvoiceDraft(**data))


def test_pdf_for_each_layout(book, local_customer):
    invoice = make_invoice(book, local_customer)
    for layout in ["Standard", "Classy", "Modern"]:
        pdf = generate_invoice_pdf(invoice, book.business, local_customer, layout=layout)
        assert pdf.startswith(b"%PDF")


def test_pdf_with_payments_assets_and_all_sections(book, remote_customer, png_bytes):
    invoice = make_invoice(book, remote_customer, overall_discount=50)
    book.add_payment(invoice.id, PaymentForm(amount=100, reference_id="UTR123"))
    book.upload_asset(AssetType.LOGO, png_bytes)
    book.upload_asset(AssetType.SIGNATURE, png_bytes)
    book.upload_asset(AssetType.QR, png_bytes)
    config = TemplateConfig(show_signature=True, show_qr_code=True)
    pdf = generate_invoice_pdf(book.get_invoice(invoice.id), book.business, remote_customer,
                               book.payments_for(invoice.id), "Modern", "#AA3300", config, book.assets)
    assert pdf.startswith(b"%PDF")


def test_long_invoice_breaks_pages(book, local_customer):
    invoice = make_invoice(book, local_customer, n_items=60)
    pdf = generate_invoice_pdf(invoice, book.business, local_customer)
    assert len(re.findall(rb"/Type /Page\b", pdf)) >= 2


def test_long_payment_list_breaks_pages(book, local_customer):
    invoice = make_invoice(book, local_customer, notes="\n".join(f"Note {i}" for i in range(6)))
    for i in range(60):
        book.add_payment(invoice.id, PaymentForm(amount=1, reference_id=f"UTR{i:03d}"))
    pdf = generate_invoice_pdf(book.get_invoice(invoice.id), book.business, local_customer,
                               book.payments_for(invoice.id))
    assert len(re.findall(rb"/Type /Page\b", pdf)) >= 2


def test_lines_frame_and_csv(book, local_customer):
    invoice = make_invoice(book, local_customer)
    df = invoice_lines_frame(invoice)
    # 1×250−10=240 and 2×250−10=490, each plus 18% GST
    assert list(df["line_total"]) == [283.2, 578.2]

    csv_df = pd.read_csv(io.BytesIO(generate_invoice_csv_bytes(invoice)))
    assert list(csv_df["item"]) == ["Item 0", "Item 1"]
    assert csv_df["taxable"].sum() == 730.0
