from io import BytesIO
from typing import Dict, List, Optional

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from assets import AssetType
from models import BusinessProfile, Customer, Invoice, Payment, TemplateConfig
from tax_calc import Jurisdiction

LAYOUT_STYLES = {
    "Standard": {"font": "Helvetica", "bold": "Helvetica-Bold", "band": False, "rules": False},
    "Classy": {"font": "Times-Roman", "bold": "Times-Bold", "band": False, "rules": True},
    "Modern": {"font": "Helvetica", "bold": "Helvetica-Bold", "band": True, "rules": False},
}


def _amt(value) -> str:
    # reportlab's standard fonts have no rupee glyph
    return f"Rs. {value:,.2f}"


def _draw_image(c, png: Optional[bytes], x, y, size):
    if png:
        c.drawImage(ImageReader(BytesIO(png)), x, y, width=size, height=size,
                    preserveAspectRatio=True, mask="auto")


def generate_invoice_pdf(invoice: Invoice, business: BusinessProfile, customer: Optional[Customer],
                         payments: List[Payment] = (), layout: str = "Standard",
                         color_hex: str = "#0B5394", config: Optional[TemplateConfig] = None,
                         assets: Optional[Dict[AssetType, bytes]] = None) -> bytes:
    config = config or TemplateConfig()
    assets = assets or {}
    style = LAYOUT_STYLES.get(layout, LAYOUT_STYLES["Standard"])
    accent = colors.HexColor(color_hex)
    totals = invoice.totals

    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4
    x, y = 40, height - 40

    # Header Section
    if style["band"]:
        c.setFillColor(accent)
        c.rect(0, height - 70, width, 70, stroke=0, fill=1)
        c.setFillColor(colors.white)
    else:
        c.setFillColor(accent)
    if config.show_logo:
        _draw_image(c, assets.get(AssetType.LOGO), width - 100, height - 65, 55)
    c.setFont(style["bold"], 16)
    c.drawCentredString(width / 2, y, invoice.invoice_title or "TAX INVOICE")
    c.setFillColor(colors.black)
    y -= 50 if style["band"] else 30
    if style["rules"]:
        c.setStrokeColor(accent)
        c.line(x, y + 12, width - x, y + 12)

    # Invoice Details
    c.setFont(style["font"], 10)
    c.drawString(x, y, f"Invoice: {invoice.invoice_number}")
    c.drawString(width / 2, y, f"Date: {invoice.invoice_date.isoformat()}")
    y -= 15
    if config.show_due_date and invoice.due_date:
        c.drawString(width / 2, y, f"Due Date: {invoice.due_date.isoformat()}")
    kind = "Intra-State (CGST + SGST)" if invoice.invoice_type is Jurisdiction.INTRA else "Inter-State (IGST)"
    c.drawString(x, y, f"Supply: {kind}")
    y -= 25

    # Seller Information
    c.setFont(style["bold"], 10)
    c.drawString(x, y, business.business_name)
    c.drawString(width / 2, y, f"Bill To: {customer.name if customer else ''}")
    c.setFont(style["font"], 9)
    seller_lines = [business.address, f"State Code: {business.state_code}", f"Phone: {business.phone}"]
    if business.gst_number:
        seller_lines.append(f"GSTIN: {business.gst_number}")

    # Buyer Information
    buyer_lines = []
    if customer:
        if config.show_customer_location:
            location = ", ".join(p for p in (customer.address, customer.city) if p)
            if location:
                buyer_lines.append(location)
            if customer.state_code:
                buyer_lines.append(f"State Code: {customer.state_code}")
        if config.show_customer_phone and customer.phone:
            buyer_lines.append(f"Phone: {customer.phone}")
        if config.show_customer_email and customer.email:
            buyer_lines.append(f"Email: {customer.email}")
        if customer.gstin:
            buyer_lines.append(f"GSTIN: {customer.gstin}")

    for i in range(max(len(seller_lines), len(buyer_lines))):
        y -= 13
        if i < len(seller_lines):
            c.drawString(x, y, seller_lines[i])
        if i < len(buyer_lines):
            c.drawString(width / 2, y, buyer_lines[i])
    y -= 30

    # Table Header
    def table_header(y):
        c.setFont(style["bold"], 10)
        if style["band"] or style["rules"]:
            c.setFillColor(accent)
        for header, pos in zip(headers, positions):
            c.drawString(pos, y, header)
        c.setFillColor(colors.black)
        if style["rules"]:
            c.line(x, y - 4, width - x, y - 4)
        c.setFont(style["font"], 9)
        return y - 18

    headers = ["Sr", "Item", "Qty", "Price", "Disc.", "GST%", "Taxable", "Total"]
    positions = [x, x + 25, x + 215, x + 255, x + 315, x + 365, x + 400, x + 460]
    y = table_header(y)

    def new_page():
        c.showPage()
        return height - 40

    # Table Items
    for sr, (item, line) in enumerate(zip(invoice.items, totals.lines), start=1):
        c.drawString(positions[0], y, str(sr))
        c.drawString(positions[1], y, item.name[:35])
        c.drawString(positions[2], y, f"{item.quantity.normalize():f}")
        c.drawString(positions[3], y, f"{item.unit_price:,.2f}")
        c.drawString(positions[4], y, f"{line.discount_amount:,.2f}")
        c.drawString(positions[5], y, f"{item.tax_rate.normalize():f}")
        c.drawString(positions[6], y, f"{line.line_subtotal:,.2f}")
        c.drawString(positions[7], y, f"{line.line_total_with_tax:,.2f}")
        y -= 13
        if config.show_item_description and item.description:
            c.setFont(style["font"], 8)
            c.setFillColor(colors.grey)
            c.drawString(positions[1], y, item.description[:80])
            c.setFillColor(colors.black)
            c.setFont(style["font"], 9)
            y -= 13

        # Page break if needed
        if y < 160:
            y = table_header(new_page())

    # Totals
    y -= 15
    rows = [("Subtotal", totals.subtotal)]
    if config.show_discount and totals.total_discount:
        rows.append(("Item Discounts", totals.total_discount))
    if invoice.invoice_type is Jurisdiction.INTRA:
        rows += [("CGST", totals.cgst), ("SGST", totals.sgst)]
    else:
        rows.append(("IGST", totals.igst))
    if config.show_discount and totals.overall_discount:
        rows.append(("Overall Discount", -totals.overall_discount))
    if y - 14 * len(rows) - 25 < 160:
        y = new_page()
    for label, value in rows:
        c.setFont(style["font"], 10)
        c.drawString(positions[5], y, f"{label}:")
        c.drawRightString(width - x, y, _amt(value))
        y -= 14
    c.setFont(style["bold"], 11)
    c.setFillColor(accent)
    c.drawString(positions[5], y, "Grand Total:")
    c.drawRightString(width - x, y, _amt(totals.grand_total))
    c.setFillColor(colors.black)
    y -= 25

    if config.show_payment_info and payments:
        if y < 190:
            y = new_page()
        c.setFont(style["bold"], 10)
        c.drawString(x, y, "Payment Summary")
        c.setFont(style["font"], 9)
        y -= 14
        c.drawString(x, y, f"Amount Paid: {_amt(invoice.paid_amount)}   "
                           f"Amount Due: {_amt(invoice.due_amount)}   Status: {invoice.status.value}")
        y -= 14
        for p in payments:
            if y < 160:
                y = new_page()
                c.setFont(style["font"], 9)
            ref = f" ({p.reference_id})" if p.reference_id else ""
            c.drawString(x + 10, y, f"{p.payment_date.isoformat()}  {p.method.value}{ref}  {_amt(p.amount)}")
            y -= 12
        y -= 10

    if config.show_notes and invoice.notes:
        if y < 180:
            y = new_page()
        c.setFont(style["bold"], 10)
        c.drawString(x, y, "Notes")
        c.setFont(style["font"], 9)
        for note_line in invoice.notes.splitlines()[:6]:
            if y - 12 < 160:
                y = new_page() + 12
                c.setFont(style["font"], 9)
            y -= 12
            c.drawString(x, y, note_line[:110])

    if config.show_qr_code:
        _draw_image(c, assets.get(AssetType.QR), x, 40, 80)
    if config.show_signature and assets.get(AssetType.SIGNATURE):
        _draw_image(c, assets.get(AssetType.SIGNATURE), width - 160, 60, 100)
        c.setFont(style["font"], 9)
        c.drawString(width - 160, 50, "Authorised Signatory")

    c.showPage()
    c.save()
    buffer.seek(0)
    return buffer.read()


def invoice_lines_frame(invoice: Invoice) -> pd.DataFrame:
    rows = []
    for sr, (item, line) in enumerate(zip(invoice.items, invoice.totals.lines), start=1):
        rows.append({
            "sr": sr,
            "item": item.name,
            "description": item.description or "",
            "qty": float(item.quantity),
            "unit_price": float(item.unit_price),
            "discount": float(line.discount_amount),
            "gst_rate": float(item.tax_rate),
            "taxable": float(line.line_subtotal),
            "tax": float(line.tax_amount),
            "line_total": float(line.line_total_with_tax),
        })
    return pd.DataFrame(rows)


def generate_invoice_csv_bytes(invoice: Invoice) -> bytes:
    df = invoice_lines_frame(invoice)
    buffer = BytesIO()
    buffer.write(df.to_csv(index=False).encode('utf-8'))
    buffer.seek(0)
    return buffer.getvalue()
