import logging
import uuid
from datetime import date
from decimal import Decimal

import pandas as pd
import streamlit as st
from pydantic import ValidationError

from assets import AssetError, AssetType
from config import get_settings
from invoice_book import InvoiceBook, InvoiceBookError
from invoice_generator import generate_invoice_csv_bytes, generate_invoice_pdf
from logging_config import setup_logging
from models import BusinessProfile, CustomerForm, InvoiceDraft, PaymentForm, PaymentMethod, TemplateConfig
from tax_calc import DiscountMode, Jurisdiction, can_accept_payment
from templates import TemplateError
from utils import blank_item, error_messages, format_money, rows_to_line_items, validate_items

settings = get_settings()
setup_logging(use_json=settings.log_json, log_level=settings.log_level)
logger = logging.getLogger("app")

# ---------------------------------------------------
# PAGE CONFIG
# ---------------------------------------------------
st.set_page_config(page_title=settings.page_title, layout="wide")

# ---------------------------------------------------
# BRANDING DEFAULTS (pre-fill for a new business profile)
# ---------------------------------------------------
COMPANY_INFO = {
    "business_name": "Friends Group Company Pvt. Ltd.",
    "gst_number": "27ABCDE1234F1Z5",
    "address": "Wiman Nagar, Pune, Maharashtra",
    "state_code": "27",
    "phone": "8207050123",
}

# ---------------------------------------------------
# CUSTOM CSS STYLING
# ---------------------------------------------------
st.markdown("""
    <style>
        .main, .stApp {
            background-color: #f7faff;
        }
        h1, h2, h3, h4 {
            color: #0b5394;
        }
        .company-header {
            text-align: center;
            background-color: #008000;
            color: white;
            padding: 15px 0;
            border-radius: 8px;
            margin-bottom: 15px;
        }
        .company-header h2 {
            margin: 0;
            font-weight: 700;
            color: white;
        }
        .company-header p {
            margin: 2px 0;
            font-size: 13px;
        }
        .stDownloadButton>button, .stButton>button {
            background-color: #0b5394 !important;
            color: white !important;
            border-radius: 6px !important;
            font-weight: 600 !important;
            border: none;
        }
        .section-title {
            font-size: 22px;
            color: #008000;
            font-weight: 700;
            border-bottom: 2px solid #008000;
            margin-bottom: 12px;
            padding-bottom: 4px;
        }
        .summary-box {
            background-color: #eaf1fb;
            padding: 12px 18px;
            border-radius: 8px;
            font-weight: 600;
            margin-top: 15px;
            border-left: 4px solid #0b5394;
        }
    </style>
""", unsafe_allow_html=True)

# Session state holds the whole book; nothing outlives the browser session.
if "book" not in st.session_state:
    st.session_state.book = InvoiceBook(settings)
book: InvoiceBook = st.session_state.book


def money_str(value) -> str:
    return format_money(value, settings.currency_symbol)


def section(title: str):
    st.markdown(f'<div class="section-title">{title}</div>', unsafe_allow_html=True)


def show_errors(messages):
    for m in messages:
        st.error(m)


# ---------------------------------------------------
# COMPANY HEADER
# ---------------------------------------------------
if book.business:
    if AssetType.LOGO in book.assets:
        st.image(book.assets[AssetType.LOGO], width=140)
    gst = f"GSTIN: {book.business.gst_number} | " if book.business.gst_number else ""
    st.markdown(f"""
    <div class="company-header">
        <h2>{book.business.business_name}</h2>
        <p>{book.business.address}</p>
        <p>{gst}State Code: {book.business.state_code} | 📞 {book.business.phone}</p>
    </div>
    """, unsafe_allow_html=True)

st.title("🧾 GST Invoice Workbench")

page = st.sidebar.radio(
    "Navigate",
    ["Dashboard", "Business Profile", "Customers", "New Invoice", "Invoices", "Templates"],
)


# ---------------------------------------------------
# LINE ITEM EDITOR (shared by create and edit)
# ---------------------------------------------------
def new_row() -> dict:
    row = blank_item(settings.default_gst_rate)
    row["uid"] = uuid.uuid4().hex[:8]
    return row


def item_editor(state_key: str):
    """Editable rows stored in session state; returns the live list."""
    if state_key not in st.session_state:
        st.session_state[state_key] = [new_row()]
    rows = st.session_state[state_key]

    if settings.discount_mode is DiscountMode.PERCENT:
        discount_label = "Discount (%)"
    else:
        discount_label = f"Discount ({settings.currency_symbol})"
    rate_options = list(settings.gst_rates)

    for i, row in enumerate(rows):
        uid = row["uid"]
        st.markdown(f"**Item {i + 1}**")
        c1, c2 = st.columns([2, 3])
        row["name"] = c1.text_input("Item Name *", value=row["name"], key=f"{uid}_name")
        row["description"] = c2.text_input("Description", value=row["description"], key=f"{uid}_desc")
        c1, c2, c3, c4, c5, c6 = st.columns([1, 1, 1, 1, 1, 0.5])
        row["quantity"] = c1.number_input("Quantity *", min_value=0.0, value=float(row["quantity"]),
                                          step=1.0, key=f"{uid}_qty")
        row["unit_price"] = c2.number_input("Price *", min_value=0.0, value=float(row["unit_price"]),
                                            step=1.0, key=f"{uid}_price")
        row["discount"] = c3.number_input(discount_label, min_value=0.0, value=float(row["discount"]),
                                          step=1.0, key=f"{uid}_disc")
        if float(row["tax_rate"]) not in rate_options:
            rate_options = sorted(rate_options + [float(row["tax_rate"])])
        row["tax_rate"] = c4.selectbox("GST (%) *", rate_options,
                                       index=rate_options.index(float(row["tax_rate"])), key=f"{uid}_rate")
        line = book.preview_totals(rows_to_line_items([row]), Jurisdiction.INTRA).lines[0]
        c5.metric("Line Total", money_str(line.line_total_with_tax))
        if c6.button("🗑", key=f"{uid}_remove") and len(rows) > 1:
            rows.pop(i)
            st.rerun()

    if st.button("➕ Add Item", key=f"{state_key}_add"):
        rows.append(new_row())
        st.rerun()
    return rows


def totals_box(totals):
    tax_line = (f"CGST: {money_str(totals.cgst)} | SGST: {money_str(totals.sgst)}"
                if totals.jurisdiction is Jurisdiction.INTRA
                else f"IGST: {money_str(totals.igst)}")
    discount_line = ""
    if totals.total_discount:
        discount_line += f"Item Discounts: {money_str(totals.total_discount)}<br>"
    if totals.overall_discount:
        discount_line += f"Overall Discount: - {money_str(totals.overall_discount)}<br>"
    st.markdown(f"""
    <div class="summary-box">
        Subtotal: {money_str(totals.subtotal)}<br>
        {discount_line}
        {tax_line} (Total GST: {money_str(totals.total_tax)})<br>
        <b>Grand Total: {money_str(totals.grand_total)}</b>
    </div>
    """, unsafe_allow_html=True)
    if totals.grand_total < 0:
        st.warning("Discounts exceed the invoice value; the grand total is negative.")


def invoice_header_fields(prefix: str, defaults: dict):
    """Customer, dates, discount and supply type widgets; returns raw values."""
    customers = book.customers.all()
    ids = [None] + [c.id for c in customers]
    names = {c.id: f"{c.name} ({c.state_code or '--'})" for c in customers}
    current = defaults.get("customer_id")
    customer_id = st.selectbox("Customer *", ids, index=ids.index(current) if current in ids else 0,
                               format_func=lambda cid: "— Select customer —" if cid is None else names[cid],
                               key=f"{prefix}_customer")

    c1, c2, c3 = st.columns(3)
    title = c1.text_input("Invoice Title", value=defaults.get("invoice_title") or "", key=f"{prefix}_title")
    invoice_date = c2.date_input("Invoice Date *", value=defaults.get("invoice_date") or date.today(),
                                 key=f"{prefix}_date")
    due_date = c3.date_input("Due Date", value=defaults.get("due_date"), key=f"{prefix}_due")

    c1, c2, c3 = st.columns(3)
    overall = c1.number_input(f"Overall Discount ({settings.currency_symbol})", min_value=0.0,
                              value=float(defaults.get("overall_discount") or 0.0), key=f"{prefix}_overall")
    supply_options = ["Auto", Jurisdiction.INTRA.value, Jurisdiction.INTER.value]
    current_supply = defaults.get("jurisdiction") or "Auto"
    supply = c2.selectbox("Supply Type", supply_options, index=supply_options.index(current_supply),
                          format_func=lambda s: {"Auto": "Auto (from state codes)",
                                                 "INTRA": "Intra-State (CGST + SGST)",
                                                 "INTER": "Inter-State (IGST)"}[s],
                          key=f"{prefix}_supply")
    custom = book.templates.all()
    template_ids = [None] + [t.id for t in custom]
    tpl_names = {t.id: t.name + (" (default)" if t.is_default else "") for t in custom}
    current_tpl = defaults.get("template_id")
    template_id = c3.selectbox("Template", template_ids,
                               index=template_ids.index(current_tpl) if current_tpl in template_ids else 0,
                               format_func=lambda tid: "Business default" if tid is None else tpl_names[tid],
                               key=f"{prefix}_template")
    notes = st.text_area("Notes", value=defaults.get("notes") or "", key=f"{prefix}_notes")

    return {
        "customer_id": customer_id,
        "invoice_title": title,
        "invoice_date": invoice_date,
        "due_date": due_date,
        "overall_discount": overall,
        "jurisdiction": None if supply == "Auto" else supply,
        "template_id": template_id,
        "notes": notes,
    }


def build_draft(header: dict, rows: list):
    """Validate the whole form; returns (draft, errors)."""
    forms, errors = validate_items(rows)
    if header["customer_id"] is None:
        errors.insert(0, "Please select a customer")
    if errors:
        return None, errors
    try:
        return InvoiceDraft(**header, items=forms), []
    except ValidationError as e:
        return None, error_messages(e)


def live_totals(header: dict, rows: list):
    jurisdiction = book.jurisdiction_for(header["customer_id"], header["jurisdiction"])
    return book.preview_totals(rows_to_line_items(rows), jurisdiction, Decimal(str(header["overall_discount"])))


def require_business():
    if book.business is None:
        st.warning("Please create a business profile first.")
        st.stop()


# ---------------------------------------------------
# DASHBOARD
# ---------------------------------------------------
if page == "Dashboard":
    section("Dashboard")
    summary = book.summary()
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Invoices", summary["invoices"])
    c2.metric("Billed", money_str(summary["billed"]))
    c3.metric("Received", money_str(summary["paid"]))
    c4.metric("Outstanding", money_str(summary["outstanding"]))
    st.caption(" | ".join(f"{k}: {v}" for k, v in summary["by_status"].items()))

    recent = book.list_invoices()[:10]
    if recent:
        st.subheader("Recent invoices")
        st.dataframe(pd.DataFrame([{
            "Number": inv.invoice_number,
            "Customer": book.customer_name(inv),
            "Date": inv.invoice_date,
            "Total": float(inv.grand_total),
            "Due": float(inv.due_amount),
            "Status": inv.status.value,
        } for inv in recent]), use_container_width=True, hide_index=True)
    else:
        st.info("No invoices yet.")

# ---------------------------------------------------
# BUSINESS PROFILE
# ---------------------------------------------------
elif page == "Business Profile":
    section("Business Profile")
    current = book.business.model_dump() if book.business else COMPANY_INFO
    with st.form("business_form"):
        business_name = st.text_input("Business Name *", value=current["business_name"])
        address = st.text_area("Address *", value=current["address"])
        c1, c2, c3 = st.columns(3)
        state_code = c1.text_input("State Code * (2 digits)", value=current["state_code"])
        phone = c2.text_input("Phone * (10 digits)", value=current["phone"])
        gst_number = c3.text_input("GST Number", value=current.get("gst_number") or "")
        submitted = st.form_submit_button("Save Profile")
    if submitted:
        try:
            book.save_business(BusinessProfile(business_name=business_name, address=address,
                                               state_code=state_code, phone=phone, gst_number=gst_number))
            st.success("Business profile saved.")
        except ValidationError as e:
            show_errors(error_messages(e))

    if book.business:
        st.subheader("Brand assets")
        cols = st.columns(3)
        for col, asset_type in zip(cols, AssetType):
            with col:
                upload = st.file_uploader(asset_type.value.title(), type=["png", "jpg", "jpeg"],
                                          key=f"asset_{asset_type.value}")
                if upload is not None and st.button(f"Save {asset_type.value.title()}",
                                                    key=f"save_{asset_type.value}"):
                    try:
                        book.upload_asset(asset_type, upload.getvalue())
                        st.success(f"{asset_type.value.title()} saved.")
                    except (AssetError, InvoiceBookError) as e:
                        st.error(str(e))
                if asset_type in book.assets:
                    st.image(book.assets[asset_type], width=120)

# ---------------------------------------------------
# CUSTOMERS
# ---------------------------------------------------
elif page == "Customers":
    require_business()
    section("Customers")
    with st.form("customer_form", clear_on_submit=True):
        c1, c2, c3 = st.columns(3)
        name = c1.text_input("Name *")
        phone = c2.text_input("Phone (10 digits)")
        email = c3.text_input("Email")
        c1, c2, c3, c4 = st.columns([2, 1, 1, 1])
        address = c1.text_input("Address")
        city = c2.text_input("City")
        state_code = c3.text_input("State Code (2 digits)")
        gstin = c4.text_input("GSTIN")
        added = st.form_submit_button("➕ Add Customer")
    if added:
        try:
            customer = book.customers.add(CustomerForm(name=name, phone=phone, email=email, address=address,
                                                       city=city, state_code=state_code, gstin=gstin))
            st.success(f"Customer '{customer.name}' added.")
        except ValidationError as e:
            show_errors(error_messages(e))

    query = st.text_input("🔍 Search customers by name")
    results = book.customers.search(query, limit=50)
    if results:
        st.dataframe(book.customers.to_frame(results), use_container_width=True, hide_index=True)
        to_remove = st.selectbox("Remove customer", [None] + [c.id for c in results],
                              format_func=lambda cid: "—" if cid is None else book.customers.get(cid).name)
        if to_remove is not None and st.button("Delete customer"):
            book.customers.delete(to_remove)
            st.rerun()
    else:
        st.info("No customers found.")

# ---------------------------------------------------
# NEW INVOICE
# ---------------------------------------------------
elif page == "New Invoice":
    require_business()
    section("New Invoice")
    if not len(book.customers):
        st.info("Add a customer before creating an invoice.")

    header = invoice_header_fields("new", {})
    st.markdown("#### Items")
    rows = item_editor("new_items")

    totals = live_totals(header, rows)
    totals_box(totals)

    if st.button("Create Invoice"):
        draft, errors = build_draft(header, rows)
        if errors:
            logger.warning("invoice form rejected", extra={"errors": len(errors)})
            show_errors(errors)
        else:
            try:
                invoice = book.create_invoice(draft)
            except (InvoiceBookError, TemplateError) as e:
                st.error(str(e))
            else:
                del st.session_state["new_items"]
                st.session_state.selected_invoice = invoice.id
                st.success(f"Invoice {invoice.invoice_number} created for "
                           f"{money_str(invoice.grand_total)}. Open it from the Invoices page.")

# ---------------------------------------------------
# INVOICES (view, download, edit, payments)
# ---------------------------------------------------
elif page == "Invoices":
    require_business()
    section("Invoices")
    invoices = book.list_invoices()
    if not invoices:
        st.info("No invoices yet.")
        st.stop()

    st.dataframe(pd.DataFrame([{
        "Number": inv.invoice_number,
        "Customer": book.customer_name(inv),
        "Date": inv.invoice_date,
        "Type": inv.invoice_type.value,
        "Total": float(inv.grand_total),
        "Paid": float(inv.paid_amount),
        "Due": float(inv.due_amount),
        "Status": inv.status.value,
    } for inv in invoices]), use_container_width=True, hide_index=True)

    ids = [inv.id for inv in invoices]
    preselect = st.session_state.get("selected_invoice")
    invoice_id = st.selectbox("Open invoice", ids, index=ids.index(preselect) if preselect in ids else 0,
                              format_func=lambda iid: book.get_invoice(iid).invoice_number)
    invoice = book.get_invoice(invoice_id)
    customer = book.customers.find(invoice.customer_id)
    payments = book.payments_for(invoice.id)

    st.subheader(f"{invoice.invoice_title or 'Tax Invoice'} — {invoice.invoice_number}")
    c1, c2, c3 = st.columns(3)
    c1.write(f"**Customer:** {customer.name if customer else '—'}")
    c2.write(f"**Date:** {invoice.invoice_date}" + (f"  |  **Due:** {invoice.due_date}" if invoice.due_date else ""))
    c3.write(f"**Status:** {invoice.status.value}")
    st.dataframe(pd.DataFrame([{
        "Item": item.name,
        "Description": item.description or "",
        "Qty": float(item.quantity),
        "Price": float(item.unit_price),
        "Discount": float(line.discount_amount),
        "GST %": float(item.tax_rate),
        "Taxable": float(line.line_subtotal),
        "Line Total": float(line.line_total_with_tax),
    } for item, line in zip(invoice.items, invoice.totals.lines)]), use_container_width=True, hide_index=True)
    totals_box(invoice.totals)
    if invoice.notes:
        st.caption(invoice.notes)

    # Download buttons
    layout, color_hex, tpl_config = book.templates.resolve(invoice)
    col1, col2 = st.columns(2)
    with col1:
        st.download_button("📄 Download Invoice (PDF)",
                           data=generate_invoice_pdf(invoice, book.business, customer, payments,
                                                     layout, color_hex, tpl_config, book.assets),
                           file_name=f"{invoice.invoice_number}.pdf",
                           mime="application/pdf")
    with col2:
        st.download_button("📊 Download Items (CSV)",
                           data=generate_invoice_csv_bytes(invoice),
                           file_name=f"{invoice.invoice_number}.csv",
                           mime="text/csv")

    # Payments
    st.markdown("#### Payments")
    c1, c2, c3 = st.columns(3)
    c1.metric("Grand Total", money_str(invoice.grand_total))
    c2.metric("Paid", money_str(invoice.paid_amount))
    c3.metric("Due", money_str(invoice.due_amount))
    for p in payments:
        c1, c2, c3, c4 = st.columns([2, 2, 2, 1])
        c1.write(f"{p.payment_date} · {p.method.value}")
        c2.write(" ".join(filter(None, [p.reference_id, p.bank_name])) or "-")
        c3.write(money_str(p.amount))
        if c4.button("Delete", key=f"del_payment_{p.id}"):
            book.delete_payment(p.id)
            st.rerun()

    if invoice.due_amount > 0:
        with st.form(f"payment_form_{invoice.id}", clear_on_submit=True):
            c1, c2, c3 = st.columns(3)
            amount = c1.number_input("Amount *", min_value=0.0, max_value=float(invoice.due_amount),
                                     value=float(invoice.due_amount), step=100.0)
            method = c2.selectbox("Method *", [m.value for m in PaymentMethod])
            payment_date = c3.date_input("Payment Date *", value=date.today())
            c1, c2, c3 = st.columns(3)
            reference_id = c1.text_input("Reference / UTR")
            bank_name = c2.text_input("Bank Name")
            account_details = c3.text_input("Account Details")
            pay = st.form_submit_button("Record Payment")
        if pay:
            # same bound the book enforces, checked before submitting
            if not can_accept_payment(Decimal(str(amount)), invoice.due_amount):
                if amount <= 0:
                    st.error("Payment amount must be greater than 0")
                else:
                    st.error(f"Payment amount cannot exceed due amount of {money_str(invoice.due_amount)}")
            else:
                try:
                    book.add_payment(invoice.id, PaymentForm(
                        amount=Decimal(str(amount)), method=method, payment_date=payment_date,
                        reference_id=reference_id, bank_name=bank_name, account_details=account_details))
                    st.rerun()
                except ValidationError as e:
                    show_errors(error_messages(e))
                except InvoiceBookError as e:
                    st.error(str(e))
    else:
        st.success("This invoice is fully paid.")

    # Edit
    with st.expander("✏️ Edit invoice"):
        state_key = f"edit_items_{invoice.id}"
        if state_key not in st.session_state:
            st.session_state[state_key] = [
                {**{k: float(v) if isinstance(v, Decimal) else (v or "") for k, v in item.model_dump().items()},
                 "uid": uuid.uuid4().hex[:8]}
                for item in invoice.items
            ]
        header = invoice_header_fields(f"edit_{invoice.id}", {
            "customer_id": invoice.customer_id,
            "invoice_title": invoice.invoice_title,
            "invoice_date": invoice.invoice_date,
            "due_date": invoice.due_date,
            "overall_discount": invoice.totals.overall_discount,
            "jurisdiction": invoice.invoice_type.value,
            "template_id": invoice.template_id,
            "notes": invoice.notes,
        })
        rows = item_editor(state_key)
        totals_box(live_totals(header, rows))
        if st.button("Save Changes", key=f"save_{invoice.id}"):
            draft, errors = build_draft(header, rows)
            if errors:
                show_errors(errors)
            else:
                try:
                    book.update_invoice(invoice.id, draft)
                    del st.session_state[state_key]
                    st.rerun()
                except (InvoiceBookError, TemplateError) as e:
                    st.error(str(e))

# ---------------------------------------------------
# TEMPLATES
# ---------------------------------------------------
elif page == "Templates":
    require_business()
    section("Invoice Layout")
    layouts = book.templates.popular()
    cols = st.columns(len(layouts))
    for col, tpl in zip(cols, layouts):
        selected = book.templates.selected is not None and book.templates.selected.id == tpl.id
        col.markdown(f"**{tpl.name}**{' ✅' if selected else ''}")
        col.caption(f"Used by {tpl.usage_count} businesses")

    names = [t.name for t in book.templates.layouts]
    current = book.templates.selected.name if book.templates.selected else settings.default_template
    c1, c2 = st.columns(2)
    layout_name = c1.selectbox("Layout", names, index=names.index(current) if current in names else 0)
    color_hex = c2.color_picker("Accent colour", value=book.templates.color_hex)
    if st.button("Apply Layout"):
        try:
            book.templates.assign_template(layout_name, color_hex)
            st.success(f"{layout_name} layout applied.")
        except TemplateError as e:
            st.error(str(e))

    section("Section Templates")
    with st.form("template_form", clear_on_submit=True):
        tpl_name = st.text_input("Template Name *")
        flags = {}
        cols = st.columns(3)
        for i, (field_name, field_info) in enumerate(TemplateConfig.model_fields.items()):
            label = field_name.replace("show_", "Show ").replace("_", " ")
            flags[field_name] = cols[i % 3].checkbox(label, value=field_info.default)
        is_default = st.checkbox("Use as default")
        created = st.form_submit_button("Save Template")
    if created:
        try:
            book.templates.create(tpl_name, TemplateConfig(**flags), is_default=is_default)
            st.success("Template saved.")
        except TemplateError as e:
            st.error(str(e))

    for tpl in book.templates.all():
        c1, c2, c3 = st.columns([3, 1, 1])
        shown = [k.replace("show_", "").replace("_", " ") for k, v in tpl.config.model_dump().items() if v]
        c1.write(f"**{tpl.name}**{' (default)' if tpl.is_default else ''}: {', '.join(shown)}")
        if not tpl.is_default and c2.button("Make default", key=f"tpl_default_{tpl.id}"):
            book.templates.update(tpl.id, tpl.name, tpl.config, is_default=True)
            st.rerun()
        if c3.button("Delete", key=f"tpl_delete_{tpl.id}"):
            book.templates.delete(tpl.id)
            st.rerun()
