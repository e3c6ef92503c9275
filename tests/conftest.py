"""
Shared fixtures for the invoicing tests.

The app modules live at the repository root; pytest's ``pythonpath`` setting
in pyproject.toml puts them on the import path.
"""

import io
from datetime import datetime, timedelta

import pytest
from PIL import Image

from config import Settings
from invoice_book import InvoiceBook
from models import BusinessProfile, CustomerForm


class TickingClock:
    """Deterministic clock; each call moves one second forward."""

    def __init__(self, start=datetime(2025, 10, 7, 10, 30, 0)):
        self.now = start

    def __call__(self):
        current = self.now
        self.now += timedelta(seconds=1)
        return current


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def business():
    return BusinessProfile(
        business_name="Friends Group Company Pvt. Ltd.",
        address="Wiman Nagar, Pune",
        state_code="27",
        phone="8207050123",
        gst_number="27abcde1234f1z5",
    )


@pytest.fixture
def book(settings, business):
    b = InvoiceBook(settings, clock=TickingClock())
    b.save_business(business)
    return b


@pytest.fixture
def local_customer(book):
    return book.customers.add(CustomerForm(name="Pune Traders", state_code="27", city="Pune"))


@pytest.fixture
def remote_customer(book):
    return book.customers.add(CustomerForm(name="Bangalore Retail", state_code="29", phone="9876543210"))


@pytest.fixture
def png_bytes():
    img = Image.new("RGBA", (600, 300), (11, 83, 148, 128))
    out = io.BytesIO()
    img.save(out, format="PNG")
    return out.getvalue()
