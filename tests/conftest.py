"""
Pytest configuration and shared fixtures.
"""

import pytest
from datetime import date
from decimal import Decimal

from itc_recon.models.purchase import PurchaseLineItem, PurchaseRecord
from itc_recon.models.returns import EntryKind, ReturnEntry, ReturnSection


@pytest.fixture
def sample_gstin():
    return "27AADCB2230M1ZT"


@pytest.fixture
def vendor_gstin():
    return "29AAGCR4375J1ZU"


@pytest.fixture
def other_vendor_gstin():
    return "27AAPFU0939F1ZV"


@pytest.fixture
def sample_period():
    return "032025"


@pytest.fixture
def sample_return_document(sample_gstin, vendor_gstin, other_vendor_gstin, sample_period):
    return {
        "gstin": sample_gstin,
        "fp": sample_period,
        "b2b": [
            {
                "ctin": vendor_gstin,
                "trdnm": "Rao Components Pvt Ltd",
                "inv": [
                    {"inum": "INV-2025-001", "idt": "15-03-2025", "val": 11800, "txval": 10000,
                     "igst": 1800, "itcavl": "Y"},
                    {"inum": "INV-2025-002", "idt": "18-03-2025", "val": 59000, "txval": 50000,
                     "igst": 9000, "itcavl": "Y"},
                ],
            },
            {
                "ctin": other_vendor_gstin,
                "trdnm": "Urban Supplies",
                "inv": [
                    {"inum": "US/118", "idt": "05/03/2025", "val": 23600, "txval": 20000,
                     "cgst": 1800, "sgst": 1800},
                ],
            },
        ],
        "cdnr": [
            {
                "ctin": vendor_gstin,
                "trdnm": "Rao Components Pvt Ltd",
                "nt": [
                    {"ntnum": "CN-7", "ntdt": "25-03-2025", "typ": "C", "val": 1180, "txval": 1000, "igst": 180},
                ],
            },
        ],
        "impg": [
            {"refdt": "12-03-2025", "portcd": "INNSA1", "benum": "BE1234567", "bedt": "10-03-2025",
             "txval": 100000, "igst": 18000},
        ],
    }


@pytest.fixture
def make_entry(sample_gstin, sample_period, other_vendor_gstin):
    """Factory for ReturnEntry rows; defaults to the 11,800 B2B invoice."""
    counter = {"row": 0}

    def _make(**overrides):
        fields = {
            "return_gstin": sample_gstin,
            "return_period": sample_period,
            "section": ReturnSection.B2B,
            "kind": EntryKind.INVOICE,
            "row_index": counter["row"],
            "vendor_gstin": other_vendor_gstin,
            "vendor_name": "Urban Supplies",
            "invoice_number": "INV001",
            "invoice_date": date(2025, 3, 15),
            "invoice_value": Decimal("11800"),
            "taxable_value": Decimal("10000"),
            "cgst": Decimal("900"),
            "sgst": Decimal("900"),
        }
        counter["row"] += 1
        fields.update(overrides)
        return ReturnEntry(**fields)

    return _make


@pytest.fixture
def make_record(other_vendor_gstin):
    """Factory for PurchaseRecord rows matching ``make_entry`` defaults."""

    def _make(**overrides):
        fields = {
            "record_id": "PR-001",
            "vendor_gstin": other_vendor_gstin,
            "vendor_name": "Urban Supplies",
            "invoice_number": "INV001",
            "invoice_date": date(2025, 3, 15),
            "invoice_value": Decimal("11800"),
            "taxable_value": Decimal("10000"),
            "cgst": Decimal("900"),
            "sgst": Decimal("900"),
            "payment_date": date(2025, 3, 30),
        }
        fields.update(overrides)
        return PurchaseRecord(**fields)

    return _make


@pytest.fixture
def make_line():
    def _make(**overrides):
        fields = {
            "line_id": "L1",
            "description": "Office supplies",
            "taxable_value": Decimal("55556"),
            "igst": Decimal("10000"),
        }
        fields.update(overrides)
        return PurchaseLineItem(**fields)

    return _make


@pytest.fixture
def sample_purchase_rows(vendor_gstin, other_vendor_gstin):
    """Purchase register rows for ``sample_return_document`` as raw dicts."""
    return [
        {
            "record_id": "PR-101",
            "vendor_gstin": vendor_gstin,
            "vendor_name": "Rao Components Pvt Ltd",
            "invoice_number": "INV-2025-001",
            "invoice_date": "2025-03-15",
            "invoice_value": "11800",
            "taxable_value": "10000",
            "igst": "1800",
            "payment_date": "2025-03-28",
        },
        {
            "record_id": "PR-102",
            "vendor_gstin": vendor_gstin,
            "vendor_name": "Rao Components Pvt Ltd",
            "invoice_number": "INV-2025-002",
            "invoice_date": "2025-03-18",
            "invoice_value": "59590",
            "taxable_value": "50500",
            "igst": "9090",
            "payment_date": "2025-04-02",
        },
        {
            "record_id": "PR-103",
            "vendor_gstin": other_vendor_gstin,
            "vendor_name": "Urban Supplies",
            "invoice_number": "US-118",
            "invoice_date": "2025-03-05",
            "invoice_value": "23600",
            "taxable_value": "20000",
            "cgst": "1800",
            "sgst": "1800",
            "payment_date": "2025-03-20",
        },
        {
            "record_id": "PR-104",
            "vendor_gstin": other_vendor_gstin,
            "vendor_name": "Urban Supplies",
            "invoice_number": "US-131",
            "invoice_date": "2025-03-27",
            "invoice_value": "5900",
            "taxable_value": "5000",
            "cgst": "450",
            "sgst": "450",
        },
    ]
