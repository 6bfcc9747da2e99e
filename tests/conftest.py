"""Pytest configuration and shared fixtures"""

import pytest
import pytest_asyncio
import os
import sys
from decimal import Decimal
from unittest.mock import MagicMock, AsyncMock

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from invoice_tax.engine.row_store import LineItemTable
from invoice_tax.models.line_item import TDSCodeRecord, GSTCodeRecord, ItemCatalogEntry


@pytest.fixture
def tds_record() -> TDSCodeRecord:
    """2% TDS code"""
    return TDSCodeRecord(code="194C", percentage=Decimal("2"), description="Contractors")


@pytest.fixture
def gst_record() -> GSTCodeRecord:
    """18% IGST-only code"""
    return GSTCodeRecord(
        code="GST18",
        igst_percentage=Decimal("18"),
        cgst_percentage=Decimal("0"),
        sgst_percentage=Decimal("0"),
        utgst_percentage=Decimal("0"),
        description="IGST 18%",
    )


@pytest.fixture
def intra_state_gst_record() -> GSTCodeRecord:
    """9% CGST + 9% SGST code"""
    return GSTCodeRecord(
        code="GST9",
        cgst_percentage=Decimal("9"),
        sgst_percentage=Decimal("9"),
        description="CGST 9% + SGST 9%",
    )


@pytest.fixture
def catalog_entries() -> list:
    return [
        ItemCatalogEntry(
            code="ITM-001",
            description="Printer paper A4",
            default_gst_code="GST18",
            default_tds_code="194C",
        ),
        ItemCatalogEntry(code="ITM-002", description="Consulting hours"),
    ]


@pytest.fixture
def mock_code_client(tds_record, gst_record, catalog_entries):
    """Mock CodeApiClient"""
    mock = MagicMock()
    mock.search_tds_codes = AsyncMock(return_value=[tds_record])
    mock.search_tax_codes = AsyncMock(return_value=[gst_record])
    mock.get_items = AsyncMock(return_value=catalog_entries)
    return mock


@pytest.fixture
def table(mock_code_client) -> LineItemTable:
    """Table for synchronous tests (codes kept under the search threshold)"""
    return LineItemTable(mock_code_client, debounce_ms=5, min_chars=3)


@pytest_asyncio.fixture
async def async_table(mock_code_client):
    """Table bound to the running loop; closed after the test"""
    t = LineItemTable(mock_code_client, debounce_ms=5, min_chars=3)
    yield t
    await t.aclose()


@pytest.fixture
def sample_imported_line_items() -> list:
    """Line items as extracted from an uploaded invoice"""
    return [
        {
            "description": "Printer paper A4",
            "quantity": "10.0",
            "unit_price": "100.00",
            "igst_amount": "180.00",
            "cgst_amount": "",
            "sgst_amount": "",
            "total": "1180.00",
        },
        {
            "description": "Toner cartridge",
            "quantity": "2",
            "unit_price": "2500",
            "igst_amount": None,
            "cgst_amount": "450.00",
            "sgst_amount": "450.00",
            "total": "5900.00",
        },
    ]
