"""Pytest configuration and fixtures for the Bank Statement Converter."""

import shutil
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, Mock

import pytest

from statement_converter.config.settings import ParserSettings, Settings
from statement_converter.parser.assembler import STATEMENT_HEADER, OutputTable


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path)


@pytest.fixture
def sample_settings(temp_dir):
    """Create sample settings for testing."""
    return Settings(
        output_dir=str(temp_dir / "converted"),
        logs_dir=str(temp_dir / "logs"),
        max_retries=0,
        log_level="INFO",
    )


@pytest.fixture
def parser_settings():
    """Default engine settings."""
    return ParserSettings()


@pytest.fixture
def statement_text():
    """Two-page statement with a repeated header and page footer noise."""
    return "\n".join([
        "ABC Bank Limited",
        "Statement of Account",
        "Account Number: 0001234567890",
        "Statement Period: 01/07/2024 to 31/07/2024",
        "Date        Description                      Debit        Credit       Balance",
        "Opening Balance 789,196.42",
        "03-07-2024 Inward Remittance",
        "(from ABC Corp)",
        "114608.00 1473120.94",
        "05-07-2024   ATM Cash Withdrawal   5,000.00   1,468,120.94",
        "",
        "Page 1 of 2",
        "This is a computer generated statement",
        "Date        Description                      Debit        Credit       Balance",
        "10-07-2024   SMS Charges   SMSCHG 123456   25.00   1,468,095.94",
        "12-07-2024   Salary Deposit   50,000.00   1,518,095.94",
        "Closing Balance 1,518,095.94",
    ])


@pytest.fixture
def generic_text():
    """A document that is not a bank statement."""
    return "\n".join([
        "Quarterly Sales Report",
        "Region      Units      Revenue",
        "North       120        4,500.00",
        "South       80         3,100.50",
        "Prepared by the sales team",
    ])


@pytest.fixture
def statement_table():
    """A small statement table as produced by the engine."""
    return OutputTable(
        header=list(STATEMENT_HEADER),
        rows=[
            ["", "Opening Balance", "", "", "", "789,196.42"],
            ["03-07-2024", "Inward Remittance", "", "", "114608.00", "1473120.94"],
            ["05-07-2024", "Cash Withdrawal", "ATM", "5,000.00", "", "1,468,120.94"],
        ],
        is_bank_statement=True,
    )


@pytest.fixture
def pdf_file(temp_dir):
    """A placeholder file with a .pdf extension; content is mocked."""
    path = temp_dir / "statement.pdf"
    path.write_bytes(b"%PDF-1.4\n%placeholder\n")
    return path


def make_pdf_mock(page_texts):
    """Build a pdfplumber document mock usable as a context manager."""
    pdf = MagicMock()
    pdf.pages = [Mock(extract_text=Mock(return_value=text)) for text in page_texts]
    pdf.__enter__.return_value = pdf
    pdf.__exit__.return_value = False
    return pdf


@pytest.fixture
def pdf_mock_factory():
    """Factory fixture for pdfplumber document mocks."""
    return make_pdf_mock
