"""Tests for the transaction assembler and the engine entry point."""

import logging
from datetime import date
from unittest.mock import patch

import pandas as pd
import pytest

from statement_converter.config.settings import ParserSettings
from statement_converter.parser.assembler import (
    STATEMENT_HEADER,
    LineContext,
    LineKind,
    SectionState,
    TransactionAssembler,
    TransactionRecord,
    classify_line,
    sort_records,
)
from statement_converter.parser.engine import parse_statement
from statement_converter.parser.line_classifier import (
    find_date,
    is_definitive_end_marker,
    is_transaction_line,
)
from statement_converter.parser.amounts import parse_amount

HEADER = "Date        Description        Debit        Credit        Balance"


def kind_of(line):
    return classify_line(LineContext.from_line(line))


class TestLineKinds:
    """Test cases for the line classification rule table."""

    @pytest.mark.parametrize("line, kind", [
        ("", LineKind.BLANK),
        ("   ", LineKind.BLANK),
        (HEADER, LineKind.HEADER),
        ("Opening Balance 789,196.42", LineKind.OPENING_BALANCE),
        ("Opening Balance 0.00", LineKind.OPENING_BALANCE),
        ("Closing Balance 1,000.00", LineKind.END_MARKER),
        ("03-07-2024 Inward Remittance", LineKind.DATED),
        ("Page 1 of 2", LineKind.PAGINATION),
        ("114608.00 1473120.94", LineKind.AMOUNTS),
        ("(from ABC Corp)", LineKind.CONTINUATION),
        ("----------", LineKind.NOISE),
    ])
    def test_classify_line(self, line, kind):
        """Test that each line lands in the expected kind."""
        assert kind_of(line) == kind

    def test_opening_balance_without_amount_is_not_opening(self):
        """Test that the phrase alone does not make an opening balance row."""
        assert kind_of("Opening Balance") == LineKind.CONTINUATION


class TestTransactionAssembler:
    """Test cases for the assembler state machine."""

    def test_multi_line_transaction(self):
        """Test a transaction spread over three lines."""
        records = TransactionAssembler().assemble([
            HEADER,
            "03-07-2024 Inward Remittance",
            "(from ABC Corp)",
            "114608.00 1473120.94",
        ])

        assert len(records) == 1
        record = records[0]
        assert record.date == "03-07-2024"
        assert record.description == "Inward Remittance (from ABC Corp)"
        assert record.credit == "114608.00"
        assert record.debit == ""
        assert record.balance == "1473120.94"

    def test_multi_line_without_header(self):
        """Test that a transaction-shaped dated line opens the section."""
        records = TransactionAssembler().assemble([
            "03-07-2024 Inward Remittance",
            "(from ABC Corp)",
            "114608.00 1473120.94",
        ])
        assert len(records) == 1
        assert records[0].credit == "114608.00"

    def test_opening_balance(self):
        """Test the opening balance row."""
        records = TransactionAssembler().assemble(["Opening Balance 789,196.42"])

        assert len(records) == 1
        record = records[0]
        assert record.description == "Opening Balance"
        assert record.balance == "789,196.42"
        assert record.debit == ""
        assert record.credit == ""

    def test_zero_opening_balance(self):
        """Test that an account opening at zero keeps its opening row."""
        records = TransactionAssembler().assemble([
            "Opening Balance 0.00",
            HEADER,
            "03-07-2024   Salary Deposit   100.00   350.00",
        ])

        assert [record.description for record in records] == ["Opening Balance", "Salary Deposit"]
        assert records[0].balance == "0.00"
        assert records[1].credit == "100.00"

    def test_zero_opening_balance_closes_open_draft(self):
        """Test that the phrase is not swallowed into the previous description."""
        records = TransactionAssembler().assemble([
            HEADER,
            "03-07-2024 Inward Remittance",
            "Opening Balance 0.00",
        ])

        assert records[0].description == "Inward Remittance"
        assert records[1].description == "Opening Balance"
        assert records[1].balance == "0.00"

    @pytest.mark.parametrize("line", [
        "05-07-2024 Cash Withdrawal 5,000.00   1,468,120.94",
        "05-07-2024 Cash Withdrawal 5,000.00  1,468,120.94",
        "05-07-2024 Cash Withdrawal 5,000.00 1,468,120.94",
    ])
    def test_uneven_column_gaps(self, line):
        """Test an amount separated from the description by one space only."""
        records = TransactionAssembler().assemble([HEADER, line])

        assert len(records) == 1
        record = records[0]
        assert record.description == "Cash Withdrawal"
        assert record.debit == "5,000.00"
        assert record.credit == ""
        assert record.balance == "1,468,120.94"

    def test_reference_cell_with_glued_amount(self):
        """Test that an amount stuck to the reference cell is not lost."""
        records = TransactionAssembler().assemble([
            HEADER,
            "10-07-2024   SMS Charges   SMSCHG 123456 25.00   1,468,095.94",
        ])

        record = records[0]
        assert record.instrument_ref == "SMSCHG 123456"
        assert record.description == "SMS Charges"
        assert record.debit == "25.00"
        assert record.balance == "1,468,095.94"

    def test_single_line_transaction_finalized(self):
        """Test that a dated line carrying amounts closes at once."""
        assembler = TransactionAssembler()
        assembler.feed(HEADER)
        assembler.feed("05-07-2024   ATM Cash Withdrawal   5,000.00   1,468,120.94")

        assert assembler.state is SectionState.IN_SECTION_IDLE
        assert assembler.draft is None
        record = assembler.records[0]
        assert record.instrument_ref == "ATM"
        assert record.description == "Cash Withdrawal"
        assert record.debit == "5,000.00"
        assert record.balance == "1,468,120.94"

    def test_new_dated_line_finalizes_open_draft(self):
        """Test that a draft without amounts is still emitted."""
        records = TransactionAssembler().assemble([
            HEADER,
            "01-07-2024 Standing instruction",
            "02-07-2024 Salary Deposit 50,000.00 60,000.00",
        ])

        assert [record.date for record in records] == ["01-07-2024", "02-07-2024"]
        assert records[0].description == "Standing instruction"
        assert (records[0].debit, records[0].credit, records[0].balance) == ("", "", "")

    def test_missing_amounts_logged(self, caplog):
        """Test that an emitted row without amounts produces a warning."""
        with caplog.at_level(logging.WARNING):
            TransactionAssembler().assemble([HEADER, "01-07-2024 Standing instruction", ""])
        assert "has no amounts" in caplog.text

    def test_blank_line_flushes_draft(self):
        """Test that a blank line closes the open draft but not the section."""
        assembler = TransactionAssembler()
        assembler.feed(HEADER)
        assembler.feed("01-07-2024 Standing instruction")
        assert assembler.state is SectionState.IN_SECTION_BUILDING

        assembler.feed("")
        assert assembler.draft is None
        assert assembler.state is SectionState.IN_SECTION_IDLE
        assert len(assembler.records) == 1

        assembler.feed("(orphan text)")
        assert len(assembler.records) == 1

    def test_end_marker_closes_section(self):
        """Test that a definitive end marker returns to before-section."""
        assembler = TransactionAssembler()
        assembler.feed(HEADER)
        assembler.feed("Closing Balance 1,000.00")
        assert assembler.state is SectionState.BEFORE_SECTION

    def test_consecutive_noise_closes_section(self):
        """Test the bounded run of unrecognized lines."""
        assembler = TransactionAssembler(ParserSettings(max_consecutive_non_transaction=3))
        assembler.feed(HEADER)
        assembler.feed("----")
        assembler.feed("----")
        assert assembler.state is SectionState.IN_SECTION_IDLE

        assembler.feed("----")
        assert assembler.state is SectionState.BEFORE_SECTION

    def test_twenty_noise_lines_by_default(self):
        """Test the default miss limit."""
        assembler = TransactionAssembler()
        assembler.feed(HEADER)
        for _ in range(19):
            assembler.feed("Important notice for customers")
        assert assembler.state is SectionState.IN_SECTION_IDLE

        assembler.feed("Important notice for customers")
        assert assembler.state is SectionState.BEFORE_SECTION

    def test_noise_does_not_reset_with_blank_lines(self):
        """Test that blank lines leave the miss counter alone."""
        assembler = TransactionAssembler(ParserSettings(max_consecutive_non_transaction=2))
        assembler.feed(HEADER)
        assembler.feed("----")
        assembler.feed("")
        assembler.feed("----")
        assert assembler.state is SectionState.BEFORE_SECTION

    def test_dated_line_outside_section_needs_amount_shape(self):
        """Test that dated metadata before any header is skipped."""
        assembler = TransactionAssembler()
        assembler.feed("Printed on 05/07/24")
        assert assembler.state is SectionState.BEFORE_SECTION
        assert assembler.draft is None

    def test_amount_line_with_rejected_amounts_is_text(self):
        """Test that a line whose numbers are all rejected extends the description."""
        records = TransactionAssembler().assemble([
            HEADER,
            "01-07-2024 Cheque deposit",
            "Cleared with cheque 2024",
            "1,000.00 5,000.00",
        ])
        assert records[0].description == "Cheque deposit Cleared with cheque 2024"
        assert records[0].credit == "1,000.00"

    def test_reference_taken_from_amount_line(self):
        """Test instrument reference recovery from the closing line."""
        records = TransactionAssembler().assemble([
            HEADER,
            "01-07-2024 Payment to supplier",
            "IBFT   2,500.00   7,500.00",
        ])
        assert records[0].instrument_ref == "IBFT"
        assert records[0].debit == "2,500.00"
        assert records[0].balance == "7,500.00"

    def test_line_failure_degrades_to_text(self):
        """Test that a line raising during handling never aborts the scan."""
        assembler = TransactionAssembler()
        assembler.feed(HEADER)
        assembler.feed("01-07-2024 Standing instruction")

        with patch("statement_converter.parser.assembler.is_continuation_line", side_effect=RuntimeError("boom")):
            assembler.feed("(extra text)")

        records = assembler.finish()
        assert len(records) == 1
        assert records[0].description == "Standing instruction (extra text)"

    def test_finish_flushes_open_draft(self):
        """Test that end of input finalizes the open draft."""
        assembler = TransactionAssembler()
        assembler.feed(HEADER)
        assembler.feed("01-07-2024 Standing instruction")
        assert assembler.records == []
        assert len(assembler.finish()) == 1


class TestRecordOrdering:
    """Test cases for record sorting."""

    def test_sorted_by_date_then_encounter(self):
        """Test stable date ordering with undated rows first."""
        records = [
            TransactionRecord(0, "05-07-2024", date(2024, 7, 5), "b"),
            TransactionRecord(1, "", None, "Opening Balance"),
            TransactionRecord(2, "01-07-2024", date(2024, 7, 1), "a"),
            TransactionRecord(3, "05-07-2024", date(2024, 7, 5), "c"),
        ]
        ordered = sort_records(records)
        assert [record.description for record in ordered] == ["Opening Balance", "a", "b", "c"]


class TestParseStatement:
    """Test cases for the engine entry point."""

    def test_statement_rows(self, statement_text):
        """Test a two-page statement with repeated headers."""
        table = parse_statement(statement_text)

        assert table.is_bank_statement
        assert table.header == STATEMENT_HEADER
        assert [row[0] for row in table.rows] == ["", "03-07-2024", "05-07-2024", "10-07-2024", "12-07-2024"]
        assert table.rows[0] == ["", "Opening Balance", "", "", "", "789,196.42"]
        assert table.rows[1] == ["03-07-2024", "Inward Remittance (from ABC Corp)", "", "", "114608.00", "1473120.94"]
        assert table.rows[2] == ["05-07-2024", "Cash Withdrawal", "ATM", "5,000.00", "", "1,468,120.94"]
        assert table.rows[3] == ["10-07-2024", "SMS Charges", "SMSCHG 123456", "25.00", "", "1,468,095.94"]
        assert table.rows[4] == ["12-07-2024", "Salary Deposit", "", "", "50,000.00", "1,518,095.94"]

    def test_idempotent(self, statement_text):
        """Test that parsing twice gives identical tables."""
        assert parse_statement(statement_text).to_rows() == parse_statement(statement_text).to_rows()

    def test_debit_credit_mutually_exclusive(self, statement_text):
        """Test the per-row amount invariant."""
        for _, _, _, debit, credit, balance in parse_statement(statement_text).rows:
            assert not (debit and credit)
            if balance:
                assert parse_amount(balance) != parse_amount(debit or "x")
                assert parse_amount(balance) != parse_amount(credit or "x")

    def test_rows_in_date_order(self, statement_text):
        """Test non-decreasing dates in the output."""
        dates = [find_date(row[0]).value for row in parse_statement(statement_text).rows if row[0]]
        assert dates == sorted(dates)

    def test_every_transaction_line_counted_once(self, statement_text):
        """Test row conservation for transaction-shaped lines."""
        dated_rows = [
            line for line in statement_text.splitlines()
            if is_transaction_line(line) and not is_definitive_end_marker(line)
        ]
        table = parse_statement(statement_text)
        assert len([row for row in table.rows if row[0]]) == len(dated_rows)

    def test_pages_out_of_order_are_sorted(self):
        """Test section re-entry with later page dated earlier."""
        text = "\n".join([
            "Account Statement - Balance in PKR",
            HEADER,
            "15-07-2024   Cash Deposit   1,000.00   3,000.00",
            "Page 1 of 2",
            HEADER,
            "02-07-2024   ATM Withdrawal   500.00   2,000.00",
            "Page 2 of 2",
        ])
        rows = parse_statement(text).rows
        assert [row[0] for row in rows] == ["02-07-2024", "15-07-2024"]

    def test_generic_fallback(self, generic_text):
        """Test that non-statements skip the assembler."""
        table = parse_statement(generic_text)

        assert not table.is_bank_statement
        assert table.header is None
        assert table.to_rows()[0] == ["Quarterly Sales Report"]

    def test_two_keywords_use_fallback(self):
        """Test that two statement terms are below the threshold."""
        text = "Payment advice\n01/07/2024 Credit 100.00 200.00"
        table = parse_statement(text)
        assert not table.is_bank_statement

    def test_three_keywords_use_assembler(self):
        """Test that three statement terms select the assembler."""
        text = "Payment advice - Deposit\n01/07/2024 Credit 100.00 200.00"
        table = parse_statement(text)
        assert table.is_bank_statement
        assert len(table.rows) == 1

    def test_empty_text(self):
        """Test that empty input still returns a table."""
        table = parse_statement("")
        assert table.rows == []

    def test_output_table_helpers(self, statement_text):
        """Test the DataFrame view and column hints."""
        table = parse_statement(statement_text)

        df = table.to_dataframe()
        assert isinstance(df, pd.DataFrame)
        assert list(df.columns) == STATEMENT_HEADER
        assert len(df) == len(table)
        assert table.column_hints() == {0: "date", 3: "debit", 4: "credit", 5: "balance"}
