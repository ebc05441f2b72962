"""Tests for the line-level components of the extraction engine."""

from datetime import date
from decimal import Decimal

import pytest

from statement_converter.config.settings import ParserSettings
from statement_converter.parser.amounts import (
    AmountToken,
    extract_amounts,
    is_amount_text,
    parse_amount,
    rejection_reason,
    remove_currency_symbol,
)
from statement_converter.parser.columns import (
    analyze_line,
    build_description,
    find_instrument_ref,
    split_columns,
)
from statement_converter.parser.debit_credit import (
    KeywordPolicy,
    classify_amounts,
    contains_term,
    resolve_direction,
)
from statement_converter.parser.line_classifier import (
    find_date,
    has_date,
    is_continuation_line,
    is_definitive_end_marker,
    is_pagination_marker,
    is_transaction_header,
    is_transaction_line,
    parse_date_text,
)
from statement_converter.parser.statement_classifier import (
    classify_statement,
    extract_general_tabular_data,
)


def values(tokens):
    return [token.value for token in tokens]


class TestDateRecognition:
    """Test cases for date grammars."""

    @pytest.mark.parametrize("line, expected", [
        ("03/07/2024 Salary", date(2024, 7, 3)),
        ("2024-07-03 Salary", date(2024, 7, 3)),
        ("03-07-2024 Salary", date(2024, 7, 3)),
        ("Jul 3, 2024 Salary", date(2024, 7, 3)),
        ("3 July 2024 Salary", date(2024, 7, 3)),
        ("20240703 Salary", date(2024, 7, 3)),
        ("03/07/24 Salary", date(2024, 7, 3)),
    ])
    def test_supported_grammars(self, line, expected):
        """Test each supported date shape."""
        assert find_date(line).value == expected

    def test_month_first_fallback(self):
        """Test that an impossible day-first date is read month first."""
        assert find_date("07/25/2024 Payment").value == date(2024, 7, 25)

    def test_invalid_calendar_date_is_not_a_date(self):
        """Test that digits which do not form a real date are ignored."""
        assert not has_date("32/13/2024 Something")
        assert not has_date("Reference 12345678")

    def test_match_span_and_text(self):
        """Test that the source span of the date is reported."""
        match = find_date("Fee 03-07-2024 SMS Charge")
        assert match.text == "03-07-2024"
        assert match.span == (4, 14)
        assert match.grammar == "d-m-y"

    def test_parse_date_text(self):
        """Test parsing a previously matched date string."""
        assert parse_date_text("15 Mar 2024") == date(2024, 3, 15)
        assert parse_date_text("") is None


class TestLineClassifier:
    """Test cases for line predicates."""

    def test_header_lines(self):
        """Test header row signatures."""
        assert is_transaction_header("Date   Description   Debit   Credit   Balance")
        assert is_transaction_header("Transaction Date  Description  Amount")
        assert not is_transaction_header("03-07-2024 Salary 1,000.00")

    def test_end_markers(self):
        """Test that summary phrases close the section but page markers do not."""
        assert is_definitive_end_marker("Closing Balance 1,518,095.94")
        assert is_definitive_end_marker("*** End of Statement ***")
        assert not is_definitive_end_marker("Page 2 of 3")
        assert not is_definitive_end_marker("continued on next page")

    def test_pagination_markers(self):
        """Test page number noise detection."""
        assert is_pagination_marker("Page 2 of 3")
        assert is_pagination_marker("continued")
        assert not is_pagination_marker("Salary Deposit")

    def test_transaction_line(self):
        """Test complete transaction row detection."""
        assert is_transaction_line("05/07/2024 ATM Withdrawal 500.00 1,000.00")
        assert is_transaction_line("05/07/2024 Cash deposit 15000")
        assert not is_transaction_line("Opening Balance 789,196.42")
        assert not is_transaction_line("Date Description Amount")
        assert not is_transaction_line("ATM Withdrawal 500.00")

    def test_continuation_line(self):
        """Test description continuation detection."""
        assert is_continuation_line("(from ABC Corp)")
        assert not is_continuation_line("1,234.56 2,000.00")
        assert not is_continuation_line("05/07/2024 Something")
        assert not is_continuation_line("1,234.56 transferred")


class TestAmountTokenizer:
    """Test cases for amount extraction."""

    def test_date_digits_are_never_amounts(self):
        """Test the date span exclusion and left-to-right ordering."""
        line = "Fee 03-07-2024 SMS Charge 215.00 50000.00"
        date_match = find_date(line)
        tokens = extract_amounts(line, date_match)

        assert values(tokens) == ["215.00", "50000.00"]
        for token in tokens:
            assert token.end <= date_match.start or token.position >= date_match.end

    def test_date_given_as_substring(self):
        """Test passing the known date as plain text."""
        tokens = extract_amounts("Fee 03-07-2024 SMS Charge 215.00 50000.00", "03-07-2024")
        assert values(tokens) == ["215.00", "50000.00"]

    def test_currency_symbols_stripped(self):
        """Test that currency prefixes are removed from values."""
        tokens = extract_amounts("Deposit $1,250.00 PKR 3,000.00")
        assert values(tokens) == ["1,250.00", "3,000.00"]
        assert tokens[0].position == 8

    def test_keeps_trailing_amounts(self):
        """Test that only the last amounts of a crowded line survive."""
        tokens = extract_amounts("01/02/2024 Ref 123.45 200.00 300.00")
        assert values(tokens) == ["200.00", "300.00"]

    def test_trailing_limit_is_configurable(self):
        """Test the per-line amount limit setting."""
        settings = ParserSettings(max_amounts_per_line=3)
        tokens = extract_amounts("01/02/2024 Ref 123.45 200.00 300.00", settings=settings)
        assert values(tokens) == ["123.45", "200.00", "300.00"]

    def test_bare_integers_at_line_end(self):
        """Test recovery of amounts that lost their decimals."""
        line = "05-07-2024 Cash deposit 15000 1515000"
        tokens = extract_amounts(line, find_date(line))
        assert values(tokens) == ["15000", "1515000"]
        assert not any(token.has_decimals for token in tokens)

    def test_bare_integers_early_in_line_ignored(self):
        """Test that leading reference numbers are not amounts."""
        tokens = extract_amounts("Cheque 123456 cleared against account 500.00")
        assert values(tokens) == ["500.00"]

    def test_decimal_fragment_rejected(self):
        """Test that a leading-dot fragment is discarded."""
        tokens = extract_amounts("Charges .52 100.00 200.00")
        assert values(tokens) == ["100.00", "200.00"]

    @pytest.mark.parametrize("token, reason", [
        (AmountToken("2024", 0, 4, has_decimals=False), "calendar_year"),
        (AmountToken("000123456789012", 0, 15, has_decimals=False), "account_number"),
        (AmountToken("1111111111111", 0, 13, has_decimals=False), "account_number"),
        (AmountToken("0.00", 0, 4), "below_minimum"),
        (AmountToken("009", 0, 3, has_decimals=False), "below_minimum"),
        (AmountToken(".52", 0, 3), "decimal_fragment"),
    ])
    def test_exclusion_rules(self, token, reason):
        """Test each exclusion rule in isolation."""
        assert rejection_reason(token) == reason

    def test_date_overlap_rule(self):
        """Test the date overlap rule wins over the others."""
        token = AmountToken("2024", 6, 10, has_decimals=False)
        assert rejection_reason(token, (0, 10)) == "date_overlap"

    def test_accepted_token(self):
        """Test that a normal amount passes every rule."""
        assert rejection_reason(AmountToken("1,468,120.94", 0, 12)) is None

    def test_amount_helpers(self):
        """Test amount text helpers."""
        assert is_amount_text("1,234.56")
        assert is_amount_text("500.00 10,500.00")
        assert not is_amount_text("ATM")
        assert remove_currency_symbol("$1,000.00") == "1,000.00"
        assert parse_amount("1,234.56") == Decimal("1234.56")
        assert parse_amount("abc") is None
        assert parse_amount("") is None


class TestColumnDisambiguator:
    """Test cases for column splitting and description reconstruction."""

    def test_split_on_tabs(self):
        """Test explicit column separators."""
        assert split_columns("Cash Withdrawal\t500.00\t1,000.00") == ["Cash Withdrawal", "500.00", "1,000.00"]

    def test_split_on_wide_gaps(self):
        """Test splitting on runs of three or more spaces."""
        assert split_columns("ATM Withdrawal   500.00   1,000.00") == ["ATM Withdrawal", "500.00", "1,000.00"]

    def test_split_on_narrow_gaps(self):
        """Test the two-space fallback."""
        assert split_columns("Salary  1,000.00") == ["Salary", "1,000.00"]

    def test_single_cell(self):
        """Test that a line without gaps is one cell."""
        assert split_columns("Single description") == ["Single description"]

    def test_tab_cell_with_two_amounts(self):
        """Test a cell holding a debit and the running balance."""
        line = "05/07/2024\tGrocery Store\t500.00 10,500.00"
        layout = analyze_line(line, find_date(line))

        assert layout.mode == "tab"
        assert layout.description == "Grocery Store"
        assert values(layout.amounts) == ["500.00", "10,500.00"]

    def test_reference_cell(self):
        """Test instrument reference taken from its own cell."""
        line = "05/07/2024\tFund Transfer to Ali\tIBFT\t2,000.00\t8,500.00"
        layout = analyze_line(line, find_date(line))

        assert layout.instrument_ref == "IBFT"
        assert layout.description == "Fund Transfer to Ali"
        assert values(layout.amounts) == ["2,000.00", "8,500.00"]

    def test_reference_found_in_single_cell_line(self):
        """Test reference detection by pattern when columns are lost."""
        line = "05/07/2024 ATM Withdrawal 500.00 1,000.00"
        layout = analyze_line(line, find_date(line))

        assert layout.mode == "single"
        assert layout.instrument_ref == "ATM"
        assert layout.description == "Withdrawal"

    def test_reference_after_amounts_ignored(self):
        """Test that a code after the first amount is not a reference."""
        ref = find_instrument_ref("Payment 500.00 POS", before=8)
        assert ref is None

    def test_description_from_complementary_spans(self):
        """Test building the description outside removed spans."""
        assert build_description("Ref 123456789 Payment", [(0, 3)]) == "Payment"
        line = "Salary 1,000.00 July"
        assert build_description(line, [(7, 15), None]) == "Salary July"


class TestDebitCreditClassifier:
    """Test cases for debit/credit assignment."""

    @pytest.mark.parametrize("text, direction", [
        ("Inward Remittance", "credit"),
        ("ATM Cash Withdrawal", "debit"),
        ("Inter Bank Funds Transfer", "debit"),
        ("Swift Inward Transfer", "credit"),
        ("Raast Transfer", "debit"),
        ("Miscellaneous entry", "credit"),
        ("Salary Deposit", "credit"),
    ])
    def test_resolve_direction(self, text, direction):
        """Test the keyword rules and their precedence."""
        assert resolve_direction(text) == direction

    def test_contains_term(self):
        """Test whole-word matching with plurals."""
        assert contains_term("SMS Charges applied", "charge")
        assert contains_term("Point of Sale purchase", "point-of-sale")
        assert not contains_term("discharged", "charge")

    def test_custom_policy(self):
        """Test that the keyword tables can be replaced."""
        policy = KeywordPolicy(debit_terms=("purchase",), credit_terms=("refund",), debit_fallback_terms=())
        assert resolve_direction("Card purchase", policy) == "debit"
        assert resolve_direction("Transfer", policy) == "credit"

    def test_two_amounts(self):
        """Test that the last amount is the balance."""
        amounts = [AmountToken("5,000.00", 20, 28), AmountToken("1,468,120.94", 31, 43)]
        result = classify_amounts(amounts, "ATM Cash Withdrawal", "ATM Cash Withdrawal 5,000.00 1,468,120.94")

        assert result.debit == "5,000.00"
        assert result.credit == ""
        assert result.balance == "1,468,120.94"

    def test_single_amount_near_line_end_is_balance(self):
        """Test the position rule for a lone amount."""
        line = "Balance brought forward                   5,000.00"
        amounts = [AmountToken("5,000.00", 42, 50)]
        result = classify_amounts(amounts, "", line)
        assert result.balance == "5,000.00"
        assert result.credit == ""

    def test_single_amount_early_is_credit(self):
        """Test a lone amount early in the line."""
        line = "Salary 5,000.00 received via bank channel"
        amounts = [AmountToken("5,000.00", 7, 15)]
        result = classify_amounts(amounts, "Salary", line)
        assert result.credit == "5,000.00"
        assert result.balance == ""

    def test_opening_balance(self):
        """Test that an opening balance only fills the balance."""
        amounts = [AmountToken("789,196.42", 16, 26)]
        result = classify_amounts(amounts, "", "Opening Balance 789,196.42")
        assert (result.debit, result.credit, result.balance) == ("", "", "789,196.42")

    def test_balance_equal_to_amount_dropped(self):
        """Test that a balance repeating the transaction value is removed."""
        amounts = [AmountToken("500.00", 10, 16), AmountToken("500.00", 17, 23)]
        result = classify_amounts(amounts, "Deposit", "Deposit   500.00 500.00")
        assert result.credit == "500.00"
        assert result.balance == ""

    def test_no_amounts(self):
        """Test empty input."""
        assert classify_amounts([], "Anything", "Anything").is_empty


class TestStatementClassifier:
    """Test cases for document routing."""

    def test_two_keywords_route_to_fallback(self):
        """Test that two distinct terms are not enough."""
        result = classify_statement("Invoice 42\nPayment due\nCredit terms apply")
        assert result.match_count == 2
        assert not result.is_bank_statement

    def test_three_keywords_route_to_assembler(self):
        """Test the threshold of three terms."""
        result = classify_statement("Invoice 42\nPayment due\nCredit terms apply\nDeposit required")
        assert result.is_bank_statement
        assert set(result.matched_keywords) == {"payment", "credit", "deposit"}

    def test_repeated_keyword_counts_once(self):
        """Test presence rather than frequency counting."""
        result = classify_statement("balance balance balance")
        assert result.matched_keywords == ["balance"]
        assert not result.is_bank_statement

    def test_general_tabular_data(self, generic_text):
        """Test the generic line splitter."""
        rows = extract_general_tabular_data(generic_text)

        assert rows[0] == ["Quarterly Sales Report"]
        assert rows[1] == ["Region", "Units", "Revenue"]
        assert rows[2] == ["North", "120", "4,500.00"]
        assert rows[-1] == ["Prepared by the sales team"]
        assert len(rows) == 5
