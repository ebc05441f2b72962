"""Bank statement transaction extraction engine."""

from statement_converter.parser.amounts import AmountToken, extract_amounts
from statement_converter.parser.assembler import (
    STATEMENT_HEADER,
    OutputTable,
    TransactionAssembler,
    TransactionRecord,
)
from statement_converter.parser.columns import analyze_line, split_columns
from statement_converter.parser.debit_credit import KeywordPolicy, classify_amounts
from statement_converter.parser.engine import parse_statement
from statement_converter.parser.line_classifier import (
    has_date,
    is_definitive_end_marker,
    is_transaction_header,
    is_transaction_line,
)
from statement_converter.parser.statement_classifier import (
    classify_statement,
    extract_general_tabular_data,
)

__all__ = [
    "AmountToken",
    "KeywordPolicy",
    "OutputTable",
    "STATEMENT_HEADER",
    "TransactionAssembler",
    "TransactionRecord",
    "analyze_line",
    "classify_amounts",
    "classify_statement",
    "extract_amounts",
    "extract_general_tabular_data",
    "has_date",
    "is_definitive_end_marker",
    "is_transaction_header",
    "is_transaction_line",
    "parse_statement",
    "split_columns",
]
