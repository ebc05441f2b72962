"""Document-level routing between the statement parser and the generic fallback."""

import re
from dataclasses import dataclass, field
from typing import List

from statement_converter.config.settings import STATEMENT_KEYWORD_THRESHOLD

STATEMENT_KEYWORDS = (
    "bank statement",
    "account statement",
    "statement of account",
    "transaction history",
    "account summary",
    "balance",
    "deposit",
    "withdrawal",
    "transfer",
    "payment",
    "debit",
    "credit",
    "available balance",
    "current balance",
    "account number",
    "routing number",
    "checking",
    "savings",
)

TABULAR_HINTS = [
    re.compile(r"\d+\.\d{2}"),
    re.compile(r"\d{1,2}/\d{1,2}/\d{2,4}"),
    re.compile(r"\d{4}-\d{2}-\d{2}"),
    re.compile(r"\$\d+"),
    re.compile(r"\s{2,}"),
]

CELL_SEPARATOR = re.compile(r"\s{2,}|\t")


@dataclass
class StatementClassification:
    """Outcome of the keyword vote over a whole document."""

    is_bank_statement: bool
    matched_keywords: List[str] = field(default_factory=list)

    @property
    def match_count(self) -> int:
        return len(self.matched_keywords)


def classify_statement(full_text: str, threshold: int = STATEMENT_KEYWORD_THRESHOLD) -> StatementClassification:
    """Decide whether a document is a bank statement.

    Each vocabulary term counts once, however often it occurs.

    Args:
        full_text: Text of the whole document.
        threshold: Minimum number of distinct terms required.

    Returns:
        StatementClassification with the matched terms.
    """
    text_lower = (full_text or "").lower()
    matched = [keyword for keyword in STATEMENT_KEYWORDS if keyword in text_lower]
    return StatementClassification(is_bank_statement=len(matched) >= threshold, matched_keywords=matched)


def is_tabular_line(line: str) -> bool:
    return any(pattern.search(line) for pattern in TABULAR_HINTS)


def extract_general_tabular_data(full_text: str) -> List[List[str]]:
    """Split arbitrary text into rows for documents that are not statements.

    Lines that look tabular are split on column gaps; everything else
    becomes a one-cell row so no text is lost.
    """
    rows = []
    for raw_line in (full_text or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if is_tabular_line(raw_line):
            cells = [cell.strip() for cell in CELL_SEPARATOR.split(line) if cell.strip()]
            rows.append(cells)
        else:
            rows.append([line])
    return rows
