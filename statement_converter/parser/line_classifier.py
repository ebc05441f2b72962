"""Line-level predicates for bank statement text.

Every function here is pure: it looks at a single line of extracted text and
answers one question about it. The date grammars and the header/end-marker
signatures are kept as ordered tables so the priority order can be inspected
and tuned without touching the matching code.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, List, Optional, Pattern, Tuple

MONTH_NAME = r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?"

MIN_YEAR = 1900
MAX_YEAR = 2100


@dataclass(frozen=True)
class DateMatch:
    """A date recognised inside a line, with its source span."""

    text: str
    start: int
    end: int
    value: date
    grammar: str

    @property
    def span(self) -> Tuple[int, int]:
        return self.start, self.end


def _expand_year(year: str) -> Optional[int]:
    if len(year) == 2:
        value = int(year)
        return 2000 + value if value < 50 else 1900 + value
    value = int(year)
    if MIN_YEAR <= value <= MAX_YEAR:
        return value
    return None


def _build_date(year: Optional[int], month: int, day: int) -> Optional[date]:
    if year is None:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _month_number(name: str) -> Optional[int]:
    try:
        return datetime.strptime(name.strip(".")[:3].title(), "%b").month
    except ValueError:
        return None


def _parse_day_first(match) -> Optional[date]:
    day, month, year = (match.group(i) for i in (1, 2, 3))
    full_year = _expand_year(year)
    parsed = _build_date(full_year, int(month), int(day))
    if parsed is None:
        # 07/25/2024 style statements put the month first
        parsed = _build_date(full_year, int(day), int(month))
    return parsed


def _parse_year_first(match) -> Optional[date]:
    year, month, day = (match.group(i) for i in (1, 2, 3))
    return _build_date(_expand_year(year), int(month), int(day))


def _parse_month_name_first(match) -> Optional[date]:
    month = _month_number(match.group(1))
    if month is None:
        return None
    return _build_date(_expand_year(match.group(3)), month, int(match.group(2)))


def _parse_day_month_name(match) -> Optional[date]:
    month = _month_number(match.group(2))
    if month is None:
        return None
    return _build_date(_expand_year(match.group(3)), month, int(match.group(1)))


# Order matters: the first grammar producing a valid calendar date wins.
DATE_GRAMMARS: List[Tuple[str, Pattern, Callable]] = [
    ("d/m/y", re.compile(r"(?<!\d)(\d{1,2})/(\d{1,2})/(\d{4}|\d{2})(?!\d)"), _parse_day_first),
    ("y-m-d", re.compile(r"(?<!\d)(\d{4})-(\d{2})-(\d{2})(?!\d)"), _parse_year_first),
    ("d-m-y", re.compile(r"(?<!\d)(\d{1,2})-(\d{1,2})-(\d{4}|\d{2})(?!\d)"), _parse_day_first),
    (
        "mon d, y",
        re.compile(rf"\b({MONTH_NAME})\s+(\d{{1,2}}),?\s+(\d{{4}})(?!\d)", re.IGNORECASE),
        _parse_month_name_first,
    ),
    (
        "d mon y",
        re.compile(rf"(?<!\d)(\d{{1,2}})\s+({MONTH_NAME})\s+(\d{{4}})(?!\d)", re.IGNORECASE),
        _parse_day_month_name,
    ),
    ("yyyymmdd", re.compile(r"(?<![\d.,])(\d{4})(\d{2})(\d{2})(?![\d.,])"), _parse_year_first),
]

HEADER_PATTERNS: List[Pattern] = [
    re.compile(r"date.*description.*amount", re.IGNORECASE),
    re.compile(r"transaction.*date.*description", re.IGNORECASE),
    re.compile(r"date.*transaction.*amount", re.IGNORECASE),
    re.compile(r"date.*description.*debit.*credit", re.IGNORECASE),
    re.compile(r"date.*(?:particulars|narration|details).*(?:debit|withdrawal).*(?:credit|deposit)", re.IGNORECASE),
]

END_MARKER_PATTERNS: List[Pattern] = [
    re.compile(r"closing balance", re.IGNORECASE),
    re.compile(r"end of statement", re.IGNORECASE),
    re.compile(r"statement period", re.IGNORECASE),
    re.compile(r"account summary", re.IGNORECASE),
    re.compile(r"total.*balance", re.IGNORECASE),
    re.compile(r"final.*balance", re.IGNORECASE),
]

# Pagination noise; more transactions may follow on the next page.
PAGINATION_PATTERNS: List[Pattern] = [
    re.compile(r"^\s*page\s+\d+(?:\s*(?:of|/)\s*\d+)?\s*$", re.IGNORECASE),
    re.compile(r"\bpage\s+\d+\s+of\s+\d+\b", re.IGNORECASE),
    re.compile(r"\bcontinued\b", re.IGNORECASE),
]

METADATA_PHRASES = ("opening balance", "closing balance", "page", "statement of account")

CURRENCY_PATTERNS: List[Pattern] = [
    re.compile(r"[$€£]\s?[\d,]+\.?\d*"),
    re.compile(r"\b(?:PKR|AED|USD|EUR|GBP)\s*[\d,]+\.?\d*", re.IGNORECASE),
    re.compile(r"\d\.\d{2}(?!\d)"),
    re.compile(r"\d{1,3}(?:,\d{3})+"),
]

LONG_DIGIT_RUN = re.compile(r"\d{3,}")
LETTER = re.compile(r"[A-Za-z]")
NUMERIC_ONLY = re.compile(r"^[\d,.\s\-]+$")
LEADING_AMOUNT = re.compile(r"^[\d,]+\.\d{2}")
MULTI_SPACE = re.compile(r"\s{2,}")


def find_date(line: str) -> Optional[DateMatch]:
    """Locate the first recognisable date in a line.

    Grammars are tried in ``DATE_GRAMMARS`` order and every occurrence of a
    grammar is tried left to right; a match whose digits do not form a real
    calendar date is skipped, so an unparseable date never counts as one.
    """
    for name, pattern, parser in DATE_GRAMMARS:
        for match in pattern.finditer(line):
            value = parser(match)
            if value is not None:
                text = MULTI_SPACE.sub(" ", match.group(0))
                return DateMatch(text=text, start=match.start(), end=match.end(), value=value, grammar=name)
    return None


def has_date(line: str) -> bool:
    """Check if line contains a recognisable date."""
    return find_date(line) is not None


def parse_date_text(text: str) -> Optional[date]:
    """Parse a date string previously matched by :func:`find_date`."""
    match = find_date(text or "")
    return match.value if match else None


def is_transaction_header(line: str) -> bool:
    """Check if line is the column header row of a transaction table."""
    return any(pattern.search(line) for pattern in HEADER_PATTERNS)


def is_definitive_end_marker(line: str) -> bool:
    """Check if line closes the transaction section.

    Page numbers and "continued" markers are not end markers.
    """
    return any(pattern.search(line) for pattern in END_MARKER_PATTERNS)


def is_pagination_marker(line: str) -> bool:
    """Check if line is page-number or continuation noise."""
    return any(pattern.search(line) for pattern in PAGINATION_PATTERNS)


def has_currency_amount(line: str) -> bool:
    """Check if line carries something shaped like a monetary amount."""
    return any(pattern.search(line) for pattern in CURRENCY_PATTERNS)


def is_transaction_line(line: str) -> bool:
    """Check if a line looks like a complete transaction row on its own."""
    if is_transaction_header(line):
        return False

    dated = has_date(line)
    line_lower = line.lower()
    if not dated and any(phrase in line_lower for phrase in METADATA_PHRASES):
        return False

    if not dated:
        return False

    # Extraction sometimes drops the decimal point, so any 3+ digit run counts.
    return has_currency_amount(line) or bool(LONG_DIGIT_RUN.search(line))


def is_continuation_line(line: str) -> bool:
    """Check if line extends the description of the previous transaction."""
    if has_date(line):
        return False

    if NUMERIC_ONLY.match(line):
        return False

    if LEADING_AMOUNT.match(line):
        return False

    return bool(LETTER.search(line))


def clean_continuation_line(line: str) -> str:
    """Collapse column gaps inside a continuation line."""
    return MULTI_SPACE.sub(" ", line).strip()
