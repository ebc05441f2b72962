"""Monetary amount tokenizer.

Pulls amount tokens out of a single line together with their source spans,
discarding numbers that only look like money: pieces of the date, calendar
years, account numbers, tiny values and decimal fragments left behind by
an earlier extraction pass.
"""

import re
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Callable, List, Optional, Tuple, Union

from statement_converter.config.settings import ParserSettings
from statement_converter.parser.line_classifier import DateMatch

CURRENCY_PREFIX = r"(?:(?:PKR|AED|USD|EUR|GBP)\s?|[$€£]\s?)"

DECIMAL_AMOUNT_RE = re.compile(
    rf"(?<![\w.,]){CURRENCY_PREFIX}?(?P<value>(?:\d[\d,]*)?\.\d{{2}})(?![\d.])",
    re.IGNORECASE,
)

BARE_AMOUNT_RE = re.compile(
    rf"(?<![\w.,/:-]){CURRENCY_PREFIX}?(?P<value>\d{{1,3}}(?:,\d{{3}})+|\d{{3,}})(?![\w,/:-]|\.\d)",
    re.IGNORECASE,
)

AMOUNT_TEXT_RE = re.compile(
    rf"^(?:{CURRENCY_PREFIX}?\d[\d,]*(?:\.\d{{2}})?\s*)+$",
    re.IGNORECASE,
)

REPEATED_DIGIT_RUN = re.compile(r"(\d)\1{9,}")
CURRENCY_SYMBOLS = re.compile(r"[$€£]|\b(?:PKR|AED|USD|EUR|GBP)\b\s*", re.IGNORECASE)

DEFAULT_PARSER_SETTINGS = ParserSettings()


@dataclass(frozen=True)
class AmountToken:
    """A monetary value found in a line.

    ``value`` keeps thousands separators but has the currency symbol
    stripped; ``position``/``end`` delimit the whole match, symbol included.
    """

    value: str
    position: int
    end: int
    has_decimals: bool = True

    @property
    def span(self) -> Tuple[int, int]:
        return self.position, self.end

    @property
    def digits(self) -> str:
        return re.sub(r"\D", "", self.value)

    def as_decimal(self) -> Optional[Decimal]:
        return parse_amount(self.value)


def _date_span(line: str, known_date: Union[DateMatch, str, None]) -> Optional[Tuple[int, int]]:
    if known_date is None:
        return None
    if isinstance(known_date, DateMatch):
        return known_date.span
    if not known_date:
        return None
    start = line.find(known_date)
    if start < 0:
        return None
    return start, start + len(known_date)


def _overlaps(span: Tuple[int, int], other: Optional[Tuple[int, int]]) -> bool:
    if other is None:
        return False
    return span[0] < other[1] and other[0] < span[1]


def _overlaps_date(token: AmountToken, date_span, settings: ParserSettings) -> bool:
    return _overlaps(token.span, date_span)


def _is_calendar_year(token: AmountToken, date_span, settings: ParserSettings) -> bool:
    if token.has_decimals or "," in token.value or len(token.value) != 4:
        return False
    return 1900 <= int(token.value) <= 2100


def _looks_like_account_number(token: AmountToken, date_span, settings: ParserSettings) -> bool:
    digits = token.digits
    if not 12 <= len(digits) <= 15:
        return False
    return digits.startswith("000") or bool(REPEATED_DIGIT_RUN.search(digits))


def _below_minimum(token: AmountToken, date_span, settings: ParserSettings) -> bool:
    value = token.as_decimal()
    if value is None:
        return True
    minimum = settings.min_amount if token.has_decimals else settings.min_bare_amount
    return value < Decimal(str(minimum))


def _is_decimal_fragment(token: AmountToken, date_span, settings: ParserSettings) -> bool:
    return token.value.startswith(".")


# Applied in order; the first rule that fires discards the token.
EXCLUSION_RULES: List[Tuple[str, Callable[[AmountToken, Optional[Tuple[int, int]], ParserSettings], bool]]] = [
    ("date_overlap", _overlaps_date),
    ("calendar_year", _is_calendar_year),
    ("account_number", _looks_like_account_number),
    ("below_minimum", _below_minimum),
    ("decimal_fragment", _is_decimal_fragment),
]


def rejection_reason(
    token: AmountToken,
    date_span: Optional[Tuple[int, int]] = None,
    settings: ParserSettings = DEFAULT_PARSER_SETTINGS
) -> Optional[str]:
    """Return the name of the first exclusion rule that rejects a token."""
    for name, rule in EXCLUSION_RULES:
        if rule(token, date_span, settings):
            return name
    return None


def _decimal_candidates(line: str) -> List[AmountToken]:
    return [
        AmountToken(value=match.group("value"), position=match.start(), end=match.end())
        for match in DECIMAL_AMOUNT_RE.finditer(line)
    ]


def _bare_candidates(
    line: str,
    date_span: Optional[Tuple[int, int]],
    settings: ParserSettings
) -> List[AmountToken]:
    # Bare integers only count near the end of the row, after the date.
    earliest = len(line) * (1 - settings.bare_amount_tail_ratio)
    if date_span is not None:
        earliest = max(earliest, date_span[1])

    candidates = []
    for match in BARE_AMOUNT_RE.finditer(line):
        if match.start() < earliest:
            continue
        candidates.append(
            AmountToken(
                value=match.group("value"),
                position=match.start(),
                end=match.end(),
                has_decimals=False,
            )
        )
    return candidates


def find_amount_candidates(
    line: str,
    known_date: Union[DateMatch, str, None] = None,
    settings: ParserSettings = DEFAULT_PARSER_SETTINGS
) -> List[AmountToken]:
    """Find every surviving amount token in a line, left to right.

    Unlike :func:`extract_amounts` the result is not cut down to the
    trailing amounts of the row.
    """
    date_span = _date_span(line, known_date)

    accepted = [
        token for token in _decimal_candidates(line)
        if rejection_reason(token, date_span, settings) is None
    ]
    for token in _bare_candidates(line, date_span, settings):
        if any(_overlaps(token.span, existing.span) for existing in accepted):
            continue
        if rejection_reason(token, date_span, settings) is None:
            accepted.append(token)

    return sorted(accepted, key=lambda token: token.position)


def keep_trailing(tokens: List[AmountToken], settings: ParserSettings = DEFAULT_PARSER_SETTINGS) -> List[AmountToken]:
    """Keep the amounts at the end of a row; earlier numbers are references."""
    limit = settings.max_amounts_per_line
    if len(tokens) > limit:
        return tokens[-limit:]
    return tokens


def extract_amounts(
    line: str,
    known_date: Union[DateMatch, str, None] = None,
    settings: ParserSettings = DEFAULT_PARSER_SETTINGS
) -> List[AmountToken]:
    """Extract the monetary amounts of a line, ordered by position.

    Args:
        line: One physical line of statement text.
        known_date: The date recognised in the line, either as a
            :class:`DateMatch` or as the matched substring. Tokens overlapping
            it are discarded.
        settings: Parser tuning knobs.

    Returns:
        The trailing amount tokens of the line, left to right.
    """
    return keep_trailing(find_amount_candidates(line, known_date, settings), settings)


def extract_balance(
    line: str,
    known_date: Union[DateMatch, str, None] = None,
    settings: ParserSettings = DEFAULT_PARSER_SETTINGS
) -> Optional[AmountToken]:
    """Return the last amount of a balance line, or None.

    A balance may legitimately be zero, so the minimum-amount rule for
    decimal tokens does not apply here.
    """
    tokens = find_amount_candidates(line, known_date, replace(settings, min_amount=0.0))
    return tokens[-1] if tokens else None


def is_amount_text(text: str) -> bool:
    """Check if text consists only of amount-shaped numbers."""
    return bool(AMOUNT_TEXT_RE.match(text.strip()))


def remove_currency_symbol(amount: str) -> str:
    """Strip currency symbols and codes from an amount string."""
    if not amount:
        return ""
    return CURRENCY_SYMBOLS.sub("", str(amount)).strip()


def parse_amount(amount_str: str) -> Optional[Decimal]:
    """Parse amount string to Decimal.

    Args:
        amount_str: String containing amount.

    Returns:
        Parsed Decimal amount or None if parsing fails.
    """
    if not amount_str or amount_str.strip() in ['', '-']:
        return None

    # Remove currency symbols and whitespace, but keep negative sign
    clean_amount = re.sub(r'[^\d.,-]', '', remove_currency_symbol(amount_str))

    if not clean_amount or not re.search(r'\d', clean_amount):
        return None

    # Handle different decimal separators
    if ',' in clean_amount and '.' in clean_amount:
        # If both exist, assume comma is thousands separator
        clean_amount = clean_amount.replace(',', '')
    elif ',' in clean_amount:
        last_comma = clean_amount.rfind(',')
        if len(clean_amount) - last_comma - 1 <= 2:
            # Likely decimal separator
            clean_amount = clean_amount.replace(',', '.')
        else:
            # Likely thousands separator
            clean_amount = clean_amount.replace(',', '')

    try:
        return Decimal(clean_amount)
    except InvalidOperation:
        return None
