"""Column disambiguation for a single transaction line.

Recovers the description, instrument reference and amount columns of a row
whose column boundaries were only partly preserved by text extraction. All
pieces are tracked as spans of the original line; the description is built
from whatever is left once the date, amount and reference spans are cut out.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Tuple

from statement_converter.config.settings import ParserSettings
from statement_converter.parser.amounts import (
    DEFAULT_PARSER_SETTINGS,
    AmountToken,
    find_amount_candidates,
    is_amount_text,
    keep_trailing,
)
from statement_converter.parser.line_classifier import DateMatch

Span = Tuple[int, int]

TAB_SEPARATOR = re.compile(r"\t+")
WIDE_GAP = re.compile(r"\s{3,}")
NARROW_GAP = re.compile(r"\s{2,}")

# Checked in order; the first pattern found before the amounts wins.
INSTRUMENT_PATTERNS: List[Tuple[str, Pattern]] = [
    ("voucher", re.compile(r"\bVO\d{12,}\b", re.IGNORECASE)),
    ("iban", re.compile(r"\b[A-Z]{2}\d{2}[A-Z]{4}\d{16,}\b", re.IGNORECASE)),
    ("account_code", re.compile(r"\bAC-[A-Z0-9]+\b", re.IGNORECASE)),
    ("sms_charge", re.compile(r"\bSMSCHG\s+\d{6}\b", re.IGNORECASE)),
    ("fund_transfer_code", re.compile(r"\bFT\s+[A-Z][A-Z-]*\b", re.IGNORECASE)),
    ("fund_transfer", re.compile(r"\bFund\s?Transfer\b", re.IGNORECASE)),
    ("point_of_sale", re.compile(r"\bPoint[\s-]of[\s-]Sale\b", re.IGNORECASE)),
    ("inter_bank_transfer", re.compile(r"\bInter[\s-]?Bank(?:\s+Funds?)?\s+Transfer\b", re.IGNORECASE)),
    ("one_link", re.compile(r"\b1-LINK\b", re.IGNORECASE)),
    ("atm", re.compile(r"\bATM\b", re.IGNORECASE)),
    ("pos", re.compile(r"\bPOS\b", re.IGNORECASE)),
    ("raast", re.compile(r"\bRAAST\b", re.IGNORECASE)),
    ("ibft", re.compile(r"\bIBFT\b", re.IGNORECASE)),
    ("swift_inward", re.compile(r"\bSwift\s+Inward\b", re.IGNORECASE)),
    ("inter_bank", re.compile(r"\bInter\s+Bank\b", re.IGNORECASE)),
    ("generic_code", re.compile(r"\b[A-Z]{2,}\d{8,}\b")),
]

# Numeric debris left in a description once the amounts are cut out.
RESIDUE_PATTERNS: List[Pattern] = [
    re.compile(r"(?<![\w.,])\d{6,}(?![\w,]|\.\d)"),
    re.compile(r"(?<![\w.,])\d{1,3}(?:,\d{3})+(?![\d,]|\.\d)"),
    re.compile(r"(?<![\w])\.\d{1,2}\b"),
]

LEADING_COLUMN_WORD = re.compile(r"^(?:debit|credit|balance)\b\s*", re.IGNORECASE)
WHITESPACE = re.compile(r"\s+")
LETTER = re.compile(r"[A-Za-z]")


@dataclass(frozen=True)
class Cell:
    """A column cell and its span in the source line."""

    text: str
    start: int
    end: int

    @property
    def span(self) -> Span:
        return self.start, self.end


@dataclass
class ColumnLayout:
    """Result of splitting one line into transaction columns."""

    description: str = ""
    instrument_ref: str = ""
    amounts: List[AmountToken] = field(default_factory=list)
    mode: str = "single"


def _cells_between(line: str, separator: Pattern, start: int, end: int) -> List[Cell]:
    cells = []
    cursor = start
    for gap in list(separator.finditer(line, start, end)) + [None]:
        piece_end = gap.start() if gap is not None else end
        raw = line[cursor:piece_end]
        stripped = raw.strip()
        if stripped:
            offset = cursor + (len(raw) - len(raw.lstrip()))
            cells.append(Cell(stripped, offset, offset + len(stripped)))
        if gap is not None:
            cursor = gap.end()
    return cells


def _split_cells(line: str, separator: Pattern) -> List[Cell]:
    return _cells_between(line, separator, 0, len(line))


def _remove_span(cells: List[Cell], span: Optional[Span]) -> List[Cell]:
    if span is None:
        return cells
    result = []
    for cell in cells:
        if cell.end <= span[0] or cell.start >= span[1]:
            result.append(cell)
            continue
        for piece_start, piece_end in ((cell.start, span[0]), (span[1], cell.end)):
            if piece_end <= piece_start:
                continue
            piece = Cell(cell.text[piece_start - cell.start:piece_end - cell.start], piece_start, piece_end)
            stripped = piece.text.strip()
            if stripped:
                offset = piece.start + (len(piece.text) - len(piece.text.lstrip()))
                result.append(Cell(stripped, offset, offset + len(stripped)))
    return result


def _choose_cells(line: str, exclude: Optional[Span] = None) -> Tuple[str, List[Cell]]:
    if "\t" in line:
        return "tab", _remove_span(_split_cells(line, TAB_SEPARATOR), exclude)

    for mode, separator in (("wide_gap", WIDE_GAP), ("narrow_gap", NARROW_GAP)):
        cells = _split_cells(line, separator)
        if len(cells) >= 2:
            return mode, _remove_span(cells, exclude)

    stripped = line.strip()
    offset = len(line) - len(line.lstrip())
    whole = [Cell(stripped, offset, offset + len(stripped))] if stripped else []
    return "single", _remove_span(whole, exclude)


def split_columns(text: str) -> List[str]:
    """Split a line (date already removed) into candidate cell strings.

    Explicit tab separators win; otherwise runs of three or more spaces,
    then runs of two or more. A line with no usable gaps is one cell.
    """
    _, cells = _choose_cells(text)
    return [cell.text for cell in cells]


def find_instrument_ref(
    line: str,
    before: Optional[int] = None,
    exclude: Optional[Span] = None
) -> Optional[Cell]:
    """Find the first instrument-reference code in a line.

    Args:
        line: The source line.
        before: Only accept matches ending at or before this offset.
        exclude: Span (normally the date) a match must not overlap.

    Returns:
        The matched code as a Cell, or None.
    """
    limit = len(line) if before is None else before
    for _, pattern in INSTRUMENT_PATTERNS:
        for match in pattern.finditer(line):
            if match.end() > limit:
                break
            if exclude is not None and match.start() < exclude[1] and exclude[0] < match.end():
                continue
            text = match.group(0).strip()
            if LETTER.search(text) and not is_amount_text(text):
                return Cell(text, match.start(), match.end())
    return None


def _accept_ref_cell(cell: Cell) -> bool:
    if is_amount_text(cell.text) or not LETTER.search(cell.text):
        return False
    return any(pattern.search(cell.text) for _, pattern in INSTRUMENT_PATTERNS)


def _tail_tokens(line: str, cell: Cell, candidates: List[AmountToken]) -> List[AmountToken]:
    """Decimal amounts that end a cell, with nothing but spaces after them.

    Bare integers glued to text are left alone; they are usually references.
    """
    inside = [
        token for token in candidates
        if token.has_decimals and cell.start <= token.position and token.end <= cell.end
    ]
    tail: List[AmountToken] = []
    cursor = cell.end
    for token in reversed(inside):
        if line[token.end:cursor].strip():
            break
        tail.insert(0, token)
        cursor = token.position
    return tail


def _trim_tail(line: str, cell: Cell, candidates: List[AmountToken]) -> Optional[Cell]:
    tail = _tail_tokens(line, cell, candidates)
    if not tail:
        return cell
    text = line[cell.start:tail[0].position].rstrip()
    if not LETTER.search(text):
        return None
    return Cell(text, cell.start, cell.start + len(text))


def _merge_spans(spans: List[Span]) -> List[Span]:
    merged: List[Span] = []
    for start, end in sorted(spans):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def clean_description(text: str) -> str:
    """Remove numeric residue and normalise whitespace in a description."""
    for pattern in RESIDUE_PATTERNS:
        text = pattern.sub(" ", text)
    text = WHITESPACE.sub(" ", text).strip()
    return LEADING_COLUMN_WORD.sub("", text).strip()


def build_description(line: str, removed: List[Optional[Span]]) -> str:
    """Build a description from the parts of a line outside the given spans."""
    pieces = []
    cursor = 0
    for start, end in _merge_spans([span for span in removed if span is not None]):
        pieces.append(line[cursor:start])
        cursor = max(cursor, end)
    pieces.append(line[cursor:])
    return clean_description(" ".join(pieces))


def analyze_line(
    line: str,
    date_match: Optional[DateMatch] = None,
    settings: ParserSettings = DEFAULT_PARSER_SETTINGS
) -> ColumnLayout:
    """Split one physical line into description, reference and amounts.

    Args:
        line: The source line.
        date_match: The date found in the line, if any.
        settings: Parser tuning knobs.

    Returns:
        ColumnLayout with the reconstructed columns.
    """
    date_span = date_match.span if date_match else None
    mode, cells = _choose_cells(line, date_span)
    candidates = find_amount_candidates(line, date_match, settings)

    ref_cell = None
    if mode != "single":
        text_cells = [cell for cell in cells if not is_amount_text(cell.text)]
        description_cell = text_cells[0] if text_cells else None
        if len(text_cells) > 1 and _accept_ref_cell(text_cells[1]):
            ref_cell = text_cells[1]

        reserved = [cell for cell in (description_cell, ref_cell) if cell is not None]
        amount_cells = [cell for cell in cells if cell not in reserved]
        in_amount_cells = [
            token for token in candidates
            if any(cell.start <= token.position and token.end <= cell.end for cell in amount_cells)
        ]
        # Uneven gaps can glue a real amount onto the end of a text cell.
        for cell in reserved:
            in_amount_cells.extend(_tail_tokens(line, cell, candidates))
        if ref_cell is not None:
            ref_cell = _trim_tail(line, ref_cell, candidates)
        if in_amount_cells:
            candidates = sorted(set(in_amount_cells), key=lambda token: token.position)

    amounts = keep_trailing(candidates, settings)

    if ref_cell is None:
        first_amount = amounts[0].position if amounts else None
        ref_cell = find_instrument_ref(line, before=first_amount, exclude=date_span)

    removed = [date_span] + [token.span for token in amounts]
    if ref_cell is not None:
        removed.append(ref_cell.span)

    return ColumnLayout(
        description=build_description(line, removed),
        instrument_ref=ref_cell.text if ref_cell else "",
        amounts=amounts,
        mode=mode,
    )
