"""Transaction assembler.

A small state machine that walks the lines of a statement, groups physical
lines into logical transactions and emits finalized records. Lines are
first classified by an ordered rule table (:data:`LINE_RULES`); the
assembler then dispatches on the resulting :class:`LineKind`.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from statement_converter.config.settings import ParserSettings
from statement_converter.parser.amounts import (
    DEFAULT_PARSER_SETTINGS,
    AmountToken,
    extract_amounts,
    extract_balance,
    remove_currency_symbol,
)
from statement_converter.parser.columns import analyze_line
from statement_converter.parser.debit_credit import (
    DEFAULT_POLICY,
    KeywordPolicy,
    classify_amounts,
    is_opening_balance,
)
from statement_converter.parser.line_classifier import (
    DateMatch,
    clean_continuation_line,
    find_date,
    is_continuation_line,
    is_definitive_end_marker,
    is_pagination_marker,
    is_transaction_header,
    is_transaction_line,
)
from statement_converter.utils.logger import get_logger

logger = get_logger(__name__)

STATEMENT_HEADER = ["Date", "Description", "Cheq/Inst#", "Debit", "Credit", "Balance"]

COLUMN_HINTS = {"date": "date", "debit": "debit", "credit": "credit", "balance": "balance"}


class SectionState(Enum):
    """Position of the assembler relative to a transaction section."""
    BEFORE_SECTION = "before_section"
    IN_SECTION_IDLE = "in_section_idle"
    IN_SECTION_BUILDING = "in_section_building"


class LineKind(Enum):
    """Classification of a single physical line."""
    BLANK = "blank"
    HEADER = "header"
    OPENING_BALANCE = "opening_balance"
    END_MARKER = "end_marker"
    DATED = "dated"
    PAGINATION = "pagination"
    AMOUNTS = "amounts"
    CONTINUATION = "continuation"
    NOISE = "noise"


@dataclass
class LineContext:
    """A line together with the tokens every rule needs."""

    text: str
    date_match: Optional[DateMatch]
    amounts: List[AmountToken]
    opening_balance: Optional[AmountToken] = None

    @classmethod
    def from_line(cls, line: str, settings: ParserSettings = DEFAULT_PARSER_SETTINGS) -> "LineContext":
        text = line.strip()
        date_match = find_date(text)
        opening_balance = None
        if is_opening_balance(text):
            opening_balance = extract_balance(text, date_match, settings)
        return cls(
            text=text,
            date_match=date_match,
            amounts=extract_amounts(text, date_match, settings),
            opening_balance=opening_balance,
        )


# Evaluated top to bottom; the first matching rule classifies the line.
LINE_RULES: List[Tuple[LineKind, Callable[[LineContext], bool]]] = [
    (LineKind.BLANK, lambda ctx: not ctx.text),
    (LineKind.HEADER, lambda ctx: is_transaction_header(ctx.text)),
    (LineKind.OPENING_BALANCE, lambda ctx: ctx.opening_balance is not None),
    (LineKind.END_MARKER, lambda ctx: is_definitive_end_marker(ctx.text)),
    (LineKind.DATED, lambda ctx: ctx.date_match is not None),
    (LineKind.PAGINATION, lambda ctx: is_pagination_marker(ctx.text)),
    (LineKind.AMOUNTS, lambda ctx: bool(ctx.amounts)),
    (LineKind.CONTINUATION, lambda ctx: is_continuation_line(ctx.text)),
]


def classify_line(context: LineContext) -> LineKind:
    """Classify a line using :data:`LINE_RULES`."""
    for kind, predicate in LINE_RULES:
        if predicate(context):
            return kind
    return LineKind.NOISE


@dataclass(frozen=True)
class TransactionRecord:
    """A finalized transaction and its position in encounter order."""

    sequence: int
    date: str
    parsed_date: Optional[date]
    description: str
    instrument_ref: str = ""
    debit: str = ""
    credit: str = ""
    balance: str = ""

    def to_row(self) -> List[str]:
        return [
            self.date,
            self.description.strip(),
            self.instrument_ref,
            remove_currency_symbol(self.debit),
            remove_currency_symbol(self.credit),
            remove_currency_symbol(self.balance),
        ]


@dataclass
class TransactionDraft:
    """A transaction still being assembled from one or more lines."""

    date: str
    parsed_date: Optional[date]
    description: str = ""
    instrument_ref: str = ""
    debit: str = ""
    credit: str = ""
    balance: str = ""
    source_lines: List[str] = field(default_factory=list)

    def append_description(self, text: str) -> None:
        text = text.strip()
        if not text:
            return
        self.description = f"{self.description} {text}" if self.description else text

    @property
    def context_text(self) -> str:
        return " ".join([self.description] + self.source_lines)

    def has_amounts(self) -> bool:
        return bool(self.debit or self.credit or self.balance)

    def finalize(self, sequence: int) -> TransactionRecord:
        return TransactionRecord(
            sequence=sequence,
            date=self.date,
            parsed_date=self.parsed_date,
            description=self.description,
            instrument_ref=self.instrument_ref,
            debit=self.debit,
            credit=self.credit,
            balance=self.balance,
        )


@dataclass
class OutputTable:
    """Rows handed to the workbook writer, header first when present."""

    header: Optional[List[str]]
    rows: List[List[str]]
    is_bank_statement: bool = True

    def __len__(self) -> int:
        return len(self.rows)

    def to_rows(self) -> List[List[str]]:
        if self.header is None:
            return [list(row) for row in self.rows]
        return [list(self.header)] + [list(row) for row in self.rows]

    def column_hints(self) -> Dict[int, str]:
        """Map column index to ``date``/``debit``/``credit``/``balance``."""
        if not self.header:
            return {}
        hints = {}
        for index, title in enumerate(self.header):
            hint = COLUMN_HINTS.get(str(title).strip().lower())
            if hint:
                hints[index] = hint
        return hints

    def to_dataframe(self) -> pd.DataFrame:
        if self.header is None:
            return pd.DataFrame(self.rows)
        return pd.DataFrame(self.rows, columns=self.header)


def sort_records(records: Iterable[TransactionRecord]) -> List[TransactionRecord]:
    """Order records by date; undated rows first, ties by encounter order."""
    return sorted(records, key=lambda record: (record.parsed_date or date.min, record.sequence))


def build_output_table(records: Iterable[TransactionRecord]) -> OutputTable:
    return OutputTable(
        header=list(STATEMENT_HEADER),
        rows=[record.to_row() for record in sort_records(records)],
        is_bank_statement=True,
    )


class TransactionAssembler:
    """Groups statement lines into transaction records."""

    def __init__(
        self,
        settings: ParserSettings = DEFAULT_PARSER_SETTINGS,
        policy: KeywordPolicy = DEFAULT_POLICY
    ) -> None:
        """Initialize the assembler.

        Args:
            settings: Parser tuning knobs.
            policy: Keyword tables for debit/credit classification.
        """
        self.settings = settings
        self.policy = policy
        self.state = SectionState.BEFORE_SECTION
        self.draft: Optional[TransactionDraft] = None
        self.records: List[TransactionRecord] = []
        self.consecutive_misses = 0
        self.lines_seen = 0

        self._handlers: Dict[LineKind, Callable[[LineContext], None]] = {
            LineKind.BLANK: self._on_blank,
            LineKind.HEADER: self._on_header,
            LineKind.OPENING_BALANCE: self._on_opening_balance,
            LineKind.END_MARKER: self._on_end_marker,
            LineKind.DATED: self._on_dated,
            LineKind.PAGINATION: self._on_noise,
            LineKind.AMOUNTS: self._on_amounts,
            LineKind.CONTINUATION: self._on_continuation,
            LineKind.NOISE: self._on_noise,
        }

    def feed(self, line: str) -> None:
        """Consume one physical line."""
        self.lines_seen += 1
        try:
            context = LineContext.from_line(line, self.settings)
            kind = classify_line(context)
            logger.debug(f"{self.state.value} <- {kind.value}: {context.text!r}")
            self._handlers[kind](context)
        except Exception as e:
            logger.warning(f"Failed to parse line {self.lines_seen} ({line!r}): {str(e)}")
            if self.draft is not None:
                self.draft.append_description(clean_continuation_line(line))

    def finish(self) -> List[TransactionRecord]:
        """Finalize any open draft and return records in encounter order."""
        self._finalize_draft()
        return list(self.records)

    def assemble(self, lines: Iterable[str]) -> List[TransactionRecord]:
        """Run the whole line sequence through the assembler."""
        for line in lines:
            self.feed(line)
        return self.finish()

    def _in_section(self) -> bool:
        return self.state is not SectionState.BEFORE_SECTION

    def _finalize_draft(self) -> None:
        draft = self.draft
        self.draft = None
        if draft is None or not draft.date:
            return
        if not draft.has_amounts():
            logger.warning(f"Transaction dated {draft.date} ({draft.description!r}) has no amounts")
        self.records.append(draft.finalize(len(self.records)))
        if self.state is SectionState.IN_SECTION_BUILDING:
            self.state = SectionState.IN_SECTION_IDLE

    def _miss(self) -> None:
        if not self._in_section():
            return
        self.consecutive_misses += 1
        if self.consecutive_misses >= self.settings.max_consecutive_non_transaction:
            logger.debug(f"{self.consecutive_misses} lines without transactions; closing section")
            self._finalize_draft()
            self.state = SectionState.BEFORE_SECTION
            self.consecutive_misses = 0

    def _on_blank(self, context: LineContext) -> None:
        self._finalize_draft()

    def _on_header(self, context: LineContext) -> None:
        self._finalize_draft()
        self.state = SectionState.IN_SECTION_IDLE
        self.consecutive_misses = 0

    def _on_opening_balance(self, context: LineContext) -> None:
        self._finalize_draft()
        date_match = context.date_match
        self.records.append(
            TransactionRecord(
                sequence=len(self.records),
                date=date_match.text if date_match else "",
                parsed_date=date_match.value if date_match else None,
                description="Opening Balance",
                balance=context.opening_balance.value,
            )
        )
        if self._in_section():
            self.consecutive_misses = 0

    def _on_end_marker(self, context: LineContext) -> None:
        self._finalize_draft()
        self.state = SectionState.BEFORE_SECTION
        self.consecutive_misses = 0

    def _on_dated(self, context: LineContext) -> None:
        if not self._in_section() and not is_transaction_line(context.text):
            return

        self._finalize_draft()
        layout = analyze_line(context.text, context.date_match, self.settings)
        draft = TransactionDraft(
            date=context.date_match.text,
            parsed_date=context.date_match.value,
            description=layout.description,
            instrument_ref=layout.instrument_ref,
            source_lines=[context.text],
        )
        self.draft = draft
        self.state = SectionState.IN_SECTION_BUILDING
        self.consecutive_misses = 0

        if layout.amounts:
            self._assign(draft, layout.amounts, context.text)
            self._finalize_draft()

    def _on_amounts(self, context: LineContext) -> None:
        draft = self.draft
        if self.state is not SectionState.IN_SECTION_BUILDING or draft is None:
            self._miss()
            return

        layout = analyze_line(context.text, None, self.settings)
        if not layout.amounts:
            self._on_continuation(context)
            return

        draft.source_lines.append(context.text)
        if layout.instrument_ref and not draft.instrument_ref:
            draft.instrument_ref = layout.instrument_ref
        draft.append_description(layout.description)
        self._assign(draft, layout.amounts, context.text)
        self.consecutive_misses = 0
        self._finalize_draft()

    def _on_continuation(self, context: LineContext) -> None:
        draft = self.draft
        if self.state is not SectionState.IN_SECTION_BUILDING or draft is None:
            self._miss()
            return
        draft.append_description(clean_continuation_line(context.text))
        draft.source_lines.append(context.text)
        self.consecutive_misses = 0

    def _on_noise(self, context: LineContext) -> None:
        self._miss()

    def _assign(self, draft: TransactionDraft, amounts: List[AmountToken], raw_line: str) -> None:
        assignment = classify_amounts(
            amounts,
            draft.context_text,
            raw_line,
            policy=self.policy,
            balance_position_ratio=self.settings.balance_position_ratio,
        )
        draft.debit = assignment.debit
        draft.credit = assignment.credit
        draft.balance = assignment.balance
