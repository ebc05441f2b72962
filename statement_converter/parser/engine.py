"""Text-in, table-out entry point of the extraction engine."""

from typing import Optional

from statement_converter.config.settings import ParserSettings
from statement_converter.parser.amounts import DEFAULT_PARSER_SETTINGS
from statement_converter.parser.assembler import (
    OutputTable,
    TransactionAssembler,
    build_output_table,
)
from statement_converter.parser.debit_credit import DEFAULT_POLICY, KeywordPolicy
from statement_converter.parser.statement_classifier import (
    classify_statement,
    extract_general_tabular_data,
)
from statement_converter.utils.logger import get_logger

logger = get_logger(__name__)


def parse_statement(
    full_text: str,
    settings: Optional[ParserSettings] = None,
    policy: KeywordPolicy = DEFAULT_POLICY
) -> OutputTable:
    """Turn the text of a document into an output table.

    Bank statements run through the transaction assembler and come back
    with the fixed six-column header. Anything else is split by the
    generic tabular fallback and has no header row.

    Args:
        full_text: Page texts joined by newlines.
        settings: Parser tuning knobs; defaults apply when None.
        policy: Keyword tables for debit/credit classification.

    Returns:
        OutputTable for the workbook writer.
    """
    settings = settings or DEFAULT_PARSER_SETTINGS
    classification = classify_statement(full_text, settings.statement_keyword_threshold)
    logger.info(
        f"Matched {classification.match_count} statement keywords; "
        f"bank statement: {classification.is_bank_statement}"
    )

    if not classification.is_bank_statement:
        rows = extract_general_tabular_data(full_text)
        logger.info(f"Generic extraction produced {len(rows)} rows")
        return OutputTable(header=None, rows=rows, is_bank_statement=False)

    assembler = TransactionAssembler(settings=settings, policy=policy)
    records = assembler.assemble((full_text or "").splitlines())
    logger.info(f"Assembled {len(records)} transactions from {assembler.lines_seen} lines")

    dates = sorted(record.parsed_date for record in records if record.parsed_date)
    if dates:
        logger.info(f"Transactions dated {dates[0].isoformat()} to {dates[-1].isoformat()}")
    return build_output_table(records)
