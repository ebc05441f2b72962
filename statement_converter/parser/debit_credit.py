"""Debit/credit assignment for the amounts of a transaction.

The last amount of a row is the running balance. The amount before it is
either a debit or a credit, and nothing in the text layout says which, so
the decision falls back to the vocabulary of the transaction text. That
vocabulary lives in :class:`KeywordPolicy` so it can be tuned per bank.
"""

import re
from dataclasses import dataclass
from typing import Optional, Pattern, Sequence, Tuple

from statement_converter.config.settings import BALANCE_POSITION_RATIO
from statement_converter.parser.amounts import AmountToken, parse_amount
from statement_converter.utils.logger import get_logger

logger = get_logger(__name__)

OPENING_BALANCE = "opening balance"


@dataclass(frozen=True)
class KeywordPolicy:
    """Keyword tables driving the debit/credit decision.

    ``forced_debit`` and ``forced_credit`` hold groups of terms; when every
    term of a group is present the outcome is fixed regardless of the
    generic rule.
    """

    debit_terms: Tuple[str, ...] = (
        "charge", "fee", "withdrawal", "atm", "cash", "payment", "sms",
        "service", "excise", "duty", "transfer", "merchant", "point-of-sale",
    )
    credit_terms: Tuple[str, ...] = (
        "remittance", "received", "deposit", "inward", "swift", "raast",
    )
    debit_fallback_terms: Tuple[str, ...] = ("transfer", "charge", "payment")
    forced_debit: Tuple[Tuple[str, ...], ...] = (("inter bank funds transfer",),)
    forced_credit: Tuple[Tuple[str, ...], ...] = (("swift", "inward"),)


DEFAULT_POLICY = KeywordPolicy()


@dataclass
class AmountAssignment:
    """Debit, credit and balance values for one transaction."""

    debit: str = ""
    credit: str = ""
    balance: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.debit or self.credit or self.balance)


_TERM_CACHE = {}


def _term_pattern(term: str) -> Pattern:
    pattern = _TERM_CACHE.get(term)
    if pattern is None:
        words = [re.escape(word) for word in re.split(r"[\s-]+", term.strip())]
        pattern = re.compile(r"\b" + r"[\s-]+".join(words) + r"(?:s|es)?\b", re.IGNORECASE)
        _TERM_CACHE[term] = pattern
    return pattern


def contains_term(text: str, term: str) -> bool:
    """Check if text contains a keyword as a whole word (plural allowed)."""
    return bool(_term_pattern(term).search(text))


def _any_term(text: str, terms: Sequence[str]) -> bool:
    return any(contains_term(text, term) for term in terms)


def _all_terms(text: str, terms: Sequence[str]) -> bool:
    return all(contains_term(text, term) for term in terms)


def resolve_direction(text: str, policy: KeywordPolicy = DEFAULT_POLICY) -> str:
    """Decide whether a disputed amount is a ``"debit"`` or a ``"credit"``.

    Args:
        text: Description and raw line text of the transaction.
        policy: Keyword tables to apply.

    Returns:
        "debit" or "credit".
    """
    if any(_all_terms(text, group) for group in policy.forced_debit):
        return "debit"
    if any(_all_terms(text, group) for group in policy.forced_credit):
        return "credit"

    has_debit = _any_term(text, policy.debit_terms)
    has_credit = _any_term(text, policy.credit_terms)

    if has_debit and not has_credit:
        return "debit"
    if has_credit and not has_debit:
        return "credit"
    if _any_term(text, policy.debit_fallback_terms):
        return "debit"
    return "credit"


def is_opening_balance(text: str) -> bool:
    return OPENING_BALANCE in text.lower()


def _same_value(first: str, second: str) -> bool:
    if not first or not second:
        return False
    left, right = parse_amount(first), parse_amount(second)
    return left is not None and left == right


def classify_amounts(
    amounts: Sequence[AmountToken],
    description: str,
    raw_line: str,
    policy: KeywordPolicy = DEFAULT_POLICY,
    balance_position_ratio: float = BALANCE_POSITION_RATIO,
    line_length: Optional[int] = None
) -> AmountAssignment:
    """Assign the amounts of a transaction to debit, credit and balance.

    Args:
        amounts: Amount tokens in line order.
        description: Description text accumulated so far.
        raw_line: The physical line the amounts came from.
        policy: Keyword tables for the debit/credit decision.
        balance_position_ratio: A lone amount starting beyond this fraction
            of the line is read as the balance.
        line_length: Length used for the position test; defaults to the
            length of ``raw_line``.

    Returns:
        AmountAssignment with at most one of debit/credit populated.
    """
    result = AmountAssignment()
    if not amounts:
        return result

    if is_opening_balance(raw_line) or is_opening_balance(description):
        result.balance = amounts[-1].value
        return result

    if len(amounts) >= 2:
        result.balance = amounts[-1].value
        disputed = amounts[-2].value
        direction = resolve_direction(f"{description} {raw_line}", policy)
        if direction == "debit":
            result.debit = disputed
        else:
            result.credit = disputed
    else:
        amount = amounts[0]
        length = line_length if line_length is not None else len(raw_line)
        if amount.position > length * balance_position_ratio:
            result.balance = amount.value
        else:
            result.credit = amount.value

    transaction_value = result.debit or result.credit
    if _same_value(result.balance, transaction_value):
        logger.debug(f"Balance {result.balance} repeats the transaction amount; dropping balance")
        result.balance = ""

    return result
