"""Personal-finance message parsing and month-to-date summaries."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from .models import Transaction
from .utils import normalize_text, parse_amount_cents, tokenize

EXPENSE = "expense"
INCOME = "income"
DEFAULT_CATEGORY = "outros"

EXPENSE_WORDS = {"gastei", "paguei", "comprei", "despesa", "gasto", "saida"}
INCOME_WORDS = {"recebi", "ganhei", "receita", "entrada", "vendi"}
CURRENCY_WORDS = {"r$", "reais", "real", "conto", "contos"}
STOP_WORDS = {"de", "do", "da", "dos", "das", "no", "na", "nos", "nas", "em", "com", "pra", "para", "o", "a", "os", "as", "um", "uma"}

SUMMARY_RE = re.compile(r"^/?(resumo|saldo|extrato|balanco)[.!?]*$")
PAYMENT_RE = re.compile(r"^/?(link de pagamento|gerar link(?: de pagamento)?|cobrar|cobranca)\b(.*)$")


@dataclass(frozen=True)
class ParsedTransaction:
    kind: str
    value_cents: int
    category: str = DEFAULT_CATEGORY
    note: Optional[str] = None


@dataclass(frozen=True)
class MonthSummary:
    month_start: date
    until: date
    income_cents: int = 0
    expense_cents: int = 0
    count: int = 0
    by_category: List[Tuple[str, int]] = field(default_factory=list)

    @property
    def balance_cents(self) -> int:
        return self.income_cents - self.expense_cents


def is_summary_request(text: str) -> bool:
    return bool(SUMMARY_RE.match(normalize_text(text)))


def is_payment_request(text: str) -> bool:
    return bool(PAYMENT_RE.match(normalize_text(text)))


def parse_transaction(text: str) -> Optional[ParsedTransaction]:
    """Purpose: Parse an expense/income message ("gastei 25,90 no mercado").
    Inputs/Outputs: Input is raw message text; output is a ParsedTransaction or None
        when the message is not a ledger entry.
    Side Effects / State: None; pure function.
    Dependencies: normalize_text, tokenize, parse_amount_cents.
    Failure Modes: Returns None without a trigger word/sign or without a positive amount.
    If Removed: Finance messages fall through to procedure lookups.
    Testing Notes: "-30 lanche" is an expense, "+1500 salario" an income.
    """
    # Direction comes from the leading verb or sign, value from the first amount.
    tokens = tokenize(normalize_text(text))
    if not tokens:
        return None
    head = tokens[0]
    if head in EXPENSE_WORDS:
        kind, start = EXPENSE, 1
    elif head in INCOME_WORDS:
        kind, start = INCOME, 1
    elif head[:1] in ("+", "-") and parse_amount_cents(head) is not None:
        kind, start = (INCOME if head.startswith("+") else EXPENSE), 0
    else:
        return None

    amount_index, value = _find_amount(tokens, start)
    if amount_index is None or not value:
        return None

    after = [token for token in tokens[amount_index + 1 :] if token not in CURRENCY_WORDS]
    category = next((token for token in after if token not in STOP_WORDS), DEFAULT_CATEGORY)
    note = " ".join(after) or None
    return ParsedTransaction(kind=kind, value_cents=abs(value), category=category, note=note)


def parse_payment_request(text: str) -> Optional[Tuple[int, str]]:
    """Return (amount_cents, description) for "cobrar 150 joao", or None without an amount."""
    match = PAYMENT_RE.match(normalize_text(text))
    if not match:
        return None
    tokens = tokenize(match.group(2))
    amount_index, value = _find_amount(tokens, 0)
    if amount_index is None or not value or value < 0:
        return None
    rest = [token for token in tokens[amount_index + 1 :] if token not in CURRENCY_WORDS]
    while rest and rest[0] in STOP_WORDS:
        rest.pop(0)
    return value, " ".join(rest)


def build_payment_link(base_url: str, amount_cents: int, token: str) -> str:
    return f"{base_url.rstrip('/')}/{token}?valor={amount_cents}"


def summarize_month(transactions: Iterable[Transaction], today: date) -> MonthSummary:
    """Purpose: Aggregate the current month's ledger up to and including today.
    Inputs/Outputs: Inputs are transactions and the reference day; output is a
        MonthSummary with totals and expense totals per category (largest first).
    Side Effects / State: None; the clock is passed in, never read here.
    Dependencies: Transaction model.
    Failure Modes: None; an empty ledger yields zero totals.
    If Removed: The "resumo" command cannot answer.
    Testing Notes: Entries from the previous month or after today are ignored.
    """
    # Keep only entries in [first day of month, today].
    month_start = today.replace(day=1)
    income = expense = count = 0
    per_category: Dict[str, int] = {}
    for tx in transactions:
        if not (month_start <= tx.occurred_at <= today):
            continue
        count += 1
        if tx.type == INCOME:
            income += tx.value_cents
            continue
        expense += tx.value_cents
        category = tx.category or DEFAULT_CATEGORY
        per_category[category] = per_category.get(category, 0) + tx.value_cents
    by_category = sorted(per_category.items(), key=lambda item: (-item[1], item[0]))
    return MonthSummary(
        month_start=month_start,
        until=today,
        income_cents=income,
        expense_cents=expense,
        count=count,
        by_category=by_category,
    )


def _find_amount(tokens: List[str], start: int) -> Tuple[Optional[int], int]:
    for index in range(start, len(tokens)):
        value = parse_amount_cents(tokens[index])
        if value is not None:
            return index, value
    return None, 0
