from __future__ import annotations

from enum import Enum

from .finance import is_payment_request, is_summary_request, parse_transaction
from .utils import normalize_text


class MessageKind(str, Enum):
    REGISTRATION = "registration"
    QUERY = "query"
    FINANCE_EXPENSE = "finance_expense"
    FINANCE_SUMMARY = "finance_summary"
    PAYMENT_LINK = "payment_link"
    UNKNOWN = "unknown"


def classify(text: str, image_count: int = 0) -> MessageKind:
    """Purpose: Pick the handling mode for an inbound message.
    Inputs/Outputs: Inputs are raw text and the number of attached images; output is
        a MessageKind.
    Side Effects / State: None; pure function.
    Dependencies: finance parsers for the ledger commands.
    Failure Modes: None; empty text without images is UNKNOWN.
    If Removed: The dispatcher cannot route between procedures and finance.
    Testing Notes: Images always win, even when the caption reads like an expense.
    """
    # Attachments mean a procedure is being recorded.
    if image_count > 0:
        return MessageKind.REGISTRATION
    normalized = normalize_text(text)
    if not normalized:
        return MessageKind.UNKNOWN
    if is_summary_request(normalized):
        return MessageKind.FINANCE_SUMMARY
    if is_payment_request(normalized):
        return MessageKind.PAYMENT_LINK
    if parse_transaction(normalized) is not None:
        return MessageKind.FINANCE_EXPENSE
    return MessageKind.QUERY
