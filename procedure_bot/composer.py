"""Reply composition for lookups, registrations and finance commands.

Role:
    Decides what to tell the user from extraction/matching results (compose_lookup,
    check_registration) and renders every result variant into a BotReply: one
    primary text segment, followed by one media segment per photo for Found.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import List, Optional, Sequence, Union

from .finance import INCOME, MonthSummary
from .intent_extractor import Intent
from .models import BotReply, ProcedureRecord, ReplySegment, Transaction
from .utils import format_brl

DEFAULT_MAX_MEDIA = 5
PROMPT_EXAMPLE = "troca de rolamento RRE160HCC Toyota"
PAYMENT_EXAMPLE = "cobrar 150 revisao empilhadeira"

HELP_REPLY = (
    "Olá! Eu guardo e consulto procedimentos de manutenção.\n"
    f"• Para consultar, escreva a operação e o equipamento: \"{PROMPT_EXAMPLE}\".\n"
    "• Para registrar, envie as fotos com essa descrição na legenda.\n"
    "• Finanças: \"gastei 25,90 mercado\", \"recebi 1500 salario\", \"resumo\"."
)
PAYMENT_HELP_REPLY = f"Informe o valor da cobrança. Exemplo: \"{PAYMENT_EXAMPLE}\"."


@dataclass(frozen=True)
class MissingInfo:
    example: str = PROMPT_EXAMPLE
    for_registration: bool = False


@dataclass(frozen=True)
class NoMatch:
    operation: str
    equipment: str


@dataclass(frozen=True)
class Found:
    record: ProcedureRecord
    attachment_urls: List[str] = field(default_factory=list)
    other_matches: int = 0


@dataclass(frozen=True)
class Registered:
    record: ProcedureRecord


@dataclass(frozen=True)
class TransactionLogged:
    transaction: Transaction


@dataclass(frozen=True)
class MonthlyReport:
    summary: MonthSummary


@dataclass(frozen=True)
class PaymentLinkCreated:
    amount_cents: int
    url: str
    description: str = ""


@dataclass(frozen=True)
class Help:
    topic: str = "general"


ReplyResult = Union[
    MissingInfo, NoMatch, Found, Registered, TransactionLogged, MonthlyReport, PaymentLinkCreated, Help
]


def compose_lookup(
    intent: Intent, records: Sequence[ProcedureRecord], max_media: int = DEFAULT_MAX_MEDIA
) -> ReplyResult:
    """Purpose: Turn a query intent and its matches into a reply result.
    Inputs/Outputs: Inputs are the extracted Intent, matched records (most recent
        first) and the photo cap; output is MissingInfo, NoMatch or Found.
    Side Effects / State: None; pure function.
    Dependencies: Intent, ProcedureRecord.
    Failure Modes: None.
    If Removed: Lookups cannot be answered.
    Testing Notes: A record with 8 photos yields Found with the first 5 in order.
    """
    # An intent with nothing extracted cannot be searched meaningfully.
    if intent.is_empty:
        return MissingInfo()
    if not records:
        return NoMatch(operation=intent.operation, equipment=intent.equipment)
    top = records[0]
    return Found(
        record=top,
        attachment_urls=list(top.photo_urls[: max(max_media, 0)]),
        other_matches=len(records) - 1,
    )


def check_registration(intent: Intent) -> Optional[MissingInfo]:
    """Return MissingInfo when a registration lacks operation or equipment, else None."""
    if intent.is_complete:
        return None
    return MissingInfo(for_registration=True)


def render(result: ReplyResult, tz: tzinfo = timezone.utc) -> BotReply:
    """Purpose: Render a reply result into transport-agnostic segments.
    Inputs/Outputs: Inputs are any ReplyResult variant and the timezone used for
        registration dates; output is a BotReply whose first segment is text.
    Side Effects / State: None.
    Dependencies: format_brl, _format_day.
    Failure Modes: Unknown result types raise TypeError.
    If Removed: The transport layer has nothing to send.
    Testing Notes: Found with photos renders 1 text segment + N media segments.
    """
    if isinstance(result, Found):
        segments = [ReplySegment(text=_found_text(result, tz))]
        segments.extend(ReplySegment(media_url=url) for url in result.attachment_urls)
        return BotReply(segments=segments)
    return BotReply(segments=[ReplySegment(text=_text_for(result))])


def _text_for(result: ReplyResult) -> str:
    if isinstance(result, MissingInfo):
        if result.for_registration:
            return (
                "Recebi as fotos, mas não identifiquei a operação e o equipamento. "
                f"Reenvie com a legenda, por exemplo: \"{result.example}\"."
            )
        return (
            "Não consegui identificar a operação nem o equipamento. "
            f"Tente algo como: \"{result.example}\"."
        )
    if isinstance(result, NoMatch):
        return (
            f"Não encontrei procedimento para *{result.operation or '-'}* "
            f"no equipamento *{result.equipment or '-'}*.\n"
            "Para cadastrar, envie as fotos com essa descrição na legenda."
        )
    if isinstance(result, Registered):
        record = result.record
        return (
            "✅ Procedimento registrado!\n"
            f"Operação: {record.operation}\n"
            f"Equipamento: {record.equipment}\n"
            f"Fotos: {len(record.photo_urls)}"
        )
    if isinstance(result, TransactionLogged):
        tx = result.transaction
        label = "💰 Receita" if tx.type == INCOME else "💸 Despesa"
        return f"{label} registrada: {format_brl(tx.value_cents)} ({tx.category or 'outros'})"
    if isinstance(result, MonthlyReport):
        return _summary_text(result.summary)
    if isinstance(result, PaymentLinkCreated):
        suffix = f" ({result.description})" if result.description else ""
        return f"🔗 Link de pagamento de {format_brl(result.amount_cents)}{suffix}:\n{result.url}"
    if isinstance(result, Help):
        return PAYMENT_HELP_REPLY if result.topic == "payment" else HELP_REPLY
    raise TypeError(f"unsupported reply result: {type(result).__name__}")


def _found_text(result: Found, tz: tzinfo) -> str:
    record = result.record
    lines = [f"🔧 *{record.operation}* | {record.equipment}"]
    if record.description:
        lines.append(record.description)
    author = record.created_by or "desconhecido"
    lines.append(f"Registrado por {author} em {_format_day(record.created_at, tz)}.")
    if result.attachment_urls:
        lines.append(f"📷 {len(result.attachment_urls)} foto(s) a seguir.")
    if result.other_matches:
        lines.append(f"Há mais {result.other_matches} registro(s) parecido(s).")
    return "\n".join(lines)


def _summary_text(summary: MonthSummary) -> str:
    period = f"{summary.month_start:%d/%m} a {summary.until:%d/%m}"
    if not summary.count:
        return f"📊 Resumo de {period}: nenhum lançamento neste mês."
    lines = [
        f"📊 Resumo de {period}",
        f"Receitas: {format_brl(summary.income_cents)}",
        f"Despesas: {format_brl(summary.expense_cents)}",
        f"Saldo: {format_brl(summary.balance_cents)}",
    ]
    for category, cents in summary.by_category[:5]:
        lines.append(f"• {category}: {format_brl(cents)}")
    return "\n".join(lines)


def _format_day(timestamp: float, tz: tzinfo) -> str:
    return datetime.fromtimestamp(timestamp, tz=tz).strftime("%d/%m/%Y")
