"""Message dispatcher: one inbound message in, one reply out.

Role:
    Classifies each inbound message into a MessageKind and runs the matching branch
    of an ordered list of dispatch steps. It owns the MessageContext contract shared
    by the steps.

Context data contract:
    - inbound: the InboundMessage as received from the transport.
    - kind: MessageKind chosen by the classifier.
    - intent: extracted (operation, equipment) for REGISTRATION and QUERY.
    - result: the composer's tagged result for the branch that ran.
    - reply: rendered BotReply, always set by the final step.

Step contracts:
    classify: always runs; sets kind.
    extract_intent: REGISTRATION and QUERY only; sets intent.
    registration: validates the intent, writes through ProcedureStore.create_record.
    lookup: reads through ProcedureStore.find_candidates, logs misses.
    finance_entry / finance_summary / payment_link: ledger commands.
    help: UNKNOWN messages.
    render: always runs; result -> reply.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from typing import Callable, List, Optional

from .classifier import MessageKind, classify
from .composer import (
    DEFAULT_MAX_MEDIA,
    Help,
    MonthlyReport,
    PaymentLinkCreated,
    Registered,
    ReplyResult,
    TransactionLogged,
    check_registration,
    compose_lookup,
    render,
)
from .finance import build_payment_link, parse_payment_request, parse_transaction, summarize_month
from .intent_extractor import Intent, IntentExtractor
from .ledger_store import LedgerStore
from .matcher import DEFAULT_LIMIT
from .missed_queries import MissedQueryLog
from .models import BotReply, InboundMessage
from .procedure_store import ProcedureStore

logger = logging.getLogger("procbot.dispatcher")

DEFAULT_PAYMENT_LINK_BASE_URL = "https://pagamentos.example.com/l"


@dataclass
class MessageContext:
    """Mutable context passed through each dispatch step."""
    inbound: InboundMessage
    kind: MessageKind = MessageKind.UNKNOWN
    intent: Intent = field(default_factory=Intent)
    result: Optional[ReplyResult] = None
    reply: BotReply = field(default_factory=BotReply)


@dataclass
class DispatchStep:
    """Named dispatch step; skipped when skip_if(context) is true."""
    name: str
    fn: Callable[[MessageContext], None]
    skip_if: Optional[Callable[[MessageContext], bool]] = None


class MessageDispatcher:
    def __init__(
        self,
        extractor: IntentExtractor,
        procedures: ProcedureStore,
        ledger: LedgerStore,
        missed_queries: Optional[MissedQueryLog] = None,
        max_results: int = DEFAULT_LIMIT,
        max_media: int = DEFAULT_MAX_MEDIA,
        payment_link_base_url: str = DEFAULT_PAYMENT_LINK_BASE_URL,
        tz: tzinfo = timezone.utc,
        today: Optional[Callable[[], date]] = None,
        token_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ) -> None:
        """Purpose: Wire collaborators and declare the ordered dispatch steps.
        Inputs/Outputs: Inputs are the extractor, stores, limits, payment link base URL,
            the local timezone, and the clock/token providers used by finance
            commands; no return value.
        Side Effects / State: Builds the step list consumed by handle().
        Dependencies: DispatchStep and the step methods on this class.
        Failure Modes: None at init; store errors surface from handle().
        If Removed: The webhook cannot process messages.
        Testing Notes: Inject a fixed clock and token factory for deterministic replies.
        """
        self._extractor = extractor
        self._procedures = procedures
        self._ledger = ledger
        self._missed_queries = missed_queries
        self._max_results = max_results
        self._max_media = max_media
        self._payment_link_base_url = payment_link_base_url
        self._tz = tz
        self._today = today or (lambda: datetime.now(tz).date())
        self._token_factory = token_factory
        # classify and render carry no skip_if, so every message gets a kind and a reply.
        self._steps: List[DispatchStep] = [
            DispatchStep("classify", self._step_classify),
            DispatchStep("extract_intent", self._step_extract_intent, skip_if=_not_procedure),
            DispatchStep("registration", self._step_registration, skip_if=_unless(MessageKind.REGISTRATION)),
            DispatchStep("lookup", self._step_lookup, skip_if=_unless(MessageKind.QUERY)),
            DispatchStep("finance_entry", self._step_finance_entry, skip_if=_unless(MessageKind.FINANCE_EXPENSE)),
            DispatchStep("finance_summary", self._step_finance_summary, skip_if=_unless(MessageKind.FINANCE_SUMMARY)),
            DispatchStep("payment_link", self._step_payment_link, skip_if=_unless(MessageKind.PAYMENT_LINK)),
            DispatchStep("help", self._step_help, skip_if=_unless(MessageKind.UNKNOWN)),
            DispatchStep("render", self._step_render),
        ]

    @property
    def procedures(self) -> ProcedureStore:
        return self._procedures

    def handle(self, inbound: InboundMessage) -> MessageContext:
        """Purpose: Run the dispatch steps for one inbound message.
        Inputs/Outputs: Input is an InboundMessage; output is the populated context.
        Side Effects / State: May write procedures or ledger entries through the stores.
        Dependencies: The DispatchStep list built in __init__.
        Failure Modes: A failing step is logged with its name and the exception
            propagates; the transport turns it into a transient-failure reply.
        If Removed: No message can be answered.
        Testing Notes: A message with images and a full caption yields Registered.
        """
        context = MessageContext(inbound=inbound)
        for step in self._steps:
            if step.skip_if is not None and step.skip_if(context):
                continue
            try:
                step.fn(context)
            except Exception:
                logger.exception(
                    "sender=%s kind=%s step=%s status=failed", inbound.sender, context.kind.value, step.name
                )
                raise
        logger.info(
            "sender=%s kind=%s operation=%s equipment=%s result=%s",
            inbound.sender,
            context.kind.value,
            context.intent.operation,
            context.intent.equipment,
            type(context.result).__name__,
        )
        return context

    def _step_classify(self, context: MessageContext) -> None:
        context.kind = classify(context.inbound.text, len(context.inbound.image_urls))

    def _step_extract_intent(self, context: MessageContext) -> None:
        context.intent = self._extractor.extract_intent(context.inbound.text)

    def _step_registration(self, context: MessageContext) -> None:
        """Purpose: Store a procedure when the caption names operation and equipment.
        Inputs/Outputs: Input is the context; sets context.result.
        Side Effects / State: Writes a ProcedureRecord through the store.
        Dependencies: check_registration, ProcedureStore.create_record.
        Failure Modes: Incomplete intents produce MissingInfo without writing.
        If Removed: Photos sent to the bot are never recorded.
        Testing Notes: Caption "oi" with photos must not create a record.
        """
        missing = check_registration(context.intent)
        if missing is not None:
            context.result = missing
            return
        record = self._procedures.create_record(
            operation=context.intent.operation,
            equipment=context.intent.equipment,
            description=context.inbound.text.strip() or None,
            photo_urls=context.inbound.image_urls,
            created_by=context.inbound.profile_name or context.inbound.sender or None,
        )
        context.result = Registered(record=record)

    def _step_lookup(self, context: MessageContext) -> None:
        intent = context.intent
        records = []
        if not intent.is_empty:
            records = self._procedures.find_candidates(intent.operation, intent.equipment, limit=self._max_results)
        context.result = compose_lookup(intent, records, max_media=self._max_media)
        if not records and self._missed_queries is not None:
            self._missed_queries.record(intent)

    def _step_finance_entry(self, context: MessageContext) -> None:
        parsed = parse_transaction(context.inbound.text)
        if parsed is None:
            context.result = Help()
            return
        user = self._ledger.ensure_user(context.inbound.sender, context.inbound.profile_name)
        tx = self._ledger.add_transaction(user.id, parsed, occurred_at=self._today())
        context.result = TransactionLogged(transaction=tx)

    def _step_finance_summary(self, context: MessageContext) -> None:
        today = self._today()
        user = self._ledger.ensure_user(context.inbound.sender, context.inbound.profile_name)
        transactions = self._ledger.list_transactions(user.id, since=today.replace(day=1))
        context.result = MonthlyReport(summary=summarize_month(transactions, today))

    def _step_payment_link(self, context: MessageContext) -> None:
        # Simulated link; no payment provider is called.
        request = parse_payment_request(context.inbound.text)
        if request is None:
            context.result = Help(topic="payment")
            return
        amount_cents, description = request
        url = build_payment_link(self._payment_link_base_url, amount_cents, self._token_factory())
        context.result = PaymentLinkCreated(amount_cents=amount_cents, url=url, description=description)

    def _step_help(self, context: MessageContext) -> None:
        context.result = Help()

    def _step_render(self, context: MessageContext) -> None:
        context.reply = render(context.result or Help(), tz=self._tz)


def _unless(kind: MessageKind) -> Callable[[MessageContext], bool]:
    return lambda context: context.kind != kind


def _not_procedure(context: MessageContext) -> bool:
    return context.kind not in (MessageKind.REGISTRATION, MessageKind.QUERY)
