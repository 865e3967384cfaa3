import logging
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from procedure_bot.classifier import MessageKind
from procedure_bot.composer import Found, Help, MissingInfo, NoMatch, PaymentLinkCreated, Registered
from procedure_bot.dispatcher import MessageDispatcher
from procedure_bot.intent_extractor import IntentExtractor
from procedure_bot.ledger_store import LedgerStore
from procedure_bot.missed_queries import MissedQueryLog
from procedure_bot.models import Attachment, InboundMessage
from procedure_bot.procedure_store import ProcedureStore

SENDER = "whatsapp:+5511988887777"


@pytest.fixture
def dispatcher(tmp_path):
    return MessageDispatcher(
        extractor=IntentExtractor(),
        procedures=ProcedureStore(),
        ledger=LedgerStore(),
        missed_queries=MissedQueryLog(tmp_path / "missed.json"),
        payment_link_base_url="https://pay.example.com/l",
        today=lambda: date(2026, 10, 19),
        token_factory=lambda: "tok123",
    )


def message(text, images=0, extra=None):
    attachments = [
        Attachment(url=f"https://media.example.com/{index}.jpg", content_type="image/jpeg")
        for index in range(images)
    ]
    attachments.extend(extra or [])
    return InboundMessage(sender=SENDER, profile_name="Rafa", text=text, attachments=attachments)


def test_registration_then_lookup(dispatcher):
    registered = dispatcher.handle(message("troca de rolamento RRE160HCC Toyota", images=8))
    assert registered.kind is MessageKind.REGISTRATION
    assert isinstance(registered.result, Registered)
    assert registered.result.record.created_by == "Rafa"
    assert len(registered.result.record.photo_urls) == 8
    assert "Fotos: 8" in registered.reply.text

    found = dispatcher.handle(message("rolamento toyota"))
    assert found.kind is MessageKind.QUERY
    assert isinstance(found.result, Found)
    assert found.result.record.id == registered.result.record.id
    assert found.reply.media_urls == [f"https://media.example.com/{index}.jpg" for index in range(5)]


def test_registration_ignores_non_image_attachments(dispatcher):
    pdf = Attachment(url="https://media.example.com/manual.pdf", content_type="application/pdf")
    context = dispatcher.handle(message("troca de pneu G20 yale", images=1, extra=[pdf]))
    assert context.result.record.photo_urls == ["https://media.example.com/0.jpg"]


def test_registration_without_operation_asks_again(dispatcher):
    context = dispatcher.handle(message("oi", images=2))
    assert context.result == MissingInfo(for_registration=True)
    assert dispatcher.procedures.all_records() == []


def test_lookup_without_match_is_logged(dispatcher, tmp_path):
    context = dispatcher.handle(message("troca de bateria 7FBE toyota"))
    assert context.result == NoMatch(operation="troca de bateria", equipment="7FBE toyota")
    assert MissedQueryLog(tmp_path / "missed.json").entries() == ["troca de bateria | 7FBE toyota"]


def test_finance_flow(dispatcher):
    logged = dispatcher.handle(message("gastei 25,90 mercado"))
    assert logged.kind is MessageKind.FINANCE_EXPENSE
    assert logged.reply.text == "💸 Despesa registrada: R$ 25,90 (mercado)"
    dispatcher.handle(message("recebi 1000 freela"))

    summary = dispatcher.handle(message("resumo"))
    assert summary.kind is MessageKind.FINANCE_SUMMARY
    assert "Saldo: R$ 974,10" in summary.reply.text
    assert summary.intent.is_empty


def test_payment_link(dispatcher):
    context = dispatcher.handle(message("cobrar 150 revisao"))
    assert context.result == PaymentLinkCreated(
        amount_cents=15000, url="https://pay.example.com/l/tok123?valor=15000", description="revisao"
    )
    assert isinstance(dispatcher.handle(message("cobrar")).result, Help)


def test_empty_message_gets_help(dispatcher):
    context = dispatcher.handle(message(""))
    assert context.kind is MessageKind.UNKNOWN
    assert isinstance(context.result, Help)
    assert context.reply.text


def test_store_failure_propagates(dispatcher, monkeypatch):
    def boom(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(dispatcher.procedures, "create_record", boom)
    with pytest.raises(OSError):
        dispatcher.handle(message("troca de pneu G20 yale", images=1))


def test_failing_step_is_logged_with_its_name(dispatcher, monkeypatch, caplog):
    def boom(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(dispatcher.procedures, "create_record", boom)
    with caplog.at_level(logging.ERROR, logger="procbot.dispatcher"):
        with pytest.raises(OSError):
            dispatcher.handle(message("troca de pneu G20 yale", images=1))
    failures = [rec for rec in caplog.records if "status=failed" in rec.getMessage()]
    assert len(failures) == 1
    assert "step=registration" in failures[0].getMessage()
    assert "kind=registration" in failures[0].getMessage()


def test_only_the_branch_for_the_kind_runs(dispatcher, monkeypatch):
    def unexpected(*args, **kwargs):
        raise AssertionError("ledger touched by a procedure lookup")

    monkeypatch.setattr(dispatcher._ledger, "ensure_user", unexpected)
    context = dispatcher.handle(message("rolamento toyota"))
    assert isinstance(context.result, NoMatch)
    assert context.reply.text


def test_registration_date_uses_local_timezone():
    procedures = ProcedureStore()
    local = MessageDispatcher(
        extractor=IntentExtractor(),
        procedures=procedures,
        ledger=LedgerStore(),
        tz=ZoneInfo("America/Sao_Paulo"),
    )
    record = procedures.create_record("troca de oleo", "G20 yale", None, [], "Ana")
    # 22:30 in Sao Paulo is already the next day in UTC.
    record.created_at = datetime(2026, 10, 20, 1, 30, tzinfo=timezone.utc).timestamp()
    context = local.handle(message("troca de oleo yale"))
    assert "Registrado por Ana em 19/10/2026." in context.reply.text
