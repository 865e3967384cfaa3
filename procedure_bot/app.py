from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from .catalog import BrandDictionary, OperationCatalog, load_reference_tables
from .config import Settings, load_settings
from .dispatcher import MessageDispatcher
from .intent_extractor import IntentExtractor
from .ledger_store import LedgerStore
from .missed_queries import MissedQueryLog
from .models import BotReply, InboundMessage, ReplySegment
from .procedure_store import ProcedureStore
from .twiml import render_twiml

BASE_DIR = Path(__file__).resolve().parent

log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

logging.getLogger("procbot").setLevel(log_level)
logger = logging.getLogger("procbot.app")

ENV_PATH = BASE_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=True)

TRANSIENT_FAILURE_REPLY = "Tive um problema temporário para processar sua mensagem. Tente novamente em instantes."


def build_dispatcher(settings: Settings) -> MessageDispatcher:
    """Purpose: Construct stores, reference tables, and the dispatcher from settings.
    Inputs/Outputs: Input is Settings; output is a ready MessageDispatcher.
    Side Effects / State: Creates the data directory and loads persisted stores.
    Dependencies: load_reference_tables, ProcedureStore, LedgerStore, MissedQueryLog.
    Failure Modes: A bad CATALOG_PATH raises at startup (FileNotFoundError,
        JSONDecodeError, CatalogOrderError).
    If Removed: create_app cannot wire the webhook.
    Testing Notes: Point DATA_DIR at a temp dir and check files appear after writes.
    """
    # Reference tables are loaded once and shared read-only by every request.
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    if settings.catalog_path:
        catalog, brands = load_reference_tables(settings.catalog_path)
    else:
        catalog, brands = OperationCatalog(), BrandDictionary()
    logger.info("reference tables loaded operations=%s brands=%s", len(catalog), len(brands))
    return MessageDispatcher(
        extractor=IntentExtractor(catalog, brands),
        procedures=ProcedureStore(settings.procedures_path),
        ledger=LedgerStore(settings.ledger_path),
        missed_queries=MissedQueryLog(settings.missed_queries_path),
        max_results=settings.max_results,
        max_media=settings.max_media,
        payment_link_base_url=settings.payment_link_base_url,
        tz=settings.tzinfo,
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    dispatcher = build_dispatcher(settings)
    app = FastAPI(title="Maintenance Procedure Bot")
    app.state.dispatcher = dispatcher

    @app.get("/health")
    def health() -> dict:
        return {"ok": True}

    @app.post("/webhook")
    async def webhook(request: Request) -> Response:
        """Purpose: Handle a Twilio WhatsApp webhook and answer with TwiML.
        Inputs/Outputs: Input is the form-encoded request; output is an XML Response.
        Side Effects / State: May store procedures or ledger entries.
        Dependencies: InboundMessage.from_twilio_form, MessageDispatcher, render_twiml.
            The dispatcher does blocking file IO, so it runs in the threadpool.
        Failure Modes: Any collaborator exception is logged and answered with a
            generic transient-failure message instead of a 500.
        If Removed: WhatsApp messages are never processed.
        Testing Notes: Post Body/NumMedia fields and assert on the <Body> text.
        """
        form = await request.form()
        inbound = InboundMessage.from_twilio_form(
            {key: value for key, value in form.items() if isinstance(value, str)}
        )
        try:
            context = await run_in_threadpool(dispatcher.handle, inbound)
            reply = context.reply
        except Exception:
            logger.exception("webhook failed sender=%s", inbound.sender)
            reply = BotReply(segments=[ReplySegment(text=TRANSIENT_FAILURE_REPLY)])
        return Response(content=render_twiml(reply), media_type="application/xml")

    @app.post("/api/messages", response_model=BotReply)
    def post_message(message: InboundMessage) -> BotReply:
        # JSON twin of the webhook; errors propagate as 500s.
        return dispatcher.handle(message).reply

    @app.get("/api/procedures")
    def list_procedures(operation: str = "", equipment: str = "") -> List[dict]:
        records = dispatcher.procedures.find_candidates(operation, equipment, limit=settings.max_results)
        return [record.dict() for record in records]

    return app


app = create_app()
