import threading
from datetime import date

from procedure_bot.finance import EXPENSE, INCOME, ParsedTransaction
from procedure_bot.intent_extractor import Intent
from procedure_bot.ledger_store import LedgerStore
from procedure_bot.missed_queries import MissedQueryLog
from procedure_bot.procedure_store import ProcedureStore


def test_register_then_search_returns_record_first(procedure_store):
    procedure_store.create_record("troca de correia", "H50 hyster", None, [], "ana")
    created = procedure_store.create_record(
        operation="troca de correia",
        equipment="RRE160HCC TOYOTA",
        description="Trocar a correia do motor de tração.",
        photo_urls=["https://media.example.com/1.jpg", "https://media.example.com/2.jpg"],
        created_by="whatsapp:+5511999990000",
    )
    results = procedure_store.find_candidates("troca de correia", "RRE160HCC TOYOTA")
    assert results[0] == created
    assert results[0].photo_urls == ["https://media.example.com/1.jpg", "https://media.example.com/2.jpg"]


def test_records_survive_reload(tmp_path):
    path = tmp_path / "procedures.json"
    store = ProcedureStore(path)
    first = store.create_record("troca de pneu", "yale", "desc", ["u1"], "ana")
    reloaded = ProcedureStore(path)
    assert reloaded.all_records() == [first]
    second = reloaded.create_record("revisao", "RX20 still", None, [], None)
    assert second.id == first.id + 1


def test_corrupt_store_starts_empty(tmp_path):
    path = tmp_path / "procedures.json"
    path.write_text("{not json", encoding="utf-8")
    assert ProcedureStore(path).all_records() == []


def test_in_memory_store_does_not_write(tmp_path):
    store = ProcedureStore()
    store.create_record("pneu", "yale", None, [], None)
    assert len(store.find_candidates("", "")) == 1
    assert list(tmp_path.iterdir()) == []


def test_find_candidates_caps_results(procedure_store):
    for index in range(7):
        procedure_store.create_record("pneu", f"M{index} yale", None, [], None)
    results = procedure_store.find_candidates("pneu", "yale", limit=5)
    assert len(results) == 5
    assert results[0].equipment == "M6 yale"


def test_ledger_users_and_transactions(tmp_path):
    path = tmp_path / "ledger.json"
    ledger = LedgerStore(path)
    user = ledger.ensure_user("whatsapp:+551100000000")
    assert ledger.ensure_user("whatsapp:+551100000000", "Bia").id == user.id
    other = ledger.ensure_user("whatsapp:+552200000000", "Caio")
    assert other.id != user.id

    ledger.add_transaction(user.id, ParsedTransaction(EXPENSE, 2590, "mercado", None), date(2026, 9, 30))
    ledger.add_transaction(user.id, ParsedTransaction(INCOME, 10000, "venda", None), date(2026, 10, 2))
    ledger.add_transaction(other.id, ParsedTransaction(EXPENSE, 500, "cafe", None), date(2026, 10, 2))

    reloaded = LedgerStore(path)
    assert reloaded.ensure_user("whatsapp:+551100000000").name == "Bia"
    assert len(reloaded.list_transactions(user.id)) == 2
    october = reloaded.list_transactions(user.id, since=date(2026, 10, 1))
    assert [tx.category for tx in october] == ["venda"]


def test_missed_query_log_deduplicates(tmp_path):
    path = tmp_path / "missed.json"
    log = MissedQueryLog(path)
    intent = Intent(operation="troca de pneu", equipment="yale")
    assert log.record(intent) is True
    assert log.record(intent) is False
    assert log.record(Intent()) is False
    assert MissedQueryLog(path).entries() == ["troca de pneu | yale"]


def test_concurrent_creates_all_reach_disk(tmp_path):
    path = tmp_path / "procedures.json"
    store = ProcedureStore(path)
    errors = []

    def worker(worker_id):
        try:
            for index in range(50):
                store.create_record("troca de oleo", f"{worker_id}-{index} hyster", None, [], None)
        except Exception as exc:  # collected for the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(worker_id,)) for worker_id in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    ids = [record.id for record in store.all_records()]
    assert sorted(ids) == list(range(1, 401))
    assert len(ProcedureStore(path).all_records()) == 400
    assert [item.name for item in tmp_path.iterdir()] == ["procedures.json"]


def test_concurrent_ledger_writes_keep_every_transaction(tmp_path):
    path = tmp_path / "ledger.json"
    ledger = LedgerStore(path)
    errors = []

    def worker(worker_id):
        try:
            user = ledger.ensure_user(f"whatsapp:+55119000000{worker_id}")
            for _ in range(25):
                ledger.add_transaction(user.id, ParsedTransaction(EXPENSE, 100, "mercado", None), date(2026, 10, 19))
        except Exception as exc:  # collected for the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(worker_id,)) for worker_id in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    reloaded = LedgerStore(path)
    user_ids = {reloaded.ensure_user(f"whatsapp:+55119000000{worker_id}").id for worker_id in range(6)}
    assert user_ids == set(range(1, 7))
    assert sum(len(reloaded.list_transactions(user_id)) for user_id in user_ids) == 150
