import os
import tempfile

import pytest

# procedure_bot.app builds a module-level app on import; keep its files out of the package.
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="procbot-test-"))

from procedure_bot.intent_extractor import IntentExtractor  # noqa: E402
from procedure_bot.ledger_store import LedgerStore  # noqa: E402
from procedure_bot.procedure_store import ProcedureStore  # noqa: E402


@pytest.fixture
def extractor():
    return IntentExtractor()


@pytest.fixture
def procedure_store(tmp_path):
    return ProcedureStore(tmp_path / "procedures.json")


@pytest.fixture
def ledger_store(tmp_path):
    return LedgerStore(tmp_path / "ledger.json")
