from __future__ import annotations

import json
import logging
import threading
import time
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

from .finance import ParsedTransaction
from .models import Transaction, User
from .utils import atomic_write_text

logger = logging.getLogger("procbot.store")


class LedgerStore:
    """Users and their transactions, persisted as one JSON document."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path
        self._users: Dict[str, User] = {}
        self._transactions: List[Transaction] = []
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        """Purpose: Load users and transactions from disk.
        Inputs/Outputs: Reads self._path; no return value.
        Side Effects / State: Populates _users and _transactions.
        Dependencies: json.loads, User and Transaction models.
        Failure Modes: Missing file or JSONDecodeError leaves an empty ledger.
        If Removed: Finance history is lost on restart.
        Testing Notes: Reload from the same path and verify the month summary.
        """
        if not self._path or not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("ledger %s is not valid JSON; starting empty", self._path)
            return
        if not isinstance(data, dict):
            return
        for raw in data.get("users", []):
            user = User(**raw)
            self._users[user.wa_number] = user
        self._transactions = [Transaction(**raw) for raw in data.get("transactions", [])]

    def _persist(self) -> None:
        if not self._path:
            return
        payload = {
            "users": [user.dict() for user in self._users.values()],
            "transactions": [tx.dict() for tx in self._transactions],
        }
        atomic_write_text(self._path, json.dumps(payload, ensure_ascii=False, indent=2, default=str))

    def ensure_user(self, wa_number: str, name: Optional[str] = None) -> User:
        """Purpose: Fetch or create the ledger owner for a WhatsApp number.
        Inputs/Outputs: Inputs are the number and an optional display name; output is
            the User.
        Side Effects / State: Creates and persists a user on first contact; a new
            display name replaces an empty one.
        Dependencies: User model, _persist.
        Failure Modes: Persist can raise IO errors.
        If Removed: Transactions cannot be attributed to a person.
        Testing Notes: Two calls with the same number return the same id.
        """
        with self._lock:
            user = self._users.get(wa_number)
            if user is None:
                user = User(id=len(self._users) + 1, wa_number=wa_number, name=name, created_at=time.time())
                self._users[wa_number] = user
                self._persist()
            elif name and not user.name:
                user.name = name
                self._persist()
        return user

    def add_transaction(self, user_id: int, parsed: ParsedTransaction, occurred_at: date) -> Transaction:
        """Store a parsed transaction for a user and return it."""
        with self._lock:
            tx = Transaction(
                id=len(self._transactions) + 1,
                user_id=user_id,
                type=parsed.kind,
                value_cents=parsed.value_cents,
                category=parsed.category,
                note=parsed.note,
                occurred_at=occurred_at,
                created_at=time.time(),
            )
            self._transactions.append(tx)
            self._persist()
        logger.info("transaction stored id=%s user=%s type=%s", tx.id, user_id, tx.type)
        return tx

    def list_transactions(self, user_id: int, since: Optional[date] = None) -> List[Transaction]:
        with self._lock:
            transactions = list(self._transactions)
        return [
            tx
            for tx in transactions
            if tx.user_id == user_id and (since is None or tx.occurred_at >= since)
        ]
