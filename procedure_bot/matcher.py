from __future__ import annotations

from typing import Iterable, List

from .intent_extractor import Intent
from .models import ProcedureRecord
from .utils import normalize_text

DEFAULT_LIMIT = 5


def contains(field: str, pattern: str) -> bool:
    """Case- and accent-insensitive containment; an empty pattern matches anything."""
    needle = normalize_text(pattern)
    if not needle:
        return True
    return needle in normalize_text(field)


def search(intent: Intent, records: Iterable[ProcedureRecord], limit: int = DEFAULT_LIMIT) -> List[ProcedureRecord]:
    """Purpose: Select records matching an intent, most recent first.
    Inputs/Outputs: Inputs are an Intent, any iterable of ProcedureRecord and a result
        cap; output is at most `limit` records.
    Side Effects / State: None; pure function.
    Dependencies: contains() for both fields.
    Failure Modes: None; no match returns an empty list.
    If Removed: Lookups and the store's find_candidates have no matching rule.
    Testing Notes: An empty intent returns the newest records up to the cap.
    """
    # Both predicates must hold; recency is the only ranking.
    matched = [
        record
        for record in records
        if contains(record.operation, intent.operation) and contains(record.equipment, intent.equipment)
    ]
    matched.sort(key=lambda record: (record.created_at, record.id), reverse=True)
    if limit <= 0:
        return []
    return matched[:limit]
