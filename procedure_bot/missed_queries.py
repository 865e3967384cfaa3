from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import List, Optional, Set

from .intent_extractor import Intent
from .utils import atomic_write_text

SEPARATOR = " | "


class MissedQueryLog:
    """Persisted registry of lookups that found no procedure, for catalog curation."""

    def __init__(self, path: Optional[Path] = None) -> None:
        """Purpose: Initialize the log and load prior misses from disk.
        Inputs/Outputs: Input is an optional Path; no return value.
        Side Effects / State: Loads misses into an in-memory set.
        Dependencies: Calls _load; uses a JSON file on disk.
        Failure Modes: JSON decode errors are ignored, leaving an empty set.
        If Removed: Nobody learns which procedures users look for but are missing.
        Testing Notes: Ensure a new miss is persisted and reloaded.
        """
        self._path = path
        self._misses: Set[str] = set()
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        if not self._path or not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return
        misses = data.get("misses", []) if isinstance(data, dict) else []
        if isinstance(misses, list):
            self._misses = {str(miss) for miss in misses}

    def _persist(self) -> None:
        if not self._path:
            return
        payload = {"misses": sorted(self._misses)}
        atomic_write_text(self._path, json.dumps(payload, ensure_ascii=False, indent=2))

    def record(self, intent: Intent) -> bool:
        """Purpose: Record a missed lookup if it has not been seen before.
        Inputs/Outputs: Input is the query Intent; output is True if recorded.
        Side Effects / State: Mutates the set and writes to disk.
        Dependencies: Uses _persist for durability.
        Failure Modes: IO errors on persist; duplicates and empty intents return False.
        If Removed: Missed-lookup reporting stops working.
        Testing Notes: Record a duplicate and ensure it returns False.
        """
        if intent.is_empty:
            return False
        key = f"{intent.operation}{SEPARATOR}{intent.equipment}"
        with self._lock:
            if key in self._misses:
                return False
            self._misses.add(key)
            self._persist()
        return True

    def entries(self) -> List[str]:
        with self._lock:
            return sorted(self._misses)
