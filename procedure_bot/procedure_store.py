from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional

from .intent_extractor import Intent
from .matcher import DEFAULT_LIMIT, search
from .models import ProcedureRecord
from .utils import atomic_write_text

logger = logging.getLogger("procbot.store")


class ProcedureStore:
    """Procedure records persisted as a JSON document (in memory when no path is set)."""

    def __init__(self, path: Optional[Path] = None) -> None:
        """Purpose: Initialize the store and hydrate records from disk if available.
        Inputs/Outputs: Input is an optional file path; no return value.
        Side Effects / State: Loads records into an in-memory list.
        Dependencies: Calls _load; relies on the ProcedureRecord model.
        Failure Modes: JSON decode errors leave an empty store.
        If Removed: Registrations are lost and lookups have nothing to search.
        Testing Notes: Create records, rebuild the store on the same path, search again.
        """
        # Keep the backing path and preload persisted records.
        self._path = path
        self._records: List[ProcedureRecord] = []
        self._next_id = 1
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        """Purpose: Load persisted records from disk into memory.
        Inputs/Outputs: Reads self._path; no return value.
        Side Effects / State: Populates _records and _next_id.
        Dependencies: json.loads and ProcedureRecord validation.
        Failure Modes: Missing file or JSONDecodeError results in an empty store.
        If Removed: Previously registered procedures vanish on restart.
        Testing Notes: Corrupt JSON must not crash the app.
        """
        if not self._path or not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("procedure store %s is not valid JSON; starting empty", self._path)
            return
        records = data.get("records", []) if isinstance(data, dict) else []
        self._records = [ProcedureRecord(**record) for record in records if isinstance(record, dict)]
        self._next_id = max((record.id for record in self._records), default=0) + 1

    def _persist(self) -> None:
        """Purpose: Write all records to disk.
        Inputs/Outputs: Writes to self._path; no return value.
        Side Effects / State: Replaces the JSON file through a temporary file.
        Dependencies: json.dumps and utils.atomic_write_text; callers hold _lock.
        Failure Modes: IO errors raise exceptions (not caught here).
        If Removed: Records are never saved across restarts.
        Testing Notes: Ensure the file holds every created record.
        """
        if not self._path:
            return
        payload: Dict[str, object] = {"records": [record.dict() for record in self._records]}
        atomic_write_text(self._path, json.dumps(payload, ensure_ascii=False, indent=2))

    def find_candidates(
        self, operation_pattern: str, equipment_pattern: str, limit: int = DEFAULT_LIMIT
    ) -> List[ProcedureRecord]:
        """Purpose: Return records whose fields contain both patterns, newest first.
        Inputs/Outputs: Inputs are substring patterns (empty matches all) and a cap;
            output is at most `limit` records.
        Side Effects / State: None.
        Dependencies: matcher.search.
        Failure Modes: None; no match returns an empty list.
        If Removed: Lookups cannot reach stored procedures.
        Testing Notes: Register then search the same substrings; the record comes first.
        """
        # Matching rules live in the matcher so the store stays a thin collaborator.
        intent = Intent(operation=operation_pattern or "", equipment=equipment_pattern or "")
        with self._lock:
            records = list(self._records)
        return search(intent, records, limit=limit)

    def create_record(
        self,
        operation: str,
        equipment: str,
        description: Optional[str],
        photo_urls: List[str],
        created_by: Optional[str],
    ) -> ProcedureRecord:
        """Purpose: Insert a new procedure record.
        Inputs/Outputs: Inputs are the record fields; output is the stored record with
            id and created_at assigned.
        Side Effects / State: Appends to the in-memory list and persists to disk.
        Dependencies: ProcedureRecord, _persist.
        Failure Modes: Persist can raise IO errors.
        If Removed: Registrations cannot be stored.
        Testing Notes: Ids increase monotonically across reloads.
        """
        # Assign id/timestamp here, like a SERIAL column with DEFAULT NOW().
        with self._lock:
            record = ProcedureRecord(
                id=self._next_id,
                equipment=equipment,
                operation=operation,
                description=description or None,
                photo_urls=list(photo_urls),
                created_by=created_by or None,
                created_at=time.time(),
            )
            self._next_id += 1
            self._records.append(record)
            self._persist()
        logger.info("procedure stored id=%s operation=%s equipment=%s", record.id, operation, equipment)
        return record

    def all_records(self) -> List[ProcedureRecord]:
        with self._lock:
            return list(self._records)
