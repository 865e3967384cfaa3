"""Heuristic extraction of (operation, equipment) from maintenance messages.

Role:
    Turns free-form text such as "troca de rolamento RRE160HCC Toyota" into an
    Intent. The heuristic is recall oriented and order sensitive: the operation is
    the first catalog phrase found in the text, and the equipment is anchored on
    the first known brand token, with the token before it read as a model code.

Extraction contract:
    - Input is normalized first; None and "" behave the same.
    - Operation: catalog first match, else "troca de " + the next two tokens when
      the message starts with that prefix, else "".
    - Equipment is read from the text with the operation phrase removed:
      MODEL brand, brand alone, or the last two tokens when no brand is known.
    - An Intent with both fields empty means "not enough information"; it is a
      normal outcome, never an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .catalog import BrandDictionary, OperationCatalog
from .utils import normalize_text, tokenize

TROCA_PREFIX = "troca de "
FALLBACK_OPERATION_TOKENS = 2
FALLBACK_EQUIPMENT_TOKENS = 2


@dataclass(frozen=True)
class Intent:
    """Extracted operation/equipment pair for one message."""
    operation: str = ""
    equipment: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.operation and not self.equipment

    @property
    def is_complete(self) -> bool:
        return bool(self.operation) and bool(self.equipment)


class IntentExtractor:
    """Deterministic extractor bound to an operation catalog and a brand dictionary."""

    def __init__(
        self,
        catalog: Optional[OperationCatalog] = None,
        brands: Optional[BrandDictionary] = None,
    ) -> None:
        """Purpose: Bind the extractor to immutable reference tables.
        Inputs/Outputs: Inputs are an OperationCatalog and a BrandDictionary (defaults
            when omitted); no return value.
        Side Effects / State: Stores the tables; nothing else is kept between calls.
        Dependencies: catalog.OperationCatalog, catalog.BrandDictionary.
        Failure Modes: None; table validation happens when the tables are built.
        If Removed: Messages cannot be turned into lookups or registrations.
        Testing Notes: Build with a custom two-phrase catalog and check precedence.
        """
        # Keep reference tables per instance so tests can run with isolated catalogs.
        self._catalog = catalog if catalog is not None else OperationCatalog()
        self._brands = brands if brands is not None else BrandDictionary()

    @property
    def catalog(self) -> OperationCatalog:
        return self._catalog

    @property
    def brands(self) -> BrandDictionary:
        return self._brands

    def extract_intent(self, raw_text: Optional[str]) -> Intent:
        """Purpose: Derive an Intent from raw message text.
        Inputs/Outputs: Input is raw text (possibly None); output is an Intent with
            trimmed operation and equipment strings.
        Side Effects / State: None; pure function of the text and reference tables.
        Dependencies: normalize_text, detect_operation, detect_equipment.
        Failure Modes: None; missing signals produce empty fields.
        If Removed: The dispatcher has nothing to search or register.
        Testing Notes: "troca de filtro hyster" -> ("troca de filtro", "hyster").
        """
        text = normalize_text(raw_text)
        operation = self.detect_operation(text)
        equipment = self.detect_equipment(text, operation)
        return Intent(operation=operation.strip(), equipment=equipment.strip())

    def detect_operation(self, text: str) -> str:
        """Return the catalog phrase or "troca de" fallback found in normalized text."""
        operation = self._catalog.first_match(text)
        if operation:
            return operation
        if text.startswith(TROCA_PREFIX):
            following = tokenize(text[len(TROCA_PREFIX) :])[:FALLBACK_OPERATION_TOKENS]
            if following:
                return TROCA_PREFIX + " ".join(following)
        return ""

    def detect_equipment(self, text: str, operation: str = "") -> str:
        """Purpose: Read an equipment identifier from normalized text.
        Inputs/Outputs: Inputs are normalized text and the operation detected in it;
            output is "MODEL brand", "brand", or the last two tokens of the text.
        Side Effects / State: None.
        Dependencies: tokenize and the brand dictionary.
        Failure Modes: None; empty text yields "".
        If Removed: Lookups fall back to operation-only matching.
        Testing Notes: With two brands present only the first one (token order) counts.
        """
        # The brand anchor skips the operation phrase, so "troca de filtro hyster" -> "hyster".
        tokens = tokenize(_remove_first(text, operation))
        for index, token in enumerate(tokens):
            if token in self._brands:
                if index == 0:
                    return token
                return f"{tokens[index - 1].upper()} {token}"
        # No brand: best-effort guess from the tail of the whole message.
        return " ".join(_tail(tokenize(text), FALLBACK_EQUIPMENT_TOKENS))


def _remove_first(text: str, phrase: str) -> str:
    if not phrase:
        return text
    return text.replace(phrase, " ", 1)


def _tail(tokens: List[str], count: int) -> List[str]:
    return tokens[-count:] if count > 0 else []
