"""Reference tables used by the intent extractor.

The operation catalog is priority ordered: the first phrase contained in a message
wins, so a phrase must be declared before any other catalog phrase it contains
("troca de rolamento" before "rolamento"). The brand dictionary anchors equipment
extraction on a known manufacturer token.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import FrozenSet, Iterable, Iterator, List, Tuple

from .utils import normalize_text

DEFAULT_OPERATIONS: Tuple[str, ...] = (
    "troca de rolamento",
    "troca de oleo",
    "troca de filtro",
    "troca de correia",
    "troca de corrente",
    "troca de pneu",
    "troca de bateria",
    "troca de pastilha",
    "troca de embreagem",
    "troca de mangueira",
    "troca de retentor",
    "regulagem de freio",
    "regulagem de corrente",
    "lubrificacao",
    "revisao preventiva",
    "revisao",
    "rolamento",
    "oleo",
    "filtro",
    "correia",
    "corrente",
    "pneu",
    "bateria",
    "pastilha",
    "embreagem",
    "mangueira",
    "retentor",
    "freio",
    "vazamento",
    "mastro",
    "garfo",
)

DEFAULT_BRANDS: Tuple[str, ...] = (
    "toyota",
    "hyster",
    "yale",
    "clark",
    "still",
    "linde",
    "jungheinrich",
    "crown",
    "komatsu",
    "nissan",
    "mitsubishi",
    "caterpillar",
    "heli",
    "hangcha",
    "paletrans",
    "doosan",
    "hyundai",
    "bt",
)


class CatalogOrderError(ValueError):
    """Raised when a catalog phrase is shadowed by an earlier, shorter phrase."""


def find_shadowed_pairs(phrases: Iterable[str]) -> List[Tuple[str, str]]:
    """Purpose: List (earlier, later) pairs where a later phrase contains an earlier one.
    Inputs/Outputs: Input is an ordered iterable of normalized phrases; output is the
        list of offending pairs in declaration order.
    Side Effects / State: None; pure function.
    Dependencies: Used by OperationCatalog validation and by tests.
    Failure Modes: None; an empty list means the ordering invariant holds.
    If Removed: A catalog edit could silently make a specific phrase unreachable.
    Testing Notes: ("oleo", "troca de oleo") is offending; the reverse order is not.
    """
    # A later phrase containing an earlier one can never be the first match.
    ordered = list(phrases)
    offending = []
    for idx, earlier in enumerate(ordered):
        for later in ordered[idx + 1 :]:
            if earlier and earlier != later and earlier in later:
                offending.append((earlier, later))
    return offending


class OperationCatalog:
    """Immutable, priority-ordered sequence of canonical operation phrases."""

    def __init__(self, phrases: Iterable[str] = DEFAULT_OPERATIONS) -> None:
        normalized = []
        for phrase in phrases:
            cleaned = normalize_text(phrase)
            if cleaned and cleaned not in normalized:
                normalized.append(cleaned)
        shadowed = find_shadowed_pairs(normalized)
        if shadowed:
            earlier, later = shadowed[0]
            raise CatalogOrderError(f"catalog phrase {later!r} must be declared before {earlier!r}")
        self._phrases: Tuple[str, ...] = tuple(normalized)

    @property
    def phrases(self) -> Tuple[str, ...]:
        return self._phrases

    def first_match(self, normalized_text: str) -> str:
        """Return the first phrase contained in the text, or "" when none is."""
        for phrase in self._phrases:
            if phrase in normalized_text:
                return phrase
        return ""

    def __iter__(self) -> Iterator[str]:
        return iter(self._phrases)

    def __len__(self) -> int:
        return len(self._phrases)

    def __repr__(self) -> str:
        return f"OperationCatalog({len(self._phrases)} phrases)"


class BrandDictionary:
    """Immutable set of manufacturer tokens."""

    def __init__(self, brands: Iterable[str] = DEFAULT_BRANDS) -> None:
        self._brands: FrozenSet[str] = frozenset(
            normalize_text(brand) for brand in brands if normalize_text(brand)
        )

    def __contains__(self, token: object) -> bool:
        return isinstance(token, str) and token in self._brands

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._brands))

    def __len__(self) -> int:
        return len(self._brands)


def load_reference_tables(path: Path) -> Tuple[OperationCatalog, BrandDictionary]:
    """Purpose: Load operation catalog and brands from a JSON file.
    Inputs/Outputs: Input is a Path to {"operations": [...], "brands": [...]}; output is
        (OperationCatalog, BrandDictionary).
    Side Effects / State: Reads the filesystem.
    Dependencies: json, OperationCatalog, BrandDictionary.
    Failure Modes: Missing file raises FileNotFoundError; malformed JSON raises
        json.JSONDecodeError; a mis-ordered catalog raises CatalogOrderError. Missing
        keys fall back to the default tables.
    If Removed: Catalog edits require a code change.
    Testing Notes: Write a partial file and verify defaults fill the gaps.
    """
    # Read overrides and fall back to defaults per key.
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"reference tables in {path} must be a JSON object")
    operations = data.get("operations") or DEFAULT_OPERATIONS
    brands = data.get("brands") or DEFAULT_BRANDS
    return OperationCatalog(operations), BrandDictionary(brands)
