import os
import re
import tempfile
import unicodedata
from pathlib import Path
from typing import List, Optional

TOKEN_EDGE_CHARS = ".,;:!?\"'()[]"
AMOUNT_RE = re.compile(r"^(?:r\$)?([+-]?)(\d[\d.,]*)$")


def normalize_text(text: Optional[str]) -> str:
    """Purpose: Normalize free-form text for stable matching in the pipeline.
    Inputs/Outputs: Input is a raw string (or None); output is a lowercase string with
        diacritics removed and whitespace collapsed.
    Side Effects / State: None; pure function.
    Dependencies: Uses unicodedata and regex; called by extraction, matching and finance.
    Failure Modes: Returns an empty string when input is falsy. Punctuation is kept so
        money literals such as "25,90" survive normalization.
    If Removed: Accented phrases ("óleo", "lubrificação") stop matching the catalog.
    Testing Notes: normalize_text("Óleo") == "oleo" and the function is idempotent.
    """
    # Lowercase and strip combining marks for accent-insensitive comparisons.
    if not text:
        return ""
    lowered = str(text).lower()
    decomposed = unicodedata.normalize("NFD", lowered)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return re.sub(r"\s+", " ", stripped).strip()


def tokenize(text: str) -> List[str]:
    """Purpose: Split normalized text into whitespace-delimited tokens.
    Inputs/Outputs: Input is normalized text; output is a list of non-empty tokens with
        surrounding punctuation trimmed ("toyota." -> "toyota").
    Side Effects / State: None; pure function.
    Dependencies: Used by the intent extractor and finance parser.
    Failure Modes: Empty input yields an empty list.
    If Removed: Brand lookup and the last-two-tokens fallback cannot run.
    Testing Notes: Verify punctuation-only tokens are dropped.
    """
    # Trim edge punctuation but keep inner characters like "rre-160" or "25,90".
    tokens = []
    for raw in text.split():
        token = raw.strip(TOKEN_EDGE_CHARS)
        if token:
            tokens.append(token)
    return tokens


def parse_amount_cents(raw: str) -> Optional[int]:
    """Purpose: Parse a Brazilian money literal into integer cents.
    Inputs/Outputs: Input is a token such as "25,90", "1.500,00", "r$40" or "12.5";
        output is cents as int, or None when the token is not an amount.
    Side Effects / State: None; pure function.
    Dependencies: AMOUNT_RE; used by finance parsing.
    Failure Modes: Returns None for malformed literals (e.g. "1,2,3").
    If Removed: Expense/income logging cannot read values.
    Testing Notes: "1.500" is one thousand five hundred; "12.5" is twelve and a half.
    """
    # Comma is the decimal separator; a dot followed by exactly three digits groups thousands.
    if not raw:
        return None
    match = AMOUNT_RE.match(raw.strip().lower().replace(" ", ""))
    if not match:
        return None
    sign, body = match.group(1), match.group(2).rstrip(".,")
    if not body:
        return None
    if "," in body:
        integer_part, _, decimal_part = body.rpartition(",")
        if "," in integer_part:
            return None
        integer_part = integer_part.replace(".", "")
    elif "." in body:
        integer_part, _, decimal_part = body.rpartition(".")
        if len(decimal_part) == 3:
            integer_part = body.replace(".", "")
            decimal_part = ""
        elif "." in integer_part:
            return None
    else:
        integer_part, decimal_part = body, ""
    if not integer_part.isdigit() or len(decimal_part) > 2:
        return None
    if decimal_part and not decimal_part.isdigit():
        return None
    cents = int(integer_part) * 100 + int(decimal_part.ljust(2, "0") or "0")
    return -cents if sign == "-" else cents


def format_brl(cents: int) -> str:
    """Format integer cents as a Brazilian real string ("R$ 1.500,00")."""
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(int(cents)), 100)
    grouped = f"{whole:,}".replace(",", ".")
    return f"{sign}R$ {grouped},{frac:02d}"


def atomic_write_text(path: Path, text: str) -> None:
    """Purpose: Replace a file's content without exposing a partially written file.
    Inputs/Outputs: Inputs are the target path and its new text; no return value.
    Side Effects / State: Creates the parent directory, writes a uniquely named temp
        file next to the target and renames it over the target.
    Dependencies: tempfile.NamedTemporaryFile and os.replace; used by the JSON stores.
    Failure Modes: IO errors propagate; the temp file is removed when writing fails.
    If Removed: A crash mid-write could leave a truncated store file.
    Testing Notes: Concurrent writers must each finish with a complete document.
    """
    # One temp file per write, so concurrent writers never rename each other's file.
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
    ) as handle:
        tmp_name = handle.name
        try:
            handle.write(text)
        except BaseException:
            handle.close()
            os.unlink(tmp_name)
            raise
    os.replace(tmp_name, path)
