from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

BASE_DIR = Path(__file__).resolve().parent
DEFAULT_TIMEZONE = "America/Sao_Paulo"


@dataclass(frozen=True)
class Settings:
    """Configuration container for storage paths, reference tables, reply limits and timezone."""
    data_dir: Path
    catalog_path: Optional[Path]
    max_results: int
    max_media: int
    payment_link_base_url: str
    timezone: str = DEFAULT_TIMEZONE

    @property
    def procedures_path(self) -> Path:
        return self.data_dir / "procedures.json"

    @property
    def ledger_path(self) -> Path:
        return self.data_dir / "ledger.json"

    @property
    def missed_queries_path(self) -> Path:
        return self.data_dir / "missed_queries.json"

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables.
    Dependencies: Uses os.getenv and BASE_DIR for default paths, zoneinfo for TIMEZONE.
    Failure Modes: Invalid MAX_RESULTS/MAX_MEDIA values or an unknown TIMEZONE raise
        ValueError.
    If Removed: App cannot locate its data or reference tables and fails at startup.
    Testing Notes: Verify defaults and overrides via environment variables.
    """
    # Resolve data/catalog paths, then build Settings.
    data_dir = os.getenv("DATA_DIR")
    catalog_path = os.getenv("CATALOG_PATH")
    max_results = int(os.getenv("MAX_RESULTS", "5"))
    max_media = int(os.getenv("MAX_MEDIA", "5"))
    if max_results <= 0 or max_media < 0:
        raise ValueError("MAX_RESULTS must be positive and MAX_MEDIA non-negative")
    timezone = os.getenv("TIMEZONE", DEFAULT_TIMEZONE)
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"unknown TIMEZONE {timezone!r}") from exc

    return Settings(
        data_dir=Path(data_dir) if data_dir else (BASE_DIR / "data").resolve(),
        catalog_path=Path(catalog_path) if catalog_path else None,
        max_results=max_results,
        max_media=max_media,
        payment_link_base_url=os.getenv("PAYMENT_LINK_BASE_URL", "https://pagamentos.example.com/l"),
        timezone=timezone,
    )
