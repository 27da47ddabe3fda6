"""Tax table provider: resolves a year to its bracket table.

One JSON file per year, named `TaxBrackets_<YYYY>.json`, in the table
directory (package data by default, `HEADROOM_TAX_TABLE_DIR` to override):

    {"year": 2025, "brackets": [{"lower": 0, "upper": 11925, "rate": 0.10}, ...]}

Resolved tables are immutable and cached per year for the life of the provider.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from .engine import validate_table
from .errors import MalformedTable, TableNotFound, TableUnavailable
from .models import TaxBracketTable

logger = logging.getLogger(__name__)

TAX_TABLE_DIR = os.environ.get(
    "HEADROOM_TAX_TABLE_DIR",
    str(Path(__file__).resolve().parent / "data"),
)


def table_filename(year: int) -> str:
    return f"TaxBrackets_{year}.json"


class TaxTableProvider:
    """File-backed, per-year cached source of bracket tables."""

    def __init__(self, table_dir: str = TAX_TABLE_DIR):
        self.table_dir = Path(table_dir)
        self._cache: Dict[int, TaxBracketTable] = {}

    def register(self, table: TaxBracketTable) -> None:
        """Make `table` resolvable without a file. Replaces any cached table for that year."""
        validate_table(table)
        self._cache[table.year] = table

    def resolve(self, year: int) -> TaxBracketTable:
        """
        Return the table for `year`.

        Raises:
            TableNotFound: no file and nothing registered for `year`.
            MalformedTable: the file exists but cannot be used.
        """
        cached = self._cache.get(year)
        if cached is not None:
            return cached
        table = self._load(year)
        self._cache[year] = table
        return table

    def has_table(self, year: int) -> bool:
        try:
            self.resolve(year)
        except TableUnavailable:
            return False
        return True

    def available_years(self) -> List[int]:
        years = set(self._cache)
        if self.table_dir.is_dir():
            for path in self.table_dir.glob("TaxBrackets_*.json"):
                suffix = path.stem.split("_", 1)[1]
                if suffix.isdigit():
                    years.add(int(suffix))
        return sorted(years)

    def _load(self, year: int) -> TaxBracketTable:
        path = self.table_dir / table_filename(year)
        if not path.is_file():
            logger.warning("No tax table for %s at %s", year, path)
            raise TableNotFound(year)

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise MalformedTable(year, f"cannot read {path.name}: {e}") from e

        if not isinstance(payload, dict):
            raise MalformedTable(year, "expected a JSON object")
        if payload.get("year", year) != year:
            raise MalformedTable(year, f"{path.name} declares year {payload.get('year')}")

        try:
            table = TaxBracketTable(year=year, brackets=payload.get("brackets") or [])
        except ValidationError as e:
            raise MalformedTable(year, str(e)) from e

        validate_table(table)
        logger.info("Loaded %d tax brackets for %s from %s", len(table.brackets), year, path)
        return table


# ============================================================================
# Global Provider Instance
# ============================================================================

_provider_instance: Optional[TaxTableProvider] = None


def get_tax_table_provider() -> TaxTableProvider:
    """Get the global provider instance."""
    global _provider_instance
    if _provider_instance is None:
        _provider_instance = TaxTableProvider()
    return _provider_instance


def init_tax_table_provider(table_dir: str = TAX_TABLE_DIR) -> TaxTableProvider:
    """Initialize or reset the provider with a specific table directory."""
    global _provider_instance
    _provider_instance = TaxTableProvider(table_dir)
    return _provider_instance
