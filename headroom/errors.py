"""Error taxonomy for the headroom engine and its collaborators."""

from typing import Optional


class HeadroomError(Exception):
    """Base class for every error raised by this package."""


# ============================================================================
# Tax table failures
# ============================================================================

class TableUnavailable(HeadroomError):
    """No usable bracket table for a year; no result can be produced."""

    def __init__(self, year: Optional[int], message: Optional[str] = None):
        self.year = year
        super().__init__(message or f"Tax tables are unavailable for {year}.")


class TableNotFound(TableUnavailable):
    """No table is registered or loadable for the requested year."""


class MalformedTable(TableUnavailable):
    """A table breaks the sort/contiguity/rate rules. Configuration defect."""

    def __init__(self, year: Optional[int], reason: str):
        self.reason = reason
        super().__init__(year, f"Malformed tax table for {year}: {reason}")


# ============================================================================
# Ledger store failures
# ============================================================================

class LedgerNotFound(HeadroomError):
    def __init__(self, year: int):
        self.year = year
        super().__init__(f"No ledger for year {year}.")


class LedgerExists(HeadroomError):
    def __init__(self, year: int):
        self.year = year
        super().__init__(f"A ledger for year {year} already exists.")


class EntryNotFound(HeadroomError):
    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"No income entry with id {entry_id}.")


# ============================================================================
# Report failures
# ============================================================================

class ReportRenderError(HeadroomError):
    """PDF rendering failed."""
