"""
Ledger API endpoints.

Provides:
- GET    /ledgers                            - All ledgers, most recent year first
- POST   /ledgers                            - Create a ledger for a year
- POST   /ledgers/current                    - Current year's ledger (created if needed)
- POST   /ledgers/clone-latest               - Clone the most recent year into the next
- GET    /ledgers/{year}                     - One ledger with profile and entries
- DELETE /ledgers/{year}                     - Delete a ledger and everything it owns
- POST   /ledgers/{year}/clone               - Clone a ledger into another year
- POST   /ledgers/{year}/entries             - Append an income entry
- DELETE /ledgers/{year}/entries             - Delete all entries of a year
- DELETE /ledgers/{year}/entries/{entry_id}  - Delete one entry
- PUT    /ledgers/{year}/profile             - Set the filing profile
- POST   /ledgers/{year}/profile/default     - Create the default profile if missing
- GET    /ledgers/{year}/headroom            - Headroom computation
- GET    /ledgers/{year}/report              - PDF report download
- GET    /tax-tables/{year}                  - Tax table availability
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from .engine import compute_for_year
from .errors import (
    EntryNotFound,
    LedgerExists,
    LedgerNotFound,
    MalformedTable,
    ReportRenderError,
    TableNotFound,
)
from .models import (
    CloneRequest,
    EntryCreate,
    FilingProfile,
    HeadroomResult,
    IncomeEntry,
    LedgerCreate,
    TaxTableStatus,
    YearLedger,
)
from .report_pdf import build_report, report_filename
from .storage import LedgerStorage, get_storage
from .tax_tables import TaxTableProvider, get_tax_table_provider


ledger_router = APIRouter(prefix="/ledgers", tags=["ledgers"])
tax_table_router = APIRouter(prefix="/tax-tables", tags=["tax-tables"])

logger = logging.getLogger(__name__)

TABLES_UNAVAILABLE = "Tax tables are unavailable for this year."


def _require(storage: LedgerStorage, year: int) -> YearLedger:
    try:
        return storage.require_ledger(year)
    except LedgerNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


# ============================================================================
# Ledgers
# ============================================================================

@ledger_router.get("", response_model=List[YearLedger])
def list_ledgers(storage: LedgerStorage = Depends(get_storage)) -> List[YearLedger]:
    return storage.list_ledgers()


@ledger_router.post("", response_model=YearLedger, status_code=201)
def create_ledger(payload: LedgerCreate, storage: LedgerStorage = Depends(get_storage)) -> YearLedger:
    try:
        return storage.create_ledger(payload.year, profile=payload.profile)
    except LedgerExists as e:
        raise HTTPException(status_code=409, detail=str(e))


@ledger_router.post("/current", response_model=YearLedger)
def add_current_year(storage: LedgerStorage = Depends(get_storage)) -> YearLedger:
    return storage.add_current_year()


@ledger_router.post("/clone-latest", response_model=YearLedger)
def clone_latest(storage: LedgerStorage = Depends(get_storage)) -> YearLedger:
    ledger = storage.clone_latest()
    if ledger is None:
        raise HTTPException(status_code=404, detail="No ledger to clone.")
    return ledger


@ledger_router.get("/{year}", response_model=YearLedger)
def get_ledger(year: int, storage: LedgerStorage = Depends(get_storage)) -> YearLedger:
    return _require(storage, year)


@ledger_router.delete("/{year}", status_code=204)
def delete_ledger(year: int, storage: LedgerStorage = Depends(get_storage)) -> Response:
    try:
        storage.delete_ledger(year)
    except LedgerNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=204)


@ledger_router.post("/{year}/clone", response_model=YearLedger, status_code=201)
def clone_ledger(
    year: int,
    payload: CloneRequest,
    storage: LedgerStorage = Depends(get_storage),
) -> YearLedger:
    """
    Copy a ledger into another year.

    Raises:
        404: If the source year does not exist
        409: If the target year already has a ledger
    """
    try:
        return storage.clone_ledger(year, payload.new_year)
    except LedgerNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except LedgerExists as e:
        raise HTTPException(status_code=409, detail=str(e))


# ============================================================================
# Entries & profile
# ============================================================================

@ledger_router.post("/{year}/entries", response_model=IncomeEntry, status_code=201)
def add_entry(year: int, payload: EntryCreate, storage: LedgerStorage = Depends(get_storage)) -> IncomeEntry:
    try:
        return storage.add_entry(year, payload.to_entry())
    except LedgerNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@ledger_router.delete("/{year}/entries", response_model=dict)
def delete_all_entries(year: int, storage: LedgerStorage = Depends(get_storage)) -> dict:
    try:
        deleted = storage.delete_all_entries(year)
    except LedgerNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"year": year, "deleted": deleted}


@ledger_router.delete("/{year}/entries/{entry_id}", status_code=204)
def delete_entry(year: int, entry_id: str, storage: LedgerStorage = Depends(get_storage)) -> Response:
    ledger = _require(storage, year)
    if not any(e.entry_id == entry_id for e in ledger.entries):
        raise HTTPException(status_code=404, detail=str(EntryNotFound(entry_id)))
    storage.delete_entry(entry_id)
    return Response(status_code=204)


@ledger_router.put("/{year}/profile", response_model=YearLedger)
def set_profile(year: int, profile: FilingProfile, storage: LedgerStorage = Depends(get_storage)) -> YearLedger:
    try:
        return storage.set_profile(year, profile)
    except LedgerNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@ledger_router.post("/{year}/profile/default", response_model=YearLedger)
def ensure_profile(year: int, storage: LedgerStorage = Depends(get_storage)) -> YearLedger:
    """Give the ledger the default filing profile if it has none yet."""
    try:
        return storage.ensure_profile(year)
    except LedgerNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


# ============================================================================
# Headroom & report
# ============================================================================

@ledger_router.get("/{year}/headroom", response_model=HeadroomResult)
def get_headroom(
    year: int,
    storage: LedgerStorage = Depends(get_storage),
    provider: TaxTableProvider = Depends(get_tax_table_provider),
) -> HeadroomResult:
    """
    Compute where the ledger sits in its year's brackets.

    Raises:
        404: If the ledger or the year's tax table is missing
        500: If the tax table is malformed
    """
    ledger = _require(storage, year)
    try:
        return compute_for_year(ledger, provider)
    except TableNotFound:
        raise HTTPException(status_code=404, detail=TABLES_UNAVAILABLE)
    except MalformedTable as e:
        logger.error("Refusing to compute headroom for %s: %s", year, e.reason)
        raise HTTPException(status_code=500, detail=str(e))


@ledger_router.get("/{year}/report")
def get_report(
    year: int,
    storage: LedgerStorage = Depends(get_storage),
    provider: TaxTableProvider = Depends(get_tax_table_provider),
) -> Response:
    ledger = _require(storage, year)
    try:
        pdf = build_report(ledger, provider)
    except ReportRenderError:
        raise HTTPException(status_code=500, detail="Could not render PDF.")
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{report_filename(year)}"'},
    )


# ============================================================================
# Tax tables
# ============================================================================

@tax_table_router.get("/{year}", response_model=TaxTableStatus)
def get_tax_table_status(
    year: int,
    provider: TaxTableProvider = Depends(get_tax_table_provider),
) -> TaxTableStatus:
    try:
        table = provider.resolve(year)
    except TableNotFound:
        return TaxTableStatus(year=year, status="Missing")
    except MalformedTable as e:
        return TaxTableStatus(year=year, status="Malformed", detail=e.reason)
    return TaxTableStatus(year=year, status="Found", brackets=list(table.brackets))


def setup_ledger_routes(app):
    """Add ledger and tax-table routes to a FastAPI app."""
    app.include_router(ledger_router)
    app.include_router(tax_table_router)
