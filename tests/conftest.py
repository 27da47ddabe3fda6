import pytest
from fastapi.testclient import TestClient

from headroom.main import app
from headroom.models import FilingProfile, IncomeEntry, TaxBracket, TaxBracketTable, YearLedger
from headroom.storage import LedgerStorage, get_storage
from headroom.tax_tables import TaxTableProvider, get_tax_table_provider


def three_bracket_table(year: int = 2024) -> TaxBracketTable:
    return TaxBracketTable(
        year=year,
        brackets=(
            TaxBracket(lower_bound=0, upper_bound=10000, rate=0.10),
            TaxBracket(lower_bound=10000, upper_bound=40000, rate=0.12),
            TaxBracket(lower_bound=40000, upper_bound=None, rate=0.22),
        ),
    )


def ledger_with(year: int, *amounts: float, deduction=None) -> YearLedger:
    profile = FilingProfile(standard_deduction=deduction) if deduction is not None else None
    ledger = YearLedger(year=year, profile=profile)
    for i, amount in enumerate(amounts):
        ledger.add_entry(IncomeEntry(display_name=f"entry {i}", amount=amount))
    return ledger


@pytest.fixture
def table() -> TaxBracketTable:
    return three_bracket_table()


@pytest.fixture
def provider(tmp_path, table) -> TaxTableProvider:
    p = TaxTableProvider(str(tmp_path / "tables"))
    p.register(table)
    return p


@pytest.fixture
def storage(tmp_path) -> LedgerStorage:
    return LedgerStorage(str(tmp_path / "headroom.db"))


@pytest.fixture
def client(storage, provider):
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_tax_table_provider] = lambda: provider
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
