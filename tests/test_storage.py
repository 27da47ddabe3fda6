import math
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest

from headroom.errors import EntryNotFound, LedgerExists, LedgerNotFound
from headroom.models import FilingProfile, FilingStatus, IncomeEntry, SourceType, YearLedger
from headroom.storage import LedgerStorage, init_storage, get_storage
from tests.conftest import ledger_with


def count_rows(storage: LedgerStorage, table: str) -> int:
    con = sqlite3.connect(storage.db_path)
    try:
        return con.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
    finally:
        con.close()


def test_create_and_get_empty_ledger(storage):
    storage.create_ledger(2024)
    ledger = storage.get_ledger(2024)
    assert ledger.year == 2024
    assert ledger.profile is None
    assert ledger.entries == []


def test_get_unknown_year(storage):
    assert storage.get_ledger(2000) is None
    with pytest.raises(LedgerNotFound):
        storage.require_ledger(2000)


def test_year_is_unique(storage):
    storage.create_ledger(2024)
    with pytest.raises(LedgerExists):
        storage.create_ledger(2024)
    assert storage.list_years() == [2024]


def test_entries_round_trip_in_insertion_order(storage):
    storage.create_ledger(2024, profile=FilingProfile(standard_deduction=14600))
    names = ["Salary", "Bonus", "Vest", "Salary"]
    for n in names:
        storage.add_entry(2024, IncomeEntry(display_name=n, amount=100))
    vest = IncomeEntry(
        source_type=SourceType.RSU_VEST,
        display_name="Vest detail",
        amount=5000,
        shares=20,
        fair_market_price=250,
        cost_basis_per_share=0,
        symbol="ACME",
    )
    storage.add_entry(2024, vest)

    ledger = storage.get_ledger(2024)
    assert [e.display_name for e in ledger.entries] == names + ["Vest detail"]
    stored = ledger.entries[-1]
    assert stored.entry_id == vest.entry_id
    assert stored.source_type == SourceType.RSU_VEST
    assert stored.symbol == "ACME"
    assert stored.shares == 20
    assert stored.ledger_year == 2024
    assert ledger.total_income == 5400


def test_add_entry_to_unknown_year(storage):
    with pytest.raises(LedgerNotFound):
        storage.add_entry(1999, IncomeEntry(amount=1))


def test_non_finite_amounts_survive_storage(storage):
    storage.insert_ledger(ledger_with(2024, 100, math.nan, math.inf))
    ledger = storage.get_ledger(2024)
    assert math.isnan(ledger.entries[1].amount)
    assert math.isinf(ledger.entries[2].amount)
    assert ledger.total_income == 100


def test_list_ledgers_most_recent_first(storage):
    for year in (2022, 2025, 2023):
        storage.create_ledger(year)
    assert [l.year for l in storage.list_ledgers()] == [2025, 2023, 2022]


def test_delete_ledger_cascades(storage):
    storage.insert_ledger(ledger_with(2024, 1, 2, 3, deduction=100))
    storage.insert_ledger(ledger_with(2025, 4, deduction=100))

    storage.delete_ledger(2024)

    assert storage.get_ledger(2024) is None
    assert count_rows(storage, "income_entries") == 1
    assert count_rows(storage, "filing_profiles") == 1
    with pytest.raises(LedgerNotFound):
        storage.delete_ledger(2024)


def test_delete_entry(storage):
    ledger = storage.insert_ledger(ledger_with(2024, 10, 20))
    storage.delete_entry(ledger.entries[0].entry_id)
    assert [e.amount for e in storage.get_ledger(2024).entries] == [20]
    with pytest.raises(EntryNotFound):
        storage.delete_entry(ledger.entries[0].entry_id)


def test_delete_all_entries_keeps_profile(storage):
    storage.insert_ledger(ledger_with(2024, 10, 20, deduction=500))
    assert storage.delete_all_entries(2024) == 2
    ledger = storage.get_ledger(2024)
    assert ledger.entries == []
    assert ledger.profile.standard_deduction == 500


def test_set_and_ensure_profile(storage):
    storage.create_ledger(2024)
    assert storage.ensure_profile(2024).profile == FilingProfile()

    updated = storage.set_profile(2024, FilingProfile(status=FilingStatus.MARRIED_JOINT, standard_deduction=29200))
    assert updated.profile.status == FilingStatus.MARRIED_JOINT
    # ensure_profile leaves an existing profile alone
    assert storage.ensure_profile(2024).profile.standard_deduction == 29200


def test_concurrent_appends_get_distinct_positions(storage):
    storage.create_ledger(2024)

    def append(worker):
        for i in range(10):
            storage.add_entry(2024, IncomeEntry(display_name=f"{worker}-{i}", amount=1))

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(append, range(8)))

    con = sqlite3.connect(storage.db_path)
    try:
        positions = [row[0] for row in con.execute("SELECT position FROM income_entries WHERE year = 2024")]
    finally:
        con.close()
    assert sorted(positions) == list(range(80))

    ledger = storage.get_ledger(2024)
    assert ledger.total_income == 80
    # each worker's entries keep their relative order
    for worker in range(8):
        mine = [e.display_name for e in ledger.entries if e.display_name.startswith(f"{worker}-")]
        assert mine == [f"{worker}-{i}" for i in range(10)]


def test_entry_positions_are_unique_per_year(storage):
    storage.insert_ledger(ledger_with(2024, 10))
    con = sqlite3.connect(storage.db_path)
    try:
        with pytest.raises(sqlite3.IntegrityError):
            con.execute(
                "INSERT INTO income_entries (entry_id, year, position, source_type, display_name, amount) "
                "VALUES ('dup', 2024, 0, 'Other', '', 1)"
            )
    finally:
        con.close()


def test_clone_ledger_is_independent(storage):
    storage.insert_ledger(ledger_with(2024, 1000, 2000, deduction=14600))
    clone = storage.clone_ledger(2024, 2025)

    source = storage.get_ledger(2024)
    stored_clone = storage.get_ledger(2025)
    assert stored_clone.total_income == source.total_income == 3000
    assert {e.entry_id for e in stored_clone.entries}.isdisjoint(e.entry_id for e in source.entries)
    assert [e.entry_id for e in stored_clone.entries] == [e.entry_id for e in clone.entries]

    storage.set_profile(2025, FilingProfile(standard_deduction=0))
    storage.delete_all_entries(2025)
    source = storage.get_ledger(2024)
    assert source.profile.standard_deduction == 14600
    assert len(source.entries) == 2


def test_clone_into_taken_year(storage):
    storage.create_ledger(2024)
    storage.create_ledger(2025)
    with pytest.raises(LedgerExists):
        storage.clone_ledger(2024, 2025)


def test_clone_latest(storage):
    assert storage.clone_latest() is None

    storage.insert_ledger(ledger_with(2023, 5))
    storage.insert_ledger(ledger_with(2024, 7))
    clone = storage.clone_latest()
    assert clone.year == 2025
    assert clone.total_income == 7

    # the next call clones 2025 into 2026
    assert storage.clone_latest().year == 2026


def test_add_current_year(storage):
    created = storage.add_current_year(today=date(2026, 3, 1))
    assert created.year == 2026
    assert created.profile == FilingProfile()

    storage.add_entry(2026, IncomeEntry(amount=10))
    again = storage.add_current_year(today=date(2026, 12, 31))
    assert len(again.entries) == 1
    assert storage.list_years() == [2026]


def test_global_instance(tmp_path):
    s = init_storage(str(tmp_path / "global.db"))
    assert get_storage() is s
