import math

import pytest
from pydantic import ValidationError

from headroom.models import (
    DEFAULT_STANDARD_DEDUCTION,
    FilingProfile,
    FilingStatus,
    IncomeEntry,
    SourceType,
    YearLedger,
)
from tests.conftest import ledger_with

ENTRY_FIELDS = {
    "source_type",
    "display_name",
    "amount",
    "shares",
    "fair_market_price",
    "cost_basis_per_share",
    "symbol",
}


def rsu_vest() -> IncomeEntry:
    return IncomeEntry(
        source_type=SourceType.RSU_VEST,
        display_name="Q1 vest",
        amount=12500.0,
        shares=50,
        fair_market_price=250.0,
        cost_basis_per_share=0.0,
        symbol="ACME",
    )


def test_default_profile_uses_current_law_deduction():
    profile = FilingProfile()
    assert profile.status == FilingStatus.SINGLE
    assert profile.standard_deduction == DEFAULT_STANDARD_DEDUCTION == 14600


def test_negative_deduction_rejected():
    with pytest.raises(ValidationError):
        FilingProfile(standard_deduction=-1)


def test_identical_entries_are_distinct():
    a = IncomeEntry(display_name="Paycheck", amount=1000)
    b = IncomeEntry(display_name="Paycheck", amount=1000)
    assert a.entry_id != b.entry_id
    assert a != b


def test_add_entry_sets_back_reference_and_keeps_order():
    ledger = YearLedger(year=2024)
    first = ledger.add_entry(IncomeEntry(display_name="a", amount=1))
    second = ledger.add_entry(IncomeEntry(display_name="a", amount=1))
    assert [e.entry_id for e in ledger.entries] == [first.entry_id, second.entry_id]
    assert first.ledger_year == second.ledger_year == 2024


def test_preseeded_entries_are_claimed():
    ledger = YearLedger(year=2023, entries=[IncomeEntry(amount=5)])
    assert ledger.entries[0].ledger_year == 2023


def test_total_income_sums_amounts():
    assert ledger_with(2024, 1000, 2500.5, -500).total_income == pytest.approx(3000.5)


def test_total_income_of_empty_ledger_is_zero():
    assert YearLedger(year=2024).total_income == 0


@pytest.mark.parametrize("bad", [math.inf, -math.inf, math.nan])
def test_total_income_ignores_non_finite_amounts(bad):
    ledger = ledger_with(2024, 1000, bad, 250)
    assert ledger.total_income == 1250


def test_total_income_clamps_overflowing_sum():
    ledger = ledger_with(2024, 1e308, 1e308)
    assert ledger.total_income == 0


def test_amount_is_authoritative_over_share_metadata():
    ledger = YearLedger(year=2024)
    ledger.add_entry(rsu_vest().model_copy(update={"amount": 100.0}))
    assert ledger.total_income == 100.0


def test_cloned_copies_fields_with_new_identity():
    source = YearLedger(
        year=2024,
        profile=FilingProfile(status=FilingStatus.HEAD_OF_HOUSEHOLD, standard_deduction=21900),
    )
    source.add_entry(rsu_vest())
    source.add_entry(IncomeEntry(display_name="Salary", amount=90000))

    clone = source.cloned(for_year=2025)

    assert clone.year == 2025
    assert len(clone.entries) == len(source.entries)
    assert clone.profile is not source.profile
    assert clone.profile.model_dump() == source.profile.model_dump()
    for copy, original in zip(clone.entries, source.entries):
        assert copy is not original
        assert copy.entry_id != original.entry_id
        assert copy.model_dump(include=ENTRY_FIELDS) == original.model_dump(include=ENTRY_FIELDS)
        assert copy.ledger_year == 2025
        assert original.ledger_year == 2024
    assert clone.entries[0].symbol == "ACME"


def test_mutating_clone_leaves_source_untouched():
    source = ledger_with(2024, 1000, deduction=5000)
    clone = source.cloned(for_year=2025)

    clone.profile.standard_deduction = 0
    clone.profile.status = FilingStatus.MARRIED_JOINT
    clone.entries[0].amount = 99999
    clone.add_entry(IncomeEntry(amount=1))

    assert source.profile.standard_deduction == 5000
    assert source.profile.status == FilingStatus.SINGLE
    assert source.entries[0].amount == 1000
    assert len(source.entries) == 1


def test_clone_without_profile_has_no_profile():
    assert ledger_with(2024, 10).cloned(for_year=2025).profile is None
