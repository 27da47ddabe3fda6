"""Headroom engine: where a ledger's taxable income sits in its year's brackets.

This is *not tax advice*. It performs estimate-only arithmetic against the
supplied bracket table.

Characteristics:
- Pure and deterministic: inputs are never mutated.
- Brackets are half-open `[lower, upper)`; income exactly on a boundary
  belongs to the higher bracket.
- Tables are checked before use; a malformed table fails rather than
  producing a misleading bracket.
"""

from __future__ import annotations

import logging
import math
from bisect import bisect_right
from typing import Optional, Protocol

from .errors import MalformedTable, TableNotFound
from .models import HeadroomResult, TaxBracket, TaxBracketTable, YearLedger

logger = logging.getLogger(__name__)


class TableSource(Protocol):
    def resolve(self, year: int) -> TaxBracketTable: ...


def validate_table(table: TaxBracketTable) -> None:
    """Raise MalformedTable unless brackets are sorted, contiguous and open at the top.

    Rates and non-negative bounds are already enforced by the bracket model.
    """
    brackets = table.brackets
    if not brackets:
        raise TableNotFound(table.year)
    if brackets[0].lower_bound != 0:
        raise MalformedTable(table.year, f"first bracket starts at {brackets[0].lower_bound}, not 0")

    for i, (cur, nxt) in enumerate(zip(brackets, brackets[1:])):
        if cur.upper_bound is None:
            raise MalformedTable(table.year, f"bracket {i} is open-ended but is not the last bracket")
        if cur.upper_bound <= cur.lower_bound:
            raise MalformedTable(table.year, f"bracket {i} has upper bound <= lower bound")
        if nxt.lower_bound != cur.upper_bound:
            raise MalformedTable(
                table.year,
                f"bracket {i + 1} starts at {nxt.lower_bound}, expected {cur.upper_bound}",
            )

    if brackets[-1].upper_bound is not None:
        raise MalformedTable(table.year, "top bracket must be open-ended")


def locate_bracket(table: TaxBracketTable, taxable_income: float) -> TaxBracket:
    """Return the unique bracket with lower <= income < upper (or no upper)."""
    idx = bisect_right(table.lower_bounds, taxable_income) - 1
    if idx < 0:
        # unreachable for validated tables and non-negative income
        raise MalformedTable(table.year, f"no bracket covers {taxable_income}")
    return table.brackets[idx]


def _deduction(ledger: YearLedger) -> float:
    if ledger.profile is None:
        return 0.0
    value = ledger.profile.standard_deduction
    if not math.isfinite(value):
        logger.warning("Non-finite standard deduction for %s treated as 0", ledger.year)
        return 0.0
    return value


def compute(ledger: YearLedger, table: Optional[TaxBracketTable]) -> HeadroomResult:
    """Compute taxable income, the active bracket and the headroom to the next one.

    Raises:
        TableNotFound: `table` is None or has no brackets.
        MalformedTable: `table` breaks the sort/contiguity rules.
    """
    if table is None or not table.brackets:
        raise TableNotFound(ledger.year)
    validate_table(table)

    total = ledger.total_income
    deduction = _deduction(ledger)
    taxable = max(0.0, total - deduction)

    bracket = locate_bracket(table, taxable)
    to_next = None
    if bracket.upper_bound is not None:
        to_next = bracket.upper_bound - taxable

    logger.debug(
        "Headroom %s: taxable=%.2f rate=%.3f to_next=%s",
        ledger.year, taxable, bracket.rate, to_next,
    )
    return HeadroomResult(
        tax_year=ledger.year,
        total_income=total,
        deduction=deduction,
        taxable_income=taxable,
        bracket_lower=bracket.lower_bound,
        bracket_upper=bracket.upper_bound,
        bracket_rate=bracket.rate,
        dollars_to_next_bracket=to_next,
    )


def compute_for_year(ledger: YearLedger, provider: TableSource) -> HeadroomResult:
    """Resolve the ledger's table through `provider`, then compute. Failures propagate."""
    table = provider.resolve(ledger.year)
    return compute(ledger, table)
