"""Ledger data model: income entries, filing profiles, year ledgers, bracket tables.

Design principles:
- A ledger exclusively owns its entries and its profile. Nothing is shared
  between ledgers, so editing one year never changes another.
- An entry points back at its ledger only through a lookup key (the year).
- `amount` is the only number that feeds the arithmetic. Share counts and
  prices on stock entries are display metadata.
- Rendering and persistence concerns stay out of this module.
"""

from __future__ import annotations

import math
import uuid
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator


# Current-law single-filer deduction, used when a profile is created on demand.
DEFAULT_STANDARD_DEDUCTION = 14600.0


def _finite_or_zero(value: float) -> float:
    return value if math.isfinite(value) else 0.0


# ============================================================================
# Closed sets
# ============================================================================

class SourceType(str, Enum):
    SALARY = "Salary"
    BONUS = "Bonus"
    RSU_VEST = "RSU Vest"
    DIVIDEND = "Dividend"
    INTEREST = "Interest"
    SELF_EMPLOYMENT = "Self-Employment"
    OTHER = "Other"


class FilingStatus(str, Enum):
    SINGLE = "Single"
    MARRIED_JOINT = "Married Filing Jointly"
    MARRIED_SEPARATE = "Married Filing Separately"
    HEAD_OF_HOUSEHOLD = "Head of Household"


# ============================================================================
# Ledger entities
# ============================================================================

class IncomeEntry(BaseModel):
    """One income-contributing record.

    Two entries with identical fields are still distinct: identity is
    `entry_id`, not the field values.
    """

    entry_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    source_type: SourceType = SourceType.SALARY
    display_name: str = ""
    amount: float = 0.0

    # Stock compensation detail (reports only)
    shares: Optional[float] = None
    fair_market_price: Optional[float] = None
    cost_basis_per_share: Optional[float] = None
    symbol: Optional[str] = Field(None, max_length=16)

    # Non-owning back-reference; set by the owning ledger
    ledger_year: Optional[int] = None


class FilingProfile(BaseModel):
    status: FilingStatus = FilingStatus.SINGLE
    standard_deduction: float = DEFAULT_STANDARD_DEDUCTION

    @field_validator("standard_deduction")
    @classmethod
    def _not_negative(cls, v: float) -> float:
        # Non-finite values are tolerated here and sanitized by the engine.
        if math.isfinite(v) and v < 0:
            raise ValueError("standard_deduction must be >= 0")
        return v


class YearLedger(BaseModel):
    """Income entries and filing profile for one tax year."""

    year: int = Field(..., ge=1900, le=2200)
    profile: Optional[FilingProfile] = None
    entries: List[IncomeEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def _claim_entries(self) -> "YearLedger":
        for entry in self.entries:
            entry.ledger_year = self.year
        return self

    # ------------------------------------------------------------------
    # Mutation (add only; removals go through the ledger store)
    # ------------------------------------------------------------------

    def add_entry(self, entry: IncomeEntry) -> IncomeEntry:
        entry.ledger_year = self.year
        self.entries.append(entry)
        return entry

    def cloned(self, for_year: int) -> "YearLedger":
        """Deep copy of this ledger for another year.

        The profile and every entry are rebuilt field by field, so the clone
        shares no child object with the source and every entry gets a new id.
        """
        profile = None
        if self.profile is not None:
            profile = FilingProfile(
                status=self.profile.status,
                standard_deduction=self.profile.standard_deduction,
            )
        entries = [
            IncomeEntry(
                source_type=e.source_type,
                display_name=e.display_name,
                amount=e.amount,
                shares=e.shares,
                fair_market_price=e.fair_market_price,
                cost_basis_per_share=e.cost_basis_per_share,
                symbol=e.symbol,
            )
            for e in self.entries
        ]
        return YearLedger(year=for_year, profile=profile, entries=entries)

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @computed_field
    @property
    def total_income(self) -> float:
        """Sum of entry amounts; NaN/Infinity never leave this property."""
        total = sum(_finite_or_zero(e.amount) for e in self.entries)
        return _finite_or_zero(total)


# ============================================================================
# Bracket tables
# ============================================================================

class TaxBracket(BaseModel):
    """A marginal band `[lower_bound, upper_bound)`; open-ended when upper is None."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    lower_bound: float = Field(..., ge=0, allow_inf_nan=False, alias="lower")
    upper_bound: Optional[float] = Field(None, allow_inf_nan=False, alias="upper")
    rate: float = Field(..., ge=0.0, le=1.0, allow_inf_nan=False)

    def contains(self, amount: float) -> bool:
        return self.lower_bound <= amount and (self.upper_bound is None or amount < self.upper_bound)


class TaxBracketTable(BaseModel):
    model_config = ConfigDict(frozen=True)

    year: int
    brackets: Tuple[TaxBracket, ...] = ()

    @property
    def lower_bounds(self) -> List[float]:
        return [b.lower_bound for b in self.brackets]


# ============================================================================
# Engine output
# ============================================================================

class HeadroomResult(BaseModel):
    """Where a ledger sits in its year's brackets. Numbers only, never formatted."""

    model_config = ConfigDict(frozen=True)

    tax_year: int
    total_income: float
    deduction: float
    taxable_income: float
    bracket_lower: float
    bracket_upper: Optional[float] = None
    bracket_rate: float
    dollars_to_next_bracket: Optional[float] = Field(
        None, description="Absent when the active bracket is the open-ended top bracket"
    )

    @property
    def is_top_bracket(self) -> bool:
        return self.bracket_upper is None


# ============================================================================
# API payloads
# ============================================================================

class LedgerCreate(BaseModel):
    """Incoming request for a new year."""

    year: int = Field(..., ge=1900, le=2200)
    profile: Optional[FilingProfile] = Field(default_factory=FilingProfile)


class EntryCreate(BaseModel):
    """Incoming income entry; identity and ownership are assigned server-side."""

    source_type: SourceType = SourceType.SALARY
    display_name: str = ""
    amount: float = 0.0
    shares: Optional[float] = None
    fair_market_price: Optional[float] = None
    cost_basis_per_share: Optional[float] = None
    symbol: Optional[str] = Field(None, max_length=16)

    def to_entry(self) -> IncomeEntry:
        return IncomeEntry(**self.model_dump())


class CloneRequest(BaseModel):
    new_year: int = Field(..., ge=1900, le=2200)


class TaxTableStatus(BaseModel):
    year: int
    status: str = Field(..., description="Found, Missing or Malformed")
    detail: Optional[str] = None
    brackets: List[TaxBracket] = Field(default_factory=list)
