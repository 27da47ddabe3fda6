"""
Ledger store using SQLite.

This module provides:
1. Database initialization and management
2. CRUD operations for ledgers, profiles and income entries
3. Year uniqueness (one ledger per tax year)
4. Cascading deletes (a ledger takes its profile and entries with it)
5. Year-to-year cloning
"""

import logging
import math
import os
import sqlite3
from datetime import date
from pathlib import Path
from typing import List, Optional

from .errors import EntryNotFound, LedgerExists, LedgerNotFound
from .models import FilingProfile, FilingStatus, IncomeEntry, SourceType, YearLedger

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration
# ============================================================================

DATA_DIR = Path(__file__).resolve().parents[1] / "data"
DB_PATH = os.environ.get("HEADROOM_DB", str(DATA_DIR / "headroom.db"))


def ensure_parent_dir(db_path: str) -> None:
    """Ensure the directory holding the database exists."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)


# ============================================================================
# Database Management
# ============================================================================

class LedgerStorage:
    """
    SQLite-based storage for year ledgers.

    The ledger row is the owner: profile and entry rows reference it with
    ON DELETE CASCADE, so removing a year removes everything it owns.
    Entry order is kept in an explicit `position` column.
    """

    def __init__(self, db_path: str = DB_PATH):
        ensure_parent_dir(db_path)
        self.db_path = db_path
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Create a connection to the database."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _init_db(self):
        """Initialize the database schema."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS ledgers (
                    year INTEGER PRIMARY KEY,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS filing_profiles (
                    year INTEGER PRIMARY KEY
                        REFERENCES ledgers(year) ON DELETE CASCADE,
                    status TEXT NOT NULL,
                    standard_deduction REAL
                )
            """)

            # amount is nullable: SQLite stores NaN as NULL
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS income_entries (
                    entry_id TEXT PRIMARY KEY,
                    year INTEGER NOT NULL
                        REFERENCES ledgers(year) ON DELETE CASCADE,
                    position INTEGER NOT NULL,
                    source_type TEXT NOT NULL,
                    display_name TEXT NOT NULL,
                    amount REAL,
                    shares REAL,
                    fair_market_price REAL,
                    cost_basis_per_share REAL,
                    symbol TEXT
                )
            """)

            cursor.execute("DROP INDEX IF EXISTS idx_entries_year_position")
            cursor.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS uq_entries_year_position
                ON income_entries(year, position)
            """)

            conn.commit()

    # ========================================================================
    # Ledgers
    # ========================================================================

    def create_ledger(self, year: int, profile: Optional[FilingProfile] = None) -> YearLedger:
        """Create an empty ledger. Raises LedgerExists if the year is taken."""
        ledger = YearLedger(year=year, profile=profile)
        self._insert_ledger(ledger)
        return ledger

    def insert_ledger(self, ledger: YearLedger) -> YearLedger:
        """Store a fully built ledger (e.g. a clone). Raises LedgerExists if the year is taken."""
        self._insert_ledger(ledger)
        return ledger

    def _insert_ledger(self, ledger: YearLedger) -> None:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("INSERT INTO ledgers (year) VALUES (?)", (ledger.year,))
            except sqlite3.IntegrityError as e:
                raise LedgerExists(ledger.year) from e
            self._write_children(cursor, ledger)
            conn.commit()
        logger.info("Created ledger %s with %d entries", ledger.year, len(ledger.entries))

    def get_ledger(self, year: int) -> Optional[YearLedger]:
        """Retrieve a ledger with its profile and entries, in entry order."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT year FROM ledgers WHERE year = ?", (year,))
            if cursor.fetchone() is None:
                return None
            cursor.execute("SELECT * FROM filing_profiles WHERE year = ?", (year,))
            profile_row = cursor.fetchone()
            cursor.execute("""
                SELECT * FROM income_entries
                WHERE year = ?
                ORDER BY position ASC
            """, (year,))
            entry_rows = cursor.fetchall()

        return YearLedger(
            year=year,
            profile=self._row_to_profile(profile_row) if profile_row else None,
            entries=[self._row_to_entry(row) for row in entry_rows],
        )

    def require_ledger(self, year: int) -> YearLedger:
        ledger = self.get_ledger(year)
        if ledger is None:
            raise LedgerNotFound(year)
        return ledger

    def list_years(self) -> List[int]:
        """All ledger years, most recent first."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT year FROM ledgers ORDER BY year DESC")
            rows = cursor.fetchall()
        return [row["year"] for row in rows]

    def list_ledgers(self) -> List[YearLedger]:
        """All ledgers, most recent year first."""
        return [self.require_ledger(year) for year in self.list_years()]

    def delete_ledger(self, year: int) -> None:
        """Delete a ledger; its profile and entries go with it."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM ledgers WHERE year = ?", (year,))
            deleted = cursor.rowcount
            conn.commit()
        if not deleted:
            raise LedgerNotFound(year)
        logger.info("Deleted ledger %s", year)

    # ========================================================================
    # Entries
    # ========================================================================

    def add_entry(self, year: int, entry: IncomeEntry) -> IncomeEntry:
        """Append an entry to the end of a ledger."""
        entry.ledger_year = year
        with self._get_connection() as conn:
            # take the write lock before reading MAX(position)
            conn.execute("BEGIN IMMEDIATE")
            cursor = conn.cursor()
            cursor.execute("SELECT year FROM ledgers WHERE year = ?", (year,))
            if cursor.fetchone() is None:
                raise LedgerNotFound(year)
            cursor.execute(
                "SELECT COALESCE(MAX(position), -1) + 1 AS next_pos FROM income_entries WHERE year = ?",
                (year,),
            )
            position = cursor.fetchone()["next_pos"]
            self._insert_entry(cursor, year, position, entry)
            conn.commit()
        return entry

    def delete_entry(self, entry_id: str) -> None:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM income_entries WHERE entry_id = ?", (entry_id,))
            deleted = cursor.rowcount
            conn.commit()
        if not deleted:
            raise EntryNotFound(entry_id)

    def delete_all_entries(self, year: int) -> int:
        """Remove every entry of a ledger, keeping the ledger and its profile."""
        self.require_ledger(year)
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM income_entries WHERE year = ?", (year,))
            deleted = cursor.rowcount
            conn.commit()
        logger.info("Deleted %d entries from ledger %s", deleted, year)
        return deleted

    # ========================================================================
    # Profiles
    # ========================================================================

    def set_profile(self, year: int, profile: FilingProfile) -> YearLedger:
        self.require_ledger(year)
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT OR REPLACE INTO filing_profiles (year, status, standard_deduction)
                VALUES (?, ?, ?)
            """, (year, profile.status.value, profile.standard_deduction))
            conn.commit()
        return self.require_ledger(year)

    def ensure_profile(self, year: int) -> YearLedger:
        """Give the ledger a default profile if it has none."""
        ledger = self.require_ledger(year)
        if ledger.profile is None:
            return self.set_profile(year, FilingProfile())
        return ledger

    # ========================================================================
    # Cloning
    # ========================================================================

    def clone_ledger(self, source_year: int, new_year: int) -> YearLedger:
        """Copy a ledger into a new year. Raises LedgerExists if `new_year` is taken."""
        source = self.require_ledger(source_year)
        return self.insert_ledger(source.cloned(for_year=new_year))

    def clone_latest(self) -> Optional[YearLedger]:
        """
        Clone the most recent ledger into the following year.

        Returns None when there are no ledgers at all.
        """
        years = self.list_years()
        if not years:
            return None
        return self.clone_ledger(years[0], years[0] + 1)

    def add_current_year(self, today: Optional[date] = None) -> YearLedger:
        """Return this year's ledger, creating it with a default profile when absent."""
        year = (today or date.today()).year
        existing = self.get_ledger(year)
        if existing is not None:
            return existing
        return self.create_ledger(year, profile=FilingProfile())

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def _write_children(self, cursor: sqlite3.Cursor, ledger: YearLedger) -> None:
        if ledger.profile is not None:
            cursor.execute("""
                INSERT INTO filing_profiles (year, status, standard_deduction)
                VALUES (?, ?, ?)
            """, (ledger.year, ledger.profile.status.value, ledger.profile.standard_deduction))
        for position, entry in enumerate(ledger.entries):
            self._insert_entry(cursor, ledger.year, position, entry)

    @staticmethod
    def _insert_entry(cursor: sqlite3.Cursor, year: int, position: int, entry: IncomeEntry) -> None:
        cursor.execute("""
            INSERT INTO income_entries (
                entry_id,
                year,
                position,
                source_type,
                display_name,
                amount,
                shares,
                fair_market_price,
                cost_basis_per_share,
                symbol
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            entry.entry_id,
            year,
            position,
            entry.source_type.value,
            entry.display_name,
            entry.amount,
            entry.shares,
            entry.fair_market_price,
            entry.cost_basis_per_share,
            entry.symbol,
        ))

    @staticmethod
    def _row_to_profile(row: sqlite3.Row) -> FilingProfile:
        deduction = row["standard_deduction"]
        return FilingProfile(
            status=FilingStatus(row["status"]),
            standard_deduction=math.nan if deduction is None else deduction,
        )

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> IncomeEntry:
        amount = row["amount"]
        return IncomeEntry(
            entry_id=row["entry_id"],
            source_type=SourceType(row["source_type"]),
            display_name=row["display_name"],
            amount=math.nan if amount is None else amount,
            shares=row["shares"],
            fair_market_price=row["fair_market_price"],
            cost_basis_per_share=row["cost_basis_per_share"],
            symbol=row["symbol"],
            ledger_year=row["year"],
        )


# ============================================================================
# Global Storage Instance
# ============================================================================

_storage_instance: Optional[LedgerStorage] = None


def get_storage() -> LedgerStorage:
    """Get the global storage instance."""
    global _storage_instance
    if _storage_instance is None:
        _storage_instance = LedgerStorage()
    return _storage_instance


def init_storage(db_path: str = DB_PATH) -> LedgerStorage:
    """Initialize or reset the storage with a specific DB path."""
    global _storage_instance
    _storage_instance = LedgerStorage(db_path)
    return _storage_instance
