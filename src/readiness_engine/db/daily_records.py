"""Daily record stores.

The engine reads and writes exactly one DailyRecord per calendar day:
"fetch record for date" and "upsert record for date". Two backends:
- InMemoryDailyRecordStore for tests and one-shot CLI runs
- SqliteDailyRecordStore, which keeps each record as a JSON document
"""

import sqlite3
from contextlib import contextmanager
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union

from ..models.records import DailyRecord


class DailyRecordStore(Protocol):
    def get(self, day: date) -> Optional[DailyRecord]:
        ...

    def upsert(self, record: DailyRecord) -> None:
        ...

    def history(self, before: date, days: int) -> List[DailyRecord]:
        """Records in ``[before - days, before)``, oldest first."""
        ...


class InMemoryDailyRecordStore:
    def __init__(self) -> None:
        self._records: Dict[date, DailyRecord] = {}

    def get(self, day: date) -> Optional[DailyRecord]:
        return self._records.get(day)

    def upsert(self, record: DailyRecord) -> None:
        self._records[record.date] = record

    def history(self, before: date, days: int) -> List[DailyRecord]:
        start = before - timedelta(days=days)
        return [self._records[d] for d in sorted(self._records) if start <= d < before]

    def __len__(self) -> int:
        return len(self._records)


class SqliteDailyRecordStore:
    """
    SQLite-backed daily record store.

    Records are stored whole as JSON keyed by ISO date, so adding a field
    to DailyRecord needs no migration.
    """

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)
        self._ensure_table_exists()

    @contextmanager
    def _get_connection(self):
        """Get database connection with context manager."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _ensure_table_exists(self) -> None:
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS daily_records (
                    date TEXT PRIMARY KEY,
                    record_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

    def get(self, day: date) -> Optional[DailyRecord]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT record_json FROM daily_records WHERE date = ?",
                (day.isoformat(),),
            ).fetchone()
        if row is None:
            return None
        return DailyRecord.model_validate_json(row["record_json"])

    def upsert(self, record: DailyRecord) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO daily_records (date, record_json, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(date) DO UPDATE SET
                    record_json = excluded.record_json,
                    updated_at = excluded.updated_at
                """,
                (
                    record.date.isoformat(),
                    record.model_dump_json(),
                    record.updated_at.isoformat(),
                ),
            )

    def history(self, before: date, days: int) -> List[DailyRecord]:
        start = before - timedelta(days=days)
        with self._get_connection() as conn:
            rows = conn.execute(
                """
                SELECT record_json FROM daily_records
                WHERE date >= ? AND date < ?
                ORDER BY date ASC
                """,
                (start.isoformat(), before.isoformat()),
            ).fetchall()
        return [DailyRecord.model_validate_json(row["record_json"]) for row in rows]
