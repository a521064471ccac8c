# ojt_cycle/infrastructure/postgres_dal.py
"""
The single, consolidated Data Access Layer for all PostgreSQL interactions.
This class implements the week, settings, report and student store interfaces
used by the weekly cycle.
"""
from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from typing import Any, Dict, Iterable, Iterator, List, Optional

import psycopg
from psycopg import errors
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from ojt_cycle.application.exceptions import DuplicateReportError, DuplicateWindowError, StorageError
from ojt_cycle.config import settings
from ojt_cycle.domain.entities import LoopState, Student, WeekWindow, WeeklyReportRecord
from ojt_cycle.domain.repositories import ReportStore, SettingsStore, StudentStore, WeekStore
from ojt_cycle.infrastructure import log_utils

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS cycle_weeks (
        week_number     INTEGER PRIMARY KEY CHECK (week_number > 0),
        week_start_date DATE NOT NULL UNIQUE CHECK (EXTRACT(ISODOW FROM week_start_date) = 1),
        week_end_date   DATE NOT NULL,
        created_at      TIMESTAMPTZ NOT NULL DEFAULT now(),
        CHECK (week_end_date = week_start_date + 4)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS cycle_settings (
        id                 SMALLINT PRIMARY KEY DEFAULT 1 CHECK (id = 1),
        weekly_loop_active BOOLEAN NOT NULL DEFAULT false,
        anchor_date        DATE,
        updated_at         TIMESTAMPTZ NOT NULL DEFAULT now(),
        CHECK (weekly_loop_active = (anchor_date IS NOT NULL))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS students (
        id              TEXT PRIMARY KEY,
        first_name      TEXT NOT NULL,
        middle_name     TEXT,
        last_name       TEXT NOT NULL,
        internship_site TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS weekly_reports (
        id              SERIAL PRIMARY KEY,
        student_id      TEXT NOT NULL REFERENCES students (id),
        student_name    TEXT,
        internship_site TEXT,
        week_number     INTEGER NOT NULL,
        week_start_date DATE NOT NULL,
        week_end_date   DATE NOT NULL,
        status          TEXT NOT NULL DEFAULT 'pending',
        date_submitted  TIMESTAMPTZ,
        UNIQUE (student_id, week_start_date)
    )
    """,
)

# --- Connection Pool Management ---
_pool: ConnectionPool | None = None


def _create_pool() -> ConnectionPool:
    return ConnectionPool(conninfo=settings.DATABASE_URL, min_size=1, max_size=5, open=True)


def get_pool() -> ConnectionPool:
    global _pool
    if _pool is None:
        _pool = _create_pool()
    return _pool


def _row_to_window(row: Optional[Dict[str, Any]]) -> Optional[WeekWindow]:
    if not row:
        return None
    return WeekWindow(week_number=row["week_number"], start_date=row["week_start_date"])


def _row_to_student(row: Dict[str, Any]) -> Student:
    return Student(
        id=str(row["id"]),
        first_name=row["first_name"],
        last_name=row["last_name"],
        middle_name=row.get("middle_name"),
        internship_site=row.get("internship_site"),
    )


def _row_to_report(row: Dict[str, Any]) -> WeeklyReportRecord:
    return WeeklyReportRecord(
        student_id=str(row["student_id"]),
        week_number=row["week_number"],
        week_start_date=row["week_start_date"],
        week_end_date=row["week_end_date"],
        status=row.get("status") or "pending",
        date_submitted=row.get("date_submitted"),
        student_name=row.get("student_name"),
        internship_site=row.get("internship_site"),
    )


# --- Data Access Layer ---
class PostgresDal(WeekStore, SettingsStore, ReportStore, StudentStore):
    """PostgreSQL implementation of the cycle's stores."""

    def __init__(self, pool: Optional[ConnectionPool] = None):
        self.pool = pool or get_pool()

    @contextmanager
    def _get_cursor(self) -> Iterator[psycopg.Cursor]:
        """Yield a dict-row cursor inside a transaction, translating driver errors."""
        try:
            with self.pool.connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    yield cur
        except psycopg.Error as exc:
            log_utils.error(f"Database operation failed: {exc}")
            raise StorageError(str(exc)) from exc

    def close(self) -> None:
        if self.pool and not self.pool.closed:
            self.pool.close()
            log_utils.info("Database connection pool closed.")

    def ensure_schema(self) -> None:
        with self._get_cursor() as cur:
            for statement in SCHEMA_STATEMENTS:
                cur.execute(statement)
        log_utils.info("Cycle schema ensured.")

    def missing_tables(self, names: Iterable[str]) -> List[str]:
        """Return the subset of ``names`` not present in the current search path."""
        with self._get_cursor() as cur:
            cur.execute(
                """
                SELECT name FROM unnest(%s::text[]) AS name
                WHERE to_regclass(name) IS NULL
                ORDER BY name
                """,
                (list(names),),
            )
            return [row["name"] for row in cur.fetchall()]

    # ----------------------------------------------
    # --- Week windows ---
    # ----------------------------------------------
    def latest(self) -> Optional[WeekWindow]:
        with self._get_cursor() as cur:
            cur.execute(
                "SELECT week_number, week_start_date FROM cycle_weeks ORDER BY week_number DESC LIMIT 1"
            )
            return _row_to_window(cur.fetchone())

    def find_by_start_date(self, start_date: date) -> Optional[WeekWindow]:
        with self._get_cursor() as cur:
            cur.execute(
                "SELECT week_number, week_start_date FROM cycle_weeks WHERE week_start_date = %s",
                (start_date,),
            )
            return _row_to_window(cur.fetchone())

    def find_by_number(self, week_number: int) -> Optional[WeekWindow]:
        with self._get_cursor() as cur:
            cur.execute(
                "SELECT week_number, week_start_date FROM cycle_weeks WHERE week_number = %s",
                (week_number,),
            )
            return _row_to_window(cur.fetchone())

    def insert(self, window: WeekWindow) -> WeekWindow:
        try:
            with self._get_cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO cycle_weeks (week_number, week_start_date, week_end_date)
                    VALUES (%s, %s, %s)
                    """,
                    (window.week_number, window.start_date, window.end_date),
                )
        except StorageError as exc:
            if isinstance(exc.__cause__, errors.UniqueViolation):
                raise DuplicateWindowError(
                    f"Week {window.week_number} starting {window.start_date.isoformat()} already exists"
                ) from exc.__cause__
            raise
        return window

    def list_all(self) -> List[WeekWindow]:
        with self._get_cursor() as cur:
            cur.execute("SELECT week_number, week_start_date FROM cycle_weeks ORDER BY week_number")
            return [_row_to_window(row) for row in cur.fetchall()]

    def count(self) -> int:
        with self._get_cursor() as cur:
            cur.execute("SELECT COUNT(*) AS total FROM cycle_weeks")
            row = cur.fetchone()
            return int(row["total"]) if row else 0

    # ----------------------------------------------
    # --- Loop settings ---
    # ----------------------------------------------
    def load(self) -> LoopState:
        with self._get_cursor() as cur:
            cur.execute("SELECT weekly_loop_active, anchor_date FROM cycle_settings WHERE id = 1")
            row = cur.fetchone()
        if not row:
            return LoopState.inactive()
        return LoopState(active=bool(row["weekly_loop_active"]), anchor_date=row["anchor_date"])

    def save(self, state: LoopState) -> None:
        with self._get_cursor() as cur:
            cur.execute(
                """
                INSERT INTO cycle_settings (id, weekly_loop_active, anchor_date, updated_at)
                VALUES (1, %s, %s, now())
                ON CONFLICT (id) DO UPDATE
                SET weekly_loop_active = EXCLUDED.weekly_loop_active,
                    anchor_date = EXCLUDED.anchor_date,
                    updated_at = now()
                """,
                (state.active, state.anchor_date),
            )

    # ----------------------------------------------
    # --- Reports & students ---
    # ----------------------------------------------
    def exists(self, student_id: str, week_start_date: date) -> bool:
        with self._get_cursor() as cur:
            cur.execute(
                "SELECT 1 FROM weekly_reports WHERE student_id = %s AND week_start_date = %s LIMIT 1",
                (student_id, week_start_date),
            )
            return cur.fetchone() is not None

    def find_for_weeks(self, week_start_dates: Iterable[date]) -> List[WeeklyReportRecord]:
        dates = list(week_start_dates)
        if not dates:
            return []
        with self._get_cursor() as cur:
            cur.execute(
                """
                SELECT student_id, student_name, internship_site, week_number,
                       week_start_date, week_end_date, status, date_submitted
                FROM weekly_reports
                WHERE week_start_date = ANY(%s)
                ORDER BY week_start_date, student_id
                """,
                (dates,),
            )
            return [_row_to_report(row) for row in cur.fetchall()]

    def create(self, record: WeeklyReportRecord) -> WeeklyReportRecord:
        try:
            with self._get_cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO weekly_reports (
                        student_id, student_name, internship_site, week_number,
                        week_start_date, week_end_date, status, date_submitted
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        record.student_id,
                        record.student_name,
                        record.internship_site,
                        record.week_number,
                        record.week_start_date,
                        record.week_end_date,
                        record.status,
                        record.date_submitted,
                    ),
                )
        except StorageError as exc:
            if isinstance(exc.__cause__, errors.UniqueViolation):
                raise DuplicateReportError(
                    f"Student {record.student_id} already has a report for the week of "
                    f"{record.week_start_date.isoformat()}"
                ) from exc.__cause__
            raise
        log_utils.info(
            f"Recorded week {record.week_number} report for student {record.student_id}."
        )
        return record

    def list_students(self) -> List[Student]:
        with self._get_cursor() as cur:
            cur.execute(
                """
                SELECT id, first_name, middle_name, last_name, internship_site
                FROM students
                ORDER BY last_name, first_name
                """
            )
            return [_row_to_student(row) for row in cur.fetchall()]

    def get_student(self, student_id: str) -> Optional[Student]:
        with self._get_cursor() as cur:
            cur.execute(
                """
                SELECT id, first_name, middle_name, last_name, internship_site
                FROM students
                WHERE id = %s
                """,
                (student_id,),
            )
            row = cur.fetchone()
        return _row_to_student(row) if row else None
