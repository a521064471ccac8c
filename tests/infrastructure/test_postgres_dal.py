import unittest
from datetime import date
from unittest.mock import MagicMock, patch

from psycopg import errors

from ojt_cycle.application.exceptions import DuplicateReportError, DuplicateWindowError, StorageError
from ojt_cycle.domain.entities import LoopState, WeekWindow, WeeklyReportRecord
from ojt_cycle.infrastructure.postgres_dal import SCHEMA_STATEMENTS, PostgresDal


def _build_dal():
    """Create a DAL wired to a mock pool -> connection -> cursor chain."""
    mock_pool = MagicMock()
    mock_conn = MagicMock()
    mock_cur = MagicMock()
    mock_pool.connection.return_value.__enter__.return_value = mock_conn
    mock_conn.cursor.return_value.__enter__.return_value = mock_cur
    return PostgresDal(pool=mock_pool), mock_pool, mock_cur


class TestPostgresDal(unittest.TestCase):

    def test_latest_maps_row_to_window(self):
        dal, _, cur = _build_dal()
        cur.fetchone.return_value = {"week_number": 6, "week_start_date": date(2025, 2, 10)}

        window = dal.latest()

        self.assertEqual(window, WeekWindow(week_number=6, start_date=date(2025, 2, 10)))
        sql = cur.execute.call_args[0][0]
        self.assertIn("ORDER BY week_number DESC", sql)

    def test_latest_returns_none_for_empty_table(self):
        dal, _, cur = _build_dal()
        cur.fetchone.return_value = None

        self.assertIsNone(dal.latest())

    def test_insert_writes_derived_end_date(self):
        dal, _, cur = _build_dal()
        window = WeekWindow(week_number=2, start_date=date(2025, 1, 13))

        stored = dal.insert(window)

        self.assertEqual(stored, window)
        params = cur.execute.call_args[0][1]
        self.assertEqual(params, (2, date(2025, 1, 13), date(2025, 1, 17)))

    def test_insert_translates_unique_violation(self):
        dal, _, cur = _build_dal()
        cur.execute.side_effect = errors.UniqueViolation("duplicate key value violates unique constraint")

        with self.assertRaises(DuplicateWindowError):
            dal.insert(WeekWindow(week_number=2, start_date=date(2025, 1, 13)))

    def test_other_driver_errors_become_storage_errors(self):
        dal, _, cur = _build_dal()
        cur.execute.side_effect = errors.OperationalError("server closed the connection")

        with self.assertRaises(StorageError):
            dal.insert(WeekWindow(week_number=2, start_date=date(2025, 1, 13)))
        with self.assertRaises(StorageError):
            dal.list_all()

    def test_load_defaults_to_inactive_without_row(self):
        dal, _, cur = _build_dal()
        cur.fetchone.return_value = None

        self.assertEqual(dal.load(), LoopState.inactive())

    def test_load_reads_persisted_state(self):
        dal, _, cur = _build_dal()
        cur.fetchone.return_value = {"weekly_loop_active": True, "anchor_date": date(2025, 1, 6)}

        self.assertEqual(dal.load(), LoopState.started(date(2025, 1, 6)))

    def test_save_upserts_singleton(self):
        dal, _, cur = _build_dal()

        dal.save(LoopState.started(date(2025, 1, 6)))

        sql, params = cur.execute.call_args[0]
        self.assertIn("ON CONFLICT (id) DO UPDATE", sql)
        self.assertEqual(params, (True, date(2025, 1, 6)))

    def test_exists_checks_student_and_week(self):
        dal, _, cur = _build_dal()
        cur.fetchone.return_value = {"?column?": 1}

        self.assertTrue(dal.exists("s-1", date(2025, 1, 6)))
        self.assertEqual(cur.execute.call_args[0][1], ("s-1", date(2025, 1, 6)))

    def test_find_for_weeks_skips_query_for_empty_input(self):
        dal, pool, cur = _build_dal()

        self.assertEqual(dal.find_for_weeks([]), [])
        pool.connection.assert_not_called()

    def test_find_for_weeks_maps_reports(self):
        dal, _, cur = _build_dal()
        cur.fetchall.return_value = [
            {
                "student_id": "s-1",
                "student_name": "Maria L. Santos",
                "internship_site": "DOST",
                "week_number": 1,
                "week_start_date": date(2025, 1, 6),
                "week_end_date": date(2025, 1, 10),
                "status": "approved",
                "date_submitted": None,
            }
        ]

        reports = dal.find_for_weeks([date(2025, 1, 6)])

        self.assertEqual(len(reports), 1)
        self.assertIsInstance(reports[0], WeeklyReportRecord)
        self.assertEqual(reports[0].status, "approved")

    def test_get_student_maps_row(self):
        dal, _, cur = _build_dal()
        cur.fetchone.return_value = {
            "id": "s-1",
            "first_name": "Maria",
            "middle_name": "Luna",
            "last_name": "Santos",
            "internship_site": "DOST",
        }

        student = dal.get_student("s-1")

        self.assertEqual(student.full_name, "Maria L. Santos")

    def test_create_translates_unique_violation(self):
        dal, _, cur = _build_dal()
        cur.execute.side_effect = errors.UniqueViolation(
            'duplicate key value violates unique constraint "weekly_reports_student_id_week_start_date_key"'
        )
        record = WeeklyReportRecord(
            student_id="s-1",
            week_number=2,
            week_start_date=date(2025, 1, 13),
            week_end_date=date(2025, 1, 17),
        )

        with self.assertRaises(DuplicateReportError):
            dal.create(record)

    def test_missing_tables_returns_unresolved_names(self):
        dal, _, cur = _build_dal()
        cur.fetchall.return_value = [{"name": "weekly_reports"}]

        missing = dal.missing_tables(("cycle_weeks", "weekly_reports"))

        self.assertEqual(missing, ["weekly_reports"])
        sql, params = cur.execute.call_args[0]
        self.assertIn("to_regclass", sql)
        self.assertEqual(params, (["cycle_weeks", "weekly_reports"],))

    def test_ensure_schema_runs_every_statement(self):
        dal, _, cur = _build_dal()

        dal.ensure_schema()

        self.assertEqual(cur.execute.call_count, len(SCHEMA_STATEMENTS))

    @patch("ojt_cycle.infrastructure.postgres_dal.get_pool")
    def test_default_pool_is_shared(self, mock_get_pool):
        mock_get_pool.return_value = MagicMock()

        dal = PostgresDal()

        mock_get_pool.assert_called_once()
        self.assertIs(dal.pool, mock_get_pool.return_value)


if __name__ == "__main__":
    unittest.main()
