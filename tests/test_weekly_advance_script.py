from datetime import date, datetime
from unittest.mock import MagicMock

from scripts import weekly_advance
from ojt_cycle.application.exceptions import StorageError
from ojt_cycle.application.weekly_summary import WeeklySummaryService
from ojt_cycle.domain.entities import WeekWindow
from ojt_cycle.infrastructure.di_container import Container
from ojt_cycle.infrastructure.postgres_dal import PostgresDal


def test_script_creates_week_on_saturday(summary_service, week_store, clock, tz):
    summary_service.start_cycle(date(2025, 2, 3))
    clock.set(datetime(2025, 2, 8, 0, 5, tzinfo=tz))

    exit_code = weekly_advance.main(summary_service)

    assert exit_code == 0
    assert week_store.latest() == WeekWindow(week_number=2, start_date=date(2025, 2, 10))


def test_script_skips_other_weekdays(summary_service, week_store):
    summary_service.start_cycle(date(2025, 2, 3))

    exit_code = weekly_advance.main(summary_service)

    assert exit_code == 0
    assert week_store.count() == 1


def test_script_is_quiet_when_loop_stopped(summary_service, week_store, clock, tz):
    clock.set(datetime(2025, 2, 8, 0, 5, tzinfo=tz))

    assert weekly_advance.main(summary_service) == 0
    assert week_store.count() == 0


def test_storage_failure_exits_non_zero_after_one_attempt(summary_service, week_store, clock, tz):
    summary_service.start_cycle(date(2025, 2, 3))
    clock.set(datetime(2025, 2, 8, 0, 5, tzinfo=tz))
    week_store.fail_with = StorageError("connection refused")
    inserts_before = week_store.insert_calls

    assert weekly_advance.main(summary_service) == 1
    assert week_store.insert_calls - inserts_before == 1
    assert week_store.count() == 1


def test_next_run_recovers_after_storage_failure(summary_service, week_store, clock, tz):
    summary_service.start_cycle(date(2025, 2, 3))
    clock.set(datetime(2025, 2, 8, 0, 5, tzinfo=tz))
    week_store.fail_with = StorageError("connection refused")
    assert weekly_advance.main(summary_service) == 1

    week_store.fail_with = None
    clock.set(datetime(2025, 2, 15, 0, 5, tzinfo=tz))

    assert weekly_advance.main(summary_service) == 0
    assert [w.week_number for w in week_store.list_all()] == [1, 2]


def test_script_closes_pool_it_created(monkeypatch, summary_service):
    dal = MagicMock(spec=PostgresDal)
    container = Container()
    container.register(PostgresDal, instance=dal)
    container.register(WeeklySummaryService, instance=summary_service)
    monkeypatch.setattr(weekly_advance, "get_container", lambda: container)

    assert weekly_advance.main() == 0
    dal.close.assert_called_once()
