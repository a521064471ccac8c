from datetime import date, datetime

import pytest
from typer.testing import CliRunner

import ojt_cycle.cli.main as cli_main
import ojt_cycle.cli.status as status
from ojt_cycle.application.exceptions import StorageError
from ojt_cycle.cli.main import app
from ojt_cycle.cli.status import CheckResult
from ojt_cycle.domain.entities import WeekWindow

runner = CliRunner()


@pytest.fixture()
def use_service(monkeypatch, summary_service):
    calls = []

    def fake_build(at=None):
        calls.append(at)
        return summary_service

    monkeypatch.setattr(cli_main, "_build_service", fake_build)
    return calls


def test_start_requires_valid_date(use_service):
    result = runner.invoke(app, ["start", "--start-date", "2025/02/10"])

    assert result.exit_code == 1
    assert "Invalid start date format" in result.stdout


def test_start_without_history_needs_date(use_service):
    result = runner.invoke(app, ["start"])

    assert result.exit_code == 1
    assert "Start date is required" in result.stdout


def test_start_then_weeks(use_service, week_store):
    started = runner.invoke(app, ["start", "--start-date", "2025-02-10"])
    listed = runner.invoke(app, ["weeks"])

    assert started.exit_code == 0
    assert "Weekly loop started" in started.stdout
    assert week_store.list_all() == [WeekWindow(week_number=1, start_date=date(2025, 2, 10))]
    assert "2025-02-14" in listed.stdout


def test_advance_respects_due_gate_unless_forced(use_service, week_store):
    runner.invoke(app, ["start", "--start-date", "2025-02-10"])

    gated = runner.invoke(app, ["advance"])
    forced = runner.invoke(app, ["advance", "--force"])

    assert gated.exit_code == 0
    assert "already_present" in gated.stdout
    assert forced.exit_code == 0
    assert "created" in forced.stdout
    assert week_store.count() == 2


def test_advance_passes_simulated_instant(use_service):
    runner.invoke(app, ["advance", "--at", "2025-02-15T00:05"])

    assert use_service[-1] == "2025-02-15T00:05"


def test_advance_storage_failure_exits_non_zero(use_service, week_store):
    runner.invoke(app, ["start", "--start-date", "2025-02-10"])
    week_store.fail_with = StorageError("connection refused")

    result = runner.invoke(app, ["advance", "--force"])

    assert result.exit_code == 1
    assert "Week advance failed" in result.stdout


def test_stop_command(use_service, settings_store):
    runner.invoke(app, ["start", "--start-date", "2025-02-10"])

    result = runner.invoke(app, ["stop"])

    assert result.exit_code == 0
    assert settings_store.state.active is False


def test_submit_when_stopped_is_not_an_error(use_service):
    result = runner.invoke(app, ["submit", "--student", "s-1", "--week", "1"])

    assert result.exit_code == 0
    assert "not active" in result.stdout


def test_submit_unknown_student_fails(use_service):
    runner.invoke(app, ["start", "--start-date", "2025-02-10"])

    result = runner.invoke(app, ["submit", "--student", "nobody", "--week", "1"])

    assert result.exit_code == 1


def test_submit_on_saturday(use_service, clock, tz, report_store):
    runner.invoke(app, ["start", "--start-date", "2025-02-10"])
    clock.set(datetime(2025, 2, 15, 8, 0, tzinfo=tz))

    result = runner.invoke(app, ["submit", "--student", "s-2", "--week", "1"])

    assert result.exit_code == 0
    assert "submitted" in result.stdout
    assert report_store.exists("s-2", date(2025, 2, 10))


def test_summary_renders_students(use_service):
    runner.invoke(app, ["start", "--start-date", "2025-02-10"])

    result = runner.invoke(app, ["summary"])

    assert result.exit_code == 0
    assert "anchor 2025-02-10" in result.stdout
    assert "Feb 10 - Feb 14" in result.stdout


def test_invalid_at_value_is_rejected():
    result = runner.invoke(app, ["summary", "--at", "next saturday"])

    assert result.exit_code == 1
    assert "Invalid --at value" in result.stdout


def test_crontab_writes_schedule(monkeypatch, tmp_path):
    target = tmp_path / "ojt_crontab.txt"
    save = cli_main.cron_manager.save_crontab_file
    monkeypatch.setattr(cli_main.cron_manager, "save_crontab_file", lambda: save(path=target))

    result = runner.invoke(app, ["crontab"])

    assert result.exit_code == 0
    assert "scripts.weekly_advance" in target.read_text(encoding="utf-8")


def test_crontab_install_failure(monkeypatch, tmp_path):
    target = tmp_path / "ojt_crontab.txt"
    monkeypatch.setattr(cli_main.cron_manager, "save_crontab_file", lambda: target)

    def fail(path):
        raise RuntimeError("Failed to activate crontab: no crontab binary")

    monkeypatch.setattr(cli_main.cron_manager, "activate_crontab", fail)

    result = runner.invoke(app, ["crontab", "--install"])

    assert result.exit_code == 1
    assert "Failed to activate crontab" in result.stdout


def test_status_cli_failure_propagates(monkeypatch):
    captured = {}

    def fake_checks(*, timeout, checks=None):
        captured["timeout"] = timeout
        return [CheckResult("DB", False, "connection refused")]

    monkeypatch.setattr(status, "run_status_checks", fake_checks)
    monkeypatch.setattr(cli_main, "run_status_checks", fake_checks)

    result = runner.invoke(app, ["status", "--timeout", "2.5"])

    assert result.exit_code == 1
    assert "FAIL" in result.stdout
    assert captured["timeout"] == 2.5


def test_logs_command_prints_tail(monkeypatch, tmp_path):
    log_file = tmp_path / "ojt_history.log"
    log_file.write_text("a\nb\nc\n", encoding="utf-8")
    monkeypatch.setattr(cli_main.settings, "OJT_LOG_FILE", log_file)

    result = runner.invoke(app, ["logs", "-n", "2"])

    assert result.exit_code == 0
    assert result.stdout.splitlines() == ["b", "c"]
