"""Health checks behind ``ojt status`` and ``GET /status``.

Three checks run in order: the database answers, the cycle tables exist, and
the weekly loop is in a consistent state. Later checks are skipped once an
earlier one fails since they would only repeat the same error.
"""

from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import TYPE_CHECKING, Callable, Iterable, List, Sequence

import psycopg

from ojt_cycle.application.exceptions import StorageError
from ojt_cycle.config import settings

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from ojt_cycle.application.weekly_summary import WeeklySummaryService
    from ojt_cycle.infrastructure.postgres_dal import PostgresDal

DEFAULT_TIMEOUT_SECONDS = 3.0
CYCLE_TABLES = ("cycle_weeks", "cycle_settings", "students", "weekly_reports")


@dataclass
class CheckResult:
    name: str
    ok: bool
    detail: str


def _elapsed(start: float) -> str:
    elapsed_ms = (perf_counter() - start) * 1000
    return "<1ms" if elapsed_ms < 1 else f"{int(elapsed_ms)}ms"


def _first_line(exc: Exception) -> str:
    message = str(exc).strip() or exc.__class__.__name__
    return message.splitlines()[0]


def check_database(timeout: float = DEFAULT_TIMEOUT_SECONDS) -> CheckResult:
    """Open a fresh connection outside the pool and run ``SELECT 1``."""
    start = perf_counter()
    try:
        with psycopg.connect(settings.DATABASE_URL, connect_timeout=max(1, int(timeout))) as conn:
            conn.execute("SELECT 1").fetchone()
    except psycopg.Error as exc:
        return CheckResult(name="DB", ok=False, detail=_first_line(exc))
    return CheckResult(name="DB", ok=True, detail=f"reachable in {_elapsed(start)}")


def check_schema(dal: "PostgresDal") -> CheckResult:
    try:
        missing = dal.missing_tables(CYCLE_TABLES)
    except StorageError as exc:
        return CheckResult(name="Schema", ok=False, detail=_first_line(exc))
    if missing:
        return CheckResult(
            name="Schema",
            ok=False,
            detail=f"missing {', '.join(missing)}; run `ojt init-db`",
        )
    return CheckResult(name="Schema", ok=True, detail=f"{len(CYCLE_TABLES)} cycle tables present")


def check_loop(service: "WeeklySummaryService") -> CheckResult:
    """Report the loop flag and the latest week.

    An active loop with no week at all means the seed insert never landed and
    the cron job has nothing to advance from.
    """
    try:
        state = service.scheduler.load_state()
        latest = service.scheduler.week_store.latest()
    except StorageError as exc:
        return CheckResult(name="Loop", ok=False, detail=_first_line(exc))

    last_week = (
        f"latest Week {latest.week_number} ({latest.start_date.isoformat()} to {latest.end_date.isoformat()})"
        if latest
        else "no weeks yet"
    )
    if not state.active:
        return CheckResult(name="Loop", ok=True, detail=f"stopped; {last_week}")
    if latest is None:
        return CheckResult(
            name="Loop",
            ok=False,
            detail=f"active since {state.anchor_date.isoformat()} but no week was created",
        )
    return CheckResult(
        name="Loop",
        ok=True,
        detail=f"active since {state.anchor_date.isoformat()}; {last_week}",
    )


def _default_checks(timeout: float) -> List[CheckResult]:
    from ojt_cycle.application.weekly_summary import WeeklySummaryService
    from ojt_cycle.infrastructure.di_container import get_container
    from ojt_cycle.infrastructure.postgres_dal import PostgresDal

    results = [check_database(timeout)]
    if not results[-1].ok:
        return results

    container = get_container()
    results.append(check_schema(container.resolve(PostgresDal)))
    if not results[-1].ok:
        return results

    results.append(check_loop(container.resolve(WeeklySummaryService)))
    return results


def run_status_checks(
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    checks: Sequence[Callable[[], CheckResult]] | None = None,
) -> List[CheckResult]:
    """Run the default database/schema/loop checks, or ``checks`` when given."""
    if checks is None:
        return _default_checks(timeout)
    return [check() for check in checks]


def render_results(results: Iterable[CheckResult]) -> str:
    return "\n".join(
        f"[{'OK' if result.ok else 'FAIL'}] {result.name}: {result.detail}" for result in results
    )
