from datetime import date
from typing import Any, Dict

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request

from ojt_cycle.application.exceptions import (
    AnchorRequiredError,
    NotActiveError,
    StorageError,
    StudentNotFoundError,
    WeekNotFoundError,
)
from ojt_cycle.application.weekly_summary import CycleView, WeeklySummaryService
from ojt_cycle.cli.status import DEFAULT_TIMEOUT_SECONDS, render_results, run_status_checks
from ojt_cycle.config import settings
from ojt_cycle.domain.cycle_service import AdvanceResult
from ojt_cycle.infrastructure import log_utils
from ojt_cycle.utils.converters import to_date

app = FastAPI(title="OJT Weekly Cycle API")

STORAGE_FAILURE_DETAIL = "Storage failure; the error has been logged."


def get_summary_service() -> WeeklySummaryService:
    """Resolve the summary service from the application container."""
    from ojt_cycle.infrastructure.di_container import get_container

    return get_container().resolve(WeeklySummaryService)


# Helper to validate API key from header OR query string
def validate_api_key(request: Request, x_api_key: str | None) -> None:
    key = x_api_key or request.query_params.get("api_key")
    if not settings.OJT_API_KEY or key != settings.OJT_API_KEY:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


def _storage_failure(action: str, exc: StorageError) -> HTTPException:
    log_utils.error(f"{action} failed: {exc}")
    return HTTPException(status_code=500, detail=STORAGE_FAILURE_DETAIL)


def _advance_payload(result: AdvanceResult) -> Dict[str, Any]:
    return {
        "outcome": result.outcome.value,
        "message": result.message,
        "week": result.window.as_dict() if result.window else None,
    }


def _view_payload(view: CycleView) -> Dict[str, Any]:
    return {
        "loop_active": view.loop_active,
        "anchor_date": view.anchor_date,
        "generated_at": view.generated_at,
        "students": [
            {
                "id": student.id,
                "name": student.full_name,
                "internship_site": student.internship_site,
            }
            for student in view.students
        ],
        "weeks": [
            {
                **row.window.as_dict(),
                "start_label": row.start_label,
                "end_label": row.end_label,
                "persisted": row.persisted,
                "submissions": {
                    student_id: {
                        "submitted": status.submitted,
                        "status": status.status,
                        "submitted_at": status.submitted_at,
                        "can_submit": status.eligible_now,
                        "window_closed": status.window_closed,
                    }
                    for student_id, status in row.submissions.items()
                },
            }
            for row in view.weeks
        ],
    }


# Root endpoint - useful for connector validation
@app.get("/")
def root_get():
    return {"status": "ok", "message": "OJT weekly cycle API root"}


@app.get("/weekly-summary")
def weekly_summary(
    request: Request,
    x_api_key: str = Header(None),
    service: WeeklySummaryService = Depends(get_summary_service),
):
    """Week list with each student's submission status."""
    validate_api_key(request, x_api_key)
    try:
        view = service.get_cycle_view()
    except StorageError as exc:
        raise _storage_failure("Loading weekly summary", exc)
    return _view_payload(view)


@app.post("/weekly-summary/start")
def start_cycle(
    request: Request,
    start_date: str = Query(None, description="Start date of Week 1 (YYYY-MM-DD)."),
    x_api_key: str = Header(None),
    service: WeeklySummaryService = Depends(get_summary_service),
):
    validate_api_key(request, x_api_key)

    anchor: date | None = None
    if start_date:
        anchor = to_date(start_date)
        if anchor is None:
            raise HTTPException(status_code=400, detail="Invalid start date format. Use YYYY-MM-DD.")

    try:
        result = service.start_cycle(anchor)
    except AnchorRequiredError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except StorageError as exc:
        raise _storage_failure("Starting weekly loop", exc)

    return {
        "loop_active": result.state.active,
        "anchor_date": result.state.anchor_date,
        "seed": _advance_payload(result.seed),
        "message": result.message,
    }


@app.post("/weekly-summary/stop")
def stop_cycle(
    request: Request,
    x_api_key: str = Header(None),
    service: WeeklySummaryService = Depends(get_summary_service),
):
    validate_api_key(request, x_api_key)
    try:
        state = service.stop_cycle()
    except StorageError as exc:
        raise _storage_failure("Stopping weekly loop", exc)
    return {"loop_active": state.active, "message": "Weekly loop stopped."}


@app.post("/weekly-summary/advance")
def force_advance(
    request: Request,
    x_api_key: str = Header(None),
    service: WeeklySummaryService = Depends(get_summary_service),
):
    """Create the next week on demand."""
    validate_api_key(request, x_api_key)
    try:
        result = service.force_advance()
    except StorageError as exc:
        raise _storage_failure("Forced week advance", exc)
    return _advance_payload(result)


@app.post("/weekly-summary/submit")
def submit_for_student(
    request: Request,
    student_id: str = Query(...),
    week_number: int = Query(..., ge=1),
    x_api_key: str = Header(None),
    service: WeeklySummaryService = Depends(get_summary_service),
):
    """Record a pending weekly report for a student during the Saturday band."""
    validate_api_key(request, x_api_key)
    try:
        result = service.submit_for_student(student_id, week_number)
    except NotActiveError as exc:
        return {"outcome": "not_active", "message": str(exc)}
    except (WeekNotFoundError, StudentNotFoundError) as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except StorageError as exc:
        raise _storage_failure("Weekly report submission", exc)

    return {"outcome": result.outcome.value, "message": result.message}


@app.get("/status")
def status(
    request: Request,
    x_api_key: str = Header(None),
    timeout: float = Query(
        DEFAULT_TIMEOUT_SECONDS,
        ge=0.1,
        description="Per dependency timeout in seconds.",
    ),
):
    """Expose the CLI health check results via the API."""

    validate_api_key(request, x_api_key)

    results = run_status_checks(timeout=timeout)
    checks = [
        {"name": result.name, "ok": result.ok, "detail": result.detail}
        for result in results
    ]
    overall_ok = all(result["ok"] for result in checks)

    return {
        "ok": overall_ok,
        "checks": checks,
        "summary": render_results(results),
    }


@app.get("/logs")
def logs(
    request: Request,
    x_api_key: str = Header(None),
    lines: int = Query(50, ge=1, le=1000, description="Number of log lines to return."),
):
    """Return the last ``lines`` entries from the history log."""

    validate_api_key(request, x_api_key)

    log_path = settings.log_path
    if not log_path.exists():
        raise HTTPException(status_code=404, detail=f"Log file not found: {log_path}")

    with log_path.open("r", encoding="utf-8") as log_file:
        log_lines = log_file.readlines()

    tail = [line.rstrip("\n") for line in log_lines[-lines:]]

    return {"path": str(log_path), "lines": tail}
