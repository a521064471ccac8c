"""
Application service behind the administrator's weekly summary.

Combines the cycle scheduler with the student and report stores to build the
dashboard view, and exposes the start/stop/advance/submit actions used by the
API, the CLI and the cron script.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

from ojt_cycle.application.exceptions import (
    AnchorRequiredError,
    DuplicateReportError,
    StudentNotFoundError,
    WeekNotFoundError,
)
from ojt_cycle.domain.cycle_service import AdvanceOutcome, AdvanceResult, WeekCycleScheduler
from ojt_cycle.domain.entities import LoopState, Student, WeekWindow, WeeklyReportRecord
from ojt_cycle.domain.repositories import ReportStore, StudentStore
from ojt_cycle.domain.week_windows import next_window_after
from ojt_cycle.infrastructure import log_utils
from ojt_cycle.utils.formatters import format_day_label

_WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


@dataclass(frozen=True)
class StudentWeekStatus:
    student_id: str
    submitted: bool
    eligible_now: bool
    window_closed: bool
    status: str
    submitted_at: datetime | None = None


@dataclass(frozen=True)
class WeekRow:
    window: WeekWindow
    persisted: bool
    start_label: str
    end_label: str
    submissions: Mapping[str, StudentWeekStatus] = field(default_factory=dict)


@dataclass(frozen=True)
class CycleView:
    loop_active: bool
    anchor_date: date | None
    generated_at: datetime
    students: List[Student]
    weeks: List[WeekRow]


@dataclass(frozen=True)
class StartResult:
    state: LoopState
    seed: AdvanceResult
    message: str


class SubmissionOutcome(str, Enum):
    SUBMITTED = "submitted"
    ALREADY_SUBMITTED = "already_submitted"
    WINDOW_NOT_OPEN = "window_not_open"
    WINDOW_CLOSED = "window_closed"


@dataclass(frozen=True)
class SubmissionResult:
    outcome: SubmissionOutcome
    message: str
    report: WeeklyReportRecord | None = None


class WeeklySummaryService:
    """Coordinates weekly cycle workflows for administrators and the cron trigger."""

    def __init__(
        self,
        *,
        scheduler: WeekCycleScheduler,
        report_store: ReportStore,
        student_store: StudentStore,
        display_count: int = 20,
        advance_weekday: int = 5,
    ) -> None:
        self.scheduler = scheduler
        self.report_store = report_store
        self.student_store = student_store
        self.display_count = display_count
        self.advance_weekday = advance_weekday

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------
    def get_cycle_view(self) -> CycleView:
        """Return the week list annotated with every student's submission status.

        Persisted weeks are always shown as stored, so week N has the same
        dates here as in ``submit_for_student``. While the loop runs, upcoming
        weeks are projected after the latest persisted one up to
        ``display_count`` rows; with no history yet they come from the anchor.
        """
        state = self.scheduler.load_state()
        persisted = self.scheduler.week_store.list_all()
        persisted_starts = {window.start_date for window in persisted}

        windows = list(persisted)
        if state.active and state.anchor_date is not None:
            if not windows:
                windows = self.scheduler.generate_windows(state.anchor_date, self.display_count)
            while len(windows) < self.display_count:
                windows.append(next_window_after(windows[-1]))

        students = self.student_store.list_students()
        reports = self.report_store.find_for_weeks([window.start_date for window in windows])
        by_key: Dict[Tuple[str, date], WeeklyReportRecord] = {
            (report.student_id, report.week_start_date): report for report in reports
        }

        now = self.scheduler.clock.now()
        rows: List[WeekRow] = []
        for window in windows:
            submissions: Dict[str, StudentWeekStatus] = {}
            for student in students:
                report = by_key.get((student.id, window.start_date))
                status = self.scheduler.compute_submission_status(window, now, report is not None)
                submissions[student.id] = StudentWeekStatus(
                    student_id=student.id,
                    submitted=status.submitted,
                    eligible_now=status.eligible_now,
                    window_closed=status.window_closed,
                    status=report.status if report else "not submitted",
                    submitted_at=report.date_submitted if report else None,
                )
            rows.append(
                WeekRow(
                    window=window,
                    persisted=window.start_date in persisted_starts,
                    start_label=format_day_label(window.start_date),
                    end_label=format_day_label(window.end_date),
                    submissions=submissions,
                )
            )

        return CycleView(
            loop_active=state.active,
            anchor_date=state.anchor_date,
            generated_at=now,
            students=students,
            weeks=rows,
        )

    # ------------------------------------------------------------------
    # Admin actions
    # ------------------------------------------------------------------
    def start_cycle(self, anchor_date: date | None = None) -> StartResult:
        """Start (or re-anchor) the loop and seed Week 1 when no week exists yet.

        Without an explicit date the loop resumes from the persisted Week 1;
        a start date is mandatory when no week has been created yet.
        """
        if anchor_date is None:
            first = self.scheduler.week_store.find_by_number(1)
            if first is None:
                raise AnchorRequiredError("Start date is required for the first week.")
            anchor_date = first.start_date

        state = self.scheduler.start_loop(anchor_date)
        seed = self.scheduler.seed_first_window(anchor_date)
        return StartResult(state=state, seed=seed, message=f"Weekly loop started. {seed.message}")

    def stop_cycle(self) -> LoopState:
        return self.scheduler.stop_loop()

    def force_advance(self) -> AdvanceResult:
        log_utils.info("Administrator requested a forced week advance.")
        return self.scheduler.force_advance()

    def run_scheduled_advance(self, now: Optional[datetime] = None) -> AdvanceResult:
        """Cron entry point: advance only on the configured weekday."""
        if now is None:
            now = self.scheduler.clock.now()
        elif now.tzinfo is None:
            raise ValueError("now must be timezone-aware")
        local_now = now.astimezone(self.scheduler.tz)
        if local_now.weekday() != self.advance_weekday:
            day_name = _WEEKDAY_NAMES[self.advance_weekday]
            log_utils.info(f"Today is not {day_name}; scheduled week advance skipped.")
            return AdvanceResult(
                AdvanceOutcome.SKIPPED, None, f"Week advance only runs on {day_name}."
            )
        return self.scheduler.advance_if_due(now)

    def submit_for_student(self, student_id: str, week_number: int) -> SubmissionResult:
        """File a pending weekly report for a student during the Saturday band.

        Raises ``NotActiveError`` when the loop is stopped, ``WeekNotFoundError``
        for an unknown week and ``StudentNotFoundError`` for an unknown student.
        """
        self.scheduler.require_active()

        window = self.scheduler.week_store.find_by_number(week_number)
        if window is None:
            raise WeekNotFoundError(f"Week {week_number} does not exist")

        student = self.student_store.get_student(student_id)
        if student is None:
            raise StudentNotFoundError(f"Student {student_id} does not exist")

        if self.report_store.exists(student.id, window.start_date):
            return SubmissionResult(
                SubmissionOutcome.ALREADY_SUBMITTED,
                f"{student.full_name} already submitted for Week {week_number}.",
            )

        now = self.scheduler.clock.now()
        status = self.scheduler.compute_submission_status(window, now, False)
        if not status.eligible_now:
            if status.window_closed:
                return SubmissionResult(
                    SubmissionOutcome.WINDOW_CLOSED,
                    f"The submission window for Week {week_number} has closed.",
                )
            return SubmissionResult(
                SubmissionOutcome.WINDOW_NOT_OPEN,
                f"Week {week_number} reports can only be submitted on {status.opens_at.date().isoformat()}.",
            )

        try:
            record = self.report_store.create(
                WeeklyReportRecord(
                    student_id=student.id,
                    student_name=student.full_name,
                    internship_site=student.internship_site or "",
                    week_number=window.week_number,
                    week_start_date=window.start_date,
                    week_end_date=window.end_date,
                    status="pending",
                    date_submitted=now,
                )
            )
        except DuplicateReportError:
            log_utils.warn(f"Concurrent submission for student {student.id}, week {week_number}; keeping the first.")
            return SubmissionResult(
                SubmissionOutcome.ALREADY_SUBMITTED,
                f"{student.full_name} already submitted for Week {week_number}.",
            )
        return SubmissionResult(
            SubmissionOutcome.SUBMITTED,
            "Report submitted successfully",
            record,
        )
