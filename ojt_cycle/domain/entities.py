"""Domain entities for the weekly report cycle."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from ojt_cycle.utils.formatters import format_full_name

# Windows run Monday through Friday.
WORKWEEK_SPAN = timedelta(days=4)


@dataclass(frozen=True)
class WeekWindow:
    """A Monday to Friday span identified by its sequential week number.

    Only the start date is held; the end date is always derived from it so the
    two can never drift apart.
    """

    week_number: int
    start_date: date

    def __post_init__(self) -> None:
        if self.week_number < 1:
            raise ValueError("week_number must be a positive integer")
        if isinstance(self.start_date, datetime):
            raise TypeError("start_date must be a date, not a datetime")
        if self.start_date.weekday() != 0:
            raise ValueError(f"start_date {self.start_date.isoformat()} is not a Monday")

    @property
    def end_date(self) -> date:
        return self.start_date + WORKWEEK_SPAN

    def as_dict(self) -> dict:
        return {
            "week_number": self.week_number,
            "start_date": self.start_date,
            "end_date": self.end_date,
        }


@dataclass(frozen=True)
class LoopState:
    """Persisted on/off switch for the weekly cycle and its anchor date."""

    active: bool = False
    anchor_date: date | None = None

    def __post_init__(self) -> None:
        if self.active and self.anchor_date is None:
            raise ValueError("An active loop requires an anchor date")
        if not self.active and self.anchor_date is not None:
            raise ValueError("An inactive loop cannot carry an anchor date")

    @classmethod
    def inactive(cls) -> "LoopState":
        return cls(active=False, anchor_date=None)

    @classmethod
    def started(cls, anchor_date: date) -> "LoopState":
        return cls(active=True, anchor_date=anchor_date)


@dataclass(frozen=True)
class SubmissionWindowStatus:
    """Derived submission state for one student and one week."""

    submitted: bool
    eligible_now: bool
    window_closed: bool
    opens_at: datetime
    closes_at: datetime


@dataclass(frozen=True)
class Student:
    id: str
    first_name: str
    last_name: str
    middle_name: str | None = None
    internship_site: str | None = None

    @property
    def full_name(self) -> str:
        return format_full_name(self.first_name, self.last_name, self.middle_name)


@dataclass(frozen=True)
class WeeklyReportRecord:
    """The slice of a weekly report the cycle needs to know about."""

    student_id: str
    week_number: int
    week_start_date: date
    week_end_date: date
    status: str = "pending"
    date_submitted: datetime | None = None
    student_name: str | None = None
    internship_site: str | None = None
