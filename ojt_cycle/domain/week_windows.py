"""Week window arithmetic for the weekly cycle."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo
from typing import List

from ojt_cycle.domain.entities import SubmissionWindowStatus, WeekWindow

# Friday end -> following Monday start.
GAP_TO_NEXT_MONDAY = timedelta(days=3)
# The band stays open for one week from the instant the window's Friday ends.
SUBMISSION_BAND_LENGTH = timedelta(days=7)


def monday_on_or_after(day: date) -> date:
    """Return ``day`` itself when it is a Monday, otherwise the next Monday."""
    return day + timedelta(days=(7 - day.weekday()) % 7)


def generate_windows(anchor_date: date, count: int) -> List[WeekWindow]:
    """Build ``count`` consecutive windows starting from the anchor's Monday.

    Window *i* starts on the Monday on/after ``anchor_date + (i - 1)`` weeks.
    A weekend anchor therefore rolls forward to the following Monday.
    """
    if count < 1:
        raise ValueError("count must be a positive integer")

    first_monday = monday_on_or_after(anchor_date)
    return [
        WeekWindow(week_number=index, start_date=first_monday + timedelta(weeks=index - 1))
        for index in range(1, count + 1)
    ]


def next_window_after(window: WeekWindow) -> WeekWindow:
    """Return the window that follows ``window`` in the sequence."""
    return WeekWindow(
        week_number=window.week_number + 1,
        start_date=window.end_date + GAP_TO_NEXT_MONDAY,
    )


def start_of_day(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def submission_band(window: WeekWindow, tz: tzinfo) -> tuple[datetime, datetime]:
    """Return the instants at which the window's submission band opens and closes."""
    opens_at = start_of_day(window.end_date + timedelta(days=1), tz)
    closes_at = opens_at + SUBMISSION_BAND_LENGTH
    return opens_at, closes_at


def compute_submission_status(
    window: WeekWindow,
    now: datetime,
    has_existing_submission: bool,
    tz: tzinfo,
) -> SubmissionWindowStatus:
    """Work out whether a student may submit for ``window`` at ``now``.

    Submissions are accepted only on the Saturday that follows the window's
    Friday. The band closes one week after the Friday ends, at 00:00 on the
    following Saturday. ``now`` is converted to ``tz`` before the calendar
    day is taken.
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")

    local_now = now.astimezone(tz)
    opens_at, closes_at = submission_band(window, tz)

    window_closed = local_now >= closes_at
    on_catch_up_day = local_now.date() == opens_at.date()
    eligible_now = on_catch_up_day and local_now < closes_at and not has_existing_submission

    return SubmissionWindowStatus(
        submitted=has_existing_submission,
        eligible_now=eligible_now,
        window_closed=window_closed,
        opens_at=opens_at,
        closes_at=closes_at,
    )
