"""Domain service that owns the weekly loop and the week window sequence."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from enum import Enum
from typing import List

from ojt_cycle.application.exceptions import DuplicateWindowError, NotActiveError
from ojt_cycle.domain import week_windows
from ojt_cycle.domain.clock import Clock
from ojt_cycle.domain.entities import LoopState, SubmissionWindowStatus, WeekWindow
from ojt_cycle.domain.repositories import SettingsStore, WeekStore
from ojt_cycle.infrastructure import log_utils


class AdvanceOutcome(str, Enum):
    CREATED = "created"
    ALREADY_PRESENT = "already_present"
    NOT_ACTIVE = "not_active"
    NO_HISTORY = "no_history"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class AdvanceResult:
    outcome: AdvanceOutcome
    window: WeekWindow | None = None
    message: str = ""

    @property
    def created(self) -> bool:
        return self.outcome is AdvanceOutcome.CREATED


def _describe(window: WeekWindow) -> str:
    return f"Week {window.week_number} ({window.start_date.isoformat()} to {window.end_date.isoformat()})"


class WeekCycleScheduler:
    """Starts and stops the weekly loop and appends week windows exactly once per week.

    Loop state is loaded from and saved to the settings store on every call;
    the scheduler holds no state of its own beyond its collaborators.
    """

    def __init__(
        self,
        *,
        week_store: WeekStore,
        settings_store: SettingsStore,
        clock: Clock,
        tz: tzinfo,
    ) -> None:
        self.week_store = week_store
        self.settings_store = settings_store
        self.clock = clock
        self.tz = tz

    # ------------------------------------------------------------------
    # Pure helpers
    # ------------------------------------------------------------------
    @staticmethod
    def generate_windows(anchor_date: date, count: int) -> List[WeekWindow]:
        return week_windows.generate_windows(anchor_date, count)

    def compute_submission_status(
        self, window: WeekWindow, now: datetime, has_existing_submission: bool
    ) -> SubmissionWindowStatus:
        return week_windows.compute_submission_status(
            window, now, has_existing_submission, self.tz
        )

    # ------------------------------------------------------------------
    # Loop state
    # ------------------------------------------------------------------
    def load_state(self) -> LoopState:
        return self.settings_store.load()

    def require_active(self) -> LoopState:
        """Return the loop state, raising ``NotActiveError`` when the loop is stopped."""
        state = self.settings_store.load()
        if not state.active:
            raise NotActiveError("Weekly loop is not active.")
        return state

    def start_loop(self, anchor_date: date) -> LoopState:
        """Activate the loop from ``anchor_date``; an active loop is simply re-anchored."""
        previous = self.settings_store.load()
        state = LoopState.started(anchor_date)
        self.settings_store.save(state)

        if previous.active:
            log_utils.info(
                f"Weekly loop restarted; anchor moved from {previous.anchor_date} to {anchor_date.isoformat()}."
            )
        else:
            log_utils.info(f"Weekly loop started with anchor {anchor_date.isoformat()}.")

        latest = self.week_store.latest()
        expected_first = week_windows.monday_on_or_after(anchor_date)
        if latest is not None:
            first = self.week_store.find_by_number(1)
            if first is not None and first.start_date != expected_first:
                log_utils.warn(
                    f"Anchor {anchor_date.isoformat()} does not match persisted Week 1 "
                    f"({first.start_date.isoformat()}); the persisted sequence continues from "
                    f"Week {latest.week_number}."
                )
        return state

    def stop_loop(self) -> LoopState:
        """Deactivate the loop. Persisted windows are kept."""
        state = LoopState.inactive()
        self.settings_store.save(state)
        log_utils.info("Weekly loop stopped.")
        return state

    # ------------------------------------------------------------------
    # Window creation
    # ------------------------------------------------------------------
    def seed_first_window(self, anchor_date: date) -> AdvanceResult:
        """Persist Week 1 from ``anchor_date`` when no window exists yet."""
        if self.week_store.count() > 0:
            latest = self.week_store.latest()
            return AdvanceResult(
                AdvanceOutcome.ALREADY_PRESENT,
                latest,
                "Weeks already exist; the loop continues from the latest week.",
            )

        first = week_windows.generate_windows(anchor_date, 1)[0]
        return self._insert(first)

    def advance_if_due(self, now: datetime) -> AdvanceResult:
        """Create the next window once the latest one has elapsed.

        The next window is due from the start of the Saturday that follows the
        latest window's Friday. Repeated calls for the same period return
        ``ALREADY_PRESENT``.
        """
        if now.tzinfo is None:
            raise ValueError("now must be timezone-aware")
        return self._advance(now, enforce_due=True)

    def force_advance(self) -> AdvanceResult:
        """Create the next window now, regardless of how much of the week has elapsed."""
        return self._advance(self.clock.now(), enforce_due=False)

    def _advance(self, now: datetime, *, enforce_due: bool) -> AdvanceResult:
        state = self.settings_store.load()
        if not state.active:
            log_utils.info("Weekly loop is not active; skipping week advance.")
            return AdvanceResult(AdvanceOutcome.NOT_ACTIVE, None, "Weekly loop is not active.")

        latest = self.week_store.latest()
        if latest is None:
            log_utils.warn("Weekly loop is active but no week exists to advance from.")
            return AdvanceResult(
                AdvanceOutcome.NO_HISTORY, None, "No week exists yet; start the cycle with a start date."
            )

        candidate = week_windows.next_window_after(latest)

        if enforce_due:
            due_at = week_windows.start_of_day(latest.end_date + timedelta(days=1), self.tz)
            if now.astimezone(self.tz) < due_at:
                log_utils.debug(
                    f"{_describe(latest)} has not elapsed at {now.isoformat()}; nothing to advance."
                )
                return AdvanceResult(
                    AdvanceOutcome.ALREADY_PRESENT,
                    latest,
                    f"{_describe(latest)} is still the current week.",
                )

        existing = self.week_store.find_by_start_date(candidate.start_date)
        if existing is not None:
            log_utils.info(f"{_describe(existing)} already exists; nothing to advance.")
            return AdvanceResult(
                AdvanceOutcome.ALREADY_PRESENT, existing, f"{_describe(existing)} already exists."
            )

        return self._insert(candidate)

    def _insert(self, window: WeekWindow) -> AdvanceResult:
        try:
            stored = self.week_store.insert(window)
        except DuplicateWindowError:
            log_utils.info(f"{_describe(window)} was created concurrently; treating as already present.")
            return AdvanceResult(
                AdvanceOutcome.ALREADY_PRESENT, window, f"{_describe(window)} already exists."
            )

        log_utils.info(f"Created {_describe(stored)}.")
        return AdvanceResult(AdvanceOutcome.CREATED, stored, f"Created {_describe(stored)}.")
