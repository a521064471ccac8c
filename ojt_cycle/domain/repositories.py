from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable, List, Optional

from ojt_cycle.domain.entities import LoopState, Student, WeekWindow, WeeklyReportRecord


class WeekStore(ABC):
    """Append-only persistence for week windows."""

    @abstractmethod
    def latest(self) -> Optional[WeekWindow]:
        """Return the window with the highest week number, if any."""

    @abstractmethod
    def find_by_start_date(self, start_date: date) -> Optional[WeekWindow]:
        """Return the window starting on ``start_date``, if any."""

    @abstractmethod
    def find_by_number(self, week_number: int) -> Optional[WeekWindow]:
        """Return the window with the given week number, if any."""

    @abstractmethod
    def insert(self, window: WeekWindow) -> WeekWindow:
        """Persist ``window``; raise ``DuplicateWindowError`` if its number or start date is taken."""

    @abstractmethod
    def list_all(self) -> List[WeekWindow]:
        """Return every window ordered by week number."""

    @abstractmethod
    def count(self) -> int:
        """Return the number of persisted windows."""


class SettingsStore(ABC):
    """Singleton storage for the loop state."""

    @abstractmethod
    def load(self) -> LoopState:
        """Return the persisted loop state, or an inactive state when none is stored."""

    @abstractmethod
    def save(self, state: LoopState) -> None:
        """Persist ``state``."""


class ReportStore(ABC):
    """Weekly report lookups and creation."""

    @abstractmethod
    def exists(self, student_id: str, week_start_date: date) -> bool:
        """Return whether the student already submitted for the week."""

    @abstractmethod
    def find_for_weeks(self, week_start_dates: Iterable[date]) -> List[WeeklyReportRecord]:
        """Return all reports filed for any of the given weeks."""

    @abstractmethod
    def create(self, record: WeeklyReportRecord) -> WeeklyReportRecord:
        """Persist a new report record.

        Raises ``DuplicateReportError`` when the student already has a report
        for the same week start date.
        """


class StudentStore(ABC):
    @abstractmethod
    def list_students(self) -> List[Student]:
        """Return every student, ordered by last name."""

    @abstractmethod
    def get_student(self, student_id: str) -> Optional[Student]:
        """Return a single student, if present."""
