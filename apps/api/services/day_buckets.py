"""
Time-Window Bucketizer

Builds the gap-free day series a reporting window is drawn on, and decides
which local day a submission belongs to for a given office.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional

from services.identity import OfficeCatalog


@dataclass(frozen=True)
class ReportWindow:
    """Inclusive calendar-date range [start, end]."""
    start: date
    end: date

    @property
    def days(self) -> int:
        """Calendar days covered, never less than 1 (empty or inverted windows count as 1)."""
        return max(1, (self.end - self.start).days + 1)

    @property
    def lower_bound(self) -> datetime:
        """First instant inside the window."""
        return datetime.combine(self.start, time.min)

    @property
    def upper_bound(self) -> datetime:
        """First instant after the window."""
        return datetime.combine(self.end + timedelta(days=1), time.min)

    @classmethod
    def ending_on(cls, end: date, days: int) -> "ReportWindow":
        return cls(start=end - timedelta(days=max(1, days) - 1), end=end)


@dataclass
class DayBucket:
    """
    One slot of a report series.

    Window series carry the calendar ``day`` and a "month-day" label; the
    today-only series uses clock-time labels and no day.
    """
    label: str
    exercise_counts: Dict[str, int] = field(default_factory=dict)
    day: Optional[date] = None

    def add(self, exercise: str, count: int) -> None:
        self.exercise_counts[exercise] = self.exercise_counts.get(exercise, 0) + count


def day_label(day: date) -> str:
    """``11-5`` for November 5th; no zero padding."""
    return f"{day.month}-{day.day}"


def build_day_skeleton(start: date, end: date) -> List[DayBucket]:
    """
    One empty bucket per calendar day from start through end, oldest first.

    An inverted window yields no buckets.
    """
    buckets = []
    cur = start
    while cur <= end:
        buckets.append(DayBucket(label=day_label(cur), day=cur))
        cur += timedelta(days=1)
    return buckets


def local_day_offset(catalog: OfficeCatalog, office_name: Optional[str]) -> timedelta:
    """Offset from the server clock to the office's clock; zero for unknown offices."""
    return catalog.day_offset(office_name)


def total_reps(buckets: Iterable[DayBucket]) -> int:
    """Sum of every exercise count across a series."""
    return sum(sum(b.exercise_counts.values()) for b in buckets)
