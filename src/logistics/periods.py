"""
Reporting windows and comparison-period logic.

Windows are small frozen value types; ``in_window`` never raises on bad
timestamps, it just reports them as outside every bounded window.
"""

import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional, Tuple, Union

from .records import as_datetime

logger = logging.getLogger(__name__)

_MONTH_LOOKUP = {
    **{name.lower(): i for i, name in enumerate(calendar.month_name) if name},
    **{name.lower(): i for i, name in enumerate(calendar.month_abbr) if name},
    "sept": 9,
}


@dataclass(frozen=True)
class AllTime:
    label: str = "All Time"


@dataclass(frozen=True)
class Month:
    """Calendar month; ``month`` is 1-based."""
    month: int
    year: int

    def __post_init__(self):
        if not 1 <= int(self.month) <= 12:
            raise ValueError(f"Month must be 1-12, got {self.month}")

    @classmethod
    def from_name(cls, name: str, year: int) -> "Month":
        key = str(name or "").strip().lower()
        if key.isdigit():
            return cls(int(key), int(year))
        if key not in _MONTH_LOOKUP:
            raise ValueError(f"Unknown month name: {name!r}")
        return cls(_MONTH_LOOKUP[key], int(year))

    @property
    def label(self) -> str:
        return f"{calendar.month_name[self.month]} {self.year}"

    def previous(self) -> "Month":
        if self.month == 1:
            return Month(12, self.year - 1)
        return Month(self.month - 1, self.year)


@dataclass(frozen=True)
class YearToDate:
    """Calendar year, optionally bounded to ``through_month``."""
    year: int
    through_month: Optional[int] = None

    def __post_init__(self):
        if self.through_month is not None and not 1 <= int(self.through_month) <= 12:
            raise ValueError(f"through_month must be 1-12, got {self.through_month}")

    @property
    def label(self) -> str:
        if self.through_month:
            return f"YTD {self.year} (through {calendar.month_abbr[self.through_month]})"
        return f"YTD {self.year}"


@dataclass(frozen=True)
class DateRange:
    """Half-open [start, end) range."""
    start: datetime
    end: datetime

    @property
    def label(self) -> str:
        return f"{self.start:%Y-%m-%d} to {self.end:%Y-%m-%d}"

    @property
    def midpoint(self) -> datetime:
        return self.start + (self.end - self.start) / 2


Window = Union[AllTime, Month, YearToDate, DateRange]


def in_window(timestamp, window: Window) -> bool:
    """True when timestamp falls in window; missing/NaT timestamps never match bounded windows."""
    if isinstance(window, AllTime):
        return True
    ts = as_datetime(timestamp)
    if ts is None:
        return False
    if isinstance(window, Month):
        return ts.year == window.year and ts.month == window.month
    if isinstance(window, YearToDate):
        if ts.year != window.year:
            return False
        return window.through_month is None or ts.month <= window.through_month
    if isinstance(window, DateRange):
        return window.start <= _naive(ts, window.start) < window.end
    raise TypeError(f"Unsupported window type: {type(window).__name__}")


def _naive(ts: datetime, reference: datetime) -> datetime:
    if ts.tzinfo is not None and reference.tzinfo is None:
        return ts.replace(tzinfo=None)
    return ts


def current_reporting_year(now: Optional[Union[datetime, date]] = None, lag_months: int = 1) -> int:
    """Year of ``now`` shifted back by the feed's reporting lag."""
    now = now or datetime.now()
    lag = max(0, int(lag_months))
    total = now.year * 12 + (now.month - 1) - lag
    return total // 12


def current_ytd(now: Optional[Union[datetime, date]] = None, lag_months: int = 1) -> YearToDate:
    """YTD window for the current reporting year."""
    return YearToDate(current_reporting_year(now, lag_months))


def batch_date_range(timestamps: Iterable[datetime]) -> Optional[DateRange]:
    """Smallest half-open range covering the given timestamps."""
    valid = [as_datetime(t) for t in timestamps]
    valid = [t.replace(tzinfo=None) if t.tzinfo else t for t in valid if t is not None]
    if not valid:
        return None
    start, last = min(valid), max(valid)
    end = datetime.fromordinal(last.toordinal() + 1)
    return DateRange(datetime(start.year, start.month, start.day), end)


def split_range(date_range: DateRange) -> Tuple[DateRange, DateRange]:
    mid = date_range.midpoint
    return DateRange(date_range.start, mid), DateRange(mid, date_range.end)


def comparison_windows(
    window: Window, date_range: Optional[DateRange]
) -> Optional[Tuple[Window, Window]]:
    """
    (current, previous) windows for trend computation.

    All-time compares the second half of the batch range against the
    first half. None when no comparison is possible.
    """
    if isinstance(window, Month):
        return window, window.previous()
    if isinstance(window, YearToDate):
        return window, YearToDate(window.year - 1, window.through_month)
    if isinstance(window, AllTime):
        if date_range is None or date_range.end <= date_range.start:
            return None
        first, second = split_range(date_range)
        return second, first
    if isinstance(window, DateRange):
        span = window.end - window.start
        return window, DateRange(window.start - span, window.start)
    return None


def previous_window(window: Window, date_range: Optional[DateRange] = None) -> Optional[Window]:
    pair = comparison_windows(window, date_range)
    return pair[1] if pair else None
