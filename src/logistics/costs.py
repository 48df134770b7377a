"""
Vessel cost model.

Daily charter rates by effective date, per-event vessel cost and
per-line ledger cost, plus budget-vs-actual comparison per allocation code.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .records import CostAllocationLine, VoyageEvent, as_datetime, finite_or_none, normalize_code

logger = logging.getLogger(__name__)

# (effective_from, daily_rate_usd); sorted by date
DEFAULT_RATE_TABLE: Tuple[Tuple[datetime, float], ...] = (
    (datetime(2024, 1, 1), 33000.0),
    (datetime(2025, 4, 1), 37800.0),
)


def daily_rate_for(when, rate_table: Tuple[Tuple[datetime, float], ...] = DEFAULT_RATE_TABLE) -> float:
    """Rate in force on ``when``; earliest rate before the table, latest when undated."""
    ts = as_datetime(when)
    if ts is None:
        return rate_table[-1][1]
    ts = ts.replace(tzinfo=None)
    rate = rate_table[0][1]
    for effective_from, daily_rate in rate_table:
        if ts >= effective_from:
            rate = daily_rate
    return rate


def event_vessel_cost(
    event: VoyageEvent,
    hours: Optional[float] = None,
    rate_table: Tuple[Tuple[datetime, float], ...] = DEFAULT_RATE_TABLE,
) -> float:
    """
    Vessel cost of an event, optionally for an apportioned share of its hours.

    A stored cost is scaled by hours / raw hours; without one the cost
    is hours / 24 x the daily rate on the event date.
    """
    stored = finite_or_none(event.vessel_cost_total)
    if stored is not None and stored < 0:
        stored = None
    raw_hours = finite_or_none(event.hours)
    hrs = raw_hours if hours is None else finite_or_none(hours)

    if stored is not None:
        if hours is None:
            return stored
        if raw_hours and raw_hours > 0 and hrs is not None:
            return stored * min(max(hrs, 0.0) / raw_hours, 1.0)
    if hrs is None or hrs <= 0:
        return 0.0
    return hrs / 24.0 * daily_rate_for(event.event_date, rate_table)


def line_cost(
    line: CostAllocationLine,
    rate_table: Tuple[Tuple[datetime, float], ...] = DEFAULT_RATE_TABLE,
) -> float:
    """First available of total cost, budgeted cost, allocated days x rate."""
    for value in (line.total_cost, line.budgeted_cost):
        cost = finite_or_none(value)
        if cost is not None:
            return cost
    days = finite_or_none(line.allocated_days)
    if days is None:
        return 0.0
    rate = finite_or_none(line.daily_rate)
    if rate is None:
        rate = daily_rate_for(line.effective_date, rate_table)
    return days * rate


def budgeted_line_cost(
    line: CostAllocationLine,
    rate_table: Tuple[Tuple[datetime, float], ...] = DEFAULT_RATE_TABLE,
) -> float:
    cost = finite_or_none(line.budgeted_cost)
    if cost is not None:
        return cost
    return line_cost(line, rate_table)


@dataclass(frozen=True)
class BudgetComparison:
    allocation_code: str
    budgeted: float
    actual: float

    @property
    def variance(self) -> float:
        return self.actual - self.budgeted

    @property
    def variance_percent(self) -> float:
        if self.budgeted == 0:
            return 0.0
        return self.variance / self.budgeted * 100.0

    def to_dict(self) -> Dict:
        return {
            "allocation_code": self.allocation_code,
            "budgeted": round(self.budgeted, 2),
            "actual": round(self.actual, 2),
            "variance": round(self.variance, 2),
            "variance_percent": round(self.variance_percent, 2),
        }


def budget_vs_actual(
    lines: Iterable[CostAllocationLine],
    events: Iterable[Union[VoyageEvent, Tuple[VoyageEvent, Optional[float]]]],
    rate_table: Tuple[Tuple[datetime, float], ...] = DEFAULT_RATE_TABLE,
) -> List[BudgetComparison]:
    """
    Per allocation code: ledger budget vs vessel cost of events carrying the code.

    Events may be passed as (event, apportioned_hours) pairs; the actual
    is then charged for those hours only.
    """
    budgeted: Dict[str, float] = {}
    for line in lines:
        code = normalize_code(line.allocation_code)
        if code is None:
            continue
        budgeted[code] = budgeted.get(code, 0.0) + budgeted_line_cost(line, rate_table)

    actual: Dict[str, float] = {}
    for entry in events:
        event, hours = entry if isinstance(entry, tuple) else (entry, None)
        code = normalize_code(event.allocation_code)
        if code is None or code not in budgeted:
            continue
        actual[code] = actual.get(code, 0.0) + event_vessel_cost(event, hours, rate_table)

    return [
        BudgetComparison(code, budgeted[code], actual.get(code, 0.0))
        for code in sorted(budgeted)
    ]
