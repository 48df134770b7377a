"""
KPI aggregation over a record batch.

``compute_kpis(batch, selection)`` is a pure function: it filters the
full batch by period and location, classifies and apportions every
record, consolidates fluid movements and aggregates five independent
KPI groups (cargo, hours, fluids, cost, voyage). Trends come from
re-running the same groups against the preceding comparable window.

Nothing is retained between calls; every call starts from the full,
unfiltered batch.
"""

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from src.metrics import metrics

from .apportionment import apportion
from .classification import Classification, ClassificationDecision, ClassificationPolicy
from .costs import DEFAULT_RATE_TABLE, budget_vs_actual, event_vessel_cost, line_cost
from .facilities import Facility, FacilityRegistry, get_facility_registry
from .fluid_dedup import FluidMovement, consolidate
from .location_resolver import LocationResolver
from .periods import (
    AllTime, Month, Window, YearToDate, batch_date_range, comparison_windows,
    current_reporting_year, in_window,
)
from .records import (
    BulkFluidAction, CostAllocationLine, RecordBatch, VesselManifest, VoyageEvent,
    VoyageRecord, as_datetime, finite_or_none, normalize_code,
)
from .vessels import VesselDirectory, get_vessel_directory

logger = logging.getLogger(__name__)

GALLONS_PER_BARREL = 42.0


# =============================================================================
# Filter selection
# =============================================================================

class Department(str, Enum):
    ALL = "All"
    DRILLING = "Drilling"
    PRODUCTION = "Production"

    @classmethod
    def parse(cls, value: Union[str, "Department", None]) -> "Department":
        if isinstance(value, Department):
            return value
        text = str(value or "all").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        raise ValueError(f"Unknown department: {value!r}")

    @property
    def target(self) -> Optional[Classification]:
        if self == Department.DRILLING:
            return Classification.DRILLING
        if self == Department.PRODUCTION:
            return Classification.PRODUCTION
        return None


ALL_LOCATIONS = ("", "all", "all locations", "*")


@dataclass(frozen=True)
class FilterSelection:
    """The only control surface into the engine."""
    period: Window = AllTime()
    location_id: Optional[int] = None
    department: Department = Department.ALL

    @classmethod
    def parse(
        cls,
        period: str = "all",
        month: Optional[str] = None,
        year: Optional[int] = None,
        location: Optional[Union[str, int]] = None,
        department: Optional[str] = None,
        registry: Optional[FacilityRegistry] = None,
        now: Optional[datetime] = None,
        lag_months: int = 1,
    ) -> "FilterSelection":
        """Build a selection from loose API/CLI parameters; ValueError on bad input."""
        kind = (period or "all").strip().lower()
        if kind in ("all", "all time", "alltime"):
            window: Window = AllTime()
        elif kind == "month":
            if month is None or year is None:
                raise ValueError("period=month requires both month and year")
            window = Month.from_name(str(month), int(year))
        elif kind == "ytd":
            ytd_year = int(year) if year is not None else current_reporting_year(now, lag_months)
            through = Month.from_name(str(month), ytd_year).month if month else None
            window = YearToDate(ytd_year, through)
        else:
            raise ValueError(f"Unknown period: {period!r} (expected all, month or ytd)")

        return cls(
            period=window,
            location_id=resolve_location_id(location, registry or get_facility_registry()),
            department=Department.parse(department),
        )

    def to_dict(self) -> Dict[str, Any]:
        period = self.period
        data: Dict[str, Any] = {"period": "all", "label": getattr(period, "label", "All Time")}
        if isinstance(period, Month):
            data.update(period="month", month=period.month, year=period.year)
        elif isinstance(period, YearToDate):
            data.update(period="ytd", year=period.year, through_month=period.through_month)
        data["location_id"] = self.location_id
        data["department"] = self.department.value
        return data

    @property
    def cache_key(self) -> Tuple:
        return (self.period, self.location_id, self.department.value)


def resolve_location_id(location: Optional[Union[str, int]], registry: FacilityRegistry) -> Optional[int]:
    """Facility id for a location selection; None for All Locations."""
    if location is None:
        return None
    if isinstance(location, int):
        if registry.get(location) is None:
            raise ValueError(f"Unknown facility id: {location}")
        return location
    text = str(location).strip()
    if text.lower() in ALL_LOCATIONS:
        return None
    if text.isdigit():
        return resolve_location_id(int(text), registry)
    facility = registry.by_name(text) or LocationResolver(registry).resolve(text)
    if facility is None:
        raise ValueError(f"Unknown location: {location!r}")
    return facility.facility_id


# =============================================================================
# Scoped batch
# =============================================================================

@dataclass(frozen=True)
class ScopedEvent:
    event: VoyageEvent
    decision: ClassificationDecision
    hours: float  # apportioned


@dataclass(frozen=True)
class ScopedCostLine:
    line: CostAllocationLine
    decision: ClassificationDecision
    cost: float  # apportioned


@dataclass(frozen=True)
class ScopedBatch:
    """Records filtered by period/location, classified and apportioned."""
    events: Tuple[ScopedEvent, ...] = ()
    manifests: Tuple[VesselManifest, ...] = ()
    cost_lines: Tuple[ScopedCostLine, ...] = ()
    movements: Tuple[FluidMovement, ...] = ()
    voyages: Tuple[VoyageRecord, ...] = ()
    bulk_actions: Tuple[BulkFluidAction, ...] = ()
    excluded: Dict[str, int] = field(default_factory=dict, compare=False)
    rate_table: Tuple = DEFAULT_RATE_TABLE

    @property
    def record_counts(self) -> Dict[str, int]:
        return {
            "voyage_events": len(self.events),
            "vessel_manifests": len(self.manifests),
            "cost_allocations": len(self.cost_lines),
            "bulk_actions": len(self.bulk_actions),
            "fluid_movements": len(self.movements),
            "voyages": len(self.voyages),
        }

    @property
    def is_empty(self) -> bool:
        return not (self.events or self.manifests or self.cost_lines or self.bulk_actions or self.voyages)


class _Scoper:
    """Applies one selection to a batch; holds the per-call lookups."""

    def __init__(
        self,
        selection: FilterSelection,
        registry: FacilityRegistry,
        resolver: LocationResolver,
        policy: ClassificationPolicy,
        rate_table: Tuple = DEFAULT_RATE_TABLE,
    ):
        self.selection = selection
        self.registry = registry
        self.resolver = resolver
        self.policy = policy
        self.rate_table = rate_table
        self.target = selection.department.target
        self.facility: Optional[Facility] = (
            registry.get(selection.location_id) if selection.location_id is not None else None
        )
        self.facility_codes = registry.codes_for(self.facility) if self.facility else frozenset()

    def _location_ok(self, texts, code=None) -> bool:
        if self.facility is None:
            return True
        if code is not None and normalize_code(code) in self.facility_codes:
            return True
        return self.resolver.matches_any(texts, self.facility)

    def _location_exclusion(self, texts) -> str:
        """Exclusion key for a record outside the selected location."""
        if self.resolver.resolve_first(t for t in texts if t) is None:
            return "unresolved_location"
        return "outside_location"

    def _department_ok(self, decision: ClassificationDecision) -> bool:
        return self.target is None or decision.classification == self.target

    def scope(self, batch: RecordBatch, window: Window) -> ScopedBatch:
        excluded: Counter = Counter()

        events: List[ScopedEvent] = []
        for event in batch.voyage_events:
            hours = finite_or_none(event.hours)
            if as_datetime(event.event_date) is None or hours is None or hours < 0:
                excluded["malformed"] += 1
                continue
            if not in_window(event.event_date, window):
                continue
            if not self._location_ok((event.location_text, event.location), event.allocation_code):
                excluded[self._location_exclusion((event.location_text, event.location))] += 1
                continue
            decision = self.policy.explain(event)
            if not self._department_ok(decision):
                if decision.classification == Classification.UNCLASSIFIED:
                    excluded["unclassified"] += 1
                continue
            events.append(ScopedEvent(event, decision, apportion(event, hours, decision, self.target)))

        manifests: List[VesselManifest] = []
        for manifest in batch.vessel_manifests:
            if as_datetime(manifest.manifest_date) is None:
                excluded["malformed"] += 1
                continue
            if not in_window(manifest.manifest_date, window):
                continue
            if not self._location_ok((manifest.destination,), manifest.allocation_code):
                excluded[self._location_exclusion((manifest.destination,))] += 1
                continue
            decision = self.policy.explain(manifest)
            if not self._department_ok(decision):
                if decision.classification == Classification.UNCLASSIFIED:
                    excluded["unclassified"] += 1
                continue
            manifests.append(manifest)

        cost_lines: List[ScopedCostLine] = []
        for line in batch.cost_allocations:
            if line.effective_date is None:
                excluded["malformed"] += 1
                continue
            if not in_window(line.effective_date, window):
                continue
            if not self._location_ok(line.location_fields, line.allocation_code):
                excluded[self._location_exclusion(line.location_fields)] += 1
                continue
            decision = self.policy.explain(line)
            if not self._department_ok(decision):
                if decision.classification == Classification.UNCLASSIFIED:
                    excluded["unclassified"] += 1
                continue
            cost = apportion(line, line_cost(line, self.rate_table), decision, self.target)
            cost_lines.append(ScopedCostLine(line, decision, cost))

        bulk_actions: List[BulkFluidAction] = []
        if self.selection.department != Department.PRODUCTION:
            for action in batch.bulk_actions:
                if as_datetime(action.start_date) is None:
                    excluded["malformed"] += 1
                    continue
                if not in_window(action.start_date, window):
                    continue
                if not self._location_ok((action.destination_port,)):
                    continue
                bulk_actions.append(action)
        movements = consolidate(bulk_actions, self.resolver)

        voyages: List[VoyageRecord] = []
        for voyage in batch.voyages:
            if as_datetime(voyage.start_date) is None:
                excluded["malformed"] += 1
                continue
            if in_window(voyage.start_date, window) and self._voyage_counts(voyage):
                voyages.append(voyage)

        return ScopedBatch(
            events=tuple(events),
            manifests=tuple(manifests),
            cost_lines=tuple(cost_lines),
            movements=tuple(movements),
            voyages=tuple(voyages),
            bulk_actions=tuple(bulk_actions),
            excluded=dict(excluded),
            rate_table=self.rate_table,
        )

    def _voyage_counts(self, voyage: VoyageRecord) -> bool:
        if self.facility is not None:
            return self._location_ok((*voyage.locations, voyage.main_destination))
        purpose = (voyage.purpose or "").strip().lower()
        if self.selection.department == Department.PRODUCTION:
            return purpose in ("production", "mixed") or voyage.includes_production
        return purpose in ("drilling", "mixed") or voyage.includes_drilling


# =============================================================================
# KPI groups (pure functions over a ScopedBatch)
# =============================================================================

def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def _num(value) -> float:
    val = finite_or_none(value)
    return val if val is not None else 0.0


def _parent(event: VoyageEvent) -> str:
    return (event.parent_event or "").strip().lower()


def _lifts(scoped: ScopedBatch) -> float:
    return sum(_num(m.lifts) for m in scoped.manifests)


def _cargo_tons(scoped: ScopedBatch) -> float:
    return sum(max(_num(m.deck_tons), 0.0) + max(_num(m.rt_tons), 0.0) for m in scoped.manifests)


def _total_hours(scoped: ScopedBatch) -> float:
    return sum(e.hours for e in scoped.events)


def cargo_metrics(scoped: ScopedBatch) -> Dict[str, Optional[float]]:
    deck = sum(max(_num(m.deck_tons), 0.0) for m in scoped.manifests)
    rt = sum(max(_num(m.rt_tons), 0.0) for m in scoped.manifests)
    numbers = {m.manifest_number for m in scoped.manifests if m.manifest_number}
    manifest_count = len(numbers) if numbers else len(scoped.manifests)
    wet_bulk = sum(
        _num(m.wet_bulk_bbls) + _num(m.wet_bulk_gals) / GALLONS_PER_BARREL for m in scoped.manifests
    )
    cargo = deck + rt
    return {
        "cargo_tons": cargo,
        "deck_tons": deck,
        "rt_tons": rt,
        "rt_percent": _ratio(rt, cargo) * 100.0,
        "lifts": _lifts(scoped),
        "manifest_count": float(manifest_count),
        "cargo_tons_per_visit": _ratio(cargo, manifest_count),
        "wet_bulk_bbls": wet_bulk,
    }


def hours_metrics(scoped: ScopedBatch) -> Dict[str, Optional[float]]:
    total = productive = non_productive = 0.0
    cargo_ops = waiting = rig_activity = transit = 0.0
    for item in scoped.events:
        event, hours = item.event, item.hours
        parent = _parent(event)
        total += hours
        if event.is_productive:
            productive += hours
        elif event.is_non_productive:
            non_productive += hours
        if parent == "cargo ops":
            cargo_ops += hours
        if parent == "transit":
            transit += hours
        if event.is_rig:
            if parent == "waiting on installation":
                waiting += hours
            if parent != "waiting on weather":
                rig_activity += hours

    utilization = min(_ratio(productive, rig_activity + transit) * 100.0, 100.0)
    return {
        "total_hours": total,
        "productive_hours": productive,
        "non_productive_hours": non_productive,
        "productive_hours_percent": _ratio(productive, total) * 100.0,
        "cargo_ops_hours": cargo_ops,
        "waiting_time_offshore_hours": waiting,
        "rig_activity_hours": rig_activity,
        "transit_hours": transit,
        "vessel_utilization_percent": utilization,
        "lifts_per_hour": _ratio(_lifts(scoped), cargo_ops),
    }


def fluid_metrics(scoped: ScopedBatch) -> Dict[str, Optional[float]]:
    volume = sum(m.volume_bbls for m in scoped.movements)
    count = len(scoped.movements)
    return {
        "fluid_volume_bbls": volume,
        "fluid_movement_count": float(count),
        "drilling_fluid_bbls": sum(m.volume_bbls for m in scoped.movements if m.includes_drilling_fluid),
        "completion_fluid_bbls": sum(
            m.volume_bbls for m in scoped.movements if m.includes_completion_fluid
        ),
        "volume_per_movement": volume / count if count else None,
    }


def cost_metrics(scoped: ScopedBatch) -> Dict[str, Optional[float]]:
    total_cost = sum(c.cost for c in scoped.cost_lines)
    vessel_cost = sum(
        event_vessel_cost(e.event, hours=e.hours, rate_table=scoped.rate_table) for e in scoped.events
    )
    return {
        "total_cost": total_cost,
        "cost_per_ton": _ratio(total_cost, _cargo_tons(scoped)),
        "cost_per_hour": _ratio(total_cost, _total_hours(scoped)),
        "vessel_cost": vessel_cost,
    }


def voyage_metrics(scoped: ScopedBatch) -> Dict[str, Optional[float]]:
    vessels = {_vessel_key(m.vessel) for m in scoped.manifests} | {_vessel_key(e.event.vessel) for e in scoped.events}
    vessels.discard("")
    return {
        "voyage_count": float(len(scoped.voyages)),
        "vessel_visits": float(len(vessels)),
    }


def _vessel_key(name: Optional[str]) -> str:
    return " ".join((name or "").split()).lower()


KPI_GROUPS: Dict[str, Callable[[ScopedBatch], Dict[str, Optional[float]]]] = {
    "cargo": cargo_metrics,
    "hours": hours_metrics,
    "fluids": fluid_metrics,
    "cost": cost_metrics,
    "voyage": voyage_metrics,
}

# True: higher is better; False: lower is better; absent: no direction
FAVORABLE_HIGHER: Dict[str, bool] = {
    "cargo_tons": True,
    "deck_tons": True,
    "lifts": True,
    "lifts_per_hour": True,
    "productive_hours": True,
    "productive_hours_percent": True,
    "vessel_utilization_percent": True,
    "fluid_volume_bbls": True,
    "drilling_fluid_bbls": True,
    "completion_fluid_bbls": True,
    "voyage_count": True,
    "non_productive_hours": False,
    "waiting_time_offshore_hours": False,
    "cost_per_ton": False,
    "cost_per_hour": False,
    "vessel_cost": False,
}


# =============================================================================
# Result types
# =============================================================================

@dataclass(frozen=True)
class KpiValue:
    """A KPI with its trend against the preceding comparable window."""
    value: Optional[float]
    trend_percent: Optional[float] = None
    is_favorable_direction: Optional[bool] = None
    comparison_available: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": None if self.value is None else round(self.value, 4),
            "trend_percent": None if self.trend_percent is None else round(self.trend_percent, 2),
            "is_favorable_direction": self.is_favorable_direction,
            "comparison_available": self.comparison_available,
        }


def trend_value(
    name: str, current: Optional[float], previous: Optional[float], comparison_available: bool
) -> KpiValue:
    if not comparison_available or current is None or previous is None:
        return KpiValue(current, None, None, comparison_available)
    trend = 0.0 if previous == 0 else (current - previous) / previous * 100.0
    higher = FAVORABLE_HIGHER.get(name)
    favorable = None if higher is None else (trend >= 0 if higher else trend <= 0)
    return KpiValue(current, trend, favorable, True)


@dataclass(frozen=True)
class KpiSet:
    """Published KPIs for one filter selection."""
    selection: FilterSelection
    cargo: Dict[str, KpiValue]
    hours: Dict[str, KpiValue]
    fluids: Dict[str, KpiValue]
    cost: Dict[str, KpiValue]
    voyage: Dict[str, KpiValue]
    fluid_by_type: Dict[str, float] = field(default_factory=dict)
    vessel_visits_by_company: Dict[str, int] = field(default_factory=dict)
    budget_vs_actual: List[Dict[str, Any]] = field(default_factory=list)
    record_counts: Dict[str, int] = field(default_factory=dict)
    excluded_counts: Dict[str, int] = field(default_factory=dict)
    comparison_label: Optional[str] = None

    def __getattr__(self, name: str) -> KpiValue:
        # flat access: kpis.cargo_tons, kpis.lifts_per_hour
        if name.startswith("_"):
            raise AttributeError(name)
        for group in KPI_GROUPS:
            values = object.__getattribute__(self, group)
            if name in values:
                return values[name]
        raise AttributeError(f"KpiSet has no KPI {name!r}")

    def flat(self) -> Dict[str, KpiValue]:
        out: Dict[str, KpiValue] = {}
        for group in KPI_GROUPS:
            out.update(getattr(self, group))
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selection": self.selection.to_dict(),
            "comparison": self.comparison_label,
            **{group: {k: v.to_dict() for k, v in getattr(self, group).items()} for group in KPI_GROUPS},
            "fluid_by_type": {k: round(v, 2) for k, v in self.fluid_by_type.items()},
            "vessel_visits_by_company": dict(self.vessel_visits_by_company),
            "budget_vs_actual": list(self.budget_vs_actual),
            "record_counts": dict(self.record_counts),
            "excluded_counts": dict(self.excluded_counts),
        }


# =============================================================================
# Entry point
# =============================================================================

def _run_groups(
    scoped_batches: Dict[str, ScopedBatch], parallel: bool, max_workers: int
) -> Dict[str, Dict[str, Dict[str, Optional[float]]]]:
    """Run every KPI group against every scoped batch; results keyed [side][group]."""

    def run(group: str, scoped: ScopedBatch):
        with metrics.timer(f"kpi_group_{group}"):
            return KPI_GROUPS[group](scoped)

    jobs = [(side, group) for side in scoped_batches for group in KPI_GROUPS]
    results: Dict[str, Dict[str, Dict[str, Optional[float]]]] = {side: {} for side in scoped_batches}
    if parallel and max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="kpi") as executor:
            futures = {job: executor.submit(run, job[1], scoped_batches[job[0]]) for job in jobs}
            for (side, group), future in futures.items():
                results[side][group] = future.result()
    else:
        for side, group in jobs:
            results[side][group] = run(group, scoped_batches[side])
    return results


def _bounded_ytd(window: Window, now: Optional[datetime], lag_months: int) -> Window:
    """Bound the running reporting year to the lagged current month for like-for-like trends."""
    if not isinstance(window, YearToDate) or window.through_month is not None:
        return window
    now = now or datetime.now()
    if window.year != current_reporting_year(now, lag_months):
        return window
    lagged = now.year * 12 + (now.month - 1) - max(0, lag_months)
    return YearToDate(window.year, lagged % 12 + 1)


def _breakdowns(scoped: ScopedBatch, vessels: VesselDirectory) -> Dict[str, Any]:
    fluid_by_type: Dict[str, float] = {}
    for movement in scoped.movements:
        key = movement.fluid_type or "Unknown"
        fluid_by_type[key] = fluid_by_type.get(key, 0.0) + movement.volume_bbls

    by_company: Dict[str, set] = {}
    names = [m.vessel for m in scoped.manifests] + [e.event.vessel for e in scoped.events]
    for name in names:
        if not _vessel_key(name):
            continue
        by_company.setdefault(vessels.company_of(name), set()).add(_vessel_key(name))

    budget = budget_vs_actual(
        (c.line for c in scoped.cost_lines),
        ((e.event, e.hours) for e in scoped.events),
        scoped.rate_table,
    )
    return {
        "fluid_by_type": dict(sorted(fluid_by_type.items())),
        "vessel_visits_by_company": {k: len(v) for k, v in sorted(by_company.items())},
        "budget_vs_actual": [b.to_dict() for b in budget],
    }


def compute_kpis(
    batch: RecordBatch,
    selection: Optional[FilterSelection] = None,
    registry: Optional[FacilityRegistry] = None,
    vessels: Optional[VesselDirectory] = None,
    now: Optional[datetime] = None,
    parallel: bool = False,
    max_workers: int = 4,
    resolver: Optional[LocationResolver] = None,
    rate_table: Tuple = DEFAULT_RATE_TABLE,
    lag_months: int = 1,
) -> KpiSet:
    """
    Compute the KPI set for one filter selection.

    Deterministic for a given (batch, selection): the ledger code map is
    learned from the unfiltered batch, groups are pure, and the parallel
    path joins all groups before assembly.
    """
    selection = selection or FilterSelection()
    registry = registry or get_facility_registry()
    vessels = vessels or get_vessel_directory()
    resolver = resolver or LocationResolver(registry)
    if selection.location_id is not None and registry.get(selection.location_id) is None:
        raise ValueError(f"Unknown facility id: {selection.location_id}")

    with metrics.timer("kpi_compute"):
        policy = ClassificationPolicy.for_cost_lines(batch.cost_allocations, registry, resolver)
        scoper = _Scoper(selection, registry, resolver, policy, rate_table)

        scoped = {"current": scoper.scope(batch, selection.period)}
        comparison = comparison_windows(
            _bounded_ytd(selection.period, now, lag_months),
            batch_date_range(batch.dated_timestamps()),
        )
        if comparison is not None:
            trend_current, trend_previous = comparison
            if trend_current != selection.period:
                scoped["trend_current"] = scoper.scope(batch, trend_current)
            scoped["previous"] = scoper.scope(batch, trend_previous)

        results = _run_groups(scoped, parallel, max_workers)

    comparison_available = "previous" in scoped and not scoped["previous"].is_empty
    trend_side = "trend_current" if "trend_current" in scoped else "current"

    groups: Dict[str, Dict[str, KpiValue]] = {}
    for group in KPI_GROUPS:
        current_values = results["current"][group]
        values: Dict[str, KpiValue] = {}
        for name, value in current_values.items():
            previous = results["previous"][group].get(name) if "previous" in results else None
            trend_current_value = results[trend_side][group].get(name)
            kpi = trend_value(name, trend_current_value, previous, comparison_available)
            values[name] = KpiValue(value, kpi.trend_percent, kpi.is_favorable_direction, kpi.comparison_available)
        groups[group] = values

    current = scoped["current"]
    breakdowns = _breakdowns(current, vessels)
    metrics.increment("kpi_sets_computed")
    if current.excluded:
        metrics.increment("records_excluded", sum(current.excluded.values()))

    label = None
    if comparison is not None:
        label = getattr(comparison[1], "label", None)
    logger.debug(
        f"KPIs computed for {selection.to_dict()}: {current.record_counts}, excluded {current.excluded}"
    )
    return KpiSet(
        selection=selection,
        cargo=groups["cargo"],
        hours=groups["hours"],
        fluids=groups["fluids"],
        cost=groups["cost"],
        voyage=groups["voyage"],
        fluid_by_type=breakdowns["fluid_by_type"],
        vessel_visits_by_company=breakdowns["vessel_visits_by_company"],
        budget_vs_actual=breakdowns["budget_vs_actual"],
        record_counts=current.record_counts,
        excluded_counts=dict(sorted(current.excluded.items())),
        comparison_label=label,
    )
