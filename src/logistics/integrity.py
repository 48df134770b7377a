"""
Data integrity validation for uploaded record batches.

Checks each dataset for completeness and logical consistency, then the
batch as a whole for date-parsing anomalies, allocation codes missing
from the facility registry, unresolved location strings and weak
cost-allocation coverage.

The report is advisory: it never blocks KPI aggregation and the
validator never raises on record content.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from src.metrics import timed

from .classification import build_ledger_code_map
from .facilities import FacilityRegistry, get_facility_registry
from .fluid_dedup import BASE_PORT_KEYWORDS
from .location_resolver import LocationResolver, normalize_location
from .records import RecordBatch, as_datetime, finite_or_none, normalize_code

logger = logging.getLogger(__name__)

MIN_PLAUSIBLE_YEAR = 2000
PENALTY = {"Critical": 10.0, "Warning": 3.0, "Info": 0.0}
MAX_PENALTY = 50.0
MAX_LISTED = 10


class Severity(str, Enum):
    CRITICAL = "Critical"
    WARNING = "Warning"
    INFO = "Info"


class IssueCategory(str, Enum):
    COMPLETENESS = "Completeness"
    CONSISTENCY = "Consistency"
    FORMAT = "Format"
    LOGIC = "Logic"
    CROSS_REFERENCE = "Cross-Reference"


# Issues in these categories describe the batch as a whole and are
# charged against the overall score; the rest feed dataset scores.
BATCH_LEVEL_CATEGORIES = (IssueCategory.FORMAT, IssueCategory.CROSS_REFERENCE)


@dataclass(frozen=True)
class Issue:
    severity: Severity
    category: IssueCategory
    dataset: str
    message: str
    field: Optional[str] = None
    record_ref: Optional[str] = None
    count: int = 1
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.value,
            "category": self.category.value,
            "dataset": self.dataset,
            "message": self.message,
            "field": self.field,
            "record_ref": self.record_ref,
            "count": self.count,
            "suggestion": self.suggestion,
        }


@dataclass
class DatasetQuality:
    record_count: int
    completeness_score: float = 100.0
    consistency_score: float = 100.0

    @property
    def score(self) -> float:
        return (self.completeness_score + self.consistency_score) / 2.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_count": self.record_count,
            "completeness_score": round(self.completeness_score, 1),
            "consistency_score": round(self.consistency_score, 1),
        }


@dataclass
class IntegrityReport:
    issues: List[Issue] = field(default_factory=list)
    score: float = 100.0
    datasets: Dict[str, DatasetQuality] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)
    generated_at: datetime = field(default_factory=datetime.now)

    def by_severity(self, severity: Severity) -> List[Issue]:
        return [i for i in self.issues if i.severity == severity]

    @property
    def critical_count(self) -> int:
        return len(self.by_severity(Severity.CRITICAL))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": round(self.score, 1),
            "generated_at": self.generated_at.isoformat(),
            "issue_counts": {s.value: len(self.by_severity(s)) for s in Severity},
            "datasets": {k: v.to_dict() for k, v in self.datasets.items()},
            "issues": [i.to_dict() for i in self.issues],
            "recommendations": list(self.recommendations),
        }


class _Tally:
    """Aggregates per-record findings into one Issue per check."""

    def __init__(self, dataset: str):
        self.dataset = dataset
        self._counts: Counter = Counter()
        self._first_ref: Dict[Tuple, str] = {}
        self._meta: Dict[Tuple, Tuple] = {}

    def add(self, key: Tuple, ref: str, severity: Severity, category: IssueCategory,
            message: str, field_name: Optional[str] = None, suggestion: Optional[str] = None):
        self._counts[key] += 1
        self._first_ref.setdefault(key, ref)
        self._meta.setdefault(key, (severity, category, message, field_name, suggestion))

    def count(self, category: IssueCategory) -> int:
        return sum(n for key, n in self._counts.items() if self._meta[key][1] == category)

    def issues(self) -> List[Issue]:
        out = []
        for key, n in self._counts.items():
            severity, category, message, field_name, suggestion = self._meta[key]
            out.append(Issue(
                severity=severity,
                category=category,
                dataset=self.dataset,
                message=f"{message} ({n} record{'s' if n != 1 else ''})",
                field=field_name,
                record_ref=self._first_ref[key],
                count=n,
                suggestion=suggestion,
            ))
        return out


def _ref(record, index: int) -> str:
    return str(getattr(record, "record_id", None) or f"Row {index + 1}")


def _naive_datetime(value) -> Optional[datetime]:
    """Timestamps compared as wall-clock time; batches may mix aware and naive values."""
    ts = as_datetime(value)
    if ts is not None and ts.tzinfo is not None:
        return ts.replace(tzinfo=None)
    return ts


def _blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, float):
        return finite_or_none(value) is None
    return False


# dataset -> (required fields, critical fields, date accessor)
DATASET_SPECS: Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...], Callable]] = {
    "voyage_events": (
        ("vessel", "event_date", "parent_event", "location", "hours"),
        ("vessel", "event_date"),
        lambda r: r.event_date,
    ),
    "vessel_manifests": (
        ("vessel", "manifest_date", "destination"),
        ("vessel", "manifest_date"),
        lambda r: r.manifest_date,
    ),
    "cost_allocations": (
        ("allocation_code", "rig_location"),
        ("allocation_code",),
        lambda r: r.effective_date,
    ),
    "bulk_actions": (
        ("vessel", "start_date", "action", "volume_bbls", "bulk_type"),
        ("vessel", "start_date"),
        lambda r: r.start_date,
    ),
    "voyages": (
        ("vessel", "start_date", "locations"),
        ("vessel", "start_date"),
        lambda r: r.start_date,
    ),
}


class DataIntegrityValidator:
    """Produces an IntegrityReport for a RecordBatch."""

    def __init__(
        self,
        registry: Optional[FacilityRegistry] = None,
        resolver: Optional[LocationResolver] = None,
        now: Optional[datetime] = None,
        single_month_min_records: int = 10,
        coverage_warning_percent: float = 80.0,
    ):
        self.registry = registry or get_facility_registry()
        self.resolver = resolver or LocationResolver(self.registry)
        self.now = now
        self.single_month_min_records = single_month_min_records
        self.coverage_warning_percent = coverage_warning_percent

    @timed("integrity_validate")
    def validate(self, batch: RecordBatch) -> IntegrityReport:
        now = self.now or datetime.now()
        report = IntegrityReport(generated_at=now)

        if batch.is_empty:
            report.issues.append(Issue(
                Severity.INFO, IssueCategory.COMPLETENESS, "batch",
                "Batch contains no records", suggestion="Upload at least one dataset",
            ))
            report.recommendations.append("No data loaded - upload spreadsheets to compute KPIs")
            return report

        for dataset in DATASET_SPECS:
            records = getattr(batch, dataset)
            quality, issues = self._validate_dataset(dataset, records)
            report.datasets[dataset] = quality
            report.issues.extend(issues)
            report.issues.extend(self._date_issues(dataset, records, now))

        report.issues.extend(self._allocation_code_issues(batch))
        report.issues.extend(self._unresolved_location_issues(batch))
        report.issues.extend(self._coverage_issues(batch))

        report.score = self._score(report)
        report.recommendations.extend(self._recommendations(report))

        logger.info(
            f"Integrity validation: score {report.score:.1f}, "
            f"{report.critical_count} critical, {len(report.issues)} issues"
        )
        return report

    # -------------------------------------------------------------------------
    # Per-dataset checks
    # -------------------------------------------------------------------------

    def _validate_dataset(self, dataset: str, records: Sequence) -> Tuple[DatasetQuality, List[Issue]]:
        required, critical, _ = DATASET_SPECS[dataset]
        tally = _Tally(dataset)
        missing = 0

        for index, record in enumerate(records):
            ref = _ref(record, index)
            for name in required:
                value = getattr(record, name, None)
                if _blank(value) or (name == "locations" and not value):
                    missing += 1
                    severity = Severity.CRITICAL if name in critical else Severity.WARNING
                    tally.add(("missing", name), ref, severity, IssueCategory.COMPLETENESS,
                              f"Missing required field: {name}", name,
                              f"Ensure {name} is provided for all records")
            self._logic_checks(dataset, record, ref, tally)

        if dataset == "cost_allocations":
            self._duplicate_codes(records, tally)

        n = len(records)
        quality = DatasetQuality(record_count=n)
        if n:
            quality.completeness_score = max(0.0, 100.0 - missing / (n * len(required)) * 100.0)
            logic = tally.count(IssueCategory.LOGIC) + tally.count(IssueCategory.CONSISTENCY)
            quality.consistency_score = max(0.0, 100.0 - logic / n * 100.0)
        return quality, tally.issues()

    def _logic_checks(self, dataset: str, record, ref: str, tally: _Tally) -> None:
        if dataset == "voyage_events":
            start, end = _naive_datetime(record.started_at), _naive_datetime(record.ended_at)
            if start is not None and end is not None and end < start:
                tally.add(("end_before_start",), ref, Severity.CRITICAL, IssueCategory.LOGIC,
                          "Event end time is before start time", "ended_at",
                          "Verify event time sequence")
            hours = finite_or_none(record.hours)
            if hours is not None and hours < 0:
                tally.add(("negative_hours",), ref, Severity.CRITICAL, IssueCategory.LOGIC,
                          "Negative event hours", "hours")
            cost = finite_or_none(record.vessel_cost_total)
            if cost is not None and cost < 0:
                tally.add(("negative_cost",), ref, Severity.CRITICAL, IssueCategory.LOGIC,
                          "Negative vessel cost", "vessel_cost_total")

        elif dataset == "vessel_manifests":
            for name in ("deck_tons", "rt_tons"):
                value = finite_or_none(getattr(record, name))
                if value is not None and value < 0:
                    tally.add(("negative_tonnage", name), ref, Severity.CRITICAL, IssueCategory.LOGIC,
                              f"Negative tonnage in {name}", name, "Check cargo quantities in source")
            lifts = finite_or_none(record.lifts)
            if lifts is not None and lifts < 0:
                tally.add(("negative_lifts",), ref, Severity.CRITICAL, IssueCategory.LOGIC,
                          "Negative lift count", "lifts")

        elif dataset == "cost_allocations":
            for name in ("total_cost", "budgeted_cost"):
                value = finite_or_none(getattr(record, name))
                if value is not None and value < 0:
                    tally.add(("negative_cost", name), ref, Severity.CRITICAL, IssueCategory.LOGIC,
                              f"Negative cost in {name}", name)
            days = finite_or_none(record.allocated_days)
            if days is not None and days < 0:
                tally.add(("negative_days",), ref, Severity.WARNING, IssueCategory.LOGIC,
                          "Negative allocated days", "allocated_days")

        elif dataset == "bulk_actions":
            volume = finite_or_none(record.volume_bbls)
            if record.volume_bbls is not None and (volume is None or volume <= 0):
                tally.add(("non_positive_volume",), ref, Severity.WARNING, IssueCategory.LOGIC,
                          "Zero or negative fluid quantity", "volume_bbls",
                          "Verify bulk quantities and units")
            if record.is_offload and _blank(record.destination_port):
                tally.add(("offload_no_destination",), ref, Severity.WARNING, IssueCategory.COMPLETENESS,
                          "Offload action without destination", "destination_port")

        elif dataset == "voyages":
            duration = finite_or_none(record.duration_hours)
            if duration is not None and duration <= 0:
                tally.add(("non_positive_duration",), ref, Severity.WARNING, IssueCategory.LOGIC,
                          "Voyage duration is zero or negative", "duration_hours")

    def _duplicate_codes(self, lines: Sequence, tally: _Tally) -> None:
        seen: Counter = Counter()
        for line in lines:
            code = normalize_code(line.allocation_code)
            if code is not None:
                seen[(code, line.year, line.month)] += 1
        for (code, year, month), n in sorted(seen.items(), key=lambda kv: str(kv[0])):
            if n > 1:
                period = f" in {month:02d}/{year}" if year and month else ""
                for _ in range(n - 1):
                    tally.add(("duplicate_code", code, year, month), f"LC {code}", Severity.WARNING,
                              IssueCategory.CONSISTENCY, f"Duplicate allocation code {code}{period}",
                              "allocation_code", "Merge or remove duplicate ledger lines")

    # -------------------------------------------------------------------------
    # Batch-level checks
    # -------------------------------------------------------------------------

    def _date_issues(self, dataset: str, records: Sequence, now: datetime) -> List[Issue]:
        accessor = DATASET_SPECS[dataset][2]
        dates = [d for d in (_naive_datetime(accessor(r)) for r in records) if d is not None]
        issues: List[Issue] = []

        too_old = [d for d in dates if d.year < MIN_PLAUSIBLE_YEAR]
        too_new = [d for d in dates if d.year > now.year + 1]
        if too_old:
            issues.append(Issue(
                Severity.WARNING, IssueCategory.FORMAT, dataset,
                f"{len(too_old)} dates before {MIN_PLAUSIBLE_YEAR} (earliest {min(too_old):%Y-%m-%d}); "
                f"likely two-digit year misparse",
                count=len(too_old), suggestion="Use four-digit years in source dates",
            ))
        if too_new:
            issues.append(Issue(
                Severity.WARNING, IssueCategory.FORMAT, dataset,
                f"{len(too_new)} dates more than a year in the future (latest {max(too_new):%Y-%m-%d})",
                count=len(too_new), suggestion="Check date column format",
            ))

        months = {(d.year, d.month) for d in dates}
        if len(dates) >= self.single_month_min_records and len(months) == 1:
            year, month = next(iter(months))
            issues.append(Issue(
                Severity.CRITICAL, IssueCategory.FORMAT, dataset,
                f"All {len(dates)} records fall in {month:02d}/{year}; dates may have been misparsed",
                count=len(dates), suggestion="Verify the date column parses per-record dates",
            ))
        return issues

    def _allocation_code_issues(self, batch: RecordBatch) -> List[Issue]:
        ledger_codes = {normalize_code(line.allocation_code) for line in batch.cost_allocations}
        ledger_codes.discard(None)
        known = self.registry.all_codes
        # learned classifications are only used for the message
        learned = build_ledger_code_map(batch.cost_allocations, self.registry, self.resolver)

        ledger_only: Counter = Counter()
        unknown: Counter = Counter()
        for record in list(batch.voyage_events) + list(batch.vessel_manifests):
            code = normalize_code(record.allocation_code)
            if code is None or code in known:
                continue
            if code in ledger_codes:
                ledger_only[code] += 1
            else:
                unknown[code] += 1

        issues: List[Issue] = []
        if ledger_only:
            classified = sum(1 for c in ledger_only if c in learned)
            issues.append(Issue(
                Severity.INFO, IssueCategory.CROSS_REFERENCE, "batch",
                f"{len(ledger_only)} allocation codes not in facility registry but present in "
                f"cost-allocation ledger ({classified} classified from ledger): "
                f"{_listing(ledger_only)}",
                field="allocation_code", count=sum(ledger_only.values()),
            ))
        if unknown:
            issues.append(Issue(
                Severity.WARNING, IssueCategory.CROSS_REFERENCE, "batch",
                f"{len(unknown)} allocation codes unknown to registry and ledger: {_listing(unknown)}",
                field="allocation_code", count=sum(unknown.values()),
                suggestion="Add the codes to the cost-allocation ledger or facility registry",
            ))
        return issues

    def _unresolved_location_issues(self, batch: RecordBatch) -> List[Issue]:
        unresolved: Counter = Counter()
        for text in _location_strings(batch):
            key = normalize_location(text)
            if not key or any(port in key for port in BASE_PORT_KEYWORDS):
                continue
            if self.resolver.resolve(text) is None:
                unresolved[text.strip()] += 1
        if not unresolved:
            return []
        return [Issue(
            Severity.WARNING, IssueCategory.CROSS_REFERENCE, "batch",
            f"{len(unresolved)} location strings did not resolve to a facility: {_listing(unresolved)}",
            field="location", count=sum(unresolved.values()),
            suggestion="Add aliases for these names to the facility registry",
        )]

    def _coverage_issues(self, batch: RecordBatch) -> List[Issue]:
        events = batch.voyage_events
        if not events:
            return []
        coded = sum(1 for e in events if normalize_code(e.allocation_code) is not None)
        coverage = coded / len(events) * 100.0
        if coverage >= self.coverage_warning_percent:
            return []
        return [Issue(
            Severity.WARNING, IssueCategory.CROSS_REFERENCE, "voyage_events",
            f"Only {coverage:.1f}% of voyage events carry an allocation code "
            f"(threshold {self.coverage_warning_percent:.0f}%)",
            field="allocation_code", count=len(events) - coded,
            suggestion="Classification falls back to department and location heuristics",
        )]

    # -------------------------------------------------------------------------
    # Scoring
    # -------------------------------------------------------------------------

    @staticmethod
    def _score(report: IntegrityReport) -> float:
        scored = [q.score for q in report.datasets.values() if q.record_count > 0]
        base = float(np.mean(scored)) if scored else 100.0
        penalty = sum(
            PENALTY[i.severity.value] for i in report.issues if i.category in BATCH_LEVEL_CATEGORIES
        )
        return float(np.clip(base - min(penalty, MAX_PENALTY), 0.0, 100.0))

    @staticmethod
    def _recommendations(report: IntegrityReport) -> List[str]:
        recs: List[str] = []
        if report.score < 70:
            recs.append("Critical data quality issues detected - inspect before trusting these KPIs")
        if report.critical_count:
            recs.append(f"{report.critical_count} critical issues should be resolved before using data for decisions")
        if any(i.category == IssueCategory.CROSS_REFERENCE and i.field == "allocation_code" for i in report.issues):
            recs.append("Allocation code inconsistencies detected - verify cost allocation mappings")
        if any(i.category == IssueCategory.FORMAT for i in report.issues):
            recs.append("Date anomalies detected - re-export source files with ISO dates")
        return recs


def _listing(counter: Counter) -> str:
    items = [f"{k} ({n})" for k, n in counter.most_common(MAX_LISTED)]
    extra = len(counter) - MAX_LISTED
    if extra > 0:
        items.append(f"+{extra} more")
    return ", ".join(items)


def _location_strings(batch: RecordBatch) -> Iterable[str]:
    for event in batch.voyage_events:
        if event.location_text:
            yield event.location_text
    for manifest in batch.vessel_manifests:
        if manifest.destination:
            yield manifest.destination
    for line in batch.cost_allocations:
        if line.rig_location:
            yield line.rig_location
    for action in batch.bulk_actions:
        if action.destination_port:
            yield action.destination_port
    for voyage in batch.voyages:
        yield from (loc for loc in voyage.locations if loc)
