"""
Typed record model for offshore vessel logistics batches.

One frozen dataclass per upstream dataset:
- VoyageEvent: timestamped vessel activity (hours, parent event, port type)
- VesselManifest: cargo movement (deck/RT tons, lifts, wet bulk)
- CostAllocationLine: cost-allocation ledger line keyed by allocation code
- BulkFluidAction: one load or offload leg of a bulk fluid transfer
- VoyageRecord: one full voyage with its visited location list

Every field that may be blank in the source spreadsheets is Optional.
A RecordBatch bundles the five collections; it is created once per
upload and replaced wholesale, never mutated.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)


def normalize_code(code: Any) -> Optional[str]:
    """Normalize an allocation code ("10140.0 " -> "10140"); None when blank."""
    if code is None:
        return None
    if isinstance(code, float):
        if math.isnan(code) or math.isinf(code):
            return None
        if code.is_integer():
            code = int(code)
    text = str(code).strip()
    if text.endswith(".0") and text[:-2].isdigit():
        text = text[:-2]
    return text or None


def as_datetime(value: Any) -> Optional[datetime]:
    """Coerce date-like values to datetime; None for missing or NaT."""
    if value is None:
        return None
    # pandas.Timestamp is a datetime subclass; NaT compares unequal to itself
    if isinstance(value, datetime):
        if value != value:
            return None
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return None


def finite_or_none(value: Any) -> Optional[float]:
    """Return value as float when finite, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        val = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(val) or math.isinf(val):
        return None
    return val


@dataclass(frozen=True)
class VoyageEvent:
    """A timestamped activity performed by a vessel."""
    vessel: Optional[str]
    event_date: Optional[datetime]
    location: Optional[str] = None
    mapped_location: Optional[str] = None
    parent_event: Optional[str] = None
    event: Optional[str] = None
    activity_category: Optional[str] = None  # "Productive" / "Non-Productive"
    hours: Optional[float] = None
    allocation_code: Optional[str] = None
    allocation_description: Optional[str] = None  # free text, may end in "NN%"
    allocation_percentage: Optional[float] = None
    department: Optional[str] = None
    port_type: Optional[str] = None  # "rig" / "base"
    vessel_cost_total: Optional[float] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    remarks: Optional[str] = None
    record_id: Optional[str] = None

    @property
    def location_text(self) -> Optional[str]:
        return self.mapped_location or self.location

    @property
    def is_productive(self) -> bool:
        return (self.activity_category or "").strip().lower() == "productive"

    @property
    def is_non_productive(self) -> bool:
        return (self.activity_category or "").strip().lower() in ("non-productive", "non productive")

    @property
    def is_rig(self) -> bool:
        return (self.port_type or "").strip().lower() == "rig"


@dataclass(frozen=True)
class VesselManifest:
    """One cargo movement record."""
    vessel: Optional[str]
    manifest_date: Optional[datetime]
    origin: Optional[str] = None
    destination: Optional[str] = None
    deck_tons: Optional[float] = None
    rt_tons: Optional[float] = None
    lifts: Optional[float] = None
    wet_bulk_bbls: Optional[float] = None
    wet_bulk_gals: Optional[float] = None
    allocation_code: Optional[str] = None
    department: Optional[str] = None
    manifest_number: Optional[str] = None
    record_id: Optional[str] = None


@dataclass(frozen=True)
class CostAllocationLine:
    """One line from the cost-allocation ledger."""
    allocation_code: Optional[str]
    rig_location: Optional[str] = None
    location_reference: Optional[str] = None
    rig_reference: Optional[str] = None
    description: Optional[str] = None
    department: Optional[str] = None
    project_type: Optional[str] = None
    allocated_days: Optional[float] = None
    total_cost: Optional[float] = None
    budgeted_cost: Optional[float] = None
    daily_rate: Optional[float] = None
    month: Optional[int] = None  # 1-12
    year: Optional[int] = None
    allocation_date: Optional[datetime] = None

    @property
    def effective_date(self) -> Optional[datetime]:
        """Explicit date, else the 15th of the ledger month."""
        if self.allocation_date is not None:
            return self.allocation_date
        if self.year and self.month and 1 <= self.month <= 12:
            return datetime(int(self.year), int(self.month), 15)
        return None

    @property
    def location_fields(self) -> Tuple[str, ...]:
        return tuple(
            text for text in (self.rig_location, self.rig_reference, self.location_reference)
            if text
        )


@dataclass(frozen=True)
class BulkFluidAction:
    """One load or offload leg of a bulk fluid transfer."""
    vessel: Optional[str]
    start_date: Optional[datetime]
    action: Optional[str]  # "load" / "offload"
    origin_port: Optional[str] = None
    destination_port: Optional[str] = None
    destination_port_type: Optional[str] = None  # "rig" / "base"
    volume_bbls: Optional[float] = None
    bulk_type: Optional[str] = None
    is_drilling_fluid: bool = False
    is_completion_fluid: bool = False
    record_id: Optional[str] = None

    @property
    def is_offload(self) -> bool:
        text = (self.action or "").lower()
        return "offload" in text or "discharge" in text

    @property
    def is_load(self) -> bool:
        text = (self.action or "").lower()
        return "load" in text and "offload" not in text


@dataclass(frozen=True)
class VoyageRecord:
    """One full voyage."""
    vessel: Optional[str]
    start_date: Optional[datetime]
    origin_port: Optional[str] = None
    main_destination: Optional[str] = None
    locations: Tuple[str, ...] = ()
    purpose: Optional[str] = None  # "Drilling" / "Production" / "Mixed" / "Other"
    includes_drilling: bool = False
    includes_production: bool = False
    voyage_number: Optional[str] = None
    duration_hours: Optional[float] = None


@dataclass(frozen=True)
class RecordBatch:
    """Immutable bundle of the five record collections of one upload."""
    voyage_events: Tuple[VoyageEvent, ...] = ()
    vessel_manifests: Tuple[VesselManifest, ...] = ()
    cost_allocations: Tuple[CostAllocationLine, ...] = ()
    bulk_actions: Tuple[BulkFluidAction, ...] = ()
    voyages: Tuple[VoyageRecord, ...] = ()
    source: Dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def build(
        cls,
        voyage_events: Iterable[VoyageEvent] = (),
        vessel_manifests: Iterable[VesselManifest] = (),
        cost_allocations: Iterable[CostAllocationLine] = (),
        bulk_actions: Iterable[BulkFluidAction] = (),
        voyages: Iterable[VoyageRecord] = (),
        source: Optional[Dict[str, str]] = None,
    ) -> "RecordBatch":
        batch = cls(
            voyage_events=tuple(voyage_events),
            vessel_manifests=tuple(vessel_manifests),
            cost_allocations=tuple(cost_allocations),
            bulk_actions=tuple(bulk_actions),
            voyages=tuple(voyages),
            source=dict(source or {}),
        )
        logger.info(f"Record batch built: {batch.counts()}")
        return batch

    def counts(self) -> Dict[str, int]:
        return {
            "voyage_events": len(self.voyage_events),
            "vessel_manifests": len(self.vessel_manifests),
            "cost_allocations": len(self.cost_allocations),
            "bulk_actions": len(self.bulk_actions),
            "voyages": len(self.voyages),
        }

    @property
    def total_records(self) -> int:
        return sum(self.counts().values())

    @property
    def is_empty(self) -> bool:
        return self.total_records == 0

    def dated_timestamps(self) -> Tuple[datetime, ...]:
        """All valid record timestamps across datasets (for date-range logic)."""
        stamps = []
        stamps.extend(as_datetime(e.event_date) for e in self.voyage_events)
        stamps.extend(as_datetime(m.manifest_date) for m in self.vessel_manifests)
        stamps.extend(as_datetime(c.effective_date) for c in self.cost_allocations)
        stamps.extend(as_datetime(a.start_date) for a in self.bulk_actions)
        stamps.extend(as_datetime(v.start_date) for v in self.voyages)
        return tuple(s for s in stamps if s is not None)
