"""
Bulk fluid movement deduplication.

The raw bulk-action feed records each physical transfer twice: a load
leg at the origin and an offload leg at the destination. Only
offload legs delivered to a rig are counted, grouped by
(vessel, calendar day, fluid type, destination) into one FluidMovement.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from .facilities import Facility
from .location_resolver import LocationResolver, normalize_location
from .records import BulkFluidAction, as_datetime, finite_or_none

logger = logging.getLogger(__name__)

BASE_PORT_KEYWORDS = ("fourchon", "port fourchon", "galveston", "venice")

# Load/offload volumes differing by more than this are reported
VOLUME_MISMATCH_TOLERANCE_BBLS = 0.01


class MovementType(str, Enum):
    FOURCHON_TO_OFFSHORE = "Fourchon-to-Offshore"
    OFFSHORE_TO_OFFSHORE = "Offshore-to-Offshore"
    VESSEL_TO_FACILITY = "Vessel-to-Facility"
    OTHER = "Other"


@dataclass(frozen=True)
class FluidMovement:
    """One consolidated, single-counted fluid delivery."""
    vessel: str
    day: date
    fluid_type: str
    destination: str
    volume_bbls: float
    action_count: int
    fluid_types: FrozenSet[str]
    includes_drilling_fluid: bool
    includes_completion_fluid: bool
    movement_type: MovementType = MovementType.OTHER
    origin: Optional[str] = None
    destination_facility_id: Optional[int] = None

    @property
    def movement_id(self) -> str:
        return f"{self.vessel}|{self.day.isoformat()}|{self.fluid_type}|{self.destination}"

    def to_dict(self) -> Dict:
        return {
            "movement_id": self.movement_id,
            "vessel": self.vessel,
            "day": self.day.isoformat(),
            "fluid_type": self.fluid_type,
            "destination": self.destination,
            "destination_facility_id": self.destination_facility_id,
            "origin": self.origin,
            "volume_bbls": round(self.volume_bbls, 2),
            "action_count": self.action_count,
            "fluid_types": sorted(self.fluid_types),
            "includes_drilling_fluid": self.includes_drilling_fluid,
            "includes_completion_fluid": self.includes_completion_fluid,
            "movement_type": self.movement_type.value,
        }


@dataclass
class DeduplicationReport:
    """Summary of one consolidation pass."""
    raw_actions: int = 0
    eligible_actions: int = 0
    non_fluid_excluded: int = 0
    load_legs_excluded: int = 0
    non_rig_excluded: int = 0
    invalid_excluded: int = 0
    movement_count: int = 0
    total_volume_bbls: float = 0.0
    raw_volume_bbls: float = 0.0
    volume_by_fluid_type: Dict[str, float] = field(default_factory=dict)
    volume_by_destination: Dict[str, float] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    @property
    def duplicates_removed(self) -> int:
        return self.load_legs_excluded

    def to_dict(self) -> Dict:
        return {
            "raw_actions": self.raw_actions,
            "eligible_actions": self.eligible_actions,
            "non_fluid_excluded": self.non_fluid_excluded,
            "load_legs_excluded": self.load_legs_excluded,
            "non_rig_excluded": self.non_rig_excluded,
            "invalid_excluded": self.invalid_excluded,
            "movement_count": self.movement_count,
            "total_volume_bbls": round(self.total_volume_bbls, 2),
            "raw_volume_bbls": round(self.raw_volume_bbls, 2),
            "volume_by_fluid_type": {k: round(v, 2) for k, v in self.volume_by_fluid_type.items()},
            "volume_by_destination": {k: round(v, 2) for k, v in self.volume_by_destination.items()},
            "warnings": list(self.warnings),
        }


def _vessel_key(name: Optional[str]) -> str:
    return " ".join((name or "").strip().split()).upper()


def _is_fluid(action: BulkFluidAction) -> bool:
    return bool(action.is_drilling_fluid or action.is_completion_fluid)


def _is_rig_destination(action: BulkFluidAction) -> bool:
    return (action.destination_port_type or "").strip().lower() == "rig"


def _valid_volume(action: BulkFluidAction) -> Optional[float]:
    volume = finite_or_none(action.volume_bbls)
    if volume is None or volume <= 0:
        return None
    return volume


def classify_movement_type(
    origin: Optional[str], destination: Optional[str], resolver: Optional[LocationResolver] = None
) -> MovementType:
    origin_key = normalize_location(origin)
    destination_key = normalize_location(destination)
    if not origin_key or origin_key == destination_key:
        return MovementType.VESSEL_TO_FACILITY
    if any(keyword in origin_key for keyword in BASE_PORT_KEYWORDS):
        return MovementType.FOURCHON_TO_OFFSHORE
    if resolver is not None and resolver.resolve(origin) is not None:
        return MovementType.OFFSHORE_TO_OFFSHORE
    return MovementType.OTHER


def _group_key(action: BulkFluidAction) -> Optional[Tuple[str, date, str, str]]:
    ts = as_datetime(action.start_date)
    if ts is None:
        return None
    return (
        _vessel_key(action.vessel),
        ts.date(),
        normalize_location(action.bulk_type),
        normalize_location(action.destination_port),
    )


def consolidate(
    actions: Iterable[BulkFluidAction],
    resolver: Optional[LocationResolver] = None,
) -> List[FluidMovement]:
    """Collapse rig-destined offload legs into one movement per transfer."""
    groups: Dict[Tuple[str, date, str, str], List[Tuple[BulkFluidAction, float]]] = defaultdict(list)
    invalid = 0
    for action in actions:
        if not _is_fluid(action) or not action.is_offload or not _is_rig_destination(action):
            continue
        volume = _valid_volume(action)
        key = _group_key(action)
        if volume is None or key is None:
            invalid += 1
            logger.debug(f"Excluded bulk action {action.record_id or action.vessel}: invalid volume or date")
            continue
        groups[key].append((action, volume))

    if invalid:
        logger.info(f"Excluded {invalid} offload legs with missing date or non-positive volume")

    movements: List[FluidMovement] = []
    for key in sorted(groups):
        members = groups[key]
        first = members[0][0]
        labels = frozenset((a.bulk_type or "").strip() for a, _ in members if (a.bulk_type or "").strip())
        facility = resolver.resolve(first.destination_port) if resolver is not None else None
        movements.append(FluidMovement(
            vessel=(first.vessel or "").strip(),
            day=key[1],
            fluid_type=(first.bulk_type or "").strip(),
            destination=(first.destination_port or "").strip(),
            volume_bbls=sum(v for _, v in members),
            action_count=len(members),
            fluid_types=labels,
            includes_drilling_fluid=any(a.is_drilling_fluid for a, _ in members),
            includes_completion_fluid=any(a.is_completion_fluid for a, _ in members),
            movement_type=classify_movement_type(first.origin_port, first.destination_port, resolver),
            origin=(first.origin_port or "").strip() or None,
            destination_facility_id=facility.facility_id if facility else None,
        ))

    logger.debug(f"Consolidated {sum(len(g) for g in groups.values())} offload legs into {len(movements)} movements")
    return movements


def build_deduplication_report(
    actions: Iterable[BulkFluidAction],
    movements: Optional[List[FluidMovement]] = None,
    resolver: Optional[LocationResolver] = None,
) -> DeduplicationReport:
    """Account for every raw action: counted, or excluded and why."""
    actions = list(actions)
    if movements is None:
        movements = consolidate(actions, resolver)

    report = DeduplicationReport(raw_actions=len(actions))
    loads: Dict[Tuple[str, date, str], float] = defaultdict(float)
    offloads: Dict[Tuple[str, date, str], float] = defaultdict(float)

    for action in actions:
        volume = finite_or_none(action.volume_bbls)
        if volume is not None and volume > 0:
            report.raw_volume_bbls += volume
        if not _is_fluid(action):
            report.non_fluid_excluded += 1
            continue
        key = _group_key(action)
        if volume is None or volume <= 0 or key is None:
            report.invalid_excluded += 1
            continue
        pair_key = key[:3]
        if not action.is_offload:
            report.load_legs_excluded += 1
            loads[pair_key] += volume
            continue
        if not _is_rig_destination(action):
            report.non_rig_excluded += 1
            continue
        report.eligible_actions += 1
        offloads[pair_key] += volume

    for pair_key in sorted(set(loads) & set(offloads)):
        if abs(loads[pair_key] - offloads[pair_key]) > VOLUME_MISMATCH_TOLERANCE_BBLS:
            vessel, day, fluid = pair_key
            message = (
                f"Volume discrepancy for {vessel} {fluid} on {day.isoformat()}: "
                f"loaded {loads[pair_key]:.1f}, delivered {offloads[pair_key]:.1f} bbls"
            )
            report.warnings.append(message)
            logger.warning(message)

    report.movement_count = len(movements)
    for movement in movements:
        report.total_volume_bbls += movement.volume_bbls
        fluid = movement.fluid_type or "Unknown"
        destination = movement.destination or "Unknown"
        report.volume_by_fluid_type[fluid] = report.volume_by_fluid_type.get(fluid, 0.0) + movement.volume_bbls
        report.volume_by_destination[destination] = (
            report.volume_by_destination.get(destination, 0.0) + movement.volume_bbls
        )

    logger.info(
        f"Fluid deduplication: {report.raw_actions} actions -> {report.movement_count} movements, "
        f"{report.total_volume_bbls:,.0f} bbls"
    )
    return report


def movements_for_facility(
    movements: Iterable[FluidMovement], facility: Facility, resolver: LocationResolver
) -> List[FluidMovement]:
    return [m for m in movements if resolver.matches(m.destination, facility)]
