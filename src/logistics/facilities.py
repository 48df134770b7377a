"""
Facility registry for Gulf of Mexico offshore operating locations.

Holds the canonical facility list (rigs, platforms and integrated
drill/production hosts), their raw-name aliases and the drilling and
production allocation-code sets used by classification.

The registry is loaded once per process and never mutated afterwards;
Facility values are frozen so concurrent readers need no locking.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from .records import normalize_code

logger = logging.getLogger(__name__)


class FacilityType(str, Enum):
    """Operating role of a facility."""
    DRILLING = "Drilling"
    PRODUCTION = "Production"
    MIXED = "Mixed"

    @classmethod
    def parse(cls, value: Any) -> "FacilityType":
        text = str(value or "").strip().lower()
        if text in ("mixed", "integrated", "drill/prod"):
            return cls.MIXED
        if text.startswith("drill"):
            return cls.DRILLING
        if text.startswith("prod"):
            return cls.PRODUCTION
        raise ValueError(f"Unknown facility type: {value!r}")


def parse_code_set(codes: Union[None, str, Iterable[Any]]) -> FrozenSet[str]:
    """Parse comma-delimited or iterable allocation codes into a frozenset."""
    if codes is None:
        return frozenset()
    if isinstance(codes, str):
        parts = codes.replace(";", ",").split(",")
    else:
        parts = list(codes)
    return frozenset(c for c in (normalize_code(p) for p in parts) if c)


@dataclass(frozen=True)
class Facility:
    """A canonical offshore operating location."""
    facility_id: int
    location_name: str
    display_name: str
    facility_type: FacilityType
    aliases: Tuple[str, ...] = ()
    drilling_codes: FrozenSet[str] = field(default_factory=frozenset)
    production_codes: FrozenSet[str] = field(default_factory=frozenset)
    parent_id: Optional[int] = None
    region: str = "Gulf of Mexico"
    is_active: bool = True

    @property
    def is_drilling(self) -> bool:
        return self.facility_type in (FacilityType.DRILLING, FacilityType.MIXED)

    @property
    def is_production(self) -> bool:
        return self.facility_type in (FacilityType.PRODUCTION, FacilityType.MIXED)

    @property
    def qualifier(self) -> Optional[str]:
        """Parenthetical qualifier of the display name, e.g. "Drilling"."""
        name = self.display_name
        if name.endswith(")") and "(" in name:
            return name[name.rindex("(") + 1:-1].strip()
        return None

    @property
    def base_name(self) -> str:
        """Display name with any parenthetical qualifier stripped."""
        name = self.display_name
        if self.qualifier is not None:
            return name[:name.rindex("(")].strip()
        return name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "facility_id": self.facility_id,
            "location_name": self.location_name,
            "display_name": self.display_name,
            "facility_type": self.facility_type.value,
            "aliases": list(self.aliases),
            "drilling_codes": sorted(self.drilling_codes),
            "production_codes": sorted(self.production_codes),
            "parent_id": self.parent_id,
            "region": self.region,
            "is_active": self.is_active,
        }


# =============================================================================
# Default registry data
# =============================================================================

DEFAULT_FACILITIES: List[Dict[str, Any]] = [
    {
        "facility_id": 1, "location_name": "Argos", "display_name": "Argos",
        "facility_type": "Production",
        "production_codes": "9999,9779,10027,10039,10070,10082,10106",
    },
    {
        "facility_id": 2, "location_name": "Atlantis PQ", "display_name": "Atlantis",
        "facility_type": "Production", "aliases": ["atlantis", "atlantis pq"],
        "production_codes": "9361,10103,10096,10071,10115",
    },
    {
        "facility_id": 3, "location_name": "Na Kika", "display_name": "Na Kika",
        "facility_type": "Production", "aliases": ["nakika", "na kika"],
        "production_codes": "9359,9364,9367,10098,10080,10051,10021,10017",
    },
    {
        "facility_id": 4, "location_name": "Thunder Horse Prod",
        "display_name": "Thunder Horse (Production)", "facility_type": "Production",
        "aliases": ["thunder horse prod", "thunder horse production", "thr prod"],
        "production_codes": "9360,10099,10081,10074,10052", "parent_id": 101,
    },
    {
        "facility_id": 5, "location_name": "Mad Dog Prod",
        "display_name": "Mad Dog (Production)", "facility_type": "Production",
        "aliases": ["mad dog prod", "mad dog production"],
        "production_codes": "9358,10097,10084,10072,10067", "parent_id": 102,
    },
    {
        "facility_id": 11, "location_name": "Thunder Horse Drilling",
        "display_name": "Thunder Horse (Drilling)", "facility_type": "Drilling",
        "aliases": ["thunder horse drilling", "thunder horse drill", "thr drilling"],
        "parent_id": 101,
    },
    {
        "facility_id": 12, "location_name": "Mad Dog Drilling",
        "display_name": "Mad Dog (Drilling)", "facility_type": "Drilling",
        "aliases": ["mad dog drilling", "mad dog drill"],
        "parent_id": 102,
    },
    {
        "facility_id": 13, "location_name": "Ocean Blackhornet",
        "display_name": "Ocean BlackHornet", "facility_type": "Drilling",
        "aliases": ["blackhornet", "black hornet"],
    },
    {
        "facility_id": 14, "location_name": "Ocean BlackLion",
        "display_name": "Ocean BlackLion", "facility_type": "Drilling",
        "aliases": ["blacklion", "black lion"],
    },
    {
        "facility_id": 15, "location_name": "Deepwater Invictus",
        "display_name": "Deepwater Invictus", "facility_type": "Drilling",
        "aliases": ["invictus"], "drilling_codes": "10140,10133",
    },
    {
        "facility_id": 16, "location_name": "Island Venture",
        "display_name": "Island Venture", "facility_type": "Drilling",
    },
    {
        "facility_id": 17, "location_name": "Stena IceMAX",
        "display_name": "Stena IceMAX", "facility_type": "Drilling",
        "aliases": ["icemax", "ice max"],
    },
    {
        "facility_id": 18, "location_name": "Auriga",
        "display_name": "Auriga", "facility_type": "Drilling",
    },
    {
        "facility_id": 19, "location_name": "Island Intervention",
        "display_name": "Island Intervention", "facility_type": "Drilling",
    },
    {
        "facility_id": 20, "location_name": "C-Constructor",
        "display_name": "C-Constructor", "facility_type": "Drilling",
        "aliases": ["c constructor"],
    },
    {
        "facility_id": 101, "location_name": "Thunder Horse PDQ",
        "display_name": "Thunder Horse (Drill/Prod)", "facility_type": "Integrated",
        "aliases": ["thunder horse", "thunderhorse", "thr", "thunder horse pdq"],
    },
    {
        "facility_id": 102, "location_name": "Mad Dog",
        "display_name": "Mad Dog (Drill/Prod)", "facility_type": "Integrated",
        "aliases": ["mad dog", "maddog"],
    },
]


def facility_from_dict(data: Dict[str, Any]) -> Facility:
    """Build a Facility from a plain dict (registry JSON row)."""
    try:
        facility_id = int(data["facility_id"])
        location_name = str(data["location_name"]).strip()
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid facility entry {data!r}: {e}") from e
    display_name = str(data.get("display_name") or location_name).strip()
    aliases = tuple(
        str(a).strip().lower() for a in (data.get("aliases") or []) if str(a).strip()
    )
    parent = data.get("parent_id")
    return Facility(
        facility_id=facility_id,
        location_name=location_name,
        display_name=display_name,
        facility_type=FacilityType.parse(data.get("facility_type")),
        aliases=aliases,
        drilling_codes=parse_code_set(data.get("drilling_codes")),
        production_codes=parse_code_set(data.get("production_codes")),
        parent_id=int(parent) if parent is not None else None,
        region=str(data.get("region") or "Gulf of Mexico"),
        is_active=bool(data.get("is_active", True)),
    )


class FacilityRegistry:
    """Read-only lookup over the facility list."""

    def __init__(self, facilities: Iterable[Facility]):
        self._facilities: Tuple[Facility, ...] = tuple(facilities)
        self._by_id: Dict[int, Facility] = {}
        for facility in self._facilities:
            if facility.facility_id in self._by_id:
                raise ValueError(f"Duplicate facility id: {facility.facility_id}")
            self._by_id[facility.facility_id] = facility

        for facility in self._facilities:
            if facility.parent_id is not None and facility.parent_id not in self._by_id:
                raise ValueError(
                    f"Facility {facility.facility_id} references unknown parent {facility.parent_id}"
                )

        self._by_name: Dict[str, Facility] = {}
        for facility in self._facilities:
            self._by_name.setdefault(facility.location_name.lower(), facility)
            self._by_name.setdefault(facility.display_name.lower(), facility)

        self._code_owner: Dict[str, Facility] = {}
        for facility in self._facilities:
            for code in facility.production_codes | facility.drilling_codes:
                self._code_owner.setdefault(code, facility)

        self._drilling_codes = frozenset().union(*(f.drilling_codes for f in self._facilities))
        self._production_codes = frozenset().union(*(f.production_codes for f in self._facilities))

        overlap = self._drilling_codes & self._production_codes
        if overlap:
            # Production wins at classification time; surface the data problem
            logger.warning(f"Allocation codes in both drilling and production sets: {sorted(overlap)}")

        logger.info(
            f"Facility registry loaded: {len(self._facilities)} facilities, "
            f"{len(self._drilling_codes)} drilling codes, {len(self._production_codes)} production codes"
        )

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> "FacilityRegistry":
        return cls(facility_from_dict(r) for r in records)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "FacilityRegistry":
        """Load a registry from a JSON list (or {"facilities": [...]})."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Facility registry not found: {path}")
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid facility registry JSON {path}: {e}") from e
        if isinstance(payload, dict):
            payload = payload.get("facilities", [])
        if not isinstance(payload, list):
            raise ValueError(f"Facility registry {path} must contain a list of facilities")
        return cls.from_records(payload)

    @classmethod
    def default(cls) -> "FacilityRegistry":
        return cls.from_records(DEFAULT_FACILITIES)

    @property
    def facilities(self) -> Tuple[Facility, ...]:
        return self._facilities

    @property
    def drilling_codes(self) -> FrozenSet[str]:
        return self._drilling_codes

    @property
    def production_codes(self) -> FrozenSet[str]:
        return self._production_codes

    @property
    def all_codes(self) -> FrozenSet[str]:
        return self._drilling_codes | self._production_codes

    def get(self, facility_id: int) -> Optional[Facility]:
        return self._by_id.get(facility_id)

    def by_name(self, name: str) -> Optional[Facility]:
        if not name:
            return None
        return self._by_name.get(name.strip().lower())

    def facility_for_code(self, code: Any) -> Optional[Facility]:
        normalized = normalize_code(code)
        if normalized is None:
            return None
        return self._code_owner.get(normalized)

    def children_of(self, facility_id: int) -> Tuple[Facility, ...]:
        return tuple(f for f in self._facilities if f.parent_id == facility_id)

    def codes_for(self, facility: Facility) -> FrozenSet[str]:
        """Codes owned by a facility and its children."""
        codes = facility.drilling_codes | facility.production_codes
        for child in self.children_of(facility.facility_id):
            codes = codes | child.drilling_codes | child.production_codes
        return codes

    def __len__(self) -> int:
        return len(self._facilities)

    def __iter__(self):
        return iter(self._facilities)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": len(self._facilities),
            "facilities": [f.to_dict() for f in self._facilities],
        }


@lru_cache()
def get_facility_registry(path: Optional[str] = None) -> FacilityRegistry:
    """Process-wide registry; loaded from JSON when a path is given."""
    if path:
        logger.info(f"Loading facility registry from {path}")
        return FacilityRegistry.from_json(path)
    return FacilityRegistry.default()
