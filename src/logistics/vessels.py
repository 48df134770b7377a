"""Vessel directory: name -> company, vessel type and size."""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

UNKNOWN_COMPANY = "Unknown"


@dataclass(frozen=True)
class VesselInfo:
    name: str
    company: str
    vessel_type: str  # OSV / FSV / Specialty / Support
    size_ft: int = 0
    category: str = "Supply"


# (name, company, size_ft, vessel_type, category)
DEFAULT_VESSELS: List[Tuple[str, str, int, str, str]] = [
    ("Amber", "Edison Chouest Offshore", 280, "OSV", "Supply"),
    ("Cajun IV", "Jackson Offshore", 210, "FSV", "Supply"),
    ("Charlie Comeaux", "Edison Chouest Offshore", 299, "OSV", "Supply"),
    ("Claire Candies", "Otto Candies", 282, "OSV", "Supply"),
    ("Dauphin Island", "Edison Chouest Offshore", 312, "OSV", "Supply"),
    ("Fantasy Island", "Edison Chouest Offshore", 312, "Specialty", "Specialized"),
    ("Fast Giant", "Edison Chouest Offshore", 194, "FSV", "Supply"),
    ("Fast Goliath", "Edison Chouest Offshore", 194, "FSV", "Supply"),
    ("Fast Hauler", "Edison Chouest Offshore", 194, "FSV", "Supply"),
    ("Fast Leopard", "Edison Chouest Offshore", 201, "FSV", "Supply"),
    ("Fast Lion", "Edison Chouest Offshore", 190, "FSV", "Supply"),
    ("Fast Tiger", "Edison Chouest Offshore", 196, "FSV", "Supply"),
    ("Gibson Lab", "Laborde Marine", 240, "Support", "Support"),
    ("Harvey Carrier", "Harvey Gulf", 280, "OSV", "Supply"),
    ("Harvey Champion", "Harvey Gulf", 310, "OSV", "Supply"),
    ("Harvey Freedom", "Harvey Gulf", 310, "OSV", "Supply"),
    ("Harvey Power", "Harvey Gulf", 310, "OSV", "Supply"),
    ("Harvey Provider", "Harvey Gulf", 240, "Support", "Support"),
    ("Harvey Supporter", "Harvey Gulf", 310, "OSV", "Supply"),
    ("HOS Black Foot", "Hornbeck Offshore", 310, "OSV", "Supply"),
    ("HOS Blackhawk", "Hornbeck Offshore", 280, "OSV", "Supply"),
    ("HOS Commander", "Hornbeck Offshore", 320, "OSV", "Supply"),
    ("HOS Mauser", "Hornbeck Offshore", 280, "OSV", "Supply"),
    ("HOS Panther", "Hornbeck Offshore", 280, "OSV", "Supply"),
    ("HOS Ruger", "Hornbeck Offshore", 280, "OSV", "Supply"),
    ("Lightning", "Jackson Offshore", 252, "OSV", "Supply"),
    ("Lucy", "Edison Chouest Offshore", 270, "OSV", "Supply"),
    ("Millie", "Edison Chouest Offshore", 298, "OSV", "Supply"),
    ("Pelican Island", "Edison Chouest Offshore", 312, "OSV", "Supply"),
    ("Persistence Lab", "Laborde Marine", 150, "Support", "Support"),
    ("Regulus", "Tidewater Marine", 272, "OSV", "Supply"),
    ("Ship Island", "Edison Chouest Offshore", 312, "OSV", "Supply"),
    ("Squall", "Jackson Offshore", 252, "OSV", "Supply"),
    ("Tucker Candies", "Otto Candies", 290, "OSV", "Supply"),
]


def _key(name: Optional[str]) -> str:
    return " ".join((name or "").split()).lower()


class VesselDirectory:
    """Case- and whitespace-insensitive vessel lookup."""

    def __init__(self, vessels: Iterable[VesselInfo]):
        self._vessels: Dict[str, VesselInfo] = {}
        for vessel in vessels:
            self._vessels.setdefault(_key(vessel.name), vessel)

    @classmethod
    def default(cls) -> "VesselDirectory":
        return cls(
            VesselInfo(name=n, company=c, vessel_type=t, size_ft=s, category=cat)
            for n, c, s, t, cat in DEFAULT_VESSELS
        )

    def lookup(self, name: Optional[str]) -> Optional[VesselInfo]:
        return self._vessels.get(_key(name))

    def company_of(self, name: Optional[str]) -> str:
        info = self.lookup(name)
        return info.company if info else UNKNOWN_COMPANY

    def __len__(self) -> int:
        return len(self._vessels)


@lru_cache()
def get_vessel_directory() -> VesselDirectory:
    return VesselDirectory.default()
