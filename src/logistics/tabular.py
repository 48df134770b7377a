"""
Spreadsheet/CSV to typed record conversion.

Maps the column headers of the five logistics exports (voyage events,
vessel manifests, cost allocation, bulk actions, voyage list) onto the
typed records consumed by the engine. Header matching is
case-insensitive against a list of known spellings per field.

Rows that cannot be converted are skipped with a warning; a bad row
never fails the whole file.
"""

import logging
import math
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from src.metrics import metrics

from .apportionment import parse_allocation_string
from .facilities import FacilityRegistry, get_facility_registry
from .location_resolver import LocationResolver
from .records import (
    BulkFluidAction, CostAllocationLine, RecordBatch, VesselManifest, VoyageEvent,
    VoyageRecord, normalize_code,
)

logger = logging.getLogger(__name__)

GALLONS_PER_BARREL = 42.0

# ---------------------------------------------------------------------------
# Header maps: field -> accepted column headers (first match wins)
# ---------------------------------------------------------------------------

VOYAGE_EVENT_COLUMNS: Dict[str, List[str]] = {
    "vessel": ["Vessel", "Vessel Name"],
    "event_date": ["Event Date", "From", "Start Date", "Date"],
    "ended_at": ["To", "End Date"],
    "location": ["Location"],
    "mapped_location": ["Mapped Location"],
    "parent_event": ["Parent Event"],
    "event": ["Event"],
    "activity_category": ["Activity Category", "Event Category"],
    "hours": ["Hours", "Final Hours"],
    "cost_dedicated_to": ["Cost Dedicated to", "LC Number", "Allocation Code"],
    "allocation_percentage": ["Hours%", "Allocation %", "Allocation Percentage"],
    "department": ["Department"],
    "port_type": ["Port Type"],
    "vessel_cost_total": ["Vessel Cost", "Vessel Cost Total"],
    "remarks": ["Remarks"],
}

MANIFEST_COLUMNS: Dict[str, List[str]] = {
    "vessel": ["Transporter", "Vessel", "Vessel Name"],
    "manifest_date": ["Manifest Date", "Date"],
    "origin": ["From", "Origin"],
    "destination": ["Offshore Location", "Destination", "Mapped Location"],
    "deck_tons": ["Deck Tons"],
    "rt_tons": ["RT Tons"],
    "lifts": ["Lifts"],
    "wet_bulk_bbls": ["Wet Bulk (bbls)"],
    "wet_bulk_gals": ["Wet Bulk (gals)"],
    "allocation_code": ["Cost Code", "LC Number"],
    "department": ["Department"],
    "manifest_number": ["Manifest Number"],
}

COST_ALLOCATION_COLUMNS: Dict[str, List[str]] = {
    "allocation_code": ["LC Number", "LC", "Cost Code"],
    "rig_location": ["Rig Location"],
    "location_reference": ["Location Reference", "Location"],
    "rig_reference": ["Rig Reference"],
    "description": ["Description"],
    "department": ["Department"],
    "project_type": ["Project Type"],
    "allocated_days": ["Alloc (days)", "Allocated Days", "Total Allocated Days"],
    "total_cost": ["Total Cost", "Total Vessel Cost"],
    "budgeted_cost": ["Budgeted Cost", "Budgeted Vessel Cost"],
    "daily_rate": ["Daily Rate", "Vessel Daily Rate"],
    "month_year": ["Month-Year", "Month Year", "Cost Allocation Date"],
}

BULK_ACTION_COLUMNS: Dict[str, List[str]] = {
    "vessel": ["Vessel Name", "Vessel"],
    "start_date": ["Start Date", "Date"],
    "action": ["Action"],
    "port_type": ["Port Type"],
    "destination_port_type": ["Destination Port Type"],
    "at_port": ["At Port"],
    "destination_port": ["Destination Port"],
    "qty": ["Qty", "Volume (bbls)", "Volume"],
    "unit": ["Unit"],
    "bulk_type": ["Bulk Type"],
    "description": ["Bulk Description"],
    "is_drilling_fluid": ["Is Drilling Fluid", "Drilling Fluid"],
    "is_completion_fluid": ["Is Completion Fluid", "Completion Fluid"],
}

VOYAGE_COLUMNS: Dict[str, List[str]] = {
    "vessel": ["Vessel"],
    "start_date": ["Start Date"],
    "end_date": ["End Date"],
    "voyage_number": ["Voyage Number", "Voyage #"],
    "locations": ["Locations"],
    "purpose": ["Voyage Purpose", "Purpose"],
    "origin_port": ["Origin Port"],
    "main_destination": ["Main Destination"],
}

DRILLING_FLUID_KEYWORDS = (
    "wbm", "water based mud", "sbm", "synthetic based mud", "obm", "oil based mud",
    "premix", "pre-mix", "baseoil", "base oil", "base-oil", "drilling mud",
    "drilling fluid", "drill fluid", "mud",
)
COMPLETION_FLUID_KEYWORDS = (
    "calcium bromide", "cabr2", "calcium chloride", "cacl2", "sodium chloride", "nacl",
    "kcl", "potassium chloride", "clayfix", "clay fix", "completion fluid",
    "completion brine", "intervention fluid", "workover fluid",
)

PRODUCTIVE_PARENT_EVENTS = frozenset({
    "cargo ops", "transit", "maneuvering", "standby", "installation productive time",
    "rov operations", "tank cleaning", "end voyage", "marine trial",
    "standby inside 500m zone", "standby - close",
})
NON_PRODUCTIVE_PARENT_EVENTS = frozenset({
    "waiting on weather", "waiting on installation", "waiting on quay",
    "port or supply base closed",
})

_MONTH_YEAR = re.compile(r"^\s*([A-Za-z]{3,9}|\d{1,2})[\s\-/]+(\d{2}|\d{4})\s*$")


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------

def _safe_float(value: Any) -> Optional[float]:
    """Convert value to float, returning None for NaN/Infinity/non-numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value or value.lower() in ("nan", "n/a", "-"):
            return None
    try:
        val = float(value)
    except (ValueError, TypeError):
        return None
    if math.isnan(val) or math.isinf(val):
        return None
    return val


def _safe_str(value: Any) -> Optional[str]:
    """Convert value to stripped string, returning None for NaN/empty."""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    s = str(value).strip()
    return s if s and s.lower() != "nan" else None


def _safe_date(value: Any) -> Optional[datetime]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        ts = pd.to_datetime(value, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    return ts.to_pydatetime()


def _safe_bool(value: Any) -> Optional[bool]:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "yes", "y", "1"):
        return True
    if text in ("false", "no", "n", "0"):
        return False
    return None


def parse_month_year(value: Any) -> Optional[tuple]:
    """Parse "Jan-24", "01-24", "March 2025" or a date into (month, year)."""
    if isinstance(value, datetime):
        return value.month, value.year
    text = _safe_str(value)
    if text is None:
        return None
    match = _MONTH_YEAR.match(text)
    if match:
        month_text, year_text = match.groups()
        if month_text.isdigit():
            month = int(month_text)
        else:
            try:
                month = datetime.strptime(month_text[:3].title(), "%b").month
            except ValueError:
                return None
        year = int(year_text)
        if year < 100:
            year += 2000
        if 1 <= month <= 12:
            return month, year
        return None
    parsed = _safe_date(text)
    return (parsed.month, parsed.year) if parsed else None


def infer_fluid_flags(bulk_type: Optional[str], description: Optional[str] = None) -> tuple:
    """(is_drilling_fluid, is_completion_fluid) from fluid-type keywords."""
    text = f"{bulk_type or ''} {description or ''}".lower()
    completion = any(k in text for k in COMPLETION_FLUID_KEYWORDS)
    drilling = not completion and any(k in text for k in DRILLING_FLUID_KEYWORDS)
    return drilling, completion


def classify_activity(parent_event: Optional[str]) -> Optional[str]:
    key = (parent_event or "").strip().lower()
    if key in PRODUCTIVE_PARENT_EVENTS:
        return "Productive"
    if key in NON_PRODUCTIVE_PARENT_EVENTS:
        return "Non-Productive"
    return None


def split_locations(text: Optional[str]) -> tuple:
    """Split "Fourchon -> Na Kika -> Thunder Horse PDQ" into location names."""
    if not text:
        return ()
    parts = re.split(r"\s*(?:->|→|>|;|,)\s*", text)
    return tuple(p.strip() for p in parts if p and p.strip())


class _Row:
    """Header-tolerant accessor for one DataFrame row."""

    def __init__(self, row: pd.Series, columns: Dict[str, Optional[str]]):
        self._row = row
        self._columns = columns

    def get(self, field: str) -> Any:
        column = self._columns.get(field)
        if column is None:
            return None
        value = self._row[column]
        if not isinstance(value, str) and pd.isna(value):
            return None
        return value


def _match_columns(df: pd.DataFrame, header_map: Dict[str, List[str]]) -> Dict[str, Optional[str]]:
    lookup = {str(c).strip().lower(): c for c in df.columns}
    return {
        field: next((lookup[h.lower()] for h in headers if h.lower() in lookup), None)
        for field, headers in header_map.items()
    }


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

class TabularBatchLoader:
    """Convert spreadsheet exports into a RecordBatch."""

    DATASETS = ("voyage_events", "vessel_manifests", "cost_allocations", "bulk_actions", "voyages")

    def __init__(self, registry: Optional[FacilityRegistry] = None):
        self.registry = registry or get_facility_registry()
        self.resolver = LocationResolver(self.registry)
        self._stats: Dict[str, Dict[str, int]] = {}
        self._parsers: Dict[str, tuple] = {
            "voyage_events": (VOYAGE_EVENT_COLUMNS, self._voyage_events),
            "vessel_manifests": (MANIFEST_COLUMNS, self._manifest),
            "cost_allocations": (COST_ALLOCATION_COLUMNS, self._cost_line),
            "bulk_actions": (BULK_ACTION_COLUMNS, self._bulk_action),
            "voyages": (VOYAGE_COLUMNS, self._voyage),
        }

    @staticmethod
    def read_frame(path: Union[str, Path], sheet_name: Optional[str] = None) -> pd.DataFrame:
        """Read a CSV or Excel file into a DataFrame (first sheet by default)."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Data file not found: {path}")
        try:
            if path.suffix.lower() == ".csv":
                return pd.read_csv(path)
            return pd.read_excel(path, sheet_name=sheet_name or 0)
        except Exception as e:
            raise ValueError(f"Cannot read {path.name}: {e}") from e

    def parse_frame(self, dataset: str, df: pd.DataFrame) -> List[Any]:
        """Convert one DataFrame to typed records of the given dataset."""
        if dataset not in self._parsers:
            raise ValueError(f"Unknown dataset {dataset!r}; expected one of {list(self.DATASETS)}")
        header_map, parse_row = self._parsers[dataset]
        columns = _match_columns(df, header_map)
        if all(c is None for c in columns.values()):
            raise ValueError(f"No recognised {dataset} columns in headers {list(df.columns)[:10]}")

        records: List[Any] = []
        skipped = 0
        for row_idx, (_, row) in enumerate(df.iterrows()):
            try:
                parsed = parse_row(_Row(row, columns), row_idx)
            except (ValueError, TypeError, KeyError) as e:
                logger.warning(f"{dataset} row {row_idx}: skipped ({e})")
                skipped += 1
                continue
            if parsed is None:
                skipped += 1
                continue
            records.extend(parsed if isinstance(parsed, list) else [parsed])

        self._stats[dataset] = {"rows": len(df), "records": len(records), "skipped": skipped}
        metrics.increment("records_parsed", len(records))
        if skipped:
            metrics.increment("rows_skipped", skipped)
        logger.info(f"Parsed {len(records)} {dataset} records, skipped {skipped} rows")
        return records

    def load(self, sources: Dict[str, Union[str, Path, pd.DataFrame]]) -> RecordBatch:
        """Build a batch from {dataset: DataFrame or file path}; missing datasets are empty."""
        unknown = set(sources) - set(self.DATASETS)
        if unknown:
            raise ValueError(f"Unknown datasets: {sorted(unknown)}")
        collections: Dict[str, List[Any]] = {}
        names: Dict[str, str] = {}
        for dataset, source in sources.items():
            if isinstance(source, pd.DataFrame):
                df = source
                names[dataset] = "<dataframe>"
            else:
                df = self.read_frame(source)
                names[dataset] = Path(source).name
            collections[dataset] = self.parse_frame(dataset, df)
        return RecordBatch.build(source=names, **collections)

    def get_statistics(self) -> Dict[str, Dict[str, int]]:
        return {k: dict(v) for k, v in self._stats.items()}

    # -------------------------------------------------------------------------
    # Row parsers
    # -------------------------------------------------------------------------

    def _voyage_events(self, row: _Row, row_idx: int) -> Optional[List[VoyageEvent]]:
        vessel = _safe_str(row.get("vessel"))
        event_date = _safe_date(row.get("event_date"))
        if vessel is None and event_date is None:
            return None
        parent = _safe_str(row.get("parent_event"))
        hours = _safe_float(row.get("hours"))
        activity = _safe_str(row.get("activity_category")) or classify_activity(parent)
        base = dict(
            vessel=vessel,
            event_date=event_date,
            location=_safe_str(row.get("location")),
            mapped_location=_safe_str(row.get("mapped_location")),
            parent_event=parent,
            event=_safe_str(row.get("event")),
            activity_category=activity,
            department=_safe_str(row.get("department")),
            port_type=(_safe_str(row.get("port_type")) or "").lower() or None,
            vessel_cost_total=_safe_float(row.get("vessel_cost_total")),
            started_at=event_date,
            ended_at=_safe_date(row.get("ended_at")),
            remarks=_safe_str(row.get("remarks")),
            allocation_percentage=_safe_float(row.get("allocation_percentage")),
        )

        text = _safe_str(row.get("cost_dedicated_to"))
        shares = parse_allocation_string(text) if text else []
        if len(shares) <= 1:
            code = normalize_code(shares[0].code) if shares else None
            return [VoyageEvent(
                hours=hours, allocation_code=code, allocation_description=text,
                record_id=f"VE-{row_idx + 1}", **base,
            )]

        # multi-code allocation: one event per code with its share of the hours
        base["allocation_percentage"] = None
        return [
            VoyageEvent(
                hours=None if hours is None else hours * share.percentage / 100.0,
                allocation_code=normalize_code(share.code),
                allocation_description=None,
                record_id=f"VE-{row_idx + 1}-{i + 1}",
                **base,
            )
            for i, share in enumerate(shares)
        ]

    def _manifest(self, row: _Row, row_idx: int) -> Optional[VesselManifest]:
        vessel = _safe_str(row.get("vessel"))
        manifest_date = _safe_date(row.get("manifest_date"))
        if vessel is None and manifest_date is None:
            return None
        return VesselManifest(
            vessel=vessel,
            manifest_date=manifest_date,
            origin=_safe_str(row.get("origin")),
            destination=_safe_str(row.get("destination")),
            deck_tons=_safe_float(row.get("deck_tons")),
            rt_tons=_safe_float(row.get("rt_tons")),
            lifts=_safe_float(row.get("lifts")),
            wet_bulk_bbls=_safe_float(row.get("wet_bulk_bbls")),
            wet_bulk_gals=_safe_float(row.get("wet_bulk_gals")),
            allocation_code=normalize_code(row.get("allocation_code")),
            department=_safe_str(row.get("department")),
            manifest_number=_safe_str(row.get("manifest_number")),
            record_id=f"VM-{row_idx + 1}",
        )

    def _cost_line(self, row: _Row, row_idx: int) -> Optional[CostAllocationLine]:
        code = normalize_code(row.get("allocation_code"))
        month_year = parse_month_year(row.get("month_year"))
        if code is None and month_year is None:
            return None
        month, year = month_year if month_year else (None, None)
        return CostAllocationLine(
            allocation_code=code,
            rig_location=_safe_str(row.get("rig_location")),
            location_reference=_safe_str(row.get("location_reference")),
            rig_reference=_safe_str(row.get("rig_reference")),
            description=_safe_str(row.get("description")),
            department=_safe_str(row.get("department")),
            project_type=_safe_str(row.get("project_type")),
            allocated_days=_safe_float(row.get("allocated_days")),
            total_cost=_safe_float(row.get("total_cost")),
            budgeted_cost=_safe_float(row.get("budgeted_cost")),
            daily_rate=_safe_float(row.get("daily_rate")),
            month=month,
            year=year,
        )

    def _bulk_action(self, row: _Row, row_idx: int) -> Optional[BulkFluidAction]:
        vessel = _safe_str(row.get("vessel"))
        start_date = _safe_date(row.get("start_date"))
        if vessel is None and start_date is None:
            return None
        action = _safe_str(row.get("action"))
        qty = _safe_float(row.get("qty"))
        unit = (_safe_str(row.get("unit")) or "bbl").lower()
        volume = qty / GALLONS_PER_BARREL if qty is not None and unit.startswith("gal") else qty

        at_port = _safe_str(row.get("at_port"))
        destination = _safe_str(row.get("destination_port"))
        origin = at_port
        is_offload = "offload" in (action or "").lower() or "discharge" in (action or "").lower()
        if is_offload and destination is None:
            # offload legs are recorded at the receiving port
            destination, origin = at_port, None
        port_type = _safe_str(row.get("destination_port_type")) or _safe_str(row.get("port_type"))

        bulk_type = _safe_str(row.get("bulk_type"))
        drilling, completion = infer_fluid_flags(bulk_type, _safe_str(row.get("description")))
        explicit_drilling = _safe_bool(row.get("is_drilling_fluid"))
        explicit_completion = _safe_bool(row.get("is_completion_fluid"))

        return BulkFluidAction(
            vessel=vessel,
            start_date=start_date,
            action=action,
            origin_port=origin,
            destination_port=destination,
            destination_port_type=port_type.lower() if port_type else None,
            volume_bbls=volume,
            bulk_type=bulk_type,
            is_drilling_fluid=drilling if explicit_drilling is None else explicit_drilling,
            is_completion_fluid=completion if explicit_completion is None else explicit_completion,
            record_id=f"BA-{row_idx + 1}",
        )

    def _voyage(self, row: _Row, row_idx: int) -> Optional[VoyageRecord]:
        vessel = _safe_str(row.get("vessel"))
        start_date = _safe_date(row.get("start_date"))
        if vessel is None and start_date is None:
            return None
        locations = split_locations(_safe_str(row.get("locations")))
        facilities = [f for f in (self.resolver.resolve(loc) for loc in locations) if f is not None]
        includes_drilling = any(f.is_drilling for f in facilities)
        includes_production = any(f.is_production for f in facilities)

        purpose = _safe_str(row.get("purpose"))
        if purpose is None:
            if includes_drilling and includes_production:
                purpose = "Mixed"
            elif includes_drilling:
                purpose = "Drilling"
            elif includes_production:
                purpose = "Production"
            else:
                purpose = "Other"

        end_date = _safe_date(row.get("end_date"))
        duration = None
        if start_date is not None and end_date is not None:
            duration = (end_date - start_date).total_seconds() / 3600.0

        offshore = [loc for loc in locations if self.resolver.resolve(loc) is not None]
        return VoyageRecord(
            vessel=vessel,
            start_date=start_date,
            origin_port=_safe_str(row.get("origin_port")) or (locations[0] if locations else None),
            main_destination=_safe_str(row.get("main_destination")) or (offshore[0] if offshore else None),
            locations=locations,
            purpose=purpose,
            includes_drilling=includes_drilling,
            includes_production=includes_production,
            voyage_number=_safe_str(row.get("voyage_number")),
            duration_hours=duration,
        )


def load_batch(
    sources: Dict[str, Union[str, Path, pd.DataFrame]],
    registry: Optional[FacilityRegistry] = None,
) -> RecordBatch:
    """Convenience wrapper around TabularBatchLoader.load."""
    return TabularBatchLoader(registry).load(sources)
