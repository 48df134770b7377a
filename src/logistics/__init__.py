"""Offshore logistics KPI reconciliation and aggregation."""

from .records import (
    BulkFluidAction, CostAllocationLine, RecordBatch, VesselManifest, VoyageEvent,
    VoyageRecord,
)
from .facilities import Facility, FacilityRegistry, FacilityType, get_facility_registry
from .location_resolver import LocationResolver, normalize_location
from .classification import (
    Classification, ClassificationDecision, ClassificationPolicy, build_ledger_code_map,
)
from .apportionment import AllocationShare, apportion, parse_allocation_string
from .fluid_dedup import FluidMovement, build_deduplication_report, consolidate
from .periods import AllTime, DateRange, Month, YearToDate, comparison_windows, in_window
from .kpi import Department, FilterSelection, KpiSet, KpiValue, compute_kpis
from .integrity import DataIntegrityValidator, IntegrityReport, Issue, Severity
from .tabular import TabularBatchLoader, load_batch

__all__ = [
    "VoyageEvent",
    "VesselManifest",
    "CostAllocationLine",
    "BulkFluidAction",
    "VoyageRecord",
    "RecordBatch",
    "Facility",
    "FacilityType",
    "FacilityRegistry",
    "get_facility_registry",
    "LocationResolver",
    "normalize_location",
    "Classification",
    "ClassificationDecision",
    "ClassificationPolicy",
    "build_ledger_code_map",
    "AllocationShare",
    "apportion",
    "parse_allocation_string",
    "FluidMovement",
    "consolidate",
    "build_deduplication_report",
    "AllTime",
    "Month",
    "YearToDate",
    "DateRange",
    "in_window",
    "comparison_windows",
    "Department",
    "FilterSelection",
    "KpiValue",
    "KpiSet",
    "compute_kpis",
    "DataIntegrityValidator",
    "IntegrityReport",
    "Issue",
    "Severity",
    "TabularBatchLoader",
    "load_batch",
]
