"""
Logistics KPI API Pydantic schemas.

Re-exports all schema classes:
    from api.schemas import RecordBatchModel, KpiSetResponse, ...
"""

# Records
from .records import (  # noqa: F401
    VoyageEventModel,
    VesselManifestModel,
    CostAllocationLineModel,
    BulkFluidActionModel,
    VoyageRecordModel,
    RecordBatchModel,
)

# Batch
from .batch import BatchSummaryResponse, BatchUploadResponse  # noqa: F401

# KPIs
from .kpi import (  # noqa: F401
    SelectionModel,
    KpiComputeRequest,
    KpiValueModel,
    KpiSetResponse,
    FluidMovementsResponse,
    BudgetResponse,
)

# Facilities
from .facilities import FacilityResponse, FacilityListResponse, ResolveResponse  # noqa: F401

# Integrity
from .integrity import (  # noqa: F401
    IssueModel,
    DatasetQualityModel,
    IntegrityReportResponse,
)
