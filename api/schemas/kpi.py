"""KPI API schemas."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .records import RecordBatchModel


class SelectionModel(BaseModel):
    """Filter selection in loose form, as accepted by the query endpoints."""
    period: str = Field("all", description="all | month | ytd")
    month: Optional[str] = Field(None, description="Month name, abbreviation or number")
    year: Optional[int] = None
    location: Optional[str] = Field(None, description="Facility name/alias/id; blank for all")
    department: Optional[str] = Field(None, description="All | Drilling | Production")


class KpiComputeRequest(BaseModel):
    """Stateless KPI computation: batch and selection in one body."""
    batch: RecordBatchModel
    selection: SelectionModel = Field(default_factory=SelectionModel)


class KpiValueModel(BaseModel):
    value: Optional[float] = None
    trend_percent: Optional[float] = None
    is_favorable_direction: Optional[bool] = None
    comparison_available: bool = False


class KpiSetResponse(BaseModel):
    """Published KPIs for one filter selection."""
    batch_id: Optional[str] = None
    selection: Dict[str, Any]
    comparison: Optional[str] = None
    cargo: Dict[str, KpiValueModel]
    hours: Dict[str, KpiValueModel]
    fluids: Dict[str, KpiValueModel]
    cost: Dict[str, KpiValueModel]
    voyage: Dict[str, KpiValueModel]
    fluid_by_type: Dict[str, float] = Field(default_factory=dict)
    vessel_visits_by_company: Dict[str, int] = Field(default_factory=dict)
    budget_vs_actual: List[Dict[str, Any]] = Field(default_factory=list)
    record_counts: Dict[str, int] = Field(default_factory=dict)
    excluded_counts: Dict[str, int] = Field(default_factory=dict)
    cached: bool = False


class FluidMovementsResponse(BaseModel):
    """Consolidated fluid movements and the consolidation report."""
    batch_id: str
    movements: List[Dict[str, Any]]
    report: Dict[str, Any]


class BudgetResponse(BaseModel):
    batch_id: str
    selection: Dict[str, Any]
    comparisons: List[Dict[str, Any]]
