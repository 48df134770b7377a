"""Record batch API schemas (JSON form of the engine's input records)."""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from src.logistics.records import (
    BulkFluidAction, CostAllocationLine, RecordBatch, VesselManifest, VoyageEvent,
    VoyageRecord, normalize_code,
)


class _CodedModel(BaseModel):
    """Accepts allocation codes as numbers or strings ("10140", 10140, 10140.0)."""

    @field_validator("allocation_code", mode="before", check_fields=False)
    @classmethod
    def normalize_allocation_code(cls, v: Any) -> Optional[str]:
        return normalize_code(v)


class VoyageEventModel(_CodedModel):
    """One vessel activity segment."""
    vessel: Optional[str] = None
    event_date: Optional[datetime] = None
    location: Optional[str] = None
    mapped_location: Optional[str] = None
    parent_event: Optional[str] = None
    event: Optional[str] = None
    activity_category: Optional[str] = Field(None, description="Productive / Non-Productive")
    hours: Optional[float] = None
    allocation_code: Optional[str] = None
    allocation_description: Optional[str] = Field(None, description="Free text, may end in 'NN%'")
    allocation_percentage: Optional[float] = None
    department: Optional[str] = None
    port_type: Optional[str] = Field(None, description="rig / base")
    vessel_cost_total: Optional[float] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    remarks: Optional[str] = None
    record_id: Optional[str] = None

    def to_record(self) -> VoyageEvent:
        return VoyageEvent(**self.model_dump())


class VesselManifestModel(_CodedModel):
    """One cargo manifest."""
    vessel: Optional[str] = None
    manifest_date: Optional[datetime] = None
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

    def to_record(self) -> VesselManifest:
        return VesselManifest(**self.model_dump())


class CostAllocationLineModel(_CodedModel):
    """One cost ledger row."""
    allocation_code: Optional[str] = None
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
    month: Optional[int] = Field(None, ge=1, le=12)
    year: Optional[int] = None
    allocation_date: Optional[datetime] = None

    def to_record(self) -> CostAllocationLine:
        return CostAllocationLine(**self.model_dump())


class BulkFluidActionModel(BaseModel):
    """One bulk load/offload leg."""
    vessel: Optional[str] = None
    start_date: Optional[datetime] = None
    action: Optional[str] = None
    origin_port: Optional[str] = None
    destination_port: Optional[str] = None
    destination_port_type: Optional[str] = None
    volume_bbls: Optional[float] = None
    bulk_type: Optional[str] = None
    is_drilling_fluid: bool = False
    is_completion_fluid: bool = False
    record_id: Optional[str] = None

    def to_record(self) -> BulkFluidAction:
        return BulkFluidAction(**self.model_dump())


class VoyageRecordModel(BaseModel):
    """One vessel voyage."""
    vessel: Optional[str] = None
    start_date: Optional[datetime] = None
    origin_port: Optional[str] = None
    main_destination: Optional[str] = None
    locations: List[str] = Field(default_factory=list)
    purpose: Optional[str] = None
    includes_drilling: bool = False
    includes_production: bool = False
    voyage_number: Optional[str] = None
    duration_hours: Optional[float] = None

    def to_record(self) -> VoyageRecord:
        data = self.model_dump()
        data["locations"] = tuple(data["locations"])
        return VoyageRecord(**data)


class RecordBatchModel(BaseModel):
    """Full record batch; omitted datasets are empty."""
    voyage_events: List[VoyageEventModel] = Field(default_factory=list)
    vessel_manifests: List[VesselManifestModel] = Field(default_factory=list)
    cost_allocations: List[CostAllocationLineModel] = Field(default_factory=list)
    bulk_actions: List[BulkFluidActionModel] = Field(default_factory=list)
    voyages: List[VoyageRecordModel] = Field(default_factory=list)

    def to_batch(self, source: str = "json") -> RecordBatch:
        return RecordBatch.build(
            voyage_events=[r.to_record() for r in self.voyage_events],
            vessel_manifests=[r.to_record() for r in self.vessel_manifests],
            cost_allocations=[r.to_record() for r in self.cost_allocations],
            bulk_actions=[r.to_record() for r in self.bulk_actions],
            voyages=[r.to_record() for r in self.voyages],
            source={name: source for name, records in self if records},
        )
