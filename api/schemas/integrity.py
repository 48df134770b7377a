"""Data integrity API schemas."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class IssueModel(BaseModel):
    severity: str
    category: str
    dataset: str
    message: str
    field: Optional[str] = None
    record_ref: Optional[str] = None
    count: int = 1
    suggestion: Optional[str] = None


class DatasetQualityModel(BaseModel):
    record_count: int
    completeness_score: float
    consistency_score: float


class IntegrityReportResponse(BaseModel):
    """Integrity report for the loaded batch."""
    batch_id: Optional[str] = None
    score: float = Field(..., ge=0, le=100)
    generated_at: str
    issue_counts: Dict[str, int]
    datasets: Dict[str, DatasetQualityModel]
    issues: List[IssueModel]
    recommendations: List[str]
