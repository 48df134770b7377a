"""Batch loading API schemas."""

from typing import Dict, Optional

from pydantic import BaseModel


class BatchSummaryResponse(BaseModel):
    """The currently held record batch."""
    batch_id: str
    loaded_at: str
    counts: Dict[str, int]
    total_records: int
    source: Dict[str, str] = {}


class BatchUploadResponse(BatchSummaryResponse):
    """Response from a spreadsheet/CSV batch upload."""
    status: str = "loaded"
    skipped_rows: Dict[str, int] = {}
