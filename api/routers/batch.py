"""
Record batch API router.

Loads a record batch from JSON or from spreadsheet/CSV uploads (one
optional file per dataset). A new batch replaces the held one
wholesale and drops its cached KPI results.
"""

import logging
import tempfile
from pathlib import Path
from typing import Dict, Optional

from fastapi import APIRouter, File, HTTPException, Request, UploadFile

from api.cache import kpi_cache
from api.config import settings
from api.rate_limit import limiter, get_rate_limit_string
from api.schemas import BatchSummaryResponse, BatchUploadResponse, RecordBatchModel
from api.state import get_app_state
from src.logistics.records import RecordBatch
from src.logistics.tabular import TabularBatchLoader

logger = logging.getLogger(__name__)

ALLOWED_SUFFIXES = {".xlsx", ".xls", ".csv"}

router = APIRouter(prefix="/api/batch", tags=["Batch"])


def _swap_batch(batch: RecordBatch):
    app_state = get_app_state()
    previous = app_state.get_batch()
    loaded = app_state.replace_batch(batch)
    if previous is not None:
        kpi_cache.invalidate_batch(previous.batch_id)
    return loaded


async def _read_upload(upload: UploadFile, loader: TabularBatchLoader, dataset: str) -> list:
    """Parse one uploaded file into records; HTTP errors for bad input."""
    content = await upload.read()
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail=f"{dataset}: file too large. Maximum: {settings.max_upload_mb} MB")
    if len(content) == 0:
        raise HTTPException(status_code=400, detail=f"{dataset}: empty file")

    suffix = Path(upload.filename or "").suffix.lower() or ".xlsx"
    if suffix not in ALLOWED_SUFFIXES:
        raise HTTPException(status_code=400, detail=f"{dataset}: unsupported file type {suffix}")

    with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp:
        tmp.write(content)
        tmp_path = Path(tmp.name)

    try:
        frame = loader.read_frame(tmp_path)
        return loader.parse_frame(dataset, frame)
    except (ValueError, FileNotFoundError) as e:
        raise HTTPException(status_code=400, detail=f"{dataset}: {e}")
    finally:
        tmp_path.unlink(missing_ok=True)


@router.post("", response_model=BatchSummaryResponse)
@limiter.limit(get_rate_limit_string())
async def load_batch(request: Request, body: RecordBatchModel):
    """Load a JSON record batch, replacing any held batch."""
    loaded = _swap_batch(body.to_batch())
    return loaded.summary()


@router.post("/upload", response_model=BatchUploadResponse)
@limiter.limit(settings.upload_rate_limit)
async def upload_batch(
    request: Request,
    voyage_events: Optional[UploadFile] = File(None),
    vessel_manifests: Optional[UploadFile] = File(None),
    cost_allocations: Optional[UploadFile] = File(None),
    bulk_actions: Optional[UploadFile] = File(None),
    voyages: Optional[UploadFile] = File(None),
):
    """Upload spreadsheet/CSV exports, one optional file per dataset."""
    uploads: Dict[str, Optional[UploadFile]] = {
        "voyage_events": voyage_events,
        "vessel_manifests": vessel_manifests,
        "cost_allocations": cost_allocations,
        "bulk_actions": bulk_actions,
        "voyages": voyages,
    }
    uploads = {k: v for k, v in uploads.items() if v is not None}
    if not uploads:
        raise HTTPException(status_code=400, detail="No files uploaded")

    loader = TabularBatchLoader(get_app_state().registry)
    collections = {}
    for dataset, upload in uploads.items():
        collections[dataset] = await _read_upload(upload, loader, dataset)

    batch = RecordBatch.build(
        source={k: v.filename or k for k, v in uploads.items()},
        **collections,
    )
    if batch.is_empty:
        raise HTTPException(status_code=400, detail="No valid records found in uploaded files")

    loaded = _swap_batch(batch)
    stats = loader.get_statistics()
    return BatchUploadResponse(
        **loaded.summary(),
        skipped_rows={k: v["skipped"] for k, v in stats.items()},
    )


@router.get("", response_model=BatchSummaryResponse)
async def get_batch():
    loaded = get_app_state().get_batch()
    if loaded is None:
        raise HTTPException(status_code=404, detail="No record batch loaded")
    return loaded.summary()


@router.delete("")
async def clear_batch():
    previous = get_app_state().clear_batch()
    if previous is None:
        raise HTTPException(status_code=404, detail="No record batch loaded")
    kpi_cache.invalidate_batch(previous.batch_id)
    return {"status": "cleared", "batch_id": previous.batch_id}
