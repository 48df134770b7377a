"""
Data integrity API router.
"""

import asyncio
import logging

from fastapi import APIRouter, HTTPException

from api.config import settings
from api.schemas import IntegrityReportResponse
from api.state import get_app_state
from src.config import settings as engine_settings
from src.logistics.integrity import DataIntegrityValidator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/integrity", tags=["Integrity"])


@router.get("", response_model=IntegrityReportResponse)
async def get_integrity_report():
    """Integrity report and quality score for the held batch."""
    app_state = get_app_state()
    loaded = app_state.get_batch()
    if loaded is None:
        raise HTTPException(status_code=404, detail="No record batch loaded")

    validator = DataIntegrityValidator(
        registry=app_state.registry,
        resolver=app_state.resolver,
        single_month_min_records=engine_settings.single_month_min_records,
        coverage_warning_percent=engine_settings.coverage_warning_percent,
    )
    try:
        report = await asyncio.wait_for(
            asyncio.to_thread(validator.validate, loaded.batch),
            timeout=settings.kpi_timeout_seconds,
        )
    except asyncio.TimeoutError:
        raise HTTPException(status_code=504, detail="Integrity validation timed out")

    if report.critical_count:
        logger.warning(f"Batch {loaded.batch_id}: {report.critical_count} critical integrity issues")
    return IntegrityReportResponse(**report.to_dict(), batch_id=loaded.batch_id)
