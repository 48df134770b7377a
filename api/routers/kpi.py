"""
KPI API router.

Computes the KPI set for a filter selection over the held batch (cached
per batch and selection) or over a batch posted with the request.
Computation runs in a worker thread under a timeout.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from api.cache import kpi_cache
from api.config import settings
from api.rate_limit import limiter, get_rate_limit_string
from api.schemas import (
    BudgetResponse, FluidMovementsResponse, KpiComputeRequest, KpiSetResponse, SelectionModel,
)
from api.state import LoadedBatch, get_app_state
from src.logistics.fluid_dedup import build_deduplication_report, consolidate, movements_for_facility
from src.logistics.kpi import FilterSelection, KpiSet, compute_kpis
from src.logistics.periods import in_window
from src.logistics.records import RecordBatch

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/kpis", tags=["KPIs"])


def _parse_selection(params: SelectionModel) -> FilterSelection:
    try:
        return FilterSelection.parse(
            period=params.period,
            month=params.month,
            year=params.year,
            location=params.location,
            department=params.department,
            registry=get_app_state().registry,
            lag_months=settings.reporting_lag_months,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _require_batch() -> LoadedBatch:
    loaded = get_app_state().get_batch()
    if loaded is None:
        raise HTTPException(status_code=404, detail="No record batch loaded")
    return loaded


async def _compute(batch: RecordBatch, selection: FilterSelection) -> KpiSet:
    app_state = get_app_state()
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(
                compute_kpis,
                batch,
                selection,
                registry=app_state.registry,
                vessels=app_state.vessels,
                resolver=app_state.resolver,
                parallel=settings.kpi_parallel,
                max_workers=settings.kpi_workers,
                lag_months=settings.reporting_lag_months,
            ),
            timeout=settings.kpi_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.error(f"KPI computation timed out after {settings.kpi_timeout_seconds}s for {selection.to_dict()}")
        raise HTTPException(status_code=504, detail="KPI computation timed out")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


async def _held_kpis(selection: FilterSelection) -> tuple:
    """(batch handle, KpiSet, served_from_cache) for the held batch."""
    loaded = _require_batch()
    key = (loaded.batch_id, selection.cache_key)
    if settings.cache_enabled:
        cached = kpi_cache.get(key)
        if cached is not None:
            return loaded, cached, True
    kpis = await _compute(loaded.batch, selection)
    if settings.cache_enabled:
        kpi_cache.set(key, kpis)
    return loaded, kpis, False


def _selection_params(
    period: str,
    month: Optional[str],
    year: Optional[int],
    location: Optional[str],
    department: Optional[str],
) -> SelectionModel:
    return SelectionModel(period=period, month=month, year=year, location=location, department=department)


@router.get("", response_model=KpiSetResponse)
@limiter.limit(get_rate_limit_string())
async def get_kpis(
    request: Request,
    period: str = Query("all", description="all | month | ytd"),
    month: Optional[str] = Query(None, description="Month name, abbreviation or number"),
    year: Optional[int] = Query(None),
    location: Optional[str] = Query(None, description="Facility name, alias or id"),
    department: Optional[str] = Query(None, description="All | Drilling | Production"),
):
    """KPI set for the held batch under one filter selection."""
    selection = _parse_selection(_selection_params(period, month, year, location, department))
    loaded, kpis, cached = await _held_kpis(selection)
    return KpiSetResponse(**kpis.to_dict(), batch_id=loaded.batch_id, cached=cached)


@router.post("/compute", response_model=KpiSetResponse)
@limiter.limit(get_rate_limit_string())
async def compute_stateless(request: Request, body: KpiComputeRequest):
    """KPI set for a batch posted with the request; nothing is held or cached."""
    selection = _parse_selection(body.selection)
    kpis = await _compute(body.batch.to_batch(), selection)
    return KpiSetResponse(**kpis.to_dict())


@router.get("/fluids", response_model=FluidMovementsResponse)
async def get_fluid_movements(
    period: str = Query("all"),
    month: Optional[str] = Query(None),
    year: Optional[int] = Query(None),
    location: Optional[str] = Query(None),
):
    """Consolidated fluid movements for the held batch, with the consolidation report."""
    selection = _parse_selection(_selection_params(period, month, year, location, None))
    loaded = _require_batch()
    app_state = get_app_state()

    actions = [a for a in loaded.batch.bulk_actions if in_window(a.start_date, selection.period)]
    movements = consolidate(actions, app_state.resolver)
    report = build_deduplication_report(actions, movements, app_state.resolver)
    if selection.location_id is not None:
        facility = app_state.registry.get(selection.location_id)
        movements = movements_for_facility(movements, facility, app_state.resolver)

    return FluidMovementsResponse(
        batch_id=loaded.batch_id,
        movements=[m.to_dict() for m in movements],
        report=report.to_dict(),
    )


@router.get("/budget", response_model=BudgetResponse)
async def get_budget(
    period: str = Query("all"),
    month: Optional[str] = Query(None),
    year: Optional[int] = Query(None),
    location: Optional[str] = Query(None),
    department: Optional[str] = Query(None),
):
    """Budgeted vs actual vessel cost per allocation code."""
    selection = _parse_selection(_selection_params(period, month, year, location, department))
    loaded, kpis, _ = await _held_kpis(selection)
    return BudgetResponse(
        batch_id=loaded.batch_id,
        selection=selection.to_dict(),
        comparisons=kpis.budget_vs_actual,
    )
