"""
Facility registry API router.

Read-only access to the registry and the location resolver.
"""

import logging

from fastapi import APIRouter, HTTPException, Query

from api.schemas import FacilityListResponse, FacilityResponse, ResolveResponse
from api.state import get_app_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/facilities", tags=["Facilities"])


@router.get("", response_model=FacilityListResponse)
async def list_facilities():
    """All registry facilities."""
    return get_app_state().registry.to_dict()


@router.get("/resolve", response_model=ResolveResponse)
async def resolve_location(location: str = Query(..., min_length=1, description="Raw location string")):
    """Resolve a free-text location to a facility, reporting the matching rule."""
    facility, rule = get_app_state().resolver.explain(location)
    return ResolveResponse(
        location=location,
        resolved=facility is not None,
        rule=rule,
        facility=FacilityResponse(**facility.to_dict()) if facility else None,
    )


@router.get("/{facility_id}", response_model=FacilityResponse)
async def get_facility(facility_id: int):
    facility = get_app_state().registry.get(facility_id)
    if facility is None:
        raise HTTPException(status_code=404, detail=f"Facility {facility_id} not found")
    return facility.to_dict()
