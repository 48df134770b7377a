"""Facility registry API schemas."""

from typing import List, Optional

from pydantic import BaseModel


class FacilityResponse(BaseModel):
    """One registry facility."""
    facility_id: int
    location_name: str
    display_name: str
    facility_type: str
    aliases: List[str] = []
    drilling_codes: List[str] = []
    production_codes: List[str] = []
    parent_id: Optional[int] = None
    region: Optional[str] = None
    is_active: bool = True


class FacilityListResponse(BaseModel):
    count: int
    facilities: List[FacilityResponse]


class ResolveResponse(BaseModel):
    """Resolution of one raw location string."""
    location: str
    resolved: bool
    rule: str
    facility: Optional[FacilityResponse] = None
