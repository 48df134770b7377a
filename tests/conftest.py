"""
Shared pytest fixtures for logistics KPI tests.

Environment variables must be set before api.config is imported anywhere:
the API settings object is built at import time, and the rate limiter
and Redis client are created from it.
"""

import io
import os
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

# ---------------------------------------------------------------------------
# Section 1: Environment setup (before ANY api.* imports)
# ---------------------------------------------------------------------------
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("KPI_PARALLEL", "false")
os.environ.setdefault("LOG_LEVEL", "warning")

from src.logistics.facilities import FacilityRegistry  # noqa: E402
from src.logistics.location_resolver import LocationResolver  # noqa: E402
from src.logistics.records import (  # noqa: E402
    BulkFluidAction, CostAllocationLine, RecordBatch, VesselManifest, VoyageEvent, VoyageRecord,
)

# ---------------------------------------------------------------------------
# Section 2: Client fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def client():
    """FastAPI TestClient with no held batch and an empty KPI cache."""
    from api.cache import kpi_cache
    from api.main import app
    from api.state import get_app_state

    get_app_state().clear_batch()
    kpi_cache.clear()
    with TestClient(app) as test_client:
        yield test_client
    get_app_state().clear_batch()
    kpi_cache.clear()


# ---------------------------------------------------------------------------
# Section 3: Reference data fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def registry():
    return FacilityRegistry.default()


@pytest.fixture(scope="session")
def resolver(registry):
    return LocationResolver(registry)


# ---------------------------------------------------------------------------
# Section 4: Record builders
# ---------------------------------------------------------------------------


def make_event(**kwargs):
    """Voyage event with sensible defaults; override any field by keyword."""
    fields = dict(
        vessel="Fast Tiger",
        event_date=datetime(2024, 3, 10, 8, 0),
        location="Thunder Horse PDQ",
        parent_event="Cargo Ops",
        activity_category="Productive",
        hours=5.0,
        port_type="rig",
    )
    fields.update(kwargs)
    return VoyageEvent(**fields)


def make_manifest(**kwargs):
    fields = dict(
        vessel="Fast Tiger",
        manifest_date=datetime(2024, 3, 10),
        origin="Fourchon",
        destination="Thunder Horse PDQ",
        deck_tons=100.0,
        rt_tons=20.0,
        lifts=10.0,
    )
    fields.update(kwargs)
    return VesselManifest(**fields)


def make_cost_line(**kwargs):
    fields = dict(
        allocation_code="10140",
        rig_location="Deepwater Invictus",
        department="Drilling",
        total_cost=33000.0,
        month=3,
        year=2024,
    )
    fields.update(kwargs)
    return CostAllocationLine(**fields)


def make_bulk_action(**kwargs):
    fields = dict(
        vessel="Fast Tiger",
        start_date=datetime(2024, 3, 10, 6, 0),
        action="Offload",
        origin_port="Fourchon",
        destination_port="Thunder Horse PDQ",
        destination_port_type="rig",
        volume_bbls=500.0,
        bulk_type="SBM",
        is_drilling_fluid=True,
    )
    fields.update(kwargs)
    return BulkFluidAction(**fields)


def make_voyage(**kwargs):
    fields = dict(
        vessel="Fast Tiger",
        start_date=datetime(2024, 3, 9),
        origin_port="Fourchon",
        main_destination="Thunder Horse PDQ",
        locations=("Fourchon", "Thunder Horse PDQ"),
        purpose="Drilling",
        includes_drilling=True,
    )
    fields.update(kwargs)
    return VoyageRecord(**fields)


def make_fluid_transfer(volume=500.0, **kwargs):
    """The load leg at the base and the offload leg at the rig of one transfer."""
    load = make_bulk_action(
        action="Load", destination_port_type="base", start_date=datetime(2024, 3, 10, 2, 0),
        volume_bbls=volume, **kwargs,
    )
    offload = make_bulk_action(volume_bbls=volume, **kwargs)
    return [load, offload]


@pytest.fixture
def sample_batch():
    """A small March/February 2024 batch touching every dataset."""
    return RecordBatch.build(
        voyage_events=[
            make_event(department="Drilling"),
            make_event(parent_event="Transit", hours=10.0, port_type=None, department="Drilling"),
            make_event(
                parent_event="Waiting on Weather", activity_category="Non-Productive",
                hours=4.0, department="Drilling",
            ),
            make_event(event_date=datetime(2024, 2, 12), hours=4.0, department="Drilling"),
            make_event(
                location="Mad Dog Prod", allocation_code="9358", department="Production", hours=6.0,
            ),
        ],
        vessel_manifests=[
            make_manifest(allocation_code="10140", manifest_number="M-1"),
            make_manifest(manifest_date=datetime(2024, 2, 12), deck_tons=50.0, rt_tons=0.0,
                          lifts=5.0, allocation_code="10140", manifest_number="M-2"),
            make_manifest(destination="Mad Dog Prod", allocation_code="9358", manifest_number="M-3"),
        ],
        cost_allocations=[
            make_cost_line(),
            make_cost_line(month=2, total_cost=30000.0),
            make_cost_line(allocation_code="9358", rig_location="Mad Dog Prod",
                           department="Production", total_cost=20000.0),
        ],
        bulk_actions=make_fluid_transfer(500.0),
        voyages=[make_voyage(), make_voyage(start_date=datetime(2024, 2, 11))],
        source={"voyage_events": "fixture"},
    )


@pytest.fixture
def sample_batch_payload(sample_batch):
    """sample_batch in the JSON form accepted by POST /api/batch."""
    from fastapi.encoders import jsonable_encoder

    return {
        name: [jsonable_encoder(record) for record in getattr(sample_batch, name)]
        for name in ("voyage_events", "vessel_manifests", "cost_allocations", "bulk_actions", "voyages")
    }


# ---------------------------------------------------------------------------
# Section 5: Spreadsheet helpers
# ---------------------------------------------------------------------------


def build_xlsx_bytes(rows, sheet_name="Sheet1"):
    """Excel file bytes from a list of row dicts (keys become headers)."""
    import pandas as pd

    df = pd.DataFrame(rows)
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
    buf.seek(0)
    return buf.read()


def build_csv_bytes(rows):
    import pandas as pd

    return pd.DataFrame(rows).to_csv(index=False).encode("utf-8")


VOYAGE_EVENT_ROWS = [
    {
        "Vessel": "Fast Tiger", "Event Date": "2024-03-10 08:00", "Location": "Thunder Horse PDQ",
        "Parent Event": "Cargo Ops", "Hours": 5, "Cost Dedicated to": "10140",
        "Department": "Drilling", "Port Type": "Rig",
    },
    {
        "Vessel": "Fast Tiger", "Event Date": "2024-03-10 13:00", "Location": "Thunder Horse PDQ",
        "Parent Event": "Waiting on Weather", "Hours": 2, "Cost Dedicated to": None,
        "Department": "Drilling", "Port Type": "Rig",
    },
    {
        "Vessel": "HOS Panther", "Event Date": "2024-03-11 09:00", "Location": "Mad Dog Drilling",
        "Parent Event": "Transit", "Hours": 8, "Cost Dedicated to": "9358 25, 10140 75",
        "Department": "Drilling", "Port Type": "Base",
    },
    {
        "Vessel": None, "Event Date": None, "Location": None,
        "Parent Event": None, "Hours": None, "Cost Dedicated to": None,
        "Department": None, "Port Type": None,
    },
]

MANIFEST_ROWS = [
    {
        "Transporter": "Fast Tiger", "Manifest Date": "2024-03-10", "From": "Fourchon",
        "Offshore Location": "Thunder Horse PDQ", "Deck Tons": 100, "RT Tons": 20, "Lifts": 10,
        "Cost Code": 10140, "Manifest Number": "M-1",
    },
]

BULK_ACTION_ROWS = [
    {
        "Vessel Name": "Fast Tiger", "Start Date": "2024-03-10 02:00", "Action": "Load",
        "At Port": "Fourchon", "Destination Port": "Thunder Horse PDQ", "Port Type": "Base",
        "Qty": 500, "Unit": "bbl", "Bulk Type": "SBM",
    },
    {
        "Vessel Name": "Fast Tiger", "Start Date": "2024-03-10 06:00", "Action": "Offload",
        "At Port": "Thunder Horse PDQ", "Destination Port": None, "Port Type": "Rig",
        "Qty": 500, "Unit": "bbl", "Bulk Type": "SBM",
    },
]


@pytest.fixture
def voyage_events_xlsx():
    return build_xlsx_bytes(VOYAGE_EVENT_ROWS)


@pytest.fixture
def manifests_xlsx():
    return build_xlsx_bytes(MANIFEST_ROWS)


@pytest.fixture
def bulk_actions_csv():
    return build_csv_bytes(BULK_ACTION_ROWS)
