"""Integration tests for KPI and integrity endpoints."""

import pytest

MARCH_DRILLING = {"period": "month", "month": "Mar", "year": 2024, "department": "Drilling"}


@pytest.fixture
def loaded(client, sample_batch_payload):
    return client.post("/api/batch", json=sample_batch_payload).json()


class TestKpiEndpoint:
    def test_requires_batch(self, client):
        assert client.get("/api/kpis").status_code == 404

    def test_drilling_month(self, client, loaded):
        response = client.get("/api/kpis", params=MARCH_DRILLING)
        assert response.status_code == 200
        data = response.json()
        assert data["batch_id"] == loaded["batch_id"]
        assert data["selection"]["label"] == "March 2024"
        assert data["selection"]["department"] == "Drilling"
        assert data["comparison"] == "February 2024"
        assert data["cargo"]["cargo_tons"]["value"] == 120.0
        assert data["cargo"]["cargo_tons"]["trend_percent"] == 140.0
        assert data["hours"]["total_hours"]["value"] == 19.0
        assert data["cost"]["total_cost"]["value"] == 33000.0
        assert data["fluids"]["fluid_volume_bbls"]["value"] == 500.0

    def test_second_call_served_from_cache(self, client, loaded):
        first = client.get("/api/kpis", params=MARCH_DRILLING).json()
        second = client.get("/api/kpis", params=MARCH_DRILLING).json()
        assert first["cached"] is False
        assert second["cached"] is True
        first.pop("cached")
        second.pop("cached")
        assert first == second

    def test_new_batch_invalidates_cache(self, client, loaded, sample_batch_payload):
        client.get("/api/kpis", params=MARCH_DRILLING)
        client.post("/api/batch", json=sample_batch_payload)
        assert client.get("/api/kpis", params=MARCH_DRILLING).json()["cached"] is False

    def test_location_filter(self, client, loaded):
        params = {"period": "month", "month": "3", "year": 2024, "location": "102"}
        data = client.get("/api/kpis", params=params).json()
        assert data["selection"]["location_id"] == 102
        assert data["hours"]["total_hours"]["value"] == 6.0

    @pytest.mark.parametrize("params", [
        {"period": "quarter"},
        {"period": "month", "month": "Mar"},
        {"period": "month", "month": "Smarch", "year": 2024},
        {"department": "Finance"},
        {"location": "Random Platform"},
    ])
    def test_bad_selection(self, client, loaded, params):
        assert client.get("/api/kpis", params=params).status_code == 400

    def test_compute_stateless(self, client, sample_batch_payload):
        response = client.post("/api/kpis/compute", json={
            "batch": sample_batch_payload,
            "selection": MARCH_DRILLING,
        })
        assert response.status_code == 200
        data = response.json()
        assert data["batch_id"] is None
        assert data["cargo"]["cargo_tons"]["value"] == 120.0
        assert client.get("/api/batch").status_code == 404

    def test_compute_requires_batch_body(self, client):
        assert client.post("/api/kpis/compute", json={}).status_code == 422


class TestFluidAndBudgetEndpoints:
    def test_fluid_movements(self, client, loaded):
        data = client.get("/api/kpis/fluids").json()
        assert len(data["movements"]) == 1
        assert data["movements"][0]["volume_bbls"] == 500.0
        assert data["report"]["raw_actions"] == 2
        assert data["report"]["load_legs_excluded"] == 1

    def test_fluid_movements_other_location(self, client, loaded):
        data = client.get("/api/kpis/fluids", params={"location": "Na Kika"}).json()
        assert data["movements"] == []

    def test_fluids_require_batch(self, client):
        assert client.get("/api/kpis/fluids").status_code == 404

    def test_budget(self, client, loaded):
        data = client.get("/api/kpis/budget").json()
        codes = {c["allocation_code"] for c in data["comparisons"]}
        assert codes == {"10140", "9358"}
        assert data["selection"]["period"] == "all"


class TestIntegrityEndpoint:
    def test_requires_batch(self, client):
        assert client.get("/api/integrity").status_code == 404

    def test_report(self, client, loaded):
        data = client.get("/api/integrity").json()
        assert data["batch_id"] == loaded["batch_id"]
        assert 0.0 <= data["score"] <= 100.0
        assert set(data["issue_counts"]) == {"Critical", "Warning", "Info"}
        assert "voyage_events" in data["datasets"]
