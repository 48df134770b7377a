"""Unit tests for the vessel cost model."""

from datetime import datetime

import pytest

from conftest import make_cost_line, make_event
from src.logistics.costs import (
    BudgetComparison,
    budget_vs_actual,
    daily_rate_for,
    event_vessel_cost,
    line_cost,
)


class TestDailyRate:
    @pytest.mark.parametrize("when,expected", [
        (datetime(2023, 6, 1), 33000.0),
        (datetime(2024, 1, 1), 33000.0),
        (datetime(2025, 3, 31, 23), 33000.0),
        (datetime(2025, 4, 1), 37800.0),
        (None, 37800.0),
    ])
    def test_rate_by_effective_date(self, when, expected):
        assert daily_rate_for(when) == expected

    def test_custom_table(self):
        table = ((datetime(2020, 1, 1), 10.0), (datetime(2021, 1, 1), 20.0))
        assert daily_rate_for(datetime(2020, 6, 1), table) == 10.0


class TestEventCost:
    def test_rate_based(self):
        event = make_event(hours=12.0, vessel_cost_total=None)
        assert event_vessel_cost(event) == 16500.0

    def test_stored_cost_used(self):
        event = make_event(hours=12.0, vessel_cost_total=20000.0)
        assert event_vessel_cost(event) == 20000.0

    def test_stored_cost_scaled_for_share(self):
        event = make_event(hours=12.0, vessel_cost_total=20000.0)
        assert event_vessel_cost(event, hours=3.0) == 5000.0

    def test_share_capped_at_full_cost(self):
        event = make_event(hours=12.0, vessel_cost_total=20000.0)
        assert event_vessel_cost(event, hours=30.0) == 20000.0

    def test_negative_stored_cost_ignored(self):
        event = make_event(hours=24.0, vessel_cost_total=-1.0)
        assert event_vessel_cost(event) == 33000.0

    def test_no_hours(self):
        assert event_vessel_cost(make_event(hours=None)) == 0.0
        assert event_vessel_cost(make_event(hours=-2.0)) == 0.0


class TestLineCost:
    def test_total_cost_first(self):
        assert line_cost(make_cost_line(total_cost=100.0, budgeted_cost=50.0)) == 100.0

    def test_budget_fallback(self):
        assert line_cost(make_cost_line(total_cost=None, budgeted_cost=50.0)) == 50.0

    def test_days_times_rate(self):
        line = make_cost_line(total_cost=None, allocated_days=2.0, daily_rate=1000.0)
        assert line_cost(line) == 2000.0

    def test_days_times_table_rate(self):
        line = make_cost_line(total_cost=None, allocated_days=2.0, month=5, year=2025)
        assert line_cost(line) == 75600.0

    def test_nothing_known(self):
        assert line_cost(make_cost_line(total_cost=None)) == 0.0


class TestBudgetVsActual:
    def test_per_code_comparison(self):
        lines = [
            make_cost_line(allocation_code="10140", budgeted_cost=40000.0),
            make_cost_line(allocation_code="9358", total_cost=10000.0),
        ]
        events = [
            make_event(allocation_code="10140", hours=24.0),
            make_event(allocation_code="10140", hours=12.0),
            make_event(allocation_code="77777", hours=24.0),
        ]
        result = {c.allocation_code: c for c in budget_vs_actual(lines, events)}
        assert sorted(result) == ["10140", "9358"]
        assert result["10140"].budgeted == 40000.0
        assert result["10140"].actual == 49500.0
        assert result["10140"].variance == 9500.0
        assert result["9358"].actual == 0.0

    def test_apportioned_hours_pairs(self):
        lines = [make_cost_line(allocation_code="10140", budgeted_cost=40000.0)]
        events = [(make_event(allocation_code="10140", hours=24.0), 6.0)]
        result = budget_vs_actual(lines, events)
        assert result[0].actual == 8250.0

    def test_variance_percent(self):
        assert BudgetComparison("1", 200.0, 250.0).variance_percent == 25.0
        assert BudgetComparison("1", 0.0, 250.0).variance_percent == 0.0

    def test_to_dict(self):
        data = BudgetComparison("10140", 100.0, 90.0).to_dict()
        assert data == {
            "allocation_code": "10140", "budgeted": 100.0, "actual": 90.0,
            "variance": -10.0, "variance_percent": -10.0,
        }
