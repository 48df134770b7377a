"""Unit tests for bulk fluid movement deduplication."""

from datetime import date, datetime

from conftest import make_bulk_action, make_fluid_transfer
from src.logistics.fluid_dedup import (
    MovementType,
    build_deduplication_report,
    classify_movement_type,
    consolidate,
    movements_for_facility,
)


class TestConsolidate:
    def test_load_and_offload_counted_once(self):
        movements = consolidate(make_fluid_transfer(500.0))
        assert len(movements) == 1
        assert movements[0].volume_bbls == 500.0
        assert movements[0].day == date(2024, 3, 10)
        assert movements[0].includes_drilling_fluid

    def test_same_day_offloads_grouped(self):
        actions = [
            make_bulk_action(volume_bbls=300.0),
            make_bulk_action(volume_bbls=200.0, start_date=datetime(2024, 3, 10, 18, 0)),
        ]
        movements = consolidate(actions)
        assert len(movements) == 1
        assert movements[0].volume_bbls == 500.0
        assert movements[0].action_count == 2

    def test_grouping_ignores_case_and_spacing(self):
        actions = [
            make_bulk_action(vessel="Fast  Tiger", bulk_type="SBM"),
            make_bulk_action(vessel="FAST TIGER", bulk_type="sbm"),
        ]
        assert len(consolidate(actions)) == 1

    def test_different_fluid_types_kept_apart(self):
        actions = [
            make_bulk_action(bulk_type="SBM"),
            make_bulk_action(bulk_type="Calcium Bromide", is_drilling_fluid=False, is_completion_fluid=True),
        ]
        movements = consolidate(actions)
        assert len(movements) == 2
        assert sum(m.volume_bbls for m in movements) == 1000.0

    def test_different_days_kept_apart(self):
        actions = [
            make_bulk_action(),
            make_bulk_action(start_date=datetime(2024, 3, 11, 6, 0)),
        ]
        assert len(consolidate(actions)) == 2

    def test_base_deliveries_excluded(self):
        assert consolidate([make_bulk_action(destination_port_type="base")]) == []

    def test_non_fluid_excluded(self):
        assert consolidate([make_bulk_action(bulk_type="Water", is_drilling_fluid=False)]) == []

    def test_invalid_volume_or_date_excluded(self):
        actions = [
            make_bulk_action(volume_bbls=0.0),
            make_bulk_action(volume_bbls=None),
            make_bulk_action(start_date=None),
        ]
        assert consolidate(actions) == []

    def test_output_is_deterministic(self):
        actions = [
            make_bulk_action(vessel="HOS Panther"),
            make_bulk_action(vessel="Fast Tiger"),
            make_bulk_action(vessel="Amber", start_date=datetime(2024, 3, 1)),
        ]
        forward = consolidate(actions)
        backward = consolidate(list(reversed(actions)))
        assert [m.movement_id for m in forward] == [m.movement_id for m in backward]

    def test_destination_facility_with_resolver(self, resolver):
        movement = consolidate(make_fluid_transfer(), resolver)[0]
        assert movement.destination_facility_id == 101
        assert movement.movement_type == MovementType.FOURCHON_TO_OFFSHORE

    def test_to_dict(self):
        data = consolidate(make_fluid_transfer())[0].to_dict()
        assert data["day"] == "2024-03-10"
        assert data["fluid_types"] == ["SBM"]
        assert data["movement_type"] == "Fourchon-to-Offshore"


class TestMovementType:
    def test_vessel_to_facility_without_origin(self):
        assert classify_movement_type(None, "Na Kika") == MovementType.VESSEL_TO_FACILITY

    def test_offshore_to_offshore(self, resolver):
        assert classify_movement_type("Na Kika", "Argos", resolver) == MovementType.OFFSHORE_TO_OFFSHORE

    def test_other(self, resolver):
        assert classify_movement_type("Somewhere Else", "Argos", resolver) == MovementType.OTHER


class TestDeduplicationReport:
    def test_accounts_for_every_action(self):
        actions = make_fluid_transfer(500.0) + [
            make_bulk_action(destination_port_type="base", destination_port="Fourchon"),
            make_bulk_action(bulk_type="Water", is_drilling_fluid=False),
            make_bulk_action(volume_bbls=-5.0),
        ]
        report = build_deduplication_report(actions)
        assert report.raw_actions == 5
        assert report.load_legs_excluded == 1
        assert report.non_rig_excluded == 1
        assert report.non_fluid_excluded == 1
        assert report.invalid_excluded == 1
        assert report.eligible_actions == 1
        assert report.movement_count == 1
        assert report.total_volume_bbls == 500.0
        assert report.duplicates_removed == 1

    def test_volume_mismatch_warning(self):
        actions = [
            make_bulk_action(action="Load", destination_port_type="base", volume_bbls=500.0),
            make_bulk_action(volume_bbls=450.0),
        ]
        report = build_deduplication_report(actions)
        assert len(report.warnings) == 1
        assert "loaded 500.0, delivered 450.0" in report.warnings[0]

    def test_matching_volumes_no_warning(self):
        assert build_deduplication_report(make_fluid_transfer(500.0)).warnings == []

    def test_breakdowns(self):
        report = build_deduplication_report(make_fluid_transfer(500.0))
        data = report.to_dict()
        assert data["volume_by_fluid_type"] == {"SBM": 500.0}
        assert data["volume_by_destination"] == {"Thunder Horse PDQ": 500.0}
        assert data["raw_volume_bbls"] == 1000.0


class TestMovementsForFacility:
    def test_parent_selection_includes_children(self, registry, resolver):
        actions = [
            make_bulk_action(destination_port="Thunder Horse Drilling"),
            make_bulk_action(destination_port="Na Kika"),
        ]
        movements = consolidate(actions, resolver)
        selected = movements_for_facility(movements, registry.get(101), resolver)
        assert [m.destination for m in selected] == ["Thunder Horse Drilling"]
