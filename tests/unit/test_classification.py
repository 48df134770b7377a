"""Unit tests for drilling/production classification."""

from conftest import make_cost_line, make_event, make_manifest
from src.logistics.classification import (
    Classification,
    ClassificationPolicy,
    build_ledger_code_map,
)


class TestAllocationCodeRule:
    def test_production_code_beats_drilling_department(self, registry):
        policy = ClassificationPolicy(registry)
        decision = policy.explain(make_event(allocation_code="9358", department="Drilling"))
        assert decision.classification == Classification.PRODUCTION
        assert decision.rule == "allocation_code"
        assert decision.via_allocation_code

    def test_drilling_code(self, registry):
        policy = ClassificationPolicy(registry)
        assert policy.classify(make_event(allocation_code="10140")) == Classification.DRILLING

    def test_float_code_normalized(self, registry):
        policy = ClassificationPolicy(registry)
        assert policy.classify(make_manifest(allocation_code="9358.0")) == Classification.PRODUCTION


class TestFallbackRules:
    def test_department(self, registry):
        decision = ClassificationPolicy(registry).explain(make_event(department="Drilling"))
        assert decision.classification == Classification.DRILLING
        assert decision.rule == "department"
        assert not decision.via_allocation_code

    def test_project_type_on_cost_line(self, registry):
        line = make_cost_line(allocation_code=None, rig_location=None, department=None,
                              project_type="Completions")
        decision = ClassificationPolicy(registry).explain(line)
        assert decision.classification == Classification.DRILLING
        assert decision.rule == "project_type"

    def test_drill_in_rig_location(self, registry):
        line = make_cost_line(allocation_code=None, department=None,
                              rig_location="Thunder Horse Drilling")
        decision = ClassificationPolicy(registry).explain(line)
        assert decision.classification == Classification.DRILLING
        assert decision.rule == "location_heuristic"

    def test_drilling_facility_in_rig_location(self, registry):
        line = make_cost_line(allocation_code=None, department=None, rig_location="Ocean BlackLion")
        assert ClassificationPolicy(registry).classify(line) == Classification.DRILLING

    def test_production_token_blocks_drilling_heuristic(self, registry):
        line = make_cost_line(allocation_code=None, department=None, rig_location="Thunder Horse PDQ")
        decision = ClassificationPolicy(registry).explain(line)
        assert decision.classification == Classification.PRODUCTION
        assert decision.rule == "production_signal"

    def test_location_heuristic_ignores_events(self, registry):
        event = make_event(location="Ocean BlackLion", department=None)
        assert ClassificationPolicy(registry).classify(event) == Classification.UNCLASSIFIED

    def test_production_department(self, registry):
        event = make_event(department="Production")
        assert ClassificationPolicy(registry).classify(event) == Classification.PRODUCTION

    def test_unclassified(self, registry):
        event = make_event(department=None, allocation_code="424242")
        decision = ClassificationPolicy(registry).explain(event)
        assert decision.classification == Classification.UNCLASSIFIED
        assert decision.rule == "none"


class TestLedgerCodeMap:
    def test_learns_unregistered_codes(self, registry):
        lines = [make_cost_line(allocation_code="555", department=None, rig_location="Ocean BlackLion")]
        ledger = build_ledger_code_map(lines, registry)
        assert ledger == {"555": Classification.DRILLING}

    def test_registry_codes_not_learned(self, registry):
        lines = [make_cost_line(allocation_code="9358", department="Drilling")]
        assert build_ledger_code_map(lines, registry) == {}

    def test_conflict_resolves_to_production(self, registry):
        lines = [
            make_cost_line(allocation_code="777", department="Drilling"),
            make_cost_line(allocation_code="777", department="Production", rig_location=None),
        ]
        assert build_ledger_code_map(lines, registry)["777"] == Classification.PRODUCTION

    def test_policy_uses_ledger(self, registry):
        lines = [make_cost_line(allocation_code="555", department="Drilling")]
        policy = ClassificationPolicy.for_cost_lines(lines, registry)
        decision = policy.explain(make_event(allocation_code="555", department="Production"))
        assert decision.classification == Classification.DRILLING
        assert decision.rule == "ledger_code"
        assert decision.via_allocation_code

    def test_unclassified_lines_skipped(self, registry):
        lines = [make_cost_line(allocation_code="888", department=None, rig_location="Random Platform")]
        assert build_ledger_code_map(lines, registry) == {}
