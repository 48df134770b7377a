"""Unit tests for the data integrity validator."""

from datetime import datetime, timezone

import pytest

from conftest import make_bulk_action, make_cost_line, make_event, make_manifest
from src.logistics.integrity import DataIntegrityValidator, IssueCategory, Severity
from src.logistics.records import RecordBatch

NOW = datetime(2024, 6, 1)


@pytest.fixture
def validator(registry, resolver):
    return DataIntegrityValidator(registry=registry, resolver=resolver, now=NOW)


def _issues(report, category=None, severity=None, dataset=None):
    return [
        i for i in report.issues
        if (category is None or i.category == category)
        and (severity is None or i.severity == severity)
        and (dataset is None or i.dataset == dataset)
    ]


class TestEmptyAndClean:
    def test_empty_batch(self, validator):
        report = validator.validate(RecordBatch.build())
        assert report.score == 100.0
        assert len(report.issues) == 1
        assert report.issues[0].severity == Severity.INFO
        assert report.recommendations

    def test_clean_batch(self, validator):
        batch = RecordBatch.build(voyage_events=[
            make_event(allocation_code="10140"),
            make_event(allocation_code="10140", event_date=datetime(2024, 2, 5)),
        ])
        report = validator.validate(batch)
        assert report.issues == []
        assert report.score == 100.0
        assert report.datasets["voyage_events"].record_count == 2


class TestDatasetChecks:
    def test_missing_critical_field(self, validator):
        batch = RecordBatch.build(voyage_events=[make_event(vessel=None, allocation_code="10140")])
        report = validator.validate(batch)
        missing = _issues(report, IssueCategory.COMPLETENESS, Severity.CRITICAL)
        assert len(missing) == 1
        assert missing[0].field == "vessel"
        assert report.datasets["voyage_events"].completeness_score == 80.0

    def test_missing_optional_field_is_warning(self, validator):
        batch = RecordBatch.build(vessel_manifests=[make_manifest(destination=None)])
        report = validator.validate(batch)
        issues = _issues(report, IssueCategory.COMPLETENESS)
        assert [i.severity for i in issues] == [Severity.WARNING]
        assert report.critical_count == 0

    def test_negative_tonnage(self, validator):
        batch = RecordBatch.build(vessel_manifests=[make_manifest(deck_tons=-5.0)])
        logic = _issues(validator.validate(batch), IssueCategory.LOGIC)
        assert len(logic) == 1
        assert logic[0].severity == Severity.CRITICAL
        assert logic[0].field == "deck_tons"

    def test_end_before_start(self, validator):
        event = make_event(
            allocation_code="10140",
            started_at=datetime(2024, 3, 10, 12), ended_at=datetime(2024, 3, 10, 8),
        )
        report = validator.validate(RecordBatch.build(voyage_events=[event]))
        assert any(i.field == "ended_at" for i in _issues(report, IssueCategory.LOGIC))

    def test_mixed_timezones_compared(self, validator):
        event = make_event(
            allocation_code="10140",
            started_at=datetime(2024, 3, 1, 8, tzinfo=timezone.utc), ended_at=datetime(2024, 3, 1, 6),
        )
        report = validator.validate(RecordBatch.build(voyage_events=[event]))
        assert any(i.field == "ended_at" for i in _issues(report, IssueCategory.LOGIC))

    def test_findings_aggregated_per_check(self, validator):
        batch = RecordBatch.build(vessel_manifests=[make_manifest(lifts=-1.0) for _ in range(4)])
        logic = _issues(validator.validate(batch), IssueCategory.LOGIC)
        assert len(logic) == 1
        assert logic[0].count == 4
        assert "(4 records)" in logic[0].message

    def test_duplicate_ledger_codes(self, validator):
        batch = RecordBatch.build(cost_allocations=[make_cost_line(), make_cost_line()])
        consistency = _issues(validator.validate(batch), IssueCategory.CONSISTENCY)
        assert len(consistency) == 1
        assert "10140" in consistency[0].message

    def test_offload_without_destination(self, validator):
        batch = RecordBatch.build(bulk_actions=[make_bulk_action(destination_port=None)])
        report = validator.validate(batch)
        assert any(i.field == "destination_port" for i in report.issues)


class TestBatchChecks:
    def test_single_month_collapse_is_critical(self, validator):
        events = [make_event(allocation_code="10140", event_date=datetime(2024, 3, d)) for d in range(1, 11)]
        report = validator.validate(RecordBatch.build(voyage_events=events))
        collapse = _issues(report, IssueCategory.FORMAT, Severity.CRITICAL)
        assert len(collapse) == 1
        assert collapse[0].count == 10
        assert report.score == 90.0

    def test_below_threshold_not_flagged(self, validator):
        events = [make_event(allocation_code="10140", event_date=datetime(2024, 3, d)) for d in range(1, 10)]
        report = validator.validate(RecordBatch.build(voyage_events=events))
        assert _issues(report, IssueCategory.FORMAT) == []

    def test_two_digit_year_misparse(self, validator):
        batch = RecordBatch.build(voyage_events=[
            make_event(allocation_code="10140", event_date=datetime(1924, 3, 10)),
        ])
        issues = _issues(validator.validate(batch), IssueCategory.FORMAT, Severity.WARNING)
        assert len(issues) == 1
        assert "before 2000" in issues[0].message

    def test_future_dates(self, validator):
        batch = RecordBatch.build(voyage_events=[
            make_event(allocation_code="10140", event_date=datetime(2030, 3, 10)),
        ])
        issues = _issues(validator.validate(batch), IssueCategory.FORMAT)
        assert "in the future" in issues[0].message

    def test_date_checks_with_mixed_timezones(self, validator):
        batch = RecordBatch.build(voyage_events=[
            make_event(allocation_code="10140", event_date=datetime(1924, 3, 10, tzinfo=timezone.utc)),
            make_event(allocation_code="10140", event_date=datetime(1923, 3, 10)),
            make_event(allocation_code="10140", event_date=datetime(2030, 3, 10, tzinfo=timezone.utc)),
            make_event(allocation_code="10140", event_date=datetime(2031, 3, 10)),
        ])
        issues = _issues(validator.validate(batch), IssueCategory.FORMAT, Severity.WARNING)
        messages = " ".join(i.message for i in issues)
        assert "earliest 1923-03-10" in messages
        assert "latest 2031-03-10" in messages

    def test_generic_location_words_reported_unresolved(self, validator):
        batch = RecordBatch.build(voyage_events=[
            make_event(allocation_code="10140", location="Production"),
        ])
        issues = [i for i in validator.validate(batch).issues if i.field == "location"]
        assert len(issues) == 1
        assert "Production" in issues[0].message

    def test_unknown_and_ledger_only_codes(self, validator):
        batch = RecordBatch.build(
            voyage_events=[
                make_event(allocation_code="555"),
                make_event(allocation_code="424242"),
            ],
            cost_allocations=[make_cost_line(allocation_code="555")],
        )
        cross = _issues(validator.validate(batch), IssueCategory.CROSS_REFERENCE, dataset="batch")
        severities = {i.severity for i in cross if i.field == "allocation_code"}
        assert severities == {Severity.INFO, Severity.WARNING}
        ledger_only = next(i for i in cross if i.severity == Severity.INFO)
        assert "1 classified from ledger" in ledger_only.message

    def test_unresolved_locations(self, validator):
        batch = RecordBatch.build(voyage_events=[
            make_event(allocation_code="10140", location="Random Platform"),
            make_event(allocation_code="10140", location="Port Fourchon"),
        ])
        issues = [i for i in validator.validate(batch).issues if i.field == "location"]
        assert len(issues) == 1
        assert issues[0].count == 1
        assert "Random Platform" in issues[0].message

    def test_low_allocation_coverage(self, validator):
        batch = RecordBatch.build(voyage_events=[
            make_event(allocation_code="10140"),
            make_event(),
            make_event(),
        ])
        issues = _issues(validator.validate(batch), IssueCategory.CROSS_REFERENCE, dataset="voyage_events")
        assert len(issues) == 1
        assert "33.3%" in issues[0].message

    def test_coverage_threshold_configurable(self, registry, resolver):
        validator = DataIntegrityValidator(registry=registry, resolver=resolver, now=NOW,
                                           coverage_warning_percent=30.0)
        batch = RecordBatch.build(voyage_events=[make_event(allocation_code="10140"), make_event(), make_event()])
        assert _issues(validator.validate(batch), IssueCategory.CROSS_REFERENCE) == []


class TestScoring:
    def test_score_bounded(self, validator):
        events = [
            make_event(vessel=None, event_date=datetime(1990, 1, 1), location=f"Unknown Rig {i}",
                       allocation_code=str(900000 + i), hours=-1.0)
            for i in range(12)
        ]
        report = validator.validate(RecordBatch.build(voyage_events=events))
        assert 0.0 <= report.score <= 100.0
        assert report.critical_count > 0
        assert any("critical issues" in r for r in report.recommendations)

    def test_to_dict(self, validator, sample_batch):
        data = validator.validate(sample_batch).to_dict()
        assert set(data) == {"score", "generated_at", "issue_counts", "datasets", "issues", "recommendations"}
        assert set(data["issue_counts"]) == {"Critical", "Warning", "Info"}
        assert data["generated_at"] == NOW.isoformat()
