from datetime import datetime

import pytest

from alerts import AlertEngine, AlertRule, AlertSeverity, DuplicateRuleError, RuleRegistry, default_registry
from alerts.rules import (
    ArrivalWithoutCompletionRule,
    AttemptedStatusRule,
    LocationMismatchRule,
    LongInProgressRule,
    MissingTruckAssignmentRule,
    NoTrackingRule,
    ProximityRule,
    RescheduledStatusRule,
    TrackingDataUnavailableRule,
    TruckWithoutDriverRule,
)
from core import EngineConfig, LocationVerification, VerificationStatus, to_job_snapshot

from conftest import FakeClock, clean_job, make_job


def verification(status, distance=0.0, has_tracking=None, truck_id="42"):
    return LocationVerification(
        status=status, distance=distance, has_tracking=has_tracking, truck_id=truck_id
    )


class TestJobStateRules:
    def test_arrival_without_completion(self):
        rule = ArrivalWithoutCompletionRule()
        arrived = clean_job(arrival_at=datetime(2025, 11, 10, 10, 0))
        assert rule.matches(arrived, None)
        assert "no completion time" in rule.render(arrived, None)

        done = clean_job(arrival_at=datetime(2025, 11, 10, 10, 0), completed_at=datetime(2025, 11, 10, 11, 0))
        assert not rule.matches(done, None)

        completed_status = clean_job(status="Completed", arrival_at=datetime(2025, 11, 10, 10, 0))
        assert not rule.matches(completed_status, None)

    def test_missing_truck_assignment(self):
        rule = MissingTruckAssignmentRule()
        assert rule.severity == AlertSeverity.HIGH
        assert rule.matches(make_job(), None)
        assert rule.render(make_job(), None) == "Job 356001 is Entered but has no truck assigned"
        assert not rule.matches(make_job(truck_id="42"), None)
        assert not rule.matches(make_job(status="Canceled"), None)

    def test_truck_without_driver(self):
        rule = TruckWithoutDriverRule()
        job = make_job(truck_id="42")
        assert rule.matches(job, None)
        assert "truck 42" in rule.render(job, None)
        assert not rule.matches(clean_job(), None)
        assert not rule.matches(make_job(), None)

    def test_long_in_progress(self):
        clock = FakeClock(datetime(2025, 11, 10, 15, 0, 0))
        rule = LongInProgressRule(max_hours=4, clock=clock)
        old = clean_job(arrival_at=datetime(2025, 11, 10, 10, 0, 0))
        recent = clean_job(arrival_at=datetime(2025, 11, 10, 12, 0, 0))
        assert rule.matches(old, None)
        assert not rule.matches(recent, None)
        assert rule.render(old, None).endswith("(arrived at 10:00:00)")

        clock.advance(3 * 3600)
        assert rule.matches(recent, None)

    def test_long_in_progress_with_offset_arrival(self):
        engine = AlertEngine(clock=FakeClock(datetime(2025, 11, 11, 12, 0, 0)))
        job = to_job_snapshot({
            "job_id": "356001",
            "status": "In-Progress",
            "truck_id": "42",
            "driver_id": "D7",
            "job_date": "2025-11-10",
            "arrival_at": "2025-11-10T08:00:00+00:00",
        })
        summary = engine.reconcile([job])
        assert summary.rule_errors == 0
        assert "long-in-progress-356001" in [a.id for a in summary.new_alerts]

    def test_long_in_progress_needs_open_arrival(self):
        rule = LongInProgressRule(clock=FakeClock(datetime(2025, 11, 11)))
        assert not rule.matches(clean_job(), None)
        finished = clean_job(
            arrival_at=datetime(2025, 11, 10, 8, 0), completed_at=datetime(2025, 11, 10, 9, 0)
        )
        assert not rule.matches(finished, None)

    def test_attempted(self):
        rule = AttemptedStatusRule()
        assert rule.matches(clean_job(status="Attempted"), None)
        assert rule.matches(clean_job(status="In-Progress", driver_status="Attempted"), None)
        assert not rule.matches(clean_job(), None)

    def test_rescheduled(self):
        rule = RescheduledStatusRule()
        assert rule.matches(clean_job(status="Re-scheduled"), None)
        assert not rule.matches(clean_job(), None)


class TestLocationRules:
    @pytest.mark.parametrize("rule", [
        LocationMismatchRule(), NoTrackingRule(), TrackingDataUnavailableRule(), ProximityRule(),
    ])
    def test_false_without_verification(self, rule):
        assert not rule.matches(clean_job(), None)

    def test_mismatch(self):
        rule = LocationMismatchRule()
        v = verification(VerificationStatus.OFF_SCHEDULE, distance=3.4)
        assert rule.matches(clean_job(), v)
        assert rule.render(clean_job(), v) == "Job 356001: Truck 42 is 3.4 miles from scheduled location"
        assert not rule.matches(clean_job(), verification(VerificationStatus.VERIFIED))

    def test_no_tracking_vs_data_unavailable(self):
        no_tracking = NoTrackingRule()
        unavailable = TrackingDataUnavailableRule()
        untracked = verification(VerificationStatus.UNKNOWN, has_tracking=False)
        tracked = verification(VerificationStatus.UNKNOWN, has_tracking=True)
        undetermined = verification(VerificationStatus.UNKNOWN)

        assert no_tracking.matches(clean_job(), untracked)
        assert not unavailable.matches(clean_job(), untracked)
        assert unavailable.matches(clean_job(), tracked)
        assert not no_tracking.matches(clean_job(), tracked)
        assert not no_tracking.matches(clean_job(), undetermined)
        assert not unavailable.matches(clean_job(), undetermined)

    def test_proximity(self):
        rule = ProximityRule(threshold_miles=2.0)
        assert rule.matches(clean_job(), verification(VerificationStatus.VERIFIED, distance=1.5))
        assert rule.matches(clean_job(), verification(VerificationStatus.VERIFIED, distance=2.0))
        assert not rule.matches(clean_job(), verification(VerificationStatus.VERIFIED, distance=0))
        assert not rule.matches(clean_job(), verification(VerificationStatus.VERIFIED, distance=2.5))
        assert not rule.matches(clean_job(), verification(VerificationStatus.OFF_SCHEDULE, distance=1.0))
        v = verification(VerificationStatus.VERIFIED, distance=1.5)
        assert rule.render(clean_job(), v) == "Job 356001: Truck 42 is 1.5 miles from destination"


class TestRuleRegistry:
    def test_default_order_and_ids(self):
        registry = default_registry()
        assert registry.ids() == [
            "arrival-without-completion",
            "missing-truck-assignment",
            "truck-without-driver",
            "long-in-progress",
            "attempted-status",
            "rescheduled-status",
            "gps-location-mismatch",
            "gps-no-tracking",
            "gps-data-unavailable",
            "gps-proximity-alert",
        ]

    def test_config_reaches_rules(self):
        registry = default_registry(EngineConfig(long_in_progress_hours=2, proximity_miles=5))
        assert registry.get("long-in-progress").max_hours == 2
        assert registry.get("gps-proximity-alert").threshold_miles == 5

    def test_duplicate_id_rejected(self):
        registry = RuleRegistry([MissingTruckAssignmentRule()])
        with pytest.raises(DuplicateRuleError):
            registry.register(MissingTruckAssignmentRule())

    def test_rule_without_id_rejected(self):
        with pytest.raises(ValueError):
            RuleRegistry().register(AlertRule())

    def test_extra_rules_are_appended(self):
        class CanceledRule(AlertRule):
            id = "canceled-job"
            name = "Canceled Job"
            severity = AlertSeverity.LOW

            def matches(self, job, verification):
                return job.status == "Canceled"

            def render(self, job, verification):
                return f"Job {job.job_id} was canceled"

        registry = default_registry(extra_rules=[CanceledRule()])
        assert registry.ids()[-1] == "canceled-job"
        assert len(registry) == 11
        assert "canceled-job" in registry

    def test_unregister(self):
        registry = default_registry()
        assert registry.unregister("gps-proximity-alert")
        assert not registry.unregister("gps-proximity-alert")
        assert registry.get("gps-proximity-alert") is None

    def test_describe(self):
        described = RuleRegistry([RescheduledStatusRule()]).describe()
        assert described == [{"id": "rescheduled-status", "name": "Job Rescheduled", "severity": "MEDIUM"}]
