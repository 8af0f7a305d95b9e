from datetime import date, datetime, timedelta

import pytest

from alerts import Alert, AlertEngine, AlertRule, AlertSeverity
from alerts.models import make_alert_id, make_fingerprint
from core import EngineConfig, JobSnapshot

START = datetime(2025, 11, 10, 12, 0, 0)


class FakeClock:
    """Manually advanced clock"""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


def make_job(job_id: str = "356001", **overrides) -> JobSnapshot:
    """Entered job with nothing assigned (fires missing-truck-assignment)"""
    fields = {
        "job_id": job_id,
        "status": "Entered",
        "job_date": date(2025, 11, 10),
    }
    fields.update(overrides)
    return JobSnapshot(**fields)


def clean_job(job_id: str = "356001", **overrides) -> JobSnapshot:
    """Entered job with truck and driver (fires nothing)"""
    fields = {"truck_id": "42", "driver_id": "D7"}
    fields.update(overrides)
    return make_job(job_id, **fields)


def make_alert(
    alert_id: str,
    severity: AlertSeverity = AlertSeverity.MEDIUM,
    timestamp: datetime = START,
    rule_id: str = "test-rule",
    job_id: str = "1",
) -> Alert:
    return Alert(
        id=alert_id,
        rule_id=rule_id,
        rule_name="Test Rule",
        severity=severity,
        message=f"alert {alert_id}",
        job_id=job_id,
        timestamp=timestamp,
        fingerprint=make_fingerprint(rule_id, job_id),
    )


class ExplodingMatch(AlertRule):
    id = "exploding-match"
    name = "Exploding Match"
    severity = AlertSeverity.CRITICAL

    def matches(self, job, verification):
        raise RuntimeError("boom")

    def render(self, job, verification):
        return "never"


class ExplodingRender(AlertRule):
    id = "exploding-render"
    name = "Exploding Render"
    severity = AlertSeverity.CRITICAL

    def matches(self, job, verification):
        return True

    def render(self, job, verification):
        raise KeyError("missing field")


def assert_priority_order(alerts):
    for earlier, later in zip(alerts, alerts[1:]):
        assert earlier.severity.rank <= later.severity.rank
        if earlier.severity == later.severity:
            assert earlier.timestamp >= later.timestamp


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(clock):
    return AlertEngine(EngineConfig(dedup_window_sec=300), clock=clock)


@pytest.fixture
def missing_truck_id():
    return make_alert_id("missing-truck-assignment", "356001")
