"""
Alert Rules
Built-in job rules and the ordered registry that holds them.

A rule is a matches/render pair. Adding a rule means subclassing
AlertRule and registering it; the engine needs no changes.
"""

from datetime import datetime, timedelta
from typing import Callable, Dict, Iterator, List, Optional, Any

from core.models import JobSnapshot, JobStatus, LocationVerification, VerificationStatus
from core.config import EngineConfig
from .models import AlertSeverity
from .exceptions import DuplicateRuleError

Clock = Callable[[], datetime]


class AlertRule:
    """
    Base class for job rules.

    Subclasses set id, name and severity and implement matches()
    and render(). Rules must be stateless and side-effect-free.
    """
    id: str = ""
    name: str = ""
    severity: AlertSeverity = AlertSeverity.MEDIUM

    def matches(self, job: JobSnapshot, verification: Optional[LocationVerification]) -> bool:
        raise NotImplementedError

    def render(self, job: JobSnapshot, verification: Optional[LocationVerification]) -> str:
        raise NotImplementedError

    def describe(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "severity": self.severity.value}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id} {self.severity.value}>"


# =============================================================================
# Job State Rules
# =============================================================================

class ArrivalWithoutCompletionRule(AlertRule):
    id = "arrival-without-completion"
    name = "Arrival Without Completion"
    severity = AlertSeverity.HIGH

    def matches(self, job, verification):
        return (
            job.has_arrival
            and not job.has_completion
            and job.status != JobStatus.COMPLETED.value
        )

    def render(self, job, verification):
        return f"Job {job.job_id} has arrival time but no completion time (Status: {job.status})"


class MissingTruckAssignmentRule(AlertRule):
    id = "missing-truck-assignment"
    name = "Missing Truck Assignment"
    severity = AlertSeverity.HIGH

    def matches(self, job, verification):
        return job.status == JobStatus.ENTERED.value and not job.has_truck

    def render(self, job, verification):
        return f"Job {job.job_id} is Entered but has no truck assigned"


class TruckWithoutDriverRule(AlertRule):
    id = "truck-without-driver"
    name = "Truck Without Driver"
    severity = AlertSeverity.MEDIUM

    def matches(self, job, verification):
        return (
            job.status == JobStatus.ENTERED.value
            and job.has_truck
            and not job.has_driver
        )

    def render(self, job, verification):
        return f"Job {job.job_id} has truck {job.truck_id} but no driver assigned"


class LongInProgressRule(AlertRule):
    """Arrived but not completed for longer than max_hours"""
    id = "long-in-progress"
    name = "Job In Progress Too Long"
    severity = AlertSeverity.MEDIUM

    def __init__(self, max_hours: float = 4.0, clock: Clock = datetime.now):
        self.max_hours = max_hours
        self._clock = clock

    def matches(self, job, verification):
        if not job.has_arrival or job.has_completion:
            return False
        return job.arrival_at < self._clock() - timedelta(hours=self.max_hours)

    def render(self, job, verification):
        hours = f"{self.max_hours:g}"
        return (
            f"Job {job.job_id} has been in progress for over {hours} hours "
            f"(arrived at {job.arrival_at.strftime('%H:%M:%S')})"
        )


class AttemptedStatusRule(AlertRule):
    id = "attempted-status"
    name = "Job Attempted But Not Completed"
    severity = AlertSeverity.HIGH

    def matches(self, job, verification):
        attempted = JobStatus.ATTEMPTED.value
        return job.status == attempted or job.driver_status == attempted

    def render(self, job, verification):
        return f"Job {job.job_id} was attempted but not completed - requires follow-up"


class RescheduledStatusRule(AlertRule):
    id = "rescheduled-status"
    name = "Job Rescheduled"
    severity = AlertSeverity.MEDIUM

    def matches(self, job, verification):
        return job.status == JobStatus.RESCHEDULED.value

    def render(self, job, verification):
        return f"Job {job.job_id} has been rescheduled - verify new schedule"


# =============================================================================
# Location Rules (need a LocationVerification; false without one)
# =============================================================================

def _truck_label(job: JobSnapshot, verification: LocationVerification) -> str:
    return verification.truck_id or job.truck_id or "unknown"


class LocationMismatchRule(AlertRule):
    id = "gps-location-mismatch"
    name = "GPS Location Mismatch"
    severity = AlertSeverity.HIGH

    def matches(self, job, verification):
        if verification is None:
            return False
        return verification.status == VerificationStatus.OFF_SCHEDULE

    def render(self, job, verification):
        return (
            f"Job {job.job_id}: Truck {_truck_label(job, verification)} is "
            f"{verification.distance:.1f} miles from scheduled location"
        )


class NoTrackingRule(AlertRule):
    id = "gps-no-tracking"
    name = "No GPS Tracking Available"
    severity = AlertSeverity.MEDIUM

    def matches(self, job, verification):
        if verification is None:
            return False
        return verification.status == VerificationStatus.UNKNOWN and verification.has_tracking is False

    def render(self, job, verification):
        return f"Job {job.job_id}: No GPS tracking available for truck {_truck_label(job, verification)}"


class TrackingDataUnavailableRule(AlertRule):
    id = "gps-data-unavailable"
    name = "GPS Data Unavailable"
    severity = AlertSeverity.MEDIUM

    def matches(self, job, verification):
        if verification is None:
            return False
        return verification.status == VerificationStatus.UNKNOWN and verification.has_tracking is True

    def render(self, job, verification):
        return f"Job {job.job_id}: GPS data unavailable for truck {_truck_label(job, verification)}"


class ProximityRule(AlertRule):
    """Verified truck within threshold_miles of the destination"""
    id = "gps-proximity-alert"
    name = "Truck Approaching Destination"
    severity = AlertSeverity.LOW

    def __init__(self, threshold_miles: float = 2.0):
        self.threshold_miles = threshold_miles

    def matches(self, job, verification):
        if verification is None:
            return False
        return (
            verification.status == VerificationStatus.VERIFIED
            and 0 < verification.distance <= self.threshold_miles
        )

    def render(self, job, verification):
        return (
            f"Job {job.job_id}: Truck {_truck_label(job, verification)} is "
            f"{verification.distance:.1f} miles from destination"
        )


# =============================================================================
# Registry
# =============================================================================

class RuleRegistry:
    """
    Ordered collection of rules keyed by id.

    Evaluation order is registration order.
    """

    def __init__(self, rules: Optional[List[AlertRule]] = None):
        self._rules: Dict[str, AlertRule] = {}
        for rule in rules or []:
            self.register(rule)

    def register(self, rule: AlertRule) -> AlertRule:
        if not rule.id:
            raise ValueError(f"Rule {type(rule).__name__} has no id")
        if rule.id in self._rules:
            raise DuplicateRuleError(rule.id)
        self._rules[rule.id] = rule
        return rule

    def unregister(self, rule_id: str) -> bool:
        return self._rules.pop(rule_id, None) is not None

    def get(self, rule_id: str) -> Optional[AlertRule]:
        return self._rules.get(rule_id)

    def ids(self) -> List[str]:
        return list(self._rules)

    def describe(self) -> List[Dict[str, Any]]:
        return [r.describe() for r in self._rules.values()]

    def __iter__(self) -> Iterator[AlertRule]:
        return iter(list(self._rules.values()))

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules


def default_rules(config: Optional[EngineConfig] = None, clock: Clock = datetime.now) -> List[AlertRule]:
    """Built-in rules in evaluation order"""
    config = config or EngineConfig()
    return [
        ArrivalWithoutCompletionRule(),
        MissingTruckAssignmentRule(),
        TruckWithoutDriverRule(),
        LongInProgressRule(max_hours=config.long_in_progress_hours, clock=clock),
        AttemptedStatusRule(),
        RescheduledStatusRule(),
        LocationMismatchRule(),
        NoTrackingRule(),
        TrackingDataUnavailableRule(),
        ProximityRule(threshold_miles=config.proximity_miles),
    ]


def default_registry(
    config: Optional[EngineConfig] = None,
    clock: Clock = datetime.now,
    extra_rules: Optional[List[AlertRule]] = None,
) -> RuleRegistry:
    return RuleRegistry(default_rules(config, clock) + list(extra_rules or []))
