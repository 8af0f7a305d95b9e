"""
Alert Models
Data structures for alerts, lifecycle events and cycle summaries.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Optional, Dict, Any
from enum import Enum


class AlertSeverity(str, Enum):
    """Alert severity levels, CRITICAL first"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        """0 = most urgent"""
        return _SEVERITY_RANK[self]

    @classmethod
    def ordered(cls) -> List["AlertSeverity"]:
        return sorted(cls, key=lambda s: s.rank)


_SEVERITY_RANK = {
    AlertSeverity.CRITICAL: 0,
    AlertSeverity.HIGH: 1,
    AlertSeverity.MEDIUM: 2,
    AlertSeverity.LOW: 3,
}


class AlertAction(str, Enum):
    """Lifecycle transitions written to history"""
    CREATED = "created"
    ACKNOWLEDGED = "acknowledged"
    DISMISSED = "dismissed"
    RESOLVED = "resolved"


class ResolutionReason(str, Enum):
    """Why the reconciler resolved an alert"""
    CLEARED = "cleared"          # job sampled, rule no longer fires
    JOB_ABSENT = "job_absent"    # job missing from the batch


def make_alert_id(rule_id: str, job_id: str) -> str:
    return f"{rule_id}-{job_id}"


def make_fingerprint(rule_id: str, job_id: str) -> str:
    return f"{rule_id}:{job_id}"


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


@dataclass
class CandidateAlert:
    """
    A rule match before deduplication.

    Becomes an Alert only if the reconciler commits it.
    """
    rule_id: str
    rule_name: str
    severity: AlertSeverity
    message: str
    job_id: str
    job_status: Optional[str] = None
    truck_id: Optional[str] = None

    @property
    def alert_id(self) -> str:
        return make_alert_id(self.rule_id, self.job_id)

    @property
    def fingerprint(self) -> str:
        return make_fingerprint(self.rule_id, self.job_id)


@dataclass
class Alert:
    """
    A materialized rule violation for one job.

    id, severity, message and timestamp are frozen at creation;
    only acknowledgement / dismissal / resolution fields change.
    """
    id: str
    rule_id: str
    rule_name: str
    severity: AlertSeverity
    message: str
    job_id: str
    timestamp: datetime
    fingerprint: str
    job_status: Optional[str] = None
    truck_id: Optional[str] = None
    acknowledged: bool = False
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    dismissed_by: Optional[str] = None
    dismissed_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    resolution: Optional[ResolutionReason] = None

    @classmethod
    def from_candidate(cls, candidate: CandidateAlert, timestamp: datetime) -> "Alert":
        """Create alert from a committed candidate"""
        return cls(
            id=candidate.alert_id,
            rule_id=candidate.rule_id,
            rule_name=candidate.rule_name,
            severity=candidate.severity,
            message=candidate.message,
            job_id=candidate.job_id,
            timestamp=timestamp,
            fingerprint=candidate.fingerprint,
            job_status=candidate.job_status,
            truck_id=candidate.truck_id,
        )

    def copy(self) -> "Alert":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "severity": self.severity.value,
            "message": self.message,
            "job_id": self.job_id,
            "job_status": self.job_status,
            "truck_id": self.truck_id,
            "timestamp": self.timestamp.isoformat(),
            "fingerprint": self.fingerprint,
            "acknowledged": self.acknowledged,
            "acknowledged_by": self.acknowledged_by,
            "acknowledged_at": _iso(self.acknowledged_at),
            "dismissed_by": self.dismissed_by,
            "dismissed_at": _iso(self.dismissed_at),
            "resolved_at": _iso(self.resolved_at),
            "resolution": self.resolution.value if self.resolution else None,
        }


@dataclass
class AlertEvent:
    """
    One lifecycle transition.

    This is what gets sent to history sinks. The alert is a copy
    taken at emit time, so later mutation does not leak into history.
    """
    action: AlertAction
    alert: Alert
    timestamp: datetime
    actor: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "timestamp": self.timestamp.isoformat(),
            "actor": self.actor,
            "alert": self.alert.to_dict(),
        }


def empty_severity_counts() -> Dict[str, int]:
    return {s.value: 0 for s in AlertSeverity.ordered()}


@dataclass
class CycleSummary:
    """Result of one reconciliation cycle"""
    total: int
    by_severity: Dict[str, int]
    new_alerts: List[Alert] = field(default_factory=list)
    resolved_alerts: List[Alert] = field(default_factory=list)
    jobs_evaluated: int = 0
    jobs_skipped: int = 0
    rule_errors: int = 0
    held_alerts: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def new(self) -> int:
        return len(self.new_alerts)

    @property
    def resolved(self) -> int:
        return len(self.resolved_alerts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "new": self.new,
            "resolved": self.resolved,
            "bySeverity": dict(self.by_severity),
            "newAlerts": [a.to_dict() for a in self.new_alerts],
            "resolvedAlerts": [a.to_dict() for a in self.resolved_alerts],
            "jobs_evaluated": self.jobs_evaluated,
            "jobs_skipped": self.jobs_skipped,
            "rule_errors": self.rule_errors,
            "held_alerts": self.held_alerts,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class BulkResult:
    """Per-item outcome of a bulk lifecycle operation"""
    succeeded: int = 0
    failed: int = 0
    failed_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "failed": self.failed,
            "failed_ids": list(self.failed_ids),
        }
