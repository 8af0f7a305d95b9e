"""
Alert Reconciler
One poll cycle: evaluate a job batch, diff against the open alerts,
commit new and resolved alerts.

Evaluation only reads engine state. All mutation happens in the
commit step at the end of reconcile().
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from pydantic import ValidationError

from core.config import EngineConfig
from core.models import (
    JobSnapshot,
    LocationVerification,
    MalformedJobError,
    to_job_snapshot,
    to_location_verification,
)
from .active import ActiveAlertSet
from .dedup import Deduplicator
from .evaluator import RuleEvaluator
from .history import EventDispatcher
from .models import (
    Alert,
    AlertAction,
    AlertEvent,
    CandidateAlert,
    CycleSummary,
    ResolutionReason,
)

logger = logging.getLogger(__name__)

JobInput = Union[JobSnapshot, Dict[str, Any]]
VerificationInput = Union[LocationVerification, Dict[str, Any]]


class Reconciler:
    def __init__(
        self,
        evaluator: RuleEvaluator,
        dedup: Deduplicator,
        active: ActiveAlertSet,
        events: EventDispatcher,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._evaluator = evaluator
        self._dedup = dedup
        self._active = active
        self._events = events
        self._config = config or EngineConfig()
        self._clock = clock
        self.cycles = 0

    def reconcile(
        self,
        jobs: Iterable[JobInput],
        verifications: Optional[Mapping[str, VerificationInput]] = None,
    ) -> CycleSummary:
        self.cycles += 1
        self._dedup.purge_expired()

        snapshots, skipped = self._normalize_jobs(jobs)
        checks = self._normalize_verifications(verifications)
        errors_before = self._evaluator.errors

        candidates, batch_job_ids = self._collect(snapshots, checks)

        now = self._clock()
        new_alerts = self._commit_new(candidates, now)
        resolved_alerts, held = self._commit_resolved(candidates, batch_job_ids, now)

        summary = CycleSummary(
            total=len(self._active),
            by_severity=self._active.count_by_severity(),
            new_alerts=new_alerts,
            resolved_alerts=resolved_alerts,
            jobs_evaluated=len(snapshots),
            jobs_skipped=skipped,
            rule_errors=self._evaluator.errors - errors_before,
            held_alerts=held,
            timestamp=now,
        )
        logger.info(
            "Cycle %d: %d jobs, %d active alerts (%d new, %d resolved, %d skipped jobs)",
            self.cycles, summary.jobs_evaluated, summary.total,
            summary.new, summary.resolved, skipped,
        )
        return summary

    # -------------------------------------------------------------------------
    # Evaluation (read-only)
    # -------------------------------------------------------------------------

    def _collect(
        self,
        snapshots: List[JobSnapshot],
        checks: Dict[str, LocationVerification],
    ) -> Tuple[Dict[str, CandidateAlert], Set[str]]:
        """
        Candidates that count as present this cycle, keyed by alert id.

        An already-open alert always counts; otherwise a duplicate
        fingerprint suppresses the candidate.
        """
        candidates: Dict[str, CandidateAlert] = {}
        batch_job_ids: Set[str] = set()

        for job in snapshots:
            batch_job_ids.add(job.job_id)
            for candidate in self._evaluator.evaluate(job, checks.get(job.job_id)):
                alert_id = candidate.alert_id
                if alert_id in candidates:
                    continue
                if alert_id not in self._active and self._dedup.is_duplicate(candidate.fingerprint):
                    logger.debug("Suppressed duplicate %s", candidate.fingerprint)
                    continue
                candidates[alert_id] = candidate

        return candidates, batch_job_ids

    # -------------------------------------------------------------------------
    # Commit
    # -------------------------------------------------------------------------

    def _commit_new(self, candidates: Dict[str, CandidateAlert], now: datetime) -> List[Alert]:
        new_alerts = []
        for alert_id, candidate in candidates.items():
            if alert_id in self._active:
                continue
            alert = Alert.from_candidate(candidate, now)
            self._active.add(alert)
            self._dedup.record(candidate.fingerprint)
            new_alerts.append(alert)
            self._events.emit(AlertEvent(AlertAction.CREATED, alert.copy(), now))
        return new_alerts

    def _commit_resolved(
        self,
        candidates: Dict[str, CandidateAlert],
        batch_job_ids: Set[str],
        now: datetime,
    ) -> Tuple[List[Alert], int]:
        resolved = []
        held = 0
        for alert in self._active.values():
            if alert.id in candidates:
                continue
            job_present = alert.job_id in batch_job_ids
            if not job_present and not self._config.resolve_absent_jobs:
                held += 1
                continue

            self._active.remove(alert.id)
            alert.resolved_at = now
            alert.resolution = ResolutionReason.CLEARED if job_present else ResolutionReason.JOB_ABSENT
            resolved.append(alert)
            self._events.emit(AlertEvent(AlertAction.RESOLVED, alert.copy(), now))
        return resolved, held

    # -------------------------------------------------------------------------
    # Input normalization
    # -------------------------------------------------------------------------

    def _normalize_jobs(self, jobs: Iterable[JobInput]) -> Tuple[List[JobSnapshot], int]:
        snapshots = []
        skipped = 0
        for job in jobs:
            if isinstance(job, JobSnapshot):
                snapshots.append(job)
                continue
            try:
                snapshots.append(to_job_snapshot(job))
            except (MalformedJobError, ValidationError) as e:
                skipped += 1
                logger.warning("Skipping malformed job: %s", e)
        return snapshots, skipped

    def _normalize_verifications(
        self,
        verifications: Optional[Mapping[str, VerificationInput]],
    ) -> Dict[str, LocationVerification]:
        checks: Dict[str, LocationVerification] = {}
        for job_id, value in (verifications or {}).items():
            if isinstance(value, LocationVerification):
                checks[str(job_id)] = value
                continue
            try:
                checks[str(job_id)] = to_location_verification(value)
            except (ValidationError, AttributeError) as e:
                logger.warning("Ignoring bad location verification for job %s: %s", job_id, e)
        return checks
