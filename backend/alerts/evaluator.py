import logging
from typing import List, Optional

from core.models import JobSnapshot, LocationVerification
from .models import CandidateAlert
from .rules import RuleRegistry

logger = logging.getLogger(__name__)


class RuleEvaluator:
    """Runs every registered rule against one job snapshot."""

    def __init__(self, registry: RuleRegistry):
        self._registry = registry
        self.errors = 0

    @property
    def registry(self) -> RuleRegistry:
        return self._registry

    def evaluate(
        self,
        job: JobSnapshot,
        verification: Optional[LocationVerification] = None,
    ) -> List[CandidateAlert]:
        candidates = []

        for rule in self._registry:
            try:
                if not rule.matches(job, verification):
                    continue
                message = rule.render(job, verification)
            except Exception:
                # a broken rule only costs its own alert for this job
                self.errors += 1
                logger.exception("Rule %s failed for job %s", rule.id, job.job_id)
                continue

            candidates.append(CandidateAlert(
                rule_id=rule.id,
                rule_name=rule.name,
                severity=rule.severity,
                message=message,
                job_id=job.job_id,
                job_status=job.status or None,
                truck_id=job.truck_id,
            ))

        return candidates
