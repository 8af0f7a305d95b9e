"""
Polling Service
Runs one alert cycle per call: fetch jobs, normalize, reconcile.

Usage:
    from services import PollingService

    service = PollingService(engine, fetch_jobs=source.get_active_jobs)
    result = service.poll()      # call from your scheduler
    service.health()

The timer that calls poll() belongs to the host.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from alerts import AlertEngine, CycleSummary
from core import EngineConfig, JobSnapshot, MalformedJobError, to_job_snapshot

logger = logging.getLogger(__name__)

FetchJobs = Callable[[], List[Dict[str, Any]]]
FetchVerifications = Callable[[], Dict[str, Any]]


@dataclass
class PollStats:
    """Polling statistics"""
    total_polls: int = 0
    successful_polls: int = 0
    failed_polls: int = 0
    total_jobs_processed: int = 0
    total_jobs_skipped: int = 0
    total_alerts_generated: int = 0
    total_alerts_resolved: int = 0
    average_response_ms: float = 0.0
    last_poll_time: Optional[datetime] = None
    last_error: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_polls": self.total_polls,
            "successful_polls": self.successful_polls,
            "failed_polls": self.failed_polls,
            "total_jobs_processed": self.total_jobs_processed,
            "total_jobs_skipped": self.total_jobs_skipped,
            "total_alerts_generated": self.total_alerts_generated,
            "total_alerts_resolved": self.total_alerts_resolved,
            "average_response_ms": round(self.average_response_ms, 2),
            "last_poll_time": self.last_poll_time.isoformat() if self.last_poll_time else None,
            "last_error": self.last_error,
        }


@dataclass
class PollResult:
    success: bool
    summary: Optional[CycleSummary] = None
    job_count: int = 0
    excluded: int = 0
    response_ms: float = 0.0
    error: Optional[str] = None
    jobs: List[JobSnapshot] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "job_count": self.job_count,
            "excluded": self.excluded,
            "response_ms": round(self.response_ms, 2),
            "error": self.error,
            "summary": self.summary.to_dict() if self.summary else None,
        }


class PollingService:
    """
    Drives the alert engine with freshly fetched jobs.

    A failed fetch leaves the open alerts untouched: nothing is
    reconciled against an empty batch.
    """

    def __init__(
        self,
        engine: AlertEngine,
        fetch_jobs: FetchJobs,
        fetch_verifications: Optional[FetchVerifications] = None,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._engine = engine
        self._fetch_jobs = fetch_jobs
        self._fetch_verifications = fetch_verifications
        self._config = config or engine.config
        self._clock = clock
        self._stats = PollStats()

    @property
    def stats(self) -> PollStats:
        return self._stats

    def poll(self) -> PollResult:
        started = time.perf_counter()
        self._stats.total_polls += 1
        poll_no = self._stats.total_polls

        try:
            raw_jobs = self._fetch_jobs()
        except Exception as e:
            return self._fail(poll_no, f"job fetch failed: {e}")

        verifications = None
        if self._fetch_verifications is not None:
            try:
                verifications = self._fetch_verifications()
            except Exception as e:
                # location rules just stay quiet this cycle
                logger.warning("[Poll #%d] Location verification unavailable: %s", poll_no, e)

        jobs, skipped = self._normalize(raw_jobs)
        active_jobs = [j for j in jobs if j.status not in self._config.excluded_statuses]
        excluded = len(jobs) - len(active_jobs)

        summary = self._engine.reconcile(active_jobs, verifications)
        summary.jobs_skipped += skipped

        response_ms = (time.perf_counter() - started) * 1000
        self._record_success(summary, len(active_jobs), skipped, response_ms)

        logger.info(
            "[Poll #%d] %d active jobs (%d excluded) in %.0fms - %d active alerts (%d new, %d resolved)",
            poll_no, len(active_jobs), excluded, response_ms,
            summary.total, summary.new, summary.resolved,
        )
        return PollResult(
            success=True,
            summary=summary,
            job_count=len(active_jobs),
            excluded=excluded,
            response_ms=response_ms,
            jobs=active_jobs,
        )

    def _normalize(self, raw_jobs: List[Any]) -> Tuple[List[JobSnapshot], int]:
        jobs = []
        skipped = 0
        for raw in raw_jobs or []:
            if isinstance(raw, JobSnapshot):
                jobs.append(raw)
                continue
            try:
                jobs.append(to_job_snapshot(raw))
            except (MalformedJobError, ValidationError) as e:
                skipped += 1
                logger.warning("Skipping malformed job record: %s", e)
        return jobs, skipped

    def _record_success(self, summary: CycleSummary, job_count: int, skipped: int, response_ms: float) -> None:
        s = self._stats
        s.successful_polls += 1
        s.total_jobs_processed += job_count
        s.total_jobs_skipped += skipped
        s.total_alerts_generated += summary.new
        s.total_alerts_resolved += summary.resolved
        s.average_response_ms += (response_ms - s.average_response_ms) / s.successful_polls
        s.last_poll_time = self._clock()

    def _fail(self, poll_no: int, message: str) -> PollResult:
        self._stats.failed_polls += 1
        self._stats.last_error = {"message": message, "timestamp": self._clock().isoformat()}
        logger.error("[Poll #%d] Failed: %s", poll_no, message)
        return PollResult(success=False, error=message)

    def health(self) -> Dict[str, Any]:
        s = self._stats
        success_rate = (s.successful_polls / s.total_polls * 100) if s.total_polls else 100.0
        since_last = None
        if s.last_poll_time is not None:
            since_last = (self._clock() - s.last_poll_time).total_seconds()

        recent = since_last is None or since_last < self._config.expected_interval_sec * 2
        healthy = success_rate > 90 and recent
        return {
            "status": "healthy" if healthy else "unhealthy",
            "success_rate": round(success_rate, 2),
            "last_poll_time": s.last_poll_time.isoformat() if s.last_poll_time else None,
            "seconds_since_last_poll": since_last,
            "failed_polls": s.failed_polls,
            "last_error": s.last_error,
        }

    def reset_stats(self) -> None:
        self._stats = PollStats()
