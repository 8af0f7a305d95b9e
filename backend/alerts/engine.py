from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from core.config import EngineConfig
from core.models import JobSnapshot, LocationVerification
from .active import ActiveAlertSet
from .dedup import Deduplicator
from .evaluator import RuleEvaluator
from .history import AlertHistory, EventDispatcher, HistorySink, OnEventCallback
from .lifecycle import LifecycleManager
from .models import (
    Alert,
    AlertAction,
    AlertEvent,
    AlertSeverity,
    BulkResult,
    CandidateAlert,
    CycleSummary,
)
from .reconciler import JobInput, Reconciler, VerificationInput
from .rules import AlertRule, RuleRegistry, default_registry


class AlertEngine:
    """
    Job alert engine.

    One instance must live across poll cycles: the open alerts and
    the dedup cache are in memory only. The owner serializes calls.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        extra_rules: Optional[List[AlertRule]] = None,
        clock: Callable[[], datetime] = datetime.now,
        sinks: Optional[List[HistorySink]] = None,
        registry: Optional[RuleRegistry] = None,
    ):
        self.config = config or EngineConfig()
        self._clock = clock
        if registry is None:
            registry = default_registry(self.config, clock, extra_rules)
        else:
            for rule in extra_rules or []:
                registry.register(rule)

        self._registry = registry
        self._evaluator = RuleEvaluator(registry)
        self._dedup = Deduplicator(self.config.dedup_window_sec, clock)
        self._active = ActiveAlertSet()
        self._history = AlertHistory(self.config.history_size)
        self._events = EventDispatcher(self._history, sinks)
        self._reconciler = Reconciler(
            self._evaluator, self._dedup, self._active, self._events, self.config, clock
        )
        self._lifecycle = LifecycleManager(self._active, self._events, clock)
        self._start_time = clock()

    # =========================================================================
    # Evaluation
    # =========================================================================

    def reconcile(
        self,
        jobs: Iterable[JobInput],
        verifications: Optional[Mapping[str, VerificationInput]] = None,
    ) -> CycleSummary:
        return self._reconciler.reconcile(jobs, verifications)

    def evaluate_job(
        self,
        job: JobSnapshot,
        verification: Optional[LocationVerification] = None,
    ) -> List[CandidateAlert]:
        """Dry-run the rules for one job; touches no state"""
        return self._evaluator.evaluate(job, verification)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def acknowledge(self, alert_id: str, actor: str = "system") -> bool:
        return self._lifecycle.acknowledge(alert_id, actor)

    def dismiss(self, alert_id: str, actor: str = "system") -> bool:
        return self._lifecycle.dismiss(alert_id, actor)

    def bulk_acknowledge(self, alert_ids: Iterable[str], actor: str = "system") -> BulkResult:
        return self._lifecycle.bulk_acknowledge(alert_ids, actor)

    def bulk_dismiss(self, alert_ids: Iterable[str], actor: str = "system") -> BulkResult:
        return self._lifecycle.bulk_dismiss(alert_ids, actor)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_active_alerts(
        self,
        severity: Optional[AlertSeverity] = None,
        rule_id: Optional[str] = None,
        acknowledged: Optional[bool] = None,
        job_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Alert]:
        return self._active.ordered(severity, rule_id, acknowledged, job_id, limit)

    def get_alert(self, alert_id: str) -> Optional[Alert]:
        return self._active.get(alert_id)

    def get_highest_priority(self) -> Optional[Alert]:
        return self._active.highest()

    def get_alerts_by_severity(self) -> Dict[str, int]:
        return self._active.count_by_severity()

    def get_history(self, limit: int = 50, action: Optional[AlertAction] = None) -> List[AlertEvent]:
        return self._history.get(limit, action)

    def rules(self) -> List[AlertRule]:
        return list(self._registry)

    @property
    def registry(self) -> RuleRegistry:
        return self._registry

    # =========================================================================
    # Sinks & callbacks
    # =========================================================================

    def add_sink(self, sink: HistorySink) -> None:
        self._events.add_sink(sink)

    def on_event(self, callback: OnEventCallback) -> None:
        self._events.on_event(callback)

    # =========================================================================
    # Management
    # =========================================================================

    def set_dedup_window(self, seconds: float) -> None:
        if seconds <= 0:
            raise ValueError("Dedup window must be positive")
        self._dedup.window_sec = seconds

    def dedup_stats(self) -> Dict[str, Any]:
        return self._dedup.stats()

    def clear(self) -> None:
        """Drop open alerts, history and dedup cache"""
        self._active.clear()
        self._history.clear()
        self._dedup.clear()

    def statistics(self) -> Dict[str, Any]:
        alerts = self._active.values()
        acknowledged = sum(1 for a in alerts if a.acknowledged)
        uptime = (self._clock() - self._start_time).total_seconds()
        return {
            "total": len(alerts),
            "acknowledged": acknowledged,
            "unacknowledged": len(alerts) - acknowledged,
            "by_severity": self._active.count_by_severity(),
            "by_rule": self._active.count_by_rule(),
            "dedup_cache_size": len(self._dedup),
            "queue_size": self._active.queue_size,
            "history_size": len(self._history),
            "cycles": self._reconciler.cycles,
            "rule_errors": self._evaluator.errors,
            "sink_failures": self._events.sink_failures,
            "rules_count": len(self._registry),
            "uptime_seconds": round(uptime, 2),
        }
