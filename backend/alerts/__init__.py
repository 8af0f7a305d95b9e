"""
Alert System
Rule-based alerts over sampled job state.

Structure:
    alerts/
    ├── models.py      → Alert, AlertEvent, CycleSummary, AlertSeverity
    ├── rules.py       → AlertRule, built-in rules, RuleRegistry
    ├── evaluator.py   → RuleEvaluator (rules × one job)
    ├── dedup.py       → Deduplicator (sliding window per fingerprint)
    ├── queue.py       → AlertPriorityQueue (severity, then newest)
    ├── active.py      → ActiveAlertSet (id map + queue)
    ├── history.py     → AlertHistory, EventDispatcher, HistorySink
    ├── reconciler.py  → Reconciler (one poll cycle)
    ├── lifecycle.py   → LifecycleManager (acknowledge / dismiss)
    └── engine.py      → AlertEngine (facade)

Usage:
    from alerts import AlertEngine

    engine = AlertEngine()

    # Once per poll cycle, same engine every time
    summary = engine.reconcile(jobs, verifications)
    summary.new_alerts, summary.resolved_alerts

    engine.acknowledge("missing-truck-assignment-356001", "dispatcher")
    engine.get_active_alerts(severity=AlertSeverity.HIGH)
"""

from .models import (
    Alert,
    AlertAction,
    AlertEvent,
    AlertSeverity,
    BulkResult,
    CandidateAlert,
    CycleSummary,
    ResolutionReason,
)

from .rules import (
    AlertRule,
    RuleRegistry,
    default_registry,
    default_rules,
)

from .exceptions import AlertEngineError, DuplicateRuleError
from .dedup import Deduplicator
from .queue import AlertPriorityQueue
from .history import AlertHistory, EventDispatcher, HistorySink
from .engine import AlertEngine

__all__ = [
    # Models
    "Alert",
    "AlertAction",
    "AlertEvent",
    "AlertSeverity",
    "BulkResult",
    "CandidateAlert",
    "CycleSummary",
    "ResolutionReason",
    # Rules
    "AlertRule",
    "RuleRegistry",
    "default_registry",
    "default_rules",
    # Errors
    "AlertEngineError",
    "DuplicateRuleError",
    # Building blocks
    "Deduplicator",
    "AlertPriorityQueue",
    "AlertHistory",
    "EventDispatcher",
    "HistorySink",
    # Engine
    "AlertEngine",
]
