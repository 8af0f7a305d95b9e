import logging
from datetime import datetime
from typing import Callable, Iterable

from .active import ActiveAlertSet
from .history import EventDispatcher
from .models import AlertAction, AlertEvent, BulkResult

logger = logging.getLogger(__name__)


class LifecycleManager:
    """
    Operator actions on open alerts.

    Acknowledge keeps the alert open. Dismiss closes it immediately;
    its fingerprint stays in the deduplicator, so a rule that still
    fires does not recreate it until the window lapses.
    """

    def __init__(
        self,
        active: ActiveAlertSet,
        events: EventDispatcher,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._active = active
        self._events = events
        self._clock = clock

    def acknowledge(self, alert_id: str, actor: str = "system") -> bool:
        alert = self._active.get(alert_id)
        if alert is None:
            return False

        now = self._clock()
        alert.acknowledged = True
        alert.acknowledged_by = actor
        alert.acknowledged_at = now
        self._events.emit(AlertEvent(AlertAction.ACKNOWLEDGED, alert.copy(), now, actor))
        logger.info("Alert %s acknowledged by %s", alert_id, actor)
        return True

    def dismiss(self, alert_id: str, actor: str = "system") -> bool:
        alert = self._active.remove(alert_id)
        if alert is None:
            return False

        now = self._clock()
        alert.dismissed_by = actor
        alert.dismissed_at = now
        self._events.emit(AlertEvent(AlertAction.DISMISSED, alert.copy(), now, actor))
        logger.info("Alert %s dismissed by %s", alert_id, actor)
        return True

    def bulk_acknowledge(self, alert_ids: Iterable[str], actor: str = "system") -> BulkResult:
        return self._bulk(self.acknowledge, alert_ids, actor)

    def bulk_dismiss(self, alert_ids: Iterable[str], actor: str = "system") -> BulkResult:
        return self._bulk(self.dismiss, alert_ids, actor)

    @staticmethod
    def _bulk(op: Callable[[str, str], bool], alert_ids: Iterable[str], actor: str) -> BulkResult:
        result = BulkResult()
        for alert_id in alert_ids:
            if op(alert_id, actor):
                result.succeeded += 1
            else:
                result.failed += 1
                result.failed_ids.append(alert_id)
        return result
