from typing import Dict, List, Optional

from .models import Alert, AlertSeverity, empty_severity_counts
from .queue import AlertPriorityQueue


class ActiveAlertSet:
    """
    Open alerts: an id map for membership plus a priority queue for order.

    Both structures are updated together by add() and remove().
    """

    def __init__(self):
        self._alerts: Dict[str, Alert] = {}
        self._queue = AlertPriorityQueue()

    def add(self, alert: Alert) -> None:
        self._alerts[alert.id] = alert
        self._queue.enqueue(alert)

    def remove(self, alert_id: str) -> Optional[Alert]:
        alert = self._alerts.pop(alert_id, None)
        if alert is not None:
            self._queue.remove(alert_id)
        return alert

    def get(self, alert_id: str) -> Optional[Alert]:
        return self._alerts.get(alert_id)

    def ids(self) -> List[str]:
        return list(self._alerts)

    def values(self) -> List[Alert]:
        return list(self._alerts.values())

    def ordered(
        self,
        severity: Optional[AlertSeverity] = None,
        rule_id: Optional[str] = None,
        acknowledged: Optional[bool] = None,
        job_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Alert]:
        alerts = self._queue.get_all(severity)
        if rule_id is not None:
            alerts = [a for a in alerts if a.rule_id == rule_id]
        if acknowledged is not None:
            alerts = [a for a in alerts if a.acknowledged == acknowledged]
        if job_id is not None:
            alerts = [a for a in alerts if a.job_id == job_id]
        if limit is not None:
            alerts = alerts[:limit]
        return alerts

    def highest(self) -> Optional[Alert]:
        return self._queue.peek_highest()

    def count_by_severity(self) -> Dict[str, int]:
        counts = empty_severity_counts()
        for alert in self._alerts.values():
            counts[alert.severity.value] += 1
        return counts

    def count_by_rule(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for alert in self._alerts.values():
            counts[alert.rule_id] = counts.get(alert.rule_id, 0) + 1
        return counts

    @property
    def queue_size(self) -> int:
        return self._queue.size()

    def clear(self) -> None:
        self._alerts.clear()
        self._queue.clear()

    def __len__(self) -> int:
        return len(self._alerts)

    def __contains__(self, alert_id: object) -> bool:
        return alert_id in self._alerts
