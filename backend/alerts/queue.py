"""
Alert Priority Queue
Active alerts ordered by severity, then most recent first.
"""

import heapq
import itertools
from typing import Dict, List, Optional, Tuple

from .models import Alert, AlertSeverity

# heap entry: [severity_rank, -timestamp, seq, alert or None]
_Entry = list


def _priority(alert: Alert, seq: int) -> Tuple[int, float, int]:
    return (alert.severity.rank, -alert.timestamp.timestamp(), seq)


class AlertPriorityQueue:
    """
    Binary heap keyed on (severity_rank, -timestamp).

    Removal marks the heap entry dead and drops it from the index;
    dead entries are discarded when they reach the top.
    """

    def __init__(self):
        self._heap: List[_Entry] = []
        self._index: Dict[str, _Entry] = {}
        self._counter = itertools.count()

    def enqueue(self, alert: Alert) -> None:
        """Add alert; an alert with the same id is replaced"""
        if alert.id in self._index:
            self.remove(alert.id)
        entry = [*_priority(alert, next(self._counter)), alert]
        self._index[alert.id] = entry
        heapq.heappush(self._heap, entry)

    def dequeue(self) -> Optional[Alert]:
        """Remove and return the highest priority alert"""
        self._discard_dead()
        if not self._heap:
            return None
        entry = heapq.heappop(self._heap)
        alert = entry[-1]
        del self._index[alert.id]
        return alert

    def remove(self, alert_id: str) -> Optional[Alert]:
        entry = self._index.pop(alert_id, None)
        if entry is None:
            return None
        alert = entry[-1]
        entry[-1] = None
        self._discard_dead()
        return alert

    def peek_highest(self) -> Optional[Alert]:
        self._discard_dead()
        return self._heap[0][-1] if self._heap else None

    def get_all(self, severity: Optional[AlertSeverity] = None) -> List[Alert]:
        """Live alerts in priority order, optionally one severity only"""
        entries = sorted(self._index.values(), key=lambda e: e[:3])
        alerts = [e[-1] for e in entries]
        if severity is not None:
            alerts = [a for a in alerts if a.severity == severity]
        return alerts

    def get_by_severity(self, severity: AlertSeverity) -> List[Alert]:
        return self.get_all(severity)

    def size(self) -> int:
        return len(self._index)

    def clear(self) -> None:
        self._heap.clear()
        self._index.clear()

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, alert_id: object) -> bool:
        return alert_id in self._index

    def _discard_dead(self) -> None:
        while self._heap and self._heap[0][-1] is None:
            heapq.heappop(self._heap)
        # keep dead entries from piling up under heavy churn
        if len(self._heap) > 2 * len(self._index) + 32:
            self._heap = [e for e in self._heap if e[-1] is not None]
            heapq.heapify(self._heap)
