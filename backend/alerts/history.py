"""
Alert History
In-memory event log plus fan-out to external sinks.

Sinks are fire-and-forget: a failing sink is logged and counted,
never retried, and never fails the caller.
"""

import logging
from collections import deque
from typing import Callable, Deque, List, Optional, Protocol

from .models import AlertAction, AlertEvent

logger = logging.getLogger(__name__)

OnEventCallback = Callable[[AlertEvent], None]


class HistorySink(Protocol):
    """Anything that persists lifecycle events"""

    def record_event(self, event: AlertEvent) -> None:
        ...


class AlertHistory:
    def __init__(self, maxlen: int = 1000):
        self._events: Deque[AlertEvent] = deque(maxlen=maxlen)

    def append(self, event: AlertEvent) -> None:
        self._events.append(event)

    def get(self, limit: int = 50, action: Optional[AlertAction] = None) -> List[AlertEvent]:
        """Newest first"""
        events = list(self._events)
        events.reverse()
        if action is not None:
            events = [e for e in events if e.action == action]
        return events[:limit]

    def clear(self) -> None:
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)


class EventDispatcher:
    """Records events in history and forwards them to sinks and callbacks"""

    def __init__(self, history: AlertHistory, sinks: Optional[List[HistorySink]] = None):
        self.history = history
        self._sinks: List[HistorySink] = list(sinks or [])
        self._callbacks: List[OnEventCallback] = []
        self.sink_failures = 0

    def add_sink(self, sink: HistorySink) -> None:
        self._sinks.append(sink)

    def on_event(self, callback: OnEventCallback) -> None:
        self._callbacks.append(callback)

    def emit(self, event: AlertEvent) -> None:
        self.history.append(event)

        for sink in self._sinks:
            try:
                sink.record_event(event)
            except Exception as e:
                self.sink_failures += 1
                logger.warning(
                    "History sink %s failed on %s %s: %s",
                    type(sink).__name__, event.action.value, event.alert.id, e,
                )

        for callback in self._callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.warning("Alert event callback failed on %s: %s", event.alert.id, e)
