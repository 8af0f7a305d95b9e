"""
Alert Deduplication
Suppresses repeat alert creation for the same (rule, job) fingerprint.
"""

from datetime import datetime
from typing import Callable, Dict, Any


class Deduplicator:
    """
    Sliding-window fingerprint cache.

    A fingerprint is a duplicate while less than window_sec has passed
    since it was last recorded. Recording again restarts the window.
    """

    def __init__(self, window_sec: float = 300.0, clock: Callable[[], datetime] = datetime.now):
        self.window_sec = window_sec
        self._clock = clock
        self._last_seen: Dict[str, datetime] = {}

    def _age(self, fingerprint: str, now: datetime) -> float:
        return (now - self._last_seen[fingerprint]).total_seconds()

    def is_duplicate(self, fingerprint: str) -> bool:
        if fingerprint not in self._last_seen:
            return False
        return self._age(fingerprint, self._clock()) < self.window_sec

    def record(self, fingerprint: str) -> None:
        self._last_seen[fingerprint] = self._clock()

    def forget(self, fingerprint: str) -> bool:
        return self._last_seen.pop(fingerprint, None) is not None

    def purge_expired(self) -> int:
        """Drop entries older than the window. Returns number removed."""
        now = self._clock()
        expired = [fp for fp in self._last_seen if self._age(fp, now) >= self.window_sec]
        for fp in expired:
            del self._last_seen[fp]
        return len(expired)

    def clear(self) -> None:
        self._last_seen.clear()

    def __len__(self) -> int:
        return len(self._last_seen)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._last_seen

    def stats(self) -> Dict[str, Any]:
        now = self._clock()
        return {
            "cache_size": len(self._last_seen),
            "window_sec": self.window_sec,
            "entries": [
                {
                    "fingerprint": fp,
                    "last_seen": ts.isoformat(),
                    "age_sec": round((now - ts).total_seconds(), 3),
                }
                for fp, ts in self._last_seen.items()
            ],
        }
