"""
Engine Configuration
Tunables for the alert engine and the poll-cycle runner.
"""

from pydantic import BaseModel, Field
from typing import List


class EngineConfig(BaseModel):
    """
    Alert engine settings.

    Passed explicitly to AlertEngine / PollingService.
    """
    dedup_window_sec: float = Field(default=300.0, gt=0)
    history_size: int = Field(default=1000, gt=0)
    long_in_progress_hours: float = Field(default=4.0, gt=0)
    proximity_miles: float = Field(default=2.0, gt=0)
    # False holds alerts of jobs missing from a batch instead of resolving them
    resolve_absent_jobs: bool = True
    excluded_statuses: List[str] = Field(default_factory=lambda: ["DELETED", ""])
    expected_interval_sec: float = Field(default=30.0, gt=0)
