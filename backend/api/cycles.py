"""
Cycles API
Submit a sampled job batch for one reconciliation cycle.

The caller fetches jobs from the record store and posts them here,
one batch per poll.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, List

from alerts import AlertEngine
from .deps import get_engine

router = APIRouter(prefix="/cycles", tags=["Cycles"])


class CycleRequest(BaseModel):
    """One poll cycle's input"""
    model_config = ConfigDict(json_schema_extra={
        "example": {
            "jobs": [
                {"job_id": "356001", "status": "Entered", "job_date": "2025-11-10"},
                {"job_id": "356002", "status": "Attempted", "truck_id": "42"},
            ],
            "verifications": {
                "356002": {"status": "off_schedule", "distance": 3.4, "has_tracking": True},
            },
        }
    })

    jobs: List[Dict[str, Any]]
    verifications: Dict[str, Dict[str, Any]] = {}


# async keeps reconcile on the event loop, so cycles never overlap;
# a plain def would move it to the threadpool.
@router.post("")
async def run_cycle(request: CycleRequest, engine: AlertEngine = Depends(get_engine)):
    """
    Reconcile a job batch against the open alerts.

    Malformed jobs are skipped and counted, never rejected.
    """
    summary = engine.reconcile(request.jobs, request.verifications)
    return summary.to_dict()
