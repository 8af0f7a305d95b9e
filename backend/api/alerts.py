"""
Alerts API
Query and lifecycle endpoints for open alerts.

Endpoints:
    GET    /api/alerts                    → Open alerts in priority order
    GET    /api/alerts/highest            → Highest priority alert
    GET    /api/alerts/stats              → Engine statistics
    GET    /api/alerts/dedup              → Deduplication cache
    GET    /api/alerts/rules              → Registered rules
    GET    /api/alerts/history            → Recent lifecycle events
    POST   /api/alerts/bulk/acknowledge   → Acknowledge many
    POST   /api/alerts/bulk/dismiss       → Dismiss many
    GET    /api/alerts/{id}               → One open alert
    POST   /api/alerts/{id}/acknowledge   → Acknowledge
    POST   /api/alerts/{id}/dismiss       → Dismiss
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

from alerts import AlertEngine
from .deps import get_engine, parse_action, parse_severity

router = APIRouter(prefix="/alerts", tags=["Alerts"])


# =============================================================================
# Request Models
# =============================================================================

class ActorRequest(BaseModel):
    """Who performed the action"""
    actor: str = "user"


class BulkRequest(BaseModel):
    """Request body for bulk operations"""
    model_config = ConfigDict(json_schema_extra={
        "example": {
            "ids": ["missing-truck-assignment-356001", "attempted-status-356002"],
            "actor": "dispatcher",
        }
    })

    ids: List[str] = Field(..., min_length=1)
    actor: str = "user"


# =============================================================================
# Queries
# =============================================================================

@router.get("")
async def list_alerts(
    severity: Optional[str] = None,
    rule_id: Optional[str] = None,
    acknowledged: Optional[bool] = None,
    job_id: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    engine: AlertEngine = Depends(get_engine),
):
    """
    Open alerts, CRITICAL first and newest first within a severity.
    """
    alerts = engine.get_active_alerts(
        severity=parse_severity(severity),
        rule_id=rule_id,
        acknowledged=acknowledged,
        job_id=job_id,
        limit=limit,
    )
    return {
        "count": len(alerts),
        "stats": engine.get_alerts_by_severity(),
        "alerts": [a.to_dict() for a in alerts],
    }


@router.get("/highest")
async def highest_alert(engine: AlertEngine = Depends(get_engine)):
    """Highest priority open alert (null when none)"""
    alert = engine.get_highest_priority()
    return {"alert": alert.to_dict() if alert else None}


@router.get("/stats")
async def get_stats(engine: AlertEngine = Depends(get_engine)):
    """Get alert engine statistics"""
    return engine.statistics()


@router.get("/dedup")
async def get_dedup(engine: AlertEngine = Depends(get_engine)):
    """Deduplication cache entries and window"""
    return engine.dedup_stats()


@router.get("/rules")
async def list_rules(engine: AlertEngine = Depends(get_engine)):
    """Registered rules in evaluation order"""
    rules = engine.registry.describe()
    return {"count": len(rules), "rules": rules}


@router.get("/history")
async def get_history(
    limit: int = Query(default=50, ge=1, le=500),
    action: Optional[str] = None,
    engine: AlertEngine = Depends(get_engine),
):
    """Recent lifecycle events, newest first"""
    events = engine.get_history(limit, parse_action(action))
    return {"count": len(events), "events": [e.to_dict() for e in events]}


# =============================================================================
# Bulk Lifecycle
# =============================================================================

@router.post("/bulk/acknowledge")
async def bulk_acknowledge(request: BulkRequest, engine: AlertEngine = Depends(get_engine)):
    result = engine.bulk_acknowledge(request.ids, request.actor)
    return {"action": "acknowledged", **result.to_dict()}


@router.post("/bulk/dismiss")
async def bulk_dismiss(request: BulkRequest, engine: AlertEngine = Depends(get_engine)):
    result = engine.bulk_dismiss(request.ids, request.actor)
    return {"action": "dismissed", **result.to_dict()}


# =============================================================================
# Single Alert
# =============================================================================

@router.get("/{alert_id}")
async def get_alert(alert_id: str, engine: AlertEngine = Depends(get_engine)):
    alert = engine.get_alert(alert_id)
    if not alert:
        raise HTTPException(404, f"Alert not found: {alert_id}")
    return {"alert": alert.to_dict()}


@router.post("/{alert_id}/acknowledge")
async def acknowledge_alert(
    alert_id: str,
    request: Optional[ActorRequest] = None,
    engine: AlertEngine = Depends(get_engine),
):
    actor = request.actor if request else "user"
    if not engine.acknowledge(alert_id, actor):
        raise HTTPException(404, f"Alert not found: {alert_id}")
    return {"message": "Alert acknowledged", "alert": engine.get_alert(alert_id).to_dict()}


@router.post("/{alert_id}/dismiss")
async def dismiss_alert(
    alert_id: str,
    request: Optional[ActorRequest] = None,
    engine: AlertEngine = Depends(get_engine),
):
    actor = request.actor if request else "user"
    if not engine.dismiss(alert_id, actor):
        raise HTTPException(404, f"Alert not found: {alert_id}")
    return {"message": "Alert dismissed", "alert_id": alert_id}
