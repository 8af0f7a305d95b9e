"""
History API
Reads from the persistent alert store.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional

from db import SQLiteAlertStore
from .deps import get_store, parse_severity

router = APIRouter(prefix="/history", tags=["History"])


@router.get("/alerts")
async def stored_alerts(
    severity: Optional[str] = None,
    rule_id: Optional[str] = None,
    job_id: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    store: SQLiteAlertStore = Depends(get_store),
):
    """Stored alerts with lifecycle columns, newest first"""
    sev = parse_severity(severity)
    rows = store.get_alerts(
        severity=sev.value if sev else None,
        rule_id=rule_id,
        job_id=job_id,
        limit=limit,
    )
    return {"count": len(rows), "alerts": rows}


@router.get("/daily")
async def daily_summary(store: SQLiteAlertStore = Depends(get_store)):
    """Alert counts per day and severity"""
    df = store.daily_summary()
    if not df.empty:
        df["alert_date"] = df["alert_date"].astype(str)
        df = df.astype(object).where(df.notna(), None)
    return {"days": df.to_dict(orient="records")}


@router.get("/stats")
async def store_stats(store: SQLiteAlertStore = Depends(get_store)):
    return store.get_stats()
