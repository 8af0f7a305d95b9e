"""
Request-scoped access to the objects owned by the app.
"""

from typing import Optional

from fastapi import HTTPException, Request

from alerts import AlertEngine, AlertSeverity, AlertAction
from db import SQLiteAlertStore


def get_engine(request: Request) -> AlertEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(503, "Alert engine not initialised")
    return engine


def get_store(request: Request) -> SQLiteAlertStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(503, "Alert history store not configured")
    return store


def parse_severity(value: Optional[str]) -> Optional[AlertSeverity]:
    if value is None:
        return None
    try:
        return AlertSeverity(value.upper())
    except ValueError:
        raise HTTPException(400, f"Invalid severity: {value}. Use: CRITICAL, HIGH, MEDIUM, LOW")


def parse_action(value: Optional[str]) -> Optional[AlertAction]:
    if value is None:
        return None
    try:
        return AlertAction(value.lower())
    except ValueError:
        raise HTTPException(400, f"Invalid action: {value}. Use: created, acknowledged, dismissed, resolved")
