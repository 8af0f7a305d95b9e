"""
API Routers
"""
from .alerts import router as alerts_router
from .cycles import router as cycles_router
from .history import router as history_router

__all__ = ["alerts_router", "cycles_router", "history_router"]
