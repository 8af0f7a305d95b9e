import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.alerts import router as alerts_router
from api.cycles import router as cycles_router
from api.history import router as history_router
from alerts import AlertEngine
from core import EngineConfig
from db import SQLiteAlertStore

DB_PATH = "data/alerts.db"
DEDUP_WINDOW_SEC = 300
LOG_LEVEL = logging.INFO

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # one engine for the whole process: alert state must outlive a request
    if app.state.store is None:
        app.state.store = SQLiteAlertStore(DB_PATH)
    if app.state.engine is None:
        app.state.engine = AlertEngine(
            EngineConfig(dedup_window_sec=DEDUP_WINDOW_SEC),
            sinks=[app.state.store],
        )
    logger.info("Alert engine ready with %d rules", len(app.state.engine.registry))
    yield


def create_app(
    engine: Optional[AlertEngine] = None,
    store: Optional[SQLiteAlertStore] = None,
) -> FastAPI:
    app = FastAPI(
        title="Dispatch Alerts API",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
    )
    app.state.engine = engine
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(alerts_router, prefix="/api")
    app.include_router(cycles_router, prefix="/api")
    app.include_router(history_router, prefix="/api")

    @app.get("/")
    async def root():
        return {
            "name": "Dispatch Alerts API",
            "version": "1.0.0",
            "docs": "/docs",
        }

    @app.get("/health")
    async def health():
        engine = app.state.engine
        if engine is None:
            return {"status": "starting"}

        stats = engine.statistics()
        return {
            "status": "healthy",
            "engine": {
                "active_alerts": stats["total"],
                "cycles": stats["cycles"],
                "rules": stats["rules_count"],
                "sink_failures": stats["sink_failures"],
                "uptime_seconds": stats["uptime_seconds"],
            },
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
