from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from txmonitor.core.config import get_settings
from txmonitor.core.logging import configure_logging, request_id_middleware
from txmonitor.db.init import create_tables
from txmonitor.monitor.factory import create_context
from txmonitor.monitor.router import router as monitors_router
from txmonitor.monitor.supervisor import MonitorSupervisor, set_supervisor

logger = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings.ENV)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    logger.info(f"Starting transaction monitor (env: {settings.ENV})")

    await create_tables()
    context = create_context(settings)
    supervisor = MonitorSupervisor(context)
    set_supervisor(supervisor)
    # Integrations subscribe to status events through app.state.publisher
    app.state.publisher = context.publisher
    app.state.supervisor = supervisor

    # Pick up transactions that were still pending when the process stopped
    resumed = await supervisor.resume_submitted()
    logger.info(f"Resumed {resumed} pending transaction(s)")

    yield

    logger.info("Shutting down transaction monitor...")
    await supervisor.stop_all()
    set_supervisor(None)
    logger.info("Transaction monitor stopped")


app = FastAPI(title="Transaction Status Monitor", version="0.1.0", lifespan=lifespan)
app.middleware("http")(request_id_middleware)
app.include_router(monitors_router)


@app.get("/")
def health_check():
    return {"status": "ok"}


@app.get("/healthz")
def healthz():
    return {"status": "healthy", "env": settings.ENV}
