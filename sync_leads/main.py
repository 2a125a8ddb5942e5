# sync_leads/main.py

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sync_leads.config import ALLOWED_ORIGINS, MASTER_LOOP_ENABLED
from sync_leads.logging_config import setup_logging
from sync_leads.middleware import RequestIDMiddleware
from sync_leads.routes.health import router as health_router
from sync_leads.routes.messages import router as messages_router
from sync_leads.routes.metrics import router as metrics_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="WhatsApp Lead Sync API",
    description="Ingests WhatsApp chat messages and syncs classified leads to Google Sheets",
    version="1.0.0",
)

app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(messages_router, tags=["Messages"])


@app.on_event("startup")
def startup_event() -> None:
    """Start the master loop in a background thread when enabled."""
    logger.info("FastAPI application starting up...")
    app.state.master_loop = None

    if MASTER_LOOP_ENABLED:
        from sync_leads.dependencies import get_engine
        from sync_leads.worker import build_master_loop

        loop = build_master_loop(get_engine())
        loop.start_background()
        app.state.master_loop = loop

    logger.info("FastAPI application initialized", master_loop_enabled=MASTER_LOOP_ENABLED)


@app.on_event("shutdown")
def shutdown_event() -> None:
    loop = getattr(app.state, "master_loop", None)
    if loop is not None:
        from sync_leads.worker import shutdown

        shutdown(loop)
