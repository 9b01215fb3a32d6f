"""
FastAPI Application — entry point.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from scouts.config import settings
from scouts.database import close_db, init_db
from scouts import models  # noqa: F401  (register tables)
from scouts.routes import router
from scouts.routes.integrations import integrations_router
from scouts.services.notify import drain_notifications
from scouts.services.scout_cron import periodic_scout_cron

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hook."""
    logger.info("🚀 Starting Scout Cron API v%s", VERSION)
    await init_db()
    logger.info("✅ Database ready")

    cron_task = None
    if settings.cron_enabled:
        cron_task = asyncio.create_task(
            periodic_scout_cron(interval=settings.cron_interval_secs)
        )
        logger.info("⏰ Scout cron every %ds", settings.cron_interval_secs)
    else:
        logger.info("ℹ️ Scout cron loop disabled, manual triggers only")

    yield

    # Shutdown
    if cron_task:
        cron_task.cancel()
        try:
            await cron_task
        except asyncio.CancelledError:
            pass
    await drain_notifications()
    await close_db()
    logger.info("👋 Shutdown complete")


app = FastAPI(
    title="Scout Cron API",
    description=(
        "Schedules recurring research scouts, reconciles stuck executions, "
        "and retires scouts of dormant accounts."
    ),
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api/v1")
app.include_router(integrations_router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": "Scout Cron API",
        "version": VERSION,
        "docs": "/docs",
    }
