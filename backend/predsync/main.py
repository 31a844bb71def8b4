import logging
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sentry_sdk.integrations.fastapi import FastApiIntegration

from predsync.api.router import api_router
from predsync.core.config import get_settings
from predsync.core.logging import setup_logging
from predsync.services.sync_engine import SyncEngine
from predsync.tasks.scheduler import SyncScheduler

settings = get_settings()

if settings.sentry_dsn:
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.app_env,
        traces_sample_rate=settings.sentry_traces_sample_rate,
        integrations=[FastApiIntegration()],
        send_default_pii=False,
    )
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    engine = SyncEngine()
    scheduler = SyncScheduler(engine)
    app.state.sync_engine = engine
    app.state.sync_scheduler = scheduler
    logger.info(
        "Sync configuration active",
        extra={
            "fetch_strategy": settings.fetch_strategy,
            "polling_enabled": settings.polling_enabled,
            "datasets": engine.dataset_keys,
            "sync_cycle_minutes": settings.sync_cycle_minutes_list,
        },
    )
    scheduler.start()

    yield

    scheduler.shutdown()


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "Origin", "X-Predsync-Ops-Token"],
)

app.include_router(api_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("predsync.main:app", host=settings.app_host, port=settings.app_port)
