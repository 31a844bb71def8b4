from secrets import compare_digest

from fastapi import HTTPException, Request, status

from predsync.core.config import get_settings
from predsync.services.sync_engine import SyncEngine
from predsync.tasks.scheduler import SyncScheduler

OPS_TOKEN_HEADER = "X-Predsync-Ops-Token"


def get_sync_engine(request: Request) -> SyncEngine:
    engine = getattr(request.app.state, "sync_engine", None)
    if engine is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Sync engine not initialized")
    return engine


def get_sync_scheduler(request: Request) -> SyncScheduler | None:
    return getattr(request.app.state, "sync_scheduler", None)


async def require_ops_token(request: Request) -> None:
    provided = request.headers.get(OPS_TOKEN_HEADER, "").strip()
    expected = get_settings().ops_internal_token.strip()
    if not provided or not expected or not compare_digest(provided, expected):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
