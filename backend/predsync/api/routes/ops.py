from fastapi import APIRouter, Depends, HTTPException, status

from predsync.adapters.upstream.errors import UnknownDataset
from predsync.api.deps import get_sync_engine, get_sync_scheduler, require_ops_token
from predsync.schemas.sync import RefreshRequest, RefreshResponse, SyncOutcomeOut, SyncStatusOut
from predsync.services.sync_engine import SyncEngine
from predsync.tasks.scheduler import SyncScheduler

router = APIRouter(dependencies=[Depends(require_ops_token)])


@router.get("/sync/status", response_model=SyncStatusOut)
async def sync_status(
    engine: SyncEngine = Depends(get_sync_engine),
    scheduler: SyncScheduler | None = Depends(get_sync_scheduler),
) -> SyncStatusOut:
    status_payload = engine.get_status()
    status_payload["scheduler"] = scheduler.status() if scheduler is not None else {"running": False, "jobs": []}
    return SyncStatusOut(**status_payload)


@router.post("/sync/refresh", response_model=RefreshResponse)
async def sync_refresh(
    payload: RefreshRequest,
    engine: SyncEngine = Depends(get_sync_engine),
) -> RefreshResponse:
    try:
        outcomes = await engine.force_refresh(payload.target)
    except UnknownDataset as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid target. Use a dataset key or 'all'",
        ) from exc
    return RefreshResponse(
        success=all(outcome.success for outcome in outcomes),
        outcomes=[SyncOutcomeOut(**outcome.to_dict()) for outcome in outcomes],
    )
