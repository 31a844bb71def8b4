from fastapi import APIRouter, Depends, HTTPException, status

from predsync.adapters.upstream.errors import UnknownDataset
from predsync.api.deps import get_sync_engine
from predsync.schemas.sync import ClearNotificationsRequest, ClearNotificationsResponse, DatasetOut
from predsync.services.sync_engine import SyncEngine

router = APIRouter()


@router.post("/clear-notifications", response_model=ClearNotificationsResponse)
async def clear_notifications(
    payload: ClearNotificationsRequest,
    engine: SyncEngine = Depends(get_sync_engine),
) -> ClearNotificationsResponse:
    try:
        engine.clear_notifications(payload.dataset)
    except UnknownDataset as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid notification type") from exc
    return ClearNotificationsResponse(
        dataset=payload.dataset,
        message=f"Notifications cleared for {payload.dataset}",
    )


@router.get("/{dataset}", response_model=DatasetOut)
async def get_dataset(
    dataset: str,
    engine: SyncEngine = Depends(get_sync_engine),
) -> DatasetOut:
    try:
        cached = engine.get_cached_data(dataset)
    except UnknownDataset as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown dataset") from exc
    return DatasetOut(**cached)
