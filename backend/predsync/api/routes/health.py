from fastapi import APIRouter, Request

from predsync.core.config import get_settings

router = APIRouter()


@router.get("/health/live")
async def health_live() -> dict:
    return {"status": "ok"}


@router.get("/health/ready")
async def health_ready(request: Request) -> dict:
    engine = getattr(request.app.state, "sync_engine", None)
    if engine is None:
        return {"status": "degraded", "datasets": {}}

    populated = {key: engine.cache.read(key).populated for key in engine.dataset_keys}
    status = "ok" if populated and any(populated.values()) else "degraded"
    return {"status": status, "datasets": populated}


@router.get("/health/flags")
async def health_flags() -> dict:
    s = get_settings()
    return {
        "polling_enabled": s.polling_enabled,
        "fetch_strategy": s.fetch_strategy,
        "sync_cycle_minutes": s.sync_cycle_minutes_list,
        "sync_datasets": s.sync_datasets_list,
        "max_retry_attempts": s.max_retry_attempts,
        "retry_delay_seconds": s.retry_delay_seconds,
        "lease_renewal_interval_minutes": s.lease_renewal_interval_minutes,
        "ops_alert_enabled": bool(s.ops_alert_webhook_url.strip()),
    }
