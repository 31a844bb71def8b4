from fastapi import APIRouter

from predsync.api.routes import data, health, ops

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(data.router, prefix="/data", tags=["data"])
api_router.include_router(ops.router, prefix="/ops", tags=["ops"])
