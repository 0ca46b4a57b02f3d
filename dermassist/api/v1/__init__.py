"""Version 1 of the HTTP API, mounted under ``/api/v1``."""

from fastapi import APIRouter

from dermassist.api.v1.endpoints import advice, health, predict

router = APIRouter(prefix="/api/v1")
router.include_router(health.router)
router.include_router(predict.router)
router.include_router(advice.router)

__all__ = ["router"]
