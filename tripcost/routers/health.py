from fastapi import APIRouter, Depends

from tripcost.core.config import Settings
from tripcost.db.migrate import CURRENT_SCHEMA_VERSION
from .deps import get_settings_dep

router = APIRouter(tags=["health"])


@router.get("/health", summary="Liveness probe")
async def health(settings: Settings = Depends(get_settings_dep)):
    return {
        "status": "ok",
        "version": settings.version,
        "schema_version": CURRENT_SCHEMA_VERSION,
    }
