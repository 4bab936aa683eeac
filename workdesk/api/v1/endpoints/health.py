from fastapi import APIRouter, Depends

from workdesk.api.deps import get_cache_service
from workdesk.core.cache import CacheService

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health(cache: CacheService = Depends(get_cache_service)) -> dict:
    return {"status": "ok", "cache": "up" if cache.is_available else "down"}
