from __future__ import annotations

from fastapi import APIRouter, Depends

from reviewhub.access import AccessServices
from reviewhub.security.dependencies import get_access_services

router = APIRouter(tags=["health"])


@router.get("/health")
def health(services: AccessServices = Depends(get_access_services)) -> dict:
    return {"status": "ok", "access_cache": services.cache.stats()}
