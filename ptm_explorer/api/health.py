import logging
from typing import Any

from fastapi import APIRouter, Depends

from ptm_explorer.config import Settings, get_settings
from ptm_explorer.core.redis import get_redis
from ptm_explorer.dependencies import get_gateway, get_repository
from ptm_explorer.services.repository import Repository

router = APIRouter(tags=["health"])
logger = logging.getLogger("ptm-explorer.health")


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok", "service": "ptm-explorer"}


@router.get("/health/detailed")
async def detailed_health(
    repository: Repository = Depends(get_repository),
    gateway=Depends(get_gateway),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    checks: dict[str, Any] = {}

    # Storage
    try:
        await repository.list_sessions()
        checks["storage"] = {"status": "ok", "backend": settings.STORAGE_BACKEND}
    except Exception as e:
        logger.warning(f"Storage health check failed: {e}")
        checks["storage"] = {"status": "error", "detail": str(e)}

    # Redis (optional cache)
    if settings.REDIS_URL:
        try:
            r = await get_redis()
            await r.ping()
            checks["redis"] = {"status": "ok"}
        except Exception as e:
            checks["redis"] = {"status": "error", "detail": str(e)}

    # UniProt
    try:
        reachable = await gateway.ping()
        checks["uniprot"] = {"status": "ok" if reachable else "unavailable"}
    except Exception as e:
        checks["uniprot"] = {"status": "unavailable", "detail": str(e)}

    # UniProt outages degrade enrichment only
    overall = "ok" if all(
        c.get("status") == "ok" for name, c in checks.items() if name != "uniprot"
    ) else "degraded"

    return {"status": overall, "checks": checks}
