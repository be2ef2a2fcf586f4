from datetime import datetime, timezone

from fastapi import APIRouter

from apppublisher.api.deps import EnvironmentRouterDep, SettingsDep

router = APIRouter()


@router.get("/health")
async def basic_health(environments: EnvironmentRouterDep, settings: SettingsDep):
    """Report configured environments and the active creation policy. No datastore I/O."""
    return {
        "status": "ok",
        "version": settings.app_version,
        "environments": environments.environments,
        "creationPolicy": settings.creation_policy.value,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/live")
async def liveness_check():
    """Liveness probe for container orchestration."""
    return {"alive": True}
