from fastapi import APIRouter, Depends

from backoffice_jobs.api.deps import get_health_service
from backoffice_jobs.schemas.job_schemas import SystemHealth
from backoffice_jobs.services.health_service import HealthService

router = APIRouter()


@router.get("/health", response_model=SystemHealth)
async def system_health(svc: HealthService = Depends(get_health_service)):
    """Database connectivity, worker heartbeat and queue backlog"""
    return SystemHealth(**await svc.system_health())
