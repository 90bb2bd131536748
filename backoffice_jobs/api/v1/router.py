from fastapi import APIRouter

from backoffice_jobs.api.v1.endpoints import jobs, system

router = APIRouter()

router.include_router(jobs.router, tags=["jobs"])
router.include_router(system.router, prefix="/system", tags=["system"])
