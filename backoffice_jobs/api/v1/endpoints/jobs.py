from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from backoffice_jobs.api.deps import get_job_service
from backoffice_jobs.constants.job_status import JobStatus
from backoffice_jobs.core.exceptions import DatabaseError, InvalidJobStateError, JobNotFoundError
from backoffice_jobs.core.logger import error
from backoffice_jobs.core.setup_logger import api_logger
from backoffice_jobs.schemas.job_schemas import JobCreate, JobListResponse, JobResponse, JobStats
from backoffice_jobs.services.job_service import JobService

router = APIRouter()


@router.post("/jobs", response_model=JobResponse, status_code=201)
async def create_job(job_data: JobCreate, svc: JobService = Depends(get_job_service)):
    try:
        job_id = await svc.enqueue(
            tenant_id=job_data.tenant_id,
            job_type=job_data.job_type,
            entity_type=job_data.entity_type,
            entity_id=job_data.entity_id,
            payload=job_data.payload,
            max_retries=job_data.max_retries,
            priority=job_data.priority,
            scheduled_at=job_data.scheduled_at,
        )
        return JobResponse.model_validate(await svc.get_status(job_id))
    except DatabaseError as e:
        error(api_logger, "Failed to create job", context={"error": e.message, "job_type": job_data.job_type})
        raise HTTPException(status_code=500, detail=f"Failed to create job: {e.message}")


@router.get("/jobs", response_model=JobListResponse)
async def list_jobs(
        status: Optional[JobStatus] = Query(None, description="Filter by job status"),
        limit: int = Query(50, ge=1, le=1000, description="Maximum jobs to return"),
        offset: int = Query(0, ge=0, description="Number of jobs to skip"),
        svc: JobService = Depends(get_job_service),
):
    """
    List jobs, newest first, optionally filtered by status.
    """
    jobs = await svc.list_jobs(status.value if status else None, limit=limit, offset=offset)
    return JobListResponse(
        jobs=[JobResponse.model_validate(job) for job in jobs],
        limit=limit,
        offset=offset,
    )


@router.get("/jobs/stats/overview", response_model=JobStats)
async def get_job_stats(svc: JobService = Depends(get_job_service)):
    return JobStats(**await svc.get_stats())


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, svc: JobService = Depends(get_job_service)):
    try:
        return JobResponse.model_validate(await svc.get_status(job_id))
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")


@router.post("/jobs/{job_id}/cancel", response_model=JobResponse)
async def cancel_job(job_id: str, svc: JobService = Depends(get_job_service)):
    """
    Cancel a pending job. Jobs that already started cannot be cancelled.
    """
    try:
        return JobResponse.model_validate(await svc.cancel(job_id))
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    except InvalidJobStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
