import logging
from uuid import uuid4

from fastapi import APIRouter
from fastapi import BackgroundTasks
from fastapi import HTTPException
from fastapi import Request
from fastapi import status

from app.core.security import Depends
from app.core.security import verify_api_key
from app.generation_logic.job_runner import run_research_job
from app.models.job_models import JobAccepted
from app.models.job_models import JobResponse
from app.models.research_models import ResearchSubmission
from app.services.container import ResearchServices

# Configure module logger
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def get_services(request: Request) -> ResearchServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        logger.error("Research services requested before application startup completed")
        raise HTTPException(status_code=503, detail="Service not ready")
    return services


@router.post(
    "/research",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=JobAccepted,
    dependencies=[Depends(verify_api_key)],
    summary="Submit a research document job",
    tags=["Research"],
)
async def submit_research(
    submission: ResearchSubmission,
    background_tasks: BackgroundTasks,
    services: ResearchServices = Depends(get_services),
) -> JobAccepted:
    """Accept a research request and run the pipeline out-of-band.

    Poll ``GET /api/jobs/{job_id}`` for the result, or pass ``callback_url`` to
    have it pushed when the job reaches a terminal state.
    """
    job_id = str(uuid4())
    services.store.create(job_id)
    logger.info(
        "[%s] Research job accepted for %s with %d competitor(s)",
        job_id,
        submission.client.name,
        len(submission.competitors),
    )

    background_tasks.add_task(
        run_research_job,
        job_id,
        submission.to_request(),
        services.runner,
        services.store,
        services.delivery,
        submission.to_callback(),
    )
    return JobAccepted(job_id=job_id, message=f"Research job accepted. Poll /api/jobs/{job_id} for status.")


@router.get(
    "/jobs/{job_id}",
    response_model=JobResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(verify_api_key)],
    summary="Get job status and result",
    tags=["Research"],
)
async def get_job(job_id: str, services: ResearchServices = Depends(get_services)) -> JobResponse:
    job = services.store.get(job_id)
    if job is None:
        # Unknown and expired jobs look the same
        raise HTTPException(status_code=404, detail="Job not found")
    return JobResponse.from_job(job)
