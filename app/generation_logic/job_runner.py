"""Background task glue between the pipeline, the job store and callback delivery."""

import logging

from app.models.job_models import JobStatus
from app.models.research_models import CallbackSpec
from app.models.research_models import ResearchRequest
from app.services.callback_delivery import CallbackDelivery
from app.services.job_store import JobStore
from app.services.pipeline import PipelineRunner

logger = logging.getLogger(__name__)


async def run_research_job(
    job_id: str,
    request: ResearchRequest,
    runner: PipelineRunner,
    store: JobStore,
    delivery: CallbackDelivery | None = None,
    callback: CallbackSpec | None = None,
) -> None:
    """Execute one research job end to end.

    The job gets exactly one terminal transition. Callback delivery happens
    afterwards and its outcome never changes the stored job.
    """
    store.update_status(job_id, JobStatus.PROCESSING, progress="Starting...")

    def on_progress(label: str) -> None:
        store.update_status(job_id, JobStatus.PROCESSING, progress=label)

    try:
        outcome = await runner.run(request, job_id=job_id, on_progress=on_progress)
    except Exception as e:
        logger.exception("[%s] Research job crashed", job_id)
        store.set_error(job_id, f"An unexpected problem occurred in the pipeline: {e}")
    else:
        if outcome.document is not None:
            store.set_output(job_id, outcome.document)
            logger.info("[%s] Research job complete", job_id)
        else:
            store.set_error(job_id, outcome.error or "Pipeline failed without an error message")
            logger.error("[%s] Research job failed after %d stage(s): %s", job_id, len(outcome.context), outcome.error)

    if callback is None or delivery is None:
        return
    job = store.get(job_id)
    if job is None:
        logger.warning("[%s] Job expired before callback delivery", job_id)
        return
    await delivery.deliver(callback, job)
