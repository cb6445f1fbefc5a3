import asyncio
import logging

from app.services.job_store import JobStore

logger = logging.getLogger(__name__)


async def sweep_jobs_forever(store: JobStore, interval: float) -> None:
    """Remove expired jobs from *store* every *interval* seconds until cancelled."""
    logger.info("Job sweeper started (interval: %ss)", interval)
    while True:
        await asyncio.sleep(interval)
        removed = store.sweep()
        logger.debug("Job sweep finished: %d removed, %d remaining", removed, len(store))
