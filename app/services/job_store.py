"""In-memory job registry with TTL eviction.

Jobs are immutable snapshots; every transition swaps in a new record under a
lock so a concurrent poll always sees one consistent version. Complete and
failed are terminal: any mutation after either is ignored.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC
from datetime import datetime
from datetime import timedelta

from app.models.document_models import GeneratedDocument
from app.models.job_models import Job
from app.models.job_models import JobStatus

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class JobStore:
    def __init__(self, ttl_seconds: int, clock: Callable[[], datetime] = _utcnow):
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    def create(self, job_id: str) -> Job:
        now = self._clock()
        job = Job(id=job_id, status=JobStatus.ACCEPTED, created_at=now, updated_at=now)
        with self._lock:
            self._jobs[job_id] = job
        logger.info("[%s] Job created", job_id)
        return job

    def get(self, job_id: str) -> Job | None:
        """Return the job, or None if it never existed or has outlived its TTL."""
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None or self._expired(job, self._clock()):
            return None
        return job

    def update_status(self, job_id: str, status: JobStatus, progress: str | None = None) -> bool:
        """Move a live job between non-terminal states. Terminal states go through set_output or set_error."""
        if status.is_terminal:
            raise ValueError(f"update_status cannot set terminal status {status.value!r}; use set_output or set_error")
        return self._replace(job_id, status=status, progress=progress)

    def set_output(self, job_id: str, document: GeneratedDocument) -> bool:
        return self._replace(job_id, status=JobStatus.COMPLETE, output=document, progress="Complete")

    def set_error(self, job_id: str, message: str) -> bool:
        return self._replace(job_id, status=JobStatus.FAILED, error=message)

    def sweep(self) -> int:
        """Evict every job older than the TTL, whatever its status."""
        now = self._clock()
        with self._lock:
            expired = [job_id for job_id, job in self._jobs.items() if self._expired(job, now)]
            for job_id in expired:
                del self._jobs[job_id]
        if expired:
            logger.info("Evicted %d expired job(s)", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def _expired(self, job: Job, now: datetime) -> bool:
        return now - job.created_at >= self._ttl

    def _replace(self, job_id: str, **changes) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                logger.warning("[%s] Ignoring update for unknown or expired job", job_id)
                return False
            if job.status.is_terminal:
                logger.debug("[%s] Ignoring update for job already %s", job_id, job.status.value)
                return False
            self._jobs[job_id] = job.model_copy(update={**changes, "updated_at": self._clock()})
        return True
