from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict

from app.models.document_models import GeneratedDocument


class JobStatus(str, Enum):
    ACCEPTED = "accepted"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETE, JobStatus.FAILED)


class Job(BaseModel):
    """Snapshot of an asynchronous job. Replaced whole on every transition, never edited in place."""

    model_config = ConfigDict(frozen=True)

    id: str
    status: JobStatus = JobStatus.ACCEPTED
    progress: str | None = None
    output: GeneratedDocument | None = None
    error: str | None = None
    created_at: datetime
    updated_at: datetime


class JobAccepted(BaseModel):
    job_id: str
    status: JobStatus = JobStatus.ACCEPTED
    message: str


class JobResponse(BaseModel):
    job_id: str
    status: JobStatus
    progress: str | None = None
    output: dict[str, Any] | None = None
    error: str | None = None

    @classmethod
    def from_job(cls, job: Job) -> "JobResponse":
        return cls(
            job_id=job.id,
            status=job.status,
            progress=job.progress,
            output=job.output.model_dump(mode="json") if job.output else None,
            error=job.error,
        )
