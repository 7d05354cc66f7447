# model/job.py
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field
from model.meeting import ProcessingMode


class JobStatus(str, Enum):
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"

    @property
    def terminal(self) -> bool:
        return self is not JobStatus.PROCESSING


class ProcessingJob(BaseModel):
    """One background inference request, as submitted by the pipeline client."""

    jobId: str = Field(min_length=1)
    fileUri: str = Field(min_length=1)
    mimeType: str = Field(min_length=1)
    mode: ProcessingMode = ProcessingMode.ALL
    model: str = Field(min_length=1)


class JobRecord(BaseModel):
    """Persisted lifecycle of a job. PROCESSING -> COMPLETED | ERROR, never back."""

    status: JobStatus
    result: Optional[str] = None
    error: Optional[str] = None
