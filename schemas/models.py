from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
import uuid
from typing import Optional

from pydantic import BaseModel

class JobStatus(str, Enum):
    QUEUED     = "queued"
    PROCESSING = "processing"
    DONE       = "done"
    ERROR      = "error"
    ABANDONED  = "abandoned"

TERMINAL_STATUSES = frozenset({JobStatus.DONE, JobStatus.ERROR, JobStatus.ABANDONED})

@dataclass
class Job:
    id: str                          = field(default_factory=lambda: str(uuid.uuid4()))
    status: JobStatus                = JobStatus.QUEUED
    position: Optional[int]          = None   # 1-based queue rank, only while queued
    file_path: Optional[Path]        = None   # Temp upload, owned by the job
    original_filename: str           = ""
    language: str                    = "auto"
    submitted_at: datetime           = field(default_factory=lambda: datetime.now(timezone.utc))
    last_seen: float                 = 0.0    # Monotonic clock, refreshed by status polls
    result: Optional[str]            = None
    error: Optional[str]             = None
    _file_released: bool             = field(default=False, repr=False)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class UploadResponse(BaseModel):
    id: str
    message: str = "Job queued successfully"

class JobStatusResponse(BaseModel):
    id: str
    status: JobStatus
    position: Optional[int] = None
    result: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_job(cls, job: Job) -> "JobStatusResponse":
        return cls(
            id=job.id,
            status=job.status,
            position=job.position,
            result=job.result,
            error=job.error,
        )

class ErrorResponse(BaseModel):
    error: str
