import copy
import logging
import threading
from collections import deque
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from schemas.models import Job, JobStatus
from core.errors import NotFoundError

logger = logging.getLogger(__name__)

class JobStore:
    """
    Owns every job record. All reads return snapshots and all writes go
    through the store lock, so the submission path, status polls and the
    dispatcher never lose each other's updates.
    """

    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def create(self, job: Job) -> str:
        with self._lock:
            if job.id in self._jobs:
                raise ValueError(f"Job {job.id} already exists")
            self._jobs[job.id] = job
        return job.id

    def get(self, job_id: str) -> Job:
        with self._lock:
            return copy.copy(self._require(job_id))

    def update(self, job_id: str, mutator: Callable[[Job], None]) -> Job:
        """Applies mutator to the live record atomically and returns a snapshot."""
        with self._lock:
            job = self._require(job_id)
            mutator(job)
            return copy.copy(job)

    def touch(self, job_id: str, now: float) -> Job:
        """Records that the client was seen. last_seen never moves backwards."""
        with self._lock:
            job = self._require(job_id)
            if not job.is_terminal:
                job.last_seen = max(job.last_seen, now)
            return copy.copy(job)

    def transition(self, job_id: str, expected: Iterable[JobStatus], new: JobStatus, **fields) -> bool:
        """
        Moves the job to `new` only if its current status is one of `expected`.
        Returns False, leaving the record untouched, when another path got
        there first.
        """
        with self._lock:
            job = self._require(job_id)
            if job.status not in set(expected):
                return False
            if job.status == JobStatus.QUEUED and new != JobStatus.QUEUED:
                job.position = None
            job.status = new
            for name, value in fields.items():
                setattr(job, name, value)
            return True

    def claim_file(self, job_id: str) -> Optional[Path]:
        """Hands out the job's file handle once; later calls get None."""
        with self._lock:
            job = self._require(job_id)
            if job._file_released or job.file_path is None:
                return None
            job._file_released = True
            return job.file_path

    def set_positions(self, job_ids: List[str]):
        with self._lock:
            for index, job_id in enumerate(job_ids, start=1):
                job = self._jobs.get(job_id)
                if job:
                    job.position = index

    def _require(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise NotFoundError(job_id)
        return job


class AdmissionQueue:
    """FIFO of pending job ids that keeps each job's position in sync."""

    def __init__(self, store: JobStore):
        self._store = store
        self._ids: deque = deque()
        self._seen: set = set()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._ids

    def snapshot(self) -> List[str]:
        with self._lock:
            return list(self._ids)

    def enqueue(self, job_id: str) -> int:
        with self._lock:
            if job_id in self._seen:
                raise ValueError(f"Job {job_id} was already admitted")
            position = len(self._ids) + 1
            self._store.update(job_id, lambda job: setattr(job, "position", position))
            self._seen.add(job_id)
            self._ids.append(job_id)
        return position

    def dequeue_head(self) -> Optional[str]:
        with self._lock:
            if not self._ids:
                return None
            job_id = self._ids.popleft()
            self._store.set_positions(list(self._ids))
        return job_id
