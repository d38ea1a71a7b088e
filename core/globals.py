from core.job_manager import JobManager
from typing import Optional

job_manager: Optional[JobManager] = None

def init_globals():
    global job_manager
    if job_manager is None:
        job_manager = JobManager()
    return job_manager
