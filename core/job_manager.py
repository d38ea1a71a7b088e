import asyncio
import logging
import time
from pathlib import Path
from typing import Callable, Optional

from schemas.models import Job, JobStatus
from core.errors import AbandonmentError, BackendError, CancellationError, SubmissionError
from core.job_store import AdmissionQueue, JobStore
from core.transcriber import InferenceClient
from config import DEFAULT_LANGUAGE, HEARTBEAT_INTERVAL_SECONDS, LIVENESS_THRESHOLD_SECONDS

logger = logging.getLogger(__name__)

class JobManager:
    """
    Runs transcription jobs strictly one at a time, in submission order.

    Clients prove they are still waiting by polling get_status(). A job whose
    client went quiet for longer than the liveness threshold is abandoned,
    either when it reaches the head of the queue or, while it is processing,
    by the heartbeat monitor which also aborts the backend request.
    """

    def __init__(
        self,
        inference_client: Optional[InferenceClient] = None,
        liveness_threshold: float = LIVENESS_THRESHOLD_SECONDS,
        heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = JobStore()
        self.queue = AdmissionQueue(self.store)
        self.liveness_threshold = liveness_threshold
        self.heartbeat_interval = heartbeat_interval
        self._client = inference_client or InferenceClient()
        self._clock = clock

        # Dispatch gate: at most one job between dequeue and release
        self._busy = False
        self._wakeup = asyncio.Event()
        self._dispatch_task: Optional[asyncio.Task] = None

    @property
    def busy(self) -> bool:
        return self._busy

    async def start(self):
        """Starts the dispatcher task and drains anything already queued."""
        if self._dispatch_task is None:
            self._dispatch_task = asyncio.create_task(self._dispatch_loop())
            self.trigger()

    async def stop(self):
        if self._dispatch_task:
            self._dispatch_task.cancel()
            try:
                await self._dispatch_task
            except asyncio.CancelledError:
                pass
            self._dispatch_task = None
        await self._client.aclose()

    def submit(self, file_path: Optional[Path], language: Optional[str] = None, original_filename: str = "") -> Job:
        if file_path is None:
            raise SubmissionError("No file uploaded")

        job = Job(
            file_path=Path(file_path),
            original_filename=original_filename,
            language=language or DEFAULT_LANGUAGE,
            last_seen=self._clock(),
        )
        self.store.create(job)
        self.queue.enqueue(job.id)
        logger.info(f"Queued job {job.id} at position {len(self.queue)}")

        self.trigger()
        return self.store.get(job.id)

    def get_status(self, job_id: str) -> Job:
        """Status poll: refreshes the job's liveness and returns a snapshot."""
        return self.store.touch(job_id, self._clock())

    def get_job(self, job_id: str) -> Job:
        """Returns a snapshot without counting as a client heartbeat."""
        return self.store.get(job_id)

    def trigger(self):
        """Signals the dispatcher. A no-op while busy or with nothing queued."""
        if self._busy or len(self.queue) == 0:
            return
        self._wakeup.set()

    async def _dispatch_loop(self):
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()
            while len(self.queue) > 0:
                try:
                    await self._dispatch_next()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.exception(f"Dispatcher failed on a job: {e}")

    async def _dispatch_next(self):
        self._busy = True
        try:
            job_id = self.queue.dequeue_head()
            if job_id is None:
                return
            job = self.store.get(job_id)

            if self._is_stale(job):
                reason = AbandonmentError.BEFORE_PROCESSING
                if self.store.transition(job_id, {JobStatus.QUEUED}, JobStatus.ABANDONED, error=reason):
                    logger.warning(f"Job {job_id} {reason}")
                await self._release(job_id)
                return

            if not self.store.transition(job_id, {JobStatus.QUEUED}, JobStatus.PROCESSING):
                await self._release(job_id)
                return

            await self._run_job(job)
        finally:
            self._busy = False
            self.trigger()

    async def _run_job(self, job: Job):
        logger.info(f"Processing job {job.id} (language={job.language})")
        cancel_event = asyncio.Event()
        monitor = asyncio.create_task(self._heartbeat(job.id, cancel_event))

        try:
            text = await self._client.transcribe(job.file_path, job.language, cancel_event)
        except CancellationError:
            reason = AbandonmentError.DURING_PROCESSING
            self.store.transition(job.id, {JobStatus.PROCESSING}, JobStatus.ABANDONED, error=reason)
            logger.info(f"Backend call for job {job.id} cancelled")
        except BackendError as e:
            self.store.transition(job.id, {JobStatus.PROCESSING}, JobStatus.ERROR, error=str(e))
            logger.warning(f"Job {job.id} failed: {e}")
        except Exception as e:
            self.store.transition(job.id, {JobStatus.PROCESSING}, JobStatus.ERROR, error=str(e) or type(e).__name__)
            logger.error(f"Error processing job {job.id}: {e}")
        else:
            if self.store.transition(job.id, {JobStatus.PROCESSING}, JobStatus.DONE, result=text):
                logger.info(f"Job {job.id} done")
            else:
                logger.info(f"Discarding late result for job {job.id} ({self.store.get(job.id).status.value})")
        finally:
            monitor.cancel()
            try:
                await monitor
            except asyncio.CancelledError:
                pass
            await self._release(job.id)

    async def _heartbeat(self, job_id: str, cancel_event: asyncio.Event):
        """Watches a processing job and abandons it once its client goes quiet."""
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            if not self._is_stale(self.store.get(job_id)):
                continue

            reason = AbandonmentError.DURING_PROCESSING
            if self.store.transition(job_id, {JobStatus.PROCESSING}, JobStatus.ABANDONED, error=reason):
                logger.warning(f"Job {job_id} abandoned: {reason}")
            cancel_event.set()
            return

    def _is_stale(self, job: Job) -> bool:
        return self._clock() - job.last_seen > self.liveness_threshold

    async def _release(self, job_id: str):
        path = self.store.claim_file(job_id)
        if path is None:
            return
        await asyncio.to_thread(_delete_file, path)


def _delete_file(path: Path):
    try:
        path.unlink()
    except FileNotFoundError:
        logger.debug(f"Temp file {path} already removed")
    except OSError as e:
        logger.error(f"Failed to delete temp file {path}: {e}")
