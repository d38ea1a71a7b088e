"""Error kinds raised and recorded by the job engine."""


class TranscriptionError(Exception):
    """Base class for every job engine error."""


class SubmissionError(TranscriptionError):
    """The upload carried no audio payload; no job was created."""


class NotFoundError(TranscriptionError):
    """No job exists for the requested identifier."""

    def __init__(self, job_id: str):
        super().__init__("Job not found")
        self.job_id = job_id


class BackendError(TranscriptionError):
    """The inference backend answered with a non-success status."""

    def __init__(self, status_code: int):
        super().__init__(f"Inference backend responded with {status_code}")
        self.status_code = status_code


class AbandonmentError(TranscriptionError):
    """The client stopped polling before or during processing."""

    BEFORE_PROCESSING = "abandoned by client before processing"
    DURING_PROCESSING = "client disconnected"


class CancellationError(TranscriptionError):
    """An in-flight backend call was aborted because its job was abandoned."""
