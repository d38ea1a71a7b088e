from fastapi import APIRouter, Depends, File, Form, UploadFile
from starlette.datastructures import UploadFile as StarletteUploadFile
from typing import Optional, Union
import shutil
import uuid

from schemas.models import ErrorResponse, JobStatusResponse, UploadResponse
from core.errors import SubmissionError
from core.job_manager import JobManager
import core.globals
from config import UPLOAD_DIR

router = APIRouter(tags=["transcription"])

def get_job_manager() -> JobManager:
    """The engine built at startup. Tests override this dependency."""
    if core.globals.job_manager is None:
        raise RuntimeError("Job manager is not running; it is created on application startup")
    return core.globals.job_manager

@router.post(
    "/upload",
    response_model=UploadResponse,
    responses={400: {"model": ErrorResponse}},
)
async def upload_audio(
    file: Union[UploadFile, str, None] = File(None),
    language: Optional[str] = Form(None),
    manager: JobManager = Depends(get_job_manager),
):
    """Stores the upload in UPLOAD_DIR and queues it for transcription."""
    # A form part without a filename arrives as a plain string, not a file
    if not isinstance(file, StarletteUploadFile) or not file.filename:
        raise SubmissionError("No file uploaded")

    save_path = UPLOAD_DIR / uuid.uuid4().hex
    save_path.parent.mkdir(parents=True, exist_ok=True)

    with open(save_path, "wb") as buffer:
        shutil.copyfileobj(file.file, buffer)

    job = manager.submit(save_path, language=language, original_filename=file.filename)
    return UploadResponse(id=job.id)

@router.get(
    "/status/{id}",
    response_model=JobStatusResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_status(id: str, manager: JobManager = Depends(get_job_manager)):
    # Polling doubles as the client's heartbeat
    job = manager.get_status(id)
    return JobStatusResponse.from_job(job)
