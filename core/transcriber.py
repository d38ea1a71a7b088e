import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import httpx

from config import BACKEND_URL, DEFAULT_LANGUAGE
from core.errors import BackendError, CancellationError

logger = logging.getLogger(__name__)


def parse_transcription(body: str) -> str:
    """
    Extracts the transcript from a backend response body.
    We ask for plain text, but some servers answer with {"text": ...} anyway.
    """
    try:
        payload = json.loads(body)
    except ValueError:
        return body

    if isinstance(payload, dict):
        text = payload.get("text")
        if isinstance(text, str) and text:
            return text
    return body


class InferenceClient:
    """Forwards an audio file to the inference backend and returns its transcript."""

    def __init__(
        self,
        backend_url: str = BACKEND_URL,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.backend_url = backend_url
        # No request timeout: long recordings take as long as they take, and
        # abandonment is handled through the cancel event instead.
        self._client = http_client or httpx.AsyncClient(timeout=None)
        self._owns_client = http_client is None

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def transcribe(
        self,
        file_path: Path,
        language: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """
        Sends the file as multipart form data and returns the transcript.
        Raises BackendError on a non-2xx answer and CancellationError as soon as
        cancel_event is set while the request is in flight.
        """
        if cancel_event is not None and cancel_event.is_set():
            raise CancellationError("Cancelled before the backend request was sent")

        file_path = Path(file_path)
        audio = open(file_path, "rb")
        try:
            request = self._client.post(
                self.backend_url,
                files={"file": (file_path.name, audio, "application/octet-stream")},
                data={
                    "language": language or DEFAULT_LANGUAGE,
                    "response_format": "text",
                },
            )

            if cancel_event is None:
                response = await request
            else:
                response = await self._race_cancel(request, cancel_event)
        finally:
            audio.close()

        if not response.is_success:
            raise BackendError(response.status_code)

        return parse_transcription(response.text)

    async def _race_cancel(self, request, cancel_event: asyncio.Event) -> httpx.Response:
        request_task = asyncio.ensure_future(request)
        cancel_task = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait(
                {request_task, cancel_task},
                return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancel_task.cancel()
            if not request_task.done():
                request_task.cancel()
                try:
                    await request_task
                except asyncio.CancelledError:
                    pass

        if request_task.cancelled():
            logger.info(f"Backend request to {self.backend_url} aborted")
            raise CancellationError("Backend request cancelled")

        return request_task.result()
