"""Shared fixtures for the job engine tests.

Timing-sensitive tests run the heartbeat monitor on a short real interval
but drive staleness through a fake clock, so abandonment happens exactly
when a test advances time.
"""

import asyncio
from pathlib import Path

import pytest

from core.errors import CancellationError
from core.job_manager import JobManager


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeInferenceClient:
    """Stands in for the backend. Each call blocks until the test settles it.

    finish()/fail() settle the oldest pending call. Unless ignore_cancel is
    set, a call also ends with CancellationError when its cancel event fires.
    """

    def __init__(self, ignore_cancel: bool = False):
        self.ignore_cancel = ignore_cancel
        self.calls = []
        self.cancelled = []
        self.pending = []
        self.closed = False

    async def transcribe(self, file_path, language=None, cancel_event=None):
        self.calls.append((Path(file_path), language))
        outcome = asyncio.get_running_loop().create_future()
        self.pending.append(outcome)

        waiters = {outcome}
        cancel_wait = None
        if cancel_event is not None and not self.ignore_cancel:
            cancel_wait = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_wait)
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if cancel_wait is not None:
                cancel_wait.cancel()
            if outcome in self.pending:
                self.pending.remove(outcome)

        if not outcome.done():
            self.cancelled.append(Path(file_path))
            raise CancellationError("cancelled")
        return outcome.result()

    def finish(self, text: str = "hello"):
        self.pending[0].set_result(text)

    def fail(self, exc: Exception):
        self.pending[0].set_exception(exc)

    async def aclose(self):
        self.closed = True


async def _wait_for(predicate, timeout: float = 2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_client():
    return FakeInferenceClient()


@pytest.fixture
def fake_client_factory():
    return FakeInferenceClient


@pytest.fixture
def wait_for():
    return _wait_for


@pytest.fixture
def audio_file(tmp_path):
    """Factory writing a small fake audio payload into tmp_path."""

    def _make(name: str = "clip.wav", payload: bytes = b"RIFF0000WAVEfmt ") -> Path:
        path = tmp_path / name
        path.write_bytes(payload)
        return path

    return _make


@pytest.fixture
async def manager(fake_client, clock):
    """A started engine with a 20 s threshold and a fast heartbeat."""
    m = JobManager(
        inference_client=fake_client,
        liveness_threshold=20.0,
        heartbeat_interval=0.01,
        clock=clock,
    )
    await m.start()
    yield m
    await m.stop()
