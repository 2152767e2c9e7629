"""Pytest fixtures and shared test configuration.

Fixtures:
    - fake_backend: in-process FastAPI stand-in for the analysis backend
    - backend_client: BackendClient wired to the fake over ASGITransport
    - store: empty SessionStore
    - event_source: scripted event stream for stream manager tests
    - settle: helper letting pending asyncio tasks run
"""

import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable

import pytest
from fastapi import FastAPI, File, Form, Response, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
from httpx import ASGITransport

from datachat.client.backend import BackendClient
from datachat.session.store import SessionStore

BACKEND_URL = "http://backend"


class FakeAnalysisBackend:
    """Minimal analysis backend speaking the real wire formats.

    Attributes:
        submissions: Recorded submissions (prompt, session_id, file names).
        frames: Event stream payloads per session id.
        figures: Stored (session_id, run_id, filename) triples.
        failure: When set, submissions answer with this (status, body).
    """

    def __init__(self) -> None:
        self.submissions: list[dict] = []
        self.frames: dict[str, list[str]] = {}
        self.figures: set[tuple[str, str, str]] = set()
        self.failure: tuple[int, dict] | None = None
        self.stream_status = 200
        self.next_session_id = "s1"
        self.app = self._build_app()

    def _build_app(self) -> FastAPI:
        app = FastAPI()

        @app.post("/api/v1/process")
        async def process(
            prompt: str = Form(...),
            session_id: str | None = Form(None),
            files: list[UploadFile] | None = File(None),
        ) -> Response:
            if self.failure is not None:
                status_code, body = self.failure
                return JSONResponse(body, status_code=status_code)
            uploads = files or []
            self.submissions.append(
                {
                    "prompt": prompt,
                    "session_id": session_id,
                    "files": [f.filename for f in uploads],
                    "contents": [await f.read() for f in uploads],
                }
            )
            return JSONResponse({"session_id": session_id or self.next_session_id})

        @app.get("/api/v1/process/events/{session_id}")
        async def events(session_id: str) -> Response:
            if self.stream_status != 200:
                return JSONResponse({"detail": "Unknown session"}, status_code=self.stream_status)

            async def generate() -> AsyncGenerator[str]:
                for frame in self.frames.get(session_id, ["[DONE]"]):
                    yield f"data: {frame}\n\n"

            return StreamingResponse(generate(), media_type="text/event-stream")

        @app.api_route(
            "/api/v1/process/storage/{session_id}/{run_id}/{filename}",
            methods=["GET", "HEAD"],
        )
        async def storage(session_id: str, run_id: str, filename: str) -> Response:
            if (session_id, run_id, filename) not in self.figures:
                return JSONResponse({"detail": "Not Found"}, status_code=404)
            return Response(b"\x89PNG", media_type="image/png")

        return app


class ScriptedEventSource:
    """Event source whose frames are pushed by the test.

    Push strings to emit frames, an exception to fail the stream, or None
    to end it without a sentinel.
    """

    def __init__(self) -> None:
        self.queues: dict[str, asyncio.Queue] = {}
        self.opened = 0
        self.released = 0
        self.open_now = 0

    def push(self, session_id: str, *items: object) -> None:
        queue = self.queues.setdefault(session_id, asyncio.Queue())
        for item in items:
            queue.put_nowait(item)

    async def stream_events(self, session_id: str) -> AsyncGenerator[str]:
        queue = self.queues.setdefault(session_id, asyncio.Queue())
        self.opened += 1
        self.open_now += 1
        try:
            while True:
                item = await queue.get()
                if item is None:
                    return
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            self.open_now -= 1
            self.released += 1


@pytest.fixture
def fake_backend() -> FakeAnalysisBackend:
    """Return a fresh fake analysis backend."""
    return FakeAnalysisBackend()


@pytest.fixture
async def backend_client(fake_backend: FakeAnalysisBackend) -> AsyncGenerator[BackendClient]:
    """Create a BackendClient talking to the fake backend.

    Yields:
        BackendClient using ASGITransport, closed after the test.
    """
    client = BackendClient(BACKEND_URL, transport=ASGITransport(app=fake_backend.app))
    async with client:
        yield client


@pytest.fixture
def store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def event_source() -> ScriptedEventSource:
    return ScriptedEventSource()


@pytest.fixture
def settle() -> Callable[[], Awaitable[None]]:
    """Return a coroutine function that lets queued tasks run."""

    async def _settle() -> None:
        for _ in range(10):
            await asyncio.sleep(0)

    return _settle
