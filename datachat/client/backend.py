"""HTTP client for the data-analysis backend.

Wraps the three backend surfaces the chat UI consumes:

- ``POST /api/v1/process``: multipart submission returning a session id
- ``GET /api/v1/process/events/{session_id}``: server-sent event stream
- ``/api/v1/process/storage/{session_id}/{run_id}/{filename}``: figures
"""

import logging
from collections.abc import AsyncGenerator, Sequence
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from datachat.config import PLACEHOLDER_IMAGE_URL, Settings
from datachat.models.schemas import Attachment, ErrorResponse, SubmissionResponse

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/process"
STREAM_SENTINEL = "[DONE]"


class BackendError(Exception):
    """Base class for failures talking to the backend."""


class BackendUnavailable(BackendError):
    """Raised when the backend cannot be reached or the connection drops."""


class BackendRejected(BackendError):
    """Raised when the backend answers with a non-success status.

    Attributes:
        status_code: HTTP status returned by the backend.
        detail: The ``detail`` field of the error body.
        error: The optional ``error`` field of the error body.
    """

    def __init__(self, status_code: int, detail: str, error: str | None = None) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail
        self.error = error

    @classmethod
    def from_response(cls, response: httpx.Response) -> "BackendRejected":
        try:
            body = ErrorResponse.model_validate(response.json())
            return cls(response.status_code, body.detail, body.error)
        except (ValueError, ValidationError):
            text = response.text.strip() or response.reason_phrase
            return cls(response.status_code, f"HTTP {response.status_code}", text or None)


def build_form(
    prompt: str,
    files: Sequence[Attachment] = (),
    session_id: str | None = None,
) -> tuple[dict[str, str], list[tuple[str, tuple[str, bytes, str]]]]:
    """Build the multipart fields for a submission.

    Returns:
        ``(data, files)`` ready for ``httpx.AsyncClient.post``.
    """
    data = {"prompt": prompt}
    if session_id:
        data["session_id"] = session_id
    parts = [("files", (f.name, f.content, f.content_type)) for f in files]
    return data, parts


class BackendClient:
    """Async client for the analysis backend.

    Args:
        base_url: Backend base URL, without trailing slash.
        timeout: Timeout in seconds for non-streaming requests.
        transport: Optional httpx transport, used by tests.
        placeholder_url: Image URL used when a figure cannot be resolved.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
        placeholder_url: str = PLACEHOLDER_IMAGE_URL,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.placeholder_url = placeholder_url
        self._timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "BackendClient":
        return cls(
            settings.backend_url,
            timeout=settings.request_timeout,
            placeholder_url=settings.placeholder_image_url,
        )

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def post_submission(
        self,
        prompt: str,
        files: Sequence[Attachment] = (),
        session_id: str | None = None,
    ) -> httpx.Response:
        """Send the multipart submission and return the raw response.

        Raises:
            BackendUnavailable: On connection or timeout errors.
        """
        data, parts = build_form(prompt, files, session_id)
        try:
            return await self._client.post(API_PREFIX, data=data, files=parts or None)
        except httpx.HTTPError as e:
            raise BackendUnavailable(f"Submission failed: {e}") from e

    async def submit(
        self,
        prompt: str,
        files: Sequence[Attachment] = (),
        session_id: str | None = None,
    ) -> SubmissionResponse:
        """Submit a prompt and files for analysis.

        Args:
            prompt: The user's question.
            files: Attached data files.
            session_id: Existing session for follow-ups.

        Returns:
            The parsed response carrying the session id.

        Raises:
            BackendUnavailable: The request could not be completed.
            BackendRejected: The backend answered with an error status.
        """
        response = await self.post_submission(prompt, files, session_id)
        if response.is_error:
            raise BackendRejected.from_response(response)
        try:
            return SubmissionResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise BackendRejected(
                response.status_code, "Invalid response from backend", str(e)
            ) from e

    async def stream_events(self, session_id: str) -> AsyncGenerator[str]:
        """Yield the ``data`` payload of each server-sent event.

        Multi-line ``data`` fields are joined with newlines. Comment lines
        (heartbeats) are skipped. The generator ends when the server closes
        the stream; callers decide what the sentinel means.

        Raises:
            BackendRejected: The stream endpoint returned an error status.
            BackendUnavailable: The connection failed or dropped.
        """
        path = f"{API_PREFIX}/events/{quote(session_id, safe='')}"
        # No read timeout: silence is policed by the stream manager
        timeout = httpx.Timeout(self._timeout, read=None)
        try:
            async with self._client.stream(
                "GET",
                path,
                headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
                timeout=timeout,
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise BackendRejected.from_response(response)

                data_lines: list[str] = []
                async for line in response.aiter_lines():
                    if not line:
                        if data_lines:
                            yield "\n".join(data_lines)
                            data_lines = []
                        continue
                    if line.startswith(":"):
                        continue
                    field, _, value = line.partition(":")
                    if field == "data":
                        data_lines.append(value[1:] if value.startswith(" ") else value)
                if data_lines:
                    yield "\n".join(data_lines)
        except httpx.HTTPError as e:
            raise BackendUnavailable(f"Event stream for {session_id} failed: {e}") from e

    def resource_url(self, session_id: str, run_id: str | None, filename: str) -> str:
        """Return the absolute URL of a figure, or the placeholder if unknown."""
        if not run_id:
            return self.placeholder_url
        parts = "/".join(quote(p, safe="") for p in (session_id, run_id, filename))
        return f"{self.base_url}{API_PREFIX}/storage/{parts}"

    async def resolve_resource(self, session_id: str, run_id: str | None, filename: str) -> str:
        """Return a URL that will display the figure.

        Missing figures, unknown runs and unreachable storage all resolve to
        the placeholder image so the chat never shows a broken state.
        """
        url = self.resource_url(session_id, run_id, filename)
        if url == self.placeholder_url:
            logger.info(f"No run id for figure {filename!r}, using placeholder")
            return url
        try:
            response = await self._client.head(url)
        except httpx.HTTPError as e:
            logger.warning(f"Figure lookup failed for {filename!r}: {e}")
            return self.placeholder_url
        if response.is_error:
            logger.info(f"Figure {filename!r} not found (HTTP {response.status_code})")
            return self.placeholder_url
        return url
