"""Submission orchestration: user action -> backend request -> stream.

A submission either starts a new session (no session id yet) or follows up
in an existing one. Every successful submission is followed by a subscribe
call on the stream manager for the returned session id.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from datachat.client.backend import BackendError, BackendRejected
from datachat.models.schemas import Attachment, Message, SubmissionResponse
from datachat.session.store import SessionStore

logger = logging.getLogger(__name__)

SEND_FAILED_MESSAGE = "Error: Could not send message. Please try again."

SUGGESTIONS: list[dict[str, str]] = [
    {
        "icon": "trending_up",
        "title": "Sales Trend Analysis",
        "prompt": "Analyze the monthly sales trend from this dataset and identify seasonality.",
    },
    {
        "icon": "pie_chart",
        "title": "Customer Segmentation",
        "prompt": (
            "Segment customers based on purchasing behavior and suggest marketing strategies."
        ),
    },
    {
        "icon": "table_chart",
        "title": "Data Cleaning",
        "prompt": (
            "Check this file for missing values and anomalies, then summarize the columns."
        ),
    },
]


class SubmissionRejected(ValueError):
    """Raised when a submission fails validation before any request is made."""


class SubmissionFailed(Exception):
    """Raised when the backend could not accept a submission.

    Attributes:
        message: The user-facing diagnostic.
        session_id: Session the diagnostic was appended to, if any.
    """

    def __init__(self, message: str, session_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.session_id = session_id


class Submitter(Protocol):
    async def submit(
        self,
        prompt: str,
        files: Sequence[Attachment] = (),
        session_id: str | None = None,
    ) -> SubmissionResponse: ...


class Subscriber(Protocol):
    def subscribe(self, session_id: str) -> bool: ...


@dataclass
class FileSelection:
    """Result of adding picked files to the pending upload list.

    Attributes:
        files: The full pending list after the addition.
        accepted: How many of the newly picked files were kept.
        notice: Message for the user when files were dropped.
    """

    files: list[Attachment] = field(default_factory=list)
    accepted: int = 0
    notice: str | None = None


def describe_failure(error: BackendError) -> str:
    """Turn a backend failure into the text shown in the chat."""
    if isinstance(error, BackendRejected):
        text = f"Error: {error.detail}"
        if error.error:
            text += f"\n\n{error.error}"
        return text
    return SEND_FAILED_MESSAGE


class SubmissionOrchestrator:
    """Coordinates the store, the backend and the stream manager.

    Args:
        store: Session store for the current browser tab.
        backend: Client used to submit prompts.
        streams: Stream manager to subscribe after each submission.
        max_files: Maximum attachments per submission.
        title: Display title for new sessions.
    """

    def __init__(
        self,
        store: SessionStore,
        backend: Submitter,
        streams: Subscriber,
        max_files: int = 3,
        title: str = "Data Analyst",
    ) -> None:
        self._store = store
        self._backend = backend
        self._streams = streams
        self.max_files = max_files
        self._title = title

    def accept_files(
        self, current: Sequence[Attachment], incoming: Sequence[Attachment]
    ) -> FileSelection:
        """Add picked files to the pending list without exceeding the cap."""
        pending = list(current)
        if len(pending) >= self.max_files:
            return FileSelection(
                files=pending,
                notice=f"You can only upload a maximum of {self.max_files} files.",
            )

        remaining = self.max_files - len(pending)
        to_add = list(incoming)
        notice = None
        if len(to_add) > remaining:
            to_add = to_add[:remaining]
            notice = (
                f"You can only add {remaining} more file(s). "
                f"{len(to_add)} file(s) were added."
            )
        return FileSelection(files=pending + to_add, accepted=len(to_add), notice=notice)

    def validate(self, prompt: str, files: Sequence[Attachment]) -> None:
        """Reject a submission before it reaches the network.

        Raises:
            SubmissionRejected: The prompt is blank or too many files are attached.
        """
        if not prompt or not prompt.strip():
            raise SubmissionRejected("Prompt is missing")
        if len(files) > self.max_files:
            raise SubmissionRejected(
                f"You can only upload a maximum of {self.max_files} files "
                f"({len(files)} selected)."
            )

    async def submit(
        self,
        prompt: str,
        files: Sequence[Attachment] = (),
        session_id: str | None = None,
    ) -> str:
        """Submit a prompt, record the user message and start streaming.

        Args:
            prompt: The user's question.
            files: Attached data files.
            session_id: Existing session for a follow-up, None to start one.

        Returns:
            The session id the stream was subscribed to.

        Raises:
            SubmissionRejected: Validation failed; nothing was sent.
            SubmissionFailed: The backend request failed. For follow-ups the
                diagnostic has been appended to the session.
        """
        self.validate(prompt, files)
        file_names = [f.name for f in files]

        try:
            response = await self._backend.submit(prompt, files, session_id=session_id)
        except BackendError as e:
            logger.error(f"Submission failed (session={session_id}): {e}")
            message = describe_failure(e)
            if session_id is not None and self._store.append(
                session_id, Message.assistant(message)
            ) is not None:
                raise SubmissionFailed(message, session_id) from e
            raise SubmissionFailed(message) from e

        user_message = Message.user(prompt, file_names)
        if session_id is None:
            session_id = response.session_id
            self._store.create(session_id, title=self._title, messages=[user_message])
            logger.info(f"Started session {session_id} with {len(file_names)} file(s)")
        else:
            if response.session_id != session_id:
                logger.warning(
                    f"Backend answered with session {response.session_id} "
                    f"for follow-up in {session_id}"
                )
            self._store.append(session_id, user_message)

        self._streams.subscribe(session_id)
        return session_id
