from enum import Enum
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def generate_message_id() -> str:
    """Return a fresh client-side message identifier."""
    return uuid4().hex


class MessageRole(str, Enum):
    """Speaker of a message in the session log."""

    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A single entry in a session's message log.

    Messages are frozen: once appended they are never edited. Progress updates
    and corrections are expressed as new messages instead.

    Attributes:
        id: Client-generated unique identifier.
        role: Who produced the message.
        content: Message text, possibly containing ``<<<figure>>>`` markers.
        file_names: Names of files attached to a user message.
        run_id: Backend analysis run this message belongs to.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_message_id)
    role: MessageRole
    content: str
    file_names: tuple[str, ...] = ()
    run_id: str | None = None

    @classmethod
    def user(cls, content: str, file_names: list[str] | None = None) -> "Message":
        return cls(role=MessageRole.USER, content=content, file_names=tuple(file_names or ()))

    @classmethod
    def assistant(cls, content: str, run_id: str | None = None) -> "Message":
        return cls(role=MessageRole.ASSISTANT, content=content, run_id=run_id)


class Session(BaseModel):
    """Snapshot of a conversation with the analysis backend.

    Attributes:
        id: Backend-assigned session identifier.
        title: Display title.
        messages: Ordered, append-only message log.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    title: str = "Data Analyst"
    messages: tuple[Message, ...] = ()

    def with_message(self, message: Message) -> "Session":
        """Return a new snapshot with ``message`` appended to the log."""
        return self.model_copy(update={"messages": (*self.messages, message)})


class Attachment(BaseModel):
    """A file selected by the user, held in memory until submission."""

    name: str
    content: bytes
    content_type: str = "application/octet-stream"


class SubmissionResponse(BaseModel):
    """Successful reply from the submission endpoint."""

    model_config = ConfigDict(extra="allow")

    session_id: str = Field(..., min_length=1)


class ErrorResponse(BaseModel):
    """Error body returned by the backend or the proxy.

    Attributes:
        detail: Human readable summary.
        error: Optional raw error text from upstream.
    """

    detail: str
    error: str | None = None


class ProgressEvent(BaseModel):
    """Transient status update pushed while an analysis runs."""

    type: Literal["progress"] = "progress"
    message: str


class ResponsePayload(BaseModel):
    """Body of a response event.

    Attributes:
        text: Result text, may reference figures with ``<<<name>>>``.
        run_id: Analysis run that produced the figures.
    """

    model_config = ConfigDict(extra="ignore")

    text: str
    run_id: str | None = None

    @field_validator("run_id", mode="before")
    @classmethod
    def coerce_run_id(cls, v: object) -> object:
        """Accept numeric run ids from the backend."""
        if isinstance(v, int):
            return str(v)
        return v


class ResponseEvent(BaseModel):
    """Analysis result to be appended to the message log."""

    type: Literal["response"] = "response"
    message: ResponsePayload
