"""Pydantic models for sessions, messages and backend wire formats.

Provides type safety and validation for everything that crosses the
network boundary or lives in the session store.

Models:
    - Message / Session: the immutable message log and its owner
    - Attachment: uploaded file awaiting submission
    - ProgressEvent / ResponseEvent: frames on the event stream
    - SubmissionResponse / ErrorResponse: submission endpoint replies
"""

from datachat.models.schemas import (
    Attachment,
    ErrorResponse,
    Message,
    MessageRole,
    ProgressEvent,
    ResponseEvent,
    ResponsePayload,
    Session,
    SubmissionResponse,
    generate_message_id,
)

__all__ = [
    "Attachment",
    "ErrorResponse",
    "Message",
    "MessageRole",
    "ProgressEvent",
    "ResponseEvent",
    "ResponsePayload",
    "Session",
    "SubmissionResponse",
    "generate_message_id",
]
