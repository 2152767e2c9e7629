"""Chat flow coordination.

Turns user actions into backend submissions and stream subscriptions.

Responsibilities:
    - Prompt and attachment validation
    - Attachment cap handling at the UI boundary
    - Creating or extending sessions after a successful submission
    - Surfacing submission failures as chat messages
"""

from datachat.chat.orchestrator import (
    SEND_FAILED_MESSAGE,
    SUGGESTIONS,
    FileSelection,
    SubmissionFailed,
    SubmissionOrchestrator,
    SubmissionRejected,
)

__all__ = [
    "SEND_FAILED_MESSAGE",
    "SUGGESTIONS",
    "FileSelection",
    "SubmissionFailed",
    "SubmissionOrchestrator",
    "SubmissionRejected",
]
