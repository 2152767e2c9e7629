"""Classification of raw event-stream frames.

Every ``data`` payload received on a session's event stream maps to exactly
one of the frame kinds below. The stream manager decides what each kind
does to the connection and the message log.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum

from pydantic import ValidationError

from datachat.client.backend import STREAM_SENTINEL
from datachat.models.schemas import ProgressEvent, ResponseEvent

logger = logging.getLogger(__name__)


class FrameKind(str, Enum):
    """What an inbound frame means for the stream."""

    END = "end"
    PROGRESS = "progress"
    RESPONSE = "response"
    UNKNOWN = "unknown"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class Frame:
    """A classified frame.

    Attributes:
        kind: Frame classification.
        raw: The payload as received.
        progress: Parsed event for PROGRESS frames.
        response: Parsed event for RESPONSE frames.
        reason: Why a frame was UNKNOWN or MALFORMED.
    """

    kind: FrameKind
    raw: str
    progress: ProgressEvent | None = None
    response: ResponseEvent | None = None
    reason: str | None = None


def classify_frame(raw: str) -> Frame:
    """Classify one ``data`` payload from the event stream.

    The end-of-stream sentinel is checked before any JSON parsing, so it is
    never confused with a parse failure.

    Args:
        raw: The frame payload.

    Returns:
        The classified Frame.
    """
    payload = raw.strip()
    if payload == STREAM_SENTINEL:
        return Frame(FrameKind.END, raw)

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        return Frame(FrameKind.MALFORMED, raw, reason=f"invalid JSON: {e.msg}")

    if not isinstance(data, dict):
        return Frame(FrameKind.MALFORMED, raw, reason="payload is not an object")

    event_type = data.get("type")
    try:
        if event_type == FrameKind.PROGRESS.value:
            return Frame(FrameKind.PROGRESS, raw, progress=ProgressEvent.model_validate(data))
        if event_type == FrameKind.RESPONSE.value:
            return Frame(FrameKind.RESPONSE, raw, response=ResponseEvent.model_validate(data))
    except ValidationError as e:
        return Frame(
            FrameKind.MALFORMED,
            raw,
            reason=f"invalid {event_type} event: {e.error_count()} error(s)",
        )

    return Frame(FrameKind.UNKNOWN, raw, reason=f"unrecognized type {event_type!r}")
