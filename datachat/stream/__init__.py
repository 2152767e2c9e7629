"""Event stream handling for analysis sessions.

Responsibilities:
    - Classifying raw server-sent event payloads
    - One live connection per session with an explicit state machine
    - Routing progress to a status line and responses to the message log
    - Guaranteed release of connections on every exit path
"""

from datachat.stream.events import Frame, FrameKind, classify_frame
from datachat.stream.manager import ConnectionState, StreamConnection, StreamManager

__all__ = [
    "ConnectionState",
    "Frame",
    "FrameKind",
    "StreamConnection",
    "StreamManager",
    "classify_frame",
]
