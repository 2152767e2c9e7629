"""Session state for the chat UI.

Holds the ordered message log of every session opened in a browser tab.

Responsibilities:
    - Creating sessions after the first successful submission
    - Append-only mutation of message logs
    - Re-render notifications to the UI
    - Bounded history per tab
"""

from datachat.session.store import SessionListener, SessionStore

__all__ = ["SessionListener", "SessionStore"]
