"""In-memory keyed store for chat sessions.

One store exists per connected browser tab. It owns every Session snapshot
for that tab and is discarded with it; nothing is persisted.
"""

import logging
from collections.abc import Callable, Iterator

from datachat.models.schemas import Message, Session

logger = logging.getLogger(__name__)

SessionListener = Callable[[Session], None]


class SessionStore:
    """Ordered, append-only message logs keyed by session id.

    Snapshots are immutable; every mutation stores a new Session and
    notifies listeners with it. All calls are expected on the event loop
    thread, so no locking is done.
    """

    def __init__(self, max_sessions: int = 50) -> None:
        self._sessions: dict[str, Session] = {}
        self._listeners: list[SessionListener] = []
        self._active_id: str | None = None
        self._max_sessions = max_sessions

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def sessions(self) -> Iterator[Session]:
        """Iterate sessions in creation order."""
        return iter(list(self._sessions.values()))

    @property
    def active(self) -> Session | None:
        """The session currently shown in the chat panel."""
        if self._active_id is None:
            return None
        return self._sessions.get(self._active_id)

    def activate(self, session_id: str | None) -> None:
        """Switch the active session; ``None`` returns to the landing page."""
        if session_id is not None and session_id not in self._sessions:
            raise KeyError(f"Session {session_id} not found")
        self._active_id = session_id

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def create(
        self,
        session_id: str,
        title: str = "Data Analyst",
        messages: tuple[Message, ...] | list[Message] = (),
    ) -> Session:
        """Register a new session and make it the active one.

        Args:
            session_id: Backend-assigned identifier.
            title: Display title.
            messages: Initial log, usually the user's first prompt.

        Returns:
            The stored session snapshot.
        """
        if session_id in self._sessions:
            logger.warning(f"Session {session_id} already exists, replacing it")
        session = Session(id=session_id, title=title, messages=tuple(messages))
        self._active_id = session_id
        self.replace(session)
        self._evict()
        return session

    def append(self, session_id: str, message: Message) -> Session | None:
        """Append one message to the end of a session's log.

        Args:
            session_id: Target session.
            message: Message to add.

        Returns:
            The updated snapshot, or None when the session is unknown.
        """
        session = self._sessions.get(session_id)
        if session is None:
            logger.warning(
                f"Dropping {message.role.value} message {message.id}: "
                f"unknown session {session_id}"
            )
            return None
        updated = session.with_message(message)
        self.replace(updated)
        return updated

    def replace(self, session: Session) -> None:
        """Store ``session`` as the current snapshot and notify listeners."""
        self._sessions[session.id] = session
        for listener in list(self._listeners):
            try:
                listener(session)
            except Exception:
                logger.exception(f"Session listener failed for {session.id}")

    def drop(self, session_id: str) -> None:
        """Forget a session. Unknown ids are ignored."""
        if self._sessions.pop(session_id, None) is not None:
            logger.debug(f"Dropped session {session_id}")
        if self._active_id == session_id:
            self._active_id = None

    def clear(self) -> None:
        """Forget every session, e.g. when the browser tab goes away."""
        self._sessions.clear()
        self._active_id = None

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _evict(self) -> None:
        while len(self._sessions) > self._max_sessions:
            oldest = next(
                (sid for sid in self._sessions if sid != self._active_id),
                None,
            )
            if oldest is None:
                return
            logger.info(f"Evicting session {oldest} (limit {self._max_sessions})")
            del self._sessions[oldest]
