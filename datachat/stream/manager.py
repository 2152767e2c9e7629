"""Per-session event stream connections.

Each session has at most one live connection to the backend event stream.
A connection moves through IDLE -> CONNECTING -> ACTIVE -> CLOSED and feeds
the frames it receives into the session store in wire order:

- progress frames update a transient status line
- response frames append an assistant message
- the ``[DONE]`` sentinel or an explicit close end the connection
- a transport error, an early end of stream or an idle timeout end it with an
  error message in the session

Closing is idempotent. A closed session can be subscribed again.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import aclosing
from enum import Enum
from typing import Protocol

from datachat.client.backend import BackendError
from datachat.models.schemas import Message
from datachat.session.store import SessionStore
from datachat.stream.events import Frame, FrameKind, classify_frame

logger = logging.getLogger(__name__)

STREAM_ERROR_MESSAGE = "Error: Lost connection to the analysis stream. Please try again."
STREAM_TIMEOUT_MESSAGE = "Error: The analysis stopped responding. Please try again."

StatusListener = Callable[[str, str | None], None]


class EventSource(Protocol):
    def stream_events(self, session_id: str) -> AsyncGenerator[str]: ...


class ConnectionState(str, Enum):
    """Lifecycle of a session's stream connection."""

    IDLE = "idle"
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSED = "closed"


class StreamConnection:
    """Handle for one subscription to a session's event stream."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self.state = ConnectionState.CONNECTING
        self.task: asyncio.Task[None] | None = None
        self.closed = asyncio.Event()

    @property
    def live(self) -> bool:
        return self.state in (ConnectionState.CONNECTING, ConnectionState.ACTIVE)

    def __repr__(self) -> str:
        return f"StreamConnection({self.session_id!r}, {self.state.value})"


class StreamManager:
    """Owns the live event-stream connection of every session.

    Args:
        store: Session store receiving assistant messages.
        backend: Object providing ``stream_events(session_id)``.
        idle_timeout: Seconds without a frame before the stream is closed.
            ``None`` waits forever.
    """

    def __init__(
        self,
        store: SessionStore,
        backend: EventSource,
        idle_timeout: float | None = None,
    ) -> None:
        self._store = store
        self._backend = backend
        self._idle_timeout = idle_timeout
        self._connections: dict[str, StreamConnection] = {}
        self._status: dict[str, str] = {}
        self._status_listeners: list[StatusListener] = []

    def state(self, session_id: str) -> ConnectionState:
        conn = self._connections.get(session_id)
        return conn.state if conn else ConnectionState.IDLE

    def status(self, session_id: str) -> str | None:
        """Current progress text for a session, if any."""
        return self._status.get(session_id)

    def is_streaming(self, session_id: str) -> bool:
        conn = self._connections.get(session_id)
        return conn is not None and conn.live

    def add_status_listener(self, listener: StatusListener) -> None:
        self._status_listeners.append(listener)

    def subscribe(self, session_id: str) -> bool:
        """Open the event stream for a session.

        Must be called from a running event loop.

        Returns:
            True if a connection was started, False if one is already live.
        """
        current = self._connections.get(session_id)
        if current is not None and current.live:
            logger.info(f"Stream for {session_id} already {current.state.value}, ignoring")
            return False

        conn = StreamConnection(session_id)
        self._connections[session_id] = conn
        logger.info(f"Connecting to stream for {session_id}...")
        conn.task = asyncio.create_task(self._consume(conn), name=f"stream-{session_id}")
        return True

    def close(self, session_id: str) -> bool:
        """Close a session's connection.

        Safe to call any number of times and from any exit path.

        Returns:
            True if a live connection was closed by this call.
        """
        conn = self._connections.get(session_id)
        if conn is None or not conn.live:
            return False
        self._finish(conn, "closed by client")
        task = conn.task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        return True

    def close_all(self) -> None:
        for session_id in list(self._connections):
            self.close(session_id)

    async def shutdown(self) -> None:
        """Close every connection and wait for the consumers to exit."""
        tasks = [c.task for c in self._connections.values() if c.task is not None]
        self.close_all()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._connections.clear()

    async def wait_closed(self, session_id: str) -> None:
        """Wait until a session's connection has closed and released."""
        conn = self._connections.get(session_id)
        if conn is None:
            return
        await conn.closed.wait()
        if conn.task is not None:
            await asyncio.gather(conn.task, return_exceptions=True)

    async def _consume(self, conn: StreamConnection) -> None:
        session_id = conn.session_id
        try:
            async with aclosing(self._backend.stream_events(session_id)) as events:
                while conn.live:
                    try:
                        async with asyncio.timeout(self._idle_timeout):
                            raw = await anext(events)
                    except StopAsyncIteration:
                        logger.warning(f"Stream for {session_id} ended without sentinel")
                        self._fail(conn, STREAM_ERROR_MESSAGE)
                        break
                    if conn.state is ConnectionState.CONNECTING:
                        conn.state = ConnectionState.ACTIVE
                        logger.info(f"Stream for {session_id} active")
                    if not self._apply(conn, classify_frame(raw)):
                        break
        except TimeoutError:
            logger.error(
                f"Stream for {session_id} silent for {self._idle_timeout}s, closing"
            )
            self._fail(conn, STREAM_TIMEOUT_MESSAGE)
        except BackendError as e:
            logger.error(f"SSE connection error for {session_id}: {e}")
            self._fail(conn, STREAM_ERROR_MESSAGE)
        except Exception:
            logger.exception(f"Unexpected error on stream for {session_id}")
            self._fail(conn, STREAM_ERROR_MESSAGE)
        finally:
            self._finish(conn, "stream finished")

    def _apply(self, conn: StreamConnection, frame: Frame) -> bool:
        """Apply one frame. Returns False when the stream should stop."""
        session_id = conn.session_id
        if frame.kind is FrameKind.END:
            logger.info(f"Stream for {session_id} finished.")
            return False
        if frame.kind is FrameKind.PROGRESS:
            self._set_status(session_id, frame.progress.message)
        elif frame.kind is FrameKind.RESPONSE:
            payload = frame.response.message
            self._set_status(session_id, None)
            self._store.append(session_id, Message.assistant(payload.text, run_id=payload.run_id))
        elif frame.kind is FrameKind.UNKNOWN:
            logger.debug(f"Ignoring frame on {session_id}: {frame.reason}")
        else:
            logger.warning(f"Parse error on {session_id} stream ({frame.reason}): {frame.raw!r}")
        return True

    def _fail(self, conn: StreamConnection, diagnostic: str) -> None:
        if not conn.live:
            return
        self._finish(conn, "transport error")
        self._store.append(conn.session_id, Message.assistant(diagnostic))

    def _finish(self, conn: StreamConnection, reason: str) -> None:
        if conn.state is ConnectionState.CLOSED:
            return
        conn.state = ConnectionState.CLOSED
        conn.closed.set()
        self._set_status(conn.session_id, None)
        logger.info(f"Stream for {conn.session_id} closed ({reason})")

    def _set_status(self, session_id: str, status: str | None) -> None:
        if status is None:
            if self._status.pop(session_id, None) is None:
                return
        else:
            self._status[session_id] = status
        for listener in list(self._status_listeners):
            try:
                listener(session_id, status)
            except Exception:
                logger.exception(f"Status listener failed for {session_id}")
