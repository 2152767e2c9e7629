"""NiceGUI chat interface with SSE-driven analysis progress."""

import logging
from collections.abc import Callable

from nicegui import Client, app, background_tasks, ui
from nicegui.events import UploadEventArguments

from datachat.chat.orchestrator import (
    SUGGESTIONS,
    SubmissionFailed,
    SubmissionOrchestrator,
    SubmissionRejected,
)
from datachat.client.backend import BackendClient
from datachat.config import get_settings
from datachat.models.schemas import Attachment, Message, MessageRole, Session
from datachat.parsing.content_parser import render_content
from datachat.session.store import SessionStore
from datachat.stream.manager import StreamManager

logger = logging.getLogger(__name__)

CUSTOM_CSS = """
<link href="https://fonts.googleapis.com/css2?family=Inter:wght@400;500;600&display=swap"
      rel="stylesheet">
<style>
    * { font-family: 'Inter', sans-serif; }

    body { background: #fafafa; min-height: 100vh; }

    .message-user {
        background: #2563eb;
        color: white;
        border-radius: 12px;
    }

    .message-assistant { color: #171717; }

    .status-text {
        background-image: linear-gradient(90deg, #4f46e5 0%, #a855f7 25%, #ec4899 50%,
                                          #a855f7 75%, #4f46e5 100%);
        background-size: 200% auto;
        -webkit-background-clip: text;
        background-clip: text;
        color: transparent;
        animation: shimmer 2s linear infinite;
    }

    @keyframes shimmer { to { background-position: 200% center; } }

    .input-box {
        background: rgba(245, 245, 245, 0.6);
        backdrop-filter: blur(16px);
        border-radius: 24px;
    }

    .figure-card { border: 1px solid #e5e5e5; border-radius: 12px; background: white; }
</style>
"""

_backend: BackendClient | None = None


def get_backend() -> BackendClient:
    """Get or create the backend client shared by all browser tabs."""
    global _backend
    if _backend is None:
        _backend = BackendClient.from_settings(get_settings())
    return _backend


async def close_backend() -> None:
    global _backend
    if _backend is not None:
        await _backend.aclose()
        _backend = None


app.on_shutdown(close_backend)


class FigureCache:
    """Resolved figure URLs for one browser tab."""

    def __init__(self, backend: BackendClient) -> None:
        self._backend = backend
        self._urls: dict[tuple[str, str | None, str], str] = {}

    def cached(self, session_id: str, run_id: str | None, filename: str) -> str | None:
        return self._urls.get((session_id, run_id, filename))

    async def resolve(self, session_id: str, run_id: str | None, filename: str) -> str:
        key = (session_id, run_id, filename)
        if key not in self._urls:
            self._urls[key] = await self._backend.resolve_resource(session_id, run_id, filename)
        return self._urls[key]


def render_figure(
    figures: FigureCache,
    session: Session,
    message: Message,
    filename: str,
    placeholder_url: str,
) -> None:
    """Render a figure card that falls back to a placeholder image."""
    cached = figures.cached(session.id, message.run_id, filename)

    with ui.dialog().props("maximized") as dialog, ui.card().classes("w-full bg-black/95"):
        with ui.row().classes("w-full justify-end"):
            ui.button(icon="close", on_click=dialog.close).props("flat round color=white")
        zoomed = ui.image(cached or placeholder_url).classes("w-full max-h-[60vh]").props(
            "fit=contain"
        )
        with ui.card().classes("w-full bg-neutral-900 text-neutral-100"):
            with ui.row().classes("items-center gap-2"):
                ui.icon("auto_awesome").classes("text-indigo-400")
                ui.label("Insight Summary").classes("text-xl font-semibold")
            ui.label(message.content).classes("whitespace-pre-wrap font-light")

    with ui.element("div").classes("figure-card p-2 w-full cursor-zoom-in"):
        image = (
            ui.image(cached or placeholder_url)
            .classes("w-full max-h-72 rounded-lg")
            .props("fit=contain")
            .on("click", dialog.open)
        )

    def use_placeholder() -> None:
        image.set_source(placeholder_url)
        zoomed.set_source(placeholder_url)

    image.on("error", use_placeholder)

    if cached is None:

        async def load() -> None:
            url = await figures.resolve(session.id, message.run_id, filename)
            image.set_source(url)
            zoomed.set_source(url)

        background_tasks.create(load(), name=f"figure-{filename}")


def render_message(
    session: Session,
    message: Message,
    figures: FigureCache,
    placeholder_url: str,
) -> None:
    is_user = message.role is MessageRole.USER
    align = "justify-end" if is_user else "justify-start"

    with ui.row().classes(f"w-full {align}"):
        bubble = "message-user p-3" if is_user else "message-assistant"
        with ui.column().classes(f"max-w-[85%] gap-2 {bubble}"):
            if is_user:
                ui.label(message.content).classes("whitespace-pre-wrap")
            else:
                render_content(
                    message.content,
                    lambda text: ui.markdown(text).classes("leading-relaxed"),
                    lambda filename: render_figure(
                        figures, session, message, filename, placeholder_url
                    ),
                )
            if message.file_names:
                with ui.row().classes("gap-1"):
                    for name in message.file_names:
                        ui.chip(name, icon="attach_file").props("dense outline")


def register_teardown(client: Client, streams: StreamManager, store: SessionStore) -> None:
    """Close a tab's streams and sessions once its client is deleted.

    A dropped websocket may reconnect, so the teardown waits for the client
    to be deleted rather than disconnected.
    """

    async def teardown() -> None:
        logger.info(f"Client {client.id} deleted, closing streams")
        await streams.shutdown()
        store.clear()

    client.on_delete(teardown)


@ui.page("/")
async def chat_page() -> None:
    """Landing page and chat panel for one browser tab."""
    ui.add_head_html(CUSTOM_CSS)
    settings = get_settings()
    backend = get_backend()

    store = SessionStore(max_sessions=settings.max_sessions)
    streams = StreamManager(store, backend, idle_timeout=settings.stream_idle_timeout)
    orchestrator = SubmissionOrchestrator(
        store,
        backend,
        streams,
        max_files=settings.max_files,
        title=settings.session_title,
    )
    figures = FigureCache(backend)
    pending: list[Attachment] = []
    shown: dict[str, str | None] = {"session_id": None}
    busy = {"value": False}

    async def handle_upload(e: UploadEventArguments) -> None:
        incoming = Attachment(
            name=e.file.name,
            content=await e.file.read(),
            content_type=e.file.content_type or "application/octet-stream",
        )
        selection = orchestrator.accept_files(pending, [incoming])
        pending[:] = selection.files
        if selection.notice:
            ui.notify(selection.notice, type="warning")
        pending_files.refresh()

    def remove_file(index: int) -> None:
        del pending[index]
        pending_files.refresh()

    @ui.refreshable
    def pending_files() -> None:
        if not pending:
            return
        with ui.row().classes("gap-2 px-4 pb-2"):
            for index, attachment in enumerate(pending):
                ui.chip(
                    attachment.name,
                    removable=True,
                    on_value_change=lambda _, i=index: remove_file(i),
                ).props("outline")

    def file_picker() -> None:
        picker = (
            ui.upload(multiple=True, auto_upload=True, on_upload=handle_upload)
            .props("accept=.csv,.xlsx,.xls,.json")
            .classes("hidden")
        )
        ui.button(
            icon="attach_file",
            on_click=lambda: picker.run_method("pickFiles"),
        ).props("flat round color=grey-8")

    async def send(prompt: str, session_id: str | None, clear: Callable[[], None]) -> None:
        if busy["value"]:
            return
        busy["value"] = True
        try:
            await orchestrator.submit(prompt, list(pending), session_id=session_id)
        except SubmissionRejected as e:
            ui.notify(str(e), type="warning")
            return
        except SubmissionFailed as e:
            if e.session_id is None:
                ui.notify(f"Failed to start session. {e.message}", type="negative")
            return
        finally:
            busy["value"] = False
        pending.clear()
        clear()
        pending_files.refresh()

    @ui.refreshable
    def status_line(session_id: str) -> None:
        status = streams.status(session_id)
        if not (streams.is_streaming(session_id) and status):
            return
        with ui.row().classes("items-center gap-3"):
            ui.icon("auto_awesome").classes("text-indigo-500 animate-pulse")
            ui.label(status).classes("font-medium status-text")

    @ui.refreshable
    def messages(session_id: str) -> None:
        session = store.get(session_id)
        if session is None:
            return
        for message in session.messages:
            render_message(session, message, figures, settings.placeholder_image_url)

    def render_landing() -> None:
        with ui.column().classes("w-full max-w-2xl mx-auto items-center gap-8 p-8"):
            with ui.column().classes("items-center gap-4 text-center"):
                ui.icon("auto_awesome").classes("text-4xl text-neutral-800")
                ui.label("AI Data Analyst").classes("text-4xl font-bold text-neutral-900")
                ui.label(
                    "Upload your CSV, Excel, or JSON files and uncover actionable "
                    "insights instantly."
                ).classes("text-lg text-neutral-500")

            with ui.card().classes("w-full rounded-2xl shadow-lg"):
                prompt_field = (
                    ui.textarea(placeholder="Describe your data or ask a question...")
                    .props("autogrow borderless")
                    .classes("w-full")
                )
                pending_files()
                with ui.row().classes("w-full justify-between items-center"):
                    file_picker()
                    ui.button(
                        "Start Analysis",
                        icon="arrow_forward",
                        on_click=lambda: send(
                            prompt_field.value, None, lambda: prompt_field.set_value("")
                        ),
                    ).props("unelevated color=black")
                prompt_field.on(
                    "keydown.enter.prevent",
                    lambda: send(prompt_field.value, None, lambda: prompt_field.set_value("")),
                )

            with ui.grid(columns=3).classes("w-full gap-4"):
                for item in SUGGESTIONS:
                    with ui.card().classes("cursor-pointer hover:shadow-md").on(
                        "click", lambda _, p=item["prompt"]: send(p, None, lambda: None)
                    ):
                        ui.icon(item["icon"]).classes("text-2xl text-blue-600")
                        ui.label(item["title"]).classes("font-semibold text-sm")
                        ui.label(item["prompt"]).classes("text-xs text-neutral-500")

    def render_chat(session: Session) -> None:
        with ui.column().classes("w-full max-w-4xl mx-auto h-screen"):
            ui.label(f"{session.title} - {session.id}").classes(
                "text-xl font-semibold text-neutral-900 p-4 border-b w-full"
            )
            with ui.scroll_area().classes("flex-grow w-full") as scroller:
                with ui.column().classes("w-full gap-6 p-4 pb-32"):
                    messages(session.id)
                    status_line(session.id)

            with ui.row().classes("w-[80%] input-box p-2 items-center fixed bottom-4"):
                with ui.column().classes("flex-grow gap-0"):
                    input_field = (
                        ui.textarea(placeholder="Ask for insights or describe your dataset...")
                        .props("autogrow borderless dense")
                        .classes("w-full")
                    )
                    pending_files()
                file_picker()
                send_btn = ui.button(
                    icon="send",
                    on_click=lambda: send(
                        input_field.value, session.id, lambda: input_field.set_value("")
                    ),
                ).props("round unelevated")
                send_btn.bind_enabled_from(input_field, "value", backward=bool)

        scroll_to_end.append(scroller)

    scroll_to_end: list[ui.scroll_area] = []

    @ui.refreshable
    def view() -> None:
        scroll_to_end.clear()
        session = store.active
        shown["session_id"] = session.id if session else None
        if session is None:
            render_landing()
        else:
            render_chat(session)

    def on_session_change(session: Session) -> None:
        if store.active is None or store.active.id != session.id:
            return
        if shown["session_id"] != session.id:
            view.refresh()
            return
        messages.refresh()
        for scroller in scroll_to_end:
            scroller.scroll_to(percent=1.0)

    def on_status_change(session_id: str, status: str | None) -> None:
        if shown["session_id"] == session_id:
            status_line.refresh()

    store.add_listener(on_session_change)
    streams.add_status_listener(on_status_change)

    register_teardown(ui.context.client, streams, store)

    view()
