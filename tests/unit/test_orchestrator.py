"""Unit tests for submission validation and orchestration."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from datachat.chat.orchestrator import (
    SEND_FAILED_MESSAGE,
    SubmissionFailed,
    SubmissionOrchestrator,
    SubmissionRejected,
)
from datachat.client.backend import BackendRejected, BackendUnavailable
from datachat.models.schemas import Attachment, MessageRole, SubmissionResponse
from datachat.session.store import SessionStore


def attachment(name: str) -> Attachment:
    return Attachment(name=name, content=b"a,b\n1,2\n", content_type="text/csv")


@pytest.fixture
def backend() -> AsyncMock:
    mock = AsyncMock()
    mock.submit.return_value = SubmissionResponse(session_id="s1")
    return mock


@pytest.fixture
def streams() -> MagicMock:
    return MagicMock()


@pytest.fixture
def orchestrator(store: SessionStore, backend: AsyncMock, streams: MagicMock) -> SubmissionOrchestrator:
    return SubmissionOrchestrator(store, backend, streams, max_files=3)


class TestNewSession:
    """Tests for submissions that start a new session."""

    async def test_first_submission_creates_session_and_connects(
        self,
        orchestrator: SubmissionOrchestrator,
        store: SessionStore,
        backend: AsyncMock,
        streams: MagicMock,
    ) -> None:
        """trend? + data.csv creates s1 with one user message and connects."""
        files = [attachment("data.csv")]

        session_id = await orchestrator.submit("trend?", files)

        assert session_id == "s1"
        backend.submit.assert_awaited_once_with("trend?", files, session_id=None)
        session = store.get("s1")
        assert store.active == session
        assert session.title == "Data Analyst"
        assert len(session.messages) == 1
        assert session.messages[0].role is MessageRole.USER
        assert session.messages[0].content == "trend?"
        assert session.messages[0].file_names == ("data.csv",)
        streams.subscribe.assert_called_once_with("s1")

    async def test_failure_without_session_mutates_nothing(
        self,
        orchestrator: SubmissionOrchestrator,
        store: SessionStore,
        backend: AsyncMock,
        streams: MagicMock,
    ) -> None:
        """A failed first submission creates no session and opens no stream."""
        backend.submit.side_effect = BackendUnavailable("refused")

        with pytest.raises(SubmissionFailed) as exc_info:
            await orchestrator.submit("trend?")

        assert exc_info.value.session_id is None
        assert exc_info.value.message == SEND_FAILED_MESSAGE
        assert len(store) == 0
        streams.subscribe.assert_not_called()


class TestFollowUp:
    """Tests for submissions into an existing session."""

    async def test_follow_up_appends_and_reconnects(
        self,
        orchestrator: SubmissionOrchestrator,
        store: SessionStore,
        backend: AsyncMock,
        streams: MagicMock,
    ) -> None:
        """A follow-up appends the user message and subscribes again."""
        await orchestrator.submit("trend?")
        streams.reset_mock()

        session_id = await orchestrator.submit("and by region?", session_id="s1")

        assert session_id == "s1"
        backend.submit.assert_awaited_with("and by region?", (), session_id="s1")
        assert [m.content for m in store.get("s1").messages] == ["trend?", "and by region?"]
        streams.subscribe.assert_called_once_with("s1")

    async def test_transport_failure_appends_fixed_diagnostic(
        self,
        orchestrator: SubmissionOrchestrator,
        store: SessionStore,
        backend: AsyncMock,
        streams: MagicMock,
    ) -> None:
        """A transport failure appends the generic send error only."""
        store.create("s1")
        backend.submit.side_effect = BackendUnavailable("timed out")

        with pytest.raises(SubmissionFailed) as exc_info:
            await orchestrator.submit("again?", session_id="s1")

        assert exc_info.value.session_id == "s1"
        messages = store.get("s1").messages
        assert len(messages) == 1
        assert messages[0].role is MessageRole.ASSISTANT
        assert messages[0].content == SEND_FAILED_MESSAGE
        streams.subscribe.assert_not_called()

    async def test_backend_error_fields_are_surfaced(
        self,
        orchestrator: SubmissionOrchestrator,
        store: SessionStore,
        backend: AsyncMock,
    ) -> None:
        """Backend detail and error text appear in the diagnostic."""
        store.create("s1")
        backend.submit.side_effect = BackendRejected(500, "Backend server error", "boom")

        with pytest.raises(SubmissionFailed):
            await orchestrator.submit("again?", session_id="s1")

        assert store.get("s1").messages[-1].content == "Error: Backend server error\n\nboom"


class TestValidation:
    """Tests for validation before any request is sent."""

    @pytest.mark.parametrize("prompt", ["", "   ", "\n"])
    async def test_blank_prompt_is_rejected_before_request(
        self,
        orchestrator: SubmissionOrchestrator,
        store: SessionStore,
        backend: AsyncMock,
        streams: MagicMock,
        prompt: str,
    ) -> None:
        """A blank prompt is rejected without calling the backend."""
        with pytest.raises(SubmissionRejected):
            await orchestrator.submit(prompt, [attachment("data.csv")])

        backend.submit.assert_not_awaited()
        streams.subscribe.assert_not_called()
        assert len(store) == 0

    async def test_too_many_files_rejected(
        self, orchestrator: SubmissionOrchestrator, backend: AsyncMock
    ) -> None:
        """More files than the cap are rejected without calling the backend."""
        files = [attachment(f"f{i}.csv") for i in range(4)]

        with pytest.raises(SubmissionRejected) as exc_info:
            await orchestrator.submit("trend?", files)

        assert "maximum of 3 files" in str(exc_info.value)
        backend.submit.assert_not_awaited()

    def test_max_files_accepted(self, orchestrator: SubmissionOrchestrator) -> None:
        """Exactly the cap of files passes validation."""
        orchestrator.validate("trend?", [attachment(f"f{i}.csv") for i in range(3)])


class TestAcceptFiles:
    """Tests for the file picker cap."""

    def test_files_within_cap_are_all_added(self, orchestrator: SubmissionOrchestrator) -> None:
        """Files within the cap are added without a notice."""
        selection = orchestrator.accept_files([], [attachment("a.csv"), attachment("b.csv")])

        assert [f.name for f in selection.files] == ["a.csv", "b.csv"]
        assert selection.accepted == 2
        assert selection.notice is None

    def test_excess_files_are_truncated_with_notice(
        self, orchestrator: SubmissionOrchestrator
    ) -> None:
        """Files beyond the cap are dropped with a notice."""
        current = [attachment("a.csv")]
        incoming = [attachment("b.csv"), attachment("c.csv"), attachment("d.csv")]

        selection = orchestrator.accept_files(current, incoming)

        assert [f.name for f in selection.files] == ["a.csv", "b.csv", "c.csv"]
        assert selection.accepted == 2
        assert selection.notice == "You can only add 2 more file(s). 2 file(s) were added."

    def test_full_list_rejects_everything(self, orchestrator: SubmissionOrchestrator) -> None:
        """A full list accepts no more files."""
        current = [attachment(f"{n}.csv") for n in "abc"]

        selection = orchestrator.accept_files(current, [attachment("d.csv")])

        assert len(selection.files) == 3
        assert selection.accepted == 0
        assert selection.notice == "You can only upload a maximum of 3 files."
