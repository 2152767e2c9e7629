"""Unit tests for chat page lifecycle wiring."""

from unittest.mock import AsyncMock, MagicMock

from datachat.session.store import SessionStore
from datachat.ui.chat_page import register_teardown


class TestRegisterTeardown:
    """Tests for releasing a tab's state when its client goes away."""

    def test_registers_on_delete_not_on_disconnect(self, store: SessionStore) -> None:
        """Test a websocket drop that may reconnect does not tear the tab down."""
        client = MagicMock()

        register_teardown(client, AsyncMock(), store)

        client.on_delete.assert_called_once()
        client.on_disconnect.assert_not_called()

    async def test_teardown_shuts_down_streams_and_clears_store(
        self, store: SessionStore
    ) -> None:
        """Test the registered handler closes streams and drops sessions."""
        client = MagicMock()
        streams = AsyncMock()
        store.create("s1")

        register_teardown(client, streams, store)
        teardown = client.on_delete.call_args.args[0]
        await teardown()

        streams.shutdown.assert_awaited_once()
        assert len(store) == 0
