"""Tests for BLEStateManager state machine functionality."""

from unittest.mock import Mock

import pytest

from bleswitch.interfaces.ble.state import BLEStateManager, ConnectionState

VALID = {
    ConnectionState.DISCONNECTED: {ConnectionState.CONNECTING},
    ConnectionState.CONNECTING: {ConnectionState.CONNECTED, ConnectionState.DISCONNECTED},
    ConnectionState.CONNECTED: {ConnectionState.RESOLVING, ConnectionState.DISCONNECTED},
    ConnectionState.RESOLVING: {
        ConnectionState.READY,
        ConnectionState.CONNECTED,
        ConnectionState.DISCONNECTED,
    },
    ConnectionState.READY: {ConnectionState.CONNECTED, ConnectionState.DISCONNECTED},
}


class TestBLEStateManager:
    """Test cases for BLEStateManager class."""

    def test_initial_state(self):
        """Test that state manager starts in DISCONNECTED state."""
        manager = BLEStateManager()
        assert manager.state == ConnectionState.DISCONNECTED
        assert not manager.is_connected
        assert not manager.is_connecting
        assert not manager.is_ready
        assert manager.can_connect

    def test_state_properties(self):
        """Test state-based property methods."""
        manager = BLEStateManager()

        manager._state = ConnectionState.CONNECTING
        assert manager.is_connecting
        assert not manager.is_connected
        assert not manager.can_connect

        for state in (ConnectionState.CONNECTED, ConnectionState.RESOLVING):
            manager._state = state
            assert manager.is_connected
            assert not manager.is_ready

        manager._state = ConnectionState.READY
        assert manager.is_connected
        assert manager.is_ready

    def test_full_lifecycle(self):
        """Test the connect, resolve, ready, drop sequence."""
        manager = BLEStateManager()
        for state in (
            ConnectionState.CONNECTING,
            ConnectionState.CONNECTED,
            ConnectionState.RESOLVING,
            ConnectionState.READY,
            ConnectionState.DISCONNECTED,
        ):
            assert manager.transition_to(state)
            assert manager.state == state

    @pytest.mark.parametrize("source", list(ConnectionState))
    @pytest.mark.parametrize("destination", list(ConnectionState))
    def test_transition_table(self, source, destination):
        """Test that exactly the documented transitions are accepted."""
        manager = BLEStateManager()
        manager._state = source
        accepted = manager.transition_to(destination)
        assert accepted == (destination in VALID[source])
        assert manager.state == (destination if accepted else source)

    def test_ready_requires_resolving_first(self):
        """Test that READY cannot be reached straight from CONNECTED."""
        manager = BLEStateManager()
        manager.transition_to(ConnectionState.CONNECTING)
        manager.transition_to(ConnectionState.CONNECTED)
        assert not manager.transition_to(ConnectionState.READY)
        assert manager.state == ConnectionState.CONNECTED

    def test_invalid_transition_logs_warning(self, caplog):
        """Test that refused transitions are logged."""
        manager = BLEStateManager("lamp")
        with caplog.at_level("WARNING", logger="bleswitch.ble"):
            assert not manager.transition_to(ConnectionState.READY)
        assert "[lamp] Invalid state transition" in caplog.text

    def test_listeners_see_applied_transitions_only(self):
        """Test that listeners receive (old, new) for accepted transitions."""
        manager = BLEStateManager()
        listener = Mock()
        manager.add_listener(listener)

        manager.transition_to(ConnectionState.CONNECTING)
        manager.transition_to(ConnectionState.READY)  # refused

        listener.assert_called_once_with(
            ConnectionState.DISCONNECTED, ConnectionState.CONNECTING
        )
