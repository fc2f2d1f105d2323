"""BLE connection state management."""

from enum import Enum
from typing import Callable, List

from bleswitch.interfaces.ble.constants import logger


class ConnectionState(Enum):
    """Enum for managing BLE connection states."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RESOLVING = "resolving"
    READY = "ready"


# READY is reachable only through CONNECTED → RESOLVING.
_ALLOWED = {
    ConnectionState.DISCONNECTED: frozenset({ConnectionState.CONNECTING}),
    ConnectionState.CONNECTING: frozenset(
        {ConnectionState.CONNECTED, ConnectionState.DISCONNECTED}
    ),
    ConnectionState.CONNECTED: frozenset(
        {ConnectionState.RESOLVING, ConnectionState.DISCONNECTED}
    ),
    ConnectionState.RESOLVING: frozenset(
        {ConnectionState.READY, ConnectionState.CONNECTED, ConnectionState.DISCONNECTED}
    ),
    ConnectionState.READY: frozenset(
        {ConnectionState.CONNECTED, ConnectionState.DISCONNECTED}
    ),
}

StateListener = Callable[[ConnectionState, ConnectionState], None]


class BLEStateManager:
    """Validated lifecycle state of one peripheral session.

    Transitions run on the event loop; callers re-check ``state`` after every
    ``await`` before mutating session fields.
    """

    def __init__(self, label: str = "ble"):
        """Initialize state manager with disconnected state."""
        self._label = label
        self._state = ConnectionState.DISCONNECTED
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> ConnectionState:
        """Get current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if a transport connection is established (any post-connect state)."""
        return self._state in (
            ConnectionState.CONNECTED,
            ConnectionState.RESOLVING,
            ConnectionState.READY,
        )

    @property
    def is_connecting(self) -> bool:
        """Check if a connect attempt is in flight."""
        return self._state == ConnectionState.CONNECTING

    @property
    def is_ready(self) -> bool:
        """Check if a characteristic is bound and updates are flowing."""
        return self._state == ConnectionState.READY

    @property
    def can_connect(self) -> bool:
        """Check if a new connection can be initiated."""
        return self._state == ConnectionState.DISCONNECTED

    def add_listener(self, listener: StateListener) -> None:
        """Register a callable invoked with (old_state, new_state) after each transition."""
        self._listeners.append(listener)

    def transition_to(self, new_state: ConnectionState) -> bool:
        """
        Move to ``new_state`` if the edge is allowed and notify listeners.

        Returns:
            bool: False (and a warning) for an edge outside the session lifecycle.
        """
        old_state = self._state
        if new_state not in _ALLOWED[old_state]:
            logger.warning(
                "[%s] Invalid state transition: %s → %s",
                self._label,
                old_state.value,
                new_state.value,
            )
            return False

        self._state = new_state
        logger.debug(
            "[%s] %s → %s", self._label, old_state.value, new_state.value
        )
        for listener in list(self._listeners):
            listener(old_state, new_state)
        return True
