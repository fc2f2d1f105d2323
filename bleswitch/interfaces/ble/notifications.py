"""BLE notification listener tracking."""

from typing import Callable, Dict, Optional

from bleswitch.interfaces.ble.constants import logger

NotificationListener = Callable[[bytes], None]


class NotificationManager:
    """
    Track the notification listener registered per characteristic.

    Registration replaces: a characteristic never has more than one listener,
    so re-binding after a reconnect cannot stack duplicate emission paths.
    """

    def __init__(self):
        """
        Initialize a NotificationManager with no listeners.

        Attributes:
            _listeners (Dict[str, NotificationListener]): Maps characteristic UUIDs to their registered listener.
            _subscription_counter (int): Monotonic counter used to generate subscription tokens.
        """
        self._listeners: Dict[str, NotificationListener] = {}
        self._tokens: Dict[str, int] = {}
        self._subscription_counter = 0

    def subscribe(self, characteristic: str, callback: NotificationListener) -> int:
        """
        Register ``callback`` for ``characteristic``, replacing any previous listener.

        Parameters:
            characteristic (str): The characteristic UUID.
            callback (NotificationListener): Invoked with the raw payload of each notification.

        Returns:
            token (int): A unique token identifying this registration.
        """
        if characteristic in self._listeners:
            logger.debug("Replacing notification listener for %s", characteristic)
        token = self._subscription_counter
        self._subscription_counter += 1
        self._listeners[characteristic] = callback
        self._tokens[characteristic] = token
        return token

    def unsubscribe(self, characteristic: str) -> bool:
        """Forget the listener for ``characteristic``; returns True if one was registered."""
        self._tokens.pop(characteristic, None)
        return self._listeners.pop(characteristic, None) is not None

    def cleanup_all(self) -> None:
        """
        Remove all tracked listeners.
        """
        self._listeners.clear()
        self._tokens.clear()

    def __len__(self) -> int:
        return len(self._listeners)

    def get_callback(self, characteristic: str) -> Optional[NotificationListener]:
        """
        Return the listener currently registered for the given characteristic, or None.
        """
        return self._listeners.get(characteristic)

    def get_token(self, characteristic: str) -> Optional[int]:
        return self._tokens.get(characteristic)
