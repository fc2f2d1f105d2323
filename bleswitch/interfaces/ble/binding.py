"""A resolved characteristic bound to one session."""

from typing import Optional

from bleswitch.interfaces.ble.config import DeviceTarget
from bleswitch.interfaces.ble.constants import logger
from bleswitch.interfaces.ble.notifications import NotificationListener, NotificationManager
from bleswitch.interfaces.ble.transport import Characteristic
from bleswitch.interfaces.ble.utils import decode_state, encode_state


class CharacteristicBinding:
    """
    Read, write and subscribe operations on one resolved characteristic.

    A binding belongs to a single connection epoch; the session discards it on
    disconnect and resolves a new one after reconnecting.
    """

    def __init__(
        self,
        characteristic: Characteristic,
        target: DeviceTarget,
        label: Optional[str] = None,
    ):
        self.characteristic = characteristic
        self.target = target
        self._label = label or target.device_id
        self._notifications = NotificationManager()
        self._subscribed = False

    def __repr__(self) -> str:
        return f"CharacteristicBinding(uuid={self.uuid!r}, subscribed={self._subscribed})"

    @property
    def uuid(self) -> str:
        return self.characteristic.uuid

    @property
    def is_subscribed(self) -> bool:
        return self._subscribed

    @property
    def listener_count(self) -> int:
        return len(self._notifications)

    async def read_state(self) -> bool:
        """Read the characteristic and decode its first byte."""
        return decode_state(await self.characteristic.read())

    async def write_state(self, value: bool) -> None:
        """Write ``value`` as a single byte."""
        await self.characteristic.write(encode_state(value))

    async def subscribe(self, listener: NotificationListener) -> None:
        """
        Route notifications to ``listener``, enabling them on the peripheral once.

        Calling this again replaces the listener without re-subscribing.
        """
        self._notifications.subscribe(self.uuid, listener)
        if self._subscribed:
            return
        await self.characteristic.start_notify(self._dispatch)
        self._subscribed = True
        logger.debug("[%s] Subscribed to %s", self._label, self.uuid)

    async def unsubscribe(self) -> None:
        """Drop the listener and disable notifications on the peripheral."""
        self.clear_listeners()
        if not self._subscribed:
            return
        self._subscribed = False
        await self.characteristic.stop_notify()
        logger.debug("[%s] Unsubscribed from %s", self._label, self.uuid)

    def clear_listeners(self) -> None:
        """Forget every listener; later notifications are dropped."""
        self._notifications.cleanup_all()

    def detach(self) -> None:
        """Forget listeners and subscription state without talking to the peripheral."""
        self.clear_listeners()
        self._subscribed = False

    def _dispatch(self, data: bytes) -> None:
        listener = self._notifications.get_callback(self.uuid)
        if listener is None:
            logger.debug("[%s] Dropping notification with no listener", self._label)
            return
        listener(data)
