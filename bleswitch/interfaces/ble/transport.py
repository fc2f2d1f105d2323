"""Transport interfaces.

The session state machine only talks to these narrow capabilities; one
implementation per BLE library lives next to it (see ``client.py`` for bleak).
"""

from __future__ import annotations

from typing import Callable, List, Optional, Protocol

NotifyCallback = Callable[[bytes], None]
DisconnectCallback = Callable[["Peripheral"], None]


class Characteristic(Protocol):
    uuid: str
    # None when the backend does not report the owning service
    service_uuid: Optional[str]

    async def read(self) -> bytes:
        """Read the current characteristic value."""

    async def write(self, data: bytes) -> None:
        """Write ``data`` to the characteristic."""

    async def start_notify(self, callback: NotifyCallback) -> None:
        """Subscribe to value-changed notifications."""

    async def stop_notify(self) -> None:
        """Release a notification subscription."""


class Peripheral(Protocol):
    address: str
    name: Optional[str]

    @property
    def is_connected(self) -> bool:
        """Whether the transport currently reports a live connection."""

    def on_disconnect(self, callback: DisconnectCallback) -> None:
        """Register the callable invoked when the peripheral drops the link."""

    async def connect(self) -> None:
        """Establish the connection."""

    async def disconnect(self) -> None:
        """Tear the connection down."""

    async def discover_characteristics(self) -> List[Characteristic]:
        """Return every characteristic of every service, in discovery order."""


class PeripheralFactory(Protocol):
    async def __call__(self, device_id: str) -> Peripheral:
        """Produce a fresh, unconnected peripheral handle for ``device_id``."""
