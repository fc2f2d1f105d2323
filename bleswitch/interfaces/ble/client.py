"""Bleak implementation of the Peripheral and Characteristic capabilities."""

import asyncio
from typing import Any, List, Optional, Union

from bleak import BleakClient as BleakRootClient
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice

from bleswitch.interfaces.ble.constants import BLEConfig, ERROR_TIMEOUT, logger
from bleswitch.interfaces.ble.errors import BLEErrorHandler
from bleswitch.interfaces.ble.transport import DisconnectCallback, NotifyCallback


async def _with_timeout(awaitable, timeout: Optional[float], label: str):
    """
    Await an awaitable, applying an optional timeout.

    Parameters:
        awaitable: An awaitable to execute.
        timeout (Optional[float]): Maximum seconds to wait; if None, wait indefinitely.
        label (str): Short description used in the timeout error message.

    Returns:
        The result returned by the awaitable.

    Raises:
        asyncio.TimeoutError: If the awaitable does not complete before the timeout elapses.
    """
    if timeout is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise asyncio.TimeoutError(ERROR_TIMEOUT.format(label, timeout)) from exc


class BleakCharacteristic:
    """One GATT characteristic reached through a connected BleakClient."""

    def __init__(self, client: BleakRootClient, characteristic: BleakGATTCharacteristic):
        self._client = client
        self._characteristic = characteristic
        self.uuid: str = characteristic.uuid
        self.service_uuid: Optional[str] = getattr(characteristic, "service_uuid", None)

    def __repr__(self) -> str:
        return f"BleakCharacteristic(uuid={self.uuid!r})"

    async def read(self) -> bytes:
        data = await _with_timeout(
            self._client.read_gatt_char(self._characteristic),
            BLEConfig.GATT_IO_TIMEOUT,
            f"read {self.uuid}",
        )
        return bytes(data)

    async def write(self, data: bytes) -> None:
        # Prefer acknowledged writes when the characteristic supports them
        response = "write" in self._characteristic.properties
        await _with_timeout(
            self._client.write_gatt_char(self._characteristic, data, response=response),
            BLEConfig.GATT_IO_TIMEOUT,
            f"write {self.uuid}",
        )

    async def start_notify(self, callback: NotifyCallback) -> None:
        def _handler(_sender: Any, data: bytearray) -> None:
            callback(bytes(data))

        await _with_timeout(
            self._client.start_notify(self._characteristic, _handler),
            BLEConfig.NOTIFICATION_START_TIMEOUT,
            f"subscribe {self.uuid}",
        )

    async def stop_notify(self) -> None:
        await _with_timeout(
            self._client.stop_notify(self._characteristic),
            BLEConfig.GATT_IO_TIMEOUT,
            f"unsubscribe {self.uuid}",
        )


class BleakPeripheral:
    """
    Peripheral handle backed by a single ``BleakClient``.

    A handle is used for exactly one connection epoch: the session asks its
    factory for a fresh handle on every connect attempt.
    """

    def __init__(self, device: Union[BLEDevice, str], **client_kwargs) -> None:
        """
        Create the underlying Bleak client for ``device``.

        Parameters:
            device (BLEDevice | str): Scanned device or address to connect to.
            **client_kwargs: Forwarded to the ``BleakClient`` constructor.
        """
        self.address: str = device if isinstance(device, str) else device.address
        self.name: Optional[str] = None if isinstance(device, str) else device.name
        self._disconnect_callbacks: List[DisconnectCallback] = []
        client_kwargs.setdefault("timeout", BLEConfig.CONNECTION_TIMEOUT)
        self.bleak_client = BleakRootClient(
            device,
            disconnected_callback=self._on_bleak_disconnect,
            **client_kwargs,
        )

    def __repr__(self) -> str:
        return f"BleakPeripheral(address={self.address!r}, name={self.name!r})"

    @property
    def is_connected(self) -> bool:
        """
        Determine whether the underlying Bleak client is currently connected.

        Returns:
            `True` if the underlying Bleak client reports it is connected; `False` otherwise (also when the state cannot be read).
        """
        return bool(
            BLEErrorHandler.safe_execute(
                lambda: self.bleak_client.is_connected,
                default_return=False,
                error_msg="Unable to read bleak connection state",
            )
        )

    def on_disconnect(self, callback: DisconnectCallback) -> None:
        self._disconnect_callbacks.append(callback)

    def _on_bleak_disconnect(self, _client: BleakRootClient) -> None:
        logger.debug("Bleak reported disconnect from %s", self.address)
        for callback in list(self._disconnect_callbacks):
            BLEErrorHandler.safe_execute(
                lambda cb=callback: cb(self),
                error_msg="Error in disconnect callback",
            )

    async def connect(self) -> None:
        # BleakClient applies its own connect timeout; guard the await as well
        await _with_timeout(
            self.bleak_client.connect(),
            BLEConfig.CONNECTION_TIMEOUT + 1.0,
            f"connect {self.address}",
        )

    async def disconnect(self) -> None:
        await _with_timeout(
            self.bleak_client.disconnect(),
            BLEConfig.DISCONNECT_TIMEOUT_SECONDS,
            f"disconnect {self.address}",
        )

    async def discover_characteristics(self) -> List[BleakCharacteristic]:
        """
        List every characteristic of every GATT service, in discovery order.

        Bleak resolves services during ``connect()``; the collection is read
        from the client rather than re-requested.
        """
        characteristics: List[BleakCharacteristic] = []
        for service in self.bleak_client.services:
            for characteristic in service.characteristics:
                characteristics.append(BleakCharacteristic(self.bleak_client, characteristic))
        return characteristics
