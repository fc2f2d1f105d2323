"""
Shared pytest fixtures and an in-memory BLE transport for session tests.
"""

import asyncio
from typing import Callable, List, Optional

import pytest
from pubsub import pub

from bleswitch.interfaces.ble.config import DeviceTarget
from bleswitch.interfaces.ble.constants import BLEConfig

DEVICE_ID = "AA:BB:CC:DD:EE:FF"
SERVICE_UUID = "0000ffe0-0000-1000-8000-00805f9b34fb"
CHAR_UUID = "0000ffe1-0000-1000-8000-00805f9b34fb"
OTHER_UUID = "00002a19-0000-1000-8000-00805f9b34fb"


class FakeCharacteristic:
    """Characteristic that stores the last written value and can push notifications."""

    def __init__(
        self,
        uuid: str = CHAR_UUID,
        value: bytes = b"\x00",
        echo: bool = True,
        service_uuid: Optional[str] = SERVICE_UUID,
    ):
        self.uuid = uuid
        self.service_uuid = service_uuid
        self.value = bytes(value)
        self.echo = echo
        self.reads = 0
        self.writes: List[bytes] = []
        self.start_notify_calls = 0
        self.stop_notify_calls = 0
        self.notify_callback: Optional[Callable[[bytes], None]] = None
        self.read_error: Optional[BaseException] = None
        self.write_error: Optional[BaseException] = None
        self.notify_error: Optional[BaseException] = None

    async def read(self) -> bytes:
        self.reads += 1
        if self.read_error is not None:
            raise self.read_error
        return self.value

    async def write(self, data: bytes) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.writes.append(bytes(data))
        if self.echo:
            self.value = bytes(data)

    async def start_notify(self, callback) -> None:
        self.start_notify_calls += 1
        if self.notify_error is not None:
            raise self.notify_error
        self.notify_callback = callback

    async def stop_notify(self) -> None:
        self.stop_notify_calls += 1
        self.notify_callback = None

    def notify(self, data: bytes) -> None:
        """Deliver a notification the way a transport callback would."""
        if self.notify_callback is not None:
            self.notify_callback(bytes(data))


class FakePeripheral:
    """Peripheral handle with scriptable connect, discovery and link drops."""

    def __init__(
        self,
        address: str = DEVICE_ID,
        characteristics: Optional[List[FakeCharacteristic]] = None,
        connect_error: Optional[BaseException] = None,
        name: Optional[str] = "switch",
    ):
        self.address = address
        self.name = name
        self.characteristics = (
            [FakeCharacteristic()] if characteristics is None else list(characteristics)
        )
        self.connect_error = connect_error
        self.discover_error: Optional[BaseException] = None
        self.connect_gate: Optional[asyncio.Event] = None
        self.discover_gate: Optional[asyncio.Event] = None
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.discover_calls = 0
        self._connected = False
        self._callbacks: List[Callable] = []

    @property
    def is_connected(self) -> bool:
        return self._connected

    def on_disconnect(self, callback) -> None:
        self._callbacks.append(callback)

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.connect_gate is not None:
            await self.connect_gate.wait()
        if self.connect_error is not None:
            raise self.connect_error
        self._connected = True

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        was_connected = self._connected
        self._connected = False
        if was_connected:
            self._fire_disconnect()

    async def discover_characteristics(self) -> List[FakeCharacteristic]:
        self.discover_calls += 1
        if self.discover_gate is not None:
            await self.discover_gate.wait()
        if self.discover_error is not None:
            raise self.discover_error
        return list(self.characteristics)

    def drop(self) -> None:
        """Simulate the peripheral going out of range."""
        self._connected = False
        self._fire_disconnect()

    def _fire_disconnect(self) -> None:
        for callback in list(self._callbacks):
            callback(self)


class FakePeripheralFactory:
    """Hands out a new FakePeripheral per connect attempt and records them."""

    def __init__(self, make: Optional[Callable[[], FakePeripheral]] = None):
        self._make = make or FakePeripheral
        self.peripherals: List[FakePeripheral] = []
        self.device_ids: List[str] = []

    async def __call__(self, device_id: str) -> FakePeripheral:
        self.device_ids.append(device_id)
        peripheral = self._make()
        self.peripherals.append(peripheral)
        return peripheral

    @property
    def last(self) -> FakePeripheral:
        return self.peripherals[-1]

    @property
    def connect_calls(self) -> int:
        return sum(peripheral.connect_calls for peripheral in self.peripherals)


async def settle(rounds: int = 5) -> None:
    """Let pending callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def target():
    return DeviceTarget(DEVICE_ID, SERVICE_UUID, CHAR_UUID)


@pytest.fixture
def factory():
    return FakePeripheralFactory()


@pytest.fixture
def fast_delays(monkeypatch):
    """Shrink the retry and settle delays so reconnect scenarios finish quickly."""
    monkeypatch.setattr(BLEConfig, "CONNECT_RETRY_DELAY", 0.05)
    monkeypatch.setattr(BLEConfig, "DISCONNECT_SETTLE_DELAY", 0.02)


@pytest.fixture(autouse=True)
def clean_pubsub():
    """Drop pubsub listeners registered by a test."""
    yield
    pub.unsubAll()
