"""The public API for the bleswitch BLE session."""

from .interfaces.ble.binding import CharacteristicBinding
from .interfaces.ble.config import DeviceTarget, UpdateMode, update_mode_for
from .interfaces.ble.constants import (
    TOPIC_CONNECTION_STATUS,
    TOPIC_STATE_CHANGED,
    BLEConfig,
)
from .interfaces.ble.discovery import BleakPeripheralFactory, ScanCoordinator
from .interfaces.ble.errors import (
    BLEErrorHandler,
    BLESwitchError,
    BridgeError,
    ConnectError,
    NotReadyError,
    ResolveError,
    TransportFailureError,
    UpdateError,
)
from .interfaces.ble.policies import ReconnectPolicy, RetryPolicy
from .interfaces.ble.session import PeripheralSession
from .interfaces.ble.state import BLEStateManager, ConnectionState

__all__ = [
    "PeripheralSession",
    "BLEStateManager",
    "ConnectionState",
    "BLEConfig",
    "BLEErrorHandler",
    "ReconnectPolicy",
    "RetryPolicy",
    "CharacteristicBinding",
    "DeviceTarget",
    "UpdateMode",
    "update_mode_for",
    "BleakPeripheralFactory",
    "ScanCoordinator",
    "BLESwitchError",
    "BridgeError",
    "ConnectError",
    "NotReadyError",
    "ResolveError",
    "TransportFailureError",
    "UpdateError",
    "TOPIC_CONNECTION_STATUS",
    "TOPIC_STATE_CHANGED",
]
