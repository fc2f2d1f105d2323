"""BLE session package for bleswitch."""

from bleswitch.interfaces.ble.binding import CharacteristicBinding
from bleswitch.interfaces.ble.client import BleakCharacteristic, BleakPeripheral
from bleswitch.interfaces.ble.config import (
    AccessoryConfig,
    DeviceTarget,
    PlatformConfig,
    UpdateMode,
    load_platform_config,
    update_mode_for,
)
from bleswitch.interfaces.ble.connection import ConnectionSupervisor
from bleswitch.interfaces.ble.constants import (
    BLEAK_VERSION,
    BLEConfig,
    POLL_TIMER,
    RETRY_TIMER,
    TOPIC_CONNECTION_STATUS,
    TOPIC_STATE_CHANGED,
    logger,
)
from bleswitch.interfaces.ble.coordination import TimerCoordinator
from bleswitch.interfaces.ble.discovery import (
    BleakPeripheralFactory,
    ScanCoordinator,
    get_scan_coordinator,
)
from bleswitch.interfaces.ble.errors import *
from bleswitch.interfaces.ble.events import (
    PeripheralDisconnected,
    ReconnectDue,
    SessionEvent,
    StateChanged,
)
from bleswitch.interfaces.ble.notifications import NotificationManager
from bleswitch.interfaces.ble.policies import ReconnectPolicy, RetryPolicy
from bleswitch.interfaces.ble.reconnection import ReconnectScheduler
from bleswitch.interfaces.ble.resolver import CharacteristicResolver
from bleswitch.interfaces.ble.session import PeripheralSession
from bleswitch.interfaces.ble.state import BLEStateManager, ConnectionState
from bleswitch.interfaces.ble.transport import (
    Characteristic,
    Peripheral,
    PeripheralFactory,
)
from bleswitch.interfaces.ble.updates import UpdateSource
from bleswitch.interfaces.ble.utils import (
    canonical_uuid,
    decode_state,
    encode_state,
    normalize_uuid,
    sanitize_address,
)

__all__ = [
    # Core classes
    "BLEConfig",
    "ConnectionState",
    "BLEStateManager",
    "TimerCoordinator",
    "BLEErrorHandler",
    "ReconnectPolicy",
    "RetryPolicy",
    "ReconnectScheduler",
    "ConnectionSupervisor",
    "CharacteristicResolver",
    "CharacteristicBinding",
    "NotificationManager",
    "UpdateSource",
    "PeripheralSession",
    "ScanCoordinator",
    "BleakPeripheralFactory",
    "BleakPeripheral",
    "BleakCharacteristic",
    "get_scan_coordinator",
    # Transport capabilities
    "Characteristic",
    "Peripheral",
    "PeripheralFactory",
    # Configuration
    "AccessoryConfig",
    "DeviceTarget",
    "PlatformConfig",
    "UpdateMode",
    "load_platform_config",
    "update_mode_for",
    # Events
    "PeripheralDisconnected",
    "ReconnectDue",
    "SessionEvent",
    "StateChanged",
    # Errors
    "BLESwitchError",
    "ConfigError",
    "ConnectError",
    "ResolveError",
    "NoCharacteristicsFound",
    "CharacteristicNotFound",
    "DiscoveryFailed",
    "UpdateError",
    "BridgeError",
    "NotReadyError",
    "TransportFailureError",
    "DecodeError",
    "InvariantViolation",
    "TRANSPORT_ERRORS",
    # Constants/helpers
    "BLEAK_VERSION",
    "POLL_TIMER",
    "RETRY_TIMER",
    "TOPIC_CONNECTION_STATUS",
    "TOPIC_STATE_CHANGED",
    "canonical_uuid",
    "decode_state",
    "encode_state",
    "normalize_uuid",
    "sanitize_address",
    "logger",
]
