"""BLE constants and configuration."""

import importlib.metadata
import logging

logger = logging.getLogger("bleswitch.ble")

# Get bleak version using importlib.metadata (reliable method)
BLEAK_VERSION = importlib.metadata.version("bleak")

# Pubsub topics published by sessions
TOPIC_STATE_CHANGED = "bleswitch.state.changed"
TOPIC_CONNECTION_STATUS = "bleswitch.connection.status"

# Names of the per-session timer slots managed by TimerCoordinator
RETRY_TIMER = "retry"
POLL_TIMER = "poll"

# Single-byte payloads written to the switch characteristic
STATE_ON_PAYLOAD = b"\x01"
STATE_OFF_PAYLOAD = b"\x00"


class BLEConfig:
    """Configuration constants for BLE operations."""

    BLE_SCAN_TIMEOUT = 30.0
    CONNECTION_TIMEOUT = 20.0
    DISCONNECT_TIMEOUT_SECONDS = 5.0
    GATT_IO_TIMEOUT = 10.0
    NOTIFICATION_START_TIMEOUT = 10.0
    # Fixed delay between failed connect attempts
    CONNECT_RETRY_DELAY = 10.0
    # Pause after an unsolicited disconnect before reconnecting
    DISCONNECT_SETTLE_DELAY = 3.0
    MIN_UPDATE_INTERVAL_MS = 1000


# Error message constants
ERROR_TIMEOUT = "{0} timed out after {1:.1f} seconds"
ERROR_CONNECTION_FAILED = "Connection failed: {0}"
ERROR_NO_PERIPHERAL_FOUND = "No BLE peripheral with identifier or address '{0}' found"
ERROR_NOT_READY = "Peripheral '{0}' is not ready (state: {1})"
ERROR_READING_BLE = "Error reading BLE characteristic {0}"
ERROR_WRITING_BLE = (
    "Error writing BLE characteristic {0}. This is often caused by missing "
    "Bluetooth permissions or the peripheral going out of range."
)
ERROR_NO_CHARACTERISTICS = "No characteristics discovered on '{0}'"
ERROR_CHARACTERISTIC_NOT_FOUND = (
    "Characteristic #{0} not found in service {1} on '{2}'; "
    "check the configured serviceId and characteristicId"
)
