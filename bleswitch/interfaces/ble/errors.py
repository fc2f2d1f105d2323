"""Exception taxonomy and error handling utilities for BLE operations."""

import asyncio
from typing import Awaitable, Callable

from bleak.exc import BleakDBusError, BleakError

from bleswitch.interfaces.ble.constants import logger

__all__ = [
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
    "BLEErrorHandler",
]


class BLESwitchError(Exception):
    """Base error for bleswitch."""


class ConfigError(BLESwitchError):
    """Raised when the platform or device configuration is invalid."""

    def __init__(self, problems):
        if isinstance(problems, str):
            problems = [problems]
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class ConnectError(BLESwitchError):
    """Raised when a transport-level connect attempt fails."""


class ResolveError(BLESwitchError):
    """Base error for characteristic resolution failures."""


class NoCharacteristicsFound(ResolveError):
    """Raised when discovery yields no characteristics at all."""


class CharacteristicNotFound(ResolveError):
    """Raised when no discovered characteristic matches the configured one."""


class DiscoveryFailed(ResolveError):
    """Raised when the transport fails during service discovery."""


class UpdateError(BLESwitchError):
    """Raised when subscribing or polling cannot be started."""


class BridgeError(BLESwitchError):
    """Base error surfaced to the accessory layer by get/set operations."""


class NotReadyError(BridgeError):
    """Raised when the session has no bound characteristic."""


class TransportFailureError(BridgeError):
    """Raised when a characteristic read or write fails."""


class DecodeError(BLESwitchError, ValueError):
    """Raised when a characteristic payload cannot be decoded."""


class InvariantViolation(BLESwitchError, AssertionError):
    """Raised when the session state machine reaches an impossible state."""


# Exceptions a BLE transport raises for expected runtime failures
TRANSPORT_ERRORS = (BleakError, BleakDBusError, asyncio.TimeoutError, OSError)


class BLEErrorHandler:
    """
    Best-effort execution helpers for callbacks and teardown.

    Listener callbacks and cleanup steps run through these helpers so that a
    failing listener or a half-closed link never breaks the session's own
    state handling. Expected transport failures are logged at debug level;
    anything else is logged with a traceback.
    """

    @staticmethod
    def safe_execute(func, default_return=None, error_msg: str = "Error in operation"):
        """
        Call ``func()`` and return its result, or ``default_return`` if it raises.

        Parameters:
            func (callable): Zero-argument callable, typically a listener invocation.
            default_return: Value returned when ``func`` raises.
            error_msg (str): Prefix for the log line.
        """
        try:
            return func()
        except TRANSPORT_ERRORS + (DecodeError,) as e:
            logger.debug("%s: %s", error_msg, e)
        except Exception:
            logger.exception("%s", error_msg)
        return default_return

    @staticmethod
    def safe_cleanup(func, cleanup_name: str = "cleanup operation"):
        """Run a synchronous teardown step; failures are logged at debug level."""
        try:
            func()
        except Exception as e:  # noqa: BLE001
            logger.debug("Error during %s: %s", cleanup_name, e)

    @staticmethod
    async def async_safe_cleanup(
        func: Callable[[], Awaitable[object]],
        cleanup_name: str = "cleanup operation",
    ) -> None:
        """Await ``func()`` as a teardown step. Cancellation still propagates."""
        try:
            await func()
        except asyncio.CancelledError:
            raise
        except Exception as e:  # noqa: BLE001
            logger.debug("Error during %s: %s", cleanup_name, e)
