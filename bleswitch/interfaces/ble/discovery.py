"""Process-wide BLE scanning and peripheral discovery."""

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional

from bleak import BleakScanner
from bleak.backends.device import BLEDevice

from bleswitch.interfaces.ble.client import BleakPeripheral
from bleswitch.interfaces.ble.constants import (
    BLEConfig,
    ERROR_NO_PERIPHERAL_FOUND,
    logger,
)
from bleswitch.interfaces.ble.errors import TRANSPORT_ERRORS, ConnectError
from bleswitch.interfaces.ble.utils import sanitize_address

_DEFAULT_COORDINATOR: Optional["ScanCoordinator"] = None


class ScanCoordinator:
    """
    Single owner of the BLE adapter's scanner.

    Only one discovery can run on an adapter at a time, so sessions never start
    or stop scanning themselves. Each user acquires the coordinator while it
    needs advertisements; the scanner starts with the first user and stops
    when the last one releases it.
    """

    def __init__(self, scanner_factory: Callable[..., Any] = BleakScanner):
        """
        Initialize the ScanCoordinator.

        Parameters:
            scanner_factory (optional): Callable or class used to construct the scanner; called with ``detection_callback``. Primarily provided for testing.
        """
        self._scanner_factory = scanner_factory
        self._scanner: Optional[Any] = None
        self._users = 0
        self._lock = asyncio.Lock()
        self._waiters: Dict[str, List[asyncio.Future]] = {}
        self._seen: Dict[str, BLEDevice] = {}

    @property
    def is_scanning(self) -> bool:
        return self._scanner is not None

    @property
    def users(self) -> int:
        return self._users

    async def acquire(self) -> None:
        """Register a scan user, starting the scanner if it is not running."""
        async with self._lock:
            self._users += 1
            if self._scanner is not None:
                return
            scanner = self._scanner_factory(detection_callback=self._on_detection)
            try:
                await scanner.start()
            except TRANSPORT_ERRORS:
                self._users -= 1
                raise
            self._scanner = scanner
            logger.debug("Scanning started")

    async def release(self) -> None:
        """Drop a scan user, stopping the scanner once nobody needs it."""
        async with self._lock:
            self._users = max(0, self._users - 1)
            if self._users or self._scanner is None:
                return
            scanner, self._scanner = self._scanner, None
            self._seen.clear()
            try:
                await scanner.stop()
            except TRANSPORT_ERRORS as e:
                logger.warning("Stopping BLE scan failed: %s", e)
            logger.debug("Scanning stopped")

    def _on_detection(self, device: BLEDevice, advertisement_data: Any = None) -> None:
        keys = {sanitize_address(device.address), sanitize_address(device.name)}
        keys.discard(None)
        for key in keys:
            self._seen[key] = device
            for future in self._waiters.pop(key, []):
                if not future.done():
                    future.set_result(device)

    async def find_device(
        self, device_id: str, timeout: Optional[float] = None
    ) -> Optional[BLEDevice]:
        """
        Wait for an advertisement from the peripheral identified by ``device_id``.

        Parameters:
            device_id (str): Address or advertised name; compared in sanitized form.
            timeout (float | None): Seconds to wait; defaults to ``BLEConfig.BLE_SCAN_TIMEOUT``.

        Returns:
            The matching ``BLEDevice``, or None if nothing matched before the timeout.
        """
        key = sanitize_address(device_id)
        if key is None:
            return None
        if timeout is None:
            timeout = BLEConfig.BLE_SCAN_TIMEOUT

        await self.acquire()
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._waiters.setdefault(key, []).append(future)
        try:
            seen = self._seen.get(key)
            if seen is not None and not future.done():
                future.set_result(seen)
            scan_start = time.monotonic()
            device = await asyncio.wait_for(future, timeout=timeout)
            logger.debug(
                "Found %s after %.2f seconds", device_id, time.monotonic() - scan_start
            )
            return device
        except asyncio.TimeoutError:
            logger.debug("No advertisement from %s within %.1fs", device_id, timeout)
            return None
        finally:
            waiters = self._waiters.get(key)
            if waiters and future in waiters:
                waiters.remove(future)
                if not waiters:
                    del self._waiters[key]
            await self.release()

    async def discover(self, timeout: Optional[float] = None) -> List[BLEDevice]:
        """Scan for ``timeout`` seconds and return every distinct device seen."""
        if timeout is None:
            timeout = BLEConfig.BLE_SCAN_TIMEOUT
        logger.debug("Scanning for BLE devices (takes %.0f seconds)...", timeout)
        await self.acquire()
        try:
            await asyncio.sleep(timeout)
            unique = {device.address: device for device in self._seen.values()}
            return list(unique.values())
        finally:
            await self.release()


def get_scan_coordinator() -> ScanCoordinator:
    """Return the process-wide scan coordinator, creating it on first use."""
    global _DEFAULT_COORDINATOR
    if _DEFAULT_COORDINATOR is None:
        _DEFAULT_COORDINATOR = ScanCoordinator()
    return _DEFAULT_COORDINATOR


class BleakPeripheralFactory:
    """Produce a fresh ``BleakPeripheral`` for each connect attempt."""

    def __init__(
        self,
        scan_coordinator: Optional[ScanCoordinator] = None,
        scan_timeout: Optional[float] = None,
    ):
        self._scan_coordinator = scan_coordinator
        self._scan_timeout = scan_timeout

    async def __call__(self, device_id: str) -> BleakPeripheral:
        coordinator = self._scan_coordinator or get_scan_coordinator()
        device = await coordinator.find_device(device_id, self._scan_timeout)
        if device is None:
            raise ConnectError(ERROR_NO_PERIPHERAL_FOUND.format(device_id))
        return BleakPeripheral(device)
