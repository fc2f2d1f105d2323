"""Switch accessories backed by BLE sessions."""

import asyncio
import logging
import uuid
from typing import Callable, Dict, List, Optional

from bleswitch.interfaces.ble import (
    AccessoryConfig,
    BridgeError,
    PeripheralFactory,
    PeripheralSession,
    PlatformConfig,
)

logger = logging.getLogger(__name__)

# Namespace for stable accessory identifiers derived from the service id
ACCESSORY_NAMESPACE = uuid.UUID("6f1d3c1e-8a3b-4f4c-9a59-0c6d2b7e5a10")

ValueListener = Callable[["SwitchAccessory", bool], None]


def accessory_uuid_for(config: AccessoryConfig) -> str:
    """Stable accessory id; one accessory per service id."""
    return str(uuid.uuid5(ACCESSORY_NAMESPACE, config.target.service_id))


class AccessoryNotResponding(Exception):
    """The host should show the accessory as "not responding"."""

    def __init__(self, name: str, cause: BridgeError):
        self.name = name
        self.cause = cause
        super().__init__(f"{name} is not responding: {cause}")


class SwitchAccessory:
    """An on/off switch bound to one peripheral session."""

    manufacturer = "Default-Manufacturer"
    model = "Default-Model"
    serial_number = "Default-Serial"

    def __init__(
        self,
        config: AccessoryConfig,
        peripheral_factory: Optional[PeripheralFactory] = None,
        on_value: Optional[ValueListener] = None,
    ):
        self.config = config
        self.name = config.name
        self.uuid = accessory_uuid_for(config)
        self.last_value: Optional[bool] = None
        self._on_value = on_value
        self.session = PeripheralSession(
            config.target,
            update_mode=config.update_mode,
            peripheral_factory=peripheral_factory,
            on_state_changed=self._update_value,
            name=config.name,
        )
        logger.debug("[%s] Initializing switch ...", self.name)

    def __repr__(self) -> str:
        return f"SwitchAccessory(name={self.name!r}, on={self.last_value!r})"

    def start(self):
        return self.session.start()

    async def shutdown(self) -> None:
        await self.session.shutdown()

    async def set_on(self, value: bool) -> None:
        """Handle a host request to switch the device on or off."""
        logger.info("[%s] Set %s", self.name, "ON" if value else "OFF")
        try:
            await self.session.set_state(value)
        except BridgeError as exc:
            logger.warning("[%s] Could not write to BLE device: %s", self.name, exc)
            raise AccessoryNotResponding(self.name, exc) from exc
        self.last_value = value

    async def turn_on(self) -> None:
        await self.set_on(True)

    async def turn_off(self) -> None:
        await self.set_on(False)

    async def is_on(self) -> bool:
        """
        Handle a host read request.

        Returns quickly: a session that is not ready fails immediately
        instead of waiting for a reconnect.
        """
        try:
            value = await self.session.get_state()
        except BridgeError as exc:
            logger.warning("[%s] Could not read from BLE device: %s", self.name, exc)
            raise AccessoryNotResponding(self.name, exc) from exc
        self.last_value = value
        logger.debug("[%s] Device read requested. Status: %s", self.name, "ON" if value else "OFF")
        return value

    def _update_value(self, value: bool) -> None:
        self.last_value = value
        logger.info("[%s] (by:BLE) -> %s", self.name, "ON" if value else "OFF")
        if self._on_value is not None:
            self._on_value(self, value)


class SwitchPlatform:
    """Create, start and stop one accessory per configured device."""

    def __init__(
        self,
        config: PlatformConfig,
        peripheral_factory: Optional[PeripheralFactory] = None,
        on_value: Optional[ValueListener] = None,
    ):
        self.config = config
        self.accessories: List[SwitchAccessory] = []
        by_uuid: Dict[str, SwitchAccessory] = {}
        for accessory_config in config.accessories:
            accessory_uuid = accessory_uuid_for(accessory_config)
            existing = by_uuid.get(accessory_uuid)
            if existing is not None:
                logger.warning(
                    "Skipping accessory %s: service %s is already used by %s",
                    accessory_config.name,
                    accessory_config.service_id,
                    existing.name,
                )
                continue
            accessory = SwitchAccessory(accessory_config, peripheral_factory, on_value)
            by_uuid[accessory_uuid] = accessory
            logger.info("Adding new accessory: %s | %s", accessory.name, accessory.uuid)
            self.accessories.append(accessory)

    def get(self, name: str) -> Optional[SwitchAccessory]:
        for accessory in self.accessories:
            if accessory.name == name:
                return accessory
        return None

    def start(self) -> None:
        """Start connecting every accessory; requires a running event loop."""
        for accessory in self.accessories:
            accessory.start()

    async def shutdown(self) -> None:
        await asyncio.gather(*(accessory.shutdown() for accessory in self.accessories))
