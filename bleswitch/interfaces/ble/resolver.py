"""Characteristic discovery and matching."""

from typing import Optional

from bleswitch.interfaces.ble.binding import CharacteristicBinding
from bleswitch.interfaces.ble.config import DeviceTarget
from bleswitch.interfaces.ble.constants import (
    ERROR_CHARACTERISTIC_NOT_FOUND,
    ERROR_NO_CHARACTERISTICS,
    logger,
)
from bleswitch.interfaces.ble.errors import (
    TRANSPORT_ERRORS,
    CharacteristicNotFound,
    DiscoveryFailed,
    NoCharacteristicsFound,
)
from bleswitch.interfaces.ble.transport import Peripheral
from bleswitch.interfaces.ble.utils import canonical_uuid


class CharacteristicResolver:
    """Find the configured characteristic on a connected peripheral.

    The resolver never retries; a failure leaves the session connected but not
    ready until the next reconnect cycle.
    """

    def __init__(self, label: Optional[str] = None):
        self._label = label

    async def resolve(
        self, peripheral: Peripheral, target: DeviceTarget
    ) -> CharacteristicBinding:
        """
        Discover characteristics on ``peripheral`` and bind the one matching ``target``.

        Characteristic ids are only unique per service, so a candidate whose
        backend reports a different owning service is skipped. Candidates with
        no reported service match on the characteristic id alone.

        Parameters:
            peripheral (Peripheral): A connected peripheral handle.
            target (DeviceTarget): The configured service/characteristic ids.

        Returns:
            CharacteristicBinding: A binding with no listeners attached.

        Raises:
            NoCharacteristicsFound: Discovery returned nothing.
            CharacteristicNotFound: No characteristic UUID matched within the target service.
            DiscoveryFailed: The transport failed during discovery.
        """
        label = self._label or target.device_id
        logger.debug("[%s] Discovering services ...", label)
        try:
            characteristics = await peripheral.discover_characteristics()
        except TRANSPORT_ERRORS as exc:
            raise DiscoveryFailed(f"Service discovery on '{label}' failed: {exc}") from exc

        if not characteristics:
            raise NoCharacteristicsFound(ERROR_NO_CHARACTERISTICS.format(label))

        wanted = canonical_uuid(target.characteristic_id)
        service = canonical_uuid(target.service_id)
        for characteristic in characteristics:
            if canonical_uuid(characteristic.uuid) != wanted:
                continue
            owner = getattr(characteristic, "service_uuid", None)
            if owner is not None and canonical_uuid(owner) != service:
                logger.debug(
                    "[%s] Skipping #%s in service %s", label, target.characteristic_id, owner
                )
                continue
            logger.info(
                "[%s] Characteristic found: #%s", label, target.characteristic_id
            )
            binding = CharacteristicBinding(characteristic, target, label)
            binding.clear_listeners()
            return binding

        raise CharacteristicNotFound(
            ERROR_CHARACTERISTIC_NOT_FOUND.format(
                target.characteristic_id, target.service_id, label
            )
        )
