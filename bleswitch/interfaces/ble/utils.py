"""Utility functions for BLE operations."""

import re
from typing import Optional

from bleak.uuids import normalize_uuid_str

from bleswitch.interfaces.ble.constants import STATE_OFF_PAYLOAD, STATE_ON_PAYLOAD
from bleswitch.interfaces.ble.errors import DecodeError

_ADDRESS_SEPARATORS = re.compile(r"[-_:\s]")


def sanitize_address(address: Optional[str]) -> Optional[str]:
    """
    Normalize a BLE address or identifier by removing common separators and lowercasing.

    Parameters:
        address: Address or identifier to normalize; may be None or consist only of whitespace.

    Returns:
        The normalized address with dashes, underscores, colons, and spaces removed and converted to lowercase, or None if the input is None or only whitespace.
    """
    if address is None or not address.strip():
        return None
    return _ADDRESS_SEPARATORS.sub("", address.strip()).lower()


def normalize_uuid(uuid: str) -> str:
    """Strip hyphens and lowercase a service or characteristic UUID."""
    return uuid.strip().replace("-", "").lower()


def canonical_uuid(uuid: str) -> str:
    """
    Normalize a UUID and expand Bluetooth SIG short forms to 128 bits.

    ``"2A19"``, ``"00002a19-0000-1000-8000-00805f9b34fb"`` and
    ``"00002a1900001000800000805f9b34fb"`` all map to the same value, so a
    configured short id matches the full UUID a backend reports.
    """
    normalized = normalize_uuid(uuid)
    try:
        return normalize_uuid(normalize_uuid_str(normalized))
    except ValueError:
        return normalized


def decode_state(data: bytes) -> bool:
    """
    Decode a switch state from a characteristic payload.

    Only the first byte is considered: ``0x01`` is on, any other value is off.

    Raises:
        DecodeError: If the payload is empty.
    """
    if not data:
        raise DecodeError("Empty characteristic payload")
    return data[0] == 1


def encode_state(value: bool) -> bytes:
    """Encode a switch state as the single-byte payload written to the peripheral."""
    return STATE_ON_PAYLOAD if value else STATE_OFF_PAYLOAD
