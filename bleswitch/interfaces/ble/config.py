"""Device targets, update modes, and platform configuration loading."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from bleswitch.interfaces.ble.constants import BLEConfig, logger
from bleswitch.interfaces.ble.errors import ConfigError
from bleswitch.interfaces.ble.utils import normalize_uuid

ACCESSORY_TYPES = ("switch",)


@dataclass(frozen=True)
class DeviceTarget:
    """What a session connects to; service and characteristic ids are normalized."""

    device_id: str
    service_id: str
    characteristic_id: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "service_id", normalize_uuid(self.service_id))
        object.__setattr__(
            self, "characteristic_id", normalize_uuid(self.characteristic_id)
        )


@dataclass(frozen=True)
class UpdateMode:
    """Push (notifications) or poll (periodic read) update delivery."""

    kind: str
    interval_ms: Optional[int] = None

    PUSH = "push"
    POLL = "poll"

    @classmethod
    def push(cls) -> "UpdateMode":
        return cls(cls.PUSH)

    @classmethod
    def poll(cls, interval_ms: int) -> "UpdateMode":
        if interval_ms < BLEConfig.MIN_UPDATE_INTERVAL_MS:
            raise ValueError(
                f"poll interval must be >= {BLEConfig.MIN_UPDATE_INTERVAL_MS} ms, got {interval_ms}"
            )
        return cls(cls.POLL, interval_ms)

    @property
    def is_push(self) -> bool:
        return self.kind == self.PUSH

    @property
    def interval_seconds(self) -> Optional[float]:
        if self.interval_ms is None:
            return None
        return self.interval_ms / 1000.0


def update_mode_for(interval_ms: Optional[int]) -> UpdateMode:
    """
    Derive the update mode from an optional configured interval.

    Intervals below ``BLEConfig.MIN_UPDATE_INTERVAL_MS`` (or no interval) select
    push mode; anything else polls at that interval.
    """
    if interval_ms is None or interval_ms < BLEConfig.MIN_UPDATE_INTERVAL_MS:
        return UpdateMode.push()
    return UpdateMode.poll(interval_ms)


@dataclass(frozen=True)
class AccessoryConfig:
    """One configured accessory (a BLE-backed switch)."""

    name: str
    device_id: str
    service_id: str
    characteristic_id: str
    type: str = "switch"
    update_interval_ms: Optional[int] = None

    @property
    def target(self) -> DeviceTarget:
        return DeviceTarget(self.device_id, self.service_id, self.characteristic_id)

    @property
    def update_mode(self) -> UpdateMode:
        return update_mode_for(self.update_interval_ms)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], index: int = 0) -> "AccessoryConfig":
        """
        Build an accessory config from its JSON mapping.

        Accepts the plugin's camelCase keys (``deviceId``, ``serviceId``,
        ``characteristicId``, ``intervalForUpdating``) as well as snake_case.

        Raises:
            ConfigError: Listing every missing or invalid field.
        """
        problems, values = _parse_accessory(data, index)
        if problems:
            raise ConfigError(problems)
        return cls(**values)


@dataclass(frozen=True)
class PlatformConfig:
    """Top-level configuration: the list of accessories to expose."""

    accessories: Tuple[AccessoryConfig, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlatformConfig":
        if not isinstance(data, dict):
            raise ConfigError("configuration must be a JSON object")
        raw_accessories = data.get("accessories", [])
        if not isinstance(raw_accessories, list):
            raise ConfigError("'accessories' must be a list")

        problems: List[str] = []
        accessories: List[AccessoryConfig] = []
        for index, raw in enumerate(raw_accessories):
            entry_problems, values = _parse_accessory(raw, index)
            if entry_problems:
                problems.extend(entry_problems)
            else:
                accessories.append(AccessoryConfig(**values))
        if problems:
            raise ConfigError(problems)
        return cls(tuple(accessories))


def load_platform_config(path: Union[str, Path]) -> PlatformConfig:
    """Read and validate a JSON platform configuration file."""
    try:
        with open(path, encoding="utf-8") as handle:
            data = json.load(handle)
    except OSError as exc:
        raise ConfigError(f"cannot read configuration {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"invalid JSON in {path}: {exc}") from exc
    return PlatformConfig.from_dict(data)


_FIELD_ALIASES = {
    "device_id": ("deviceId", "device_id"),
    "service_id": ("serviceId", "service_id"),
    "characteristic_id": ("characteristicId", "characteristic_id"),
    "update_interval_ms": ("intervalForUpdating", "update_interval_ms"),
}


def _lookup(data: Dict[str, Any], key: str) -> Any:
    for alias in _FIELD_ALIASES.get(key, (key,)):
        if alias in data:
            return data[alias]
    return None


def _parse_accessory(data: Any, index: int) -> Tuple[List[str], Dict[str, Any]]:
    prefix = f"accessories[{index}]"
    if not isinstance(data, dict):
        return [f"{prefix}: must be an object"], {}

    problems: List[str] = []
    values: Dict[str, Any] = {}
    for key in ("name", "device_id", "service_id", "characteristic_id"):
        value = _lookup(data, key)
        if not isinstance(value, str) or not value.strip():
            problems.append(f"{prefix}.{_FIELD_ALIASES.get(key, (key,))[0]}: must not be empty")
        else:
            values[key] = value.strip()

    accessory_type = data.get("type", "switch")
    if accessory_type not in ACCESSORY_TYPES:
        problems.append(
            f"{prefix}.type: must be one of {', '.join(ACCESSORY_TYPES)}, got {accessory_type!r}"
        )
    else:
        values["type"] = accessory_type

    interval = _lookup(data, "update_interval_ms")
    if interval is not None:
        if isinstance(interval, bool) or not isinstance(interval, int):
            problems.append(f"{prefix}.intervalForUpdating: must be an integer")
        elif interval < BLEConfig.MIN_UPDATE_INTERVAL_MS:
            logger.warning(
                "[%s] intervalForUpdating %d ms is below %d ms; using push updates",
                values.get("name", prefix),
                interval,
                BLEConfig.MIN_UPDATE_INTERVAL_MS,
            )
        else:
            values["update_interval_ms"] = interval
    return problems, values
