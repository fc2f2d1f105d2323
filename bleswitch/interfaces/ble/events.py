"""Typed events fed into a session's transition function."""

from dataclasses import dataclass
from typing import Union

from bleswitch.interfaces.ble.binding import CharacteristicBinding
from bleswitch.interfaces.ble.transport import Peripheral


@dataclass(frozen=True)
class PeripheralDisconnected:
    """The transport reported that ``peripheral`` dropped the link."""

    peripheral: Peripheral


@dataclass(frozen=True)
class StateChanged:
    """A decoded value arrived from a notification or a poll read."""

    value: bool
    binding: CharacteristicBinding
    source: str = "push"


@dataclass(frozen=True)
class ReconnectDue:
    """The retry timer expired."""

    reason: str = "retry"


SessionEvent = Union[PeripheralDisconnected, StateChanged, ReconnectDue]
