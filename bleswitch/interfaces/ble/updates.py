"""Push or poll delivery of characteristic values."""

from typing import Callable, Optional

from bleswitch.interfaces.ble.binding import CharacteristicBinding
from bleswitch.interfaces.ble.config import UpdateMode
from bleswitch.interfaces.ble.constants import POLL_TIMER, logger
from bleswitch.interfaces.ble.coordination import TimerCoordinator
from bleswitch.interfaces.ble.errors import (
    TRANSPORT_ERRORS,
    BLEErrorHandler,
    DecodeError,
    UpdateError,
)
from bleswitch.interfaces.ble.utils import decode_state

Emitter = Callable[[bool, CharacteristicBinding, str], None]


class UpdateSource:
    """
    Normalize notifications and periodic reads into one value stream.

    Exactly one of {push subscription, poll timer} is active at a time. The
    poll timer lives in the session's ``TimerCoordinator`` under the ``poll``
    slot, so a second one cannot exist.
    """

    def __init__(self, timers: TimerCoordinator, emit: Emitter, label: str = "ble"):
        """
        Parameters:
            timers (TimerCoordinator): The owning session's timer slots.
            emit (Callable[[bool, CharacteristicBinding, str], None]): Receives ``(value, binding, source)`` for every decoded value.
            label (str): Device label used in log messages.
        """
        self._timers = timers
        self._emit = emit
        self._label = label
        self._binding: Optional[CharacteristicBinding] = None
        self._mode: Optional[UpdateMode] = None

    @property
    def is_active(self) -> bool:
        return self._binding is not None

    @property
    def mode(self) -> Optional[UpdateMode]:
        return self._mode

    @property
    def binding(self) -> Optional[CharacteristicBinding]:
        return self._binding

    async def start(self, binding: CharacteristicBinding, mode: UpdateMode) -> None:
        """
        Begin delivering values from ``binding`` according to ``mode``.

        Any previous source is stopped first.

        Raises:
            UpdateError: If the notification subscription cannot be established.
        """
        self.stop()
        self._binding = binding
        self._mode = mode

        if mode.is_push:
            try:
                await binding.subscribe(self._make_listener(binding))
            except TRANSPORT_ERRORS as exc:
                if self._binding is binding:
                    self.stop()
                raise UpdateError(
                    f"Subscribing to {binding.uuid} failed: {exc}"
                ) from exc
            if self._binding is binding:
                logger.info("[%s] Receiving push updates", self._label)
            return

        if binding.is_subscribed:
            # Leaving push mode on a live binding
            await BLEErrorHandler.async_safe_cleanup(
                binding.unsubscribe, "notification unsubscribe"
            )
            if self._binding is not binding:
                return
        self._timers.arm_periodic(
            POLL_TIMER, mode.interval_seconds, lambda: self._poll_once(binding)
        )
        logger.info(
            "[%s] Polling every %d ms", self._label, mode.interval_ms
        )

    def stop(self) -> None:
        """
        Release the active subscription listener or poll timer.

        Idempotent and synchronous: after it returns no further value is
        emitted. Notifications stay enabled on the peripheral until the
        binding is unsubscribed or discarded.
        """
        self._timers.cancel(POLL_TIMER)
        binding, self._binding = self._binding, None
        self._mode = None
        if binding is not None:
            binding.clear_listeners()
            logger.debug("[%s] Update source stopped", self._label)

    async def close(self) -> None:
        """Stop and disable notifications on the peripheral, best effort."""
        binding = self._binding
        self.stop()
        if binding is not None and binding.is_subscribed:
            await BLEErrorHandler.async_safe_cleanup(
                binding.unsubscribe, "notification unsubscribe"
            )

    def _make_listener(self, binding: CharacteristicBinding) -> Callable[[bytes], None]:
        def _on_notification(data: bytes) -> None:
            if self._binding is not binding:
                return
            try:
                value = decode_state(data)
            except DecodeError as exc:
                logger.warning("[%s] Dropping notification: %s", self._label, exc)
                return
            self._emit(value, binding, "push")

        return _on_notification

    async def _poll_once(self, binding: CharacteristicBinding) -> None:
        try:
            value = await binding.read_state()
        except DecodeError as exc:
            logger.warning("[%s] Dropping poll result: %s", self._label, exc)
            return
        except TRANSPORT_ERRORS as exc:
            logger.warning("[%s] Poll read failed: %s", self._label, exc)
            return
        if self._binding is binding:
            self._emit(value, binding, "poll")
