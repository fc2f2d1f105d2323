"""BLE connection supervision."""

from typing import Awaitable, Callable, Optional

from bleswitch.interfaces.ble.config import DeviceTarget
from bleswitch.interfaces.ble.constants import ERROR_CONNECTION_FAILED, logger
from bleswitch.interfaces.ble.coordination import TimerCoordinator
from bleswitch.interfaces.ble.errors import (
    TRANSPORT_ERRORS,
    BLEErrorHandler,
    ConnectError,
)
from bleswitch.interfaces.ble.reconnection import ReconnectScheduler
from bleswitch.interfaces.ble.state import BLEStateManager, ConnectionState
from bleswitch.interfaces.ble.transport import (
    DisconnectCallback,
    Peripheral,
    PeripheralFactory,
)


class ConnectionSupervisor:
    """
    Own one peripheral's connection lifecycle.

    The supervisor connects with retry, reacts to unsolicited disconnects and
    releases everything on shutdown. What happens once a link is up (resolving
    the characteristic, starting updates) and what must be torn down when it
    drops is supplied by the session through two hooks.
    """

    def __init__(
        self,
        target: DeviceTarget,
        peripheral_factory: PeripheralFactory,
        state_manager: BLEStateManager,
        timers: TimerCoordinator,
        *,
        on_connected: Callable[[Peripheral], Awaitable[None]],
        on_teardown: Callable[[], None],
        disconnect_signal: DisconnectCallback,
        on_reconnect_due: Callable[[], None],
        label: Optional[str] = None,
    ):
        """
        Initialize the supervisor.

        Parameters:
            target (DeviceTarget): The device to connect to.
            peripheral_factory (PeripheralFactory): Produces a fresh handle per connect attempt.
            state_manager (BLEStateManager): The session's state machine.
            timers (TimerCoordinator): The session's timer slots.
            on_connected (Callable[[Peripheral], Awaitable[None]]): Awaited right after a successful connect.
            on_teardown (Callable[[], None]): Synchronously stops updates and discards the binding.
            disconnect_signal (Callable[[Peripheral], None]): Registered with every handle's ``on_disconnect``.
            on_reconnect_due (Callable[[], None]): Invoked when the retry timer fires.
            label (str | None): Device label used in log messages.
        """
        self.target = target
        self.peripheral: Optional[Peripheral] = None
        self._factory = peripheral_factory
        self._state = state_manager
        self._timers = timers
        self._on_connected = on_connected
        self._on_teardown = on_teardown
        self._disconnect_signal = disconnect_signal
        self._label = label or target.device_id
        self._attempt_in_progress = False
        self._shutting_down = False
        self.connect_calls = 0
        self.reconnects = ReconnectScheduler(timers, on_reconnect_due, self._label)

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    @property
    def attempt_in_progress(self) -> bool:
        return self._attempt_in_progress

    async def ensure_connected(self) -> None:
        """
        Connect unless already connected or connecting.

        Returns immediately when a link is up or an attempt is in flight. On
        failure the session goes back to DISCONNECTED, the retry timer is armed
        (unless one is armed already) and ``ConnectError`` is raised.
        """
        if self._shutting_down:
            logger.debug("[%s] Not connecting: shutting down", self._label)
            return
        if self._state.is_connected:
            return
        if self._attempt_in_progress or self._state.is_connecting:
            logger.debug("[%s] Connect attempt already in progress", self._label)
            return
        if not self._state.transition_to(ConnectionState.CONNECTING):
            return

        self._attempt_in_progress = True
        try:
            await self._connect_once()
        finally:
            self._attempt_in_progress = False
            if self._state.is_connecting:
                # Cancelled mid-attempt
                self._mark_disconnected()
            if (
                not self._shutting_down
                and self._state.state is ConnectionState.DISCONNECTED
                and not self.reconnects.is_pending
            ):
                # A reconnect that came due during this attempt was skipped
                logger.debug("[%s] Re-arming reconnect after attempt ended", self._label)
                self.reconnects.schedule_after_disconnect()

    async def _connect_once(self) -> None:
        logger.info("[%s] Connecting to %s", self._label, self.target.device_id)
        peripheral: Optional[Peripheral] = None
        try:
            peripheral = await self._factory(self.target.device_id)
            peripheral.on_disconnect(self._disconnect_signal)
            self.connect_calls += 1
            await peripheral.connect()
            if not peripheral.is_connected:
                raise ConnectError("Peripheral dropped the link while connecting")
        except Exception as exc:
            if peripheral is not None:
                await self._release(peripheral)
            self._mark_disconnected()
            if self._shutting_down:
                logger.debug("[%s] Connect attempt ended during shutdown: %s", self._label, exc)
                return
            if isinstance(exc, ConnectError):
                logger.warning("[%s] %s", self._label, exc)
                self.reconnects.schedule_retry()
                raise
            if isinstance(exc, TRANSPORT_ERRORS):
                logger.warning("[%s] Failed to connect: %s", self._label, exc)
            else:
                logger.exception("[%s] Unexpected error while connecting", self._label)
            self.reconnects.schedule_retry()
            raise ConnectError(ERROR_CONNECTION_FAILED.format(exc)) from exc

        if self._shutting_down or self._state.state is not ConnectionState.CONNECTING:
            logger.debug(
                "[%s] Discarding connection completed during shutdown", self._label
            )
            await self._release(peripheral)
            self._mark_disconnected()
            return

        self.peripheral = peripheral
        self._state.transition_to(ConnectionState.CONNECTED)
        self.reconnects.cancel()
        self.reconnects.reset()
        logger.info("[%s] Connected", self._label)
        await self._on_connected(peripheral)

    def on_unexpected_disconnect(self, peripheral: Peripheral) -> None:
        """
        Tear down after the transport reports a dropped link, then schedule a reconnect.

        Teardown is synchronous so it always completes before the reconnect
        can start. Signals from stale handles, while connecting, and during
        shutdown are ignored.
        """
        if peripheral is not self.peripheral:
            logger.debug("[%s] Ignoring disconnect from a stale handle", self._label)
            return
        if self._shutting_down or not self._state.is_connected:
            return

        self._on_teardown()
        self.peripheral = None
        self._state.transition_to(ConnectionState.DISCONNECTED)
        logger.warning("[%s] Disconnected", self._label)
        self.reconnects.schedule_after_disconnect()

    def begin_shutdown(self) -> None:
        """Refuse new work and cancel every timer; safe to call repeatedly."""
        if not self._shutting_down:
            logger.debug("[%s] Shutting down", self._label)
        self._shutting_down = True
        self._timers.cancel_all()

    async def shutdown(self) -> None:
        """
        Cancel timers, stop updates and release the peripheral handle.

        Safe to call from any state. A connect attempt still in flight will
        observe the shutting-down flag and release its own handle.
        """
        self.begin_shutdown()
        self._on_teardown()
        peripheral, self.peripheral = self.peripheral, None
        if peripheral is not None:
            await self._release(peripheral)
        if self._state.is_connected:
            self._state.transition_to(ConnectionState.DISCONNECTED)

    async def _release(self, peripheral: Peripheral) -> None:
        await BLEErrorHandler.async_safe_cleanup(
            peripheral.disconnect, "peripheral disconnect"
        )

    def _mark_disconnected(self) -> None:
        if self._state.state is not ConnectionState.DISCONNECTED:
            self._state.transition_to(ConnectionState.DISCONNECTED)
