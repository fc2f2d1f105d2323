"""One device's BLE session: state machine, event queue and read/write bridge."""

from collections import deque
from typing import Callable, Deque, Optional

from pubsub import pub

from bleswitch.interfaces.ble.binding import CharacteristicBinding
from bleswitch.interfaces.ble.config import DeviceTarget, UpdateMode
from bleswitch.interfaces.ble.connection import ConnectionSupervisor
from bleswitch.interfaces.ble.constants import (
    ERROR_NOT_READY,
    ERROR_READING_BLE,
    ERROR_WRITING_BLE,
    TOPIC_CONNECTION_STATUS,
    TOPIC_STATE_CHANGED,
    logger,
)
from bleswitch.interfaces.ble.coordination import TimerCoordinator
from bleswitch.interfaces.ble.discovery import BleakPeripheralFactory
from bleswitch.interfaces.ble.errors import (
    TRANSPORT_ERRORS,
    BLEErrorHandler,
    ConnectError,
    DecodeError,
    InvariantViolation,
    NotReadyError,
    ResolveError,
    TransportFailureError,
    UpdateError,
)
from bleswitch.interfaces.ble.events import (
    PeripheralDisconnected,
    ReconnectDue,
    SessionEvent,
    StateChanged,
)
from bleswitch.interfaces.ble.resolver import CharacteristicResolver
from bleswitch.interfaces.ble.state import BLEStateManager, ConnectionState
from bleswitch.interfaces.ble.transport import Peripheral, PeripheralFactory
from bleswitch.interfaces.ble.updates import UpdateSource

StateChangedCallback = Callable[[bool], None]


class PeripheralSession:
    """
    The live unit for one configured device.

    Transport signals and timer expiries are posted as typed events and
    applied in order by ``_handle_event``. Everything runs on one asyncio
    event loop; after every ``await`` the session re-checks its state and
    current peripheral before changing anything.

    Values are delivered to ``on_state_changed`` and published on the
    ``bleswitch.state.changed`` pubsub topic.
    """

    def __init__(
        self,
        target: DeviceTarget,
        update_mode: Optional[UpdateMode] = None,
        peripheral_factory: Optional[PeripheralFactory] = None,
        on_state_changed: Optional[StateChangedCallback] = None,
        name: Optional[str] = None,
    ):
        """
        Create an idle session; call ``start()`` from a running event loop.

        Parameters:
            target (DeviceTarget): Device, service and characteristic to bind.
            update_mode (UpdateMode | None): Push (default) or poll delivery.
            peripheral_factory (PeripheralFactory | None): Produces peripheral handles; defaults to scanning with bleak.
            on_state_changed (Callable[[bool], None] | None): Receives every value pushed or polled from the device.
            name (str | None): Label for log messages; defaults to the device id.
        """
        if peripheral_factory is None:
            peripheral_factory = BleakPeripheralFactory()

        self.target = target
        self.name = name or target.device_id
        self.update_mode = update_mode or UpdateMode.push()
        self._on_state_changed = on_state_changed
        self._binding: Optional[CharacteristicBinding] = None
        self._events: Deque[SessionEvent] = deque()
        self._draining = False

        self.state_manager = BLEStateManager(self.name)
        self.state_manager.add_listener(self._on_transition)
        self.timers = TimerCoordinator(self.name)
        self.resolver = CharacteristicResolver(self.name)
        self.updates = UpdateSource(self.timers, self._on_value, self.name)
        self.supervisor = ConnectionSupervisor(
            target,
            peripheral_factory,
            self.state_manager,
            self.timers,
            on_connected=self._resolve_and_start,
            on_teardown=self._teardown,
            disconnect_signal=self._on_disconnect_signal,
            on_reconnect_due=lambda: self.post(ReconnectDue()),
            label=self.name,
        )

    def __repr__(self) -> str:
        return f"PeripheralSession(name={self.name!r}, state={self.state.value})"

    @property
    def state(self) -> ConnectionState:
        return self.state_manager.state

    @property
    def binding(self) -> Optional[CharacteristicBinding]:
        return self._binding

    @property
    def peripheral(self) -> Optional[Peripheral]:
        return self.supervisor.peripheral

    @property
    def is_ready(self) -> bool:
        return self.state_manager.is_ready

    def start(self):
        """Begin connecting in the background; returns the task, or None after shutdown."""
        return self.timers.spawn(self._connect_quietly(), name=f"{self.name}-connect")

    async def ensure_connected(self) -> None:
        """Connect and bind now; see ``ConnectionSupervisor.ensure_connected``."""
        await self.supervisor.ensure_connected()

    async def shutdown(self) -> None:
        """
        Stop everything: timers, updates, subscription and the peripheral link.

        No timer callback fires after the first line of this method has run.
        """
        self.supervisor.begin_shutdown()
        await self.updates.close()
        await self.supervisor.shutdown()
        logger.info("[%s] Session closed", self.name)

    async def set_update_mode(self, mode: UpdateMode) -> None:
        """Switch between push and poll; a ready session restarts its updates."""
        self.update_mode = mode
        if not self.state_manager.is_ready:
            return
        binding = self._require_binding()
        try:
            await self.updates.start(binding, mode)
        except UpdateError as exc:
            if self._binding is binding and self.state_manager.is_ready:
                self._binding = None
                self.state_manager.transition_to(ConnectionState.CONNECTED)
            logger.warning("[%s] %s; waiting for the next reconnect", self.name, exc)

    # Read/write bridge

    async def get_state(self) -> bool:
        """
        Read the current value from the device.

        Raises:
            NotReadyError: Immediately, when the session is not READY.
            TransportFailureError: When the read fails or returns an empty payload.
        """
        binding = self._require_ready()
        try:
            return await binding.read_state()
        except DecodeError as exc:
            raise TransportFailureError(
                f"{ERROR_READING_BLE.format(binding.uuid)}: {exc}"
            ) from exc
        except TRANSPORT_ERRORS as exc:
            self._check_link()
            raise TransportFailureError(
                f"{ERROR_READING_BLE.format(binding.uuid)}: {exc}"
            ) from exc

    async def set_state(self, value: bool) -> None:
        """
        Write ``value`` to the device as a single byte.

        Failures are reported, not retried. The binding is only dropped when
        the transport says the peripheral is gone.

        Raises:
            NotReadyError: Immediately, when the session is not READY.
            TransportFailureError: When the write fails.
        """
        binding = self._require_ready()
        try:
            await binding.write_state(value)
        except TRANSPORT_ERRORS as exc:
            self._check_link()
            raise TransportFailureError(ERROR_WRITING_BLE.format(binding.uuid)) from exc
        logger.debug("[%s] Wrote %s", self.name, value)

    def _require_ready(self) -> CharacteristicBinding:
        if not self.state_manager.is_ready:
            raise NotReadyError(ERROR_NOT_READY.format(self.name, self.state.value))
        return self._require_binding()

    def _require_binding(self) -> CharacteristicBinding:
        if self._binding is None:
            raise InvariantViolation(f"[{self.name}] READY without a bound characteristic")
        return self._binding

    def _check_link(self) -> None:
        peripheral = self.supervisor.peripheral
        if peripheral is not None and not peripheral.is_connected:
            self.post(PeripheralDisconnected(peripheral))

    # Event queue

    def post(self, event: SessionEvent) -> None:
        """
        Queue ``event`` and apply pending events in order.

        Events posted while another is being handled run after it, never
        re-entrantly.
        """
        self._events.append(event)
        if self._draining:
            return
        self._draining = True
        try:
            while self._events:
                self._handle_event(self._events.popleft())
        finally:
            self._draining = False

    def _handle_event(self, event: SessionEvent) -> None:
        if isinstance(event, PeripheralDisconnected):
            self.supervisor.on_unexpected_disconnect(event.peripheral)
        elif isinstance(event, StateChanged):
            if event.binding is not self._binding or not self.state_manager.is_ready:
                logger.debug("[%s] Dropping value from a stale binding", self.name)
                return
            self._emit(event.value)
        elif isinstance(event, ReconnectDue):
            if self.supervisor.shutting_down:
                return
            self.timers.spawn(self._connect_quietly(), name=f"{self.name}-reconnect")
        else:
            raise InvariantViolation(f"Unknown session event {event!r}")

    def _on_disconnect_signal(self, peripheral: Peripheral) -> None:
        self.post(PeripheralDisconnected(peripheral))

    def _on_value(self, value: bool, binding: CharacteristicBinding, source: str) -> None:
        self.post(StateChanged(value, binding, source))

    # Lifecycle hooks

    async def _connect_quietly(self) -> None:
        try:
            await self.supervisor.ensure_connected()
        except ConnectError as exc:
            # Already logged; the retry timer owns the next attempt
            logger.debug("[%s] Background connect failed: %s", self.name, exc)

    async def _resolve_and_start(self, peripheral: Peripheral) -> None:
        if not self.state_manager.transition_to(ConnectionState.RESOLVING):
            return
        try:
            binding = await self.resolver.resolve(peripheral, self.target)
        except ResolveError as exc:
            if self._is_current(peripheral, ConnectionState.RESOLVING):
                self.state_manager.transition_to(ConnectionState.CONNECTED)
                logger.warning("[%s] %s; waiting for the next reconnect", self.name, exc)
            return
        if not self._is_current(peripheral, ConnectionState.RESOLVING):
            binding.detach()
            return

        self._binding = binding
        try:
            await self.updates.start(binding, self.update_mode)
        except UpdateError as exc:
            if self._is_current(peripheral, ConnectionState.RESOLVING):
                self._binding = None
                self.state_manager.transition_to(ConnectionState.CONNECTED)
                logger.warning("[%s] %s; waiting for the next reconnect", self.name, exc)
            return
        if not self._is_current(peripheral, ConnectionState.RESOLVING):
            return

        self.state_manager.transition_to(ConnectionState.READY)
        logger.info("[%s] Ready", self.name)

    def _is_current(self, peripheral: Peripheral, state: ConnectionState) -> bool:
        return (
            not self.supervisor.shutting_down
            and self.supervisor.peripheral is peripheral
            and self.state_manager.state is state
        )

    def _teardown(self) -> None:
        self.updates.stop()
        binding, self._binding = self._binding, None
        if binding is not None:
            binding.detach()

    # Outbound notifications

    def _emit(self, value: bool) -> None:
        logger.debug("[%s] State changed: %s", self.name, value)
        if self._on_state_changed is not None:
            BLEErrorHandler.safe_execute(
                lambda: self._on_state_changed(value),
                error_msg=f"[{self.name}] Error in state-changed callback",
            )
        BLEErrorHandler.safe_execute(
            lambda: pub.sendMessage(TOPIC_STATE_CHANGED, value=value, session=self),
            error_msg=f"[{self.name}] Error publishing state change",
        )

    def _on_transition(self, old: ConnectionState, new: ConnectionState) -> None:
        if new is ConnectionState.CONNECTED and old is ConnectionState.CONNECTING:
            connected = True
        elif new is ConnectionState.DISCONNECTED and old is not ConnectionState.CONNECTING:
            connected = False
        else:
            return
        BLEErrorHandler.safe_execute(
            lambda: pub.sendMessage(
                TOPIC_CONNECTION_STATUS, session=self, connected=connected
            ),
            error_msg=f"[{self.name}] Error publishing connection status",
        )
