"""BLE reconnection scheduling."""

from typing import Callable

from bleswitch.interfaces.ble.constants import RETRY_TIMER, logger
from bleswitch.interfaces.ble.coordination import TimerCoordinator
from bleswitch.interfaces.ble.policies import ReconnectPolicy, RetryPolicy


class ReconnectScheduler:
    """
    Arm the session's single retry timer.

    A failed connect waits the fixed connect-retry delay; an unsolicited
    disconnect waits the settle delay. Both share the ``retry`` slot, so a
    session never has two reconnects pending.
    """

    def __init__(
        self,
        timers: TimerCoordinator,
        on_due: Callable[[], None],
        label: str = "ble",
    ):
        """
        Parameters:
            timers (TimerCoordinator): The owning session's timer slots.
            on_due (Callable[[], None]): Invoked on the event loop when the retry timer fires.
            label (str): Device label used in log messages.
        """
        self._timers = timers
        self._on_due = on_due
        self._label = label
        self._retry_policy: ReconnectPolicy = RetryPolicy.connect_retry()
        self._settle_policy: ReconnectPolicy = RetryPolicy.disconnect_settle()

    @property
    def is_pending(self) -> bool:
        return self._timers.is_armed(RETRY_TIMER)

    @property
    def attempts(self) -> int:
        """Failed connect attempts since the last successful connection."""
        return self._retry_policy.get_attempt_count()

    def schedule_retry(self) -> bool:
        """
        Arm the retry timer after a failed connect attempt.

        Returns False without touching the policy when a retry is already armed.
        """
        if self.is_pending:
            logger.debug("[%s] Retry already scheduled; not arming another", self._label)
            return False
        delay, should_retry = self._retry_policy.next_attempt()
        if not should_retry:
            logger.info("[%s] Reconnect reached maximum retry limit.", self._label)
            return False
        armed = self._timers.arm(RETRY_TIMER, delay, self._on_due)
        if armed:
            logger.info(
                "[%s] Retrying connection in %.1f seconds (attempt %d).",
                self._label,
                delay,
                self._retry_policy.get_attempt_count() + 1,
            )
        return armed

    def schedule_after_disconnect(self) -> bool:
        """Arm the retry timer after an unsolicited disconnect."""
        self._retry_policy.reset()
        delay = self._settle_policy.get_delay()
        armed = self._timers.arm(RETRY_TIMER, delay, self._on_due)
        if armed:
            logger.info("[%s] Reconnecting in %.1f seconds.", self._label, delay)
        return armed

    def cancel(self) -> bool:
        return self._timers.cancel(RETRY_TIMER)

    def reset(self) -> None:
        """Forget failed attempts after a successful connection."""
        self._retry_policy.reset()
