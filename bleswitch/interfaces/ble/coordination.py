"""Timer and task coordination for BLE sessions."""

import asyncio
from typing import Awaitable, Callable, Dict, Optional, Set

from bleswitch.interfaces.ble.constants import logger


class TimerCoordinator:
    """
    Named timer slots and background tasks for one session.

    This class provides centralized timer and task management for a session
    running on an asyncio event loop. Each named slot holds at most one
    outstanding timer, so "at most one retry timer" and "at most one poll
    timer" are properties of the data structure rather than of the callers.

    Features:
        - One-shot timers (``arm``) backed by ``loop.call_later``
        - Periodic timers (``arm_periodic``) backed by a looping task
        - Tracked fire-and-forget tasks (``spawn``) so none are garbage collected mid-flight
        - ``cancel_all`` guarantees no timer callback runs after it returns
    """

    def __init__(self, label: str = "ble"):
        """
        Create a TimerCoordinator.

        Initializes:
            _timers (dict[str, TimerHandle]): one-shot timers by slot name.
            _periodic (dict[str, Task]): periodic timer tasks by slot name.
            _tasks (set[Task]): spawned background tasks still running.
        """
        self._label = label
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._periodic: Dict[str, asyncio.Task] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def is_armed(self, name: str) -> bool:
        """Return True if the named slot holds an outstanding timer."""
        if name in self._timers:
            return True
        task = self._periodic.get(name)
        return task is not None and not task.done()

    def armed_count(self) -> int:
        """Number of outstanding timers across all slots."""
        return len(self._timers) + sum(
            1 for task in self._periodic.values() if not task.done()
        )

    def arm(self, name: str, delay: float, callback: Callable[[], None]) -> bool:
        """
        Arm a one-shot timer in the named slot unless one is already outstanding.

        Parameters:
            name (str): Slot name.
            delay (float): Seconds until ``callback`` runs.
            callback (Callable[[], None]): Synchronous callable run on the event loop.

        Returns:
            bool: True if a timer was armed, False if the slot was busy or the coordinator is closed.
        """
        if self._closed:
            logger.debug("[%s] Not arming %s timer: coordinator closed", self._label, name)
            return False
        if self.is_armed(name):
            logger.debug("[%s] %s timer already armed", self._label, name)
            return False

        def _fire() -> None:
            self._timers.pop(name, None)
            callback()

        loop = asyncio.get_running_loop()
        self._timers[name] = loop.call_later(delay, _fire)
        logger.debug("[%s] Armed %s timer (%.2fs)", self._label, name, delay)
        return True

    def arm_periodic(
        self,
        name: str,
        interval: float,
        tick: Callable[[], Awaitable[None]],
    ) -> bool:
        """
        Run ``tick`` every ``interval`` seconds in the named slot until cancelled.

        The first tick happens one interval after arming. A tick that raises is
        logged and does not stop the timer.
        """
        if self._closed or self.is_armed(name):
            return False

        async def _loop() -> None:
            while True:
                await asyncio.sleep(interval)
                try:
                    await tick()
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception("[%s] Error in %s timer tick", self._label, name)

        self._periodic[name] = asyncio.get_running_loop().create_task(
            _loop(), name=f"{self._label}-{name}"
        )
        logger.debug("[%s] Armed periodic %s timer (%.2fs)", self._label, name, interval)
        return True

    def cancel(self, name: str) -> bool:
        """Cancel the timer in the named slot; returns True if one was outstanding."""
        cancelled = False
        handle = self._timers.pop(name, None)
        if handle is not None:
            handle.cancel()
            cancelled = True
        task = self._periodic.pop(name, None)
        if task is not None and not task.done():
            task.cancel()
            cancelled = True
        if cancelled:
            logger.debug("[%s] Cancelled %s timer", self._label, name)
        return cancelled

    def spawn(self, coro: Awaitable[object], name: Optional[str] = None) -> Optional[asyncio.Task]:
        """
        Run a coroutine as a tracked background task.

        Failures are logged when the task finishes so no exception goes
        unretrieved. Returns None (and closes the coroutine) once the
        coordinator is closed.
        """
        if self._closed:
            close = getattr(coro, "close", None)
            if close is not None:
                close()
            return None
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug(
                "[%s] Background task %s ended with %s: %s",
                self._label,
                task.get_name(),
                type(exc).__name__,
                exc,
            )

    def cancel_all(self) -> None:
        """
        Cancel every timer slot and refuse new timers.

        Spawned tasks are left to finish on their own; callers guard their
        completion with a shutting-down flag.
        """
        self._closed = True
        for name in list(self._timers) + list(self._periodic):
            self.cancel(name)

    async def wait_idle(self) -> None:
        """Wait for every spawned background task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
