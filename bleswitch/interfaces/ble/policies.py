"""Retry and reconnection policies for BLE sessions."""

import random
from typing import Optional, Tuple

from bleswitch.interfaces.ble.constants import BLEConfig


def _check_range(name: str, value: float, low: float, high: Optional[float] = None) -> None:
    if value < low or (high is not None and value > high):
        bound = f">= {low}" if high is None else f"between {low} and {high}"
        raise ValueError(f"{name} must be {bound}, got {value}")


class ReconnectPolicy:
    """
    Delay schedule for repeated connect attempts.

    The delay for attempt ``n`` is ``initial_delay * backoff**n`` capped at
    ``max_delay``, then spread by +/- ``jitter_ratio``. With ``backoff=1.0``
    and no jitter every attempt waits the same fixed time.
    """

    def __init__(
        self,
        *,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        backoff: float = 2.0,
        jitter_ratio: float = 0.1,
        max_retries: Optional[int] = None,
        random_source=None,
    ):
        _check_range("initial_delay", initial_delay, 0.0)
        _check_range("max_delay", max_delay, initial_delay)
        _check_range("backoff", backoff, 1.0)
        _check_range("jitter_ratio", jitter_ratio, 0.0, 1.0)
        if max_retries is not None:
            _check_range("max_retries", max_retries, 0)
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.backoff = backoff
        self.jitter_ratio = jitter_ratio
        self.max_retries = max_retries
        self._rng = random_source or random
        self._attempts = 0

    def __repr__(self) -> str:
        return (
            f"ReconnectPolicy(initial_delay={self.initial_delay}, max_delay={self.max_delay}, "
            f"backoff={self.backoff}, attempts={self._attempts})"
        )

    def reset(self) -> None:
        """Start counting attempts from zero again."""
        self._attempts = 0

    def get_delay(self, attempt: Optional[int] = None) -> float:
        """Seconds to wait before ``attempt`` (the current attempt when omitted)."""
        n = self._attempts if attempt is None else attempt
        base = min(self.max_delay, self.initial_delay * self.backoff**n)
        if not self.jitter_ratio:
            return base
        spread = base * self.jitter_ratio
        return max(0.0, base + self._rng.uniform(-spread, spread))

    def should_retry(self, attempt: Optional[int] = None) -> bool:
        n = self._attempts if attempt is None else attempt
        return self.max_retries is None or n < self.max_retries

    def next_attempt(self) -> Tuple[float, bool]:
        """Consume one attempt; returns ``(delay, should_retry)`` for it."""
        result = (self.get_delay(), self.should_retry())
        self._attempts += 1
        return result

    def get_attempt_count(self) -> int:
        return self._attempts


class RetryPolicy:
    """
    Policy presets used by the session.

    Each call builds a fresh policy from the current ``BLEConfig`` values.
    """

    @staticmethod
    def _fixed(delay: float) -> ReconnectPolicy:
        return ReconnectPolicy(
            initial_delay=delay, max_delay=delay, backoff=1.0, jitter_ratio=0.0
        )

    @staticmethod
    def connect_retry() -> ReconnectPolicy:
        """Fixed wait between failed connect attempts."""
        return RetryPolicy._fixed(BLEConfig.CONNECT_RETRY_DELAY)

    @staticmethod
    def disconnect_settle() -> ReconnectPolicy:
        """Pause after an unsolicited disconnect before reconnecting."""
        return RetryPolicy._fixed(BLEConfig.DISCONNECT_SETTLE_DELAY)
