"""Exponential reconnect backoff.

Delay for attempt *n* (0-based) is ``min(maximum, base * factor**n)``.
The attempt counter is reset whenever a connection opens successfully.
"""

from __future__ import annotations

from sensorlink.errors import StreamConfigError

DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 30.0
DEFAULT_FACTOR = 2.0


class Backoff:
    """Stateful exponential backoff schedule.

    Usage::

        backoff = Backoff(base=1.0, maximum=30.0)
        delay = backoff.next_delay()   # 1.0, then 2.0, 4.0, ... capped at 30.0
        backoff.reset()                # after a successful open
    """

    def __init__(
        self,
        base: float = DEFAULT_BASE_DELAY,
        maximum: float = DEFAULT_MAX_DELAY,
        factor: float = DEFAULT_FACTOR,
    ) -> None:
        if base <= 0:
            raise StreamConfigError(f"Backoff base delay must be positive, got {base}")
        if maximum < base:
            raise StreamConfigError(
                f"Backoff maximum ({maximum}) must be >= base delay ({base})"
            )
        if factor < 1:
            raise StreamConfigError(f"Backoff factor must be >= 1, got {factor}")
        self._base = base
        self._maximum = maximum
        self._factor = factor
        self._attempt = 0

    @property
    def attempt(self) -> int:
        """Number of delays handed out since the last reset."""
        return self._attempt

    @property
    def base(self) -> float:
        return self._base

    @property
    def maximum(self) -> float:
        return self._maximum

    def delay(self, attempt: int) -> float:
        """Return the delay in seconds for a given 0-based *attempt*."""
        if attempt < 0:
            raise StreamConfigError(f"attempt must be >= 0, got {attempt}")
        # Stop multiplying once past the cap so huge attempt counts never overflow.
        delay = self._base
        for _ in range(attempt):
            delay *= self._factor
            if delay >= self._maximum:
                return self._maximum
        return min(self._maximum, delay)

    def next_delay(self) -> float:
        """Return the delay for the current attempt and advance the counter."""
        wait = self.delay(self._attempt)
        self._attempt += 1
        return wait

    def reset(self) -> None:
        """Reset the attempt counter (call after a successful open)."""
        self._attempt = 0
