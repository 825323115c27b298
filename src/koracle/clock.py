"""Coarse, monotonic time source shared by all writers and the KInfo cache.

Timestamps are whole seconds floored to the batch interval, so every
observation recorded within the same batch carries the same timestamp.
The clock never goes backwards even if the wall clock does.
"""

import time
from collections.abc import Callable


class BatchClock:
    """Monotonic batch-tick clock.

    Args:
        batch_seconds: Width of one batch in seconds (>= 1).
        time_source: Callable returning wall-clock seconds (defaults to time.time).
    """

    def __init__(
        self,
        batch_seconds: int = 1,
        time_source: Callable[[], float] = time.time,
    ) -> None:
        if batch_seconds < 1:
            raise ValueError(f"batch_seconds must be >= 1, got {batch_seconds}")
        self._batch_seconds = batch_seconds
        self._time_source = time_source
        self._last = 0

    def now(self) -> int:
        """Return the current batch tick in seconds."""
        tick = int(self._time_source()) // self._batch_seconds * self._batch_seconds
        if tick > self._last:
            self._last = tick
        return self._last
