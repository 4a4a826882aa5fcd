from __future__ import annotations

import math
import time
from typing import Callable, Optional

from panel_client.logging_utils import get_client_logger
from panel_client.timer_slot import TimerSlot

_LOGGER = get_client_logger("Countdown")

TICK_INTERVAL_MS = 100


class TimeoutCountdown:
    """Timeout clock shown over the panel; ticks every 100 ms against a deadline."""

    def __init__(
        self,
        *,
        tick_timer: TimerSlot,
        on_update: Callable[[int], None],
        on_finished: Callable[[], None],
        time_source: Callable[[], float] = time.monotonic,
    ) -> None:
        self._timer = tick_timer
        self._on_update = on_update
        self._on_finished = on_finished
        self._time = time_source
        self._deadline: Optional[float] = None
        self._shown: Optional[int] = None

    @property
    def running(self) -> bool:
        return self._deadline is not None

    def remaining_seconds(self) -> int:
        if self._deadline is None:
            return 0
        return max(0, math.ceil(self._deadline - self._time()))

    def start(self, seconds: int) -> None:
        _LOGGER.debug("Timeout countdown started (%ss)", seconds)
        self._deadline = self._time() + max(0, seconds)
        self._shown = None
        self._timer.start(TICK_INTERVAL_MS)
        self.tick()

    def stop(self) -> None:
        if self._deadline is None:
            return
        self._deadline = None
        self._shown = None
        self._timer.stop()
        self._on_finished()

    def tick(self) -> None:
        if self._deadline is None:
            self._timer.stop()
            return
        remaining = self.remaining_seconds()
        if remaining <= 0:
            self.stop()
            return
        if remaining != self._shown:
            self._shown = remaining
            self._on_update(remaining)
