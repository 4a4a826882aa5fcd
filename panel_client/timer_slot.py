from __future__ import annotations

from typing import Protocol


class TimerSlot(Protocol):
    """Repeating timer owned by one component; its timeout is wired by the host."""

    def start(self, interval_ms: int) -> None:
        """(Re)arm the timer; restarting an active timer resets its period."""

    def stop(self) -> None:
        """Stop the timer; safe on an already-stopped timer."""

    def is_active(self) -> bool:
        ...
