from __future__ import annotations

from enum import Enum
from typing import Callable, Optional

from panel_client.logging_utils import get_client_logger

_LOGGER = get_client_logger("DisplayMode")


class DisplayMode(Enum):
    PANEL = "panel"
    SPOT_LOOP = "spot_loop"
    LIVE_CAMERA = "live_camera"
    SLIDESHOW = "slideshow"

    @property
    def uses_player(self) -> bool:
        return self in (DisplayMode.SPOT_LOOP, DisplayMode.LIVE_CAMERA)


class DisplayModeTracker:
    """Tracks which mode currently owns the secondary display."""

    def __init__(self, on_change: Optional[Callable[[DisplayMode, DisplayMode], None]] = None) -> None:
        self._mode = DisplayMode.PANEL
        self._on_change = on_change

    @property
    def mode(self) -> DisplayMode:
        return self._mode

    def can_enter(self, mode: DisplayMode) -> bool:
        if mode is DisplayMode.PANEL or self._mode is mode:
            return True
        return self._mode is DisplayMode.PANEL

    def enter(self, mode: DisplayMode) -> bool:
        """Switch to ``mode`` unless another non-panel mode owns the display."""
        if not self.can_enter(mode):
            _LOGGER.debug("Display mode %s rejected; %s is active", mode.value, self._mode.value)
            return False
        self._set(mode)
        return True

    def leave(self, mode: DisplayMode) -> None:
        """Return to the panel if ``mode`` is the active one."""
        if self._mode is mode:
            self._set(DisplayMode.PANEL)

    def reset(self) -> None:
        self._set(DisplayMode.PANEL)

    def _set(self, mode: DisplayMode) -> None:
        previous = self._mode
        self._mode = mode
        if previous is mode:
            return
        _LOGGER.debug("Display mode %s -> %s", previous.value, mode.value)
        if self._on_change is not None:
            try:
                self._on_change(previous, mode)
            except Exception:
                _LOGGER.warning("Display mode change hook failed", exc_info=True)
