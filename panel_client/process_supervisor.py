"""Supervises the external media player used for spot loops and the live camera."""
from __future__ import annotations

import shlex
import time
from collections import deque
from enum import Enum
from typing import Callable, Deque, Dict, Optional, Protocol, Sequence, Tuple

from panel_client.display_mode import DisplayMode, DisplayModeTracker
from panel_client.logging_utils import get_client_logger
from panel_client.media_queue import VIDEO_EXTENSIONS, MediaDirectory

_LOGGER = get_client_logger("ProcessSupervisor")

START_TIMEOUT_MS = 3000
FINISH_TIMEOUT_MS = 3000
PLAYER_FLAGS: Tuple[str, ...] = ("-noborder", "-sn", "-autoexit", "-fs")

Geometry = Tuple[int, int, int, int]


class ExitStatus(Enum):
    NORMAL = "normal"
    CRASHED = "crashed"


class PlayerSlot(Enum):
    SPOT = "spot"
    # Reserved for a dedicated camera pipeline; live starts currently fill SPOT.
    CAMERA = "camera"


class PlayerHandle(Protocol):
    program: str
    arguments: Sequence[str]

    def wait_for_started(self, timeout_ms: int) -> bool:
        ...

    def terminate(self) -> None:
        ...

    def kill(self) -> None:
        ...

    def wait_for_finished(self, timeout_ms: int) -> bool:
        ...


FinishedFn = Callable[[int, ExitStatus], None]
LauncherFn = Callable[[str, Sequence[str], FinishedFn], PlayerHandle]


def build_player_arguments(media_path: str, geometry: Optional[Geometry]) -> list[str]:
    """Fixed borderless/full-screen flags, optional display placement, then the media path."""
    arguments = list(PLAYER_FLAGS)
    if geometry is not None:
        x, y, width, height = geometry
        arguments.extend(["-left", str(x), "-top", str(y), "-x", str(width), "-y", str(height)])
    arguments.append(media_path)
    return arguments


class ProcessSupervisor:
    """Runs at most one player process and keeps it exclusive with the slideshow."""

    def __init__(
        self,
        *,
        player_program: str,
        launcher: LauncherFn,
        mode_tracker: DisplayModeTracker,
        show_panel: Callable[[], None],
        hide_panel: Callable[[], None],
        on_closed: Callable[[PlayerSlot], None],
        geometry_fn: Callable[[], Optional[Geometry]] = lambda: None,
        spot_dir: Optional[str] = None,
        max_crash_restarts: int = 3,
        crash_window: float = 60.0,
        time_source: Callable[[], float] = time.monotonic,
    ) -> None:
        self._program = player_program
        self._launcher = launcher
        self._modes = mode_tracker
        self._show_panel = show_panel
        self._hide_panel = hide_panel
        self._on_closed = on_closed
        self._geometry_fn = geometry_fn
        self._spots = MediaDirectory(spot_dir, VIDEO_EXTENSIONS)
        self._handles: Dict[PlayerSlot, Optional[PlayerHandle]] = {
            PlayerSlot.SPOT: None,
            PlayerSlot.CAMERA: None,
        }
        self._stop_requested: Dict[PlayerSlot, bool] = {slot: False for slot in PlayerSlot}
        self._max_crash_restarts = max(1, max_crash_restarts)
        self._crash_window = crash_window
        self._crash_times: Deque[float] = deque(maxlen=self._max_crash_restarts)
        self._time = time_source

    # Public API -----------------------------------------------------------

    @property
    def spot_dir(self):
        return self._spots.directory

    def set_spot_dir(self, directory: Optional[str]) -> None:
        self._spots.set_directory(directory)

    @property
    def spot_cursor(self) -> int:
        return self._spots.queue.cursor

    def handle(self, slot: PlayerSlot) -> Optional[PlayerHandle]:
        return self._handles[slot]

    def has_process(self) -> bool:
        return any(handle is not None for handle in self._handles.values())

    def start_spot_loop(self) -> bool:
        if self.has_process():
            _LOGGER.debug("Spot loop start ignored; a player process is already running")
            return False
        if self._modes.mode is DisplayMode.SLIDESHOW:
            _LOGGER.debug("Spot loop start ignored while the slideshow is running")
            return False
        self._stop_requested[PlayerSlot.SPOT] = False
        self._crash_times.clear()
        queue = self._spots.rescan()
        _LOGGER.debug("Found %d spots in %s", len(queue), self._spots.directory)
        if queue.is_empty:
            _LOGGER.info("No spots available; reporting spot loop closed")
            self._on_closed(PlayerSlot.SPOT)
            return False
        if not self._launch_next_spot():
            self._on_closed(PlayerSlot.SPOT)
            return False
        return True

    def stop_spot_loop(self) -> None:
        handle = self._handles[PlayerSlot.SPOT]
        if handle is None:
            _LOGGER.debug("Spot loop stop ignored; no spot is playing")
            return
        self._stop_requested[PlayerSlot.SPOT] = True
        _LOGGER.debug("Requesting spot player termination")
        handle.terminate()

    def start_live_camera(self) -> bool:
        # Live camera has no pipeline of its own yet; it plays the spot loop.
        return self.start_spot_loop()

    def stop_live_camera(self) -> None:
        handle = self._handles[PlayerSlot.CAMERA]
        if handle is not None:
            self._stop_requested[PlayerSlot.CAMERA] = True
            _LOGGER.debug("Requesting camera player termination")
            handle.terminate()
            return
        self._on_closed(PlayerSlot.CAMERA)
        self.stop_spot_loop()

    def cleanup(self) -> None:
        """Terminate every player with a bounded wait; emits no notifications."""
        for slot in PlayerSlot:
            handle = self._handles[slot]
            if handle is None:
                continue
            self._handles[slot] = None
            self._stop_requested[slot] = True
            _LOGGER.info("Closing %s player (%s)", slot.value, self._format_command(handle))
            try:
                handle.terminate()
                if not handle.wait_for_finished(FINISH_TIMEOUT_MS):
                    _LOGGER.warning("Killing unresponsive %s player", slot.value)
                    handle.kill()
            except Exception:
                _LOGGER.warning("Failed to stop %s player cleanly", slot.value, exc_info=True)
        if self._modes.mode.uses_player:
            self._modes.reset()

    # Process events -------------------------------------------------------

    def handle_exit(self, slot: PlayerSlot, handle: PlayerHandle, exit_code: int, status: ExitStatus) -> None:
        if self._handles[slot] is not handle:
            _LOGGER.debug("Ignoring exit of a discarded %s player (code=%s)", slot.value, exit_code)
            return
        _LOGGER.debug("%s player exited (code=%s, status=%s)", slot.value.capitalize(), exit_code, status.value)
        if self._stop_requested[slot] or slot is PlayerSlot.CAMERA:
            self._finish(slot)
            return
        if status is ExitStatus.CRASHED and not self._can_restart():
            _LOGGER.warning("Spot player crashed repeatedly; ending the spot loop")
            self._finish(slot)
            return
        queue = self._spots.rescan()
        if queue.is_empty:
            _LOGGER.info("No spots left to play; ending the spot loop")
            self._finish(slot)
            return
        self._handles[slot] = None
        if not self._launch_next_spot():
            self._show_panel()
            self._on_closed(slot)

    # Internal helpers -----------------------------------------------------

    def _launch_next_spot(self) -> bool:
        media = self._spots.queue.current
        if media is None:
            return False
        arguments = build_player_arguments(str(media), self._geometry_fn())
        holder: list[PlayerHandle] = []

        def _finished(exit_code: int, status: ExitStatus) -> None:
            if holder:
                self.handle_exit(PlayerSlot.SPOT, holder[0], exit_code, status)

        try:
            handle = self._launcher(self._program, arguments, _finished)
        except Exception:
            _LOGGER.warning("Unable to launch spot player %s", self._program, exc_info=True)
            self._modes.leave(DisplayMode.SPOT_LOOP)
            return False
        holder.append(handle)
        self._handles[PlayerSlot.SPOT] = handle
        if not handle.wait_for_started(START_TIMEOUT_MS):
            _LOGGER.warning("Spot player did not start: %s", self._format_command(handle))
            self._handles[PlayerSlot.SPOT] = None
            try:
                handle.kill()
            except Exception:
                _LOGGER.debug("Kill after failed start raised", exc_info=True)
            self._modes.leave(DisplayMode.SPOT_LOOP)
            return False
        _LOGGER.info("Now playing: %s", media)
        self._spots.advance()
        self._modes.enter(DisplayMode.SPOT_LOOP)
        self._hide_panel()
        return True

    def _finish(self, slot: PlayerSlot) -> None:
        self._handles[slot] = None
        self._stop_requested[slot] = False
        self._modes.leave(DisplayMode.SPOT_LOOP if slot is PlayerSlot.SPOT else DisplayMode.LIVE_CAMERA)
        self._show_panel()
        self._on_closed(slot)

    def _can_restart(self) -> bool:
        now = self._time()
        self._crash_times.append(now)
        if len(self._crash_times) < self._max_crash_restarts:
            return True
        window = now - self._crash_times[0]
        if window <= self._crash_window:
            _LOGGER.debug("Spot restart throttled: %d crashes within %.1fs", len(self._crash_times), window)
            return False
        return True

    @staticmethod
    def _format_command(handle: PlayerHandle) -> str:
        try:
            return shlex.join([handle.program, *handle.arguments])
        except Exception:
            return " ".join([str(handle.program), *map(str, handle.arguments)])
