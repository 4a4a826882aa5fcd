"""Two-image slideshow engine driven by a steady timer and a transition timer."""
from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Sequence, Tuple

from panel_client.logging_utils import get_client_logger
from panel_client.media_queue import IMAGE_EXTENSIONS, MediaDirectory, MediaQueue
from panel_client.timer_slot import TimerSlot
from panel_client.transitions import DEFAULT_GRANULARITY, Layer, SlideRole, TransitionMode, plan_frame

_LOGGER = get_client_logger("Slideshow")

STEADY_SHOW_TIME_MS = 5000
TRANSITION_TIME_MS = 3000
MIN_VIEWPORT = (320, 240)


class SlideEvent(Enum):
    STEADY_TIMER = "steady_timer"
    TRANSITION_TIMER = "transition_timer"


class SlideshowState(Enum):
    IDLE = "idle"
    SHOWING = "showing"
    TRANSITIONING = "transitioning"


class SlideImaging(Protocol):
    """Image operations the engine needs; the Qt compositor implements them."""

    def load(self, path: Path) -> Optional[Any]:
        ...

    def fit(self, image: Any, width: int, height: int) -> Any:
        ...

    def compose(self, layers: Sequence[Layer], views: Mapping[SlideRole, Any], width: int, height: int) -> Any:
        ...


class SlideshowEngine:
    """Keeps a present/next image pair and blends between them tick by tick."""

    def __init__(
        self,
        *,
        imaging: SlideImaging,
        steady_timer: TimerSlot,
        transition_timer: TimerSlot,
        show_frame: Callable[[Any], None],
        slide_dir: Optional[str] = None,
        mode: TransitionMode = TransitionMode.FADE,
        steady_ms: int = STEADY_SHOW_TIME_MS,
        transition_ms: int = TRANSITION_TIME_MS,
        granularity: int = DEFAULT_GRANULARITY,
        viewport: Tuple[int, int] = MIN_VIEWPORT,
    ) -> None:
        self._imaging = imaging
        self._steady = steady_timer
        self._transition = transition_timer
        self._show_frame = show_frame
        self._slides = MediaDirectory(slide_dir, IMAGE_EXTENSIONS)
        self._mode = mode
        self._steady_ms = max(1, int(steady_ms))
        self._transition_ms = max(1, int(transition_ms))
        self._granularity = max(1, int(granularity))
        self._viewport = self._clamp_viewport(viewport)
        self._state = SlideshowState.IDLE
        self._running = False
        self._step = 0
        self._present: Optional[Any] = None
        self._next: Optional[Any] = None
        self._views: Dict[SlideRole, Any] = {}
        self._frame: Optional[Any] = None

    # Properties -----------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    @property
    def state(self) -> SlideshowState:
        return self._state

    @property
    def step(self) -> int:
        return self._step

    @property
    def granularity(self) -> int:
        return self._granularity

    @property
    def mode(self) -> TransitionMode:
        return self._mode

    @property
    def present(self) -> Optional[Any]:
        return self._present

    @property
    def next_image(self) -> Optional[Any]:
        return self._next

    @property
    def frame(self) -> Optional[Any]:
        return self._frame

    @property
    def queue(self) -> MediaQueue:
        return self._slides.queue

    @property
    def viewport(self) -> Tuple[int, int]:
        return self._viewport

    @property
    def transition_interval_ms(self) -> int:
        return max(1, self._transition_ms // self._granularity)

    def is_ready(self) -> bool:
        return self._present is not None and self._next is not None

    # Control --------------------------------------------------------------

    def set_slide_dir(self, directory: Optional[str]) -> None:
        if self._slides.set_directory(directory):
            self._present = None
            self._next = None
            self._views = {}

    def set_mode(self, mode: TransitionMode) -> None:
        self._mode = mode

    def start(self) -> None:
        if self._running:
            return
        queue = self._slides.rescan()
        if queue.is_empty:
            _LOGGER.info("No slides in %s; polling every %d ms", self._slides.directory, self._steady_ms)
        elif self._present is None:
            self._load_initial_pair()
        self._steady.start(self._steady_ms)
        self._running = True
        self._state = SlideshowState.SHOWING

    def stop(self) -> None:
        self._steady.stop()
        self._transition.stop()
        self._running = False
        self._state = SlideshowState.IDLE

    def pause(self) -> None:
        self.stop()

    def handle(self, event: SlideEvent) -> None:
        if event is SlideEvent.STEADY_TIMER:
            self._on_steady_timer()
        elif event is SlideEvent.TRANSITION_TIMER:
            self._on_transition_timer()

    def resize(self, width: int, height: int) -> None:
        self._viewport = self._clamp_viewport((width, height))
        if not self.is_ready():
            return
        self._rebuild_views()
        self._render()

    # Timer handlers -------------------------------------------------------

    def _on_steady_timer(self) -> None:
        queue = self._slides.rescan()
        if queue.is_empty:
            return
        if not self.is_ready() and not self._load_initial_pair():
            return
        if self._mode is TransitionMode.ABRUPT:
            self._commit_next()
            return
        self._steady.stop()
        self._step = 0
        self._state = SlideshowState.TRANSITIONING
        self._transition.start(self.transition_interval_ms)

    def _on_transition_timer(self) -> None:
        if not self.is_ready():
            # Images were dropped mid-transition; the next steady tick reloads them.
            self._transition.stop()
            self._step = 0
            self._state = SlideshowState.SHOWING
            self._steady.start(self._steady_ms)
            return
        self._step += 1
        if self._step > self._granularity:
            self._transition.stop()
            self._commit_next()
            self._state = SlideshowState.SHOWING
            self._steady.start(self._steady_ms)
            return
        self._render()

    # Image management -----------------------------------------------------

    def _load_initial_pair(self) -> bool:
        current = self._slides.queue.current
        if current is None:
            return False
        present = self._imaging.load(current)
        if present is None:
            _LOGGER.warning("Unable to load slide %s", current)
            self._slides.advance()
            return False
        upcoming = self._slides.advance().current
        following = self._imaging.load(upcoming) if upcoming is not None else None
        self._present = present
        self._next = following if following is not None else present
        self._step = 0
        self._rebuild_views()
        self._render()
        return True

    def _commit_next(self) -> None:
        self._step = 0
        self._present = self._next
        if SlideRole.NEXT in self._views:
            self._views[SlideRole.PRESENT] = self._views[SlideRole.NEXT]
        queue = self._slides.rescan()
        if queue.is_empty:
            self._render()
            return
        upcoming = self._slides.advance().current
        loaded = self._imaging.load(upcoming) if upcoming is not None else None
        if loaded is None:
            _LOGGER.warning("Unable to load slide %s; repeating the current one", upcoming)
        else:
            self._next = loaded
        width, height = self._viewport
        self._views[SlideRole.NEXT] = self._imaging.fit(self._next, width, height)
        self._render()

    def _rebuild_views(self) -> None:
        width, height = self._viewport
        self._views = {
            SlideRole.PRESENT: self._imaging.fit(self._present, width, height),
            SlideRole.NEXT: self._imaging.fit(self._next, width, height),
        }

    def _render(self) -> None:
        width, height = self._viewport
        layers = plan_frame(self._mode, self._step, self._granularity, width, height)
        self._frame = self._imaging.compose(layers, self._views, width, height)
        self._show_frame(self._frame)

    @staticmethod
    def _clamp_viewport(size: Tuple[int, int]) -> Tuple[int, int]:
        width, height = size
        return max(MIN_VIEWPORT[0], int(width)), max(MIN_VIEWPORT[1], int(height))
