"""Applies controller commands to the panel, the player supervisor and the slideshow."""
from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional, Tuple

from panel_client.command_codec import compose_message, decode_int, extract_token, iter_tokens, parse_int
from panel_client.countdown import TimeoutCountdown
from panel_client.debug_config import DebugConfig
from panel_client.display_mode import DisplayMode, DisplayModeTracker
from panel_client.logging_utils import get_client_logger
from panel_client.presentation import Presentation
from panel_client.process_supervisor import PlayerSlot, ProcessSupervisor
from panel_client.score_fields import ScoreState, decode_score_fields, decode_timeout_seconds
from panel_client.settings_store import PanelSettings, SettingsStore
from panel_client.slideshow import SlideshowEngine

_LOGGER = get_client_logger("Dispatcher")

CLOSED_TOKENS = {
    PlayerSlot.SPOT: "closed_spot",
    PlayerSlot.CAMERA: "closed_live",
}

COMMAND_ORDER: Tuple[str, ...] = (
    "kill",
    "spotdir",
    "spotloop",
    "endspotloop",
    "slidedir",
    "slideshow",
    "endslideshow",
    "live",
    "endlive",
    "getOrientation",
    "setOrientation",
    "getScoreOnly",
    "setScoreOnly",
    "language",
)


class CommandDispatcher:
    """Decodes each inbound frame and applies every recognised token once.

    Tokens are independent: a bad value or a failing collaborator skips that
    token only. Score fields go first, the commands follow in ``COMMAND_ORDER``.
    """

    def __init__(
        self,
        *,
        presentation: Presentation,
        supervisor: ProcessSupervisor,
        slideshow: SlideshowEngine,
        mode_tracker: DisplayModeTracker,
        settings_store: SettingsStore,
        send: Callable[[str], bool],
        shutdown_link: Callable[[], None],
        terminate_fn: Callable[[], None],
        countdown: Optional[TimeoutCountdown] = None,
        settings: Optional[PanelSettings] = None,
        slide_dir: Optional[str] = None,
        debug_config: DebugConfig = DebugConfig(),
    ) -> None:
        self._presentation = presentation
        self._supervisor = supervisor
        self._slideshow = slideshow
        self._modes = mode_tracker
        self._store = settings_store
        self._send = send
        self._shutdown_link = shutdown_link
        self._terminate_fn = terminate_fn
        self._countdown = countdown
        self._settings = settings if settings is not None else settings_store.load()
        self._slide_dir = slide_dir
        self._debug_config = debug_config
        self._score = ScoreState()
        self._terminating = False
        self._handlers = {
            "kill": self._on_kill,
            "spotdir": self._on_spot_dir,
            "spotloop": self._on_spot_loop,
            "endspotloop": self._on_end_spot_loop,
            "slidedir": self._on_slide_dir,
            "slideshow": self._on_slideshow,
            "endslideshow": self._on_end_slideshow,
            "live": self._on_live,
            "endlive": self._on_end_live,
            "getOrientation": self._on_get_orientation,
            "setOrientation": self._on_set_orientation,
            "getScoreOnly": self._on_get_score_only,
            "setScoreOnly": self._on_set_score_only,
            "language": self._on_language,
        }

    # Properties -----------------------------------------------------------

    @property
    def settings(self) -> PanelSettings:
        return self._settings

    @property
    def score(self) -> ScoreState:
        return self._score

    @property
    def slide_dir(self) -> Optional[str]:
        return self._slide_dir

    # Entry points ---------------------------------------------------------

    def dispatch(self, message: str) -> None:
        if self._terminating:
            return
        self._trace(message)
        self._apply_score_fields(message)
        for name in COMMAND_ORDER:
            value = extract_token(message, name)
            if value is None:
                continue
            try:
                self._handlers[name](value)
            except Exception:
                _LOGGER.warning("Command <%s> failed", name, exc_info=True)
            if self._terminating:
                return

    def player_closed(self, slot: PlayerSlot) -> None:
        """Supervisor completion: tell the controller the player is gone."""
        token = CLOSED_TOKENS[slot]
        _LOGGER.debug("Player %s closed; notifying controller", slot.value)
        self._send(compose_message(token, 1))

    def start_slideshow(self) -> bool:
        if self._slideshow.running:
            _LOGGER.debug("Slideshow already running; keeping its slide directory")
            return False
        if self._supervisor.has_process():
            _LOGGER.debug("Slideshow start ignored while a player is running")
            return False
        if not self._modes.enter(DisplayMode.SLIDESHOW):
            return False
        self._slideshow.set_slide_dir(self._slide_dir)
        self._presentation.show_slides()
        self._presentation.hide_panel()
        self._slideshow.start()
        return True

    def stop_slideshow(self) -> None:
        self._slideshow.stop()
        self._modes.leave(DisplayMode.SLIDESHOW)
        self._presentation.show_panel()
        self._presentation.hide_slides()

    def save_settings(self) -> bool:
        return self._store.save(self._settings)

    def teardown(self) -> None:
        """Stop players and slides, persist settings and close the link."""
        self._supervisor.cleanup()
        if self._slideshow.running:
            self._slideshow.stop()
        self._modes.reset()
        self.save_settings()
        self._shutdown_link()

    # Score fields ---------------------------------------------------------

    def _apply_score_fields(self, message: str) -> None:
        try:
            values = decode_score_fields(message)
            if values:
                self._score = self._score.updated(values)
                self._presentation.update_score(self._score)
        except Exception:
            _LOGGER.warning("Score update failed", exc_info=True)
        if self._countdown is None:
            return
        try:
            seconds = extract_token(message, "startTimeout")
            if seconds is not None:
                self._countdown.start(decode_timeout_seconds(seconds))
            if extract_token(message, "stopTimeout") is not None:
                self._countdown.stop()
        except Exception:
            _LOGGER.warning("Timeout countdown update failed", exc_info=True)

    # Command handlers -----------------------------------------------------

    def _on_kill(self, value: str) -> None:
        if decode_int(value, minimum=0, maximum=1, fallback=0) != 1:
            return
        _LOGGER.info("Kill requested by the controller")
        self._terminating = True
        self.teardown()
        self._terminate_fn()

    def _on_spot_dir(self, value: str) -> None:
        self._supervisor.set_spot_dir(value)

    def _on_spot_loop(self, value: str) -> None:
        if self._settings.score_only:
            _LOGGER.debug("Spot loop ignored in score-only mode")
            return
        self._supervisor.start_spot_loop()

    def _on_end_spot_loop(self, value: str) -> None:
        self._supervisor.stop_spot_loop()

    def _on_slide_dir(self, value: str) -> None:
        self._slide_dir = str(Path(value).expanduser()) if value else None

    def _on_slideshow(self, value: str) -> None:
        if self._settings.score_only:
            _LOGGER.debug("Slideshow ignored in score-only mode")
            return
        self.start_slideshow()

    def _on_end_slideshow(self, value: str) -> None:
        self.stop_slideshow()

    def _on_live(self, value: str) -> None:
        if self._settings.score_only:
            _LOGGER.debug("Live camera ignored in score-only mode")
            return
        self._supervisor.start_live_camera()

    def _on_end_live(self, value: str) -> None:
        self._supervisor.stop_live_camera()

    def _on_get_orientation(self, value: str) -> None:
        self._send(compose_message("orientation", self._settings.orientation))

    def _on_set_orientation(self, value: str) -> None:
        orientation = parse_int(value)
        if orientation is None:
            _LOGGER.warning("Illegal orientation value received: %r", value)
            return
        self._settings = self._settings.with_orientation(orientation)
        self.save_settings()
        self._presentation.apply_orientation(self._settings.mirrored)

    def _on_get_score_only(self, value: str) -> None:
        self._send(compose_message("isScoreOnly", self._settings.score_only))

    def _on_set_score_only(self, value: str) -> None:
        flag = parse_int(value)
        if flag is None:
            _LOGGER.warning("Illegal score-only value received: %r", value)
            return
        self._settings = self._settings.with_score_only(flag != 0)
        if self._settings.score_only:
            self._supervisor.cleanup()
            if self._slideshow.running or self._modes.mode is DisplayMode.SLIDESHOW:
                self._slideshow.stop()
                self._modes.leave(DisplayMode.SLIDESHOW)
                self._presentation.hide_slides()
            self._presentation.show_panel()
        self.save_settings()

    def _on_language(self, value: str) -> None:
        self._settings = self._settings.with_language(value)
        _LOGGER.debug("Language set to %s", self._settings.language)
        self.save_settings()
        self._presentation.apply_language(self._settings.language)

    # Helpers --------------------------------------------------------------

    def _trace(self, message: str) -> None:
        if not self._debug_config.trace_enabled:
            return
        for name, value in iter_tokens(message):
            if self._debug_config.traces(name):
                _LOGGER.debug("trace token=<%s> value=%r", name, value)
