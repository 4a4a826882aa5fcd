from __future__ import annotations

import argparse
import dataclasses
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import Qt
from PyQt6.QtWidgets import QApplication

from panel_client.client_config import CONFIG_FILE, InitialClientSettings, load_initial_settings, resolve_config_dir
from panel_client.connection_manager import ConnectionManager, LinkEvent
from panel_client.countdown import TimeoutCountdown
from panel_client.debug_config import DEBUG_CONFIG_ENABLED, DebugConfig, load_debug_config
from panel_client.dispatcher import CommandDispatcher
from panel_client.display_mode import DisplayMode, DisplayModeTracker
from panel_client.logging_utils import build_rotating_file_handler, get_client_logger, resolve_logs_dir
from panel_client.panel_window import CountdownWindow, QtPresentation, ScorePanelWindow, SlideWindow
from panel_client.process_supervisor import LauncherFn, ProcessSupervisor
from panel_client.qt_runtime import QtTimerSlot, QtWebSocketTransport, launch_qt_player
from panel_client.settings_store import SETTINGS_FILE, SettingsStore
from panel_client.slide_compositor import QtSlideImaging
from panel_client.slideshow import SlideEvent, SlideshowEngine
from panel_client.transitions import TransitionMode
from panel_client.version import DEV_MODE_ENV_VAR, __version__

_CLIENT_LOGGER = get_client_logger()
LOG_FILE_NAME = "score-panel-client.log"
DEBUG_CONFIG_FILE = "debug.json"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Score panel display client")
    parser.add_argument("--config-dir", help="Directory holding panel_client.json, panel_settings.json and debug.json")
    parser.add_argument("--server-url", help="Controller WebSocket URL")
    parser.add_argument("--spot-dir", help="Directory scanned for video spots")
    parser.add_argument("--slide-dir", help="Directory scanned for slides")
    parser.add_argument("--player", dest="player_program", help="External media player executable")
    parser.add_argument(
        "--transition",
        dest="transition_mode",
        choices=[mode.value for mode in TransitionMode],
        help="Slideshow transition",
    )
    parser.add_argument("--screen", dest="screen_index", type=int, help="Index of the screen showing the panel")
    parser.add_argument("--windowed", action="store_true", help="Show windows normally instead of full screen")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def apply_cli_overrides(initial: InitialClientSettings, args: argparse.Namespace) -> InitialClientSettings:
    overrides = {}
    for name in ("server_url", "spot_dir", "slide_dir", "player_program", "transition_mode", "screen_index"):
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value
    if not overrides:
        return initial
    return dataclasses.replace(initial, **overrides)


def configure_logging(retention: int) -> Optional[Path]:
    """Attach the rotating log file to the client logger; falls back to stderr."""
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", "%Y-%m-%d %H:%M:%S")
    logs_dir = resolve_logs_dir(Path(__file__).resolve().parent)
    try:
        handler = build_rotating_file_handler(logs_dir, LOG_FILE_NAME, retention=retention, formatter=formatter)
    except OSError as exc:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        _CLIENT_LOGGER.addHandler(stream_handler)
        _CLIENT_LOGGER.warning("Failed to initialise file logging in %s: %s", logs_dir, exc)
        return None
    _CLIENT_LOGGER.addHandler(handler)
    log_path = logs_dir / LOG_FILE_NAME
    _CLIENT_LOGGER.debug("Client logging initialised: path=%s retention=%d", log_path, retention)
    return log_path


class PanelRuntime:
    """Builds the windows and components and wires their Qt signals together."""

    def __init__(
        self,
        app: QApplication,
        initial: InitialClientSettings,
        settings_store: SettingsStore,
        *,
        debug_config: DebugConfig = DebugConfig(),
        full_screen: bool = True,
        launcher: LauncherFn = launch_qt_player,
    ) -> None:
        self._app = app
        settings = settings_store.load()
        self.panel_window = ScorePanelWindow(mirrored=settings.mirrored, language=settings.language)
        self.slide_window = SlideWindow()
        self.countdown_window = CountdownWindow()
        self.presentation = QtPresentation(
            self.panel_window,
            self.slide_window,
            self.countdown_window,
            screen_index=initial.screen_index,
            full_screen=full_screen,
        )
        self.modes = DisplayModeTracker()
        self.slideshow = SlideshowEngine(
            imaging=QtSlideImaging(),
            steady_timer=QtTimerSlot(lambda: self.slideshow.handle(SlideEvent.STEADY_TIMER)),
            transition_timer=QtTimerSlot(lambda: self.slideshow.handle(SlideEvent.TRANSITION_TIMER)),
            show_frame=self.slide_window.show_frame,
            slide_dir=initial.slide_dir,
            mode=TransitionMode.parse(initial.transition_mode),
        )
        self.slide_window.set_resize_callback(self.slideshow.resize)
        self.supervisor = ProcessSupervisor(
            player_program=initial.player_program,
            launcher=launcher,
            mode_tracker=self.modes,
            show_panel=self.presentation.show_panel,
            hide_panel=self.presentation.hide_panel,
            on_closed=lambda slot: self.dispatcher.player_closed(slot),
            geometry_fn=self.presentation.panel_geometry,
            spot_dir=initial.spot_dir,
            max_crash_restarts=initial.max_crash_restarts,
        )
        self.countdown = TimeoutCountdown(
            tick_timer=QtTimerSlot(lambda: self.countdown.tick()),
            on_update=self.presentation.show_countdown,
            on_finished=self.presentation.hide_countdown,
        )
        self.transport = QtWebSocketTransport()
        self.connection = ConnectionManager(
            transport=self.transport,
            retry_timer=QtTimerSlot(lambda: self.connection.handle(LinkEvent.RETRY_TIMER)),
            heartbeat_timer=QtTimerSlot(lambda: self.connection.handle(LinkEvent.HEARTBEAT_TIMER)),
            on_message=lambda message: self.dispatcher.dispatch(message),
            on_closed=self._on_panel_closed,
            cleanup=self._stop_media,
            url=initial.server_url,
        )
        self.transport.bind(self.connection.handle)
        self.dispatcher = CommandDispatcher(
            presentation=self.presentation,
            supervisor=self.supervisor,
            slideshow=self.slideshow,
            mode_tracker=self.modes,
            settings_store=settings_store,
            send=self.connection.send,
            shutdown_link=self.connection.shutdown,
            terminate_fn=self._app.quit,
            countdown=self.countdown,
            settings=settings,
            slide_dir=initial.slide_dir,
            debug_config=debug_config,
        )

    def start(self) -> None:
        self.presentation.show_panel()
        self.dispatcher.save_settings()
        self.connection.start()

    def shutdown(self) -> None:
        self.countdown.stop()
        self.dispatcher.teardown()

    def _stop_media(self) -> None:
        self.supervisor.cleanup()
        if self.slideshow.running or self.modes.mode is DisplayMode.SLIDESHOW:
            self.dispatcher.stop_slideshow()

    def _on_panel_closed(self) -> None:
        _CLIENT_LOGGER.warning("Controller stopped answering; closing the panel")
        self._app.quit()


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config_dir = resolve_config_dir(args.config_dir)
    initial = apply_cli_overrides(load_initial_settings(config_dir / CONFIG_FILE), args)
    debug_config = load_debug_config(config_dir / DEBUG_CONFIG_FILE)
    retention = debug_config.panel_logs_to_keep or initial.client_log_retention
    configure_logging(retention)
    if not DEBUG_CONFIG_ENABLED:
        _CLIENT_LOGGER.debug(
            "debug.json ignored (release mode). Export %s=1 or use a -dev version to enable message tracing.",
            DEV_MODE_ENV_VAR,
        )

    _CLIENT_LOGGER.info("Starting score panel client %s (pid=%s)", __version__, os.getpid())
    _CLIENT_LOGGER.debug(
        "Loaded initial settings from %s: server=%s spots=%s slides=%s player=%s transition=%s",
        config_dir / CONFIG_FILE,
        initial.server_url,
        initial.spot_dir,
        initial.slide_dir,
        initial.player_program,
        initial.transition_mode,
    )
    if debug_config.trace_enabled:
        token_filter = ",".join(debug_config.trace_tokens) if debug_config.trace_tokens else "*"
        _CLIENT_LOGGER.debug("Message tracing enabled (tokens=%s)", token_filter)

    app = QApplication(sys.argv[:1])
    if not args.windowed:
        app.setOverrideCursor(Qt.CursorShape.BlankCursor)
    runtime = PanelRuntime(
        app,
        initial,
        SettingsStore(config_dir / SETTINGS_FILE),
        debug_config=debug_config,
        full_screen=not args.windowed,
    )
    runtime.start()

    exit_code = app.exec()
    runtime.shutdown()
    _CLIENT_LOGGER.info("Score panel client exiting with code %s", exit_code)
    return int(exit_code)
