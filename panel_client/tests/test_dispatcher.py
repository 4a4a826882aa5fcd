from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

from panel_client.connection_manager import ConnectionManager, LinkEvent, LinkState
from panel_client.countdown import TimeoutCountdown
from panel_client.debug_config import DebugConfig
from panel_client.dispatcher import CommandDispatcher
from panel_client.display_mode import DisplayMode, DisplayModeTracker
from panel_client.process_supervisor import ExitStatus, PlayerSlot, ProcessSupervisor
from panel_client.settings_store import PanelSettings, SettingsStore
from panel_client.slideshow import SlideEvent, SlideshowEngine, SlideshowState


class DummyTimer:
    def __init__(self) -> None:
        self.active = False

    def start(self, interval_ms: int) -> None:
        self.active = True

    def stop(self) -> None:
        self.active = False

    def is_active(self) -> bool:
        return self.active


class FakeTransport:
    def __init__(self) -> None:
        self.sent: List[str] = []
        self.valid = True

    def open(self, url: str) -> None:
        return None

    def close(self) -> None:
        self.valid = False

    def send_text(self, message: str) -> int:
        self.sent.append(message)
        return len(message.encode("utf-8"))

    def is_valid(self) -> bool:
        return self.valid


class FakeHandle:
    def __init__(self, program, arguments, on_finished) -> None:
        self.program = program
        self.arguments = list(arguments)
        self.on_finished = on_finished
        self.terminated = False

    def wait_for_started(self, timeout_ms: int) -> bool:
        return True

    def terminate(self) -> None:
        self.terminated = True

    def kill(self) -> None:
        return None

    def wait_for_finished(self, timeout_ms: int) -> bool:
        return True


class FakeImaging:
    def load(self, path: Path):
        return path.name

    def fit(self, image, width, height):
        return image

    def compose(self, layers, views, width, height):
        return tuple(views[layer.role] for layer in layers)


class RecordingPresentation:
    def __init__(self) -> None:
        self.panel_visible = True
        self.slides_visible = False
        self.scores = []
        self.mirrored: Optional[bool] = None
        self.language: Optional[str] = None
        self.countdown: List[object] = []

    def show_panel(self) -> None:
        self.panel_visible = True

    def hide_panel(self) -> None:
        self.panel_visible = False

    def show_slides(self) -> None:
        self.slides_visible = True

    def hide_slides(self) -> None:
        self.slides_visible = False

    def update_score(self, state) -> None:
        self.scores.append(state)

    def apply_orientation(self, mirrored: bool) -> None:
        self.mirrored = mirrored

    def apply_language(self, language: str) -> None:
        self.language = language

    def show_countdown(self, seconds: int) -> None:
        self.countdown.append(seconds)

    def hide_countdown(self) -> None:
        self.countdown.append("hidden")

    def panel_geometry(self):
        return None


class Harness:
    def __init__(self, tmp_path: Path, settings: Optional[PanelSettings] = None) -> None:
        self.spot_dir = tmp_path / "spots"
        self.slide_dir = tmp_path / "slides"
        self.spot_dir.mkdir()
        self.slide_dir.mkdir()
        self.settings_path = tmp_path / "panel_settings.json"
        self.presentation = RecordingPresentation()
        self.modes = DisplayModeTracker()
        self.handles: List[FakeHandle] = []
        self.terminated = 0
        self.clock = [0.0]
        self.transport = FakeTransport()
        self.connection = ConnectionManager(
            transport=self.transport,
            retry_timer=DummyTimer(),
            heartbeat_timer=DummyTimer(),
            on_message=lambda message: self.dispatcher.dispatch(message),
            on_closed=lambda: None,
            heartbeat_source=lambda: 3500,
            host_name_fn=lambda: "host",
        )
        self.supervisor = ProcessSupervisor(
            player_program="ffplay",
            launcher=self._launch,
            mode_tracker=self.modes,
            show_panel=self.presentation.show_panel,
            hide_panel=self.presentation.hide_panel,
            on_closed=lambda slot: self.dispatcher.player_closed(slot),
            spot_dir=str(self.spot_dir),
        )
        self.slide_steady = DummyTimer()
        self.slide_transition = DummyTimer()
        self.slideshow = SlideshowEngine(
            imaging=FakeImaging(),
            steady_timer=self.slide_steady,
            transition_timer=self.slide_transition,
            show_frame=lambda frame: None,
        )
        self.countdown = TimeoutCountdown(
            tick_timer=DummyTimer(),
            on_update=self.presentation.show_countdown,
            on_finished=self.presentation.hide_countdown,
            time_source=lambda: self.clock[0],
        )
        self.store = SettingsStore(self.settings_path)
        self.dispatcher = CommandDispatcher(
            presentation=self.presentation,
            supervisor=self.supervisor,
            slideshow=self.slideshow,
            mode_tracker=self.modes,
            settings_store=self.store,
            send=self.connection.send,
            shutdown_link=self.connection.shutdown,
            terminate_fn=self._terminate,
            countdown=self.countdown,
            settings=settings or PanelSettings(),
            slide_dir=str(self.slide_dir),
        )
        self.connection.start()
        self.connection.handle(LinkEvent.RETRY_TIMER)
        self.connection.handle(LinkEvent.CONNECTED)
        self.transport.sent.clear()

    def _launch(self, program, arguments, on_finished):
        handle = FakeHandle(program, arguments, on_finished)
        self.handles.append(handle)
        return handle

    def _terminate(self) -> None:
        self.terminated += 1

    def receive(self, message: str) -> None:
        self.connection.handle(LinkEvent.TEXT_MESSAGE, message)

    def add_spot(self, name: str = "spot.mp4") -> None:
        (self.spot_dir / name).write_bytes(b"video")

    def add_slide(self, name: str = "slide.png") -> None:
        (self.slide_dir / name).write_bytes(b"img")

    def saved(self) -> dict:
        return json.loads(self.settings_path.read_text(encoding="utf-8"))


def test_get_orientation_replies_normal(tmp_path):
    harness = Harness(tmp_path)
    harness.receive("<getOrientation>1</getOrientation>")
    assert harness.transport.sent == ["<orientation>0</orientation>"]


def test_spot_loop_with_empty_directory_reports_closed(tmp_path):
    harness = Harness(tmp_path)
    harness.receive("<spotloop>1</spotloop>")
    assert harness.transport.sent == ["<closed_spot>1</closed_spot>"]
    assert harness.handles == []


def test_score_only_terminates_video_and_suppresses_starts(tmp_path):
    harness = Harness(tmp_path)
    harness.add_spot()
    harness.add_slide()
    harness.receive("<spotloop>1</spotloop>")
    assert harness.modes.mode is DisplayMode.SPOT_LOOP
    video = harness.handles[-1]

    harness.receive("<setScoreOnly>1</setScoreOnly>")

    assert video.terminated
    assert harness.supervisor.has_process() is False
    assert harness.presentation.panel_visible
    assert harness.saved()["panel/scoreOnly"] is True

    harness.receive("<slideshow>1</slideshow><live>1</live><spotloop>1</spotloop>")
    assert not harness.slideshow.running
    assert len(harness.handles) == 1

    harness.receive("<setScoreOnly>0</setScoreOnly>")
    harness.receive("<slideshow>1</slideshow>")
    assert harness.slideshow.running
    assert harness.modes.mode is DisplayMode.SLIDESHOW


def test_heartbeat_round_trip_without_teardown(tmp_path):
    harness = Harness(tmp_path)
    assert harness.connection.awaiting_reply

    harness.receive("<servizio>1</servizio>")
    assert not harness.connection.awaiting_reply

    harness.connection.handle(LinkEvent.HEARTBEAT_TIMER)
    assert harness.transport.sent == ["<getStatus>host</getStatus>"]
    assert harness.connection.state is LinkState.AWAITING_HEARTBEAT
    assert harness.terminated == 0


def test_score_fields_are_clamped(tmp_path):
    harness = Harness(tmp_path)
    harness.receive(
        "<team0>Pallavolo Messina Club</team0><set0>4</set0><timeout1>2</timeout1>"
        "<score0>100</score0><score1>25</score1><servizio>7</servizio>"
    )
    state = harness.presentation.scores[-1]
    assert state.team0 == "Pallavolo Messi"
    assert state.set0 == 8
    assert state.timeout1 == 2
    assert state.score0 == 99
    assert state.score1 == 25
    assert state.servizio == 0


def test_invalid_token_value_skips_only_that_token(tmp_path):
    harness = Harness(tmp_path)
    harness.receive("<setOrientation>left</setOrientation><getScoreOnly>1</getScoreOnly><language>English</language>")

    assert harness.presentation.mirrored is None
    assert harness.transport.sent == ["<isScoreOnly>0</isScoreOnly>"]
    assert harness.dispatcher.settings.language == "English"
    assert harness.presentation.language == "English"


def test_set_orientation_saves_and_rebuilds(tmp_path):
    harness = Harness(tmp_path)
    harness.receive("<setOrientation>1</setOrientation>")
    assert harness.presentation.mirrored is True
    assert harness.saved()["panel/orientation"] is True

    harness.receive("<getOrientation>1</getOrientation><setOrientation>5</setOrientation>")
    assert harness.transport.sent[-1] == "<orientation>1</orientation>"
    assert harness.presentation.mirrored is False

    harness.receive("<getOrientation>1</getOrientation>")
    assert harness.transport.sent[-1] == "<orientation>0</orientation>"


def test_unknown_language_falls_back_to_italian(tmp_path):
    harness = Harness(tmp_path, settings=PanelSettings(language="English"))
    harness.receive("<language>Deutsch</language>")
    assert harness.saved()["language/current"] == "Italiano"


def test_slideshow_rejected_while_video_plays(tmp_path):
    harness = Harness(tmp_path)
    harness.add_spot()
    harness.add_slide()
    harness.receive("<spotloop>1</spotloop>")

    harness.receive("<slideshow>1</slideshow>")

    assert not harness.slideshow.running
    assert harness.modes.mode is DisplayMode.SPOT_LOOP


def test_slideshow_start_and_stop_swap_surfaces(tmp_path):
    harness = Harness(tmp_path)
    harness.add_slide("a.png")
    other = tmp_path / "other"
    other.mkdir()
    (other / "z.png").write_bytes(b"img")

    harness.receive(f"<slidedir>{other}</slidedir><slideshow>1</slideshow>")
    assert harness.slideshow.running
    assert harness.slideshow.present == "z.png"
    assert harness.presentation.slides_visible
    assert not harness.presentation.panel_visible

    harness.receive("<spotloop>1</spotloop>")
    assert harness.handles == []

    harness.receive("<endslideshow>1</endslideshow>")
    assert not harness.slideshow.running
    assert harness.presentation.panel_visible
    assert not harness.presentation.slides_visible
    assert harness.modes.mode is DisplayMode.PANEL


def test_slideshow_request_while_running_keeps_cycling(tmp_path):
    harness = Harness(tmp_path)
    harness.add_slide("a.png")
    harness.add_slide("b.png")
    other = tmp_path / "other"
    other.mkdir()
    (other / "z.png").write_bytes(b"img")
    harness.receive("<slideshow>1</slideshow>")
    harness.slideshow.handle(SlideEvent.STEADY_TIMER)
    assert harness.slideshow.state is SlideshowState.TRANSITIONING

    harness.receive(f"<slidedir>{other}</slidedir><slideshow>1</slideshow>")

    assert harness.dispatcher.slide_dir == str(other)
    assert harness.slideshow.present == "a.png"
    while harness.slide_transition.active:
        harness.slideshow.handle(SlideEvent.TRANSITION_TIMER)
    assert harness.slideshow.present == "b.png"
    assert harness.slide_steady.active
    assert harness.slideshow.state is SlideshowState.SHOWING

    harness.receive("<endslideshow>1</endslideshow>")
    harness.receive("<slideshow>1</slideshow>")
    assert harness.slideshow.present == "z.png"


def test_end_spot_loop_reports_closed_after_exit(tmp_path):
    harness = Harness(tmp_path)
    harness.add_spot()
    harness.receive("<spotloop>1</spotloop>")
    video = harness.handles[-1]

    harness.receive("<endspotloop>1</endspotloop>")
    assert video.terminated
    assert harness.transport.sent == []

    video.on_finished(0, ExitStatus.NORMAL)
    assert harness.transport.sent == ["<closed_spot>1</closed_spot>"]
    assert harness.presentation.panel_visible


def test_end_live_without_camera_reports_live_closed(tmp_path):
    harness = Harness(tmp_path)
    harness.receive("<endlive>1</endlive>")
    assert harness.transport.sent == ["<closed_live>1</closed_live>"]


def test_spot_dir_token_updates_supervisor(tmp_path):
    harness = Harness(tmp_path)
    other = tmp_path / "elsewhere"
    other.mkdir()
    (other / "promo.mp4").write_bytes(b"video")

    harness.receive(f"<spotdir>{other}</spotdir><spotloop>1</spotloop>")

    assert Path(harness.handles[-1].arguments[-1]).name == "promo.mp4"


def test_kill_tears_down_and_terminates(tmp_path):
    harness = Harness(tmp_path)
    harness.add_spot()
    harness.receive("<spotloop>1</spotloop>")
    video = harness.handles[-1]

    harness.receive("<kill>1</kill><getOrientation>1</getOrientation>")

    assert video.terminated
    assert harness.terminated == 1
    assert harness.connection.state is LinkState.CLOSED
    assert harness.settings_path.exists()
    assert harness.transport.sent == []


def test_kill_with_other_values_is_ignored(tmp_path):
    harness = Harness(tmp_path)
    harness.receive("<kill>2</kill>")
    harness.receive("<kill>0</kill>")
    assert harness.terminated == 0
    assert harness.connection.state is not LinkState.CLOSED


def test_timeout_countdown_tokens(tmp_path):
    harness = Harness(tmp_path)
    harness.receive("<startTimeout>abc</startTimeout>")
    assert harness.presentation.countdown == [30]
    assert harness.countdown.running

    harness.receive("<stopTimeout>1</stopTimeout>")
    assert harness.presentation.countdown == [30, "hidden"]
    assert not harness.countdown.running


def test_failing_collaborator_does_not_block_later_tokens(tmp_path, monkeypatch):
    harness = Harness(tmp_path)

    def explode():
        raise RuntimeError("player backend gone")

    monkeypatch.setattr(harness.supervisor, "stop_spot_loop", explode)
    logger = logging.getLogger("ScorePanel.Client.Dispatcher")
    records = []

    class _Capture(logging.Handler):
        def emit(self, record):
            records.append(record)

    handler = _Capture()
    logger.addHandler(handler)
    try:
        harness.receive("<endspotloop>1</endspotloop><getScoreOnly>1</getScoreOnly>")
    finally:
        logger.removeHandler(handler)

    assert harness.transport.sent == ["<isScoreOnly>0</isScoreOnly>"]
    assert any("endspotloop" in record.getMessage() for record in records)


def test_trace_logging_lists_tokens(tmp_path):
    harness = Harness(tmp_path)
    harness.dispatcher._debug_config = DebugConfig(trace_enabled=True, trace_tokens=("score0",))  # type: ignore[attr-defined]
    logger = logging.getLogger("ScorePanel.Client.Dispatcher")
    records = []

    class _Capture(logging.Handler):
        def emit(self, record):
            records.append(record)

    handler = _Capture()
    handler.setLevel(logging.DEBUG)
    previous_level = logger.level
    logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)
    try:
        harness.receive("<score0>5</score0><score1>7</score1>")
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous_level)

    traced = [record.getMessage() for record in records if "trace" in record.getMessage()]
    assert traced == ["trace token=<score0> value='5'"]


def test_player_closed_maps_slots(tmp_path):
    harness = Harness(tmp_path)
    harness.dispatcher.player_closed(PlayerSlot.CAMERA)
    harness.dispatcher.player_closed(PlayerSlot.SPOT)
    assert harness.transport.sent == ["<closed_live>1</closed_live>", "<closed_spot>1</closed_spot>"]
