"""Qt windows for the score panel, the slideshow surface and the timeout countdown."""
from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QColor, QFont, QGuiApplication, QImage, QPainter, QPalette
from PyQt6.QtWidgets import QGridLayout, QLabel, QWidget

from panel_client.logging_utils import get_client_logger
from panel_client.score_fields import ScoreState

_LOGGER = get_client_logger("PanelWindow")

SERVICE_MARK = "●"
_TEAM_DEFAULTS: Dict[str, Tuple[str, str]] = {
    "Italiano": ("Locali", "Ospiti"),
    "English": ("Home", "Guests"),
}

# (row, column, row span, column span, alignment) per widget for the normal orientation.
_CENTER = Qt.AlignmentFlag.AlignHCenter | Qt.AlignmentFlag.AlignVCenter
_SIDE_CELLS = {
    "team": ((0, 0, 2, 6), (0, 6, 2, 6)),
    "score": ((2, 1, 4, 3), (2, 8, 4, 3)),
    "service": ((2, 4, 4, 1), (2, 7, 4, 1)),
    "set": ((6, 2, 2, 1), (6, 9, 2, 1)),
    "timeout": ((8, 2, 2, 1), (8, 9, 2, 1)),
}


def place_on_screen(widget: QWidget, screen_index: int) -> None:
    """Move ``widget`` to the top-left corner of the requested screen."""
    screens = QGuiApplication.screens()
    if not screens:
        return
    if screen_index >= len(screens) or screen_index < 0:
        _LOGGER.warning("Screen %d not available (%d connected); using the primary screen", screen_index, len(screens))
        screen = QGuiApplication.primaryScreen() or screens[0]
    else:
        screen = screens[screen_index]
    widget.move(screen.geometry().topLeft())


class ScorePanelWindow(QWidget):
    """Two-sided score board; sides swap when mirrored."""

    def __init__(self, *, mirrored: bool = False, language: str = "Italiano", parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setWindowFlags(Qt.WindowType.CustomizeWindowHint | Qt.WindowType.FramelessWindowHint)
        self.setAutoFillBackground(True)
        palette = self.palette()
        palette.setColor(QPalette.ColorRole.Window, QColor(0, 0, 64))
        palette.setColor(QPalette.ColorRole.WindowText, Qt.GlobalColor.yellow)
        self.setPalette(palette)
        self._mirrored = mirrored
        self._language = language
        self._teams = [self._make_label(28, Qt.GlobalColor.white) for _ in range(2)]
        self._scores = [self._make_label(72) for _ in range(2)]
        self._services = [self._make_label(28) for _ in range(2)]
        self._sets = [self._make_label(36) for _ in range(2)]
        self._timeouts = [self._make_label(36) for _ in range(2)]
        self._set_label = self._make_label(18)
        self._timeout_label = self._make_label(18)
        self._set_label.setText("Set")
        self._timeout_label.setText("Timeout")
        self._grid = QGridLayout(self)
        self._custom_teams = [False, False]
        self.apply_language(language)
        self.update_score(ScoreState())
        self.build_layout()

    @property
    def mirrored(self) -> bool:
        return self._mirrored

    def label_texts(self) -> Dict[str, List[str]]:
        return {
            "team": [label.text() for label in self._teams],
            "score": [label.text() for label in self._scores],
            "service": [label.text() for label in self._services],
            "set": [label.text() for label in self._sets],
            "timeout": [label.text() for label in self._timeouts],
        }

    def update_score(self, state: ScoreState) -> None:
        for index, name in enumerate((state.team0, state.team1)):
            if name:
                self._teams[index].setText(name)
                self._custom_teams[index] = True
        self._scores[0].setText(str(state.score0))
        self._scores[1].setText(str(state.score1))
        self._sets[0].setText(str(state.set0))
        self._sets[1].setText(str(state.set1))
        self._timeouts[0].setText(str(state.timeout0))
        self._timeouts[1].setText(str(state.timeout1))
        for index, label in enumerate(self._services):
            label.setText(SERVICE_MARK if state.servizio == index else " ")

    def apply_language(self, language: str) -> None:
        self._language = language
        defaults = _TEAM_DEFAULTS.get(language, _TEAM_DEFAULTS["Italiano"])
        for index, label in enumerate(self._teams):
            if not self._custom_teams[index]:
                label.setText(defaults[index])

    def set_mirrored(self, mirrored: bool) -> None:
        self._mirrored = bool(mirrored)
        self.build_layout()

    def build_layout(self) -> None:
        groups = {
            "team": self._teams,
            "score": self._scores,
            "service": self._services,
            "set": self._sets,
            "timeout": self._timeouts,
        }
        for widgets in groups.values():
            for widget in widgets:
                self._grid.removeWidget(widget)
        self._grid.removeWidget(self._set_label)
        self._grid.removeWidget(self._timeout_label)
        left, right = (1, 0) if self._mirrored else (0, 1)
        for key, widgets in groups.items():
            left_cell, right_cell = _SIDE_CELLS[key]
            self._grid.addWidget(widgets[left], *left_cell, _CENTER)
            self._grid.addWidget(widgets[right], *right_cell, _CENTER)
        self._grid.addWidget(self._set_label, 6, 3, 2, 6, _CENTER)
        self._grid.addWidget(self._timeout_label, 8, 3, 2, 6, _CENTER)
        _LOGGER.debug("Panel layout rebuilt (mirrored=%s)", self._mirrored)

    def _make_label(self, point_size: int, color: Optional[Qt.GlobalColor] = None) -> QLabel:
        label = QLabel(self)
        label.setFont(QFont("Liberation Sans", point_size, QFont.Weight.Black))
        label.setAlignment(_CENTER)
        if color is not None:
            palette = label.palette()
            palette.setColor(QPalette.ColorRole.WindowText, color)
            label.setPalette(palette)
        return label


class SlideWindow(QWidget):
    """Paints the latest composited slide frame and reports its size."""

    def __init__(self, on_resize: Optional[Callable[[int, int], None]] = None, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setWindowFlags(Qt.WindowType.CustomizeWindowHint | Qt.WindowType.FramelessWindowHint)
        self._on_resize = on_resize
        self._frame: Optional[QImage] = None

    def set_resize_callback(self, callback: Callable[[int, int], None]) -> None:
        self._on_resize = callback

    @property
    def frame(self) -> Optional[QImage]:
        return self._frame

    def show_frame(self, frame: QImage) -> None:
        self._frame = frame
        self.update()

    def paintEvent(self, event) -> None:  # type: ignore[override]
        painter = QPainter(self)
        try:
            painter.fillRect(self.rect(), Qt.GlobalColor.white)
            if self._frame is not None:
                painter.drawImage(0, 0, self._frame)
        finally:
            painter.end()

    def resizeEvent(self, event) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        if self._on_resize is not None:
            size = event.size()
            self._on_resize(size.width(), size.height())


class CountdownWindow(QLabel):
    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setWindowFlags(Qt.WindowType.CustomizeWindowHint | Qt.WindowType.FramelessWindowHint)
        self.setAlignment(_CENTER)
        self.setFont(QFont("Liberation Sans", 160, QFont.Weight.Black))
        self.setAutoFillBackground(True)
        palette = self.palette()
        palette.setColor(QPalette.ColorRole.Window, Qt.GlobalColor.black)
        palette.setColor(QPalette.ColorRole.WindowText, Qt.GlobalColor.yellow)
        self.setPalette(palette)

    def show_seconds(self, seconds: int) -> None:
        self.setText(str(seconds))


class QtPresentation:
    """Drives the three windows on the panel screen."""

    def __init__(
        self,
        panel: ScorePanelWindow,
        slides: SlideWindow,
        countdown: CountdownWindow,
        *,
        screen_index: int = 1,
        full_screen: bool = True,
    ) -> None:
        self._panel = panel
        self._slides = slides
        self._countdown = countdown
        self._full_screen = full_screen
        for widget in (panel, slides, countdown):
            place_on_screen(widget, screen_index)

    def _show(self, widget: QWidget) -> None:
        if self._full_screen:
            widget.showFullScreen()
        else:
            widget.show()

    def show_panel(self) -> None:
        self._show(self._panel)

    def hide_panel(self) -> None:
        self._panel.hide()

    def show_slides(self) -> None:
        self._show(self._slides)

    def hide_slides(self) -> None:
        self._slides.hide()

    def update_score(self, state: ScoreState) -> None:
        self._panel.update_score(state)

    def apply_orientation(self, mirrored: bool) -> None:
        self._panel.set_mirrored(mirrored)

    def apply_language(self, language: str) -> None:
        self._panel.apply_language(language)

    def show_countdown(self, seconds: int) -> None:
        self._countdown.show_seconds(seconds)
        if not self._countdown.isVisible():
            self._show(self._countdown)

    def hide_countdown(self) -> None:
        self._countdown.hide()
        if not self._panel.isHidden():
            self._show(self._panel)

    def panel_geometry(self) -> Optional[Tuple[int, int, int, int]]:
        screen = self._panel.screen()
        if screen is None:
            return None
        rect = screen.geometry()
        return rect.x(), rect.y(), rect.width(), rect.height()
