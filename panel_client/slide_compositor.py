"""QImage-backed slide loading, fitting and frame composition."""
from __future__ import annotations

from pathlib import Path
from typing import Mapping, Optional, Sequence

from PyQt6.QtCore import QPoint, QRect, Qt
from PyQt6.QtGui import QImage, QPainter

from panel_client.logging_utils import get_client_logger
from panel_client.transitions import Composition, Layer, Rect, SlideRole

_LOGGER = get_client_logger("SlideCompositor")

FRAME_FORMAT = QImage.Format.Format_ARGB32_Premultiplied

_COMPOSITION_MODES = {
    Composition.SOURCE: QPainter.CompositionMode.CompositionMode_Source,
    Composition.SOURCE_OVER: QPainter.CompositionMode.CompositionMode_SourceOver,
}


def _qrect(rect: Rect) -> QRect:
    return QRect(rect.x, rect.y, rect.width, rect.height)


def blank_canvas(width: int, height: int) -> QImage:
    canvas = QImage(width, height, FRAME_FORMAT)
    canvas.fill(Qt.GlobalColor.white)
    return canvas


class QtSlideImaging:
    def load(self, path: Path) -> Optional[QImage]:
        image = QImage(str(path))
        if image.isNull():
            _LOGGER.debug("QImage could not read %s", path)
            return None
        return image

    def fit(self, image: QImage, width: int, height: int) -> QImage:
        """Scale keeping the aspect ratio and centre it on a white viewport-sized canvas."""
        canvas = blank_canvas(width, height)
        scaled = image.scaled(
            width,
            height,
            Qt.AspectRatioMode.KeepAspectRatio,
            Qt.TransformationMode.SmoothTransformation,
        )
        painter = QPainter(canvas)
        try:
            painter.drawImage(QPoint((width - scaled.width()) // 2, (height - scaled.height()) // 2), scaled)
        finally:
            painter.end()
        return canvas

    def compose(
        self,
        layers: Sequence[Layer],
        views: Mapping[SlideRole, QImage],
        width: int,
        height: int,
    ) -> QImage:
        frame = blank_canvas(width, height)
        painter = QPainter(frame)
        try:
            for layer in layers:
                view = views.get(layer.role)
                if view is None or layer.source.is_empty or layer.destination.is_empty:
                    continue
                painter.setCompositionMode(_COMPOSITION_MODES[layer.composition])
                painter.setOpacity(layer.opacity)
                painter.drawImage(_qrect(layer.destination), view, _qrect(layer.source))
        finally:
            painter.end()
        return frame
