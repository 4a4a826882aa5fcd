"""Qt adapters that turn timer, socket and process signals into component calls."""
from __future__ import annotations

from typing import Callable, List, Optional, Sequence

from PyQt6.QtCore import QObject, QProcess, QTimer, QUrl
from PyQt6.QtNetwork import QAbstractSocket
from PyQt6.QtWebSockets import QWebSocket

from panel_client.connection_manager import LinkEvent
from panel_client.logging_utils import get_client_logger
from panel_client.process_supervisor import ExitStatus, FinishedFn

_LOGGER = get_client_logger("QtRuntime")

LinkSink = Callable[[LinkEvent, Optional[str]], None]


class QtTimerSlot:
    """Repeating ``QTimer`` whose timeout calls ``callback``."""

    def __init__(self, callback: Callable[[], None], parent: Optional[QObject] = None) -> None:
        self._timer = QTimer(parent)
        self._timer.timeout.connect(callback)

    def start(self, interval_ms: int) -> None:
        self._timer.start(max(0, int(interval_ms)))

    def stop(self) -> None:
        self._timer.stop()

    def is_active(self) -> bool:
        return self._timer.isActive()

    def interval(self) -> int:
        return self._timer.interval()


class QtWebSocketTransport:
    """``QWebSocket`` wrapper that reports readiness, errors and frames as ``LinkEvent``s."""

    def __init__(self, parent: Optional[QObject] = None) -> None:
        self._socket = QWebSocket(parent=parent)
        self._sink: Optional[LinkSink] = None
        self._socket.connected.connect(self._on_connected)
        self._socket.disconnected.connect(self._on_disconnected)
        self._socket.errorOccurred.connect(self._on_error)
        self._socket.textMessageReceived.connect(self._on_text)

    def bind(self, sink: LinkSink) -> None:
        self._sink = sink

    def open(self, url: str) -> None:
        self._socket.open(QUrl(url))

    def close(self) -> None:
        self._socket.close()

    def send_text(self, message: str) -> int:
        return int(self._socket.sendTextMessage(message))

    def is_valid(self) -> bool:
        return self._socket.isValid()

    def _emit(self, event: LinkEvent, payload: Optional[str] = None) -> None:
        if self._sink is None:
            _LOGGER.debug("Dropping %s; transport not bound", event.value)
            return
        self._sink(event, payload)

    def _on_connected(self) -> None:
        self._emit(LinkEvent.CONNECTED)

    def _on_disconnected(self) -> None:
        self._emit(LinkEvent.DISCONNECTED)

    def _on_error(self, error: QAbstractSocket.SocketError) -> None:
        self._emit(LinkEvent.SOCKET_ERROR, f"{error.name}: {self._socket.errorString()}")

    def _on_text(self, message: str) -> None:
        self._emit(LinkEvent.TEXT_MESSAGE, message)


class QtPlayerHandle:
    """One external player run through ``QProcess``."""

    def __init__(
        self,
        program: str,
        arguments: Sequence[str],
        on_finished: FinishedFn,
        parent: Optional[QObject] = None,
    ) -> None:
        self.program = program
        self.arguments: List[str] = list(arguments)
        self._on_finished = on_finished
        self._process = QProcess(parent)
        self._process.finished.connect(self._handle_finished)

    def start(self) -> None:
        self._process.start(self.program, self.arguments)

    def wait_for_started(self, timeout_ms: int) -> bool:
        return bool(self._process.waitForStarted(timeout_ms))

    def terminate(self) -> None:
        self._process.terminate()

    def kill(self) -> None:
        self._process.kill()

    def wait_for_finished(self, timeout_ms: int) -> bool:
        if self._process.state() == QProcess.ProcessState.NotRunning:
            return True
        return bool(self._process.waitForFinished(timeout_ms))

    def is_running(self) -> bool:
        return self._process.state() != QProcess.ProcessState.NotRunning

    def _handle_finished(self, exit_code: int, exit_status: QProcess.ExitStatus) -> None:
        status = ExitStatus.CRASHED if exit_status == QProcess.ExitStatus.CrashExit else ExitStatus.NORMAL
        self._on_finished(int(exit_code), status)


def launch_qt_player(program: str, arguments: Sequence[str], on_finished: FinishedFn) -> QtPlayerHandle:
    handle = QtPlayerHandle(program, arguments, on_finished)
    handle.start()
    return handle
