"""Connection/heartbeat state machine for the controller link."""
from __future__ import annotations

import random
import socket
from enum import Enum
from typing import Callable, Optional, Protocol

from panel_client.command_codec import compose_message
from panel_client.logging_utils import get_client_logger
from panel_client.timer_slot import TimerSlot

_LOGGER = get_client_logger("Connection")

DEFAULT_SERVER_URL = "ws://localhost:45454"
RETRY_INTERVAL_MS = 1000
HEARTBEAT_MIN_MS = 3000
HEARTBEAT_SPAN_MS = 2000
STATUS_REQUEST = "getStatus"


class LinkState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    AWAITING_HEARTBEAT = "awaiting_heartbeat"
    CLOSED = "closed"


class LinkEvent(Enum):
    RETRY_TIMER = "retry_timer"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    SOCKET_ERROR = "socket_error"
    HEARTBEAT_TIMER = "heartbeat_timer"
    TEXT_MESSAGE = "text_message"


class LinkTransport(Protocol):
    """Text-frame socket; readiness and errors come back as ``LinkEvent``s."""

    def open(self, url: str) -> None:
        ...

    def close(self) -> None:
        ...

    def send_text(self, message: str) -> int:
        ...

    def is_valid(self) -> bool:
        ...


def random_heartbeat_ms() -> int:
    return random.randrange(HEARTBEAT_MIN_MS, HEARTBEAT_MIN_MS + HEARTBEAT_SPAN_MS)


class ConnectionManager:
    """Keeps the controller link alive and declares the session dead on a missed heartbeat.

    Every inbound frame counts as a heartbeat reply. When the heartbeat timer
    fires while a status request is still unanswered the link is closed for
    good, the cleanup hook runs and ``on_closed`` fires once.
    """

    def __init__(
        self,
        *,
        transport: LinkTransport,
        retry_timer: TimerSlot,
        heartbeat_timer: TimerSlot,
        on_message: Callable[[str], None],
        on_closed: Callable[[], None],
        cleanup: Callable[[], None] = lambda: None,
        url: str = DEFAULT_SERVER_URL,
        heartbeat_source: Callable[[], int] = random_heartbeat_ms,
        host_name_fn: Callable[[], str] = socket.gethostname,
    ) -> None:
        self._transport = transport
        self._retry = retry_timer
        self._heartbeat = heartbeat_timer
        self._on_message = on_message
        self._on_closed = on_closed
        self._cleanup = cleanup
        self._url = url
        self._heartbeat_source = heartbeat_source
        self._host_name_fn = host_name_fn
        self._state = LinkState.DISCONNECTED
        self._last_heartbeat_ms: Optional[int] = None

    @property
    def state(self) -> LinkState:
        return self._state

    @property
    def url(self) -> str:
        return self._url

    @property
    def awaiting_reply(self) -> bool:
        return self._state is LinkState.AWAITING_HEARTBEAT

    @property
    def last_heartbeat_ms(self) -> Optional[int]:
        return self._last_heartbeat_ms

    def start(self) -> None:
        if self._state is LinkState.CLOSED:
            _LOGGER.debug("Start ignored; link already closed")
            return
        _LOGGER.info("Connecting to %s", self._url)
        self._state = LinkState.DISCONNECTED
        self._retry.start(RETRY_INTERVAL_MS)

    def shutdown(self) -> None:
        """Operator-requested close; never reports the panel as closed."""
        if self._state is LinkState.CLOSED:
            return
        self._state = LinkState.CLOSED
        self._stop_timers()
        self._close_transport()
        _LOGGER.info("Connection shut down")

    def send(self, message: str) -> bool:
        try:
            written = self._transport.send_text(message)
        except Exception:
            _LOGGER.warning("Failed to send %r", message, exc_info=True)
            return False
        expected = len(message.encode("utf-8"))
        if written != expected:
            _LOGGER.warning("Short write sending %r (%s of %d bytes)", message, written, expected)
            return False
        return True

    def handle(self, event: LinkEvent, payload: Optional[str] = None) -> None:
        if self._state is LinkState.CLOSED:
            _LOGGER.debug("Ignoring %s on a closed link", event.value)
            return
        if event is LinkEvent.RETRY_TIMER:
            self._on_retry()
        elif event is LinkEvent.CONNECTED:
            self._on_connected()
        elif event is LinkEvent.SOCKET_ERROR:
            self._on_socket_error(payload)
        elif event is LinkEvent.DISCONNECTED:
            self._on_disconnected()
        elif event is LinkEvent.HEARTBEAT_TIMER:
            self._on_heartbeat()
        elif event is LinkEvent.TEXT_MESSAGE:
            self._on_text(payload)

    # Event handlers -------------------------------------------------------

    def _on_retry(self) -> None:
        if self._state not in (LinkState.DISCONNECTED, LinkState.CONNECTING):
            return
        self._state = LinkState.CONNECTING
        try:
            self._transport.open(self._url)
        except Exception:
            _LOGGER.warning("Failed to open %s", self._url, exc_info=True)
            self._state = LinkState.DISCONNECTED

    def _on_connected(self) -> None:
        _LOGGER.info("Connected to %s", self._url)
        self._retry.stop()
        self._request_status()

    def _on_socket_error(self, detail: Optional[str]) -> None:
        _LOGGER.warning("Socket error on %s: %s", self._url, detail or "unknown")
        self._heartbeat.stop()
        if self._transport.is_valid():
            self._close_transport()
        self._state = LinkState.DISCONNECTED
        self._retry.start(RETRY_INTERVAL_MS)

    def _on_disconnected(self) -> None:
        if self._state is LinkState.DISCONNECTED:
            return
        _LOGGER.info("Disconnected from %s; retrying every %d ms", self._url, RETRY_INTERVAL_MS)
        self._heartbeat.stop()
        self._state = LinkState.DISCONNECTED
        self._retry.start(RETRY_INTERVAL_MS)

    def _on_heartbeat(self) -> None:
        if self._state is LinkState.AWAITING_HEARTBEAT:
            self._declare_dead()
            return
        if self._state is LinkState.CONNECTED:
            self._request_status()

    def _on_text(self, message: Optional[str]) -> None:
        if self._state not in (LinkState.CONNECTED, LinkState.AWAITING_HEARTBEAT):
            _LOGGER.debug("Dropping frame received while %s", self._state.value)
            return
        self._state = LinkState.CONNECTED
        self._arm_heartbeat()
        self._on_message(message or "")

    # Helpers --------------------------------------------------------------

    def _request_status(self) -> None:
        self.send(compose_message(STATUS_REQUEST, self._host_name_fn()))
        self._state = LinkState.AWAITING_HEARTBEAT
        self._arm_heartbeat()

    def _arm_heartbeat(self) -> None:
        self._last_heartbeat_ms = self._heartbeat_source()
        self._heartbeat.start(self._last_heartbeat_ms)

    def _declare_dead(self) -> None:
        _LOGGER.warning("No reply from %s within %s ms; closing the panel", self._url, self._last_heartbeat_ms)
        self._state = LinkState.CLOSED
        self._close_transport()
        self._stop_timers()
        try:
            self._cleanup()
        except Exception:
            _LOGGER.warning("Cleanup after heartbeat loss failed", exc_info=True)
        self._on_closed()

    def _stop_timers(self) -> None:
        self._retry.stop()
        self._heartbeat.stop()

    def _close_transport(self) -> None:
        try:
            self._transport.close()
        except Exception:
            _LOGGER.debug("Transport close raised", exc_info=True)
