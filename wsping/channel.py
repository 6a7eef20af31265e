"""Duplex message channel seen by a probe session."""

import logging
from typing import Protocol

from PySide6.QtCore import QByteArray, QObject, Signal, SignalInstance
from PySide6.QtWebSockets import QWebSocket, QWebSocketProtocol

from wsping.errors import ChannelWriteError

logger = logging.getLogger(__name__)


class Channel(Protocol):
    """Protocol for the message channel a session talks over.

    Implementations are QObjects living on the session's thread.
    """

    text_received: SignalInstance  # (str) one whole text frame
    read_failed: SignalInstance  # (str) a frame that cannot be a text message
    pong_received: SignalInstance  # () answer to ping()
    closed: SignalInstance  # () peer or transport closed the channel
    peer: str

    def send_text(self, text: str) -> None: ...
    def ping(self) -> None: ...
    def close(self) -> None: ...


class WebSocketChannel(QObject):
    """Channel backed by an upgraded QWebSocket connection."""

    text_received = Signal(str)
    read_failed = Signal(str)
    pong_received = Signal()
    closed = Signal()

    def __init__(self, socket: QWebSocket, parent=None):
        super().__init__(parent)
        self._socket = socket
        self._socket.setParent(self)
        self._closing = False
        self.peer = f"{socket.peerAddress().toString()}:{socket.peerPort()}"

        socket.textMessageReceived.connect(self._on_text)
        socket.binaryMessageReceived.connect(self._on_binary)
        socket.pong.connect(self._on_pong)
        socket.disconnected.connect(self._on_disconnected)

    def send_text(self, text: str) -> None:
        """Write one text frame.

        Raises:
            ChannelWriteError: If the socket is gone or nothing was written
        """
        if self._closing or not self._socket.isValid():
            raise ChannelWriteError(f"socket to {self.peer} is not connected")

        sent = self._socket.sendTextMessage(text)
        if text and sent <= 0:
            raise ChannelWriteError(
                f"write to {self.peer} failed: {self._socket.errorString()}"
            )

    def ping(self) -> None:
        """Send a ping control frame; the answer arrives as pong_received."""
        if self._closing or not self._socket.isValid():
            raise ChannelWriteError(f"socket to {self.peer} is not connected")
        self._socket.ping(QByteArray())

    def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        logger.debug("Closing channel: peer=%s", self.peer)
        self._socket.close(QWebSocketProtocol.CloseCode.CloseCodeNormal)

    def _on_text(self, text: str):
        self.text_received.emit(text)

    def _on_binary(self, data: QByteArray):
        self.read_failed.emit(f"unexpected binary frame ({data.size()} bytes)")

    def _on_pong(self, elapsed_ms: int, payload: QByteArray):
        logger.debug("Pong received: peer=%s, elapsed=%dms", self.peer, elapsed_ms)
        self.pong_received.emit()

    def _on_disconnected(self):
        logger.debug(
            "Socket disconnected: peer=%s, close_code=%s",
            self.peer,
            self._socket.closeCode(),
        )
        self.closed.emit()
