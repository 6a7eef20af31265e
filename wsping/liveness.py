"""Peer liveness checks over the WebSocket control channel."""

import logging

from PySide6.QtCore import QObject, QTimer, Signal

from wsping.channel import Channel
from wsping.errors import ChannelWriteError

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE_MS = 1000


class LivenessSupervisor(QObject):
    """Detects a vanished peer with ping/pong, independent of the probes.

    Each check() sends one ping and waits up to deadline_ms for the pong.
    Exactly one of alive or lost is emitted per check, unless cancelled.
    """

    alive = Signal()
    lost = Signal(str)  # Reason the peer is considered gone

    def __init__(self, channel: Channel, deadline_ms: int = DEFAULT_DEADLINE_MS, parent=None):
        super().__init__(parent)
        if deadline_ms <= 0:
            raise ValueError("deadline_ms must be positive")

        self.channel = channel
        self.deadline_ms = deadline_ms
        self._pending = False

        self._deadline = QTimer(self)
        self._deadline.setSingleShot(True)
        self._deadline.timeout.connect(self._on_deadline)

        channel.pong_received.connect(self._on_pong)

    @property
    def pending(self) -> bool:
        return self._pending

    def check(self):
        """Send a ping; a check already in progress is left alone."""
        if self._pending:
            return

        try:
            self.channel.ping()
        except ChannelWriteError as e:
            logger.debug("Ping write failed: peer=%s, error=%s", self.channel.peer, e)
            self.lost.emit(f"client disconnected: {e}")
            return

        self._pending = True
        self._deadline.start(self.deadline_ms)

    def cancel(self):
        """Abandon the outstanding check without emitting anything."""
        self._pending = False
        self._deadline.stop()

    def _on_pong(self):
        # Unsolicited pongs are legal and carry no information
        if not self._pending:
            return
        self._pending = False
        self._deadline.stop()
        self.alive.emit()

    def _on_deadline(self):
        if not self._pending:
            return
        self._pending = False
        logger.debug("Pong deadline exceeded: peer=%s", self.channel.peer)
        self.lost.emit(f"no pong within {self.deadline_ms} ms")
