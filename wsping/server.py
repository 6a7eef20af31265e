"""WebSocket server accepting probe sessions."""

import logging

from PySide6.QtCore import QObject, QThreadPool, Signal
from PySide6.QtNetwork import QHostAddress
from PySide6.QtWebSockets import (
    QWebSocket,
    QWebSocketCorsAuthenticator,
    QWebSocketProtocol,
    QWebSocketServer,
)

from wsping.channel import WebSocketChannel
from wsping.config import ServerConfig
from wsping.prober import ProberFactory
from wsping.session import TICK_UNIT_MS, ProbeSession, TerminationReason

logger = logging.getLogger(__name__)

SERVER_NAME = "wsping"


class ProbeServer(QObject):
    """Accepts WebSocket upgrades on one path and runs a session per client.

    Sessions share the thread pool and nothing else. The pool grows rather
    than make one session's tick wait for another session's probe, and a
    failing session is retired on its own.
    """

    session_started = Signal(object)  # ProbeSession
    session_finished = Signal(object, object)  # (ProbeSession, TerminationReason)

    def __init__(
        self,
        config: ServerConfig,
        prober_factory: ProberFactory,
        thread_pool: QThreadPool | None = None,
        tick_unit_ms: int = TICK_UNIT_MS,
        parent=None,
    ):
        super().__init__(parent)

        self.config = config
        self.prober_factory = prober_factory
        self.thread_pool = thread_pool or QThreadPool.globalInstance()
        self.tick_unit_ms = tick_unit_ms

        self._sessions = set()

        self._server = QWebSocketServer(SERVER_NAME, QWebSocketServer.SslMode.NonSecureMode, self)
        self._server.newConnection.connect(self._on_new_connection)
        self._server.originAuthenticationRequired.connect(self._on_origin_check)
        self._server.acceptError.connect(self._on_accept_error)

    @property
    def port(self) -> int:
        """Port actually bound, useful when listening on port 0."""
        return self._server.serverPort()

    def listen(self):
        """Start accepting connections.

        Raises:
            OSError: If the address cannot be bound
        """
        if not self._server.listen(QHostAddress(self.config.host), self.config.port):
            raise OSError(
                f"Cannot listen on {self.config.host}:{self.config.port}: "
                f"{self._server.errorString()}"
            )
        logger.info(
            "Server listening: ws://%s:%d%s", self.config.host, self.port, self.config.path
        )

    def close(self):
        """Stop accepting new connections; running sessions are left alone."""
        self._server.close()
        logger.info("Server closed (active sessions: %d)", len(self._sessions))

    def active_sessions(self):
        return list(self._sessions)

    def _on_origin_check(self, authenticator: QWebSocketCorsAuthenticator):
        origin = authenticator.origin()
        allowed = self.config.origin_allowed(origin)
        if not allowed:
            logger.warning("Origin rejected: %s", origin)
        authenticator.setAllowed(allowed)

    def _on_accept_error(self, error):
        logger.warning("Failed to accept connection: %s", self._server.errorString())

    def _on_new_connection(self):
        while self._server.hasPendingConnections():
            socket = self._server.nextPendingConnection()
            if socket is None:
                break
            self._accept(socket)

    def _accept(self, socket: QWebSocket):
        path = socket.requestUrl().path()
        if path != self.config.path:
            logger.warning("Rejected upgrade for unknown path: %s", path)
            socket.close(QWebSocketProtocol.CloseCode.CloseCodePolicyViolated, "unknown path")
            socket.deleteLater()
            return

        socket.setReadBufferSize(self.config.read_buffer_size)
        channel = WebSocketChannel(socket)
        session = ProbeSession(
            channel,
            self.prober_factory,
            thread_pool=self.thread_pool,
            tick_unit_ms=self.tick_unit_ms,
            liveness_deadline_ms=self.config.liveness_deadline_ms,
            config_timeout_ms=self.config.config_timeout_ms,
        )
        channel.setParent(session)
        session.terminated.connect(
            lambda reason, s=session: self._on_session_terminated(s, reason)
        )

        self._sessions.add(session)
        logger.info("Session accepted: peer=%s (active: %d)", channel.peer, len(self._sessions))
        self.session_started.emit(session)
        session.start()

    def _on_session_terminated(self, session: ProbeSession, reason: TerminationReason):
        if session not in self._sessions:
            return

        self._sessions.discard(session)
        logger.debug(
            "Session retired: peer=%s, reason=%s (active: %d)",
            session.channel.peer,
            reason.value,
            len(self._sessions),
        )
        self.session_finished.emit(session, reason)
        session.deleteLater()
