"""Integration tests for ProbeServer over a real loopback WebSocket."""

import json

import pytest
from PySide6.QtCore import QUrl
from PySide6.QtWebSockets import QWebSocket

from conftest import ScriptedProber, wait_until
from wsping.config import ServerConfig
from wsping.server import ProbeServer
from wsping.session import TerminationReason

pytestmark = pytest.mark.integration


class Client:
    """QWebSocket client recording everything the server sends."""

    def __init__(self, url: str, config: dict | None = None, origin: str = ""):
        self.socket = QWebSocket(origin)
        self.received = []
        self.connected = False
        self.disconnected = False
        self.errors = []

        self.socket.textMessageReceived.connect(lambda text: self.received.append(json.loads(text)))
        self.socket.connected.connect(lambda: self._on_connected(config))
        self.socket.disconnected.connect(lambda: setattr(self, "disconnected", True))
        self.socket.errorOccurred.connect(lambda error: self.errors.append(error))
        self.socket.open(QUrl(url))

    def _on_connected(self, config):
        self.connected = True
        if config is not None:
            self.socket.sendTextMessage(json.dumps(config))

    @property
    def finished(self) -> bool:
        """True once the server closed the connection or refused the upgrade."""
        return self.disconnected or bool(self.errors)

    def close(self):
        self.socket.close()


@pytest.fixture
def prober():
    return ScriptedProber()


@pytest.fixture
def make_server(qapp, thread_pool):
    servers = []

    def build(prober, **config_overrides):
        config = ServerConfig(host="127.0.0.1", port=0, config_timeout_ms=0, **config_overrides)
        server = ProbeServer(config, lambda options: prober, thread_pool=thread_pool, tick_unit_ms=1)
        server.listen()
        servers.append(server)

        events = {"started": [], "finished": []}
        server.session_started.connect(lambda session: events["started"].append(session))
        server.session_finished.connect(
            lambda session, reason: events["finished"].append(reason)
        )
        return server, events

    yield build

    for server in servers:
        server.close()


class TestProbeServer:
    """Test the upgrade and routing glue around sessions."""

    def test_listen_binds_ephemeral_port(self, make_server, prober):
        server, _ = make_server(prober)
        assert server.port > 0

    def test_listen_on_taken_port_raises(self, make_server, prober, thread_pool):
        server, _ = make_server(prober)
        config = ServerConfig(host="127.0.0.1", port=server.port)
        second = ProbeServer(config, lambda options: prober, thread_pool=thread_pool)

        with pytest.raises(OSError, match="Cannot listen"):
            second.listen()

    def test_stream_of_reports(self, make_server, prober):
        server, events = make_server(prober)
        client = Client(
            f"ws://127.0.0.1:{server.port}/ping", {"address": "example.com", "c": 3}
        )

        assert wait_until(lambda: events["finished"], timeout_s=10)
        assert wait_until(lambda: client.finished, timeout_s=5)

        assert events["finished"] == [TerminationReason.COUNT_EXHAUSTED]
        assert [r["sequence"] for r in client.received] == [0, 1, 2]
        assert all(r["type"] == "pong" for r in client.received)
        assert all(r["address"] == "http://example.com" for r in client.received)
        assert server.active_sessions() == []

    def test_invalid_config_closes_without_reports(self, make_server, prober):
        server, events = make_server(prober)
        client = Client(f"ws://127.0.0.1:{server.port}/ping", {"address": "example.com", "m": 0})

        assert wait_until(lambda: client.finished, timeout_s=5)
        assert events["finished"] == [TerminationReason.INVALID_OPTION]
        assert client.received == []
        assert prober.call_count == 0

    def test_unknown_path_rejected(self, make_server, prober):
        server, events = make_server(prober)
        client = Client(f"ws://127.0.0.1:{server.port}/other", {"address": "example.com"})

        assert wait_until(lambda: client.finished, timeout_s=5)
        assert events["started"] == []
        assert client.received == []

    def test_disallowed_origin_rejected(self, make_server, prober):
        server, events = make_server(prober, allowed_origins=("http://good.test",))
        client = Client(
            f"ws://127.0.0.1:{server.port}/ping",
            {"address": "example.com"},
            origin="http://evil.test",
        )

        assert wait_until(lambda: client.finished, timeout_s=5)
        assert events["started"] == []
        assert client.received == []

    def test_client_disconnect_ends_session(self, make_server, prober):
        server, events = make_server(prober)
        client = Client(f"ws://127.0.0.1:{server.port}/ping", {"address": "example.com"})

        assert wait_until(lambda: len(client.received) >= 2, timeout_s=10)
        client.close()

        assert wait_until(lambda: events["finished"], timeout_s=5)
        # The close frame or the next liveness ping notices first
        assert events["finished"][0] in (
            TerminationReason.UPSTREAM_CLOSED,
            TerminationReason.PEER_UNREACHABLE,
        )

    def test_sessions_are_independent(self, make_server, prober):
        """One client's bad config does not disturb another's stream."""
        server, events = make_server(prober)
        good = Client(f"ws://127.0.0.1:{server.port}/ping", {"address": "example.com", "c": 3})
        bad = Client(f"ws://127.0.0.1:{server.port}/ping", {"address": "example.com", "z": 999})

        assert wait_until(lambda: len(events["finished"]) == 2, timeout_s=10)
        assert wait_until(lambda: good.finished and bad.finished, timeout_s=5)

        assert sorted(reason.value for reason in events["finished"]) == [
            "count_exhausted",
            "invalid_option",
        ]
        assert [r["sequence"] for r in good.received] == [0, 1, 2]
        assert bad.received == []
