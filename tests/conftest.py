"""pytest configuration and fixtures for wsping tests.

Provides:
- qapp: QCoreApplication so timers and queued signals work
- thread_pool: private QThreadPool drained after each test
- FakeChannel: in-memory Channel recording writes and pings
- ScriptedProber: Prober replaying canned outcomes
- GatedProber: Prober holding its calls until released
- wait_until: event-loop polling helper
"""

import json
import threading
import time

import pytest
from PySide6.QtCore import QCoreApplication, QObject, QThreadPool, QTimer, Signal

from wsping.errors import ChannelWriteError


def wait_until(predicate, timeout_s: float = 5.0) -> bool:
    """Process Qt events until predicate() is true or the timeout passes."""
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        QCoreApplication.processEvents()
        if predicate():
            return True
        time.sleep(0.001)
    QCoreApplication.processEvents()
    return predicate()


def process_for(duration_s: float) -> None:
    """Keep the event loop turning for a fixed time."""
    wait_until(lambda: False, timeout_s=duration_s)


class FakeChannel(QObject):
    """Channel double living on the test thread.

    Frames written by the session are decoded into `sent`. Pings are
    answered on the next event-loop pass while auto_pong is set.
    """

    text_received = Signal(str)
    read_failed = Signal(str)
    pong_received = Signal()
    closed = Signal()

    def __init__(self, auto_pong: bool = True, fail_writes: bool = False):
        super().__init__()
        self.peer = "fake-peer:1"
        self.auto_pong = auto_pong
        self.fail_writes = fail_writes
        self.fail_pings = False
        self.sent = []
        self.pings = 0
        self.close_calls = 0

    @property
    def is_closed(self) -> bool:
        return self.close_calls > 0

    def send_text(self, text: str) -> None:
        if self.is_closed or self.fail_writes:
            raise ChannelWriteError("broken pipe")
        self.sent.append(json.loads(text))

    def ping(self) -> None:
        if self.is_closed or self.fail_pings:
            raise ChannelWriteError("broken pipe")
        self.pings += 1
        if self.auto_pong:
            QTimer.singleShot(0, lambda: self.pong_received.emit())

    def close(self) -> None:
        self.close_calls += 1

    def deliver(self, payload) -> None:
        """Simulate the client sending one text frame."""
        if not isinstance(payload, str):
            payload = json.dumps(payload)
        self.text_received.emit(payload)

    def disconnect_peer(self) -> None:
        """Simulate the client going away."""
        self.closed.emit()


class ScriptedProber:
    """Prober returning queued (latency_ms, success) outcomes.

    Once the script runs out every call succeeds with default_latency.
    """

    def __init__(self, outcomes=None, default_latency: float = 12.5):
        self._outcomes = list(outcomes or [])
        self.default_latency = default_latency
        self.calls = []
        self._lock = threading.Lock()

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.calls)

    def measure(self, target: str) -> tuple[float, bool]:
        with self._lock:
            self.calls.append(target)
            if self._outcomes:
                return self._outcomes.pop(0)
        return self.default_latency, True


class GatedProber(ScriptedProber):
    """Prober whose calls block until release().

    With blocked_calls set only that many calls block; later ones return
    at once. `waiting` counts calls currently held at the gate.
    """

    def __init__(self, blocked_calls: int | None = None):
        super().__init__()
        self.blocked_calls = blocked_calls
        self.waiting = 0
        self._entered = 0
        self._gate = threading.Event()

    def release(self) -> None:
        self._gate.set()

    def measure(self, target: str) -> tuple[float, bool]:
        with self._lock:
            self._entered += 1
            blocked = self.blocked_calls is None or self._entered <= self.blocked_calls
            if blocked:
                self.waiting += 1

        if blocked:
            # Never hold a pool thread for more than 10 s
            self._gate.wait(timeout=10)
            with self._lock:
                self.waiting -= 1

        return super().measure(target)


@pytest.fixture(scope="session")
def qapp():
    """Create QCoreApplication instance for tests."""
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    yield app


@pytest.fixture
def thread_pool(qapp):
    """Private pool so leftover workers never leak between tests."""
    pool = QThreadPool()
    pool.setMaxThreadCount(8)
    yield pool
    pool.waitForDone(2000)
    QCoreApplication.processEvents()


@pytest.fixture
def gated_probers(thread_pool):
    """Build GatedProbers that are released before the pool is drained."""
    built = []

    def build(blocked_calls: int | None = None) -> GatedProber:
        prober = GatedProber(blocked_calls)
        built.append(prober)
        return prober

    yield build

    for prober in built:
        prober.release()
