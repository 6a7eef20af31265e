"""Probe session state machine driving one client connection."""

import logging
from enum import Enum

from PySide6.QtCore import QObject, QThreadPool, QTimer, Signal

from wsping.channel import Channel
from wsping.config import DEFAULT_CONFIG_TIMEOUT_MS, MAX_TIMER_MS
from wsping.errors import ChannelWriteError, InvalidOptionError, ReadError
from wsping.http_prober import format_address
from wsping.liveness import DEFAULT_DEADLINE_MS, LivenessSupervisor
from wsping.models import SessionStats
from wsping.options import ProbeOptions, parse_config_message, resolve_options, tick_byte_size
from wsping.prober import Prober, ProberFactory
from wsping.reports import build_report, format_header_line, format_result_line, format_statistics
from wsping.workers import PRELOAD_SEQUENCE, ProbeWorker, start_without_queueing

logger = logging.getLogger(__name__)

# Milliseconds in one interval unit
TICK_UNIT_MS = 1000

# Pause taken instead of a liveness check in flood mode
FLOOD_YIELD_MS = 1


class SessionState(Enum):
    """Lifecycle of a session. Transitions only move forward."""

    AWAITING_CONFIG = "awaiting_config"
    RUNNING = "running"
    TERMINATED = "terminated"


class TerminationReason(Enum):
    """Why a session ended. Exactly one is reported per session."""

    READ_ERROR = "read_error"
    INVALID_OPTION = "invalid_option"
    COUNT_EXHAUSTED = "count_exhausted"
    WRITE_ERROR = "write_error"
    PEER_UNREACHABLE = "peer_unreachable"
    UPSTREAM_CLOSED = "upstream_closed"


class ProbeSession(QObject):
    """Runs periodic probes for one client and streams the reports back.

    Lifecycle:
    - AWAITING_CONFIG: the first text frame is decoded and resolved into
      ProbeOptions. Any failure here closes the channel without an error
      frame, since the protocol defines none.
    - RUNNING: a QTimer ticks every interval. Each tick probes the target
      on the thread pool, writes a report, then checks peer liveness (or
      yields briefly in flood mode). A tick that fires while the previous
      one is still in flight is skipped, so reports stay strictly ordered.
    - TERMINATED: timers stopped, channel closed, terminated emitted once.

    Preload probes run alongside the loop and are never reported. They queue
    at normal priority, while tick workers jump the queue onto a thread of
    their own.
    """

    report_sent = Signal(object)  # Report written to the channel
    terminated = Signal(object)  # TerminationReason

    def __init__(
        self,
        channel: Channel,
        prober_factory: ProberFactory,
        thread_pool: QThreadPool | None = None,
        tick_unit_ms: int = TICK_UNIT_MS,
        liveness_deadline_ms: int = DEFAULT_DEADLINE_MS,
        config_timeout_ms: int = DEFAULT_CONFIG_TIMEOUT_MS,
        parent=None,
    ):
        """Initialize a session for an upgraded connection.

        Args:
            channel: Channel to the client, owned exclusively by this session
            prober_factory: Builds the prober once options are known
            thread_pool: Pool for probe workers (default: global pool)
            tick_unit_ms: Milliseconds per interval unit
            liveness_deadline_ms: How long to wait for a pong
            config_timeout_ms: How long to wait for the config frame (0 = forever)
            parent: Qt parent object
        """
        super().__init__(parent)

        self.channel = channel
        self.prober_factory = prober_factory
        self.thread_pool = thread_pool or QThreadPool.globalInstance()
        self.tick_unit_ms = tick_unit_ms
        self.config_timeout_ms = config_timeout_ms

        self.state = SessionState.AWAITING_CONFIG
        self.termination_reason: TerminationReason | None = None
        self.options: ProbeOptions | None = None
        self.target = ""
        self.sequence = 0  # Ticks started so far
        self.stats = SessionStats()

        self._prober: Prober | None = None
        self._tick_in_flight = False
        self._tick_byte_size = 0

        self.liveness = LivenessSupervisor(channel, liveness_deadline_ms, parent=self)
        self.liveness.alive.connect(self._end_tick)
        self.liveness.lost.connect(self._on_peer_lost)

        self._tick_timer = QTimer(self)
        self._tick_timer.timeout.connect(self._on_tick)

        self._config_timer = QTimer(self)
        self._config_timer.setSingleShot(True)
        self._config_timer.timeout.connect(self._on_config_timeout)

        self._yield_timer = QTimer(self)
        self._yield_timer.setSingleShot(True)
        self._yield_timer.timeout.connect(self._end_tick)

    def start(self):
        """Begin waiting for the client's configuration frame."""
        self.channel.text_received.connect(self._on_text)
        self.channel.read_failed.connect(self._on_read_failed)
        self.channel.closed.connect(self._on_channel_closed)

        if self.config_timeout_ms > 0:
            self._config_timer.start(self.config_timeout_ms)

        logger.debug("Session started: peer=%s", self.channel.peer)

    def is_terminated(self) -> bool:
        return self.state is SessionState.TERMINATED

    # ------------------------------------------------------------------
    # AWAITING_CONFIG
    # ------------------------------------------------------------------

    def _on_text(self, text: str):
        if self.state is not SessionState.AWAITING_CONFIG:
            logger.debug("Ignoring frame after config: peer=%s", self.channel.peer)
            return

        self._config_timer.stop()

        try:
            message = parse_config_message(text)
        except ReadError as e:
            logger.warning("Error reading ping message: peer=%s, error=%s", self.channel.peer, e)
            self._terminate(TerminationReason.READ_ERROR)
            return

        try:
            options = resolve_options(message)
        except InvalidOptionError as e:
            logger.warning("Invalid ping options: peer=%s, error=%s", self.channel.peer, e)
            self._terminate(TerminationReason.INVALID_OPTION)
            return

        self._begin(format_address(message.address), options)

    def _on_read_failed(self, error: str):
        if self.state is not SessionState.AWAITING_CONFIG:
            logger.debug("Ignoring unreadable frame: peer=%s, error=%s", self.channel.peer, error)
            return
        logger.warning("Error reading ping message: peer=%s, error=%s", self.channel.peer, error)
        self._terminate(TerminationReason.READ_ERROR)

    def _on_config_timeout(self):
        if self.state is not SessionState.AWAITING_CONFIG:
            return
        logger.warning(
            "No ping message within %dms: peer=%s", self.config_timeout_ms, self.channel.peer
        )
        self._terminate(TerminationReason.READ_ERROR)

    def _begin(self, target: str, options: ProbeOptions):
        """Enter RUNNING: build the prober, fire preloads, start ticking."""
        self.target = target
        self.options = options
        self._prober = self.prober_factory(options)
        self.state = SessionState.RUNNING

        logger.info(format_header_line(target, options.packet_size))
        if options.verbose:
            logger.info("Session options: peer=%s, %s", self.channel.peer, options)

        for _ in range(options.preload):
            worker = ProbeWorker(self._prober, target, PRELOAD_SEQUENCE)
            worker.signals.measured.connect(self._on_preload_measured)
            self.thread_pool.start(worker)
        if options.preload:
            logger.debug("Preload launched: target=%s, probes=%d", target, options.preload)

        self._tick_timer.start(min(options.interval * self.tick_unit_ms, MAX_TIMER_MS))

    def _on_preload_measured(self, sequence: int, latency_ms: float, success: bool):
        if self.is_terminated():
            return
        report = build_report(self.target, sequence, latency_ms, success, self.options.packet_size)
        if success:
            logger.info(format_result_line(report, self.options.ttl, self.options.timestamped))
        else:
            logger.debug("Preload probe failed: target=%s", self.target)

    # ------------------------------------------------------------------
    # RUNNING
    # ------------------------------------------------------------------

    def _on_tick(self):
        """Handle timer tick - start one measurement unless one is in flight."""
        if self.state is not SessionState.RUNNING:
            return

        if self._tick_in_flight:
            logger.debug("Tick skipped: previous tick in flight (sequence=%d)", self.sequence)
            return

        options = self.options
        if options.count > 0 and self.sequence >= options.count:
            self._terminate(TerminationReason.COUNT_EXHAUSTED)
            return

        self.sequence += 1
        tick_index = self.sequence - 1
        self._tick_byte_size = tick_byte_size(options, tick_index)
        self._tick_in_flight = True

        worker = ProbeWorker(self._prober, self.target, tick_index)
        worker.signals.measured.connect(self._on_measured)
        start_without_queueing(self.thread_pool, worker)

    def _on_measured(self, sequence: int, latency_ms: float, success: bool):
        """Turn a finished measurement into a report and finish the tick."""
        if self.state is not SessionState.RUNNING:
            return

        options = self.options
        report = build_report(self.target, sequence, latency_ms, success, self._tick_byte_size)
        self.stats.record(report)

        if not options.quiet:
            try:
                self.channel.send_text(report.to_json())
            except ChannelWriteError as e:
                logger.warning("Failed to send pong: peer=%s, error=%s", self.channel.peer, e)
                self._terminate(TerminationReason.WRITE_ERROR)
                return
            self.report_sent.emit(report)
            logger.info(format_result_line(report, options.ttl, options.timestamped))

        if options.flood:
            self._yield_timer.start(FLOOD_YIELD_MS)
        else:
            self.liveness.check()

    def _end_tick(self):
        if self.state is SessionState.RUNNING:
            self._tick_in_flight = False

    def _on_peer_lost(self, reason: str):
        if self.state is not SessionState.RUNNING:
            return
        logger.warning("Connection check failed: peer=%s, reason=%s", self.channel.peer, reason)
        self._terminate(TerminationReason.PEER_UNREACHABLE)

    def _on_channel_closed(self):
        if self.state is SessionState.AWAITING_CONFIG:
            logger.warning("Channel closed before ping message: peer=%s", self.channel.peer)
            self._terminate(TerminationReason.READ_ERROR)
        elif self.state is SessionState.RUNNING:
            logger.info("Client disconnected: peer=%s", self.channel.peer)
            self._terminate(TerminationReason.UPSTREAM_CLOSED)

    # ------------------------------------------------------------------
    # TERMINATED
    # ------------------------------------------------------------------

    def _terminate(self, reason: TerminationReason):
        if self.state is SessionState.TERMINATED:
            return

        was_running = self.state is SessionState.RUNNING
        self.state = SessionState.TERMINATED
        self.termination_reason = reason
        self._tick_in_flight = False

        self._tick_timer.stop()
        self._config_timer.stop()
        self._yield_timer.stop()
        self.liveness.cancel()
        self.channel.close()

        if was_running:
            for line in format_statistics(self.target, self.stats):
                logger.info(line)

        logger.info(
            "Session terminated: peer=%s, reason=%s, sequence=%d",
            self.channel.peer,
            reason.value,
            self.sequence,
        )
        self.terminated.emit(reason)
