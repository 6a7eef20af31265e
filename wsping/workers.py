"""Worker classes for background probe tasks."""

import logging

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal

from wsping.prober import Prober

logger = logging.getLogger(__name__)

# Sequence carried by preload probes, which are never reported
PRELOAD_SEQUENCE = -1

# Queue position of tick workers relative to preload probes (priority 0)
TICK_PRIORITY = 1


class WorkerSignals(QObject):
    """Signals for communicating between worker threads and the session thread."""

    measured = Signal(int, float, bool)  # Emits (sequence, latency_ms, success)
    finished = Signal()  # Emits when worker completes


class ProbeWorker(QRunnable):
    """Worker that executes prober.measure() in a background thread."""

    def __init__(self, prober: Prober, target: str, sequence: int):
        super().__init__()
        self.prober = prober
        self.target = target
        self.sequence = sequence
        self.signals = WorkerSignals()

    def run(self):
        """Execute the probe in a background thread."""
        try:
            logger.debug("Worker starting: target=%s, sequence=%d", self.target, self.sequence)

            # Blocks for up to the prober's timeout
            latency_ms, success = self.prober.measure(self.target)

            logger.debug(
                "Worker completed: target=%s, sequence=%d, success=%s",
                self.target,
                self.sequence,
                success,
            )

        except Exception as e:
            logger.exception(
                "Worker exception: target=%s, sequence=%d, error=%s",
                self.target,
                self.sequence,
                str(e),
            )
            latency_ms, success = 0.0, False

        try:
            self.signals.measured.emit(self.sequence, float(latency_ms), bool(success))
        finally:
            # Always signal completion
            self.signals.finished.emit()


def start_without_queueing(pool: QThreadPool, worker: QRunnable, priority: int = TICK_PRIORITY):
    """Start worker at once, growing the pool by one thread if it is saturated.

    Tick workers must not wait behind preload probes or behind slow probes
    of other sessions. When every thread is busy the worker is queued ahead
    of lower-priority work and an extra thread is added to pick it up.
    """
    if pool.tryStart(worker):
        return

    pool.start(worker, priority)
    pool.setMaxThreadCount(pool.maxThreadCount() + 1)
    logger.debug("Thread pool saturated, grown to %d threads", pool.maxThreadCount())
