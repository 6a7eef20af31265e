"""Data models for wsping measurement reports."""

import json
import statistics
from dataclasses import dataclass, field
from datetime import datetime

REPORT_KIND = "pong"


@dataclass
class Report:
    """A single measurement result sent to the client."""

    emitted_at: datetime
    byte_size: int
    sequence: int
    target: str
    latency_ms: float  # 0.0 when the probe failed
    success: bool
    kind: str = REPORT_KIND

    def __post_init__(self):
        """A failed probe carries no meaningful latency."""
        if not self.success:
            self.latency_ms = 0.0

    def to_dict(self) -> dict:
        """Return the wire representation."""
        return {
            "type": self.kind,
            "timestamp": self.emitted_at.isoformat(),
            "bytes": self.byte_size,
            "sequence": self.sequence,
            "address": self.target,
            "latency": self.latency_ms,
            "success": self.success,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass
class LatencySummary:
    """Round-trip statistics in milliseconds."""

    min_ms: float
    avg_ms: float
    max_ms: float
    stddev_ms: float


@dataclass
class SessionStats:
    """Running totals for one session, including quiet ticks."""

    transmitted: int = 0
    received: int = 0
    latencies_ms: list[float] = field(default_factory=list)

    def record(self, report: Report) -> None:
        self.transmitted += 1
        if report.success:
            self.received += 1
            self.latencies_ms.append(report.latency_ms)

    @property
    def loss_percent(self) -> float:
        """Return packet loss as percentage (0-100)."""
        if self.transmitted == 0:
            return 0.0
        return (self.transmitted - self.received) / self.transmitted * 100

    def latency_summary(self) -> LatencySummary | None:
        """Compute round-trip statistics, or None without any success."""
        if not self.latencies_ms:
            return None

        return LatencySummary(
            min_ms=min(self.latencies_ms),
            avg_ms=statistics.fmean(self.latencies_ms),
            max_ms=max(self.latencies_ms),
            stddev_ms=statistics.pstdev(self.latencies_ms),
        )
