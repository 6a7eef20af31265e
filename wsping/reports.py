"""Report construction and ping-style result lines."""

from datetime import datetime

from wsping.models import Report, SessionStats
from wsping.options import DEFAULT_PACKET_SIZE


def build_report(
    target: str,
    sequence: int,
    latency_ms: float,
    success: bool,
    byte_size: int = DEFAULT_PACKET_SIZE,
) -> Report:
    """Create a report for one measurement, stamped with the current time.

    Inputs are not validated; they come from already resolved options and
    the session's own counter.
    """
    return Report(
        emitted_at=datetime.now().astimezone(),
        byte_size=byte_size,
        sequence=sequence,
        target=target,
        latency_ms=latency_ms,
        success=success,
    )


def format_header_line(target: str, byte_size: int) -> str:
    return f"PING {target} ({target}): {byte_size} data bytes"


def format_result_line(report: Report, ttl: int, timestamped: bool = False) -> str:
    """Render a report the way the ping tool prints a reply.

    Args:
        report: Report to render
        ttl: Time to live the session was configured with
        timestamped: Prefix the line with the epoch time (ping -D)

    Returns:
        Single line without trailing newline

    Examples:
        >>> format_result_line(report, ttl=64)
        '56 bytes from http://example.com: icmp_seq=0 ttl=64 time=12.345 ms'
    """
    if report.success:
        line = (
            f"{report.byte_size} bytes from {report.target}: "
            f"icmp_seq={report.sequence} ttl={ttl} time={report.latency_ms:.3f} ms"
        )
    else:
        line = f"Request timeout for icmp_seq={report.sequence}"

    if timestamped:
        line = f"[{report.emitted_at.timestamp():.6f}] {line}"
    return line


def format_statistics(target: str, stats: SessionStats) -> list[str]:
    """Render the closing summary printed when a session ends."""
    lines = [
        f"--- {target} ping statistics ---",
        f"{stats.transmitted} packets transmitted, {stats.received} packets received, "
        f"{stats.loss_percent:.1f}% packet loss",
    ]

    summary = stats.latency_summary()
    if summary:
        lines.append(
            f"round-trip min/avg/max/stddev = {summary.min_ms:.3f}/{summary.avg_ms:.3f}/"
            f"{summary.max_ms:.3f}/{summary.stddev_ms:.3f} ms"
        )
    return lines
