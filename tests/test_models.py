"""Tests for wsping.models invariants."""

import json
from datetime import datetime, timezone

import pytest

from wsping.models import REPORT_KIND, Report, SessionStats


def make_report(sequence=0, latency_ms=10.0, success=True):
    return Report(
        emitted_at=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        byte_size=56,
        sequence=sequence,
        target="http://example.com",
        latency_ms=latency_ms,
        success=success,
    )


class TestReport:
    """Test Report dataclass behavior and wire format."""

    def test_kind_is_pong(self):
        assert make_report().kind == REPORT_KIND == "pong"

    def test_post_init_zeroes_latency_on_failure(self):
        """A failed probe never carries a latency value."""
        report = make_report(latency_ms=42.0, success=False)
        assert report.latency_ms == 0.0
        assert report.success is False

    def test_success_keeps_latency(self):
        assert make_report(latency_ms=0.25).latency_ms == 0.25

    def test_to_dict_wire_keys(self):
        data = make_report(sequence=7, latency_ms=1.5).to_dict()

        assert data == {
            "type": "pong",
            "timestamp": "2024-01-02T03:04:05+00:00",
            "bytes": 56,
            "sequence": 7,
            "address": "http://example.com",
            "latency": 1.5,
            "success": True,
        }

    def test_to_json_round_trips_through_dict(self):
        report = make_report(sequence=3, success=False)
        assert json.loads(report.to_json()) == report.to_dict()


class TestSessionStats:
    """Test running session totals."""

    def test_empty_stats(self):
        stats = SessionStats()
        assert stats.transmitted == 0
        assert stats.loss_percent == 0.0
        assert stats.latency_summary() is None

    def test_record_counts_successes_and_failures(self):
        stats = SessionStats()
        stats.record(make_report(latency_ms=10.0))
        stats.record(make_report(success=False))
        stats.record(make_report(latency_ms=30.0))
        stats.record(make_report(success=False))

        assert stats.transmitted == 4
        assert stats.received == 2
        assert stats.loss_percent == 50.0
        assert stats.latencies_ms == [10.0, 30.0]

    def test_latency_summary(self):
        stats = SessionStats()
        for latency in (10.0, 20.0, 30.0):
            stats.record(make_report(latency_ms=latency))

        summary = stats.latency_summary()

        assert summary.min_ms == 10.0
        assert summary.max_ms == 30.0
        assert summary.avg_ms == pytest.approx(20.0)
        assert summary.stddev_ms == pytest.approx(8.1650, rel=1e-3)

    def test_all_lost(self):
        stats = SessionStats()
        stats.record(make_report(success=False))
        assert stats.loss_percent == 100.0
        assert stats.latency_summary() is None
