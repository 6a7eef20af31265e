"""Prober abstraction for wsping measurement sources."""

from collections.abc import Callable
from typing import Protocol

from wsping.fake_prober import FakeProber
from wsping.http_prober import HttpProber
from wsping.options import ProbeOptions


class Prober(Protocol):
    """Protocol defining one round-trip measurement."""

    def measure(self, target: str) -> tuple[float, bool]:
        """Probe target once, returning (latency_ms, success).

        latency_ms is unreliable when success is False.
        """
        ...


ProberFactory = Callable[[ProbeOptions], Prober]


def make_prober_factory(kind: str = "http", seed: int | None = None) -> ProberFactory:
    """Return a factory building one prober per session.

    Args:
        kind: "http" for real round trips, "fake" for simulated ones
        seed: Random seed for the fake prober

    Raises:
        ValueError: If kind is unknown
    """
    if kind == "http":

        def build_http(options: ProbeOptions) -> Prober:
            return HttpProber(timeout_s=options.timeout)

        return build_http

    if kind == "fake":

        def build_fake(options: ProbeOptions) -> Prober:
            return FakeProber(seed=seed)

        return build_fake

    raise ValueError(f"Unknown prober kind: {kind!r}")
