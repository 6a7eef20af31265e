"""Simulated prober for development and tests."""

import random
import threading


class FakeProber:
    """Generates fake round-trip latencies without touching the network."""

    def __init__(self, seed: int | None = None):
        """Initialize with optional random seed for deterministic behavior."""
        # Preload probes call measure() from several pool threads at once
        self._random = random.Random(seed)
        self._lock = threading.Lock()

        # Simulation parameters
        self.base_latency = 25.0  # Base latency in ms
        self.latency_variance = 5.0  # Normal variance
        self.spike_probability = 0.05  # 5% chance of latency spike
        self.spike_multiplier = 3.0  # Spike makes latency 3x higher
        self.loss_probability = 0.02  # 2% chance of a failed probe

    def measure(self, target: str) -> tuple[float, bool]:
        """Simulate one probe against target."""
        if not target or not target.strip():
            raise ValueError("Target cannot be empty")

        with self._lock:
            # Determine if this probe is lost
            if self._random.random() < self.loss_probability:
                return 0.0, False

            # Generate latency with occasional spikes
            if self._random.random() < self.spike_probability:
                # Latency spike
                latency = self.base_latency * self.spike_multiplier + self._random.gauss(
                    0, self.latency_variance
                )
            else:
                # Normal latency
                latency = self.base_latency + self._random.gauss(0, self.latency_variance)

        # Ensure latency is positive
        latency = max(0.1, latency)
        return round(latency, 3), True
